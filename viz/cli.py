from __future__ import annotations

import argparse

import torch

from attn.factory import build_attention_pooling
from specs.config import AttentionConfig
from tensor.debug import bitwise_equal_forward, install_nan_guard
from tensor.masking import lengths_from_attention_mask
from tensor.numerics import masked_softmax
from .attention import write_attention_html

_BATCH, _QUERIES, _KEYS = 2, 2, 4


def _toy_inputs(query_size: int, *, batch: int = 2, num_kv: int = 10, key_size: int = 2, value_size: int = 4):
    # 10 identical keys, values numbered 0..num_kv*value_size-1
    queries = torch.normal(0, 1, (batch, 1, query_size))
    keys = torch.ones((batch, num_kv, key_size))
    values = torch.arange(num_kv * value_size, dtype=torch.float32).reshape(1, num_kv, value_size).repeat(batch, 1, 1)
    return queries, keys, values


def _masked_softmax_lens(p: argparse.ArgumentParser, args: argparse.Namespace) -> torch.Tensor:
    if args.attention_mask is not None:
        if len(args.attention_mask) != _BATCH * _KEYS:
            p.error(f"--attention-mask takes {_BATCH * _KEYS} values (0/1 per key, batch-major), got {len(args.attention_mask)}")
        return lengths_from_attention_mask(torch.tensor(args.attention_mask).view(_BATCH, _KEYS))
    n = len(args.valid_lens)
    if n == _BATCH:
        return torch.tensor(args.valid_lens)
    if n == _BATCH * _QUERIES:
        return torch.tensor(args.valid_lens).view(_BATCH, _QUERIES)
    p.error(f"--valid-lens takes {_BATCH} values (per batch) or {_BATCH * _QUERIES} (per query row), got {n}")


def _cmd_masked_softmax(p: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    torch.manual_seed(args.seed)
    valid_lens = _masked_softmax_lens(p, args)
    scores = torch.rand(_BATCH, _QUERIES, _KEYS)
    print(masked_softmax(scores, valid_lens))


def _cmd_pool(p: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    if len(args.valid_lens) != 2:
        p.error(f"--valid-lens takes 2 values (one per batch element), got {len(args.valid_lens)}")
    torch.manual_seed(args.seed)
    if args.scoring == "additive":
        cfg = AttentionConfig(scoring="additive", num_hiddens=args.num_hiddens, dropout=args.dropout)
        queries, keys, values = _toy_inputs(20)
    else:
        cfg = AttentionConfig(scoring="dot_product", dropout=args.dropout, scale=args.scale)
        queries, keys, values = _toy_inputs(2)
    pooling = build_attention_pooling(cfg)
    pooling.eval()
    handle = install_nan_guard(pooling) if args.nan_guard else None
    valid_lens = torch.tensor(args.valid_lens)
    with torch.no_grad():
        out, weights = pooling(queries, keys, values, valid_lens, training=False)
    if handle is not None:
        handle.remove()
    print(f"scoring={cfg.scoring} output={tuple(out.shape)} weights={tuple(weights.shape)}")
    print(out)
    if args.check_deterministic:
        print(f"deterministic={bitwise_equal_forward(pooling, (queries, keys, values, valid_lens))}")
    if args.html:
        path = write_attention_html(weights, args.html, title=f"{cfg.scoring} attention")
        print(str(path))


def main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(prog="attn-viz", description="Masked softmax and attention pooling demos")
    sub = p.add_subparsers(dest="cmd")

    p_ms = sub.add_parser("masked-softmax", help="Masked softmax of a random (2,2,4) score tensor")
    p_ms.add_argument("--valid-lens", type=int, nargs="+", default=[2, 3], help="2 values per batch, or 4 values per query row")
    p_ms.add_argument("--attention-mask", type=int, nargs="+", default=None, help="8 values, 1 for token and 0 for pad; overrides --valid-lens")
    p_ms.add_argument("--seed", type=int, default=0)

    p_pool = sub.add_parser("pool", help="Run attention pooling on toy inputs with identical keys")
    p_pool.add_argument("--scoring", choices=["additive", "dot_product"], default="additive")
    p_pool.add_argument("--num-hiddens", type=int, default=8)
    p_pool.add_argument("--dropout", type=float, default=0.1)
    p_pool.add_argument("--scale", type=float, default=None, help="dot-product multiplier (default 1/sqrt(d))")
    p_pool.add_argument("--valid-lens", type=int, nargs="+", default=[2, 6])
    p_pool.add_argument("--html", type=str, default=None, help="Write the attention heatmap to this HTML file")
    p_pool.add_argument("--nan-guard", action="store_true", help="Raise on NaN/Inf in pooling inputs/outputs")
    p_pool.add_argument("--check-deterministic", action="store_true", help="Run twice and report whether outputs repeat bit for bit")
    p_pool.add_argument("--seed", type=int, default=0)

    args = p.parse_args(argv)

    if args.cmd == "masked-softmax":
        _cmd_masked_softmax(p_ms, args)
        return
    if args.cmd == "pool":
        _cmd_pool(p_pool, args)
        return

    p.print_help()


if __name__ == "__main__":  # pragma: no cover
    main()
