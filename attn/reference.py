import os
from typing import Callable

import torch
import torch.nn.functional as F

from tensor.numerics import masked_softmax

SoftmaxFn = Callable[..., torch.Tensor]


def _trace_enabled() -> bool:
    return os.getenv("ATTN_TRACE", os.getenv("GEN_TRACE", "0")) == "1"


def compute_attention_scores(q: torch.Tensor, k: torch.Tensor, scale: float | None = None) -> torch.Tensor:
    # q: (B,Q,D), k: (B,K,D) -> scores: (B,Q,K)
    scores = torch.bmm(q, k.transpose(1, 2))
    if scale is not None:
        scores = scores * float(scale)
    return scores


def additive_scores(q_proj: torch.Tensor, k_proj: torch.Tensor, w_v: Callable[[torch.Tensor], torch.Tensor]) -> torch.Tensor:
    # q_proj: (B,Q,H), k_proj: (B,K,H) -> features (B,Q,K,H) -> scores (B,Q,K)
    features = torch.tanh(q_proj.unsqueeze(2) + k_proj.unsqueeze(1))
    return w_v(features).squeeze(-1)


def attention_pool(
    scores: torch.Tensor,
    values: torch.Tensor,
    valid_lens: torch.Tensor | None = None,
    *,
    dropout_p: float = 0.0,
    training: bool = False,
    softmax: SoftmaxFn = masked_softmax,
) -> tuple[torch.Tensor, torch.Tensor]:
    """Normalize scores with a masked softmax and take the weighted sum of values.

    scores: (B,Q,K), values: (B,K,Dv) -> output (B,Q,Dv).
    Returns (output, weights); weights are taken before dropout.
    """
    weights = softmax(scores, valid_lens)
    dropped = F.dropout(weights, p=dropout_p, training=training) if dropout_p > 0.0 else weights
    out = torch.bmm(dropped, values)
    if _trace_enabled():
        vl = None if valid_lens is None else tuple(valid_lens.shape)
        print(f"[attn] scores={tuple(scores.shape)} values={tuple(values.shape)} valid_lens={vl} dropout={dropout_p} training={training}")
    return out, weights
