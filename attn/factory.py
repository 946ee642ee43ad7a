from specs.config import AttentionConfig
from .interfaces import AttentionPooling
from .additive import AdditiveAttention
from .dot_product import DotProductAttention


def build_attention_pooling(cfg: AttentionConfig, **overrides) -> AttentionPooling:
    # Route by cfg.scoring; registry lookup raises KeyError for unknown names
    from specs.resolve import resolve_from_config

    cls = resolve_from_config(cfg)["scoring"]
    if cls is AdditiveAttention:
        kwargs = dict(
            num_hiddens=cfg.num_hiddens,
            dropout=cfg.dropout,
            query_size=cfg.query_size,
            key_size=cfg.key_size,
            mask_fill_value=cfg.mask_fill_value,
        )
    elif cls is DotProductAttention:
        kwargs = dict(dropout=cfg.dropout, scale=cfg.scale, mask_fill_value=cfg.mask_fill_value)
    else:
        raise KeyError(f"No builder for scoring '{cfg.scoring}'")
    kwargs.update(overrides)
    return cls(**kwargs)
