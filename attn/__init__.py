from .reference import compute_attention_scores, additive_scores, attention_pool
from .interfaces import AttentionPooling
from .pooling import AttentionPoolingBase
from .additive import AdditiveAttention
from .dot_product import DotProductAttention
from .factory import build_attention_pooling

__all__ = [
    "compute_attention_scores",
    "additive_scores",
    "attention_pool",
    "AttentionPooling",
    "AttentionPoolingBase",
    "AdditiveAttention",
    "DotProductAttention",
    "build_attention_pooling",
]
