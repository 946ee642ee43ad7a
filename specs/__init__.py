from .config import AttentionConfig
from .ops import get_op, has_op, list_ops
from .resolve import resolve_from_config

__all__ = [
    "AttentionConfig",
    "get_op",
    "has_op",
    "list_ops",
    "resolve_from_config",
]
