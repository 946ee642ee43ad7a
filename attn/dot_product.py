import math
from typing import Optional

import torch

from tensor.numerics import MASK_FILL_VALUE
from tensor.shape import assert_qkv, assert_same_size
from .pooling import AttentionPoolingBase
from .reference import compute_attention_scores


class DotProductAttention(AttentionPoolingBase):
    """Scaled dot-product attention: score(q, k) = (q . k) * scale.

    `scale=None` uses 1/sqrt(d) with d the query feature size.
    """

    def __init__(self, dropout: float = 0.0, *, scale: Optional[float] = None, mask_fill_value: float = MASK_FILL_VALUE):
        super().__init__(dropout=dropout, mask_fill_value=mask_fill_value)
        self.scale = None if scale is None else float(scale)

    def scaling_for(self, d: int) -> float:
        return self.scale if self.scale is not None else 1.0 / math.sqrt(d)

    def score(self, queries: torch.Tensor, keys: torch.Tensor) -> torch.Tensor:
        return compute_attention_scores(queries, keys, scale=self.scaling_for(queries.shape[-1]))

    def forward(
        self,
        queries: torch.Tensor,
        keys: torch.Tensor,
        values: torch.Tensor,
        valid_lens: Optional[torch.Tensor] = None,
        *,
        training: Optional[bool] = None,
    ) -> tuple[torch.Tensor, torch.Tensor]:
        assert_qkv(queries, keys, values)
        assert_same_size(queries, keys, -1, -1, "query/key feature size")
        return super().forward(queries, keys, values, valid_lens, training=training)

    def extra_repr(self) -> str:
        return f"dropout={self.dropout_p}, scale={self.scale}"
