from typing import Optional

import torch
import torch.nn as nn

from tensor.numerics import MASK_FILL_VALUE
from tensor.shape import assert_qkv
from .pooling import AttentionPoolingBase
from .reference import additive_scores


def _projection(in_features: Optional[int], out_features: int) -> nn.Module:
    if in_features is None:
        return nn.LazyLinear(out_features, bias=False)
    return nn.Linear(int(in_features), out_features, bias=False)


class AdditiveAttention(AttentionPoolingBase):
    """Additive attention: score(q, k) = w_v^T tanh(W_q q + W_k k).

    Queries and keys are projected independently into a shared hidden space of
    size `num_hiddens`, so their feature sizes may differ. Leaving `query_size`
    or `key_size` unset infers it on the first forward call.
    """

    def __init__(
        self,
        num_hiddens: int,
        dropout: float = 0.0,
        *,
        query_size: Optional[int] = None,
        key_size: Optional[int] = None,
        mask_fill_value: float = MASK_FILL_VALUE,
    ):
        super().__init__(dropout=dropout, mask_fill_value=mask_fill_value)
        if int(num_hiddens) <= 0:
            raise ValueError(f"num_hiddens must be positive, got {num_hiddens}")
        self.num_hiddens = int(num_hiddens)
        self.W_q = _projection(query_size, self.num_hiddens)
        self.W_k = _projection(key_size, self.num_hiddens)
        self.w_v = nn.Linear(self.num_hiddens, 1, bias=False)

    def score(self, queries: torch.Tensor, keys: torch.Tensor) -> torch.Tensor:
        return additive_scores(self.W_q(queries), self.W_k(keys), self.w_v)

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
        return super().forward(queries, keys, values, valid_lens, training=training)

    def extra_repr(self) -> str:
        return f"num_hiddens={self.num_hiddens}, dropout={self.dropout_p}"
