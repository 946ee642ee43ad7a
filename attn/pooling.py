from typing import Optional

import torch
import torch.nn as nn

from tensor.numerics import MASK_FILL_VALUE, masked_softmax
from .reference import attention_pool


class AttentionPoolingBase(nn.Module):
    """Shared masked-softmax + dropout + weighted-sum tail of the pooling modules.

    Subclasses implement `score(queries, keys) -> (B,Q,K)`.
    """

    def __init__(self, dropout: float = 0.0, mask_fill_value: float = MASK_FILL_VALUE):
        super().__init__()
        if not 0.0 <= float(dropout) < 1.0:
            raise ValueError(f"dropout must be in [0, 1), got {dropout}")
        self.dropout_p = float(dropout)
        self.mask_fill_value = float(mask_fill_value)
        self.attention_weights: Optional[torch.Tensor] = None

    def score(self, queries: torch.Tensor, keys: torch.Tensor) -> torch.Tensor:
        raise NotImplementedError

    def _softmax(self, scores: torch.Tensor, valid_lens: Optional[torch.Tensor]) -> torch.Tensor:
        return masked_softmax(scores, valid_lens, fill_value=self.mask_fill_value)

    def forward(
        self,
        queries: torch.Tensor,
        keys: torch.Tensor,
        values: torch.Tensor,
        valid_lens: Optional[torch.Tensor] = None,
        *,
        training: Optional[bool] = None,
    ) -> tuple[torch.Tensor, torch.Tensor]:
        scores = self.score(queries, keys)
        out, weights = attention_pool(
            scores,
            values,
            valid_lens,
            dropout_p=self.dropout_p,
            training=self.training if training is None else bool(training),
            softmax=self._softmax,
        )
        self.attention_weights = weights
        return out, weights

    def extra_repr(self) -> str:
        return f"dropout={self.dropout_p}"
