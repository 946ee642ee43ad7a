from typing import Optional, Protocol, runtime_checkable

import torch


@runtime_checkable
class AttentionPooling(Protocol):
    """Attention pooling over (queries, keys, values) with optional valid lengths.

    Shapes: queries (B,Q,Dq), keys (B,K,Dk), values (B,K,Dv), valid_lens (B,) or (B,Q).
    Returns (output (B,Q,Dv), attention_weights (B,Q,K)). The last weights stay
    readable on `attention_weights` for plotting.
    """

    attention_weights: Optional[torch.Tensor]

    def forward(
        self,
        queries: torch.Tensor,
        keys: torch.Tensor,
        values: torch.Tensor,
        valid_lens: Optional[torch.Tensor] = None,
        *,
        training: Optional[bool] = None,
    ) -> tuple[torch.Tensor, torch.Tensor]:
        ...

    def __call__(self, *args, **kwargs) -> tuple[torch.Tensor, torch.Tensor]:
        ...
