import torch
import torch.nn.functional as F

from tensor.masking import expand_valid_lens, sequence_mask
from tensor.shape import assert_rank

# Large negative fill; exp() of it underflows to exactly 0 next to any real score
MASK_FILL_VALUE = -1e6


def _masked_scores(x: torch.Tensor, valid_lens: torch.Tensor, fill_value: float) -> torch.Tensor:
    # float32 copy so the sentinel fits for half/bfloat16 scores
    assert_rank(x, 3, "scores")
    B, Q, K = x.shape
    rows = expand_valid_lens(valid_lens.to(x.device), B, Q)
    x_float = x.float().reshape(-1, K)
    return sequence_mask(x_float, rows, value=fill_value).reshape(B, Q, K)


def masked_softmax(x: torch.Tensor, valid_lens: torch.Tensor | None = None, *, fill_value: float = MASK_FILL_VALUE) -> torch.Tensor:
    """Softmax over the last axis restricted to a valid prefix of keys.

    x: (B, Q, K) scores. valid_lens: None, (B,) per batch element or (B, Q) per query row.
    Keys at index >= valid length get probability 0. A valid length of 0 masks the
    whole row, which then comes out uniform. The result has the dtype of `x`.
    """
    if valid_lens is None:
        return F.softmax(x, dim=-1)
    out = F.softmax(_masked_scores(x, valid_lens, fill_value), dim=-1)
    return out.to(dtype=x.dtype)


def masked_log_softmax(x: torch.Tensor, valid_lens: torch.Tensor | None = None, *, fill_value: float = MASK_FILL_VALUE) -> torch.Tensor:
    if valid_lens is None:
        return F.log_softmax(x, dim=-1)
    out = F.log_softmax(_masked_scores(x, valid_lens, fill_value), dim=-1)
    return out.to(dtype=x.dtype)
