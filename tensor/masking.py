import torch


def valid_lens_to_mask(valid_lens: torch.Tensor, max_len: int) -> torch.Tensor:
    # valid_lens: (N,) -> (N, max_len) bool, True means masked
    rng = torch.arange(max_len, dtype=torch.float32, device=valid_lens.device).view(1, max_len)
    return ~(rng < valid_lens.reshape(-1, 1))


def sequence_mask(x: torch.Tensor, valid_len: torch.Tensor, value: float = 0.0) -> torch.Tensor:
    """Fill every position at key index >= valid_len[row] with `value`.

    x: (N, S, ...) and valid_len: (N,). Returns a new tensor.
    """
    if valid_len.ndim != 1 or valid_len.numel() != x.shape[0]:
        raise ValueError(f"valid_len shape {tuple(valid_len.shape)} does not match rows {x.shape[0]}")
    mask = valid_lens_to_mask(valid_len, x.shape[1])
    while mask.ndim < x.ndim:
        mask = mask.unsqueeze(-1)
    return x.masked_fill(mask, value)


def expand_valid_lens(valid_lens: torch.Tensor, batch_size: int, num_queries: int) -> torch.Tensor:
    """Flatten valid lengths to the (B*Q,) row order of a reshaped (B, Q, K) tensor.

    - (B,): one length per batch element, repeated across its query rows.
    - (B, Q): one length per query row, used as is.
    """
    if valid_lens.ndim == 1:
        if valid_lens.shape[0] != batch_size:
            raise ValueError(f"valid_lens shape {tuple(valid_lens.shape)} != ({batch_size},)")
        return torch.repeat_interleave(valid_lens, num_queries)
    if valid_lens.ndim == 2:
        if tuple(valid_lens.shape) != (batch_size, num_queries):
            raise ValueError(f"valid_lens shape {tuple(valid_lens.shape)} != ({batch_size},{num_queries})")
        return valid_lens.reshape(-1)
    raise ValueError(f"valid_lens must be 1D or 2D, got {valid_lens.ndim}D")


def lengths_from_attention_mask(attention_mask: torch.Tensor) -> torch.Tensor:
    # attention_mask: (B, T) with 1 token, 0 pad
    return attention_mask.to(torch.long).sum(dim=-1)
