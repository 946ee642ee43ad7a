import torch


def assert_rank(x: torch.Tensor, rank: int, name: str = "tensor"):
    if x.ndim != rank:
        raise ValueError(f"{name} must be {rank}D, got shape {tuple(x.shape)}")


def assert_same_size(a: torch.Tensor, b: torch.Tensor, dim_a: int, dim_b: int, what: str):
    if a.shape[dim_a] != b.shape[dim_b]:
        raise ValueError(f"{what} mismatch: {a.shape[dim_a]} != {b.shape[dim_b]} (shapes {tuple(a.shape)} and {tuple(b.shape)})")


def assert_qkv(queries: torch.Tensor, keys: torch.Tensor, values: torch.Tensor):
    # queries (B,Q,Dq), keys (B,K,Dk), values (B,K,Dv)
    assert_rank(queries, 3, "queries")
    assert_rank(keys, 3, "keys")
    assert_rank(values, 3, "values")
    assert_same_size(queries, keys, 0, 0, "batch size")
    assert_same_size(keys, values, 0, 0, "batch size")
    assert_same_size(keys, values, 1, 1, "key/value sequence length")
