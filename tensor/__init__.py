from .masking import sequence_mask, valid_lens_to_mask, expand_valid_lens, lengths_from_attention_mask
from .numerics import MASK_FILL_VALUE, masked_softmax, masked_log_softmax
from .shape import assert_rank, assert_same_size, assert_qkv
from .debug import check_finite, install_nan_guard, bitwise_equal, bitwise_equal_forward

__all__ = [
    "sequence_mask",
    "valid_lens_to_mask",
    "expand_valid_lens",
    "lengths_from_attention_mask",
    "MASK_FILL_VALUE",
    "masked_softmax",
    "masked_log_softmax",
    "assert_rank",
    "assert_same_size",
    "assert_qkv",
    "check_finite",
    "install_nan_guard",
    "bitwise_equal",
    "bitwise_equal_forward",
]
