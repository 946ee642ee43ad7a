from __future__ import annotations

import torch

from tensor.numerics import masked_softmax


def main() -> None:
    torch.manual_seed(0)
    # Fake scores to demo masking by valid length
    B, Q, K = 2, 2, 4
    scores = torch.rand(B, Q, K)
    for valid_lens in (None, torch.tensor([2, 3]), torch.tensor([[1, 3], [2, 4]]), torch.tensor([0, 4])):
        probs = masked_softmax(scores, valid_lens)
        print({"valid_lens": None if valid_lens is None else valid_lens.tolist(), "row_sums": probs.sum(dim=-1).tolist()})
        print(probs)


if __name__ == "__main__":
    main()
