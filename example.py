import torch

from specs.config import AttentionConfig
from attn.factory import build_attention_pooling
from tensor.numerics import masked_softmax
from viz.attention import write_attention_html

# Masked softmax: batch 0 keeps 2 of 4 keys, batch 1 keeps 3
print(masked_softmax(torch.rand(2, 2, 4), torch.tensor([2, 3])))
# Per-query-row valid lengths
print(masked_softmax(torch.rand(2, 2, 4), torch.tensor([[1, 3], [2, 4]])))

# Additive attention: queries (2,1,20), 10 identical keys (2,10,2), values (2,10,4)
queries = torch.normal(0, 1, (2, 1, 20))
keys = torch.ones((2, 10, 2))
values = torch.arange(40, dtype=torch.float32).reshape(1, 10, 4).repeat(2, 1, 1)
valid_lens = torch.tensor([2, 6])

additive = build_attention_pooling(AttentionConfig(scoring="additive", num_hiddens=8, dropout=0.1)).eval()
out, weights = additive(queries, keys, values, valid_lens)
print("additive:", out)

# Scaled dot-product attention needs equal query/key feature sizes
dot = build_attention_pooling(AttentionConfig(scoring="dot_product", dropout=0.5)).eval()
out, _ = dot(torch.normal(0, 1, (2, 1, 2)), keys, values, valid_lens)
print("dot_product:", out)

print(write_attention_html(additive.attention_weights, ".viz/additive_attention.html"))
