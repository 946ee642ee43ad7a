import math

import pytest
import torch
from attn.additive import AdditiveAttention
from attn.dot_product import DotProductAttention
from attn.interfaces import AttentionPooling
from attn.reference import attention_pool, compute_attention_scores
from tensor.debug import bitwise_equal_forward, install_nan_guard


def _toy(query_size: int, batch: int = 2, num_kv: int = 10, key_size: int = 2, value_size: int = 4):
    queries = torch.normal(0, 1, (batch, 1, query_size))
    keys = torch.ones((batch, num_kv, key_size))
    values = torch.arange(num_kv * value_size, dtype=torch.float32).reshape(1, num_kv, value_size).repeat(batch, 1, 1)
    return queries, keys, values


def _expected_uniform(valid_lens, num_kv: int):
    rows = []
    for n in valid_lens:
        row = torch.zeros(num_kv)
        row[:n] = 1.0 / n
        rows.append(row)
    return torch.stack(rows).unsqueeze(1)


def test_additive_identical_keys_give_uniform_weights():
    torch.manual_seed(0)
    queries, keys, values = _toy(query_size=20)
    attention = AdditiveAttention(num_hiddens=8, dropout=0.1).eval()
    out, weights = attention(queries, keys, values, torch.tensor([2, 6]))
    assert out.shape == (2, 1, 4)
    assert torch.allclose(weights, _expected_uniform([2, 6], 10), atol=1e-6)
    # uniform weights average the first n value rows
    assert torch.allclose(out[0, 0], values[0, :2].mean(dim=0), atol=1e-5)
    assert torch.allclose(out[1, 0], values[1, :6].mean(dim=0), atol=1e-5)
    assert attention.attention_weights is weights


def test_dot_product_identical_keys_give_uniform_weights():
    torch.manual_seed(0)
    queries, keys, values = _toy(query_size=2)
    attention = DotProductAttention(dropout=0.5).eval()
    out, weights = attention(queries, keys, values, torch.tensor([2, 6]))
    assert out.shape == (2, 1, 4)
    assert torch.allclose(weights, _expected_uniform([2, 6], 10), atol=1e-6)


@pytest.mark.parametrize("B,Q,K,Dq,Dk,Dv", [(1, 1, 1, 3, 5, 2), (2, 4, 7, 6, 3, 9), (3, 5, 2, 8, 8, 1)])
def test_additive_output_shape(B, Q, K, Dq, Dk, Dv):
    attention = AdditiveAttention(num_hiddens=4, query_size=Dq, key_size=Dk).eval()
    out, weights = attention(torch.randn(B, Q, Dq), torch.randn(B, K, Dk), torch.randn(B, K, Dv))
    assert out.shape == (B, Q, Dv)
    assert weights.shape == (B, Q, K)
    assert torch.allclose(weights.sum(dim=-1), torch.ones(B, Q), atol=1e-6)


@pytest.mark.parametrize("B,Q,K,D,Dv", [(1, 1, 1, 3, 2), (2, 4, 7, 6, 9), (3, 5, 2, 8, 1)])
def test_dot_product_output_shape(B, Q, K, D, Dv):
    attention = DotProductAttention().eval()
    out, weights = attention(torch.randn(B, Q, D), torch.randn(B, K, D), torch.randn(B, K, Dv))
    assert out.shape == (B, Q, Dv)
    assert weights.shape == (B, Q, K)


def test_dot_product_default_scale_is_inverse_sqrt_d():
    q, k, v = torch.randn(2, 3, 16), torch.randn(2, 5, 16), torch.randn(2, 5, 4)
    attention = DotProductAttention().eval()
    _, weights = attention(q, k, v)
    expected = torch.softmax(torch.bmm(q, k.transpose(1, 2)) / math.sqrt(16), dim=-1)
    assert torch.allclose(weights, expected, atol=1e-6)


def test_dot_product_explicit_scale():
    q, k, v = torch.randn(1, 2, 4), torch.randn(1, 3, 4), torch.randn(1, 3, 2)
    attention = DotProductAttention(scale=1.0).eval()
    _, weights = attention(q, k, v)
    assert torch.allclose(weights, torch.softmax(torch.bmm(q, k.transpose(1, 2)), dim=-1), atol=1e-6)


def test_dot_product_masks_per_query_row():
    q, k, v = torch.randn(2, 2, 4), torch.randn(2, 5, 4), torch.randn(2, 5, 3)
    _, weights = DotProductAttention().eval()(q, k, v, torch.tensor([[1, 5], [3, 2]]))
    assert (weights[0, 0, 1:] == 0).all()
    assert (weights[1, 0, 3:] == 0).all()
    assert (weights[1, 1, 2:] == 0).all()


def test_inference_dropout_is_noop():
    q, k, v = torch.randn(2, 3, 4), torch.randn(2, 6, 4), torch.randn(2, 6, 5)
    valid_lens = torch.tensor([4, 6])
    for attention in (AdditiveAttention(num_hiddens=8, dropout=0.9), DotProductAttention(dropout=0.9)):
        attention.eval()
        assert bitwise_equal_forward(attention, (q, k, v, valid_lens))
        out, weights = attention(q, k, v, valid_lens)
        assert torch.allclose(out, torch.bmm(weights, v), atol=1e-6)


_DROPOUT_MODULES = [
    pytest.param(lambda: AdditiveAttention(num_hiddens=8, dropout=0.5, query_size=4, key_size=4), id="additive"),
    pytest.param(lambda: DotProductAttention(dropout=0.5), id="dot_product"),
]


@pytest.mark.parametrize("make", _DROPOUT_MODULES)
def test_training_flag_per_call_overrides_module_mode(make):
    torch.manual_seed(0)
    q, k, v = torch.randn(2, 3, 4), torch.randn(2, 6, 4), torch.randn(2, 6, 5)
    attention = make().train()
    out, weights = attention(q, k, v, training=False)
    assert torch.allclose(out, torch.bmm(weights, v), atol=1e-6)
    attention.eval()
    out, weights = attention(q, k, v, training=True)
    assert not torch.allclose(out, torch.bmm(weights, v), atol=1e-6)
    out, weights = attention(q, k, v)
    assert torch.allclose(out, torch.bmm(weights, v), atol=1e-6)


def test_dot_product_float16_with_valid_lens():
    q, k, v = torch.randn(1, 2, 4).half(), torch.randn(1, 5, 4).half(), torch.randn(1, 5, 3).half()
    out, weights = DotProductAttention().eval()(q, k, v, torch.tensor([2]))
    assert out.dtype == torch.float16 and weights.dtype == torch.float16
    assert (weights[0, :, 2:] == 0).all()
    assert torch.isfinite(out).all()


@pytest.mark.parametrize("make", _DROPOUT_MODULES)
def test_bfloat16_pooling_masks_and_stays_finite(make):
    torch.manual_seed(0)
    attention = make().eval().to(torch.bfloat16)
    q, k, v = (torch.randn(2, 3, 4).to(torch.bfloat16), torch.randn(2, 6, 4).to(torch.bfloat16), torch.randn(2, 6, 5).to(torch.bfloat16))
    out, weights = attention(q, k, v, torch.tensor([0, 4]))
    assert out.shape == (2, 3, 5) and weights.dtype == torch.bfloat16
    assert (weights[1, :, 4:] == 0).all()
    assert torch.isfinite(out).all() and torch.isfinite(weights).all()


def test_shape_mismatches_raise():
    with pytest.raises(ValueError, match="query/key feature size"):
        DotProductAttention()(torch.randn(2, 1, 3), torch.randn(2, 4, 5), torch.randn(2, 4, 2))
    with pytest.raises(ValueError, match="key/value sequence length"):
        DotProductAttention()(torch.randn(2, 1, 3), torch.randn(2, 4, 3), torch.randn(2, 5, 2))
    with pytest.raises(ValueError, match="key/value sequence length"):
        AdditiveAttention(num_hiddens=4)(torch.randn(2, 1, 3), torch.randn(2, 4, 5), torch.randn(2, 3, 2))
    with pytest.raises(ValueError):
        DotProductAttention()(torch.randn(2, 1, 3), torch.randn(2, 4, 3), torch.randn(2, 4, 2), torch.ones(2, 1, 1))


def test_constructor_validation():
    with pytest.raises(ValueError):
        DotProductAttention(dropout=1.0)
    with pytest.raises(ValueError):
        AdditiveAttention(num_hiddens=0)


def test_modules_satisfy_pooling_interface():
    for attention in (AdditiveAttention(num_hiddens=4, query_size=3, key_size=3), DotProductAttention()):
        assert isinstance(attention, AttentionPooling)
        assert attention.attention_weights is None


def test_zero_valid_length_stays_finite_under_nan_guard():
    attention = AdditiveAttention(num_hiddens=4, query_size=3, key_size=3).eval()
    handle = install_nan_guard(attention)
    _, weights = attention(torch.randn(2, 2, 3), torch.randn(2, 4, 3), torch.randn(2, 4, 2), torch.tensor([0, 4]))
    handle.remove()
    assert torch.allclose(weights[0], torch.full((2, 4), 0.25))


def test_attention_pool_functional():
    scores = torch.randn(2, 3, 4)
    values = torch.randn(2, 4, 5)
    out, weights = attention_pool(scores, values, torch.tensor([1, 4]))
    assert (weights[0, :, 1:] == 0).all()
    assert torch.allclose(out[0], values[0, :1].expand(3, 5), atol=1e-6)
    assert compute_attention_scores(torch.ones(1, 2, 3), torch.ones(1, 4, 3), scale=0.5).eq(1.5).all()


def test_trace_env_prints(monkeypatch, capsys):
    monkeypatch.setenv("ATTN_TRACE", "1")
    DotProductAttention(dropout=0.2).eval()(torch.randn(1, 1, 2), torch.randn(1, 3, 2), torch.randn(1, 3, 2), torch.tensor([2]))
    line = capsys.readouterr().out.strip()
    assert line.startswith("[attn]")
    for field in ("scores=(1, 1, 3)", "values=(1, 3, 2)", "valid_lens=(1,)", "dropout=0.2", "training=False"):
        assert field in line


def test_trace_silent_by_default(monkeypatch, capsys):
    monkeypatch.delenv("ATTN_TRACE", raising=False)
    monkeypatch.delenv("GEN_TRACE", raising=False)
    DotProductAttention().eval()(torch.randn(1, 1, 2), torch.randn(1, 3, 2), torch.randn(1, 3, 2))
    assert capsys.readouterr().out == ""
