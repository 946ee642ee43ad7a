import warnings
import torch


def check_finite(t: torch.Tensor, where: str, *, throw: bool = True) -> bool:
    if torch.isfinite(t).all():
        return True
    msg = f"NaN/Inf detected in {where}: shape={tuple(t.shape)} dtype={t.dtype} device={t.device}"
    if throw:
        raise RuntimeError(msg)
    warnings.warn(msg)
    return False


def install_nan_guard(module: torch.nn.Module, *, throw: bool = True):
    """Install a forward hook checking pooling inputs and (output, weights) for NaN/Inf.

    If `throw` is True, raises RuntimeError on detection; otherwise warns.
    Returns the hook handle; call `.remove()` to uninstall.
    """

    def _hook(_mod, inputs, output):
        for i, inp in enumerate(inputs):
            if isinstance(inp, torch.Tensor) and inp.dtype.is_floating_point:
                check_finite(inp, f"{type(_mod).__name__} input[{i}]", throw=throw)
        outs = output if isinstance(output, (tuple, list)) else (output,)
        for i, out in enumerate(outs):
            if isinstance(out, torch.Tensor):
                check_finite(out, f"{type(_mod).__name__} output[{i}]", throw=throw)

    return module.register_forward_hook(_hook)


_SAME_WIDTH_INT = {1: torch.int8, 2: torch.int16, 4: torch.int32, 8: torch.int64}


def bitwise_equal(a: torch.Tensor, b: torch.Tensor) -> bool:
    """True when `a` and `b` agree in shape, dtype, device and every stored bit.

    Floats are compared as same-width integers, so NaN payloads and -0.0 count.
    """
    if a.dtype != b.dtype or a.shape != b.shape or a.device != b.device:
        return False
    if not a.dtype.is_floating_point:
        return torch.equal(a, b)
    as_int = _SAME_WIDTH_INT[a.element_size()]
    return torch.equal(a.detach().contiguous().view(as_int), b.detach().contiguous().view(as_int))


def _tensor_outputs(out) -> list[torch.Tensor]:
    if isinstance(out, torch.Tensor):
        return [out]
    if isinstance(out, (tuple, list)):
        return [t for t in out if isinstance(t, torch.Tensor)]
    return []


def bitwise_equal_forward(module: torch.nn.Module, inputs: tuple, kwargs: dict | None = None) -> bool:
    """Call `module` twice on the same inputs; True if every tensor output repeats exactly.

    Used to check that a pooling module in inference mode applies no dropout.
    """
    kwargs = kwargs or {}
    with torch.no_grad():
        first = _tensor_outputs(module(*inputs, **kwargs))
        second = _tensor_outputs(module(*inputs, **kwargs))
    if not first or len(first) != len(second):
        return False
    return all(bitwise_equal(a, b) for a, b in zip(first, second))
