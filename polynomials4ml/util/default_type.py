import torch

from typing import Optional, Tuple


_COMPLEX_OF = {
    torch.float32: torch.complex64,
    torch.float64: torch.complex128,
}


def torch_get_default_dtype() -> torch.dtype:
    return torch.empty(0).dtype


def torch_get_default_device() -> torch.device:
    return torch.empty(0).device


def explicit_default_types(dtype: Optional[torch.dtype],
                           device: Optional[torch.device]) -> Tuple[torch.dtype, torch.device]:
    """Resolve ``None`` dtype and device to the torch defaults"""
    if dtype is None:
        dtype = torch_get_default_dtype()
    if device is None:
        device = torch_get_default_device()
    return dtype, torch.device(device)


def complex_dtype(dtype: torch.dtype) -> torch.dtype:
    """Complex dtype with the same precision as the real ``dtype``"""
    if dtype in _COMPLEX_OF.values():
        return dtype
    if dtype not in _COMPLEX_OF:
        raise ValueError(f"no complex counterpart for {dtype}, use float32 or float64")
    return _COMPLEX_OF[dtype]


def result_dtype(basis_dtype: torch.dtype, x: torch.Tensor) -> torch.dtype:
    """Real dtype of an evaluation: promotion of the basis dtype and the input dtype"""
    if not x.is_floating_point():
        return basis_dtype
    return torch.promote_types(basis_dtype, x.dtype)
