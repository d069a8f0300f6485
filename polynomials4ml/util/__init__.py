from .default_type import (
    torch_get_default_dtype,
    torch_get_default_device,
    explicit_default_types,
    complex_dtype,
    result_dtype,
)
from ._pool import ArrayPool, default_pool, scratch, check_capacity


__all__ = [
    "torch_get_default_dtype",
    "torch_get_default_device",
    "explicit_default_types",
    "complex_dtype",
    "result_dtype",
    "ArrayPool",
    "default_pool",
    "scratch",
    "check_capacity",
]
