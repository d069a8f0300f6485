r"""Scratch arrays reused across evaluations

The evaluators need temporary tables (the associated Legendre table, its derivatives, ...) whose size only depends
on the degree and on the batch shape. Instead of allocating them on every call they are borrowed from an
:class:`ArrayPool`. A pool is plain mutable state: it is not thread safe and is never stored inside a basis.
Each thread gets its own pool from :func:`default_pool`.
"""
import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Dict, List, Optional, Sequence, Tuple

import torch

import polynomials4ml


logger = logging.getLogger(__name__)


class ArrayPool:
    r"""Cache of free buffers keyed by ``(dtype, device, rank)``

    Buffers are flat tensors. :meth:`acquire` returns a view of shape ``shape`` on a free buffer that is large
    enough (or a new one) and :meth:`release` gives the buffer back. Use :meth:`borrow` to guarantee the release.

    Examples
    --------

    >>> pool = ArrayPool()
    >>> with pool.borrow((2, 3), torch.float64) as tmp:
    ...     tmp.shape
    torch.Size([2, 3])
    >>> len(pool)
    1
    """

    def __init__(self) -> None:
        self._free: Dict[Tuple, List[torch.Tensor]] = defaultdict(list)
        self._lent: Dict[Tuple, Tuple[Tuple, torch.Tensor]] = {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(free={len(self)}, lent={len(self._lent)})"

    def __len__(self) -> int:
        return sum(len(buffers) for buffers in self._free.values())

    @staticmethod
    def _key(shape, dtype, device) -> Tuple:
        return (dtype, torch.device(device), len(shape))

    @staticmethod
    def _lent_key(array: torch.Tensor) -> Tuple:
        # the storage of a lent buffer identifies it until it is released, also for views with no element
        return (array.untyped_storage().data_ptr(), array.dtype)

    def acquire(self, shape: Sequence[int], dtype: torch.dtype, device=None) -> torch.Tensor:
        r"""Borrow an uninitialized tensor of shape ``shape``

        The returned tensor must be given back with :meth:`release` and must not be used afterwards.
        """
        shape = tuple(shape)
        if device is None:
            device = torch.empty(0).device
        key = self._key(shape, dtype, device)
        numel = 1
        for d in shape:
            numel *= d

        free = self._free[key]
        if free:
            base = free.pop()
            if base.numel() < numel:
                logger.debug("ArrayPool: growing buffer %s from %d to %d elements", key, base.numel(), numel)
                base = torch.empty(max(numel, 1), dtype=dtype, device=device)
        else:
            logger.debug("ArrayPool: new buffer %s with %d elements", key, numel)
            base = torch.empty(max(numel, 1), dtype=dtype, device=device)

        view = base[:numel].view(shape)
        self._lent[self._lent_key(view)] = (key, base)
        return view

    def release(self, array: torch.Tensor) -> None:
        r"""Give back a tensor obtained from :meth:`acquire`"""
        try:
            key, base = self._lent.pop(self._lent_key(array))
        except KeyError:
            raise ValueError("release: this array was not acquired from this pool") from None
        self._free[key].append(base)

    @contextmanager
    def borrow(self, shape: Sequence[int], dtype: torch.dtype, device=None):
        r"""Context manager version of :meth:`acquire` / :meth:`release`"""
        array = self.acquire(shape, dtype, device)
        try:
            yield array
        finally:
            self.release(array)

    def clear(self) -> None:
        r"""Drop all the free buffers"""
        self._free.clear()


_local = threading.local()


def default_pool() -> ArrayPool:
    r"""The pool of the calling thread"""
    pool = getattr(_local, "pool", None)
    if pool is None:
        pool = ArrayPool()
        _local.pool = pool
    return pool


@contextmanager
def scratch(shape: Sequence[int], dtype: torch.dtype, device=None, pool: Optional[ArrayPool] = None):
    r"""Temporary tensor, borrowed from ``pool`` (or the thread's pool) unless ``use_buffer_pool`` is disabled"""
    if not polynomials4ml.get_optimization_defaults()["use_buffer_pool"]:
        yield torch.empty(tuple(shape), dtype=dtype, device=device)
        return

    if pool is None:
        pool = default_pool()
    with pool.borrow(shape, dtype, device) as array:
        yield array


def check_capacity(array: torch.Tensor, batch_shape, size: int, dtype: torch.dtype, name: str = "out") -> torch.Tensor:
    r"""Validate a caller supplied output buffer and return the view ``array[..., :size]`` to write into

    Raises ``ValueError`` before anything is written if the buffer is too short, has the wrong batch shape or the
    wrong dtype.
    """
    batch_shape = tuple(batch_shape)
    if array.ndim != len(batch_shape) + 1 or tuple(array.shape[:-1]) != batch_shape:
        raise ValueError(f"{name} has shape {tuple(array.shape)}, expected {batch_shape + (size,)}")
    if array.shape[-1] < size:
        raise ValueError(f"{name} has length {array.shape[-1]} but {size} entries are required")
    if array.dtype != dtype:
        raise ValueError(f"{name} has dtype {array.dtype}, expected {dtype}")
    return array[..., :size]
