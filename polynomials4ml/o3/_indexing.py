r"""Index arithmetic for the flat :math:`(l, m)` layout of :math:`Y_{l,m}` and the triangular layout of
:math:`P_l^m`. All indices are 0-based.
"""
import math
from typing import Tuple


def sizeY(maxL: int) -> int:
    r"""Number of spherical harmonics :math:`Y_{l,m}` with :math:`l \leq` ``maxL``, that is :math:`(L+1)^2`"""
    return (maxL + 1) * (maxL + 1)


def sizeP(maxL: int) -> int:
    r"""Number of associated Legendre polynomials :math:`P_l^m`, :math:`0 \leq m \leq l \leq` ``maxL``"""
    return (maxL + 1) * (maxL + 2) // 2


def index_y(l: int, m: int) -> int:
    r"""Index of :math:`Y_{l,m}` in a flat array stored in l-major order

    .. code-block:: none

        [Y(0,0), Y(1,-1), Y(1,0), Y(1,1), Y(2,-2), ...]

    Examples
    --------

    >>> index_y(0, 0), index_y(1, -1), index_y(2, 2)
    (0, 1, 8)
    """
    if l < 0 or abs(m) > l:
        raise ValueError(f"invalid (l, m) = ({l}, {m}), need l >= 0 and |m| <= l")
    return l * l + l + m


def idx2lm(i: int) -> Tuple[int, int]:
    r"""Inverse of :func:`index_y`"""
    if i < 0:
        raise ValueError(f"invalid flat index {i}")
    l = math.isqrt(i)
    m = i - (l * l + l)
    return l, m


def index_p(l: int, m: int) -> int:
    r"""Index of :math:`P_l^m` in the triangular layout that only stores :math:`m \geq 0`

    .. code-block:: none

        [P(0,0), P(1,0), P(1,1), P(2,0), P(2,1), P(2,2), ...]

    The row :math:`l` is the contiguous range ``index_p(l, 0), ..., index_p(l, l)``.
    """
    if m < 0 or m > l:
        raise ValueError(f"invalid (l, m) = ({l}, {m}) for the triangular layout, need 0 <= m <= l")
    return l * (l + 1) // 2 + m


def idx2lm_p(i: int) -> Tuple[int, int]:
    r"""Inverse of :func:`index_p`"""
    if i < 0:
        raise ValueError(f"invalid triangular index {i}")
    l = (math.isqrt(8 * i + 1) - 1) // 2
    m = i - l * (l + 1) // 2
    return l, m
