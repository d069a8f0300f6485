r"""Orthogonal polynomials defined by a three term recurrence
"""
import math
import warnings
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import torch
from scipy.special import gammaln
from torch.autograd.function import once_differentiable

from polynomials4ml.util import ArrayPool, explicit_default_types, result_dtype, check_capacity, scratch


class OrthPolyBasis1D3T:
    r"""Polynomial basis :math:`p_0, \dots, p_{N-1}` given by the recurrence

    .. math::

        p_0 &= A_0

        p_1 &= A_1 x + B_1

        p_n &= (A_n x + B_n) p_{n-1} + C_n p_{n-2}

    The coefficients :math:`B_0, C_0, C_1` are not used.

    Parameters
    ----------
    A, B, C : sequence of float or `torch.Tensor`
        recurrence coefficients, all of length :math:`N \geq 1`

    meta : dict, optional
        free description of the family, e.g. ``{"family": "jacobi", "alpha": 1.0, ...}``

    dtype : `torch.dtype`, optional

    device : `torch.device`, optional

    Examples
    --------

    >>> basis = OrthPolyBasis1D3T([1.0, 1.0, 1.5], [0.0, 0.0, 0.0], [0.0, 0.0, -0.5], dtype=torch.float64)
    >>> basis.evaluate(torch.tensor(0.5, dtype=torch.float64))
    tensor([ 1.0000,  0.5000, -0.1250], dtype=torch.float64)
    """

    def __init__(self, A, B, C, meta: Optional[Dict] = None, dtype=None, device=None) -> None:
        dtype, device = explicit_default_types(dtype, device)
        A, B, C = (torch.as_tensor(v, dtype=dtype, device=device).flatten() for v in (A, B, C))
        if not (len(A) == len(B) == len(C)):
            raise ValueError(f"coefficients must have the same length, got {len(A)}, {len(B)}, {len(C)}")
        if len(A) < 1:
            raise ValueError("OrthPolyBasis1D3T needs at least one polynomial")

        self.A, self.B, self.C = A, B, C
        self.meta = dict(meta) if meta is not None else {}
        self.dtype, self.device = dtype, device
        # python floats for the stepping loop, read once
        self._coeffs = (A.tolist(), B.tolist(), C.tolist())

    def __len__(self) -> int:
        return len(self.A)

    def __repr__(self) -> str:
        family = self.meta.get("family")
        if family is None:
            return f"{self.__class__.__name__}(N={len(self)})"
        return f"{self.__class__.__name__}(N={len(self)}, family={family})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, OrthPolyBasis1D3T):
            return NotImplemented
        return len(self) == len(other) and all(
            torch.equal(a, b.to(a)) for a, b in zip((self.A, self.B, self.C), (other.A, other.B, other.C))
        )

    __hash__ = None

    def _input(self, x) -> torch.Tensor:
        if not isinstance(x, torch.Tensor):
            return torch.as_tensor(x, dtype=self.dtype, device=self.device)
        return x.to(result_dtype(self.dtype, x))

    def evaluate(self, x, out: Optional[torch.Tensor] = None) -> torch.Tensor:
        r"""Evaluate the basis

        Parameters
        ----------
        x : `torch.Tensor` or float
            tensor of shape :math:`(...)`

        out : `torch.Tensor`, optional
            buffer of shape :math:`(..., n)`, :math:`n \geq N`, filled in place

        Returns
        -------
        `torch.Tensor`
            tensor of shape :math:`(..., N)`
        """
        x = self._input(x)
        if out is None:
            P = x.new_empty(x.shape + (len(self),))
        else:
            P = check_capacity(out, x.shape, len(self), x.dtype)
        _orthpoly_recurrence(self._coeffs, x, (P,))
        return P

    def evaluate_d(self, x) -> Tuple[torch.Tensor, torch.Tensor]:
        r"""Evaluate the basis and its first derivative, both of shape :math:`(..., N)`"""
        x = self._input(x)
        P, dP = (x.new_empty(x.shape + (len(self),)) for _ in range(2))
        _orthpoly_recurrence(self._coeffs, x, (P, dP))
        return P, dP

    def evaluate_dd(self, x) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
        r"""Evaluate the basis and its first and second derivatives, all of shape :math:`(..., N)`"""
        x = self._input(x)
        P, dP, ddP = (x.new_empty(x.shape + (len(self),)) for _ in range(3))
        _orthpoly_recurrence(self._coeffs, x, (P, dP, ddP))
        return P, dP, ddP

    def pullback(self, x, grad_P: torch.Tensor, pool: Optional[ArrayPool] = None) -> torch.Tensor:
        r"""Reverse mode: given :math:`\partial \mathcal{L} / \partial p_n(x)` of shape :math:`(..., N)` return
        :math:`\partial \mathcal{L} / \partial x = \sum_n \partial \mathcal{L} / \partial p_n \; p_n'(x)`
        """
        x_in = x
        x = self._input(x)
        shape = x.shape + (len(self),)
        with scratch(shape, x.dtype, x.device, pool) as P, scratch(shape, x.dtype, x.device, pool) as dP:
            _orthpoly_recurrence(self._coeffs, x, (P, dP))
            grad_x = (grad_P * dP).sum(-1)
        if isinstance(x_in, torch.Tensor):
            grad_x = grad_x.to(x_in.dtype)
        return grad_x

    def __call__(self, x) -> torch.Tensor:
        r"""Differentiable version of :meth:`evaluate`"""
        return _OrthPolyFunction.apply(self._input(x), self)


class _OrthPolyFunction(torch.autograd.Function):
    # pylint: disable=arguments-differ

    @staticmethod
    def forward(ctx, x, basis):
        ctx.basis = basis
        ctx.save_for_backward(x)
        return basis.evaluate(x)

    @staticmethod
    @once_differentiable
    def backward(ctx, grad_P):
        (x,) = ctx.saved_tensors
        return ctx.basis.pullback(x, grad_P), None


def _orthpoly_recurrence(coeffs, x: torch.Tensor, tables: Sequence[torch.Tensor]) -> None:
    r"""Fill ``tables = (P,)``, ``(P, dP)`` or ``(P, dP, ddP)`` in place

    The derivatives are obtained by differentiating each step of the recurrence.
    """
    A, B, C = coeffs
    N = len(A)
    order = len(tables) - 1
    P = tables[0]
    dP = tables[1] if order >= 1 else None
    ddP = tables[2] if order >= 2 else None

    P[..., 0] = A[0]
    for T in tables[1:]:
        T[..., 0] = 0
    if N == 1:
        return

    P[..., 1] = A[1] * x + B[1]
    if dP is not None:
        dP[..., 1] = A[1]
    if ddP is not None:
        ddP[..., 1] = 0

    for n in range(2, N):
        a = A[n] * x + B[n]
        if ddP is not None:
            ddP[..., n] = 2 * A[n] * dP[..., n - 1] + a * ddP[..., n - 1] + C[n] * ddP[..., n - 2]
        if dP is not None:
            dP[..., n] = A[n] * P[..., n - 1] + a * dP[..., n - 1] + C[n] * dP[..., n - 2]
        P[..., n] = a * P[..., n - 1] + C[n] * P[..., n - 2]


def _normalize(A, B, C, h):
    r"""rescale the coefficients such that :math:`p_n \to p_n / \sqrt{h_n}`"""
    A, B, C = (np.array(v, dtype=np.float64) for v in (A, B, C))
    h = np.asarray(h, dtype=np.float64)
    A[0] /= math.sqrt(h[0])
    if len(A) > 1:
        A[1] /= math.sqrt(h[1])
        B[1] /= math.sqrt(h[1])
    for n in range(2, len(A)):
        A[n] *= math.sqrt(h[n - 1] / h[n])
        B[n] *= math.sqrt(h[n - 1] / h[n])
        C[n] *= math.sqrt(h[n - 2] / h[n])
    return A, B, C


def _check_N(N: int) -> None:
    if N < 1:
        raise ValueError(f"the basis needs at least one polynomial, got N = {N}")


def legendre_basis(N: int, normalize: bool = False, dtype=None, device=None) -> OrthPolyBasis1D3T:
    r"""Legendre polynomials :math:`P_0, \dots, P_{N-1}` on :math:`[-1, 1]`

    With ``normalize=True`` they are orthonormal, :math:`\int_{-1}^1 p_i p_j dx = \delta_{ij}`.
    """
    _check_N(N)
    A, B, C = np.zeros(N), np.zeros(N), np.zeros(N)
    A[0] = 1.0
    if N > 1:
        A[1] = 1.0
    for n in range(2, N):
        A[n] = (2 * n - 1) / n
        C[n] = -(n - 1) / n

    if normalize:
        h = [2 / (2 * n + 1) for n in range(N)]
        A, B, C = _normalize(A, B, C, h)
    meta = dict(family="legendre", normalize=normalize)
    return OrthPolyBasis1D3T(A, B, C, meta=meta, dtype=dtype, device=device)


def _jacobi_log_norms(N: int, alpha: float, beta: float) -> np.ndarray:
    r""":math:`\log h_n`, :math:`h_n = \int_{-1}^1 (1-x)^\alpha (1+x)^\beta P_n^{(\alpha, \beta)}(x)^2 dx`"""
    ab = alpha + beta
    log_h = np.empty(N)
    log_h[0] = (ab + 1) * math.log(2) + gammaln(alpha + 1) + gammaln(beta + 1) - gammaln(ab + 2)
    n = np.arange(1, N, dtype=np.float64)
    log_h[1:] = (
        (ab + 1) * math.log(2) - np.log(2 * n + ab + 1)
        + gammaln(n + alpha + 1) + gammaln(n + beta + 1) - gammaln(n + ab + 1) - gammaln(n + 1)
    )
    return log_h


def jacobi_basis(N: int, alpha: float, beta: float, normalize: bool = False, dtype=None, device=None) -> OrthPolyBasis1D3T:
    r"""Jacobi polynomials :math:`P_n^{(\alpha, \beta)}`, orthogonal for the weight :math:`(1-x)^\alpha (1+x)^\beta`
    on :math:`[-1, 1]`

    Parameters
    ----------
    N : int
        number of polynomials

    alpha, beta : float
        exponents of the weight, :math:`\alpha, \beta > -1`

    normalize : bool
        rescale such that :math:`\int_{-1}^1 (1-x)^\alpha (1+x)^\beta p_i p_j dx = \delta_{ij}`
    """
    _check_N(N)
    alpha, beta = float(alpha), float(beta)
    if alpha <= -1 or beta <= -1:
        raise ValueError(f"jacobi_basis needs alpha, beta > -1, got alpha = {alpha}, beta = {beta}")

    ab = alpha + beta
    A, B, C = np.zeros(N), np.zeros(N), np.zeros(N)
    A[0] = 1.0
    if N > 1:
        A[1] = (ab + 2) / 2
        B[1] = (alpha - beta) / 2
    for n in range(2, N):
        c1 = 2 * n * (n + ab) * (2 * n + ab - 2)
        c2 = 2 * n + ab - 1
        A[n] = c2 * (2 * n + ab) * (2 * n + ab - 2) / c1
        B[n] = c2 * (alpha**2 - beta**2) / c1
        C[n] = -2 * (n + alpha - 1) * (n + beta - 1) * (2 * n + ab) / c1

    if normalize:
        A, B, C = _normalize(A, B, C, np.exp(_jacobi_log_norms(N, alpha, beta)))
    meta = dict(family="jacobi", normalize=normalize, alpha=alpha, beta=beta)
    return OrthPolyBasis1D3T(A, B, C, meta=meta, dtype=dtype, device=device)


def chebyshev_basis(N: int, normalize: bool = False, dtype=None, device=None) -> OrthPolyBasis1D3T:
    r"""Chebyshev polynomials of the first kind :math:`T_0, \dots, T_{N-1}`, orthogonal for the weight
    :math:`(1-x^2)^{-1/2}` on :math:`[-1, 1]`

    Examples
    --------

    >>> cheb = chebyshev_basis(4, dtype=torch.float64)
    >>> cheb.A
    tensor([1., 1., 2., 2.], dtype=torch.float64)
    """
    _check_N(N)
    A, B, C = np.zeros(N), np.zeros(N), np.zeros(N)
    A[0] = 1.0
    if N > 1:
        A[1] = 1.0
    A[2:] = 2.0
    C[2:] = -1.0

    if normalize:
        h = [math.pi] + [math.pi / 2] * (N - 1)
        A, B, C = _normalize(A, B, C, h)
    meta = dict(family="chebyshev", normalize=normalize)
    return OrthPolyBasis1D3T(A, B, C, meta=meta, dtype=dtype, device=device)


def orthpoly_from_weights(N: int, x, w, dtype=None, device=None) -> OrthPolyBasis1D3T:
    r"""Orthonormal polynomials for a discrete measure

    Builds :math:`p_0, \dots, p_{N-1}` with :math:`\sum_j w_j p_a(x_j) p_b(x_j) = \delta_{ab}` by the Stieltjes
    procedure.

    Parameters
    ----------
    N : int
        number of polynomials, at most the number of nodes with a positive weight

    x : `torch.Tensor`
        nodes, shape :math:`(M,)`

    w : `torch.Tensor`
        non negative weights, shape :math:`(M,)`
    """
    _check_N(N)
    x = torch.as_tensor(x)
    w = torch.as_tensor(w)
    if not x.is_floating_point():
        x = x.to(torch.get_default_dtype())
    if x.dtype != torch.float64:
        warnings.warn("orthpoly_from_weights: the Stieltjes procedure loses orthogonality, you should use torch.float64")
    w = w.to(x.dtype)
    if x.ndim != 1 or x.shape != w.shape:
        raise ValueError(f"x and w must be vectors of the same length, got {tuple(x.shape)} and {tuple(w.shape)}")
    if (w < 0).any():
        raise ValueError("orthpoly_from_weights: the weights must be non negative")
    if N > int((w > 0).sum()):
        raise ValueError(f"orthpoly_from_weights: {N} polynomials need at least {N} nodes with positive weight")

    A, B, C = (x.new_zeros(N) for _ in range(3))
    A[0] = 1 / w.sum().sqrt()
    q_prev2 = torch.zeros_like(x)
    q_prev = A[0].expand_as(x)
    b_prev = x.new_zeros(())
    for n in range(1, N):
        a = (w * x * q_prev**2).sum()
        r = (x - a) * q_prev - b_prev * q_prev2
        b = (w * r**2).sum().sqrt()
        if n == 1:
            A[1] = A[0] / b
            B[1] = -a * A[0] / b
        else:
            A[n] = 1 / b
            B[n] = -a / b
            C[n] = -b_prev / b
        q_prev2, q_prev, b_prev = q_prev, r / b, b

    if dtype is None:
        dtype = x.dtype
    meta = dict(family="discrete", nodes=len(x))
    return OrthPolyBasis1D3T(A, B, C, meta=meta, dtype=dtype, device=device)
