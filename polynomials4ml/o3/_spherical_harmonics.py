r"""Complex spherical harmonics from the associated Legendre polynomials
"""
import math
from functools import lru_cache
from typing import List, Optional, Tuple, Union

import torch
from torch.autograd.function import once_differentiable

import polynomials4ml
from polynomials4ml.util import ArrayPool, complex_dtype, check_capacity, scratch

from ._indexing import sizeP, sizeY, index_p, index_y
from ._legendre import ALPolynomials
from ._spherical_coords import SphericalCoords, cart2spher, dspher_to_dcart


class CYlmBasis:
    r"""Complex spherical harmonics :math:`Y_{l,m}` for :math:`0 \leq l \leq L`, :math:`-l \leq m \leq l`

    .. math::

        Y_{l,m}(\theta, \phi) = \frac{1}{\sqrt 2} P_l^m(\cos\theta) e^{im\phi}, \quad
        Y_{l,-m} = (-1)^m \overline{Y_{l,m}}

    where :math:`P_l^m` are the normalized `ALPolynomials`. They are orthonormal on the sphere. The output is
    stored in the flat layout of :func:`~polynomials4ml.o3.index_y`.

    The basis is immutable and can be shared. Scratch tables are borrowed from an
    :class:`~polynomials4ml.util.ArrayPool` (the calling thread's pool unless ``pool=`` is given).

    Parameters
    ----------
    maxL : int or `ALPolynomials`
        maximum degree :math:`L`, or the Legendre evaluator to use

    dtype : `torch.dtype`, optional
        real dtype of the coefficients, the outputs are complex

    device : `torch.device`, optional

    Examples
    --------

    >>> basis = CYlmBasis(2, dtype=torch.float64)
    >>> basis
    CYlmBasis(L=2)
    >>> basis.evaluate(torch.tensor([0.0, 0.0, 2.0], dtype=torch.float64)).shape
    torch.Size([9])
    """

    def __init__(self, maxL: Union[int, ALPolynomials], dtype=None, device=None) -> None:
        if isinstance(maxL, ALPolynomials):
            self.alp = maxL
        else:
            self.alp = ALPolynomials(maxL, dtype=dtype, device=device)

    @property
    def maxL(self) -> int:
        return self.alp.maxL

    @property
    def dtype(self) -> torch.dtype:
        return complex_dtype(self.alp.dtype)

    @property
    def device(self) -> torch.device:
        return self.alp.device

    def __len__(self) -> int:
        return sizeY(self.maxL)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(L={self.maxL})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, CYlmBasis):
            return NotImplemented
        return type(self) == type(other) and self.alp == other.alp

    def __hash__(self) -> int:
        return hash((CYlmBasis, self.alp))

    def index(self, l: int, m: int) -> int:
        r"""Position of :math:`Y_{l,m}` in the output of :meth:`evaluate`"""
        if l > self.maxL:
            raise ValueError(f"l = {l} exceeds the maximum degree {self.maxL} of {self}")
        return index_y(l, m)

    def _spher(self, R: torch.Tensor) -> SphericalCoords:
        return self.alp._prepare(cart2spher(R))

    def evaluate(
        self,
        R: torch.Tensor,
        out: Optional[torch.Tensor] = None,
        pool: Optional[ArrayPool] = None,
    ) -> torch.Tensor:
        r"""Evaluate the spherical harmonics

        Parameters
        ----------
        R : `torch.Tensor`
            tensor of shape :math:`(..., 3)`, non zero vectors

        out : `torch.Tensor`, optional
            complex buffer of shape :math:`(..., n)` with :math:`n \geq (L+1)^2`, filled in place

        pool : `ArrayPool`, optional
            where to borrow the Legendre table from

        Returns
        -------
        `torch.Tensor`
            complex tensor of shape :math:`(..., (L+1)^2)`
        """
        S = self._spher(R)
        batch = S.cos_theta.shape
        real = S.cos_theta.dtype
        if out is None:
            Y = torch.empty(batch + (len(self),), dtype=complex_dtype(real), device=R.device)
        else:
            Y = check_capacity(out, batch, len(self), complex_dtype(real))

        with scratch(batch + (sizeP(self.maxL),), real, R.device, pool) as P:
            self.alp.evaluate(S, out=P)
            cylm_(Y, self.maxL, S, P)
        return Y

    def evaluate_ed(self, R: torch.Tensor, pool: Optional[ArrayPool] = None) -> Tuple[torch.Tensor, torch.Tensor]:
        r"""Evaluate the spherical harmonics and their gradients with respect to ``R``

        Returns
        -------
        Y : `torch.Tensor`
            complex tensor of shape :math:`(..., (L+1)^2)`, identical to :meth:`evaluate`

        dY : `torch.Tensor`
            complex tensor of shape :math:`(..., (L+1)^2, 3)`
        """
        S = self._spher(R)
        batch = S.cos_theta.shape
        real = S.cos_theta.dtype
        Y = torch.empty(batch + (len(self),), dtype=complex_dtype(real), device=R.device)
        dY = torch.empty(batch + (len(self), 3), dtype=complex_dtype(real), device=R.device)

        shape = batch + (sizeP(self.maxL),)
        with scratch(shape, real, R.device, pool) as P, \
                scratch(shape, real, R.device, pool) as dP, \
                scratch(shape, real, R.device, pool) as P_div_sin:
            self.alp.evaluate_ed_div_sin(S, out=(P, dP, P_div_sin))
            cylm_ed_(Y, dY, self.maxL, S, P, dP, P_div_sin)
        return Y, dY

    def evaluate_d(self, R: torch.Tensor, pool: Optional[ArrayPool] = None) -> torch.Tensor:
        r"""Gradients of the spherical harmonics, see :meth:`evaluate_ed`"""
        return self.evaluate_ed(R, pool=pool)[1]

    def pullback(self, R: torch.Tensor, grad_Y: torch.Tensor, pool: Optional[ArrayPool] = None) -> torch.Tensor:
        r"""Reverse mode: gradient with respect to ``R`` of a real loss given its gradient ``grad_Y`` with respect to
        the output

        Follows the torch convention for complex tensors, ``grad_Y`` holds
        :math:`\partial \mathcal{L} / \partial \Re Y + i \partial \mathcal{L} / \partial \Im Y`.

        Returns
        -------
        `torch.Tensor`
            tensor of shape :math:`(..., 3)`
        """
        _, dY = self.evaluate_ed(R, pool=pool)
        return (grad_Y.conj().unsqueeze(-1) * dY).real.sum(-2).to(R.dtype)

    def __call__(self, R: torch.Tensor) -> torch.Tensor:
        r"""Differentiable version of :meth:`evaluate`"""
        return _CYlmFunction.apply(R, self)


class _CYlmFunction(torch.autograd.Function):
    # pylint: disable=arguments-differ

    @staticmethod
    def forward(ctx, R, basis):
        ctx.basis = basis
        ctx.save_for_backward(R)
        return basis.evaluate(R)

    @staticmethod
    @once_differentiable
    def backward(ctx, grad_Y):
        (R,) = ctx.saved_tensors
        return ctx.basis.pullback(R, grad_Y), None


@lru_cache(maxsize=32)
def _gather_indices(L: int, device: torch.device) -> List[Tuple[torch.Tensor, torch.Tensor, torch.Tensor]]:
    r"""for each m: positions of P(l, m), Y(l, m) and Y(l, -m) for l = m, ..., L"""
    out = []
    for m in range(L + 1):
        ls = range(m, L + 1)
        out.append(tuple(
            torch.tensor(idx, dtype=torch.long, device=device)
            for idx in (
                [index_p(l, m) for l in ls],
                [index_y(l, m) for l in ls],
                [index_y(l, -m) for l in ls],
            )
        ))
    return out


def _check_tables(L: int, S: SphericalCoords, Y: torch.Tensor, P: torch.Tensor, *tables: torch.Tensor) -> None:
    if Y.shape[-1] < sizeY(L):
        raise ValueError(f"Y has length {Y.shape[-1]}, at least {sizeY(L)} entries are required for L = {L}")
    for T in (P,) + tables:
        if T.shape[-1] < sizeP(L):
            raise ValueError(f"Legendre table has length {T.shape[-1]}, at least {sizeP(L)} entries are required")
    if polynomials4ml.get_optimization_defaults()["check_inputs"]:
        assert (S.cos_theta.abs() <= 1).all(), "cylm: |cos(theta)| > 1"


def cylm_(Y: torch.Tensor, L: int, S: SphericalCoords, P: torch.Tensor) -> torch.Tensor:
    r"""Combine the Legendre table ``P`` with the azimuthal phases into ``Y``, in place

    Parameters
    ----------
    Y : `torch.Tensor`
        complex tensor of shape :math:`(..., n)`, :math:`n \geq (L+1)^2`

    L : int
        maximum degree

    S : `SphericalCoords`
        fields of shape :math:`(...)`

    P : `torch.Tensor`
        table of shape :math:`(..., k)`, :math:`k \geq (L+1)(L+2)/2`, output of `ALPolynomials.evaluate`

    Returns
    -------
    `torch.Tensor`
        ``Y``
    """
    _check_tables(L, S, Y, P)
    _cylm(Y, None, L, S, P, None, None)
    return Y


def cylm_ed_(
    Y: torch.Tensor,
    dY: torch.Tensor,
    L: int,
    S: SphericalCoords,
    P: torch.Tensor,
    dP: torch.Tensor,
    P_div_sin: torch.Tensor,
) -> Tuple[torch.Tensor, torch.Tensor]:
    r"""Same as `cylm_` and also fill the cartesian gradients ``dY`` of shape :math:`(..., n, 3)`

    ``dP`` and ``P_div_sin`` are the tables of :math:`\partial_\theta P_l^m` and :math:`P_l^m / \sin\theta`
    returned by `ALPolynomials.evaluate_ed_div_sin`.
    """
    _check_tables(L, S, Y, P, dP, P_div_sin)
    if dY.ndim < 2 or dY.shape[-1] != 3 or dY.shape[-2] < sizeY(L):
        raise ValueError(f"dY has shape {tuple(dY.shape)}, expected (..., n, 3) with n >= {sizeY(L)}")
    _cylm(Y, dY, L, S, P, dP, P_div_sin)
    return Y, dY


def _cylm(Y, dY, L, S, P, dP, Q) -> None:
    r"""single loop over m for the values and (if ``dY`` is given) the gradients

    ``ep`` is updated by one multiplication per m: :math:`e^{im\phi} / \sqrt 2`.
    """
    idx = _gather_indices(L, P.device)
    if dY is not None:
        S_ = S.unsqueeze(-1)

    ep = torch.full_like(S.cos_phi, 1 / math.sqrt(2), dtype=Y.dtype)
    p, y, _ = idx[0]
    Y[..., y] = ep.unsqueeze(-1) * P[..., p]
    if dY is not None:
        f_theta = ep.unsqueeze(-1) * dP[..., p]
        dY[..., y, :] = dspher_to_dcart(S_, torch.zeros_like(f_theta), f_theta)

    ep_fact = torch.complex(S.cos_phi, S.sin_phi)
    sig = 1
    for m in range(1, L + 1):
        sig = -sig
        ep = ep * ep_fact  # e^{i m phi} / sqrt(2)
        em = sig * ep.conj()  # (-1)^m e^{-i m phi} / sqrt(2)
        ep_, em_ = ep.unsqueeze(-1), em.unsqueeze(-1)

        p, y_pos, y_neg = idx[m]
        Pm = P[..., p]
        Y[..., y_neg] = em_ * Pm
        Y[..., y_pos] = ep_ * Pm

        if dY is not None:
            dPm = dP[..., p]
            Qm = Q[..., p]
            # d(ep)/dphi = i m ep, d(em)/dphi = -i m em
            dY[..., y_neg, :] = dspher_to_dcart(S_, (-1j * m) * em_ * Qm, em_ * dPm)
            dY[..., y_pos, :] = dspher_to_dcart(S_, (1j * m) * ep_ * Qm, ep_ * dPm)
