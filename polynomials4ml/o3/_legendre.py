r"""Associated Legendre polynomials evaluated by a stable upward recurrence
"""
import math
from typing import Optional, Tuple, Union

import torch

import polynomials4ml
from polynomials4ml.util import explicit_default_types, result_dtype, check_capacity

from ._indexing import sizeP, index_p
from ._spherical_coords import SphericalCoords, cart2spher


class ALPolynomials:
    r"""Associated Legendre polynomials :math:`P_l^m(\cos\theta)` for :math:`0 \leq m \leq l \leq L`

    The polynomials are normalized such that

    .. math::

        P_l^m(\cos\theta) = \sqrt{\frac{2l+1}{2\pi} \frac{(l-m)!}{(l+m)!}} \; (-1)^m (1-\cos^2\theta)^{m/2}
        \frac{d^m}{d\cos\theta^m} P_l(\cos\theta)

    that is :math:`P_l^m(\cos\theta) e^{im\phi} / \sqrt 2` are the orthonormal complex spherical harmonics.
    This normalization keeps the values bounded for large :math:`L`.

    The values are stored in the triangular layout of :func:`~polynomials4ml.o3.index_p`.

    Parameters
    ----------
    maxL : int
        maximum degree :math:`L`

    dtype : `torch.dtype`, optional
        dtype of the recurrence coefficients

    device : `torch.device`, optional
    """

    def __init__(self, maxL: int, dtype=None, device=None) -> None:
        if maxL < 0:
            raise ValueError(f"ALPolynomials: maxL must be non negative, got {maxL}")
        self._maxL = int(maxL)
        self.dtype, self.device = explicit_default_types(dtype, device)

        A = torch.zeros(sizeP(maxL), dtype=torch.float64)
        B = torch.zeros(sizeP(maxL), dtype=torch.float64)
        for l in range(2, maxL + 1):
            ls = l * l
            lm1s = (l - 1) * (l - 1)
            for m in range(0, l - 1):
                ms = m * m
                A[index_p(l, m)] = math.sqrt((4 * ls - 1.0) / (ls - ms))
                B[index_p(l, m)] = -math.sqrt((lm1s - ms) / (4 * lm1s - 1.0))
        self.A = A.to(dtype=self.dtype, device=self.device)
        self.B = B.to(dtype=self.dtype, device=self.device)

    @property
    def maxL(self) -> int:
        return self._maxL

    def __len__(self) -> int:
        return sizeP(self._maxL)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(L={self._maxL})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, ALPolynomials):
            return NotImplemented
        return self._maxL == other._maxL and self.dtype == other.dtype

    def __hash__(self) -> int:
        return hash((ALPolynomials, self._maxL, self.dtype))

    def index(self, l: int, m: int) -> int:
        r"""Position of :math:`P_l^m` in the output of :meth:`evaluate`"""
        if l > self._maxL:
            raise ValueError(f"l = {l} exceeds the maximum degree {self._maxL} of {self}")
        return index_p(l, abs(m))

    def _prepare(self, S: Union[SphericalCoords, torch.Tensor]) -> SphericalCoords:
        if isinstance(S, torch.Tensor):
            S = cart2spher(S)
        dtype = result_dtype(self.dtype, S.cos_theta)
        S = SphericalCoords._make(t.to(dtype) for t in S)
        if polynomials4ml.get_optimization_defaults()["check_inputs"]:
            assert (S.cos_theta.abs() <= 1).all(), "ALPolynomials: |cos(theta)| > 1"
        return S

    def _output(self, S: SphericalCoords, out: Optional[torch.Tensor], name: str = "out") -> torch.Tensor:
        shape = S.cos_theta.shape
        if out is None:
            return S.cos_theta.new_empty(shape + (len(self),))
        return check_capacity(out, shape, len(self), S.cos_theta.dtype, name)

    def evaluate(self, S: Union[SphericalCoords, torch.Tensor], out: Optional[torch.Tensor] = None) -> torch.Tensor:
        r"""Evaluate :math:`P_l^m(\cos\theta)`

        Parameters
        ----------
        S : `SphericalCoords` or `torch.Tensor`
            spherical coordinates of shape :math:`(...)`, or cartesian vectors of shape :math:`(..., 3)`

        out : `torch.Tensor`, optional
            buffer of shape :math:`(..., n)` with :math:`n \geq` ``len(self)``, filled in place

        Returns
        -------
        `torch.Tensor`
            tensor of shape :math:`(..., (L+1)(L+2)/2)`
        """
        S = self._prepare(S)
        P = self._output(S, out)
        _alp_recurrence(self.A, self.B, self._maxL, S, P)
        return P

    __call__ = evaluate

    def evaluate_ed(self, S: Union[SphericalCoords, torch.Tensor]) -> Tuple[torch.Tensor, torch.Tensor]:
        r"""Evaluate :math:`P_l^m(\cos\theta)` and :math:`\partial_\theta P_l^m(\cos\theta)`"""
        P, dP, _ = self.evaluate_ed_div_sin(S)
        return P, dP

    def evaluate_ed_div_sin(
        self,
        S: Union[SphericalCoords, torch.Tensor],
        out: Optional[Tuple[torch.Tensor, torch.Tensor, torch.Tensor]] = None,
    ) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
        r"""Evaluate :math:`P_l^m`, :math:`\partial_\theta P_l^m` and :math:`P_l^m / \sin\theta`

        The last table is only meaningful for :math:`m \geq 1` (it is zero for :math:`m = 0`). It is computed by
        its own recurrence and stays finite on the :math:`z` axis.
        """
        S = self._prepare(S)
        if out is None:
            out = (None, None, None)
        P, dP, Q = (self._output(S, o, name) for o, name in zip(out, ("P", "dP", "P_div_sin")))
        _alp_recurrence(self.A, self.B, self._maxL, S, P, dP, Q)
        return P, dP, Q


def _alp_recurrence(
    A: torch.Tensor,
    B: torch.Tensor,
    L: int,
    S: SphericalCoords,
    P: torch.Tensor,
    dP: Optional[torch.Tensor] = None,
    Q: Optional[torch.Tensor] = None,
) -> None:
    r"""Fill ``P`` (and ``dP``, ``Q`` if given) in place

    The derivative tables are carried by the same stepping loop as the values.
    """
    deriv = dP is not None
    x, s = S.cos_theta, S.sin_theta
    x_ = x.unsqueeze(-1)
    s_ = s.unsqueeze(-1)

    p00 = math.sqrt(0.5 / math.pi)
    P[..., 0] = p00
    if deriv:
        dP[..., 0] = 0
        Q[..., 0] = 0
    if L == 0:
        return

    # temp = P(l-1, l-1), dtemp = its derivative, qtemp = temp / sin(theta)
    temp = -math.sqrt(1.5) * p00 * s
    P[..., 1] = math.sqrt(3) * p00 * x
    P[..., 2] = temp
    if deriv:
        dtemp = -math.sqrt(1.5) * p00 * x
        qtemp = torch.full_like(x, -math.sqrt(1.5) * p00)
        dP[..., 1] = -math.sqrt(3) * p00 * s
        dP[..., 2] = dtemp
        Q[..., 1] = 0
        Q[..., 2] = qtemp

    for l in range(2, L + 1):
        i0 = index_p(l, 0)
        i1 = index_p(l - 1, 0)
        i2 = index_p(l - 2, 0)
        n = l - 1  # m = 0, ..., l-2

        a = A[i0:i0 + n]
        b = B[i0:i0 + n]
        p1 = P[..., i1:i1 + n]
        p2 = P[..., i2:i2 + n]
        if deriv:
            dP[..., i0:i0 + n] = a * (x_ * dP[..., i1:i1 + n] - s_ * p1 + b * dP[..., i2:i2 + n])
            Q[..., i0:i0 + n] = a * (x_ * Q[..., i1:i1 + n] + b * Q[..., i2:i2 + n])
        P[..., i0:i0 + n] = a * (x_ * p1 + b * p2)

        # m = l - 1
        c = math.sqrt(2 * l + 1)
        P[..., i0 + l - 1] = c * x * temp
        if deriv:
            dP[..., i0 + l - 1] = c * (x * dtemp - s * temp)
            Q[..., i0 + l - 1] = c * x * qtemp

        # m = l
        d = -math.sqrt(1.0 + 0.5 / l)
        if deriv:
            qtemp = d * temp
            dtemp = d * (x * temp + s * dtemp)
            dP[..., i0 + l] = dtemp
            Q[..., i0 + l] = qtemp
        temp = d * s * temp
        P[..., i0 + l] = temp
