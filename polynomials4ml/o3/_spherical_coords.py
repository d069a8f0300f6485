from typing import NamedTuple

import torch

import polynomials4ml


class SphericalCoords(NamedTuple):
    r"""Spherical coordinates of a batch of vectors

    Each field is a tensor of shape ``(...)``. The angles are stored through their sines and cosines,
    :math:`\sin\theta \geq 0`.
    """
    r: torch.Tensor
    cos_theta: torch.Tensor
    sin_theta: torch.Tensor
    cos_phi: torch.Tensor
    sin_phi: torch.Tensor

    def unsqueeze(self, dim: int) -> "SphericalCoords":
        return SphericalCoords._make(t.unsqueeze(dim) for t in self)


def cart2spher(R: torch.Tensor) -> SphericalCoords:
    r"""convert a point :math:`\vec r = (x, y, z)` into spherical coordinates

    .. math::

        \cos\theta = z / r, \quad \sin\theta = \rho / r, \quad
        \cos\phi = x / \rho, \quad \sin\phi = y / \rho, \quad \rho = \sqrt{x^2 + y^2}

    On the :math:`z` axis (:math:`\sin\theta` below the machine epsilon) the azimuth is set to :math:`\phi = 0`.

    Parameters
    ----------
    R : `torch.Tensor`
        tensor of shape :math:`(..., 3)`

    Returns
    -------
    `SphericalCoords`
        fields of shape :math:`(...)`

    Raises
    ------
    ValueError
        if the last dimension is not 3 or if one of the vectors is zero
    """
    if R.shape[-1] != 3:
        raise ValueError(f"cart2spher expects vectors of shape (..., 3), got {tuple(R.shape)}")
    if not R.is_floating_point():
        R = R.to(torch.get_default_dtype())

    r = torch.linalg.norm(R, dim=-1)
    if polynomials4ml.get_optimization_defaults()["check_inputs"] and (r == 0).any():
        raise ValueError("cart2spher: the spherical coordinates of the zero vector are undefined")

    x, y, z = R.unbind(-1)
    # sin(theta) from the distance to the z axis, accurate next to the poles
    rho = torch.hypot(x, y)
    cos_theta = z / r
    sin_theta = rho / r

    pole = sin_theta <= torch.finfo(R.dtype).eps
    rho = torch.where(pole, torch.ones_like(rho), rho)
    cos_phi = torch.where(pole, torch.ones_like(r), x / rho)
    sin_phi = torch.where(pole, torch.zeros_like(r), y / rho)
    return SphericalCoords(r, cos_theta, sin_theta, cos_phi, sin_phi)


def spher2cart(S: SphericalCoords) -> torch.Tensor:
    r"""Inverse of :func:`cart2spher`

    Returns
    -------
    `torch.Tensor`
        tensor of shape :math:`(..., 3)`
    """
    return S.r.unsqueeze(-1) * torch.stack([
        S.sin_theta * S.cos_phi,
        S.sin_theta * S.sin_phi,
        S.cos_theta,
    ], dim=-1)


def angles_to_spher(theta: torch.Tensor, phi: torch.Tensor, r=None) -> SphericalCoords:
    r"""Spherical coordinates from the polar angle :math:`\theta \in [0, \pi]` and the azimuth :math:`\phi`"""
    theta, phi = torch.broadcast_tensors(theta, phi)
    if r is None:
        r = torch.ones_like(theta)
    return SphericalCoords(r, theta.cos(), theta.sin().abs(), phi.cos(), phi.sin())


def dspher_to_dcart(S: SphericalCoords, f_phi_div_sin: torch.Tensor, f_theta: torch.Tensor) -> torch.Tensor:
    r"""Cartesian gradient of a function :math:`F` from its spherical derivatives

    .. math::

        \nabla F = \frac{1}{r} \left( \partial_\theta F \, \hat e_\theta +
        \frac{\partial_\phi F}{\sin\theta} \, \hat e_\phi \right)

    The derivative with respect to :math:`\phi` is passed already divided by :math:`\sin\theta`, which keeps the
    formula finite on the :math:`z` axis.

    Parameters
    ----------
    S : `SphericalCoords`
        fields broadcastable against ``f_theta``

    f_phi_div_sin : `torch.Tensor`
        :math:`\partial_\phi F / \sin\theta`, real or complex

    f_theta : `torch.Tensor`
        :math:`\partial_\theta F`, real or complex

    Returns
    -------
    `torch.Tensor`
        tensor of shape ``f_theta.shape + (3,)``
    """
    cos_theta_f = S.cos_theta * f_theta
    return torch.stack([
        S.cos_phi * cos_theta_f - S.sin_phi * f_phi_div_sin,
        S.sin_phi * cos_theta_f + S.cos_phi * f_phi_div_sin,
        -S.sin_theta * f_theta,
    ], dim=-1) / S.r.unsqueeze(-1)

