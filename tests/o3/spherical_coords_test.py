import math

import pytest
import torch

import polynomials4ml
from polynomials4ml.o3 import cart2spher, spher2cart, angles_to_spher, dspher_to_dcart


def test_roundtrip(float_tolerance) -> None:
    R = torch.randn(100, 3)
    S = cart2spher(R)
    assert (S.cos_theta**2 + S.sin_theta**2 - 1).abs().max() < float_tolerance
    assert (S.cos_phi**2 + S.sin_phi**2 - 1).abs().max() < float_tolerance
    assert (S.sin_theta >= 0).all()
    assert (spher2cart(S) - R).abs().max() < 10 * float_tolerance * R.abs().max()


def test_batch_shapes() -> None:
    S = cart2spher(torch.randn(2, 5, 3))
    assert all(t.shape == (2, 5) for t in S)
    S = cart2spher(torch.randn(3))
    assert all(t.shape == () for t in S)


def test_pole_convention() -> None:
    R = torch.tensor([[0.0, 0.0, 2.0], [0.0, 0.0, -0.5]])
    S = cart2spher(R)
    assert S.r.tolist() == [2.0, 0.5]
    assert S.cos_theta.tolist() == [1.0, -1.0]
    assert S.sin_theta.tolist() == [0.0, 0.0]
    assert S.cos_phi.tolist() == [1.0, 1.0]
    assert S.sin_phi.tolist() == [0.0, 0.0]


def test_angles() -> None:
    theta = torch.tensor([0.3, 1.2, 2.9], dtype=torch.float64)
    phi = torch.tensor([-2.0, 0.1, 3.0], dtype=torch.float64)
    S = angles_to_spher(theta, phi)
    S2 = cart2spher(spher2cart(S))
    for a, b in zip(S, S2):
        assert torch.allclose(a, b)


def test_zero_vector() -> None:
    with pytest.raises(ValueError):
        cart2spher(torch.tensor([[1.0, 0.0, 0.0], [0.0, 0.0, 0.0]]))


def test_zero_vector_unchecked() -> None:
    polynomials4ml.set_optimization_defaults(check_inputs=False)
    S = cart2spher(torch.zeros(3))
    assert torch.isnan(S.cos_theta)


def test_wrong_dimension() -> None:
    with pytest.raises(ValueError):
        cart2spher(torch.randn(4, 2))


def test_dspher_to_dcart() -> None:
    # F = z x / r^2 = cos(theta) sin(theta) cos(phi)
    def F(R):
        return R[..., 0] * R[..., 2] / (R**2).sum(-1)

    R = torch.randn(20, 3, dtype=torch.float64)
    S = cart2spher(R)
    f_theta = (S.cos_theta**2 - S.sin_theta**2) * S.cos_phi
    f_phi_div_sin = -S.cos_theta * S.sin_phi
    grad = dspher_to_dcart(S, f_phi_div_sin, f_theta)
    assert grad.shape == (20, 3)

    h = 1e-6
    for k in range(3):
        e = torch.zeros(3, dtype=torch.float64)
        e[k] = h
        fd = (F(R + e) - F(R - e)) / (2 * h)
        assert (grad[:, k] - fd).abs().max() < 1e-7


def test_dspher_to_dcart_complex() -> None:
    S = cart2spher(torch.randn(4, 3, dtype=torch.float64))
    f = torch.randn(4, dtype=torch.complex128)
    g = dspher_to_dcart(S, f, f)
    assert g.dtype == torch.complex128
    assert torch.allclose(g.real, dspher_to_dcart(S, f.real, f.real))
    assert torch.allclose(g.imag, dspher_to_dcart(S, f.imag, f.imag))


def test_dspher_to_dcart_scaling() -> None:
    S = angles_to_spher(torch.tensor(math.pi / 2), torch.tensor(0.0), r=torch.tensor(2.0))
    # at (2, 0, 0) the theta direction is -z
    g = dspher_to_dcart(S, torch.tensor(0.0), torch.tensor(1.0))
    assert torch.allclose(g, torch.tensor([0.0, 0.0, -0.5]), atol=1e-7)


def test_near_pole() -> None:
    R = torch.tensor([[1e-7, 2e-7, 1.0], [3e-8, -2e-8, -1.0], [1e-7, 0.0, 1.0]], dtype=torch.float64)
    S = cart2spher(R)
    assert (S.cos_phi**2 + S.sin_phi**2 - 1).abs().max() < 1e-14
    rho = R[:, :2].norm(dim=-1)
    assert ((S.sin_theta - rho / S.r) / (rho / S.r)).abs().max() < 1e-14
    assert (S.cos_phi[2] - 1).abs() < 1e-14


def test_near_pole_default_dtype(float_tolerance) -> None:
    S = cart2spher(torch.tensor([1e-3, 0.0, 1.0]))
    assert (S.cos_phi**2 + S.sin_phi**2 - 1).abs() < float_tolerance
    assert (S.cos_phi - 1).abs() < float_tolerance
    assert (S.sin_theta - 1e-3 / math.sqrt(1 + 1e-6)).abs() < float_tolerance * 1e-3
