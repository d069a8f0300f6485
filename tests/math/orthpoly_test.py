import math

import pytest
import torch
from scipy.special import roots_jacobi, eval_legendre

from polynomials4ml.math import (
    OrthPolyBasis1D3T,
    legendre_basis,
    jacobi_basis,
    chebyshev_basis,
    orthpoly_from_weights,
    ChebBasis,
)
from polynomials4ml.util.test import assert_derivatives, assert_pullback


def _random_basis(N):
    A = 1 + torch.rand(N, dtype=torch.float64)
    B = torch.rand(N, dtype=torch.float64) - 0.5
    C = -torch.rand(N, dtype=torch.float64)
    return OrthPolyBasis1D3T(A, B, C, dtype=torch.float64)


def _gram(basis, alpha, beta, n):
    x, w = roots_jacobi(n, alpha, beta)
    x = torch.from_numpy(x)
    w = torch.from_numpy(w)
    P = basis.evaluate(x)
    return torch.einsum("z,zi,zj->ij", w, P, P)


def _uniform(n, dtype=torch.float64):
    return 2 * torch.rand(n, dtype=dtype) - 1


def test_shapes() -> None:
    basis = legendre_basis(6)
    assert len(basis) == 6
    assert basis.evaluate(torch.rand(3, 4)).shape == (3, 4, 6)
    assert basis.evaluate(0.5).shape == (6,)
    P, dP, ddP = basis.evaluate_dd(torch.rand(7))
    assert P.shape == dP.shape == ddP.shape == (7, 6)


@pytest.mark.parametrize("N", [1, 2, 3, 10])
def test_random_derivatives(N) -> None:
    assert_derivatives(_random_basis(N), _uniform(20))


def test_legendre_values() -> None:
    x = _uniform(30)
    P = legendre_basis(12, dtype=torch.float64).evaluate(x)
    for n in range(12):
        assert (P[:, n] - torch.from_numpy(eval_legendre(n, x.numpy()))).abs().max() < 1e-13


def test_chebyshev_values(float_tolerance) -> None:
    t = torch.rand(30) * math.pi
    T = chebyshev_basis(10).evaluate(t.cos())
    n = torch.arange(10)
    assert (T - (t[:, None] * n).cos()).abs().max() < float_tolerance


@pytest.mark.parametrize("N", [1, 2, 5, 15])
def test_legendre_orthonormal(N) -> None:
    G = _gram(legendre_basis(N, normalize=True, dtype=torch.float64), 0.0, 0.0, N + 1)
    assert (G - torch.eye(N, dtype=G.dtype)).abs().max() < 1e-10


@pytest.mark.parametrize("N", [1, 2, 5, 15])
def test_chebyshev_orthonormal(N) -> None:
    G = _gram(chebyshev_basis(N, normalize=True, dtype=torch.float64), -0.5, -0.5, N + 1)
    assert (G - torch.eye(N, dtype=G.dtype)).abs().max() < 1e-10


def test_jacobi_orthonormal() -> None:
    N = 12
    for _ in range(5):
        alpha, beta = (1 + torch.rand(2, dtype=torch.float64)).tolist()
        basis = jacobi_basis(N, alpha, beta, normalize=True, dtype=torch.float64)
        G = _gram(basis, alpha, beta, N + 1)
        assert (G - torch.eye(N, dtype=G.dtype)).abs().max() < 1e-10


def test_jacobi_legendre(float_tolerance) -> None:
    x = _uniform(20, dtype=None)
    P1 = jacobi_basis(8, 0.0, 0.0).evaluate(x)
    P2 = legendre_basis(8).evaluate(x)
    assert (P1 - P2).abs().max() < float_tolerance


def test_chebyshev_coefficients() -> None:
    N = 6
    cheb = chebyshev_basis(N, dtype=torch.float64)
    assert cheb.A.tolist() == [1.0, 1.0] + [2.0] * (N - 2)
    assert (cheb.B == 0).all()
    assert cheb.C[2:].tolist() == [-1.0] * (N - 2)

    cheb = chebyshev_basis(N, normalize=True, dtype=torch.float64)
    assert abs(cheb.A[0] - math.sqrt(1 / math.pi)) < 1e-14
    assert abs(cheb.A[1] - math.sqrt(2 / math.pi)) < 1e-14
    assert abs(cheb.C[2] + math.sqrt(2)) < 1e-14
    assert (cheb.A[2:] - 2).abs().max() < 1e-14
    assert (cheb.C[3:] + 1).abs().max() < 1e-14
    assert (cheb.B == 0).all()


def test_chebbasis(float_tolerance) -> None:
    x = _uniform(25, dtype=None)
    T, dT = ChebBasis(9).evaluate_d(x)
    T2, dT2 = chebyshev_basis(9).evaluate_d(x)
    assert (T - T2).abs().max() < float_tolerance
    assert (dT - dT2).abs().max() < float_tolerance * dT2.abs().max()
    assert torch.equal(ChebBasis(9)(x), T)
    assert len(ChebBasis(9)) == 9
    with pytest.raises(ValueError):
        ChebBasis(0)


def test_pullback() -> None:
    basis = jacobi_basis(10, 0.5, 1.5, normalize=True, dtype=torch.float64)
    assert_pullback(basis.evaluate, basis.pullback, _uniform(15), ntrials=30)


def test_autograd() -> None:
    basis = legendre_basis(8, normalize=True, dtype=torch.float64)
    x = _uniform(11).requires_grad_()
    u = torch.randn(11, 8, dtype=torch.float64)
    (u * basis(x)).sum().backward()
    assert torch.allclose(x.grad, basis.pullback(x.detach(), u))


def test_out() -> None:
    basis = legendre_basis(4)
    x = _uniform(3, dtype=None)
    out = torch.full((3, 6), 9.0)
    basis.evaluate(x, out=out)
    assert torch.equal(out[:, :4], basis.evaluate(x))
    assert (out[:, 4:] == 9.0).all()

    out = torch.full((3, 3), 9.0)
    with pytest.raises(ValueError):
        basis.evaluate(x, out=out)
    assert (out == 9.0).all()


def test_from_weights() -> None:
    x = _uniform(40)
    w = torch.rand(40, dtype=torch.float64)
    basis = orthpoly_from_weights(10, x, w)
    P = basis.evaluate(x)
    G = torch.einsum("z,zi,zj->ij", w, P, P)
    assert (G - torch.eye(10, dtype=G.dtype)).abs().max() < 1e-10


def test_from_weights_gauss() -> None:
    N = 8
    x, w = roots_jacobi(N + 2, 0.0, 0.0)
    basis = orthpoly_from_weights(N, torch.from_numpy(x), torch.from_numpy(w))
    y = _uniform(20)
    P1 = basis.evaluate(y)
    P2 = legendre_basis(N, normalize=True, dtype=torch.float64).evaluate(y)
    assert (P1 - P2).abs().max() < 1e-10


def test_from_weights_float32() -> None:
    x = torch.linspace(-1, 1, 20, dtype=torch.float32)
    with pytest.warns(UserWarning):
        orthpoly_from_weights(3, x, torch.ones(20))


def test_from_weights_errors() -> None:
    x = _uniform(5)
    with pytest.raises(ValueError):
        orthpoly_from_weights(3, x, -torch.ones(5, dtype=torch.float64))
    with pytest.raises(ValueError):
        orthpoly_from_weights(3, x, torch.tensor([1.0, 1.0, 0.0, 0.0, 0.0], dtype=torch.float64))
    with pytest.raises(ValueError):
        orthpoly_from_weights(3, x, torch.ones(4, dtype=torch.float64))


def test_errors() -> None:
    with pytest.raises(ValueError):
        OrthPolyBasis1D3T([1.0, 1.0], [0.0], [0.0, 0.0])
    with pytest.raises(ValueError):
        OrthPolyBasis1D3T([], [], [])
    with pytest.raises(ValueError):
        legendre_basis(0)
    with pytest.raises(ValueError):
        jacobi_basis(4, -1.0, 0.5)


def test_queries() -> None:
    basis = legendre_basis(5)
    assert repr(basis) == "OrthPolyBasis1D3T(N=5, family=legendre)"
    assert repr(OrthPolyBasis1D3T([1.0], [0.0], [0.0])) == "OrthPolyBasis1D3T(N=1)"
    assert basis == legendre_basis(5)
    assert basis != legendre_basis(5, normalize=True)
    assert basis != chebyshev_basis(5)
    assert basis.meta["family"] == "legendre"


def test_deterministic() -> None:
    basis = jacobi_basis(20, 1.3, 1.7, normalize=True)
    x = _uniform(100, dtype=None)
    assert torch.equal(basis.evaluate(x), basis.evaluate(x))
