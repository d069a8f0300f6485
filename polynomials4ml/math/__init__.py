from ._orthpoly import (
    OrthPolyBasis1D3T,
    legendre_basis,
    jacobi_basis,
    chebyshev_basis,
    orthpoly_from_weights,
)
from ._chebyshev import ChebBasis


__all__ = [
    "OrthPolyBasis1D3T",
    "legendre_basis",
    "jacobi_basis",
    "chebyshev_basis",
    "orthpoly_from_weights",
    "ChebBasis",
]
