from typing import Tuple

import torch

from polynomials4ml.util import explicit_default_types, result_dtype


class ChebBasis:
    r"""Chebyshev polynomials of the first kind :math:`T_0, \dots, T_{N-1}`

    .. math::

        T_0 = 1, \quad T_1 = x, \quad T_n = 2 x T_{n-1} - T_{n-2}

    Same polynomials as ``chebyshev_basis(N, normalize=False)``, evaluated without going through the generic
    coefficient tables.
    """

    def __init__(self, N: int, dtype=None, device=None) -> None:
        if N < 1:
            raise ValueError(f"ChebBasis needs at least one polynomial, got N = {N}")
        self.N = N
        self.dtype, self.device = explicit_default_types(dtype, device)

    def __len__(self) -> int:
        return self.N

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(N={self.N})"

    def _input(self, x) -> torch.Tensor:
        if not isinstance(x, torch.Tensor):
            return torch.as_tensor(x, dtype=self.dtype, device=self.device)
        return x.to(result_dtype(self.dtype, x))

    def evaluate(self, x) -> torch.Tensor:
        return self.evaluate_d(x)[0]

    __call__ = evaluate

    def evaluate_d(self, x) -> Tuple[torch.Tensor, torch.Tensor]:
        r"""values and derivatives, :math:`T_n' = 2 T_{n-1} + 2 x T_{n-1}' - T_{n-2}'`"""
        x = self._input(x)
        T = [torch.ones_like(x)]
        dT = [torch.zeros_like(x)]
        if self.N > 1:
            T.append(x)
            dT.append(torch.ones_like(x))
        for _ in range(2, self.N):
            dT.append(2 * T[-1] + 2 * x * dT[-1] - dT[-2])
            T.append(2 * x * T[-1] - T[-2])
        return torch.stack(T, dim=-1), torch.stack(dT, dim=-1)
