import enum
from typing import Union

import torch


class FeatureLayout(enum.Enum):
    r"""Position of the feature dimension in a batch of inputs"""
    FEATURE_FIRST = "feature_first"  # (in_dim, batch)
    BATCH_FIRST = "batch_first"  # (batch, in_dim)


class LinearLayer(torch.nn.Module):
    r"""Linear map of a batch of basis values

    Returns :math:`W x` for feature first inputs of shape ``(in_dim, batch)`` and :math:`x W^T` for batch first inputs
    of shape ``(batch, in_dim)``. A single vector of shape ``(in_dim,)`` is mapped to :math:`W x` in both layouts.

    Parameters
    ----------
    in_dim : int
        feature dimension of the input

    out_dim : int
        feature dimension of the output

    layout : `FeatureLayout` or str
        ``"batch_first"`` (default) or ``"feature_first"``

    Examples
    --------

    >>> layer = LinearLayer(4, 3, layout="feature_first")
    >>> layer(torch.randn(4, 10)).shape
    torch.Size([3, 10])
    >>> LinearLayer(4, 3)(torch.randn(10, 4)).shape
    torch.Size([10, 3])
    """

    in_dim: int
    out_dim: int

    def __init__(self, in_dim: int, out_dim: int, layout: Union[FeatureLayout, str] = FeatureLayout.BATCH_FIRST):
        super().__init__()
        self.in_dim = in_dim
        self.out_dim = out_dim
        self.layout = FeatureLayout(layout)
        self.weight = torch.nn.Parameter(torch.randn(out_dim, in_dim))

        if self.layout is FeatureLayout.FEATURE_FIRST:
            self._apply_matrix = self._feature_first
        else:
            self._apply_matrix = self._batch_first

    def __repr__(self):
        return f"{self.__class__.__name__}({self.in_dim}->{self.out_dim}, layout={self.layout.value})"

    def _feature_first(self, x: torch.Tensor) -> torch.Tensor:
        return self.weight @ x

    def _batch_first(self, x: torch.Tensor) -> torch.Tensor:
        return x @ self.weight.T

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        if x.ndim == 1:
            return self.weight @ x
        return self._apply_matrix(x)
