"""
Logistic loss divergence.

Defined on the first coordinate x in (0, 1) only. It is the KL divergence
under the embedding x -> (x, 1 - x):

    F(x) = x log x + (1 - x) log(1 - x)
"""

import torch
from torch import Tensor

from .base import BregmanDivergence


def _first_column(v: Tensor) -> Tensor:
    if v.is_sparse:
        column = torch.zeros(1, dtype=torch.long, device=v.device)
        return v.index_select(1, column).to_dense()[:, 0]
    return v[:, 0]


class LogisticLossDivergence(BregmanDivergence):
    """Binary entropy on the first coordinate; other coordinates are ignored.

    The gradient is one dimensional; it is returned in the first column of a
    dense (n, d) tensor whose other columns are zero, so inner products with
    full points only involve the first coordinate.
    """

    name = 'logistic_loss'
    requires_unit_interval = True
    supports_sparse = True

    @staticmethod
    def _entropy(x: Tensor) -> Tensor:
        return torch.xlogy(x, x) + torch.xlogy(1.0 - x, 1.0 - x)

    @staticmethod
    def _embed(v: Tensor, g: Tensor) -> Tensor:
        out = torch.zeros(v.shape, dtype=g.dtype, device=g.device)
        out[:, 0] = g
        return out

    def _F(self, v: Tensor) -> Tensor:
        return self._entropy(_first_column(v))

    def _F_homogeneous(self, v: Tensor, w: Tensor) -> Tensor:
        return self._entropy(_first_column(v) / w)

    def _grad_F(self, v: Tensor) -> Tensor:
        x = v[:, 0]
        return self._embed(v, torch.log(x) - torch.log(1.0 - x))

    def _grad_F_homogeneous(self, v: Tensor, w: Tensor) -> Tensor:
        x = v[:, 0] / w
        return self._embed(v, torch.log(x) - torch.log(1.0 - x))
