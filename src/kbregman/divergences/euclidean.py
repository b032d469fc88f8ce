"""
Squared Euclidean divergence.

F(v) = <v, v> generates D(x, y) = ||x - y||^2, the distance of classic K-means.

http://en.wikipedia.org/wiki/Euclidean_distance
"""

import torch
from torch import Tensor

from .base import BregmanDivergence
from ..base.data_structures import row_sum


class SquaredEuclideanDivergence(BregmanDivergence):
    """Squared L2 norm, defined on all of R^n."""

    name = 'squared_euclidean'
    supports_sparse = True

    def _F(self, v: Tensor) -> Tensor:
        return row_sum(v, torch.square)

    def _F_homogeneous(self, v: Tensor, w: Tensor) -> Tensor:
        return row_sum(v, torch.square) / (w * w)

    def _grad_F(self, v: Tensor) -> Tensor:
        return 2.0 * v

    def _grad_F_homogeneous(self, v: Tensor, w: Tensor) -> Tensor:
        return v * (2.0 / w).unsqueeze(1)
