"""
Cluster centers for Bregman clustering.

A center is the weighted mean of its cluster, held in homogeneous coordinates
``(v, w)`` like the points. Evaluating distances needs ``gradF(c)`` and
``F(c) - <c, gradF(c)>`` for every center; both are derived once here, when
the snapshot is built, and never updated in place.
"""

from typing import Optional

import torch
from torch import Tensor

from ..base.data_structures import PointBatch


class CenterSet:
    """Immutable snapshot of k centers with their cached dual fields.

    Attributes:
        vectors: (k, d) dense homogeneous coordinates
        weights: (k,) homogeneous weights (total weight of each cluster)
        dual: (k, d) gradF at each center
        offset: (k,) F(c) - <c, gradF(c)>
    """

    def __init__(self, vectors: Tensor, weights: Tensor, distance):
        if vectors.dim() != 2:
            raise ValueError(f"Expected 2D center tensor, got {vectors.dim()}D")
        if vectors.is_sparse:
            vectors = vectors.to_dense()
        weights = weights.to(dtype=vectors.dtype, device=vectors.device)
        if weights.shape != (vectors.shape[0],):
            raise ValueError(f"Expected {vectors.shape[0]} center weights, "
                             f"got shape {tuple(weights.shape)}")

        self.vectors = vectors
        self.weights = weights
        self.distance = distance
        self.dual, self.offset = distance.center_duals(vectors, weights)

    @classmethod
    def from_batch(cls, batch: PointBatch, distance) -> 'CenterSet':
        """Centers located at the points of ``batch`` (weights carried over)."""
        return cls(batch.to_dense(), batch.weights, distance)

    @classmethod
    def empty(cls, dimension: int, distance, dtype: torch.dtype = torch.float64,
              device: Optional[torch.device] = None) -> 'CenterSet':
        return cls(torch.zeros(0, dimension, dtype=dtype, device=device),
                   torch.zeros(0, dtype=dtype, device=device), distance)

    @property
    def n_centers(self) -> int:
        return self.vectors.shape[0]

    def __len__(self) -> int:
        return self.n_centers

    @property
    def dimension(self) -> int:
        return self.vectors.shape[1]

    @property
    def points(self) -> Tensor:
        """(k, d) center locations in inhomogeneous coordinates."""
        return self.vectors / self.weights.unsqueeze(1)

    def __repr__(self) -> str:
        return f"CenterSet(n_centers={self.n_centers}, dimension={self.dimension})"
