"""
Bregman distance between points and centers.

    D(x, c) = F(x) - F(c) - <x - c, gradF(c)>
            = F(x) - (F(c) - <c, gradF(c)>) - <x, gradF(c)>

F(x) is cached once per point when a batch is prepared, and ``gradF(c)`` (the
dual) together with the offset ``F(c) - <c, gradF(c)>`` is cached once per
center in its ``CenterSet``. Distances from n points to k centers then reduce
to a single (n, d) @ (d, k) product, which keeps sparse points sparse.
"""

import math
from typing import Optional, Tuple

import torch
from torch import Tensor

from ..base.interfaces import DistanceMetric
from ..base.data_structures import PointBatch, BregmanPointBatch
from ..divergences.base import BregmanDivergence


class BregmanDistance(DistanceMetric):
    """Point-to-center distance induced by a Bregman divergence.

    Parameters
    ----------
    divergence : BregmanDivergence
        Generator of the distance.
    sparse : bool, default=False
        Keep sparse points sparse when the divergence allows it. Otherwise
        points are densified when prepared.
    smoothing : float, default=0.0
        Evaluate center duals at ``c + smoothing`` so that zero center
        components keep a finite dual. Center coordinates are not changed.
    name : str, optional
        Configuration name this distance was created from.
    """

    def __init__(self, divergence: BregmanDivergence, sparse: bool = False,
                 smoothing: float = 0.0, name: Optional[str] = None):
        if smoothing < 0:
            raise ValueError(f"smoothing must be non-negative, got {smoothing}")
        self.divergence = divergence
        self.sparse = sparse
        self.smoothing = smoothing
        self.name = name or divergence.name

    def prepare(self, batch: PointBatch) -> BregmanPointBatch:
        """Choose the storage for this divergence and cache F per point."""
        if batch.is_sparse and not (self.sparse and self.divergence.supports_sparse):
            batch = batch.densified()
        f_values = self.divergence.F_homogeneous(batch.values, batch.weights)
        return BregmanPointBatch(batch.values, batch.weights, f_values)

    def center_duals(self, vectors: Tensor, weights: Tensor) -> Tuple[Tensor, Tensor]:
        """Dual and offset of centers given in homogeneous coordinates.

        Args:
            vectors: (k, d) dense homogeneous center coordinates
            weights: (k,) center weights

        Returns:
            dual: (k, d) gradF at each center
            offset: (k,) F(c) - <c, gradF(c)>
        """
        if self.smoothing > 0:
            vectors = vectors + self.smoothing * weights.unsqueeze(1)
        dual = self.divergence.grad_F_homogeneous(vectors, weights)
        f_values = self.divergence.F_homogeneous(vectors, weights)
        # Infinite dual components only occur where the center component is 0
        finite_dual = torch.where(torch.isfinite(dual), dual, torch.zeros_like(dual))
        offset = f_values - (vectors * finite_dual).sum(dim=1) / weights
        return dual, offset

    def pairwise(self, points: BregmanPointBatch, centers) -> Tensor:
        """(n, k) distances from prepared points to every center.

        Values below zero from floating-point cancellation are clamped to 0.
        Non-finite values (including points with mass where a center's dual
        is infinite) are returned as ``inf``.
        """
        n = points.n_points
        if centers.n_centers == 0:
            return torch.empty(n, 0, dtype=points.dtype, device=points.device)

        dual = centers.dual
        finite = torch.isfinite(dual)
        all_finite = bool(finite.all())
        if all_finite:
            inner = points.matmul(dual.t())
        else:
            inner = points.matmul(torch.where(finite, dual, torch.zeros_like(dual)).t())
            blocked = points.support_matmul((~finite).to(dual.dtype).t()) > 0

        distances = (points.f_values.unsqueeze(1)
                     - centers.offset.unsqueeze(0)
                     - inner / points.weights.unsqueeze(1))
        if not all_finite:
            distances = distances.masked_fill(blocked, math.inf)
        return torch.where(torch.isfinite(distances), distances.clamp_min(0.0),
                           torch.full_like(distances, math.inf))

    def distance(self, point: Tensor, center: Tensor,
                 point_weight: float = 1.0, center_weight: float = 1.0) -> float:
        """Distance between a single point and a single center (homogeneous inputs)."""
        from ..representations.center import CenterSet

        batch = PointBatch(point.unsqueeze(0),
                           torch.tensor([point_weight], dtype=point.dtype, device=point.device))
        center = center.to_dense() if center.is_sparse else center
        centers = CenterSet(center.unsqueeze(0),
                            torch.tensor([center_weight], dtype=center.dtype, device=center.device),
                            self)
        return float(self.pairwise(self.prepare(batch), centers)[0, 0])

    def __repr__(self) -> str:
        return (f"BregmanDistance(name={self.name!r}, divergence={self.divergence!r}, "
                f"sparse={self.sparse}, smoothing={self.smoothing})")
