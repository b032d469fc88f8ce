"""
Mean update strategy for Bregman clustering.

For every Bregman divergence the point minimizing the total weighted
divergence from the members of a cluster is their weighted arithmetic mean.
In homogeneous coordinates that mean is just the sum of the members'
coordinates, so partition statistics are plain sums and merge by addition.
"""

from dataclasses import dataclass
from typing import Optional

import torch
from torch import Tensor

from ..base.interfaces import ParameterUpdater
from ..representations.center import CenterSet


@dataclass
class ClusterStatistics:
    """Per-cluster sums of one or more partitions.

    Attributes:
        sums: (k, d) summed homogeneous coordinates
        weights: (k,) summed weights
        cost: sum of weight x distance over assigned points
        n_skipped: number of points that could not be assigned
    """
    sums: Tensor
    weights: Tensor
    cost: float = 0.0
    n_skipped: int = 0

    def merge(self, other: 'ClusterStatistics') -> 'ClusterStatistics':
        return ClusterStatistics(
            sums=self.sums + other.sums,
            weights=self.weights + other.weights,
            cost=self.cost + other.cost,
            n_skipped=self.n_skipped + other.n_skipped
        )

    @property
    def non_empty(self) -> Tensor:
        return self.weights > 0


class MeanUpdater(ParameterUpdater):
    """Updates each center to the weighted mean of its assigned points."""

    def accumulate(self, points, labels: Tensor, n_clusters: int,
                   min_distances: Optional[Tensor] = None) -> ClusterStatistics:
        """Sums of one partition given its assignments.

        Args:
            points: Batch of n points
            labels: (n,) center indices, -1 for skipped points
            n_clusters: Number of centers k
            min_distances: Optional (n,) distances to the assigned center, used
                for the partition's share of the cost

        Returns:
            Partition statistics
        """
        sums, weights = points.scatter_sum(labels, n_clusters)
        assigned = labels >= 0
        cost = 0.0
        if min_distances is not None and bool(assigned.any()):
            cost = float((points.weights[assigned] * min_distances[assigned]).sum())
        return ClusterStatistics(
            sums=sums,
            weights=weights,
            cost=cost,
            n_skipped=int((~assigned).sum())
        )

    def update(self, statistics: ClusterStatistics, distance) -> CenterSet:
        """New centers from merged statistics. Empty clusters are dropped."""
        keep = statistics.non_empty
        return CenterSet(statistics.sums[keep], statistics.weights[keep], distance)
