"""
Hard assignment strategy for Bregman clustering.

Assigns each point to its nearest center under the Bregman distance.
"""

from typing import Tuple
import math

import torch
from torch import Tensor

from ..base.interfaces import AssignmentStrategy, DistanceMetric


class HardAssignment(AssignmentStrategy):
    """Hard (discrete) assignment to nearest center.

    Each point is assigned to exactly one center based on minimum distance.
    Ties go to the lowest center index. A point whose distance to every
    center is non-finite cannot be assigned and gets label -1.
    """

    @property
    def is_soft(self) -> bool:
        """Hard assignments are not soft."""
        return False

    def compute_assignments(self, points, centers, distance: DistanceMetric,
                            **kwargs) -> Tuple[Tensor, Tensor]:
        """Assign each point to nearest center.

        Args:
            points: Prepared batch of n points
            centers: CenterSet of k centers
            distance: Distance metric to minimize

        Returns:
            labels: (n,) tensor of center indices, -1 for unassignable points
            min_distances: (n,) distance to the assigned center (inf if unassigned)
        """
        n_points = points.n_points
        if centers.n_centers == 0:
            return (torch.full((n_points,), -1, dtype=torch.long, device=points.device),
                    torch.full((n_points,), math.inf, dtype=points.dtype, device=points.device))

        distances = distance.pairwise(points, centers)

        # argmin returns the first minimal index
        min_distances, labels = torch.min(distances, dim=1)
        assignable = torch.isfinite(min_distances)
        labels = torch.where(assignable, labels, torch.full_like(labels, -1))

        return labels, min_distances
