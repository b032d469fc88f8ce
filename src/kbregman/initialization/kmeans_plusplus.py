"""
Weighted K-means++ seeding over a small in-memory batch.

Used to reduce the K-means|| candidate pool to k centers. Candidates carry
weights (how many original points they stand for), so the first center is
drawn proportionally to weight and every later one proportionally to
weight x distance to the nearest chosen center.
"""

from typing import Optional
import math

import torch

from ..base.data_structures import BregmanPointBatch
from ..representations.center import CenterSet
from ..utils.validation import make_generator


class LocalKMeansPlusPlus:
    """Greedy weighted K-means++ under a Bregman distance.

    Algorithm:
    1. Choose the first center with probability proportional to weight
    2. For each remaining center:
       - Points with infinite distance to every chosen center are picked
         first, since no chosen center can represent them
       - Otherwise sample ``n_local_trials`` candidates proportionally to
         weight x distance and keep the one that lowers the total cost most
    3. Stop early when every point coincides with a chosen center
    """

    def __init__(self, n_local_trials: Optional[int] = None):
        """
        Args:
            n_local_trials: Number of candidates to try for each center.
                           If None, uses 2 + log(k) as in sklearn
        """
        self.n_local_trials = n_local_trials

    def select(self, points: BregmanPointBatch, n_clusters: int, distance,
               seed: int) -> CenterSet:
        """Choose at most ``n_clusters`` of ``points`` as centers.

        Args:
            points: Prepared candidate batch (weights are multiplicities)
            n_clusters: Number of centers k
            distance: Bregman distance
            seed: Random seed

        Returns:
            Chosen centers, carrying their candidates' weights
        """
        n_points = points.n_points
        if n_points == 0:
            return CenterSet.empty(points.dimension, distance, points.dtype, points.device)
        if n_points <= n_clusters:
            return CenterSet.from_batch(points, distance)

        if self.n_local_trials is None:
            n_local_trials = 2 + int(math.log(n_clusters))
        else:
            n_local_trials = self.n_local_trials

        generator = make_generator(seed)
        weights = points.weights

        first = torch.multinomial(_probabilities(weights), 1, generator=generator).item()
        chosen = [first]
        min_distances = self._distances_to(points, [first], distance).squeeze(1)

        while len(chosen) < n_clusters:
            uncovered = ~torch.isfinite(min_distances)
            if bool(uncovered.any()):
                candidates = torch.nonzero(uncovered, as_tuple=True)[0].cpu()
                pick = torch.multinomial(_probabilities(weights[candidates]), 1, generator=generator)
                best = candidates[pick].item()
            else:
                potentials = weights * min_distances
                if float(potentials.sum()) <= 0:
                    break

                candidates = torch.multinomial(_probabilities(potentials), n_local_trials,
                                               replacement=True, generator=generator)
                candidate_distances = self._distances_to(points, candidates.tolist(), distance)

                # Total cost if each candidate were added
                totals = (weights.unsqueeze(1)
                          * torch.minimum(min_distances.unsqueeze(1), candidate_distances)).sum(dim=0)
                best = candidates[int(torch.argmin(totals))].item()

            chosen.append(best)
            new_distances = self._distances_to(points, [best], distance).squeeze(1)
            min_distances = torch.minimum(min_distances, new_distances)

        return CenterSet.from_batch(points.select(torch.tensor(chosen)), distance)

    @staticmethod
    def _distances_to(points: BregmanPointBatch, indices, distance):
        centers = CenterSet.from_batch(points.select(torch.tensor(indices)), distance)
        return distance.pairwise(points, centers)


def _probabilities(weights):
    # multinomial works on CPU generators
    return (weights / weights.sum()).to(device='cpu', dtype=torch.float64)
