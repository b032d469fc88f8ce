"""
Random initialization strategy.

Selects random points from the collection as initial cluster centers.
"""

from typing import List, Optional
import warnings

import torch

from ..base.interfaces import InitializationStrategy, PointCollection
from ..exceptions import InsufficientDataError, InsufficientDataWarning
from ..representations.center import CenterSet
from ..utils.validation import check_random_state, derive_seed, make_generator


class RandomInit(InitializationStrategy):
    """Random initialization by selecting distinct points from the collection.

    Each run draws points uniformly without replacement, doubling the draw
    until it holds ``n_clusters`` distinct points or covers the whole
    collection, then keeps ``n_clusters`` of the distinct ones at random.
    Only a collection with fewer distinct points than clusters starts a run
    with fewer centers.
    """

    def initialize(self, points: PointCollection, n_clusters: int, distance,
                   n_runs: int = 1, seed: Optional[int] = None,
                   **kwargs) -> List[CenterSet]:
        seed = check_random_state(seed)
        total = points.count()
        if total == 0:
            raise InsufficientDataError("Cannot choose centers from an empty collection")

        center_sets = []
        for run in range(n_runs):
            run_seed = derive_seed(seed, run)
            size = n_clusters
            while True:
                sample = points.take_sample(size, run_seed)
                distinct = sample.select(sample.distinct())
                if distinct.n_points >= n_clusters or size >= total:
                    break
                size *= 2

            if distinct.n_points > n_clusters:
                generator = make_generator(derive_seed(run_seed, 1))
                keep = torch.randperm(distinct.n_points, generator=generator)
                distinct = distinct.select(torch.sort(keep[:n_clusters]).values)
            elif distinct.n_points < n_clusters:
                warnings.warn(
                    f"Run {run}: found {distinct.n_points} distinct points, "
                    f"fewer than n_clusters={n_clusters}",
                    InsufficientDataWarning
                )
            center_sets.append(CenterSet.from_batch(distinct, distance))
        return center_sets
