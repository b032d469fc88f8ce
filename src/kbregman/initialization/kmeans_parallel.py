"""
K-means|| (scalable K-means++) initialization.

Bahmani, Moseley, Vattani, Kumar, Vassilvitskii. Scalable K-Means++.
VLDB 2012.

Instead of k sequential passes, a few rounds each oversample about ``l``
candidates, every point being included independently with probability
proportional to its current cost. The candidate pool (a small multiple of
k) is then weighted by how many points each candidate represents and
reduced to k centers locally. All runs are seeded in the same passes over
the data.
"""

from dataclasses import dataclass
from typing import List, Optional

import torch
from torch import Tensor

from ..assignments.hard import HardAssignment
from ..base.data_structures import BregmanPointBatch, PointBatch
from ..base.interfaces import InitializationStrategy, PointCollection
from ..collection.local import LocalCollection
from ..exceptions import InsufficientDataError
from ..representations.center import CenterSet
from ..utils.validation import check_random_state, derive_seed, make_generator
from .kmeans_plusplus import LocalKMeansPlusPlus


# Stream keys for derive_seed
_ROUND_ZERO = 0
_SAMPLING = 1
_LOCAL = 2


@dataclass
class _SeedingState:
    """One partition together with each run's cost against its candidates so far."""
    batch: BregmanPointBatch
    costs: Tensor  # (n_runs, n_points)

    def __len__(self) -> int:
        return self.batch.n_points


class KMeansParallelInit(InitializationStrategy):
    """K-means|| seeding.

    Args:
        oversampling_factor: Expected number of candidates added per round
            and run (``l``). Defaults to 2k.
        initialization_steps: Number of rounds, the uniform first pick included
        n_local_trials: Greedy trials of the local K-means++ reduction
        local_max_iter: Lloyd iterations of the local reduction
        verbose: Verbosity level
    """

    def __init__(self, oversampling_factor: Optional[float] = None,
                 initialization_steps: int = 5,
                 n_local_trials: Optional[int] = None,
                 local_max_iter: int = 30,
                 verbose: int = 0):
        self.oversampling_factor = oversampling_factor
        self.initialization_steps = initialization_steps
        self.n_local_trials = n_local_trials
        self.local_max_iter = local_max_iter
        self.verbose = verbose

    def initialize(self, points: PointCollection, n_clusters: int, distance,
                   n_runs: int = 1, seed: Optional[int] = None,
                   **kwargs) -> List[CenterSet]:
        seed = check_random_state(seed)
        l = self.oversampling_factor if self.oversampling_factor is not None else 2.0 * n_clusters

        # Round 0: one uniform pick per run
        candidates = []
        for run in range(n_runs):
            first = points.take_sample(1, derive_seed(seed, _ROUND_ZERO, run))
            if len(first) == 0:
                raise InsufficientDataError("Cannot choose centers from an empty collection")
            candidates.append([first])

        state = points.map_partitions(
            lambda batch: _SeedingState(batch, torch.full(
                (n_runs, batch.n_points), float('inf'), dtype=batch.dtype, device=batch.device))
        )
        newest = [c[0] for c in candidates]

        for step in range(1, self.initialization_steps):
            state = self._update_costs(state, newest, distance)
            phi, n_uncovered = self._costs(state, n_runs)
            if self.verbose >= 2:
                print(f"K-means|| round {step}: cost = {[round(p, 6) for p in phi]}")

            newest = self._sample(state, phi, n_uncovered, l, derive_seed(seed, _SAMPLING, step))
            for run in range(n_runs):
                if newest[run].n_points:
                    candidates[run].append(newest[run])

        state.unpersist()

        pools = [PointBatch.concat(c) for c in candidates]
        weights = self._candidate_weights(points, pools, distance)

        center_sets = []
        for run in range(n_runs):
            center_sets.append(self._reduce_pool(pools[run], weights[run], n_clusters, distance,
                                                 derive_seed(seed, _LOCAL, run)))
            if self.verbose:
                print(f"Run {run}: {pools[run].n_points} candidates reduced to "
                      f"{center_sets[-1].n_centers} centers")
        return center_sets

    @staticmethod
    def _update_costs(state: PointCollection, newest: List[PointBatch], distance) -> PointCollection:
        """Lower each run's per-point cost with the candidates added last round."""
        new_sets = [
            CenterSet.from_batch(batch, distance) if batch.n_points else None
            for batch in newest
        ]

        def update(partition: _SeedingState) -> _SeedingState:
            costs = partition.costs.clone()
            for run, center_set in enumerate(new_sets):
                if center_set is not None and partition.batch.n_points:
                    nearest = distance.pairwise(partition.batch, center_set).min(dim=1).values
                    costs[run] = torch.minimum(costs[run], nearest)
            return _SeedingState(partition.batch, costs)

        previous = state
        state = state.map_partitions(update).cache()
        # Materialize before the parent is released
        state.count()
        previous.unpersist()
        return state

    @staticmethod
    def _costs(state: PointCollection, n_runs: int):
        """Per run: weighted cost of covered points and number of uncovered points."""
        def partition_costs(partition: _SeedingState):
            costs = partition.costs
            finite = torch.isfinite(costs)
            weighted = torch.where(finite, costs * partition.batch.weights.unsqueeze(0),
                                   torch.zeros_like(costs))
            return [(weighted.sum(dim=1).cpu(), (~finite).sum(dim=1).cpu())]

        phi, uncovered = state.map_partitions(partition_costs).reduce(
            lambda a, b: (a[0] + b[0], a[1] + b[1])
        )
        return phi.tolist(), uncovered.tolist()

    @staticmethod
    def _sample(state: PointCollection, phi, n_uncovered, l: float, seed: int) -> List[PointBatch]:
        """Include each point with probability min(1, l * w * cost / phi).

        Points no candidate can represent (infinite cost) share ``l`` draws
        among themselves.
        """
        n_runs = len(phi)

        def sample_partition(index, partition: _SeedingState):
            batch = partition.batch
            generator = make_generator(derive_seed(seed, index))
            draws = torch.rand(n_runs, batch.n_points, generator=generator,
                               dtype=torch.float64).to(device=batch.device, dtype=batch.dtype)
            picked = []
            for run in range(n_runs):
                costs = partition.costs[run]
                finite = torch.isfinite(costs)
                probability = torch.zeros_like(costs)
                if phi[run] > 0:
                    probability = torch.where(
                        finite, (l * batch.weights * costs / phi[run]).clamp(max=1.0), probability)
                if n_uncovered[run] > 0:
                    probability = torch.where(
                        finite, probability,
                        torch.full_like(costs, min(1.0, l / n_uncovered[run])))
                chosen = torch.nonzero(draws[run] < probability, as_tuple=True)[0]
                picked.append(batch.select(chosen))
            return [picked]

        per_partition = state.map_partitions_with_index(sample_partition).collect()
        return [PointBatch.concat([picked[run] for picked in per_partition]) for run in range(n_runs)]

    @staticmethod
    def _candidate_weights(points: PointCollection, pools: List[PointBatch], distance) -> List[Tensor]:
        """Total weight of the points closest to each candidate, per run."""
        pool_sets = [CenterSet.from_batch(pool, distance) for pool in pools]
        assignment = HardAssignment()

        def partition_weights(batch):
            partial = []
            for pool in pool_sets:
                labels, _ = assignment.compute_assignments(batch, pool, distance)
                _, weights = batch.scatter_sum(labels, pool.n_centers)
                partial.append(weights)
            return [partial]

        return points.map_partitions(partition_weights).reduce(
            lambda a, b: [x + y for x, y in zip(a, b)]
        )

    def _reduce_pool(self, pool: PointBatch, weights: Tensor, n_clusters: int,
                     distance, seed: int) -> CenterSet:
        """Weighted local clustering of one run's candidate pool down to k centers."""
        from ..algorithms.lloyd import LloydIteration

        keep = torch.nonzero(weights > 0, as_tuple=True)[0]
        if len(keep) == 0:
            return CenterSet.empty(pool.dimension, distance, pool.dtype, pool.device)

        locations = pool.select(keep).inhomogeneous()
        local = distance.prepare(PointBatch.from_inhomogeneous(locations, weights[keep]))
        if local.n_points <= n_clusters:
            return CenterSet.from_batch(local, distance)

        seeds = LocalKMeansPlusPlus(self.n_local_trials).select(local, n_clusters, distance, seed)
        lloyd = LloydIteration(max_iter=self.local_max_iter, tol=1e-6)
        result = lloyd.run(LocalCollection([local]), [seeds], distance)[0]
        return seeds if result.failed else result.centers
