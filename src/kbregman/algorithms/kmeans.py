"""
Generalized K-means over Bregman divergences.

Runs several independent seeding + Lloyd trials and keeps the best one.
Trials may use different distance functions; trials sharing a distance share
one prepared (F cached per point) copy of the data.

Example:
    >>> model = train(points, k=3, runs=5, distance_function_name=SPARSE_SMOOTHED_KL)
    >>> labels = model.predict(points)
"""

from collections import OrderedDict
from typing import List, Optional, Sequence, Union
import time

import numpy as np
import torch
from torch import Tensor

from ..assignments.hard import HardAssignment
from ..base.clustering_base import BaseClusteringAlgorithm
from ..base.data_structures import PointBatch, RunResult
from ..base.interfaces import InitializationStrategy, PointCollection
from ..collection.local import LocalCollection
from ..distances.bregman import BregmanDistance
from ..distances.registry import EUCLIDEAN, create_distance, resolve_distance_name
from ..exceptions import ClusteringFailedError, InsufficientDataError, InvalidInputError
from ..initialization.kmeans_parallel import KMeansParallelInit
from ..initialization.random import RandomInit
from ..representations.center import CenterSet
from ..utils.convergence import CenterMovement, ChangeInObjective, CombinedCriterion
from ..utils.device import parse_device
from ..utils.validation import (
    check_n_clusters, check_non_negative_float, check_positive_int, check_random_state,
    derive_seed, validate_data, validate_domain
)
from .lloyd import LloydIteration


RANDOM = 'RANDOM'
K_MEANS_PARALLEL = 'K_MEANS_PARALLEL'

_INITIALIZER_ALIASES = {
    'RANDOM': RANDOM,
    'K_MEANS_PARALLEL': K_MEANS_PARALLEL,
    'K-MEANS||': K_MEANS_PARALLEL,
}

_CONVERGENCE_MODES = ('objective', 'movement', 'any')


class BregmanKMeansModel:
    """Frozen clustering result: centers, the distance they were fitted with, and cost.

    Attributes:
        centers: ``CenterSet`` of the winning run
        distance: ``BregmanDistance`` used for fitting and prediction
        cost: Total weighted distance of the training points to their centers
        n_skipped: Training points that could not be assigned to any center
        n_iter: Lloyd iterations of the winning run
        run: Index of the winning run
    """

    def __init__(self, centers: CenterSet, distance: BregmanDistance, cost: float,
                 n_skipped: int = 0, n_iter: int = 0, run: int = 0):
        self._centers = centers
        self._distance = distance
        self._cost = cost
        self._n_skipped = n_skipped
        self._n_iter = n_iter
        self._run = run
        self._assignment = HardAssignment()

    @property
    def centers(self) -> CenterSet:
        return self._centers

    @property
    def distance(self) -> BregmanDistance:
        return self._distance

    @property
    def cost(self) -> float:
        return self._cost

    @property
    def n_skipped(self) -> int:
        return self._n_skipped

    @property
    def n_iter(self) -> int:
        return self._n_iter

    @property
    def run(self) -> int:
        return self._run

    @property
    def k(self) -> int:
        return self._centers.n_centers

    @property
    def cluster_centers(self) -> Tensor:
        """(k, d) center locations."""
        return self._centers.points

    def predict(self, data) -> Union[Tensor, PointCollection]:
        """Index of the closest center for every point.

        A ``PointCollection`` yields a collection of per-partition label
        tensors; any other input is validated and yields a (n,) tensor.
        Points with a non-finite distance to every center get -1.
        """
        if isinstance(data, PointCollection):
            return data.map_partitions(self._predict_batch)
        return self._predict_batch(self._as_batch(data))

    def compute_cost(self, data) -> float:
        """Sum over points of weight x distance to the closest center.

        Unassignable points are left out.
        """
        if isinstance(data, PointCollection):
            return data.map_partitions(lambda batch: [self._batch_cost(batch)]).reduce(
                lambda a, b: a + b
            )
        return self._batch_cost(self._as_batch(data))

    def _as_batch(self, data) -> PointBatch:
        return validate_data(data, dtype=self._centers.vectors.dtype,
                             device=self._centers.vectors.device)

    def _assign(self, batch: PointBatch):
        prepared = self._distance.prepare(batch)
        labels, min_distances = self._assignment.compute_assignments(
            prepared, self._centers, self._distance
        )
        return prepared, labels, min_distances

    def _predict_batch(self, batch: PointBatch) -> Tensor:
        return self._assign(batch)[1]

    def _batch_cost(self, batch: PointBatch) -> float:
        prepared, labels, min_distances = self._assign(batch)
        assigned = labels >= 0
        return float((prepared.weights[assigned] * min_distances[assigned]).sum())

    def __repr__(self) -> str:
        return (f"BregmanKMeansModel(k={self.k}, distance={self._distance.name!r}, "
                f"cost={self._cost:.6g}, n_skipped={self._n_skipped})")


class KMeans(BaseClusteringAlgorithm):
    """Generalized K-means clustering with Bregman divergences.

    Args:
        n_clusters: Number of clusters k. Fewer centers are returned when the
            data has fewer distinct points
        max_iter: Maximum Lloyd iterations per run
        runs: Number of independent trials; the best one is kept
        init: Seeding strategy, ``RANDOM`` or ``K_MEANS_PARALLEL``
        distance_function: Distance name, or one name per run
        oversampling_factor: K-means|| candidates per round (default 2k)
        initialization_steps: K-means|| rounds
        tol: Relative cost tolerance for convergence
        convergence: 'objective' (cost change), 'movement' (no center moved
            more than ``tol``), or 'any' of the two
        smoothing: Dual smoothing for ``SPARSE_SMOOTHED_KL``
        n_partitions: Partitions used when fitting on raw data
        n_jobs: Dask worker threads used to evaluate partitions
        verbose: Verbosity level (0=silent, 1=progress, 2=detailed)
        random_state: Random seed for reproducibility
        device: Torch device (None for auto-detect)
        dtype: Floating point type of points and centers

    Attributes:
        model_: ``BregmanKMeansModel`` of the best run
        results_: ``RunResult`` of every run, by run index
        labels_: Assignments of the training points
        cluster_centers_: (k, d) centers of the best run
        inertia_: Cost of the best run
        n_iter_: Iterations of the best run
        history_: Per-iteration records of the best run
    """

    def __init__(self,
                 n_clusters: int,
                 max_iter: int = 20,
                 runs: int = 1,
                 init: str = K_MEANS_PARALLEL,
                 distance_function: Union[str, Sequence[str]] = EUCLIDEAN,
                 oversampling_factor: Optional[float] = None,
                 initialization_steps: int = 5,
                 tol: float = 1e-4,
                 convergence: str = 'objective',
                 smoothing: Optional[float] = None,
                 n_partitions: int = 1,
                 n_jobs: int = 1,
                 verbose: int = 0,
                 random_state: Optional[int] = None,
                 device: Optional[Union[str, torch.device]] = None,
                 dtype: torch.dtype = torch.float64):
        super().__init__(
            n_clusters=n_clusters,
            max_iter=max_iter,
            tol=tol,
            verbose=verbose,
            random_state=random_state,
            device=device
        )
        self.runs = runs
        self.init = init
        self.distance_function = distance_function
        self.oversampling_factor = oversampling_factor
        self.initialization_steps = initialization_steps
        self.convergence = convergence
        self.smoothing = smoothing
        self.n_partitions = n_partitions
        self.n_jobs = n_jobs
        self.dtype = dtype

        self.model_: Optional[BregmanKMeansModel] = None
        self.results_: List[RunResult] = []

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    def _validate_params(self) -> None:
        check_n_clusters(self.n_clusters)
        check_positive_int(self.max_iter, 'max_iter')
        check_positive_int(self.runs, 'runs')
        check_positive_int(self.initialization_steps, 'initialization_steps')
        check_positive_int(self.n_partitions, 'n_partitions')
        check_positive_int(self.n_jobs, 'n_jobs')
        check_non_negative_float(self.tol, 'tol')
        if self.oversampling_factor is not None:
            if check_non_negative_float(self.oversampling_factor, 'oversampling_factor') <= 0:
                raise InvalidInputError("oversampling_factor must be positive")
        if self.smoothing is not None:
            check_non_negative_float(self.smoothing, 'smoothing')
        if self.convergence not in _CONVERGENCE_MODES:
            raise InvalidInputError(f"convergence must be one of {_CONVERGENCE_MODES}, "
                                    f"got {self.convergence!r}")
        self._resolve_init()

    def _resolve_init(self) -> str:
        name = _INITIALIZER_ALIASES.get(str(self.init).upper())
        if name is None:
            raise InvalidInputError(f"Unknown initializer {self.init!r}; "
                                    f"expected {RANDOM!r} or {K_MEANS_PARALLEL!r}")
        return name

    def _distance_names(self) -> List[str]:
        """Distance name of every run."""
        if isinstance(self.distance_function, (list, tuple)):
            if len(self.distance_function) != self.runs:
                raise InvalidInputError(
                    f"Got {len(self.distance_function)} distance functions for {self.runs} runs"
                )
            names = self.distance_function
        else:
            names = [self.distance_function] * self.runs
        return [resolve_distance_name(name).value for name in names]

    def _create_initializer(self) -> InitializationStrategy:
        if self._resolve_init() == RANDOM:
            return RandomInit()
        return KMeansParallelInit(
            oversampling_factor=self.oversampling_factor,
            initialization_steps=self.initialization_steps,
            verbose=self.verbose
        )

    def _create_criterion(self):
        if self.convergence == 'objective':
            return ChangeInObjective(rel_tol=self.tol)
        if self.convergence == 'movement':
            return CenterMovement(tol=self.tol)
        return CombinedCriterion([ChangeInObjective(rel_tol=self.tol), CenterMovement(tol=self.tol)],
                                 mode='any')

    def _as_collection(self, X, sample_weight) -> PointCollection:
        if isinstance(X, PointCollection):
            if sample_weight is not None:
                raise InvalidInputError("sample_weight cannot be combined with a PointCollection")
            return X
        return LocalCollection.parallelize(
            X, n_partitions=self.n_partitions, n_jobs=self.n_jobs, weights=sample_weight,
            dtype=self.dtype, device=parse_device(self.device)
        )

    # ------------------------------------------------------------------
    # Fitting
    # ------------------------------------------------------------------
    def _fit(self, X, sample_weight=None) -> 'KMeans':
        self._validate_params()
        names = self._distance_names()
        seed = check_random_state(self.random_state)

        points = self._as_collection(X, sample_weight)
        if points.count() == 0:
            raise InsufficientDataError("Cannot cluster an empty collection")

        groups = OrderedDict()
        for run, name in enumerate(names):
            groups.setdefault(name, []).append(run)
        distances = {name: create_distance(name, self.smoothing) for name in groups}

        # Reject out-of-domain data before any clustering pass
        for distance in distances.values():
            validate_domain(points, distance.divergence)

        start_time = time.time()
        results: List[RunResult] = []
        for group, (name, run_ids) in enumerate(groups.items()):
            distance = distances[name]
            if self.verbose:
                print(f"Clustering {len(run_ids)} run(s) with {name} "
                      f"({self._resolve_init()} seeding, k={self.n_clusters})...")

            prepared = points.map_partitions(distance.prepare).cache()
            seeds = self._create_initializer().initialize(
                prepared, self.n_clusters, distance,
                n_runs=len(run_ids), seed=derive_seed(seed, group)
            )
            lloyd = LloydIteration(max_iter=self.max_iter, tol=self.tol,
                                   criterion_factory=self._create_criterion,
                                   verbose=self.verbose)
            results.extend(lloyd.run(prepared, seeds, distance, run_ids))
            prepared.unpersist()

        results.sort(key=lambda result: result.run)
        self.results_ = results

        survivors = [result for result in results if not result.failed]
        if not survivors:
            raise ClusteringFailedError(f"All {len(results)} runs failed to produce centers")
        best = min(survivors, key=RunResult.sort_key)

        self.model_ = BregmanKMeansModel(
            best.centers, distances[names[best.run]], best.cost,
            n_skipped=best.n_skipped, n_iter=best.n_iter, run=best.run
        )
        self.n_iter_ = best.n_iter
        self.history_ = best.history
        self.fitted_ = True
        self.labels_ = self._collect_labels(self.model_.predict(points))

        if self.verbose:
            print(f"Best run {best.run}: cost = {best.cost:.6f}, {best.centers.n_centers} centers, "
                  f"{best.n_skipped} skipped")
            print(f"Total fitting time: {time.time() - start_time:.3f}s")
        return self

    @staticmethod
    def _collect_labels(labels: PointCollection) -> Tensor:
        parts = labels.collect()
        if isinstance(parts, list):
            return torch.zeros(0, dtype=torch.long)
        return parts

    def predict(self, X) -> Union[Tensor, PointCollection]:
        """Index of the closest center for every point (-1 if unassignable)."""
        self._check_fitted()
        return self.model_.predict(X)

    def compute_cost(self, X) -> float:
        self._check_fitted()
        return self.model_.compute_cost(X)

    @property
    def cluster_centers_(self) -> Tensor:
        self._check_fitted()
        return self.model_.cluster_centers

    @property
    def inertia_(self) -> float:
        self._check_fitted()
        return self.model_.cost


def train(data, k: int, max_iterations: int = 20, runs: int = 1,
          initializer_name: str = K_MEANS_PARALLEL,
          distance_function_name: Union[str, Sequence[str]] = EUCLIDEAN,
          **kwargs) -> BregmanKMeansModel:
    """Cluster ``data`` into at most ``k`` clusters and return the best model.

    Args:
        data: Points (tensor, sparse tensor, array) or a PointCollection
        k: Number of clusters
        max_iterations: Maximum Lloyd iterations per run
        runs: Number of independent trials
        initializer_name: ``RANDOM`` or ``K_MEANS_PARALLEL``
        distance_function_name: Distance name, or one name per run
        **kwargs: Further ``KMeans`` parameters (random_state, tol, ...)
    """
    estimator = KMeans(
        n_clusters=k,
        max_iter=max_iterations,
        runs=runs,
        init=initializer_name,
        distance_function=distance_function_name,
        **kwargs
    )
    return estimator.fit(data).model_
