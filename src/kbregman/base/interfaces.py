"""
Core interfaces for the K-Bregman clustering components.

This module defines the abstract base classes every component implements:
the partitioned point collection the algorithms consume, the distance
metric, assignment, update, initialization and convergence strategies.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from torch import Tensor


class PointCollection(ABC):
    """Partitioned, read-only collection of records.

    This is the only view the clustering core has of the data. Partitions are
    usually ``PointBatch`` blocks; derived collections may hold arbitrary
    records (per-partition statistics, labels). Transformations are lazy and
    only run when a result is requested; ``cache`` retains the materialized
    partitions across passes until ``unpersist``.
    """

    @property
    @abstractmethod
    def num_partitions(self) -> int:
        """Number of partitions."""
        pass

    @abstractmethod
    def map(self, fn: Callable[[Any], Any]) -> 'PointCollection':
        """Apply ``fn`` to every record."""
        pass

    @abstractmethod
    def map_partitions(self, fn: Callable[[Any], Any]) -> 'PointCollection':
        """Apply ``fn`` to every partition; ``fn`` returns the new partition."""
        pass

    @abstractmethod
    def map_partitions_with_index(self, fn: Callable[[int, Any], Any]) -> 'PointCollection':
        """Like ``map_partitions`` but ``fn`` also receives the partition index."""
        pass

    @abstractmethod
    def reduce(self, fn: Callable[[Any, Any], Any]) -> Any:
        """Associative, commutative reduction over all records."""
        pass

    @abstractmethod
    def aggregate(self, zero: Any, seq_op: Callable[[Any, Any], Any],
                  comb_op: Callable[[Any, Any], Any]) -> Any:
        """Fold records per partition with ``seq_op`` then merge with ``comb_op``."""
        pass

    @abstractmethod
    def sample(self, with_replacement: bool, fraction: float,
               seed: int) -> 'PointCollection':
        """Bernoulli (or Poisson, with replacement) sample of the records."""
        pass

    @abstractmethod
    def take_sample(self, n: int, seed: int, with_replacement: bool = False) -> Any:
        """Return ``n`` uniformly drawn records, materialized locally."""
        pass

    @abstractmethod
    def collect(self) -> Any:
        """Materialize every record locally. Only for small collections."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Number of records."""
        pass

    @abstractmethod
    def cache(self) -> 'PointCollection':
        """Retain materialized partitions across passes."""
        pass

    @abstractmethod
    def unpersist(self) -> 'PointCollection':
        """Release retained partitions."""
        pass


class DistanceMetric(ABC):
    """Abstract base class for point-to-center distance computations."""

    @abstractmethod
    def pairwise(self, points, centers) -> Tensor:
        """Compute distances from points to every center.

        Args:
            points: Batch of n points
            centers: Set of k centers

        Returns:
            (n, k) tensor of distances
        """
        pass


class AssignmentStrategy(ABC):
    """Abstract base class for point-to-cluster assignment strategies."""

    @abstractmethod
    def compute_assignments(self, points, centers, distance: DistanceMetric,
                            **kwargs) -> Tuple[Tensor, Tensor]:
        """Compute cluster assignments for points.

        Args:
            points: Batch of n points
            centers: Current center snapshot
            distance: Distance metric to minimize

        Returns:
            (n,) tensor of cluster indices and (n,) tensor of distances
        """
        pass


class ParameterUpdater(ABC):
    """Abstract base class for center update strategies."""

    @abstractmethod
    def accumulate(self, points, labels: Tensor, n_clusters: int) -> Any:
        """Partial statistics of one partition given its assignments."""
        pass

    @abstractmethod
    def update(self, statistics: Any, distance: DistanceMetric) -> Any:
        """New center snapshot from merged statistics."""
        pass


class InitializationStrategy(ABC):
    """Abstract base class for seeding strategies."""

    @abstractmethod
    def initialize(self, points: PointCollection, n_clusters: int,
                   distance: DistanceMetric, n_runs: int = 1,
                   seed: Optional[int] = None, **kwargs) -> List[Any]:
        """Choose initial centers.

        Args:
            points: Collection of prepared point batches
            n_clusters: Requested number of clusters k
            distance: Distance used by the clustering
            n_runs: Number of independent center sets to produce
            seed: Random seed

        Returns:
            One center set per run, each holding at most k centers
        """
        pass


class ConvergenceCriterion(ABC):
    """Abstract base class for convergence checking."""

    def __init__(self):
        self.history = []

    @abstractmethod
    def check(self, current_state: Dict[str, Any]) -> bool:
        """Check if the run has converged.

        Args:
            current_state: Dictionary containing current run state

        Returns:
            True if converged, False otherwise
        """
        pass

    def reset(self):
        """Reset convergence history."""
        self.history = []
