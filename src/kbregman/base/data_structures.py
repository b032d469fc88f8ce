"""
Core data structures for Bregman clustering.

Points are stored in homogeneous coordinates: a row ``v`` with weight ``w``
stands for the inhomogeneous point ``v / w``. A point of multiplicity ``m`` at
location ``x`` is therefore stored as ``(m * x, m)``, and the sum of the
homogeneous coordinates of several points is, again in homogeneous
coordinates, their weighted mean. Rows are held either in a dense ``(n, d)``
tensor or in a sparse COO ``(n, d)`` tensor; every operation the algorithms
need is exposed here so that callers never branch on the storage format.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, TYPE_CHECKING

import torch
from torch import Tensor

if TYPE_CHECKING:
    from ..representations.center import CenterSet


class PointBatch:
    """A block of homogeneous-coordinate points with dense or sparse storage.

    Capability interface shared by both storage formats:
    dimension, per-row non-zero iteration, component access, row selection,
    row-wise reductions over stored entries, products with dense matrices and
    per-label scatter sums.
    """

    def __init__(self, values: Tensor, weights: Optional[Tensor] = None):
        """
        Args:
            values: (n, d) dense tensor or sparse COO tensor of homogeneous coordinates
            weights: Optional (n,) tensor of homogeneous weights (default 1.0)
        """
        if values.dim() != 2:
            raise ValueError(f"Expected 2D tensor, got {values.dim()}D")
        if values.is_sparse:
            values = values.coalesce()
        self.values = values

        if weights is None:
            weights = torch.ones(values.shape[0], dtype=values.dtype, device=values.device)
        weights = weights.to(dtype=values.dtype, device=values.device)
        if weights.shape != (values.shape[0],):
            raise ValueError(f"Expected {values.shape[0]} weights, got shape {tuple(weights.shape)}")
        self.weights = weights

    @classmethod
    def from_inhomogeneous(cls, points: Tensor, multiplicity: Optional[Tensor] = None) -> 'PointBatch':
        """Build a batch holding ``points`` with the given multiplicities."""
        if multiplicity is None:
            return cls(points)
        multiplicity = multiplicity.to(dtype=points.dtype, device=points.device)
        return cls(_scale_rows(points, multiplicity), multiplicity)

    @property
    def n_points(self) -> int:
        return self.values.shape[0]

    def __len__(self) -> int:
        return self.n_points

    @property
    def dimension(self) -> int:
        return self.values.shape[1]

    @property
    def is_sparse(self) -> bool:
        return self.values.is_sparse

    @property
    def dtype(self) -> torch.dtype:
        return self.values.dtype

    @property
    def device(self) -> torch.device:
        return self.values.device

    def __repr__(self) -> str:
        kind = "sparse" if self.is_sparse else "dense"
        return f"{self.__class__.__name__}(n_points={self.n_points}, dimension={self.dimension}, {kind})"

    # ------------------------------------------------------------------
    # Element access
    # ------------------------------------------------------------------
    def nonzero_entries(self, row: int) -> Tuple[Tensor, Tensor]:
        """Return (column indices, values) of the non-zero components of one row."""
        if self.is_sparse:
            indices = self.values.indices()
            mask = indices[0] == row
            return indices[1, mask], self.values.values()[mask]
        dense_row = self.values[row]
        columns = torch.nonzero(dense_row, as_tuple=True)[0]
        return columns, dense_row[columns]

    def component(self, row: int, column: int) -> float:
        """Homogeneous component ``v[row, column]``."""
        columns, values = self.nonzero_entries(row)
        hit = (columns == column).nonzero(as_tuple=True)[0]
        return float(values[hit[0]]) if len(hit) else 0.0

    def select(self, indices: Tensor) -> 'PointBatch':
        """Rows at ``indices`` as a new batch of the same class (cached fields included)."""
        indices = indices.to(device=self.device, dtype=torch.long)
        return self._with_rows(self.values.index_select(0, indices), self.weights[indices], indices)

    def _with_rows(self, values: Tensor, weights: Tensor, indices: Tensor) -> 'PointBatch':
        return PointBatch(values, weights)

    def rows(self) -> Iterator['PointBatch']:
        """Iterate single-row batches."""
        for i in range(self.n_points):
            yield self.select(torch.tensor([i], device=self.device))

    def split(self, n_parts: int) -> List['PointBatch']:
        """Split into at most ``n_parts`` contiguous, non-empty batches."""
        n_parts = max(1, min(n_parts, self.n_points))
        bounds = torch.linspace(0, self.n_points, n_parts + 1).round().long().tolist()
        return [
            self.select(torch.arange(start, stop, device=self.device))
            for start, stop in zip(bounds[:-1], bounds[1:])
            if stop > start
        ]

    @staticmethod
    def concat(batches: Sequence['PointBatch']) -> 'PointBatch':
        """Stack batches row-wise. Mixed storage formats are stacked densely.

        Cached F values survive when every batch carries them.
        """
        if not batches:
            raise ValueError("Cannot concatenate an empty sequence of batches")
        if len(batches) == 1:
            return batches[0]
        if all(b.is_sparse for b in batches):
            values = torch.cat([b.values for b in batches], dim=0)
        else:
            values = torch.cat([b.to_dense() for b in batches], dim=0)
        weights = torch.cat([b.weights for b in batches])
        if all(isinstance(b, BregmanPointBatch) for b in batches):
            return BregmanPointBatch(values, weights, torch.cat([b.f_values for b in batches]))
        return PointBatch(values, weights)

    # ------------------------------------------------------------------
    # Conversions
    # ------------------------------------------------------------------
    def to_dense(self) -> Tensor:
        """Dense (n, d) homogeneous coordinates."""
        return self.values.to_dense() if self.is_sparse else self.values

    def densified(self) -> 'PointBatch':
        if not self.is_sparse:
            return self
        return PointBatch(self.to_dense(), self.weights)

    def inhomogeneous(self) -> Tensor:
        """Dense (n, d) points ``v / w``. Materializes the division, use sparingly."""
        return self.to_dense() / self.weights.unsqueeze(1)

    def to(self, device: torch.device) -> 'PointBatch':
        return PointBatch(self.values.to(device), self.weights.to(device))

    # ------------------------------------------------------------------
    # Row-wise arithmetic
    # ------------------------------------------------------------------
    def row_sum(self, fn=None) -> Tensor:
        """Per-row sum of ``fn`` applied to the stored components.

        For sparse storage only non-zero components are visited, so ``fn(0)``
        must be 0 for the result to agree with the dense evaluation.
        """
        return row_sum(self.values, fn)

    def matmul(self, other: Tensor) -> Tensor:
        """(n, d) @ (d, m) -> dense (n, m)."""
        if self.is_sparse:
            return torch.sparse.mm(self.values, other)
        return self.values @ other

    def support_matmul(self, other: Tensor) -> Tensor:
        """Indicator of the non-zero pattern times ``other``: (n, d) @ (d, m) -> (n, m)."""
        if self.is_sparse:
            support = torch.sparse_coo_tensor(
                self.values.indices(),
                (self.values.values() != 0).to(other.dtype),
                self.values.shape,
            )
            return torch.sparse.mm(support, other)
        return (self.values != 0).to(other.dtype) @ other

    def scatter_sum(self, labels: Tensor, n_groups: int) -> Tuple[Tensor, Tensor]:
        """Sum homogeneous rows and weights per label. Rows with label -1 are ignored.

        Returns:
            sums: (n_groups, d) dense sums of coordinates
            weights: (n_groups,) sums of weights
        """
        d = self.dimension
        keep = labels >= 0
        weight_sums = torch.zeros(n_groups, dtype=self.dtype, device=self.device)
        weight_sums.index_add_(0, labels[keep], self.weights[keep])

        if self.is_sparse:
            indices = self.values.indices()
            entry_labels = labels[indices[0]]
            mask = entry_labels >= 0
            flat = torch.zeros(n_groups * d, dtype=self.dtype, device=self.device)
            flat.index_add_(0, entry_labels[mask] * d + indices[1, mask], self.values.values()[mask])
            sums = flat.view(n_groups, d)
        else:
            sums = torch.zeros(n_groups, d, dtype=self.dtype, device=self.device)
            sums.index_add_(0, labels[keep], self.values[keep])
        return sums, weight_sums

    def distinct(self) -> Tensor:
        """Indices of the first occurrence of each distinct inhomogeneous point."""
        if self.n_points == 0:
            return torch.zeros(0, dtype=torch.long, device=self.device)
        if self.is_sparse:
            return self._sparse_distinct()
        _, inverse = torch.unique(self.inhomogeneous(), dim=0, return_inverse=True)
        order = torch.arange(self.n_points, device=self.device)
        first = torch.full((int(inverse.max()) + 1,), self.n_points, dtype=torch.long, device=self.device)
        first.scatter_reduce_(0, inverse, order, reduce="amin")
        return torch.sort(first).values

    def _sparse_distinct(self) -> Tensor:
        # Rows are keyed by their non-zero (column, value) pairs; nothing is densified
        indices = self.values.indices()
        entries = self.values.values() / self.weights[indices[0]]
        stored = entries != 0
        keys = [[] for _ in range(self.n_points)]
        for row, column, value in zip(indices[0, stored].tolist(), indices[1, stored].tolist(),
                                      entries[stored].tolist()):
            keys[row].append((column, value))

        seen = set()
        first = []
        for row, key in enumerate(map(tuple, keys)):
            if key not in seen:
                seen.add(key)
                first.append(row)
        return torch.tensor(first, dtype=torch.long, device=self.device)


class BregmanPointBatch(PointBatch):
    """Point batch with ``F(v, w)`` cached per row for a specific divergence."""

    def __init__(self, values: Tensor, weights: Tensor, f_values: Tensor):
        super().__init__(values, weights)
        self.f_values = f_values

    def _with_rows(self, values: Tensor, weights: Tensor, indices: Tensor) -> 'BregmanPointBatch':
        return BregmanPointBatch(values, weights, self.f_values[indices])


def row_sum(values: Tensor, fn=None) -> Tensor:
    """Per-row sum over stored entries of a dense or sparse (n, d) tensor."""
    if values.is_sparse:
        values = values.coalesce()
        entries = values.values()
        if fn is not None:
            entries = fn(entries)
        out = torch.zeros(values.shape[0], dtype=entries.dtype, device=values.device)
        out.index_add_(0, values.indices()[0], entries)
        return out
    if fn is not None:
        values = fn(values)
    return values.sum(dim=1)


def _scale_rows(values: Tensor, factors: Tensor) -> Tensor:
    if values.is_sparse:
        values = values.coalesce()
        indices = values.indices()
        return torch.sparse_coo_tensor(indices, values.values() * factors[indices[0]], values.shape)
    return values * factors.unsqueeze(1)


class RunState(Enum):
    """Lifecycle of a single clustering run."""
    SEEDED = 'seeded'
    ASSIGNING = 'assigning'
    UPDATING = 'updating'
    CONVERGED = 'converged'
    ITERATION_LIMIT_REACHED = 'iteration_limit_reached'
    FAILED = 'failed'

    @property
    def is_terminal(self) -> bool:
        return self in (RunState.CONVERGED, RunState.ITERATION_LIMIT_REACHED, RunState.FAILED)


@dataclass
class IterationRecord:
    """Per-iteration diagnostics for one run."""
    run: int
    iteration: int
    cost: float
    n_centers: int
    n_skipped: int
    converged: bool = False


@dataclass
class RunResult:
    """Outcome of one seeding + Lloyd run."""
    run: int
    centers: 'CenterSet'
    cost: float
    n_skipped: int
    n_iter: int
    state: RunState
    history: List[IterationRecord] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return self.state is RunState.FAILED or self.centers.n_centers == 0

    def sort_key(self) -> Tuple[int, float, int]:
        """Fewest skipped points first, then lowest cost, then earliest run."""
        return (self.n_skipped, self.cost, self.run)
