"""
In-process partitioned point collection backed by ``dask.bag``.

``LocalCollection`` implements the ``PointCollection`` interface over a dask
bag holding one element per partition. A partition is a ``PointBatch``, a
tensor (records are its rows) or a list of arbitrary records. Derived
collections remember their parent and the per-partition function that
produces them, and build their bag from the parent's when a result
(``reduce``, ``aggregate``, ``collect``, ``count``, ``take_sample``) is
requested. Without ``cache`` every such request recomputes the lineage;
``cache`` persists the bag on first use until ``unpersist``.

``n_jobs == 1`` runs tasks with dask's synchronous scheduler in the calling
thread, larger values use the threaded scheduler with that many workers.
"""

import copy
import functools
import itertools
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import dask.bag as db
import numpy as np
import torch
from torch import Tensor

from ..base.data_structures import PointBatch
from ..base.interfaces import PointCollection
from ..exceptions import InsufficientDataError
from ..utils.validation import validate_data, derive_seed, make_generator


class _Partition:
    """Bag element: one partition and its position in the collection."""

    __slots__ = ('index', 'data')

    def __init__(self, index: int, data: Any):
        self.index = index
        self.data = data

    def __dask_tokenize__(self):
        return ('kbregman-partition', self.index, id(self.data))


_EMPTY = object()


class LocalCollection(PointCollection):
    """Lazy, optionally cached, collection of in-memory partitions.

    Args:
        partitions: Source partitions (for a root collection)
        n_jobs: Number of dask worker threads. 1 evaluates partitions
            sequentially in the calling thread.
    """

    def __init__(self, partitions: Optional[Sequence[Any]] = None, n_jobs: int = 1,
                 _parent: Optional['LocalCollection'] = None,
                 _fn: Optional[Callable[[int, Any], Any]] = None):
        if (partitions is None) == (_parent is None):
            raise ValueError("Provide either source partitions or a parent collection")
        self._source = list(partitions) if partitions is not None else None
        self._parent = _parent
        self._fn = _fn
        self.n_jobs = n_jobs
        self._persist = False
        self._persisted: Optional[db.Bag] = None
        self._source_bag: Optional[db.Bag] = None
        if self._source is not None:
            self._source_bag = db.from_sequence(
                [_Partition(i, part) for i, part in enumerate(self._source)], partition_size=1
            )

    @classmethod
    def parallelize(cls, data: Union[PointBatch, Tensor, np.ndarray, list],
                    n_partitions: int = 1, n_jobs: int = 1,
                    weights: Optional[Union[Tensor, np.ndarray, list]] = None,
                    dtype: torch.dtype = torch.float64,
                    device: Optional[torch.device] = None) -> 'LocalCollection':
        """Validate points and split them into contiguous ``PointBatch`` partitions.

        Args:
            data: Points (see ``validate_data``)
            n_partitions: Requested number of partitions; never more than the
                number of points
            n_jobs: Dask worker threads
            weights: Optional per-point multiplicities
            dtype: Target data type
            device: Target device
        """
        batch = validate_data(data, sample_weight=weights, dtype=dtype, device=device)
        return cls(batch.split(n_partitions) if batch.n_points else [], n_jobs=n_jobs)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    def _scheduler(self) -> Dict[str, Any]:
        if self.n_jobs > 1:
            return {'scheduler': 'threads', 'num_workers': self.n_jobs}
        return {'scheduler': 'sync'}

    def to_bag(self) -> db.Bag:
        """Dask bag with one element per partition, persisted when cached."""
        if self._source_bag is not None:
            return self._source_bag
        if self._persisted is not None:
            return self._persisted

        bag = self._parent.to_bag().map_partitions(_apply, self._fn)
        if self._persist:
            self._persisted = bag.persist(**self._scheduler())
            return self._persisted
        return bag

    def partitions(self) -> List[Any]:
        """Materialized partitions in collection order."""
        if self._source is not None:
            return self._source
        parts = sorted(self.to_bag().compute(**self._scheduler()), key=lambda part: part.index)
        return [part.data for part in parts]

    def _derive(self, fn: Callable[[int, Any], Any]) -> 'LocalCollection':
        return LocalCollection(n_jobs=self.n_jobs, _parent=self, _fn=fn)

    @property
    def num_partitions(self) -> int:
        if self._source is not None:
            return len(self._source)
        return self._parent.num_partitions

    @property
    def is_cached(self) -> bool:
        return self._source is not None or self._persisted is not None

    # ------------------------------------------------------------------
    # Transformations
    # ------------------------------------------------------------------
    def map(self, fn: Callable[[Any], Any]) -> 'LocalCollection':
        return self._derive(lambda _, part: [fn(record) for record in _records(part)])

    def map_partitions(self, fn: Callable[[Any], Any]) -> 'LocalCollection':
        return self._derive(lambda _, part: fn(part))

    def map_partitions_with_index(self, fn: Callable[[int, Any], Any]) -> 'LocalCollection':
        return self._derive(fn)

    def sample(self, with_replacement: bool, fraction: float, seed: int) -> 'LocalCollection':
        """Sample each record independently.

        Without replacement every record is kept with probability ``fraction``;
        with replacement it is repeated Poisson(``fraction``) times. Partition
        ``i`` draws from a generator seeded with ``derive_seed(seed, i)``.
        """
        if fraction < 0:
            raise ValueError(f"fraction must be non-negative, got {fraction}")
        if not with_replacement and fraction > 1:
            raise ValueError(f"fraction must be at most 1 without replacement, got {fraction}")

        def sample_partition(index, part):
            n = _size(part)
            generator = make_generator(derive_seed(seed, index))
            if with_replacement:
                counts = torch.poisson(torch.full((n,), float(fraction), dtype=torch.float64),
                                       generator=generator).long()
                indices = torch.repeat_interleave(torch.arange(n), counts)
            else:
                keep = torch.rand(n, generator=generator, dtype=torch.float64) < fraction
                indices = torch.nonzero(keep, as_tuple=True)[0]
            return _select(part, indices)

        return self._derive(sample_partition)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------
    def reduce(self, fn: Callable[[Any, Any], Any]) -> Any:
        def fold(values):
            values = [value for value in values if value is not _EMPTY]
            return functools.reduce(fn, values) if values else _EMPTY

        def per_partition(parts):
            return fold(fold(_records(part.data)) for part in parts)

        result = self.to_bag().reduction(per_partition, fold).compute(**self._scheduler())
        if result is _EMPTY:
            raise InsufficientDataError("Cannot reduce an empty collection")
        return result

    def aggregate(self, zero: Any, seq_op: Callable[[Any, Any], Any],
                  comb_op: Callable[[Any, Any], Any]) -> Any:
        def per_partition(parts):
            result = copy.deepcopy(zero)
            for part in parts:
                acc = copy.deepcopy(zero)
                for record in _records(part.data):
                    acc = seq_op(acc, record)
                result = comb_op(result, acc)
            return result

        def combine(partials):
            return functools.reduce(comb_op, partials, copy.deepcopy(zero))

        return self.to_bag().reduction(per_partition, combine).compute(**self._scheduler())

    def take_sample(self, n: int, seed: int, with_replacement: bool = False) -> Any:
        """Exactly ``min(n, count)`` records (``n`` with replacement), uniformly drawn.

        Records are returned in collection order, concatenated like ``collect``.
        """
        parts = self.partitions()
        sizes = [_size(part) for part in parts]
        total = sum(sizes)
        if not parts:
            return []

        generator = make_generator(seed)
        if with_replacement:
            if total == 0:
                raise InsufficientDataError("Cannot sample with replacement from an empty collection")
            chosen = torch.randint(total, (n,), generator=generator)
        else:
            chosen = torch.randperm(total, generator=generator)[:n]
        chosen, _ = torch.sort(chosen)

        selected = []
        start = 0
        for part, size in zip(parts, sizes):
            in_part = chosen[(chosen >= start) & (chosen < start + size)] - start
            selected.append(_select(part, in_part))
            start += size
        return _concat(selected)

    def collect(self) -> Any:
        parts = self.partitions()
        if not parts:
            return []
        return _concat(parts)

    def count(self) -> int:
        return self.to_bag().reduction(_partition_sizes, sum).compute(**self._scheduler())

    def cache(self) -> 'LocalCollection':
        self._persist = True
        return self

    def unpersist(self) -> 'LocalCollection':
        self._persist = False
        self._persisted = None
        return self

    def __repr__(self) -> str:
        state = "cached" if self._persisted is not None else "lazy"
        return f"LocalCollection(num_partitions={self.num_partitions}, {state})"


def _apply(parts, fn: Callable[[int, Any], Any]) -> List[_Partition]:
    return [_Partition(part.index, fn(part.index, part.data)) for part in parts]


def _partition_sizes(parts) -> int:
    return sum(_size(part.data) for part in parts)


def _records(part: Any):
    if isinstance(part, PointBatch):
        return part.rows()
    return iter(part)


def _size(part: Any) -> int:
    if isinstance(part, PointBatch):
        return part.n_points
    if isinstance(part, Tensor):
        return part.shape[0]
    return len(part)


def _select(part: Any, indices: Tensor) -> Any:
    if isinstance(part, PointBatch):
        return part.select(indices)
    if isinstance(part, Tensor):
        return part.index_select(0, indices.to(part.device))
    return [part[i] for i in indices.tolist()]


def _concat(parts: List[Any]) -> Any:
    first = parts[0]
    if isinstance(first, PointBatch):
        return PointBatch.concat(parts)
    if isinstance(first, Tensor):
        return torch.cat(parts, dim=0)
    return list(itertools.chain.from_iterable(parts))
