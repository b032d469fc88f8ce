# tests/test_local_collection.py
"""
In-process partitioned collection.

Covers:
- parallelize: contiguous partitions, count, collect order
- laziness: nothing runs before an action; cache() memoizes until unpersist()
- map / map_partitions / map_partitions_with_index / reduce / aggregate
- sample(): seeded Bernoulli and Poisson sampling
- take_sample(): exact size, uniform without replacement, deterministic
- threaded dask scheduling matches synchronous evaluation
"""

from __future__ import annotations

import dask.bag as db
import pytest
import torch

from kbregman.base.data_structures import PointBatch
from kbregman.collection import LocalCollection
from kbregman.exceptions import InsufficientDataError


@pytest.fixture
def points():
    return torch.arange(20, dtype=torch.float64).reshape(10, 2)


def test_parallelize_partitions_and_collect(points):
    collection = LocalCollection.parallelize(points, n_partitions=3)
    assert collection.num_partitions == 3
    assert collection.count() == 10
    collected = collection.collect()
    assert isinstance(collected, PointBatch)
    assert torch.equal(collected.to_dense(), points)


def test_parallelize_with_weights(points):
    weights = torch.full((10,), 2.0, dtype=torch.float64)
    collection = LocalCollection.parallelize(points, n_partitions=2, weights=weights)
    collected = collection.collect()
    assert torch.equal(collected.weights, weights)
    assert torch.allclose(collected.inhomogeneous(), points)


def test_transformations_are_lazy_and_cacheable(points):
    calls = []

    def tag(batch):
        calls.append(batch.n_points)
        return batch

    base = LocalCollection.parallelize(points, n_partitions=2)
    derived = base.map_partitions(tag)
    assert calls == []

    derived.count()
    derived.count()
    assert len(calls) == 4  # recomputed for every action

    calls.clear()
    derived.cache()
    derived.count()
    derived.collect()
    assert len(calls) == 2  # computed once
    assert derived.is_cached

    derived.unpersist()
    calls.clear()
    derived.count()
    assert len(calls) == 2


def test_map_is_element_wise():
    collection = LocalCollection([torch.tensor([1.0, 2.0]), torch.tensor([3.0])])
    doubled = collection.map(lambda x: float(x) * 2).collect()
    assert doubled == [2.0, 4.0, 6.0]


def test_map_over_point_batches_sees_rows(points):
    collection = LocalCollection.parallelize(points, n_partitions=3)
    sizes = collection.map(lambda row: row.n_points).collect()
    assert sizes == [1] * 10


def test_map_partitions_with_index(points):
    collection = LocalCollection.parallelize(points, n_partitions=4)
    indices = collection.map_partitions_with_index(lambda i, batch: [i] * batch.n_points).collect()
    assert sorted(set(indices)) == [0, 1, 2, 3]
    assert len(indices) == 10


def test_reduce_and_aggregate(points):
    collection = LocalCollection.parallelize(points, n_partitions=3)
    totals = collection.map_partitions(lambda batch: [batch.row_sum().sum().item()])
    assert totals.reduce(lambda a, b: a + b) == pytest.approx(float(points.sum()))

    weight = collection.aggregate(
        0.0,
        lambda acc, row: acc + row.weights.sum().item(),
        lambda a, b: a + b,
    )
    assert weight == pytest.approx(10.0)


def test_aggregate_of_empty_collection_is_zero():
    assert LocalCollection([]).aggregate(0, lambda acc, _: acc + 1, lambda a, b: a + b) == 0


def test_aggregate_merges_partition_records(points):
    collection = LocalCollection.parallelize(points, n_partitions=4)
    per_partition = collection.map_partitions(lambda batch: [batch.n_points])
    assert per_partition.aggregate(0, lambda acc, n: acc + n, lambda a, b: a + b) == 10


def test_reduce_of_empty_collection_raises():
    with pytest.raises(InsufficientDataError):
        LocalCollection([[], []]).reduce(lambda a, b: a + b)


def test_sample_is_seeded(points):
    collection = LocalCollection.parallelize(points.repeat(20, 1), n_partitions=4)
    first = collection.sample(False, 0.3, seed=11).collect()
    second = collection.sample(False, 0.3, seed=11).collect()
    assert torch.equal(first.to_dense(), second.to_dense())
    assert 0 < first.n_points < 200

    assert collection.sample(False, 0.0, seed=1).count() == 0
    assert collection.sample(False, 1.0, seed=1).count() == 200


def test_sample_with_replacement_can_repeat(points):
    collection = LocalCollection.parallelize(points, n_partitions=1)
    sampled = collection.sample(True, 3.0, seed=5).collect()
    assert sampled.n_points > 10


def test_sample_rejects_bad_fraction(points):
    collection = LocalCollection.parallelize(points)
    with pytest.raises(ValueError):
        collection.sample(False, 1.5, seed=0)


def test_take_sample_exact_and_distinct(points):
    collection = LocalCollection.parallelize(points, n_partitions=3)
    sample = collection.take_sample(4, seed=7)
    assert sample.n_points == 4
    assert len(sample.distinct()) == 4
    again = collection.take_sample(4, seed=7)
    assert torch.equal(sample.to_dense(), again.to_dense())

    # More than available: everything
    assert collection.take_sample(50, seed=7).n_points == 10
    # With replacement: exactly n
    assert collection.take_sample(25, seed=7, with_replacement=True).n_points == 25


def test_take_sample_is_uniform_over_partitions(points):
    collection = LocalCollection.parallelize(points, n_partitions=5)
    hits = torch.zeros(10)
    for seed in range(400):
        picked = collection.take_sample(1, seed=seed).to_dense()
        hits[int(picked[0, 0].item()) // 2] += 1
    # every point is drawn, none dominates
    assert (hits > 10).all()
    assert (hits < 80).all()


def test_threaded_evaluation_matches_sequential(points):
    sequential = LocalCollection.parallelize(points, n_partitions=4, n_jobs=1)
    threaded = LocalCollection.parallelize(points, n_partitions=4, n_jobs=3)
    fn = lambda batch: [batch.row_sum()]
    assert torch.equal(
        torch.cat(sequential.map_partitions(fn).collect()),
        torch.cat(threaded.map_partitions(fn).collect()),
    )


def test_empty_parallelize():
    collection = LocalCollection.parallelize(torch.zeros(0, 3, dtype=torch.float64), n_partitions=2)
    assert collection.num_partitions == 0
    assert collection.count() == 0
    assert collection.collect() == []


def test_collection_is_backed_by_a_dask_bag(points):
    collection = LocalCollection.parallelize(points, n_partitions=3)
    bag = collection.map_partitions(lambda batch: [batch.n_points]).to_bag()
    assert isinstance(bag, db.Bag)
    assert bag.npartitions == 3


def test_cached_collection_holds_a_persisted_bag(points):
    derived = LocalCollection.parallelize(points, n_partitions=2).map_partitions(lambda b: b).cache()
    assert not derived.is_cached
    first = derived.to_bag()
    assert derived.is_cached
    assert derived.to_bag() is first
    derived.unpersist()
    assert derived.to_bag() is not first
