# tests/test_point_batch.py
"""
Homogeneous-coordinate point batches.

Covers:
- construction from inhomogeneous points with multiplicities
- capability interface shared by dense and sparse storage
- row selection keeps cached F values
- per-label scatter sums (label -1 ignored)
- distinct(), split(), concat()
"""

from __future__ import annotations

import pytest
import torch

from kbregman.base.data_structures import PointBatch, BregmanPointBatch, RunResult, RunState

from utils import to_sparse


@pytest.fixture
def dense_points():
    return torch.tensor([
        [1.0, 0.0, 2.0],
        [0.0, 3.0, 0.0],
        [4.0, 5.0, 6.0],
        [1.0, 0.0, 2.0],
    ], dtype=torch.float64)


@pytest.fixture(params=["dense", "sparse"])
def batch(request, dense_points):
    weights = torch.tensor([1.0, 2.0, 0.5, 1.0], dtype=torch.float64)
    values = dense_points if request.param == "dense" else to_sparse(dense_points)
    return PointBatch.from_inhomogeneous(values, weights)


def test_from_inhomogeneous_scales_rows(batch, dense_points):
    assert batch.n_points == 4
    assert len(batch) == 4
    assert batch.dimension == 3
    assert torch.allclose(batch.inhomogeneous(), dense_points)
    assert torch.allclose(batch.to_dense()[1], torch.tensor([0.0, 6.0, 0.0], dtype=torch.float64))


def test_element_access(batch):
    columns, values = batch.nonzero_entries(2)
    assert sorted(columns.tolist()) == [0, 1, 2]
    assert batch.component(1, 1) == pytest.approx(6.0)
    assert batch.component(1, 0) == 0.0
    assert sorted(values.tolist()) == pytest.approx([2.0, 2.5, 3.0])


def test_row_sum_and_matmul(batch):
    assert torch.allclose(batch.row_sum(), torch.tensor([3.0, 6.0, 7.5, 3.0], dtype=torch.float64))
    other = torch.tensor([[1.0], [1.0], [1.0]], dtype=torch.float64)
    assert torch.allclose(batch.matmul(other).squeeze(1), batch.row_sum())
    support = batch.support_matmul(other).squeeze(1)
    assert support.tolist() == [2.0, 1.0, 3.0, 2.0]


def test_scatter_sum_ignores_unassigned(batch):
    labels = torch.tensor([0, 1, -1, 0])
    sums, weights = batch.scatter_sum(labels, 2)
    assert torch.allclose(sums, torch.tensor([[2.0, 0.0, 4.0], [0.0, 6.0, 0.0]], dtype=torch.float64))
    assert weights.tolist() == [2.0, 2.0]


def test_distinct_finds_first_occurrences(batch):
    assert batch.distinct().tolist() == [0, 1, 2]


def test_distinct_compares_inhomogeneous_points():
    values = torch.tensor([[1.0, 2.0], [2.0, 4.0]], dtype=torch.float64)
    batch = PointBatch(values, torch.tensor([1.0, 2.0], dtype=torch.float64))
    assert batch.distinct().tolist() == [0]


@pytest.mark.parametrize("sparse", [False, True])
def test_distinct_keeps_first_of_interleaved_repeats(sparse):
    rows = torch.tensor([[0.0, 1.0], [2.0, 0.0], [0.0, 0.0]], dtype=torch.float64)
    order = torch.tensor([1, 0, 1, 2, 0, 2, 1])
    values = rows[order]
    batch = PointBatch(to_sparse(values) if sparse else values)
    assert batch.distinct().tolist() == [0, 1, 3]


def test_sparse_distinct_agrees_with_dense_in_high_dimension():
    generator = torch.Generator().manual_seed(3)
    base = torch.zeros(5, 10000, dtype=torch.float64)
    columns = torch.randint(10000, (5, 4), generator=generator)
    base.scatter_(1, columns, torch.rand(5, 4, generator=generator, dtype=torch.float64) + 0.1)
    values = base[torch.randint(5, (300,), generator=generator)]
    # powers of two keep v * w / w exact
    scales = torch.tensor([0.5, 1.0, 2.0, 4.0], dtype=torch.float64)
    weights = scales[torch.randint(4, (300,), generator=generator)]

    dense = PointBatch.from_inhomogeneous(values, weights)
    sparse = PointBatch.from_inhomogeneous(to_sparse(values), weights)
    assert sparse.distinct().tolist() == dense.distinct().tolist()
    assert len(sparse.distinct()) == len(torch.unique(values, dim=0))


def test_split_and_concat_roundtrip(batch):
    parts = batch.split(3)
    assert [p.n_points for p in parts] == [1, 2, 1]
    assert all(p.is_sparse == batch.is_sparse for p in parts)
    joined = PointBatch.concat(parts)
    assert torch.allclose(joined.to_dense(), batch.to_dense())
    assert torch.equal(joined.weights, batch.weights)


def test_split_never_creates_empty_parts(batch):
    parts = batch.split(10)
    assert len(parts) == 4
    assert all(p.n_points == 1 for p in parts)


def test_select_keeps_cached_f_values(dense_points):
    cached = BregmanPointBatch(dense_points, torch.ones(4, dtype=torch.float64),
                               torch.tensor([10.0, 20.0, 30.0, 40.0], dtype=torch.float64))
    picked = cached.select(torch.tensor([2, 0]))
    assert isinstance(picked, BregmanPointBatch)
    assert picked.f_values.tolist() == [30.0, 10.0]

    joined = PointBatch.concat([picked, cached.select(torch.tensor([3]))])
    assert isinstance(joined, BregmanPointBatch)
    assert joined.f_values.tolist() == [30.0, 10.0, 40.0]


def test_rows_iterates_single_row_batches(batch):
    rows = list(batch.rows())
    assert len(rows) == 4
    assert all(r.n_points == 1 for r in rows)
    assert rows[1].weights.item() == 2.0


def test_shape_checks():
    with pytest.raises(ValueError):
        PointBatch(torch.ones(3, dtype=torch.float64))
    with pytest.raises(ValueError):
        PointBatch(torch.ones(3, 2, dtype=torch.float64), torch.ones(2, dtype=torch.float64))


def test_run_result_ordering():
    from kbregman.distances import create_distance
    from kbregman.representations import CenterSet

    centers = CenterSet(torch.ones(1, 2, dtype=torch.float64), torch.ones(1, dtype=torch.float64),
                        create_distance('EUCLIDEAN'))
    cheap_but_skipping = RunResult(run=0, centers=centers, cost=1.0, n_skipped=3, n_iter=1,
                                   state=RunState.CONVERGED)
    expensive = RunResult(run=1, centers=centers, cost=5.0, n_skipped=0, n_iter=1,
                          state=RunState.CONVERGED)
    tie = RunResult(run=2, centers=centers, cost=5.0, n_skipped=0, n_iter=1,
                    state=RunState.ITERATION_LIMIT_REACHED)
    best = min([cheap_but_skipping, expensive, tie], key=RunResult.sort_key)
    assert best.run == 1
    assert RunState.FAILED.is_terminal and not RunState.ASSIGNING.is_terminal
