# tests/test_lloyd.py
"""
Lloyd refinement: assignment, mean update and run termination.

Covers:
- the weighted mean minimizes the within-cluster cost for every distance
- ties go to the lowest center index
- empty clusters are dropped, unassignable points are skipped and reported
- terminal states (CONVERGED, ITERATION_LIMIT_REACHED, FAILED)
- several runs in one pass agree with the same runs done one by one
"""

from __future__ import annotations

import pytest
import torch

from kbregman.algorithms.lloyd import LloydIteration
from kbregman.assignments.hard import HardAssignment
from kbregman.base.data_structures import PointBatch, RunState
from kbregman.collection import LocalCollection
from kbregman.distances import DistanceFunction, create_distance
from kbregman.exceptions import InsufficientDataError, NumericalInstabilityWarning
from kbregman.representations import CenterSet
from kbregman.updates.mean import ClusterStatistics, MeanUpdater
from kbregman.utils.convergence import CenterMovement

from data_gen import make_domain_points, make_two_clusters
from utils import assert_rows_close, weighted_cost


def _collection(X, distance, n_partitions=2, weights=None):
    collection = LocalCollection.parallelize(X, n_partitions=n_partitions, weights=weights)
    return collection.map_partitions(distance.prepare).cache()


def _centers(rows, distance):
    return CenterSet.from_batch(PointBatch(torch.tensor(rows, dtype=torch.float64)), distance)


@pytest.mark.parametrize("name", [member.value for member in DistanceFunction])
def test_weighted_mean_minimizes_cluster_cost(name, seed_all):
    distance = create_distance(name, smoothing=0.0)
    X = make_domain_points(name, n=25, d=3, seed=seed_all)
    weights = torch.rand(25, dtype=torch.float64) + 0.5
    batch = distance.prepare(PointBatch.from_inhomogeneous(X, weights))

    updater = MeanUpdater()
    stats = updater.accumulate(batch, torch.zeros(25, dtype=torch.long), 1)
    center = updater.update(stats, distance).points[0]

    expected = (weights.unsqueeze(1) * X).sum(dim=0) / weights.sum()
    assert torch.allclose(center, expected, atol=1e-12)

    best = weighted_cost(distance, X, weights, center)
    for j in range(3):
        for step in (-1e-3, 1e-3):
            moved = center.clone()
            moved[j] += step
            assert weighted_cost(distance, X, weights, moved) >= best - 1e-10


def test_statistics_merge_across_partitions():
    distance = create_distance("EUCLIDEAN")
    X = make_two_clusters()
    labels = torch.tensor([0, 0, 0, 1, 1, 1])
    whole = distance.prepare(PointBatch(X))
    updater = MeanUpdater()

    full = updater.accumulate(whole, labels, 2)
    left = updater.accumulate(whole.select(torch.arange(0, 4)), labels[:4], 2)
    right = updater.accumulate(whole.select(torch.arange(4, 6)), labels[4:], 2)
    merged = left.merge(right)

    assert isinstance(merged, ClusterStatistics)
    assert torch.allclose(merged.sums, full.sums)
    assert torch.allclose(merged.weights, full.weights)


def test_ties_go_to_lowest_center_index():
    distance = create_distance("EUCLIDEAN")
    batch = distance.prepare(PointBatch(torch.tensor([[1.0], [1.0]], dtype=torch.float64)))
    labels, min_distances = HardAssignment().compute_assignments(
        batch, _centers([[0.0], [2.0]], distance), distance
    )
    assert labels.tolist() == [0, 0]
    assert torch.allclose(min_distances, torch.ones(2, dtype=torch.float64))


def test_assignment_without_centers():
    distance = create_distance("EUCLIDEAN")
    batch = distance.prepare(PointBatch(torch.ones(3, 2, dtype=torch.float64)))
    labels, min_distances = HardAssignment().compute_assignments(
        batch, CenterSet.empty(2, distance), distance
    )
    assert labels.tolist() == [-1, -1, -1]
    assert torch.isinf(min_distances).all()


def test_lloyd_reaches_cluster_means():
    distance = create_distance("EUCLIDEAN")
    X = make_two_clusters()
    points = _collection(X, distance)
    (result,) = LloydIteration(max_iter=10).run(points, [_centers([[0.0, 0.0], [0.1, 0.0]], distance)],
                                               distance)
    expected = torch.stack([X[:3].mean(dim=0), X[3:].mean(dim=0)])
    assert_rows_close(result.centers.points, expected, atol=1e-12)
    assert result.state is RunState.CONVERGED
    assert result.n_skipped == 0
    assert result.cost == pytest.approx(weighted_cost(distance, X[:3], None, expected[0])
                                        + weighted_cost(distance, X[3:], None, expected[1]))


def test_history_costs_do_not_increase():
    distance = create_distance("GENERALIZED_I")
    X = make_domain_points("GENERALIZED_I", n=60, d=4, seed=5)
    points = _collection(X, distance, n_partitions=3)
    seeds = CenterSet.from_batch(PointBatch(X[:4]), distance)
    (result,) = LloydIteration(max_iter=15, tol=0.0).run(points, [seeds], distance)

    costs = [record.cost for record in result.history]
    assert len(costs) == result.n_iter
    assert all(b <= a + 1e-9 for a, b in zip(costs, costs[1:]))
    assert result.cost <= costs[-1] + 1e-9


def test_converged_state_when_centers_are_already_optimal():
    distance = create_distance("EUCLIDEAN")
    X = make_two_clusters()
    means = torch.stack([X[:3].mean(dim=0), X[3:].mean(dim=0)])
    (result,) = LloydIteration(max_iter=20).run(
        _collection(X, distance), [CenterSet.from_batch(PointBatch(means), distance)], distance
    )
    assert result.state is RunState.CONVERGED
    assert result.n_iter == 2
    assert result.history[-1].converged


def test_iteration_limit_state():
    distance = create_distance("EUCLIDEAN")
    (result,) = LloydIteration(max_iter=1).run(
        _collection(make_two_clusters(), distance), [_centers([[0.0, 0.0], [9.0, 0.0]], distance)],
        distance
    )
    assert result.state is RunState.ITERATION_LIMIT_REACHED
    assert result.n_iter == 1


def test_center_movement_criterion():
    distance = create_distance("EUCLIDEAN")
    lloyd = LloydIteration(max_iter=20, criterion_factory=lambda: CenterMovement(tol=1e-12))
    (result,) = lloyd.run(_collection(make_two_clusters(), distance),
                          [_centers([[0.0, 0.0], [9.0, 0.0]], distance)], distance)
    assert result.state is RunState.CONVERGED
    assert result.n_iter == 2


def test_empty_cluster_is_dropped():
    distance = create_distance("EUCLIDEAN")
    X = torch.tensor([[0.0], [1.0]], dtype=torch.float64)
    (result,) = LloydIteration(max_iter=1).run(
        _collection(X, distance), [_centers([[0.0], [1.0], [100.0]], distance)], distance
    )
    assert result.centers.n_centers == 2
    assert_rows_close(result.centers.points, X)
    assert result.history[0].n_centers == 2


def test_run_without_assignable_points_fails():
    distance = create_distance("RELATIVE_ENTROPY")
    X = torch.tensor([[1.0, 1.0], [2.0, 1.0]], dtype=torch.float64)
    (result,) = LloydIteration(max_iter=5).run(
        _collection(X, distance, n_partitions=1), [_centers([[1.0, 0.0]], distance)], distance
    )
    assert result.state is RunState.FAILED
    assert result.failed
    assert result.cost == float("inf")


def test_skipped_points_warn_and_count():
    distance = create_distance("RELATIVE_ENTROPY")
    X = torch.tensor([[1.0, 0.0], [2.0, 0.0], [1.0, 1.0]], dtype=torch.float64)
    with pytest.warns(NumericalInstabilityWarning):
        (result,) = LloydIteration(max_iter=5).run(
            _collection(X, distance), [_centers([[1.0, 0.0]], distance)], distance
        )
    assert result.n_skipped == 1
    assert not result.failed
    assert result.history[0].n_skipped == 1


def test_empty_seed_set_fails_without_iterating():
    distance = create_distance("EUCLIDEAN")
    (result,) = LloydIteration().run(_collection(make_two_clusters(), distance),
                                     [CenterSet.empty(2, distance)], distance)
    assert result.state is RunState.FAILED
    assert result.n_iter == 0


def test_statistics_of_an_empty_collection_raise():
    distance = create_distance("EUCLIDEAN")
    with pytest.raises(InsufficientDataError):
        LloydIteration().run(LocalCollection([]), [_centers([[0.0, 0.0]], distance)], distance)


def test_runs_in_one_pass_match_separate_runs():
    distance = create_distance("EUCLIDEAN")
    X = make_domain_points("EUCLIDEAN", n=50, d=2, seed=3)
    points = _collection(X, distance, n_partitions=3)
    seeds = [
        CenterSet.from_batch(PointBatch(X[:2]), distance),
        CenterSet.from_batch(PointBatch(X[10:13]), distance),
        CenterSet.from_batch(PointBatch(X[20:21]), distance),
    ]
    lloyd = LloydIteration(max_iter=8)
    together = lloyd.run(points, seeds, distance, run_ids=[4, 5, 6])
    assert [result.run for result in together] == [4, 5, 6]

    for seed, joint in zip(seeds, together):
        (alone,) = lloyd.run(points, [seed], distance)
        assert torch.allclose(alone.centers.points, joint.centers.points)
        assert alone.cost == pytest.approx(joint.cost)
        assert alone.n_iter == joint.n_iter


def test_weighted_points_pull_the_mean():
    distance = create_distance("EUCLIDEAN")
    X = torch.tensor([[0.0], [10.0]], dtype=torch.float64)
    weights = torch.tensor([3.0, 1.0], dtype=torch.float64)
    (result,) = LloydIteration(max_iter=3).run(
        _collection(X, distance, weights=weights), [_centers([[5.0]], distance)], distance
    )
    assert result.centers.points[0, 0].item() == pytest.approx(2.5)
    assert result.centers.weights[0].item() == pytest.approx(4.0)
