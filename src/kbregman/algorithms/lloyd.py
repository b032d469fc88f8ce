"""
Generalized Lloyd iterations over a point collection.

All active runs advance together: one pass over the data assigns every point
to its nearest center for each run and accumulates the per-cluster sums, then
every run builds its next ``CenterSet`` snapshot from the merged sums. A run
leaves the loop when its cost stops improving, when ``max_iter`` is reached,
or when it is left without centers.
"""

from typing import Callable, List, Optional, Sequence
import time
import warnings

from ..assignments.hard import HardAssignment
from ..base.data_structures import IterationRecord, RunResult, RunState
from ..base.interfaces import (
    AssignmentStrategy, ConvergenceCriterion, ParameterUpdater, PointCollection
)
from ..exceptions import InsufficientDataError, NumericalInstabilityWarning
from ..representations.center import CenterSet
from ..updates.mean import MeanUpdater
from ..utils.convergence import ChangeInObjective


class LloydIteration:
    """Alternating assignment / mean update for several runs at once.

    Args:
        max_iter: Maximum number of iterations per run
        tol: Relative cost tolerance of the default convergence criterion
        assignment_strategy: Defaults to ``HardAssignment``
        update_strategy: Defaults to ``MeanUpdater``
        criterion_factory: Builds one convergence criterion per run; defaults
            to ``ChangeInObjective(rel_tol=tol)``
        verbose: Verbosity level (0=silent, 1=progress, 2=detailed)
    """

    def __init__(self, max_iter: int = 20, tol: float = 1e-4,
                 assignment_strategy: Optional[AssignmentStrategy] = None,
                 update_strategy: Optional[ParameterUpdater] = None,
                 criterion_factory: Optional[Callable[[], ConvergenceCriterion]] = None,
                 verbose: int = 0):
        self.max_iter = max_iter
        self.tol = tol
        self.assignment_strategy = assignment_strategy or HardAssignment()
        self.update_strategy = update_strategy or MeanUpdater()
        self.criterion_factory = criterion_factory or (lambda: ChangeInObjective(rel_tol=tol))
        self.verbose = verbose

    def run(self, points: PointCollection, initial_centers: Sequence[CenterSet],
            distance, run_ids: Optional[Sequence[int]] = None) -> List[RunResult]:
        """Refine every run's centers.

        Args:
            points: Collection of prepared point batches
            initial_centers: One seeded center set per run
            distance: Bregman distance shared by the runs
            run_ids: Run index reported for each run (default 0..R-1)

        Returns:
            One ``RunResult`` per run, in input order
        """
        n_runs = len(initial_centers)
        run_ids = list(run_ids) if run_ids is not None else list(range(n_runs))
        centers = list(initial_centers)
        states = [RunState.SEEDED if c.n_centers > 0 else RunState.FAILED for c in centers]
        criteria = [self.criterion_factory() for _ in range(n_runs)]
        histories: List[List[IterationRecord]] = [[] for _ in range(n_runs)]
        n_iter = [0] * n_runs

        for criterion in criteria:
            criterion.reset()

        for iteration in range(self.max_iter):
            active = [r for r in range(n_runs) if not states[r].is_terminal]
            if not active:
                break

            iter_start_time = time.time()
            for r in active:
                states[r] = RunState.ASSIGNING
            statistics = self._statistics(points, [centers[r] for r in active], distance)

            for r, stats in zip(active, statistics):
                states[r] = RunState.UPDATING
                new_centers = self.update_strategy.update(stats, distance)
                n_iter[r] = iteration + 1
                record = IterationRecord(
                    run=run_ids[r], iteration=iteration, cost=stats.cost,
                    n_centers=new_centers.n_centers, n_skipped=stats.n_skipped
                )
                histories[r].append(record)

                if new_centers.n_centers == 0:
                    # Nothing could be assigned
                    centers[r] = new_centers
                    states[r] = RunState.FAILED
                    if self.verbose:
                        print(f"Run {run_ids[r]}: no assignable points at iteration {iteration}")
                    continue

                record.converged = criteria[r].check({
                    'iteration': iteration,
                    'objective': stats.cost,
                    'centers': new_centers,
                    'previous_centers': centers[r]
                })
                centers[r] = new_centers

                if self.verbose >= 2:
                    print(f"Run {run_ids[r]:2d} iteration {iteration:3d}: cost = {stats.cost:.6f} "
                          f"({new_centers.n_centers} centers, {time.time() - iter_start_time:.3f}s)")

                if record.converged:
                    states[r] = RunState.CONVERGED
                    if self.verbose:
                        print(f"Run {run_ids[r]}: converged at iteration {iteration}")

        for r in range(n_runs):
            if not states[r].is_terminal:
                states[r] = RunState.ITERATION_LIMIT_REACHED

        return self._finalize(points, centers, states, histories, n_iter, run_ids, distance)

    def _statistics(self, points: PointCollection, center_sets: List[CenterSet], distance):
        """Merged per-run cluster statistics against ``center_sets``."""
        assignment = self.assignment_strategy
        updater = self.update_strategy

        def partition_statistics(batch):
            partial = []
            for center_set in center_sets:
                labels, min_distances = assignment.compute_assignments(batch, center_set, distance)
                partial.append(updater.accumulate(batch, labels, center_set.n_centers, min_distances))
            return [partial]

        statistics = points.map_partitions(partition_statistics).aggregate(
            None, _merge_statistics, _merge_statistics
        )
        if statistics is None:
            raise InsufficientDataError("Cannot run Lloyd iterations on an empty collection")
        return statistics

    def _finalize(self, points, centers, states, histories, n_iter, run_ids,
                  distance) -> List[RunResult]:
        """Cost and skipped count of every surviving run against its final centers."""
        survivors = [r for r in range(len(centers)) if states[r] is not RunState.FAILED]
        results = {}

        if survivors:
            total = points.count()
            statistics = self._statistics(points, [centers[r] for r in survivors], distance)
            for r, stats in zip(survivors, statistics):
                state = states[r]
                if stats.n_skipped >= total:
                    state = RunState.FAILED
                elif stats.n_skipped:
                    warnings.warn(
                        f"Run {run_ids[r]}: {stats.n_skipped} points have a non-finite "
                        f"distance to every center and were skipped",
                        NumericalInstabilityWarning
                    )
                results[r] = RunResult(
                    run=run_ids[r], centers=centers[r], cost=stats.cost,
                    n_skipped=stats.n_skipped, n_iter=n_iter[r], state=state,
                    history=histories[r]
                )

        for r in range(len(centers)):
            if r not in results:
                results[r] = RunResult(
                    run=run_ids[r], centers=centers[r], cost=float('inf'),
                    n_skipped=0, n_iter=n_iter[r], state=RunState.FAILED,
                    history=histories[r]
                )
        return [results[r] for r in range(len(centers))]


def _merge_statistics(a, b):
    """Merge two per-run lists of cluster statistics; ``None`` is the empty side."""
    if a is None:
        return b
    if b is None:
        return a
    return [x.merge(y) for x, y in zip(a, b)]
