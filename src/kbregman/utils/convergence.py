"""
Convergence criteria for Lloyd iterations.

Each run of a multi-run clustering owns its own criterion instance; the
iteration loop feeds it a state dictionary after every center update:
- ``iteration``: index of the iteration just finished
- ``objective``: weighted cost of the run's points against the centers used
  for assignment
- ``centers`` / ``previous_centers``: ``CenterSet`` snapshots after and
  before the update
"""

from typing import Dict, Any, List

from ..base.interfaces import ConvergenceCriterion


class ChangeInObjective(ConvergenceCriterion):
    """Converged once the cost stops improving by more than a relative tolerance."""

    def __init__(self, rel_tol: float = 1e-4, abs_tol: float = 1e-12,
                 patience: int = 1):
        """
        Args:
            rel_tol: Relative tolerance for the cost change
            abs_tol: Absolute tolerance, used when the previous cost is ~0
            patience: Number of consecutive stable iterations required
        """
        super().__init__()
        self.rel_tol = rel_tol
        self.abs_tol = abs_tol
        self.patience = patience
        self._prev_objective = None
        self._stable_count = 0

    def check(self, current_state: Dict[str, Any]) -> bool:
        objective = current_state['objective']

        if self._prev_objective is None:
            self._prev_objective = objective
            return False

        abs_change = abs(self._prev_objective - objective)
        scale = abs(self._prev_objective)
        rel_change = abs_change / scale if scale > self.abs_tol else abs_change

        self.history.append({
            'iteration': current_state.get('iteration', len(self.history)),
            'objective': objective,
            'abs_change': abs_change,
            'rel_change': rel_change
        })

        if abs_change <= self.abs_tol or rel_change <= self.rel_tol:
            self._stable_count += 1
        else:
            self._stable_count = 0
        self._prev_objective = objective

        return self._stable_count >= self.patience

    def reset(self):
        super().reset()
        self._prev_objective = None
        self._stable_count = 0


class CenterMovement(ConvergenceCriterion):
    """Converged when no center moved farther than ``tol``.

    Movement is the Bregman distance from the previous center to the new
    one. Dropping a center counts as movement.
    """

    def __init__(self, tol: float = 1e-8):
        super().__init__()
        self.tol = tol

    def check(self, current_state: Dict[str, Any]) -> bool:
        centers = current_state['centers']
        previous = current_state.get('previous_centers')
        if previous is None or previous.n_centers != centers.n_centers:
            self.history.append({
                'iteration': current_state.get('iteration', len(self.history)),
                'max_movement': float('inf')
            })
            return False

        distance = centers.distance
        movements = [
            distance.distance(previous.points[i], centers.points[i])
            for i in range(centers.n_centers)
        ]
        max_movement = max(movements) if movements else 0.0

        self.history.append({
            'iteration': current_state.get('iteration', len(self.history)),
            'max_movement': max_movement
        })
        return max_movement <= self.tol


class CombinedCriterion(ConvergenceCriterion):
    """Combine multiple convergence criteria with AND/OR logic."""

    def __init__(self, criteria: List[ConvergenceCriterion], mode: str = 'any'):
        """
        Args:
            criteria: List of convergence criteria
            mode: 'any' (OR) or 'all' (AND)
        """
        super().__init__()
        if mode not in ('any', 'all'):
            raise ValueError(f"Mode must be 'any' or 'all', got {mode}")
        self.criteria = criteria
        self.mode = mode

    def check(self, current_state: Dict[str, Any]) -> bool:
        # Every criterion sees every state, so no short-circuiting
        results = [criterion.check(current_state) for criterion in self.criteria]
        converged = any(results) if self.mode == 'any' else all(results)
        self.history.append({
            'iteration': current_state.get('iteration', len(self.history)),
            'individual_results': results,
            'converged': converged
        })
        return converged

    def reset(self):
        super().reset()
        for criterion in self.criteria:
            criterion.reset()
