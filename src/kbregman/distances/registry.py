"""
Named distance functions.

The set of divergences is closed: configuration selects one of the names
below and ``create_distance`` builds the matching ``BregmanDistance``. The
``SPARSE_*`` names keep sparse input sparse and evaluate F over non-zero
components only.
"""

from enum import Enum
from typing import Optional, Union

from .bregman import BregmanDistance
from ..divergences import (
    SquaredEuclideanDivergence,
    KullbackLeiblerSimplexDivergence,
    GeneralizedKLDivergence,
    GeneralizedIDivergence,
    LogisticLossDivergence,
    ItakuraSaitoDivergence,
    GeneralLog,
    DiscreteLog
)
from ..exceptions import InvalidInputError


DEFAULT_SMOOTHING = 1e-4


class DistanceFunction(str, Enum):
    EUCLIDEAN = 'EUCLIDEAN'
    SPARSE_EUCLIDEAN = 'SPARSE_EUCLIDEAN'
    RELATIVE_ENTROPY = 'RELATIVE_ENTROPY'
    DISCRETE_KL = 'DISCRETE_KL'
    SPARSE_DISCRETE_KL = 'SPARSE_DISCRETE_KL'
    SPARSE_SMOOTHED_KL = 'SPARSE_SMOOTHED_KL'
    GENERALIZED_KL = 'GENERALIZED_KL'
    DISCRETE_GENERALIZED_KL = 'DISCRETE_GENERALIZED_KL'
    GENERALIZED_I = 'GENERALIZED_I'
    LOGISTIC_LOSS = 'LOGISTIC_LOSS'
    ITAKURA_SAITO = 'ITAKURA_SAITO'


EUCLIDEAN = DistanceFunction.EUCLIDEAN.value
SPARSE_EUCLIDEAN = DistanceFunction.SPARSE_EUCLIDEAN.value
RELATIVE_ENTROPY = DistanceFunction.RELATIVE_ENTROPY.value
DISCRETE_KL = DistanceFunction.DISCRETE_KL.value
SPARSE_DISCRETE_KL = DistanceFunction.SPARSE_DISCRETE_KL.value
SPARSE_SMOOTHED_KL = DistanceFunction.SPARSE_SMOOTHED_KL.value
GENERALIZED_KL = DistanceFunction.GENERALIZED_KL.value
DISCRETE_GENERALIZED_KL = DistanceFunction.DISCRETE_GENERALIZED_KL.value
GENERALIZED_I = DistanceFunction.GENERALIZED_I.value
LOGISTIC_LOSS = DistanceFunction.LOGISTIC_LOSS.value
ITAKURA_SAITO = DistanceFunction.ITAKURA_SAITO.value


def resolve_distance_name(name: Union[str, DistanceFunction]) -> DistanceFunction:
    """Map a configuration value to a ``DistanceFunction``."""
    if isinstance(name, DistanceFunction):
        return name
    try:
        return DistanceFunction(str(name).upper())
    except ValueError:
        valid = [member.value for member in DistanceFunction]
        raise InvalidInputError(f"Unknown distance function {name!r}; expected one of {valid}") from None


def create_distance(name: Union[str, DistanceFunction],
                    smoothing: Optional[float] = None) -> BregmanDistance:
    """Build the ``BregmanDistance`` registered under ``name``.

    Args:
        name: Distance function name
        smoothing: Dual smoothing for ``SPARSE_SMOOTHED_KL`` (default 1e-4);
            ignored by the other distances

    Returns:
        Configured distance
    """
    kind = resolve_distance_name(name)

    if kind is DistanceFunction.EUCLIDEAN:
        return BregmanDistance(SquaredEuclideanDivergence(), name=kind.value)
    if kind is DistanceFunction.SPARSE_EUCLIDEAN:
        return BregmanDistance(SquaredEuclideanDivergence(), sparse=True, name=kind.value)
    if kind is DistanceFunction.RELATIVE_ENTROPY:
        return BregmanDistance(KullbackLeiblerSimplexDivergence(GeneralLog()), name=kind.value)
    if kind is DistanceFunction.DISCRETE_KL:
        return BregmanDistance(KullbackLeiblerSimplexDivergence(DiscreteLog()), name=kind.value)
    if kind is DistanceFunction.SPARSE_DISCRETE_KL:
        return BregmanDistance(KullbackLeiblerSimplexDivergence(DiscreteLog()), sparse=True,
                               name=kind.value)
    if kind is DistanceFunction.SPARSE_SMOOTHED_KL:
        return BregmanDistance(
            KullbackLeiblerSimplexDivergence(GeneralLog()), sparse=True,
            smoothing=DEFAULT_SMOOTHING if smoothing is None else smoothing,
            name=kind.value
        )
    if kind is DistanceFunction.GENERALIZED_KL:
        return BregmanDistance(GeneralizedKLDivergence(GeneralLog()), name=kind.value)
    if kind is DistanceFunction.DISCRETE_GENERALIZED_KL:
        return BregmanDistance(GeneralizedKLDivergence(DiscreteLog()), name=kind.value)
    if kind is DistanceFunction.GENERALIZED_I:
        return BregmanDistance(GeneralizedIDivergence(GeneralLog()), name=kind.value)
    if kind is DistanceFunction.LOGISTIC_LOSS:
        return BregmanDistance(LogisticLossDivergence(), name=kind.value)
    return BregmanDistance(ItakuraSaitoDivergence(GeneralLog()), name=kind.value)
