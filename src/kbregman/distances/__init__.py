"""Distances induced by Bregman divergences."""

from .bregman import BregmanDistance
from .registry import (
    DistanceFunction,
    create_distance,
    resolve_distance_name,
    DEFAULT_SMOOTHING,
    EUCLIDEAN,
    SPARSE_EUCLIDEAN,
    RELATIVE_ENTROPY,
    DISCRETE_KL,
    SPARSE_DISCRETE_KL,
    SPARSE_SMOOTHED_KL,
    GENERALIZED_KL,
    DISCRETE_GENERALIZED_KL,
    GENERALIZED_I,
    LOGISTIC_LOSS,
    ITAKURA_SAITO
)

__all__ = [
    'BregmanDistance',
    'DistanceFunction',
    'create_distance',
    'resolve_distance_name',
    'DEFAULT_SMOOTHING',

    # Names
    'EUCLIDEAN',
    'SPARSE_EUCLIDEAN',
    'RELATIVE_ENTROPY',
    'DISCRETE_KL',
    'SPARSE_DISCRETE_KL',
    'SPARSE_SMOOTHED_KL',
    'GENERALIZED_KL',
    'DISCRETE_GENERALIZED_KL',
    'GENERALIZED_I',
    'LOGISTIC_LOSS',
    'ITAKURA_SAITO'
]
