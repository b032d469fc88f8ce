"""
K-Bregman: generalized K-means clustering with Bregman divergences.

This package clusters dense or sparse points under any Bregman divergence:
- squared Euclidean distance
- relative entropy (KL on the simplex), generalized KL and I-divergence
- logistic loss
- Itakura-Saito

Seeding is uniform random or K-means||, refinement is Lloyd's algorithm with
the weighted mean as center update, and several independent runs are
compared to keep the cheapest model.

Example usage:
    >>> import torch
    >>> from kbregman import KMeans, SPARSE_SMOOTHED_KL
    >>>
    >>> # Non-negative data, e.g. term counts
    >>> X = torch.rand(1000, 50)
    >>>
    >>> # Fit with 3 runs
    >>> kmeans = KMeans(n_clusters=5, runs=3, distance_function=SPARSE_SMOOTHED_KL, verbose=1)
    >>> kmeans.fit(X)
    >>>
    >>> # Get cluster assignments
    >>> labels = kmeans.predict(X)
"""

__version__ = '0.1.0'

# Main algorithms
from .algorithms.kmeans import KMeans, BregmanKMeansModel, train, RANDOM, K_MEANS_PARALLEL
from .algorithms.lloyd import LloydIteration

# Distances
from .distances import (
    BregmanDistance,
    DistanceFunction,
    create_distance,
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

# Convenience imports
from .base import PointBatch, PointCollection, RunResult, RunState
from .collection import LocalCollection
from .representations import CenterSet
from .exceptions import (
    KBregmanError,
    InvalidInputError,
    InsufficientDataError,
    ClusteringFailedError,
    InsufficientDataWarning,
    NumericalInstabilityWarning
)

__all__ = [
    # Algorithms
    'KMeans',
    'BregmanKMeansModel',
    'LloydIteration',
    'train',
    'RANDOM',
    'K_MEANS_PARALLEL',

    # Distances
    'BregmanDistance',
    'DistanceFunction',
    'create_distance',
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
    'ITAKURA_SAITO',

    # Core data structures
    'PointBatch',
    'PointCollection',
    'LocalCollection',
    'CenterSet',
    'RunResult',
    'RunState',

    # Errors
    'KBregmanError',
    'InvalidInputError',
    'InsufficientDataError',
    'ClusteringFailedError',
    'InsufficientDataWarning',
    'NumericalInstabilityWarning',

    # Version
    '__version__'
]
