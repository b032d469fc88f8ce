"""Seeding strategies for Bregman clustering."""

from .random import RandomInit
from .kmeans_parallel import KMeansParallelInit
from .kmeans_plusplus import LocalKMeansPlusPlus

__all__ = [
    'RandomInit',
    'KMeansParallelInit',
    'LocalKMeansPlusPlus'
]
