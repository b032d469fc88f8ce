"""Clustering algorithm implementations."""

from .lloyd import LloydIteration
from .kmeans import KMeans, BregmanKMeansModel, train, RANDOM, K_MEANS_PARALLEL

__all__ = [
    'LloydIteration',
    'KMeans',
    'BregmanKMeansModel',
    'train',
    'RANDOM',
    'K_MEANS_PARALLEL'
]
