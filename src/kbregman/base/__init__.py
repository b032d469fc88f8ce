"""Base classes and interfaces for K-Bregman clustering."""

from .interfaces import (
    PointCollection,
    DistanceMetric,
    AssignmentStrategy,
    ParameterUpdater,
    InitializationStrategy,
    ConvergenceCriterion
)

from .data_structures import (
    PointBatch,
    BregmanPointBatch,
    RunState,
    IterationRecord,
    RunResult
)

from .clustering_base import BaseClusteringAlgorithm

__all__ = [
    # Interfaces
    'PointCollection',
    'DistanceMetric',
    'AssignmentStrategy',
    'ParameterUpdater',
    'InitializationStrategy',
    'ConvergenceCriterion',

    # Data structures
    'PointBatch',
    'BregmanPointBatch',
    'RunState',
    'IterationRecord',
    'RunResult',

    # Base algorithm
    'BaseClusteringAlgorithm'
]
