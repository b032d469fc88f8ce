"""Center update strategies for Bregman clustering."""

from .mean import MeanUpdater, ClusterStatistics

__all__ = ['MeanUpdater', 'ClusterStatistics']
