"""
Base class for clustering estimators in K-Bregman.

Provides the sklearn-style surface (fit / predict / fit_predict,
get_params / set_params) shared by the estimators; subclasses implement
``_fit`` over a ``PointCollection``.
"""

from abc import abstractmethod
import inspect
from typing import Any, Dict, Optional, Union

import numpy as np
import torch
from torch import Tensor

from .interfaces import PointCollection


class BaseClusteringAlgorithm:
    """Base class for estimators fitted on a point collection.

    Args:
        n_clusters: Number of clusters K
        max_iter: Maximum iterations
        tol: Convergence tolerance
        verbose: Verbosity level (0=silent, 1=progress, 2=detailed)
        random_state: Random seed for reproducibility
        device: Torch device (None for auto-detect)
    """

    def __init__(self,
                 n_clusters: int,
                 max_iter: int = 20,
                 tol: float = 1e-4,
                 verbose: int = 0,
                 random_state: Optional[int] = None,
                 device: Optional[Union[str, torch.device]] = None):
        self.n_clusters = n_clusters
        self.max_iter = max_iter
        self.tol = tol
        self.verbose = verbose
        self.random_state = random_state
        self.device = device

        # Algorithm state
        self.fitted_ = False
        self.n_iter_ = 0
        self.history_ = []

    @abstractmethod
    def _fit(self, points: Union[PointCollection, Tensor, np.ndarray],
             sample_weight: Optional[Union[Tensor, np.ndarray]] = None) -> 'BaseClusteringAlgorithm':
        pass

    @abstractmethod
    def predict(self, X):
        pass

    def fit(self, X, y=None, sample_weight=None) -> 'BaseClusteringAlgorithm':
        """Fit the clustering model.

        Args:
            X: (n, d) points (tensor, sparse tensor, array) or a PointCollection
            y: Ignored (for sklearn compatibility)
            sample_weight: Optional (n,) multiplicities of the points

        Returns:
            Self
        """
        return self._fit(X, sample_weight=sample_weight)

    def fit_predict(self, X, y=None, sample_weight=None) -> Tensor:
        """Fit and return the cluster assignments of the training points."""
        self._fit(X, sample_weight=sample_weight)
        return self.labels_

    def _check_fitted(self) -> None:
        if not self.fitted_:
            raise RuntimeError("Model must be fitted before calling predict")

    def get_params(self, deep: bool = True) -> Dict[str, Any]:
        """Get parameters (sklearn compatibility)."""
        names = [
            name for name in inspect.signature(self.__class__.__init__).parameters
            if name != 'self'
        ]
        return {name: getattr(self, name) for name in names}

    def set_params(self, **params) -> 'BaseClusteringAlgorithm':
        """Set parameters (sklearn compatibility)."""
        valid = self.get_params()
        for key, value in params.items():
            if key not in valid:
                raise ValueError(f"Invalid parameter {key!r} for {self.__class__.__name__}")
            setattr(self, key, value)
        return self
