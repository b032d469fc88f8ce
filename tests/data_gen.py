# tests/data_gen.py
"""
Tiny synthetic-data generators reused across the K-Bregman test suite.

    >>> X = make_single_cluster()
    >>> X.shape
    torch.Size([3, 3])
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
import torch
from torch import Tensor


def make_single_cluster(repeat: int = 1) -> Tensor:
    """Three points whose mean is (1, 3, 4), optionally repeated."""
    points = torch.tensor([
        [1.0, 2.0, 6.0],
        [1.0, 3.0, 0.0],
        [1.0, 4.0, 6.0],
    ], dtype=torch.float64)
    return points.repeat(repeat, 1)


def make_sparse_single_cluster(dimension: int = 10000, n_groups: int = 100) -> Tensor:
    """Sparse points in a ``dimension``-dimensional space with mean (1, 3, 4, 0, ...).

    Each group contributes six points perturbed symmetrically by x = i / 1000
    around the three base points, so the perturbations cancel in the mean.
    """
    rows, cols, vals = [], [], []
    row = 0
    for i in range(1, n_groups + 1):
        x = i / 1000.0
        for entries in (
            [(0, 1.0 + x), (1, 2.0), (2, 6.0)],
            [(0, 1.0 - x), (1, 2.0), (2, 6.0)],
            [(0, 1.0), (1, 3.0 + x)],
            [(0, 1.0), (1, 3.0 - x)],
            [(0, 1.0), (1, 4.0), (2, 6.0 + x)],
            [(0, 1.0), (1, 4.0), (2, 6.0 - x)],
        ):
            for col, val in entries:
                rows.append(row)
                cols.append(col)
                vals.append(val)
            row += 1
    return torch.sparse_coo_tensor(
        torch.tensor([rows, cols]), torch.tensor(vals, dtype=torch.float64), (row, dimension)
    ).coalesce()


def make_two_clusters() -> Tensor:
    """Three points near (0, 0) followed by three points near (9, 0)."""
    return torch.tensor([
        [0.0, 0.0],
        [0.0, 0.1],
        [0.1, 0.0],
        [9.0, 0.0],
        [9.0, 0.2],
        [9.2, 0.0],
    ], dtype=torch.float64)


def make_blobs(n_per: int = 50, centers: Optional[np.ndarray] = None, scale: float = 0.1,
               seed: Optional[int] = None, positive: bool = False) -> Tuple[Tensor, Tensor]:
    """Isotropic Gaussian blobs.

    Parameters
    ----------
    n_per : int
        Points per blob.
    centers : (k, d) array, optional
        Blob means; defaults to three well-separated means in R^2.
    scale : float
        Standard deviation of the noise.
    seed : int, optional
        RNG seed.
    positive : bool
        Take absolute values so the data fits non-negative domains.

    Returns
    -------
    X : (k * n_per, d) float64 tensor
    y : (k * n_per,) long tensor of blob indices
    """
    rng = np.random.default_rng(seed)
    if centers is None:
        centers = np.array([[1.0, 1.0], [6.0, 1.0], [1.0, 6.0]])
    blocks = [rng.normal(loc=c, scale=scale, size=(n_per, centers.shape[1])) for c in centers]
    X = np.vstack(blocks)
    if positive:
        X = np.abs(X)
    y = np.repeat(np.arange(len(centers)), n_per)
    return torch.from_numpy(X), torch.from_numpy(y)


def make_domain_points(name: str, n: int = 40, d: int = 4, seed: Optional[int] = None) -> Tensor:
    """Random points inside the domain of the named distance function."""
    rng = np.random.default_rng(seed)
    X = rng.uniform(0.2, 2.0, size=(n, d))
    if name == 'LOGISTIC_LOSS':
        X[:, 0] = rng.uniform(0.1, 0.9, size=n)
    return torch.from_numpy(X)
