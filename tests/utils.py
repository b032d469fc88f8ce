# tests/utils.py
"""
Small, reusable helpers used across the K-Bregman test suite.

Functions:
- sort_rows(x): rows of a 2D tensor in lexicographic order, for comparing center sets.
- assert_rows_close(a, b, atol): same multiset of rows up to tolerance.
- to_sparse(x): dense 2D tensor to a coalesced sparse COO tensor.
- weighted_cost(distance, points, weights, center): sum_i w_i D(x_i, c) by brute force.
- time_block(label): context manager that prints wall-clock time.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Optional

import torch
from torch import Tensor


def sort_rows(x: Tensor) -> Tensor:
    """Lexicographically sorted copy of the rows of ``x``."""
    x = x.detach().cpu().to(torch.float64)
    order = list(range(x.shape[0]))
    order.sort(key=lambda i: tuple(x[i].tolist()))
    return x[order]


def assert_rows_close(a: Tensor, b: Tensor, atol: float = 1e-5) -> None:
    assert a.shape == b.shape, f"shape mismatch: {tuple(a.shape)} vs {tuple(b.shape)}"
    sa, sb = sort_rows(a), sort_rows(b)
    assert torch.allclose(sa, sb, atol=atol), f"rows differ:\n{sa}\nvs\n{sb}"


def to_sparse(x: Tensor) -> Tensor:
    return x.to_sparse().coalesce()


def weighted_cost(distance, points: Tensor, weights: Optional[Tensor], center: Tensor) -> float:
    """Brute-force sum of weight x divergence from every point to one center."""
    if weights is None:
        weights = torch.ones(points.shape[0], dtype=points.dtype)
    reference = distance.divergence.divergence(points, center.expand_as(points))
    return float((weights * reference).sum())


@contextmanager
def time_block(label: str):
    start = time.perf_counter()
    try:
        yield
    finally:
        print(f"[timing] {label}: {time.perf_counter() - start:.3f}s")
