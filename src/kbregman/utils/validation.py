"""
Input validation and preprocessing utilities.

Everything here runs before any pass over the data: malformed configuration
and points outside a divergence's domain raise ``InvalidInputError`` up
front instead of surfacing as NaN costs mid-iteration.
"""

from typing import Any, Optional, Union

import numpy as np
import torch
from torch import Tensor

from ..base.data_structures import PointBatch
from ..exceptions import InvalidInputError


def validate_data(X: Union[PointBatch, Tensor, np.ndarray, list],
                  sample_weight: Optional[Union[Tensor, np.ndarray, list]] = None,
                  dtype: torch.dtype = torch.float64,
                  device: Optional[torch.device] = None,
                  ensure_finite: bool = True,
                  ensure_min_samples: int = 0) -> PointBatch:
    """Validate input data and convert it to a ``PointBatch``.

    Args:
        X: Points as a (n, d) dense or sparse COO tensor, numpy array, nested
            list, or an existing ``PointBatch`` (homogeneous coordinates)
        sample_weight: Optional (n,) positive multiplicities of the points
        dtype: Target data type
        device: Target device
        ensure_finite: Whether to check for inf/nan
        ensure_min_samples: Minimum number of points required

    Returns:
        Batch in homogeneous coordinates

    Raises:
        InvalidInputError: If validation fails
    """
    if isinstance(X, PointBatch):
        if sample_weight is not None:
            raise InvalidInputError("sample_weight cannot be combined with a PointBatch; "
                                    "its weights are already part of the batch")
        values = X.values.to(dtype=dtype, device=device)
        weights = _check_weights(X.weights.to(dtype=dtype, device=device), values.shape[0])
        batch = PointBatch(values, weights)
        _check_shape(batch.values, ensure_finite, ensure_min_samples)
        return batch

    if isinstance(X, Tensor):
        values = X.to(dtype=dtype, device=device)
    elif isinstance(X, np.ndarray):
        values = torch.from_numpy(np.asarray(X, dtype=np.float64)).to(dtype=dtype, device=device)
    elif isinstance(X, (list, tuple)):
        try:
            values = torch.tensor(X, dtype=dtype, device=device)
        except (TypeError, ValueError) as e:
            raise InvalidInputError(f"Cannot convert input to a tensor: {e}") from e
    else:
        raise InvalidInputError(f"Cannot convert {type(X)} to tensor")

    if values.dim() == 1 and not values.is_sparse:
        values = values.unsqueeze(1)
    _check_shape(values, ensure_finite, ensure_min_samples)

    weights = validate_sample_weight(sample_weight, values.shape[0], dtype=dtype, device=device)
    return PointBatch.from_inhomogeneous(values, weights)


def _check_shape(values: Tensor, ensure_finite: bool, ensure_min_samples: int) -> None:
    if values.dim() != 2:
        raise InvalidInputError(f"Expected 2D array, got {values.dim()}D")

    n_samples, n_features = values.shape
    if n_samples < ensure_min_samples:
        raise InvalidInputError(f"Found {n_samples} samples, but need at least "
                                f"{ensure_min_samples}")
    if n_features < 1:
        raise InvalidInputError("Points must have at least one component")

    if ensure_finite:
        entries = values.coalesce().values() if values.is_sparse else values
        if torch.isnan(entries).any():
            raise InvalidInputError("Input contains NaN values")
        if torch.isinf(entries).any():
            raise InvalidInputError("Input contains infinite values")


def validate_sample_weight(sample_weight: Optional[Union[Tensor, np.ndarray, list]],
                           n_samples: int,
                           dtype: torch.dtype = torch.float64,
                           device: Optional[torch.device] = None) -> Optional[Tensor]:
    """Validate point multiplicities.

    Args:
        sample_weight: Multiplicities or None
        n_samples: Number of points

    Returns:
        Validated weight tensor or None
    """
    if sample_weight is None:
        return None

    if isinstance(sample_weight, np.ndarray):
        sample_weight = torch.from_numpy(np.asarray(sample_weight, dtype=np.float64))
    elif not isinstance(sample_weight, Tensor):
        sample_weight = torch.tensor(sample_weight, dtype=dtype)
    sample_weight = sample_weight.to(dtype=dtype, device=device)

    if sample_weight.dim() != 1:
        raise InvalidInputError(f"Sample weights must be 1D, got {sample_weight.dim()}D")
    return _check_weights(sample_weight, n_samples)


def _check_weights(weights: Tensor, n_samples: int) -> Tensor:
    if len(weights) != n_samples:
        raise InvalidInputError(f"Expected {n_samples} weights, got {len(weights)}")
    if not torch.isfinite(weights).all():
        raise InvalidInputError("Sample weights must be finite")
    # A zero weight has no inhomogeneous point
    if (weights <= 0).any():
        raise InvalidInputError("Sample weights must be positive")
    return weights


def domain_violation(batch: PointBatch, divergence) -> Optional[str]:
    """Describe the first way ``batch`` leaves the domain of ``divergence``, if any.

    Weights are positive, so the sign of a homogeneous component is the sign
    of the point's component.
    """
    values = batch.values
    entries = values.coalesce().values() if batch.is_sparse else values
    name = divergence.name

    if divergence.requires_nonnegative and bool((entries < 0).any()):
        return f"{name} requires non-negative components"

    if divergence.requires_positive:
        if bool((entries <= 0).any()):
            return f"{name} requires strictly positive components"
        if batch.is_sparse and entries.numel() < batch.n_points * batch.dimension:
            return f"{name} requires strictly positive components (sparse input has zeros)"

    if divergence.requires_simplex and batch.n_points > 0:
        if bool((batch.row_sum() <= 0).any()):
            return f"{name} requires every point to have a positive total mass"

    if divergence.requires_unit_interval and batch.n_points > 0:
        first = values.index_select(1, torch.tensor([0], device=batch.device))
        first = (first.to_dense() if first.is_sparse else first).squeeze(1) / batch.weights
        if bool(((first <= 0) | (first >= 1)).any()):
            return f"{name} requires the first component to lie in (0, 1)"

    return None


def validate_domain(points, divergence) -> None:
    """Raise ``InvalidInputError`` if any point is outside the divergence's domain.

    Args:
        points: A ``PointBatch`` or a ``PointCollection`` of batches
        divergence: ``BregmanDivergence`` whose domain flags are checked
    """
    if isinstance(points, PointBatch):
        messages = [domain_violation(points, divergence)]
    else:
        messages = points.map_partitions(
            lambda batch: [domain_violation(batch, divergence)]
        ).collect()

    for message in messages:
        if message is not None:
            raise InvalidInputError(message)


def check_n_clusters(n_clusters: Any) -> int:
    """Validate number of clusters k.

    k may exceed the number of distinct points; seeding then returns fewer
    centers.
    """
    return check_positive_int(n_clusters, 'n_clusters')


def check_positive_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise InvalidInputError(f"{name} must be int, got {type(value).__name__}")
    if value <= 0:
        raise InvalidInputError(f"{name} must be positive, got {value}")
    return int(value)


def check_non_negative_float(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, np.floating, np.integer)):
        raise InvalidInputError(f"{name} must be a number, got {type(value).__name__}")
    if not np.isfinite(value) or value < 0:
        raise InvalidInputError(f"{name} must be a non-negative finite number, got {value}")
    return float(value)


def check_random_state(random_state: Optional[Union[int, np.integer, torch.Generator]]) -> int:
    """Resolve a random state to an integer base seed.

    Args:
        random_state: Seed, torch Generator, or None for fresh OS entropy

    Returns:
        Non-negative integer seed
    """
    if random_state is None:
        return int(np.random.SeedSequence().generate_state(1)[0])
    elif isinstance(random_state, (int, np.integer)) and not isinstance(random_state, bool):
        if random_state < 0:
            raise InvalidInputError(f"random_state must be non-negative, got {random_state}")
        return int(random_state)
    elif isinstance(random_state, torch.Generator):
        return int(random_state.initial_seed())
    else:
        raise InvalidInputError(f"random_state must be int or Generator, got {type(random_state)}")


def derive_seed(base: int, *keys: int) -> int:
    """Independent child seed for ``(base, *keys)``, e.g. (seed, run, round, partition)."""
    return int(np.random.SeedSequence([base, *keys]).generate_state(1)[0])


def make_generator(seed: int) -> torch.Generator:
    """CPU torch generator seeded with ``seed``."""
    generator = torch.Generator()
    generator.manual_seed(seed)
    return generator
