"""Utility functions for K-Bregman algorithms."""

from .convergence import (
    ChangeInObjective,
    CenterMovement,
    CombinedCriterion
)

from .validation import (
    validate_data,
    validate_sample_weight,
    validate_domain,
    domain_violation,
    check_n_clusters,
    check_positive_int,
    check_non_negative_float,
    check_random_state,
    derive_seed,
    make_generator
)

from .device import (
    get_default_device,
    parse_device
)

__all__ = [
    # Convergence
    'ChangeInObjective',
    'CenterMovement',
    'CombinedCriterion',

    # Validation
    'validate_data',
    'validate_sample_weight',
    'validate_domain',
    'domain_violation',
    'check_n_clusters',
    'check_positive_int',
    'check_non_negative_float',
    'check_random_state',
    'derive_seed',
    'make_generator',

    # Device
    'get_default_device',
    'parse_device'
]
