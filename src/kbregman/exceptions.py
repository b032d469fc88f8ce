"""
Exception and warning types raised by K-Bregman.

Configuration and input problems are fatal and raised before any pass over
the data. Numerical problems met while iterating are reported as warnings and
handled locally (the offending point is skipped, the run is penalized).
"""


class KBregmanError(Exception):
    """Base class for all K-Bregman errors."""


class InvalidInputError(KBregmanError, ValueError):
    """Bad configuration or data outside the domain of the chosen divergence."""


class InsufficientDataError(KBregmanError, ValueError):
    """The point collection holds no usable points."""


class ClusteringFailedError(KBregmanError, RuntimeError):
    """Every clustering run terminated without a single center."""


class InsufficientDataWarning(UserWarning):
    """Fewer distinct points than requested clusters; fewer centers returned."""


class NumericalInstabilityWarning(RuntimeWarning):
    """A divergence evaluated to a non-finite value and the pair was skipped."""
