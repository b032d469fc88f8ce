"""
Entropy-based divergences: Kullback-Leibler on the simplex, generalized KL
and the I-divergence.

All three are generated by x log x up to a linear term, so they induce the
same distance between points; they differ in the value of F and in the domain
they accept. Each is parameterized by a logarithm: ``GeneralLog`` for real
valued data, ``DiscreteLog`` (log 0 = 0) for counts.

http://en.wikipedia.org/wiki/Kullback%E2%80%93Leibler_divergence
"""

from typing import Optional

from torch import Tensor

from .base import BregmanDivergence, LogFunction, GeneralLog
from ..base.data_structures import row_sum


class KullbackLeiblerSimplexDivergence(BregmanDivergence):
    """KL divergence for points on the simplex of R+^n.

    F(v) = sum_i v_i log v_i, gradF(v) = 1 + log v. On the simplex the linear
    terms of the generalized form cancel, which this generator exploits.
    """

    name = 'kl_simplex'
    requires_nonnegative = True
    requires_simplex = True
    supports_sparse = True

    def __init__(self, log: Optional[LogFunction] = None):
        self.log = log if log is not None else GeneralLog()

    def _F(self, v: Tensor) -> Tensor:
        return row_sum(v, self.log.xlogx)

    def _F_homogeneous(self, v: Tensor, w: Tensor) -> Tensor:
        # sum (v_i / w) log(v_i / w) = (sum v_i log v_i - log w sum v_i) / w
        return (row_sum(v, self.log.xlogx) - self.log.log(w) * row_sum(v)) / w

    def _grad_F(self, v: Tensor) -> Tensor:
        return 1.0 + self.log.log(v)

    def _grad_F_homogeneous(self, v: Tensor, w: Tensor) -> Tensor:
        return (1.0 - self.log.log(w)).unsqueeze(1) + self.log.log(v)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(log={self.log!r})"


class GeneralizedKLDivergence(BregmanDivergence):
    """Generalized KL divergence on R+^n, no simplex assumption.

    F(v) = sum_i v_i (log v_i - 1), gradF(v) = log v, giving
    D(x, y) = sum x log(x / y) - x + y.
    """

    name = 'generalized_kl'
    requires_nonnegative = True
    supports_sparse = True

    def __init__(self, log: Optional[LogFunction] = None):
        self.log = log if log is not None else GeneralLog()

    def _F(self, v: Tensor) -> Tensor:
        return row_sum(v, self.log.xlogx) - row_sum(v)

    def _F_homogeneous(self, v: Tensor, w: Tensor) -> Tensor:
        total = row_sum(v)
        return (row_sum(v, self.log.xlogx) - (self.log.log(w) + 1.0) * total) / w

    def _grad_F(self, v: Tensor) -> Tensor:
        return self.log.log(v)

    def _grad_F_homogeneous(self, v: Tensor, w: Tensor) -> Tensor:
        return self.log.log(v) - self.log.log(w).unsqueeze(1)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(log={self.log!r})"


class GeneralizedIDivergence(KullbackLeiblerSimplexDivergence):
    """Csiszar's I-divergence on the full non-negative orthant.

    Uses the generator sum v_i log v_i with its true gradient 1 + log v; unlike
    the simplex form, rows are not required to carry a positive total.
    """

    name = 'i_divergence'
    requires_simplex = False
