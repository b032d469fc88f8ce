"""
Itakura-Saito divergence, generated by the Burg entropy.

Defined on the strictly positive orthant, so points are always evaluated
densely.

http://en.wikipedia.org/wiki/Itakura%E2%80%93Saito_distance
"""

from typing import Optional

from torch import Tensor

from .base import BregmanDivergence, LogFunction, GeneralLog


class ItakuraSaitoDivergence(BregmanDivergence):
    """F(v) = -sum_i log v_i, gradF(v)_i = -1 / v_i."""

    name = 'itakura_saito'
    requires_nonnegative = True
    requires_positive = True

    def __init__(self, log: Optional[LogFunction] = None):
        self.log = log if log is not None else GeneralLog()

    def _F(self, v: Tensor) -> Tensor:
        v = v.to_dense() if v.is_sparse else v
        return -self.log.log(v).sum(dim=1)

    def _F_homogeneous(self, v: Tensor, w: Tensor) -> Tensor:
        v = v.to_dense() if v.is_sparse else v
        # -sum log(v_i / w) = d log w - sum log v_i
        return v.shape[1] * self.log.log(w) - self.log.log(v).sum(dim=1)

    def _grad_F(self, v: Tensor) -> Tensor:
        return -1.0 / v

    def _grad_F_homogeneous(self, v: Tensor, w: Tensor) -> Tensor:
        return -w.unsqueeze(1) / v

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(log={self.log!r})"
