"""
Bregman divergence base class and logarithm implementations.

A Bregman divergence is defined by a convex function F and its gradient:

    D(x, y) = F(x) - F(y) - <x - y, gradF(y)>

Every divergence also evaluates F and its gradient on points given in
homogeneous coordinates ``(v, w)``, which stand for ``v / w``. Working on the
homogeneous form directly avoids materializing ``v / w``, which would destroy
sparsity and allocate a rescaled copy of every point.

References:
    http://mark.reid.name/blog/meet-the-bregman-divergences.html
    Banerjee, Merugu, Dhillon, Ghosh. Clustering with Bregman Divergences.
    JMLR 6 (2005).
"""

from abc import ABC, abstractmethod
from typing import Tuple

import torch
from torch import Tensor


class LogFunction(ABC):
    """Elementwise logarithm used by the entropy-based divergences."""

    name = 'log'

    @abstractmethod
    def log(self, x: Tensor) -> Tensor:
        pass

    def xlogx(self, x: Tensor) -> Tensor:
        """``x * log(x)`` with the continuous extension ``0 log 0 = 0``."""
        return torch.where(x == 0, torch.zeros_like(x), x * self.log(x))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class GeneralLog(LogFunction):
    """Natural logarithm over the positive reals (log 0 = -inf)."""

    name = 'general'

    def log(self, x: Tensor) -> Tensor:
        return torch.log(x)


class DiscreteLog(LogFunction):
    """Logarithm for counts: log 0 is defined as 0."""

    name = 'discrete'

    def log(self, x: Tensor) -> Tensor:
        safe = torch.where(x > 0, x, torch.ones_like(x))
        return torch.where(x > 0, torch.log(safe), torch.zeros_like(x))


class BregmanDivergence(ABC):
    """Convex function F and its gradient, on plain and homogeneous coordinates.

    All methods work row-wise on (n, d) batches; a 1-D vector is accepted as a
    single row and the result is squeezed back. ``F`` methods return (n,)
    tensors, gradient methods return dense (n, d) tensors.

    Domain flags are read by input validation; divergences themselves never
    check their inputs.
    """

    name = 'bregman'

    # Domain requirements enforced by ``validate_domain``
    requires_nonnegative = False
    requires_positive = False
    requires_unit_interval = False
    requires_simplex = False

    # Whether F can be evaluated by visiting non-zero components only
    supports_sparse = False

    @abstractmethod
    def _F(self, v: Tensor) -> Tensor:
        pass

    @abstractmethod
    def _F_homogeneous(self, v: Tensor, w: Tensor) -> Tensor:
        pass

    @abstractmethod
    def _grad_F(self, v: Tensor) -> Tensor:
        pass

    @abstractmethod
    def _grad_F_homogeneous(self, v: Tensor, w: Tensor) -> Tensor:
        pass

    def F(self, v: Tensor) -> Tensor:
        """F(v)."""
        v, squeeze = self._as_batch(v)
        out = self._F(v)
        return out[0] if squeeze else out

    def F_homogeneous(self, v: Tensor, w) -> Tensor:
        """F(v / w), computed without forming v / w."""
        v, squeeze = self._as_batch(v)
        w = self._as_weights(w, v)
        out = self._F_homogeneous(v, w)
        return out[0] if squeeze else out

    def grad_F(self, v: Tensor) -> Tensor:
        """Gradient of F at v."""
        v, squeeze = self._as_batch(v)
        out = self._grad_F(_dense(v))
        return out[0] if squeeze else out

    def grad_F_homogeneous(self, v: Tensor, w) -> Tensor:
        """Gradient of F at v / w, computed without forming v / w."""
        v, squeeze = self._as_batch(v)
        w = self._as_weights(w, v)
        out = self._grad_F_homogeneous(_dense(v), w)
        return out[0] if squeeze else out

    def divergence(self, x: Tensor, y: Tensor) -> Tensor:
        """D(x, y) for matching rows of x and y (reference evaluation)."""
        x, squeeze = self._as_batch(x)
        y, _ = self._as_batch(y)
        x = _dense(x)
        y = _dense(y)
        out = self._F(x) - self._F(y) - ((x - y) * self._grad_F(y)).sum(dim=1)
        return out[0] if squeeze else out

    @staticmethod
    def _as_batch(v: Tensor) -> Tuple[Tensor, bool]:
        if v.dim() == 1:
            return v.unsqueeze(0), True
        if v.dim() != 2:
            raise ValueError(f"Expected 1D or 2D tensor, got {v.dim()}D")
        return v, False

    @staticmethod
    def _as_weights(w, v: Tensor) -> Tensor:
        if not isinstance(w, Tensor):
            w = torch.tensor(w, dtype=v.dtype, device=v.device)
        w = w.to(dtype=v.dtype, device=v.device)
        if w.dim() == 0:
            w = w.expand(v.shape[0])
        return w

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


def _dense(v: Tensor) -> Tensor:
    return v.to_dense() if v.is_sparse else v
