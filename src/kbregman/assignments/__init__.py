"""Assignment strategies for Bregman clustering."""

from .hard import HardAssignment

__all__ = ['HardAssignment']
