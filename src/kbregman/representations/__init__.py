"""Center representations."""

from .center import CenterSet

__all__ = ['CenterSet']
