"""Partitioned point collections."""

from .local import LocalCollection

__all__ = ['LocalCollection']
