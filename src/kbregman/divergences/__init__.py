"""Bregman divergences: convex generators F and their gradients."""

from .base import BregmanDivergence, LogFunction, GeneralLog, DiscreteLog
from .euclidean import SquaredEuclideanDivergence
from .kullback_leibler import (
    KullbackLeiblerSimplexDivergence,
    GeneralizedKLDivergence,
    GeneralizedIDivergence
)
from .logistic import LogisticLossDivergence
from .itakura_saito import ItakuraSaitoDivergence

__all__ = [
    # Base
    'BregmanDivergence',
    'LogFunction',
    'GeneralLog',
    'DiscreteLog',

    # Divergences
    'SquaredEuclideanDivergence',
    'KullbackLeiblerSimplexDivergence',
    'GeneralizedKLDivergence',
    'GeneralizedIDivergence',
    'LogisticLossDivergence',
    'ItakuraSaitoDivergence'
]
