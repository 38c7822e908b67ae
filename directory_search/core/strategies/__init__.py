"""Scoring and filtering strategies."""
from .scoring import (
    ExplicitMatchBoostStrategy,
    RerankSkipPolicy,
    ScoringStrategy,
    StrictFilterStrategy,
)

__all__ = [
    "ExplicitMatchBoostStrategy",
    "RerankSkipPolicy",
    "ScoringStrategy",
    "StrictFilterStrategy",
]
