"""Pairwise-comparison ranking engine: tiers, ranked lists, sessions and scoring."""

from .models import (
    Comparison,
    ComparisonOutcome,
    ComparisonRequest,
    MediaType,
    RatingState,
    ScoreChange,
    Title,
)
from .ranked_list import RankedList
from .scoring import ScoreAssigner
from .session import ComparisonSession, max_comparisons
from .tiers import DEFAULT_POLICY, TIER_ORDER, SentimentTier, TierPolicy, TierRange

__all__ = [
    "DEFAULT_POLICY",
    "TIER_ORDER",
    "Comparison",
    "ComparisonOutcome",
    "ComparisonRequest",
    "ComparisonSession",
    "MediaType",
    "RankedList",
    "RatingState",
    "ScoreAssigner",
    "ScoreChange",
    "SentimentTier",
    "TierPolicy",
    "TierRange",
    "Title",
    "max_comparisons",
]
