"""Sentiment tiers and the score-axis ranges they own.

The score axis runs from 0 to 10 and is partitioned into three ordered,
non-overlapping tiers. Range boundaries are configuration constants, never
derived from the titles in a list.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from cinerank.config.settings import ScoringSettings

if TYPE_CHECKING:
    from collections.abc import Mapping

    from cinerank.config.settings import TierBoundsSettings


class SentimentTier(str, Enum):
    """How the user felt about a title, best tier first."""

    LIKED = "liked"
    FINE = "fine"
    DISLIKED = "disliked"

    @property
    def label(self) -> str:
        """Prompt text shown when choosing the tier."""
        return _LABELS[self]

    @property
    def rank(self) -> int:
        """Position of the tier on the score axis (0 = highest scores)."""
        return TIER_ORDER.index(self)


_LABELS = {
    SentimentTier.LIKED: "I liked it!",
    SentimentTier.FINE: "It was fine",
    SentimentTier.DISLIKED: "I didn't like it",
}

TIER_ORDER: tuple[SentimentTier, ...] = (
    SentimentTier.LIKED,
    SentimentTier.FINE,
    SentimentTier.DISLIKED,
)


@dataclass(frozen=True, slots=True)
class TierRange:
    """Closed or half-open interval of the score axis."""

    floor: float
    ceiling: float
    include_floor: bool = True
    include_ceiling: bool = True

    @property
    def midpoint(self) -> float:
        return (self.floor + self.ceiling) / 2

    @property
    def span(self) -> float:
        return self.ceiling - self.floor

    def contains(self, score: float) -> bool:
        """Return True if ``score`` lies in the range, honouring open bounds."""
        above_floor = score >= self.floor if self.include_floor else score > self.floor
        below_ceiling = score <= self.ceiling if self.include_ceiling else score < self.ceiling
        return above_floor and below_ceiling

    def clamp(self, score: float) -> float:
        """Clamp ``score`` into ``[floor, ceiling]``."""
        return max(self.floor, min(self.ceiling, score))

    @classmethod
    def from_settings(cls, bounds: TierBoundsSettings) -> TierRange:
        return cls(
            floor=bounds.floor,
            ceiling=bounds.ceiling,
            include_floor=bounds.include_floor,
            include_ceiling=bounds.include_ceiling,
        )


@dataclass(frozen=True, slots=True)
class TierPolicy:
    """Tier ranges plus the rounding applied to scores.

    ``precision`` is kept on stored scores, ``display_precision`` on values
    shown to users.
    """

    ranges: Mapping[SentimentTier, TierRange] = field(default_factory=dict)
    precision: int = 3
    display_precision: int = 1

    def range_for(self, tier: SentimentTier) -> TierRange:
        return self.ranges[tier]

    def tier_for_score(self, score: float) -> SentimentTier | None:
        """Classify a score (e.g. a community mean) into the tier that owns it."""
        for tier in TIER_ORDER:
            if self.ranges[tier].contains(score):
                return tier
        return None

    @classmethod
    def from_settings(cls, scoring: ScoringSettings) -> TierPolicy:
        return cls(
            ranges={
                SentimentTier.LIKED: TierRange.from_settings(scoring.liked),
                SentimentTier.FINE: TierRange.from_settings(scoring.fine),
                SentimentTier.DISLIKED: TierRange.from_settings(scoring.disliked),
            },
            precision=scoring.precision,
            display_precision=scoring.display_precision,
        )


DEFAULT_POLICY = TierPolicy.from_settings(ScoringSettings())
