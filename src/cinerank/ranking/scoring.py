"""Convert position inside a tier into a continuous score.

Each recompute covers the whole tier: member ``i`` of ``k`` (best = 0)
receives ``ceiling - i * (ceiling - floor) / (k - 1)``, a lone member gets
the tier midpoint. Rounding keeps the sequence non-increasing and inside
``[floor, ceiling]``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cinerank.ranking.models import SCORE_EPSILON, ScoreChange
from cinerank.ranking.tiers import DEFAULT_POLICY, SentimentTier, TierPolicy

if TYPE_CHECKING:
    from collections.abc import Sequence

    from cinerank.ranking.models import Title
    from cinerank.ranking.tiers import TierRange

logger = logging.getLogger(__name__)


class ScoreAssigner:
    """Recomputes scores for every member of a tier."""

    def __init__(self, policy: TierPolicy = DEFAULT_POLICY) -> None:
        self.policy = policy

    def scores_for(self, count: int, tier_range: TierRange) -> list[float]:
        """Return ``count`` evenly distributed, rounded scores for ``tier_range``."""
        if count <= 0:
            return []
        if count == 1:
            return [self._round(tier_range.midpoint, tier_range)]

        step = tier_range.span / (count - 1)
        scores: list[float] = []
        for i in range(count):
            # Pin the last member to the floor to avoid float drift
            raw = tier_range.floor if i == count - 1 else tier_range.ceiling - i * step
            score = self._round(raw, tier_range)
            if scores and score > scores[-1]:
                # Rounding never reorders; keep list order on a collision
                score = scores[-1]
            scores.append(score)
        return scores

    def assign(self, members: Sequence[Title], tier: SentimentTier) -> list[ScoreChange]:
        """Write fresh scores onto ``members`` (best first) and report what moved."""
        tier_range = self.policy.range_for(tier)
        changes: list[ScoreChange] = []

        for title, score in zip(members, self.scores_for(len(members), tier_range), strict=True):
            old = title.score
            if old is None or abs(old - score) > SCORE_EPSILON:
                changes.append(
                    ScoreChange(
                        title_id=title.title_id,
                        catalog_id=title.catalog_id,
                        old_score=old,
                        new_score=score,
                    )
                )
            title.score = score

        logger.debug("Rescored tier %s: %d members, %d changed", tier.value, len(members), len(changes))
        return changes

    def _round(self, score: float, tier_range: TierRange) -> float:
        return tier_range.clamp(round(score, self.policy.precision))
