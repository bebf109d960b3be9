"""Community rating: a running mean of personal scores per catalog id.

Many users contribute to the same catalog id concurrently, so every
mutation for one id runs under that id's own lock. Different ids never
wait on each other and there is no aggregator-wide lock.
"""

from __future__ import annotations

import logging
import math
import statistics
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cinerank.config.settings import CommunitySettings
from cinerank.exceptions import DegenerateAggregateError
from cinerank.ranking.models import MediaType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from cinerank.ranking.tiers import SentimentTier, TierPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GlobalRating:
    """Snapshot of one catalog id's community aggregate."""

    catalog_id: str
    title: str
    media_type: MediaType
    average_rating: float
    number_of_ratings: int

    @property
    def is_empty(self) -> bool:
        return self.number_of_ratings == 0

    @property
    def total_score(self) -> float:
        return self.average_rating * self.number_of_ratings

    def confidence_adjusted_score(self, global_mean: float, prior_strength: float) -> float:
        """Bayesian average pulled towards ``global_mean``, one decimal."""
        bayes = (prior_strength * global_mean + self.total_score) / (prior_strength + self.number_of_ratings)
        return round(bayes, 1)

    def sentiment(self, policy: TierPolicy) -> SentimentTier | None:
        """Tier the community mean falls into, ``None`` when empty."""
        if self.is_empty:
            return None
        return policy.tier_for_score(self.average_rating)


@dataclass(frozen=True, slots=True)
class LeaderboardEntry:
    """A community rating ranked by its confidence-adjusted score."""

    rank: int
    rating: GlobalRating
    community_score: float


@dataclass(slots=True)
class _RunningMean:
    count: int
    mean: float
    title: str
    media_type: MediaType

    def snapshot(self, catalog_id: str) -> GlobalRating:
        return GlobalRating(
            catalog_id=catalog_id,
            title=self.title,
            media_type=self.media_type,
            average_rating=self.mean,
            number_of_ratings=self.count,
        )


class CommunityAggregator:
    """Maintains a ``(count, mean)`` pair per catalog id."""

    def __init__(self, settings: CommunitySettings | None = None) -> None:
        self.settings = settings or CommunitySettings()
        self._entries: dict[str, _RunningMean] = {}
        self._locks: dict[str, threading.Lock] = {}

    @classmethod
    def from_ratings(
        cls,
        ratings: Iterable[GlobalRating],
        settings: CommunitySettings | None = None,
    ) -> CommunityAggregator:
        """Build an aggregator seeded with persisted ratings."""
        aggregator = cls(settings)
        for rating in ratings:
            aggregator.restore(rating)
        return aggregator

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def contribute(
        self,
        catalog_id: str,
        score: float,
        *,
        title: str | None = None,
        media_type: MediaType | None = None,
    ) -> GlobalRating:
        """Fold a new personal score into the running mean."""
        self._validate_score(catalog_id, score)

        with self._lock_for(catalog_id):
            entry = self._entries.get(catalog_id)
            if entry is None:
                entry = _RunningMean(
                    count=0,
                    mean=0.0,
                    title=title or catalog_id,
                    media_type=media_type or MediaType.MOVIE,
                )
                self._entries[catalog_id] = entry
            elif title:
                entry.title = title

            if entry.count == 0:
                entry.count, entry.mean = 1, score
            else:
                count = entry.count + 1
                entry.mean, entry.count = entry.mean + (score - entry.mean) / count, count

            snapshot = entry.snapshot(catalog_id)

        logger.info(
            "Contributed %.3f to %s: mean %.3f over %d",
            score,
            catalog_id,
            snapshot.average_rating,
            snapshot.number_of_ratings,
        )
        return snapshot

    def revise(self, catalog_id: str, old_score: float, new_score: float) -> GlobalRating:
        """Replace one earlier contribution; the count is unchanged."""
        self._validate_score(catalog_id, old_score)
        self._validate_score(catalog_id, new_score)

        with self._lock_for(catalog_id):
            entry = self._entries.get(catalog_id)
            if entry is None or entry.count == 0:
                raise DegenerateAggregateError(catalog_id, "cannot revise an aggregate with no ratings")
            entry.mean = entry.mean + (new_score - old_score) / entry.count
            snapshot = entry.snapshot(catalog_id)

        logger.debug("Revised %s: %.3f -> %.3f, mean %.3f", catalog_id, old_score, new_score, snapshot.average_rating)
        return snapshot

    def retract(self, catalog_id: str, score: float) -> GlobalRating:
        """Withdraw one contribution. An emptied aggregate reports zero ratings."""
        self._validate_score(catalog_id, score)

        with self._lock_for(catalog_id):
            entry = self._entries.get(catalog_id)
            if entry is None or entry.count == 0:
                raise DegenerateAggregateError(catalog_id, "cannot retract below zero ratings")
            if entry.count == 1:
                entry.count, entry.mean = 0, 0.0
            else:
                count = entry.count - 1
                entry.mean, entry.count = entry.mean + (entry.mean - score) / count, count
            snapshot = entry.snapshot(catalog_id)

        logger.info("Retracted %.3f from %s: %d rating(s) left", score, catalog_id, snapshot.number_of_ratings)
        return snapshot

    def restore(self, rating: GlobalRating) -> None:
        """Seed the aggregate for ``rating.catalog_id`` from a persisted snapshot."""
        if rating.number_of_ratings < 0:
            raise DegenerateAggregateError(rating.catalog_id, "negative rating count")
        with self._lock_for(rating.catalog_id):
            self._entries[rating.catalog_id] = _RunningMean(
                count=rating.number_of_ratings,
                mean=rating.average_rating if rating.number_of_ratings else 0.0,
                title=rating.title,
                media_type=rating.media_type,
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def rating(self, catalog_id: str) -> GlobalRating | None:
        """Pure snapshot of one aggregate, ``None`` if never contributed to."""
        with self._lock_for(catalog_id):
            entry = self._entries.get(catalog_id)
            return entry.snapshot(catalog_id) if entry is not None else None

    def ratings(self, media_type: MediaType | None = None) -> list[GlobalRating]:
        snapshots = [self.rating(catalog_id) for catalog_id in list(self._entries)]
        return [
            snapshot
            for snapshot in snapshots
            if snapshot is not None and (media_type is None or snapshot.media_type is media_type)
        ]

    def leaderboard(self, media_type: MediaType | None = None, limit: int | None = None) -> list[LeaderboardEntry]:
        """Rank non-empty aggregates by confidence-adjusted score.

        The prior mean is the mean over every rating in the aggregator and
        the prior strength is the median rating count; both fall back to
        the configured defaults when there is no data.
        """
        populated = [rating for rating in self.ratings() if not rating.is_empty]
        total_ratings = sum(rating.number_of_ratings for rating in populated)

        if total_ratings:
            global_mean = sum(rating.total_score for rating in populated) / total_ratings
            prior_strength = float(statistics.median_high(r.number_of_ratings for r in populated))
        else:
            global_mean = self.settings.default_global_mean
            prior_strength = self.settings.default_prior_strength

        candidates = [r for r in populated if media_type is None or r.media_type is media_type]
        scored = sorted(
            ((r, r.confidence_adjusted_score(global_mean, prior_strength)) for r in candidates),
            key=lambda pair: (-pair[1], -pair[0].number_of_ratings, pair[0].title),
        )
        if limit is not None:
            scored = scored[:limit]
        return [LeaderboardEntry(rank=i, rating=r, community_score=s) for i, (r, s) in enumerate(scored, start=1)]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lock_for(self, catalog_id: str) -> threading.Lock:
        lock = self._locks.get(catalog_id)
        if lock is None:
            # setdefault is atomic, so racing creators agree on one lock
            lock = self._locks.setdefault(catalog_id, threading.Lock())
        return lock

    def _validate_score(self, catalog_id: str, score: float) -> None:
        if not math.isfinite(score):
            raise DegenerateAggregateError(catalog_id, f"score {score} is not finite")
        if not self.settings.min_score <= score <= self.settings.max_score:
            raise DegenerateAggregateError(
                catalog_id,
                f"score {score} is outside [{self.settings.min_score}, {self.settings.max_score}]",
            )
