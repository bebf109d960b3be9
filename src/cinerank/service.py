"""Wires one user's ranked lists to the community aggregator and storage.

A :class:`RatingService` is the explicit owner passed through the call
chain: it holds the user's lists (one per media type), a reference to the
shared :class:`~cinerank.community.aggregator.CommunityAggregator`, and an
optional persistence sink. After every terminal transition it forwards the
moved scores to the aggregator and queues the writes.

Callers must serialize rating operations for one user.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING

from cinerank.exceptions import AggregateError, SessionStateError
from cinerank.persistence import WriteBehindSink
from cinerank.ranking.models import MediaType, RatingState
from cinerank.ranking.ranked_list import RankedList
from cinerank.ranking.session import ComparisonSession
from cinerank.ranking.tiers import DEFAULT_POLICY, TierPolicy

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from cinerank.community.aggregator import CommunityAggregator, GlobalRating
    from cinerank.exceptions import PersistenceError
    from cinerank.protocols import ComparisonPrompt, Identity, PersistenceSink
    from cinerank.ranking.models import ScoreChange, Title
    from cinerank.ranking.tiers import SentimentTier

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RatingOutcome:
    """What a completed rating or removal changed."""

    title: Title
    changes: list[ScoreChange] = field(default_factory=list)
    aggregates: list[GlobalRating] = field(default_factory=list)
    aggregate_errors: list[AggregateError] = field(default_factory=list)
    persistence_failures: list[PersistenceError] = field(default_factory=list)


class RatingService:
    """Rating operations for one user."""

    def __init__(
        self,
        identity: Identity,
        aggregator: CommunityAggregator,
        sink: PersistenceSink | None = None,
        *,
        policy: TierPolicy = DEFAULT_POLICY,
    ) -> None:
        self.identity = identity
        self.aggregator = aggregator
        self.policy = policy
        self.sink = WriteBehindSink(sink) if sink is not None else None
        self.lists: dict[MediaType, RankedList] = {
            media_type: RankedList(identity.user_id, media_type, policy=policy) for media_type in MediaType
        }

    def ranked_list(self, media_type: MediaType) -> RankedList:
        return self.lists[media_type]

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> list[Title]:
        """Load the user's lists from the sink, repairing duplicates.

        Scores are recomputed and written back; the community aggregate is
        left alone.

        Returns:
            Titles dropped as duplicates

        """
        if self.sink is None:
            return []

        dropped: list[Title] = []
        for media_type, ranked_list in self.lists.items():
            dropped.extend(ranked_list.load(self.sink.load_ranked_list(self.identity.user_id, media_type)))
            self._queue_tiers(ranked_list, {title.tier for title in ranked_list})
        for title in dropped:
            self.sink.delete_title(self.identity.user_id, title.title_id)
        self.sink.flush()

        logger.info("Loaded %d title(s) for %s", sum(len(lst) for lst in self.lists.values()), self.identity.username)
        return dropped

    # ------------------------------------------------------------------
    # Rating
    # ------------------------------------------------------------------

    def start_rating(self, candidate: Title, tier: SentimentTier | None = None) -> ComparisonSession:
        """Open a session for a new title in its declared tier."""
        return ComparisonSession(self.lists[candidate.media_type], candidate, tier or candidate.tier)

    def start_rerank(self, title_id: str, tier: SentimentTier, media_type: MediaType) -> ComparisonSession:
        """Open a session that re-rates an existing title into ``tier``."""
        ranked_list = self.lists[media_type]
        title = ranked_list.get(title_id)
        return ComparisonSession(ranked_list, title, tier, rerank=True)

    def complete(self, session: ComparisonSession) -> RatingOutcome:
        """Commit a resolved session and propagate its score changes."""
        if session.state is not RatingState.FINAL_INSERTION:
            raise SessionStateError(session.state.value, "complete")
        session.commit()

        title = session.candidate
        outcome = RatingOutcome(title=title, changes=session.changes)
        self._propagate(outcome)

        ranked_list = session.ranked_list
        tiers = {title.tier}
        tiers.update(ranked_list.get(change.title_id).tier for change in outcome.changes)
        self._persist(outcome, ranked_list, tiers)
        return outcome

    def rate(
        self,
        candidate: Title,
        prompt: ComparisonPrompt,
        tier: SentimentTier | None = None,
    ) -> RatingOutcome | None:
        """Rate a new title end to end; ``None`` if the prompt backed out."""
        session = self.start_rating(candidate, tier)
        if session.resolve(prompt) is None:
            return None
        return self.complete(session)

    def rerank(
        self,
        title_id: str,
        tier: SentimentTier,
        prompt: ComparisonPrompt,
        media_type: MediaType,
    ) -> RatingOutcome | None:
        """Re-rate an existing title end to end; ``None`` if cancelled."""
        session = self.start_rerank(title_id, tier, media_type)
        if session.resolve(prompt) is None:
            return None
        return self.complete(session)

    def remove(self, title_id: str, media_type: MediaType) -> RatingOutcome:
        """Remove a title, retract its community contribution and rescore its tier."""
        ranked_list = self.lists[media_type]
        title, changes = ranked_list.remove(title_id)
        outcome = RatingOutcome(title=title, changes=changes)

        if title.catalog_id is not None and title.score is not None:
            self._apply_aggregate(outcome, partial(self.aggregator.retract, title.catalog_id, title.score))
        self._propagate(outcome)

        if self.sink is not None:
            self.sink.delete_title(self.identity.user_id, title.title_id)
        self._persist(outcome, ranked_list, {title.tier})
        return outcome

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _propagate(self, outcome: RatingOutcome) -> None:
        title = outcome.title
        for change in outcome.changes:
            if change.catalog_id is None:
                continue
            if change.is_first_score:
                update = partial(
                    self.aggregator.contribute,
                    change.catalog_id,
                    change.new_score,
                    title=title.display_title,
                    media_type=title.media_type,
                )
            else:
                update = partial(self.aggregator.revise, change.catalog_id, change.old_score, change.new_score)
            self._apply_aggregate(outcome, update)

    def _apply_aggregate(self, outcome: RatingOutcome, update: Callable[[], GlobalRating]) -> None:
        try:
            outcome.aggregates.append(update())
        except AggregateError as e:
            # The list mutation stands; the caller decides how to reconcile
            logger.error("Community update failed: %s", e)
            outcome.aggregate_errors.append(e)

    def _queue_tiers(self, ranked_list: RankedList, tiers: Iterable[SentimentTier]) -> None:
        if self.sink is None:
            return
        for tier in tiers:
            for position, member in enumerate(ranked_list.tier_members(tier)):
                self.sink.save_title(self.identity.user_id, member, position)

    def _persist(self, outcome: RatingOutcome, ranked_list: RankedList, tiers: set[SentimentTier]) -> None:
        if self.sink is None:
            return
        self._queue_tiers(ranked_list, tiers)
        for rating in {rating.catalog_id: rating for rating in outcome.aggregates}.values():
            self.sink.save_global_rating(rating)
        outcome.persistence_failures.extend(self.sink.flush())
