"""Binary-insertion dialogue for placing one title into a tier.

A session walks ``INITIAL_SENTIMENT -> COMPARING -> FINAL_INSERTION ->
SCORE_UPDATE``. While comparing it hands the caller a
:class:`ComparisonRequest` and waits for an outcome; that wait is the only
suspension point and it carries no timeout. Nothing in the ranked list
changes until :meth:`ComparisonSession.commit`, so a session can be
abandoned at any point before then without side effects.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from cinerank.exceptions import (
    ConcurrentModificationError,
    InvalidTierError,
    RankingError,
    SessionStateError,
)
from cinerank.ranking.models import Comparison, ComparisonOutcome, ComparisonRequest, RatingState

if TYPE_CHECKING:
    from cinerank.ranking.models import ScoreChange, Title
    from cinerank.ranking.ranked_list import RankedList
    from cinerank.ranking.tiers import SentimentTier

logger = logging.getLogger(__name__)

# Prompts return None when the caller backs out
SyncPrompt = Callable[[ComparisonRequest], "ComparisonOutcome | None"]
AsyncPrompt = Callable[[ComparisonRequest], Awaitable["ComparisonOutcome | None"]]


def max_comparisons(tier_size: int) -> int:
    """Upper bound ``ceil(log2(n + 1))`` on comparisons for a tier of ``n``."""
    return tier_size.bit_length()


class ComparisonSession:
    """Drives the insertion search for one candidate.

    For a new title the candidate must not be in the list yet and its
    declared tier must be ``tier``. With ``rerank=True`` the candidate is an
    existing list member being re-rated: it is left out of the pivot pool
    and ``tier`` may differ from its current tier.
    """

    def __init__(
        self,
        ranked_list: RankedList,
        candidate: Title,
        tier: SentimentTier,
        *,
        rerank: bool = False,
    ) -> None:
        self.ranked_list = ranked_list
        self.candidate = candidate
        self.tier = tier
        self.rerank = rerank

        self._state = RatingState.INITIAL_SENTIMENT
        self._pool: tuple[Title, ...] = ()
        self._versions: dict[SentimentTier, int] = {}
        self._low = 0
        self._high = 0
        self._comparisons: list[Comparison] = []
        self._resolved_index: int | None = None
        self._changes: list[ScoreChange] = []
        self._previous_score: float | None = candidate.score

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> RatingState:
        return self._state

    @property
    def comparisons(self) -> tuple[Comparison, ...]:
        return tuple(self._comparisons)

    @property
    def resolved_index(self) -> int | None:
        return self._resolved_index

    @property
    def changes(self) -> list[ScoreChange]:
        """Score changes produced by the commit (empty before it)."""
        return list(self._changes)

    @property
    def previous_score(self) -> float | None:
        """Candidate score before the session (set for re-ratings)."""
        return self._previous_score

    @property
    def max_comparisons(self) -> int:
        return max_comparisons(len(self._pool))

    @property
    def current_request(self) -> ComparisonRequest | None:
        if self._state is not RatingState.COMPARING:
            return None
        return self._request()

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def begin(self) -> ComparisonRequest | None:
        """Leave ``INITIAL_SENTIMENT``.

        Returns the first comparison request, or ``None`` when the tier is
        empty and the candidate goes straight to index 0.
        """
        self._require(RatingState.INITIAL_SENTIMENT, "begin")

        if self.rerank:
            self.ranked_list.get(self.candidate.title_id)
        else:
            if self.candidate.tier is not self.tier:
                raise InvalidTierError(self.candidate.title_id, self.candidate.tier.value, self.tier.value)
            self.ranked_list.check_insertable(self.candidate)

        # Re-ratings also watch the tier they leave
        watched = {self.tier, self.candidate.tier} if self.rerank else {self.tier}
        self._versions = {tier: self.ranked_list.tier_version(tier) for tier in watched}
        self._pool = tuple(
            title
            for title in self.ranked_list.tier_members(self.tier)
            if title.title_id != self.candidate.title_id
        )
        self._low, self._high = 0, len(self._pool)

        if not self._pool:
            self._resolve(0)
            return None

        self._state = RatingState.COMPARING
        return self._request()

    def submit(self, outcome: ComparisonOutcome) -> ComparisonRequest | None:
        """Apply the caller's answer to the current comparison.

        Returns the next request, or ``None`` once the position is resolved.
        """
        self._require(RatingState.COMPARING, "submit")
        self._check_version()

        mid = self._mid
        pivot = self._pool[mid]
        candidate_id = self.candidate.title_id

        if outcome is ComparisonOutcome.PREFER_CANDIDATE:
            self._comparisons.append(Comparison(winner_id=candidate_id, loser_id=pivot.title_id))
            self._high = mid
        elif outcome is ComparisonOutcome.PREFER_PIVOT:
            self._comparisons.append(Comparison(winner_id=pivot.title_id, loser_id=candidate_id))
            self._low = mid + 1
        else:
            # Too close to call: settle directly below the pivot
            self._comparisons.append(Comparison(winner_id=pivot.title_id, loser_id=candidate_id, tied=True))
            self._low = self._high = mid + 1

        logger.debug(
            "Comparison %d: '%s' vs '%s' -> %s",
            len(self._comparisons),
            self.candidate.display_title,
            pivot.display_title,
            outcome.value,
        )

        if self._low >= self._high:
            self._resolve(self._low)
            return None
        return self._request()

    def commit(self) -> list[ScoreChange]:
        """Hand the resolved index to the list and fix the candidate's scores."""
        self._require(RatingState.FINAL_INSERTION, "commit")
        self._check_version()

        index = self._resolved_index
        if index is None:
            raise SessionStateError(self._state.value, "commit")

        previous_score = self.candidate.score
        try:
            if self.rerank:
                changes = self.ranked_list.reposition(self.candidate.title_id, index, self.tier)
            else:
                # A title rated again after removal enters the list unplaced
                self.candidate.score = None
                changes = self.ranked_list.insert(self.candidate, self.tier, lambda _members: index)
        except RankingError:
            self.candidate.score = previous_score
            self._state = RatingState.FAILED
            raise

        self.candidate.comparisons_count += len(self._comparisons)
        self.candidate.original_score = self.candidate.score
        self._changes = changes
        self._state = RatingState.SCORE_UPDATE
        return list(changes)

    def cancel(self) -> None:
        """Abandon the session; the ranked list is untouched."""
        if self._state is RatingState.SCORE_UPDATE:
            raise SessionStateError(self._state.value, "cancel")
        if self._state is not RatingState.CANCELLED:
            logger.info("Cancelled rating of '%s'", self.candidate.display_title)
        self._state = RatingState.CANCELLED

    # ------------------------------------------------------------------
    # Drivers
    # ------------------------------------------------------------------

    def resolve(self, prompt: SyncPrompt) -> int | None:
        """Run comparisons through ``prompt`` until the index is known.

        Returns the index, or ``None`` if the prompt backed out.
        """
        request = self.begin()
        while request is not None:
            outcome = prompt(request)
            if outcome is None:
                self.cancel()
                return None
            request = self.submit(outcome)
        return self._resolved_index

    async def resolve_async(self, prompt: AsyncPrompt) -> int | None:
        """Like :meth:`resolve` for prompts that must be awaited."""
        request = self.begin()
        while request is not None:
            outcome = await prompt(request)
            if outcome is None:
                self.cancel()
                return None
            request = self.submit(outcome)
        return self._resolved_index

    def drive(self, prompt: SyncPrompt) -> list[ScoreChange] | None:
        """Resolve and commit in one go; ``None`` if cancelled."""
        if self.resolve(prompt) is None:
            return None
        return self.commit()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @property
    def _mid(self) -> int:
        return (self._low + self._high) // 2

    def _request(self) -> ComparisonRequest:
        mid = self._mid
        return ComparisonRequest(
            candidate=self.candidate,
            pivot=self._pool[mid],
            pivot_index=mid,
            step=len(self._comparisons) + 1,
            max_steps=self.max_comparisons,
        )

    def _resolve(self, index: int) -> None:
        self._resolved_index = index
        self._state = RatingState.FINAL_INSERTION

    def _require(self, expected: RatingState, operation: str) -> None:
        if self._state is not expected:
            raise SessionStateError(self._state.value, operation)

    def _check_version(self) -> None:
        for tier, expected in self._versions.items():
            actual = self.ranked_list.tier_version(tier)
            if actual != expected:
                self._state = RatingState.FAILED
                raise ConcurrentModificationError(tier.value, expected, actual)
