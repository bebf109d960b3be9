from __future__ import annotations

from collections.abc import Iterable

import pytest

from cinerank.community import CommunityAggregator
from cinerank.persistence import MemorySink
from cinerank.protocols import Identity
from cinerank.ranking import ComparisonOutcome, ComparisonRequest, MediaType, RankedList, SentimentTier, Title
from cinerank.service import RatingService


class ScriptedPrompt:
    """Comparison prompt that replays canned answers and records every request."""

    def __init__(self, outcomes: Iterable[ComparisonOutcome | None]) -> None:
        self.outcomes = list(outcomes)
        self.requests: list[ComparisonRequest] = []

    def __call__(self, request: ComparisonRequest) -> ComparisonOutcome | None:
        self.requests.append(request)
        return self.outcomes.pop(0)


@pytest.fixture
def make_title():
    def _make(
        name: str,
        tier: SentimentTier = SentimentTier.FINE,
        *,
        catalog_id: str | None = None,
        media_type: MediaType = MediaType.MOVIE,
    ) -> Title:
        return Title.new(name, tier, media_type=media_type, catalog_id=catalog_id)

    return _make


@pytest.fixture
def ranked_list() -> RankedList:
    return RankedList("alice")


@pytest.fixture
def scripted_prompt():
    return ScriptedPrompt


@pytest.fixture
def memory_sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def aggregator() -> CommunityAggregator:
    return CommunityAggregator()


@pytest.fixture
def make_service(aggregator, memory_sink):
    def _make(user_id: str = "alice", sink=memory_sink) -> RatingService:
        return RatingService(Identity(user_id=user_id, username=user_id), aggregator, sink)

    return _make
