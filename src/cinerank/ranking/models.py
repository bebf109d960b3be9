"""Value types shared by the ranked list, comparison session and aggregator."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cinerank.protocols import MetadataLookup, TitleMetadata
    from cinerank.ranking.tiers import SentimentTier

# Score movements at or below this threshold are not reported as changes
SCORE_EPSILON = 0.001


class MediaType(str, Enum):
    """Kind of catalog entry; each user keeps one ranked list per media type."""

    MOVIE = "movie"
    TV = "tv"


class ComparisonOutcome(str, Enum):
    """Answer to "which did you prefer?" for one candidate/pivot pair."""

    PREFER_CANDIDATE = "prefer_candidate"
    PREFER_PIVOT = "prefer_pivot"
    EQUIVALENT = "equivalent"


class RatingState(str, Enum):
    """Lifecycle of a single rating operation."""

    INITIAL_SENTIMENT = "initial_sentiment"
    COMPARING = "comparing"
    FINAL_INSERTION = "final_insertion"
    SCORE_UPDATE = "score_update"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in {RatingState.SCORE_UPDATE, RatingState.CANCELLED, RatingState.FAILED}


@dataclass(slots=True, eq=False)
class Title:
    """A rated movie or TV show in one user's list.

    ``score`` is recomputed whenever the title's tier changes shape.
    ``original_score`` is fixed when the title is placed and is not touched
    by later insertions into the same tier.
    """

    title_id: str
    display_title: str
    tier: SentimentTier
    media_type: MediaType = MediaType.MOVIE
    catalog_id: str | None = None
    score: float | None = None
    original_score: float | None = None
    comparisons_count: int = 0

    @classmethod
    def new(
        cls,
        display_title: str,
        tier: SentimentTier,
        *,
        media_type: MediaType = MediaType.MOVIE,
        catalog_id: str | None = None,
    ) -> Title:
        """Create an unplaced title with a fresh id."""
        return cls(
            title_id=str(uuid.uuid4()),
            display_title=display_title,
            tier=tier,
            media_type=media_type,
            catalog_id=catalog_id,
        )

    @classmethod
    def from_metadata(
        cls,
        metadata: TitleMetadata,
        tier: SentimentTier,
        *,
        catalog_id: str,
        media_type: MediaType = MediaType.MOVIE,
    ) -> Title:
        """Create an unplaced title from a catalog lookup result."""
        return cls.new(metadata.display_title, tier, media_type=media_type, catalog_id=catalog_id)

    @classmethod
    def from_catalog(
        cls,
        lookup: MetadataLookup,
        catalog_id: str,
        tier: SentimentTier,
        *,
        media_type: MediaType = MediaType.MOVIE,
    ) -> Title:
        """Fetch ``catalog_id`` through ``lookup`` and create an unplaced title."""
        metadata = lookup.fetch_title(catalog_id, media_type)
        return cls.from_metadata(metadata, tier, catalog_id=catalog_id, media_type=media_type)

    @property
    def is_placed(self) -> bool:
        return self.score is not None

    def display_score(self, places: int = 1) -> float | None:
        """Score rounded half-up to ``places`` decimals for presentation."""
        if self.score is None:
            return None
        quantum = Decimal(1).scaleb(-places)
        return float(Decimal(str(self.score)).quantize(quantum, rounding=ROUND_HALF_UP))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Title):
            return NotImplemented
        return self.title_id == other.title_id

    def __hash__(self) -> int:
        return hash(self.title_id)


@dataclass(frozen=True, slots=True)
class Comparison:
    """One answered comparison. Drives the search only; never persisted."""

    winner_id: str
    loser_id: str
    tied: bool = False


@dataclass(frozen=True, slots=True)
class ComparisonRequest:
    """Ask the caller to compare ``candidate`` against ``pivot``."""

    candidate: Title
    pivot: Title
    pivot_index: int
    step: int
    """1-based number of this comparison within the session"""

    max_steps: int
    """Upper bound on comparisons for the session"""


@dataclass(frozen=True, slots=True)
class ScoreChange:
    """A title whose score moved during a list mutation."""

    title_id: str
    catalog_id: str | None
    old_score: float | None
    new_score: float

    @property
    def is_first_score(self) -> bool:
        return self.old_score is None
