"""Narrow contracts between the engine and the collaborators around it.

The engine never performs metadata lookups, authentication or rendering
itself. These protocols describe what it expects from whoever does.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from cinerank.community.aggregator import GlobalRating
    from cinerank.ranking.models import ComparisonOutcome, ComparisonRequest, MediaType, Title


@dataclass(frozen=True, slots=True)
class Identity:
    """An already-authenticated user. The engine treats both fields as opaque."""

    user_id: str
    username: str


@dataclass(frozen=True, slots=True)
class TitleMetadata:
    """Catalog details a caller may attach to a title before rating it."""

    display_title: str
    poster_ref: str | None = None
    release_info: str | None = None
    runtime_minutes: int | None = None
    external_rating: float | None = None


class MetadataLookup(Protocol):
    """Remote catalog lookup. Callers use it; the engine does not."""

    def fetch_title(self, catalog_id: str, media_type: MediaType) -> TitleMetadata:
        """Fetch display metadata for a catalog entry."""
        ...


class ComparisonPrompt(Protocol):
    """Presentation-layer answer to "which did you prefer?".

    Returning ``None`` backs out of the rating.
    """

    def __call__(self, request: ComparisonRequest) -> ComparisonOutcome | None: ...


class PersistenceSink(Protocol):
    """Storage for titles and community ratings.

    Writes may be slow or fail; the engine's in-memory state stays
    authoritative either way.
    """

    def save_title(self, user_id: str, title: Title, position: int) -> None:
        """Upsert a title and its position inside its tier."""
        ...

    def delete_title(self, user_id: str, title_id: str) -> None:
        """Delete a title from the user's list."""
        ...

    def load_ranked_list(self, user_id: str, media_type: MediaType) -> list[Title]:
        """Return the user's titles in list order (Liked first, best first)."""
        ...

    def save_global_rating(self, rating: GlobalRating) -> None:
        """Upsert a community aggregate."""
        ...

    def load_global_rating(self, catalog_id: str) -> GlobalRating | None:
        """Return one community aggregate, if stored."""
        ...

    def load_global_ratings(self) -> list[GlobalRating]:
        """Return every stored community aggregate."""
        ...
