"""One user's ordered collection of rated titles.

The list owns tier membership and intra-tier order. Every structural
mutation rescores the affected tier(s) before returning, so list order and
score order always agree.

Concurrency contract: a ranked list has exactly one logical owner. Callers
must serialize rating operations per user; the list does no locking.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator, Sequence

from cinerank.exceptions import (
    DuplicateTitleError,
    InvalidPositionError,
    InvalidTierError,
    MediaTypeMismatchError,
    NotFoundError,
)
from cinerank.ranking.models import MediaType, ScoreChange, Title
from cinerank.ranking.scoring import ScoreAssigner
from cinerank.ranking.tiers import DEFAULT_POLICY, TIER_ORDER, SentimentTier, TierPolicy

logger = logging.getLogger(__name__)

PositionResolver = Callable[[Sequence[Title]], int]


class RankedList:
    """Titles of one media type grouped by tier, each tier best first."""

    def __init__(
        self,
        user_id: str,
        media_type: MediaType = MediaType.MOVIE,
        *,
        policy: TierPolicy = DEFAULT_POLICY,
        assigner: ScoreAssigner | None = None,
    ) -> None:
        self.user_id = user_id
        self.media_type = media_type
        self.policy = policy
        self.assigner = assigner or ScoreAssigner(policy)
        self._tiers: dict[SentimentTier, list[Title]] = {tier: [] for tier in TIER_ORDER}
        self._index: dict[str, Title] = {}
        self._versions: dict[SentimentTier, int] = dict.fromkeys(TIER_ORDER, 0)

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    def tier_members(self, tier: SentimentTier) -> tuple[Title, ...]:
        """Snapshot of ``tier`` in order, best first."""
        return tuple(self._tiers[tier])

    def tier_version(self, tier: SentimentTier) -> int:
        """Counter bumped on every structural change to ``tier``."""
        return self._versions[tier]

    def get(self, title_id: str) -> Title:
        try:
            return self._index[title_id]
        except KeyError:
            raise NotFoundError(title_id) from None

    def find_by_catalog(self, catalog_id: str) -> Title | None:
        for title in self._index.values():
            if title.catalog_id == catalog_id:
                return title
        return None

    def position_of(self, title_id: str) -> int:
        """Index of the title inside its tier."""
        title = self.get(title_id)
        return self._tiers[title.tier].index(title)

    def titles(self) -> list[Title]:
        """All titles, Liked tier first, each tier best first."""
        return [title for tier in TIER_ORDER for title in self._tiers[tier]]

    def __iter__(self) -> Iterator[Title]:
        return iter(self.titles())

    def __len__(self) -> int:
        return len(self._index)

    def __contains__(self, title_id: object) -> bool:
        return title_id in self._index

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def insert(
        self,
        candidate: Title,
        tier: SentimentTier,
        resolve_position: int | PositionResolver,
    ) -> list[ScoreChange]:
        """Splice ``candidate`` into ``tier`` and rescore the tier.

        Args:
            candidate: Unplaced title whose declared tier must equal ``tier``
            tier: Target tier
            resolve_position: Index, or a callable given the tier's current
                members that returns the index

        Returns:
            Score changes for the tier, including the candidate's first score

        """
        if candidate.tier is not tier:
            raise InvalidTierError(candidate.title_id, candidate.tier.value, tier.value)
        self.check_insertable(candidate)

        members = self._tiers[tier]
        index = resolve_position(tuple(members)) if callable(resolve_position) else resolve_position
        self._check_position(index, len(members))

        members.insert(index, candidate)
        self._index[candidate.title_id] = candidate
        self._versions[tier] += 1

        changes = self.assigner.assign(members, tier)
        logger.info(
            "Inserted '%s' into %s at %d (score %s)",
            candidate.display_title,
            tier.value,
            index,
            candidate.score,
        )
        return changes

    def remove(self, title_id: str) -> tuple[Title, list[ScoreChange]]:
        """Remove a title and rescore the tier it vacated."""
        title = self.get(title_id)
        members = self._tiers[title.tier]
        members.remove(title)
        del self._index[title_id]
        self._versions[title.tier] += 1

        changes = self.assigner.assign(members, title.tier)
        logger.info("Removed '%s' from %s", title.display_title, title.tier.value)
        return title, changes

    def reposition(self, title_id: str, new_index: int, tier: SentimentTier) -> list[ScoreChange]:
        """Move an existing title to ``new_index`` of ``tier``.

        ``new_index`` counts the target tier's members without the title
        itself. The title's declared tier becomes ``tier``; both the vacated
        and the target tier are rescored.
        """
        title = self.get(title_id)
        source = self._tiers[title.tier]
        target = self._tiers[tier]

        pool_size = len(target) - 1 if title.tier is tier else len(target)
        self._check_position(new_index, pool_size)

        old_tier = title.tier
        source.remove(title)
        title.tier = tier
        target.insert(new_index, title)

        self._versions[old_tier] += 1
        changes: list[ScoreChange] = []
        if old_tier is not tier:
            self._versions[tier] += 1
            changes.extend(self.assigner.assign(source, old_tier))
        changes.extend(self.assigner.assign(target, tier))

        logger.info(
            "Repositioned '%s' from %s to %s at %d (score %s)",
            title.display_title,
            old_tier.value,
            tier.value,
            new_index,
            title.score,
        )
        return changes

    def load(self, titles: Iterable[Title]) -> list[Title]:
        """Replace the contents with ``titles`` (already in list order).

        Duplicate catalog ids keep the higher-scored entry. Every tier is
        rescored afterwards.

        Returns:
            The titles that were dropped as duplicates

        """
        kept: list[Title] = []
        by_catalog: dict[str, int] = {}
        dropped: list[Title] = []

        for title in titles:
            self._check_media_type(title)
            if title.catalog_id is None:
                kept.append(title)
                continue
            seen_at = by_catalog.get(title.catalog_id)
            if seen_at is None:
                by_catalog[title.catalog_id] = len(kept)
                kept.append(title)
            elif (title.score or 0.0) > (kept[seen_at].score or 0.0):
                dropped.append(kept[seen_at])
                kept[seen_at] = title
            else:
                dropped.append(title)

        self._tiers = {tier: [] for tier in TIER_ORDER}
        self._index = {}
        for title in kept:
            if title.title_id in self._index:
                dropped.append(title)
                continue
            self._tiers[title.tier].append(title)
            self._index[title.title_id] = title

        for tier in TIER_ORDER:
            self._versions[tier] += 1
            self.assigner.assign(self._tiers[tier], tier)

        if dropped:
            logger.warning("Dropped %d duplicate title(s) while loading %s", len(dropped), self.user_id)
        return dropped

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def _check_media_type(self, title: Title) -> None:
        if title.media_type is not self.media_type:
            raise MediaTypeMismatchError(title.title_id, self.media_type.value, title.media_type.value)

    def check_insertable(self, candidate: Title) -> None:
        """Raise if ``candidate`` cannot join this list (wrong media type or already ranked)."""
        self._check_media_type(candidate)
        if candidate.title_id in self._index:
            raise DuplicateTitleError(candidate.title_id)
        if candidate.catalog_id is not None and self.find_by_catalog(candidate.catalog_id) is not None:
            raise DuplicateTitleError(
                candidate.catalog_id,
                f"Catalog entry '{candidate.catalog_id}' is already ranked",
            )

    @staticmethod
    def _check_position(index: int, size: int) -> None:
        if not 0 <= index <= size:
            raise InvalidPositionError(index, size)
