"""Write-behind persistence around a :class:`~cinerank.protocols.PersistenceSink`.

The engine computes authoritative state in memory and treats storage as a
sink. Writes are queued, flushed after each terminal transition, and a
failing write is reported without rolling anything back. Reconciliation is
left to the caller through :meth:`WriteBehindSink.retry_failed`.
"""

from __future__ import annotations

import copy
import logging
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cinerank.exceptions import PersistenceError
from cinerank.ranking.tiers import TIER_ORDER

if TYPE_CHECKING:
    from collections.abc import Callable

    from cinerank.community.aggregator import GlobalRating
    from cinerank.protocols import PersistenceSink
    from cinerank.ranking.models import MediaType, Title

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PendingWrite:
    """A queued call against the underlying sink."""

    operation: str
    key: str
    call: Callable[[], None]


class WriteBehindSink:
    """Queues writes for a sink and records the ones that fail."""

    def __init__(self, target: PersistenceSink) -> None:
        self.target = target
        self._pending: deque[PendingWrite] = deque()
        self._failed: list[tuple[PendingWrite, PersistenceError]] = []

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def failures(self) -> list[PersistenceError]:
        return [error for _, error in self._failed]

    # ------------------------------------------------------------------
    # Queueing
    # ------------------------------------------------------------------

    def save_title(self, user_id: str, title: Title, position: int) -> None:
        # Snapshot now so a later mutation does not leak into this write
        snapshot = copy.copy(title)
        self._enqueue("save_title", title.title_id, lambda: self.target.save_title(user_id, snapshot, position))

    def delete_title(self, user_id: str, title_id: str) -> None:
        self._enqueue("delete_title", title_id, lambda: self.target.delete_title(user_id, title_id))

    def save_global_rating(self, rating: GlobalRating) -> None:
        self._enqueue("save_global_rating", rating.catalog_id, lambda: self.target.save_global_rating(rating))

    # ------------------------------------------------------------------
    # Reads go straight through
    # ------------------------------------------------------------------

    def load_ranked_list(self, user_id: str, media_type: MediaType) -> list[Title]:
        return self.target.load_ranked_list(user_id, media_type)

    def load_global_rating(self, catalog_id: str) -> GlobalRating | None:
        return self.target.load_global_rating(catalog_id)

    def load_global_ratings(self) -> list[GlobalRating]:
        return self.target.load_global_ratings()

    # ------------------------------------------------------------------
    # Flushing
    # ------------------------------------------------------------------

    def flush(self) -> list[PersistenceError]:
        """Run every queued write. Returns the failures from this flush."""
        new_failures: list[PersistenceError] = []
        while self._pending:
            write = self._pending.popleft()
            try:
                write.call()
            except Exception as e:  # noqa: BLE001 - collaborator failures are reported, not raised
                error = PersistenceError(write.operation, e)
                logger.warning("Persistence write %s(%s) failed: %s", write.operation, write.key, e)
                self._failed.append((write, error))
                new_failures.append(error)
        return new_failures

    def retry_failed(self) -> list[PersistenceError]:
        """Re-queue every failed write and flush again."""
        retry = [write for write, _ in self._failed]
        self._failed.clear()
        self._pending.extend(retry)
        if retry:
            logger.info("Retrying %d failed persistence write(s)", len(retry))
        return self.flush()

    def _enqueue(self, operation: str, key: str, call: Callable[[], None]) -> None:
        self._pending.append(PendingWrite(operation=operation, key=key, call=call))


class MemorySink:
    """In-process :class:`~cinerank.protocols.PersistenceSink` backed by dicts."""

    def __init__(self) -> None:
        self.titles: dict[str, dict[str, tuple[Title, int]]] = {}
        self.global_ratings: dict[str, GlobalRating] = {}

    def save_title(self, user_id: str, title: Title, position: int) -> None:
        self.titles.setdefault(user_id, {})[title.title_id] = (copy.copy(title), position)

    def delete_title(self, user_id: str, title_id: str) -> None:
        self.titles.get(user_id, {}).pop(title_id, None)

    def load_ranked_list(self, user_id: str, media_type: MediaType) -> list[Title]:
        rows = [
            (title, position)
            for title, position in self.titles.get(user_id, {}).values()
            if title.media_type is media_type
        ]
        rows.sort(key=lambda row: (TIER_ORDER.index(row[0].tier), row[1]))
        return [copy.copy(title) for title, _ in rows]

    def save_global_rating(self, rating: GlobalRating) -> None:
        self.global_ratings[rating.catalog_id] = rating

    def load_global_rating(self, catalog_id: str) -> GlobalRating | None:
        return self.global_ratings.get(catalog_id)

    def load_global_ratings(self) -> list[GlobalRating]:
        return list(self.global_ratings.values())
