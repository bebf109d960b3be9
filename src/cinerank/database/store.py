"""DuckDB-backed persistence for ranked lists and community ratings.

Implements :class:`~cinerank.protocols.PersistenceSink`. DDL is rendered
from SQL templates, writes are plain parameterized statements, reads go
through Ibis expressions.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from ibis import _

from cinerank.community.aggregator import GlobalRating
from cinerank.ranking.models import MediaType, Title
from cinerank.ranking.tiers import TIER_ORDER, SentimentTier
from cinerank.sql_templates import create_table_statement, upsert_statement

if TYPE_CHECKING:
    from cinerank.database.duckdb_manager import DuckDBStorageManager

logger = logging.getLogger(__name__)

TITLES_TABLE = "titles"
GLOBAL_RATINGS_TABLE = "global_ratings"

TITLE_COLUMNS = (
    "user_id",
    "title_id",
    "media_type",
    "tier",
    "position",
    "display_title",
    "score",
    "original_score",
    "comparisons_count",
    "catalog_id",
    "updated_at",
)
GLOBAL_RATING_COLUMNS = (
    "catalog_id",
    "title",
    "media_type",
    "average_rating",
    "number_of_ratings",
    "updated_at",
)


class RankingStore:
    """Persistent storage for titles and global ratings."""

    def __init__(self, storage: DuckDBStorageManager) -> None:
        """Initialize the store and create its tables if needed.

        Args:
            storage: The DuckDB storage manager to write through.

        """
        self.storage = storage
        self._ensure_tables()

    def _ensure_tables(self) -> None:
        """Create titles and global ratings tables if they don't exist."""
        existing = set(self.storage.list_tables())
        self.storage.execute(create_table_statement("titles_table.sql.jinja", TITLES_TABLE))
        self.storage.execute(create_table_statement("global_ratings_table.sql.jinja", GLOBAL_RATINGS_TABLE))
        for table in (TITLES_TABLE, GLOBAL_RATINGS_TABLE):
            if table not in existing:
                logger.info("Created %s table", table)

    # ------------------------------------------------------------------
    # Titles
    # ------------------------------------------------------------------

    def save_title(self, user_id: str, title: Title, position: int) -> None:
        """Insert or update a title row."""
        row = {
            "user_id": user_id,
            "title_id": title.title_id,
            "media_type": title.media_type.value,
            "tier": title.tier.value,
            "position": position,
            "display_title": title.display_title,
            "score": title.score,
            "original_score": title.original_score,
            "comparisons_count": title.comparisons_count,
            "catalog_id": title.catalog_id,
            "updated_at": _utcnow(),
        }
        self._upsert(TITLES_TABLE, TITLE_COLUMNS, row)

    def delete_title(self, user_id: str, title_id: str) -> None:
        self.storage.execute(
            f"DELETE FROM {TITLES_TABLE} WHERE user_id = ? AND title_id = ?",  # noqa: S608
            [user_id, title_id],
        )

    def load_ranked_list(self, user_id: str, media_type: MediaType) -> list[Title]:
        """Return the user's titles for ``media_type`` in list order."""
        titles = self.storage.ibis_conn.table(TITLES_TABLE)
        expr = titles.filter((_.user_id == user_id) & (_.media_type == media_type.value))
        rows = expr.to_pyarrow().to_pylist()

        rows.sort(key=lambda row: (TIER_ORDER.index(SentimentTier(row["tier"])), row["position"]))
        return [_title_from_row(row) for row in rows]

    # ------------------------------------------------------------------
    # Global ratings
    # ------------------------------------------------------------------

    def save_global_rating(self, rating: GlobalRating) -> None:
        """Insert or update a community aggregate."""
        row = {
            "catalog_id": rating.catalog_id,
            "title": rating.title,
            "media_type": rating.media_type.value,
            "average_rating": rating.average_rating,
            "number_of_ratings": rating.number_of_ratings,
            "updated_at": _utcnow(),
        }
        self._upsert(GLOBAL_RATINGS_TABLE, GLOBAL_RATING_COLUMNS, row)

    def load_global_rating(self, catalog_id: str) -> GlobalRating | None:
        ratings = self.storage.ibis_conn.table(GLOBAL_RATINGS_TABLE)
        rows = ratings.filter(_.catalog_id == catalog_id).limit(1).to_pyarrow().to_pylist()
        return _global_rating_from_row(rows[0]) if rows else None

    def load_global_ratings(self, media_type: MediaType | None = None) -> list[GlobalRating]:
        ratings = self.storage.ibis_conn.table(GLOBAL_RATINGS_TABLE)
        if media_type is not None:
            ratings = ratings.filter(_.media_type == media_type.value)
        rows = ratings.order_by(_.catalog_id).to_pyarrow().to_pylist()
        return [_global_rating_from_row(row) for row in rows]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _upsert(self, table_name: str, columns: tuple[str, ...], row: dict[str, Any]) -> None:
        sql = upsert_statement(table_name, columns)
        with self.storage.transaction() as conn:
            conn.execute(sql, [row[column] for column in columns])


def _title_from_row(row: dict[str, Any]) -> Title:
    return Title(
        title_id=row["title_id"],
        display_title=row["display_title"],
        tier=SentimentTier(row["tier"]),
        media_type=MediaType(row["media_type"]),
        catalog_id=row["catalog_id"],
        score=row["score"],
        original_score=row["original_score"],
        comparisons_count=row["comparisons_count"],
    )


def _global_rating_from_row(row: dict[str, Any]) -> GlobalRating:
    return GlobalRating(
        catalog_id=row["catalog_id"],
        title=row["title"],
        media_type=MediaType(row["media_type"]),
        average_rating=float(row["average_rating"]),
        number_of_ratings=int(row["number_of_ratings"]),
    )


def _utcnow() -> datetime:
    # TIMESTAMP columns are stored as naive UTC
    return datetime.now(UTC).replace(tzinfo=None)
