"""DuckDB persistence for ranked lists and community ratings."""

from .duckdb_manager import DuckDBStorageManager
from .store import GLOBAL_RATINGS_TABLE, TITLES_TABLE, RankingStore

__all__ = ["GLOBAL_RATINGS_TABLE", "TITLES_TABLE", "DuckDBStorageManager", "RankingStore"]
