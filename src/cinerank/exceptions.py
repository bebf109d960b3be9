"""Centralized exceptions for the cinerank engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence


class CinerankError(Exception):
    """Base exception for all cinerank errors."""


# ============================================================================
# Ranked list / comparison session
# ============================================================================


class RankingError(CinerankError):
    """Base exception for ranked list and comparison session errors."""


class InvalidTierError(RankingError):
    """Raised when a candidate's declared tier does not match the insertion target."""

    def __init__(self, title_id: str, declared: str, target: str) -> None:
        self.title_id = title_id
        self.declared = declared
        self.target = target
        super().__init__(f"Title '{title_id}' is declared '{declared}' but was inserted into '{target}'")


class NotFoundError(RankingError):
    """Raised when an operation references an unknown title id."""

    def __init__(self, title_id: str) -> None:
        self.title_id = title_id
        super().__init__(f"Title '{title_id}' not found")


class ConcurrentModificationError(RankingError):
    """Raised when a tier changes underneath an open comparison session."""

    def __init__(self, tier: str, expected_version: int, actual_version: int) -> None:
        self.tier = tier
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Tier '{tier}' was modified during comparison "
            f"(expected version {expected_version}, found {actual_version}); restart the session"
        )


class DuplicateTitleError(RankingError):
    """Raised when a title (or its catalog entry) is already in the list."""

    def __init__(self, key: str, message: str | None = None) -> None:
        self.key = key
        super().__init__(message or f"Title '{key}' is already ranked")


class InvalidPositionError(RankingError):
    """Raised when a resolved insertion index falls outside the tier."""

    def __init__(self, index: int, size: int) -> None:
        self.index = index
        self.size = size
        super().__init__(f"Position {index} is outside 0..{size}")


class SessionStateError(RankingError):
    """Raised when a session operation is not legal in the current state."""

    def __init__(self, state: str, operation: str) -> None:
        self.state = state
        self.operation = operation
        super().__init__(f"Cannot {operation} while session is in state '{state}'")


class MediaTypeMismatchError(RankingError):
    """Raised when a title is routed to a list of another media type."""

    def __init__(self, title_id: str, expected: str, actual: str) -> None:
        self.title_id = title_id
        self.expected = expected
        self.actual = actual
        super().__init__(f"Title '{title_id}' is a '{actual}', list holds '{expected}'")


# ============================================================================
# Community aggregation
# ============================================================================


class AggregateError(CinerankError):
    """Base exception for community aggregation errors."""


class DegenerateAggregateError(AggregateError):
    """Raised on an aggregate update that would break the running mean."""

    def __init__(self, catalog_id: str, reason: str) -> None:
        self.catalog_id = catalog_id
        self.reason = reason
        super().__init__(f"Aggregate '{catalog_id}': {reason}")


# ============================================================================
# Configuration
# ============================================================================


class ConfigError(CinerankError):
    """Base exception for all configuration-related errors."""


class ConfigValidationError(ConfigError):
    """Raised when the configuration fails validation."""

    def __init__(self, errors: Sequence[dict[str, Any]] | None = None) -> None:
        self.errors = list(errors or [])
        super().__init__(f"Configuration validation failed with {len(self.errors)} error(s).")


# ============================================================================
# Persistence
# ============================================================================


class PersistenceError(CinerankError):
    """A write to the persistence collaborator failed.

    Recorded by the write-behind sink; never raised into engine mutations.
    """

    def __init__(self, operation: str, cause: BaseException) -> None:
        self.operation = operation
        self.cause = cause
        super().__init__(f"Persistence operation '{operation}' failed: {cause}")
