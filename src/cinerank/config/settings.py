"""Centralized configuration for cinerank.

Configuration is read from ``.cinerank/cinerank.toml`` under a root
directory and can be overridden with environment variables of the form
``CINERANK_SECTION__KEY`` (e.g. ``CINERANK_SCORING__PRECISION=2``).

Priority (highest to lowest):
1. Environment variables
2. Config file
3. Defaults
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

import tomli_w
from pydantic import BaseModel, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from cinerank.exceptions import ConfigValidationError

logger = logging.getLogger(__name__)

# ============================================================================
# Constants
# ============================================================================

SCORE_AXIS_MIN = 0.0
SCORE_AXIS_MAX = 10.0

CONFIG_DIR_NAME = ".cinerank"
CONFIG_FILE_NAME = "cinerank.toml"
DEFAULT_DATABASE_PATH = Path(CONFIG_DIR_NAME) / "cinerank.duckdb"

# Fallbacks for the community leaderboard when no ratings exist yet
DEFAULT_GLOBAL_MEAN = 7.7
DEFAULT_PRIOR_STRENGTH = 10.0


class TierBoundsSettings(BaseModel):
    """Sub-range of the score axis owned by one sentiment tier."""

    floor: float = Field(ge=SCORE_AXIS_MIN, le=SCORE_AXIS_MAX)
    ceiling: float = Field(ge=SCORE_AXIS_MIN, le=SCORE_AXIS_MAX)
    include_floor: bool = True
    include_ceiling: bool = True

    @model_validator(mode="after")
    def _check_order(self) -> TierBoundsSettings:
        if self.floor > self.ceiling:
            msg = f"floor {self.floor} is above ceiling {self.ceiling}"
            raise ValueError(msg)
        return self


class ScoringSettings(BaseModel):
    """Tier ranges and rounding used when converting list position to score."""

    liked: TierBoundsSettings = Field(
        default_factory=lambda: TierBoundsSettings(floor=6.9, ceiling=10.0, include_floor=False),
        description="Range for 'I liked it!' titles",
    )
    fine: TierBoundsSettings = Field(
        default_factory=lambda: TierBoundsSettings(floor=4.0, ceiling=6.9),
        description="Range for 'It was fine' titles",
    )
    disliked: TierBoundsSettings = Field(
        default_factory=lambda: TierBoundsSettings(floor=0.0, ceiling=4.0, include_ceiling=False),
        description="Range for 'I didn't like it' titles",
    )
    precision: int = Field(
        default=3,
        ge=0,
        le=6,
        description="Decimal places kept on stored scores",
    )
    display_precision: int = Field(
        default=1,
        ge=0,
        le=3,
        description="Decimal places shown to users",
    )

    @model_validator(mode="after")
    def _check_tiers_ordered(self) -> ScoringSettings:
        if self.fine.ceiling > self.liked.floor:
            msg = f"fine ceiling {self.fine.ceiling} overlaps liked floor {self.liked.floor}"
            raise ValueError(msg)
        if self.disliked.ceiling > self.fine.floor:
            msg = f"disliked ceiling {self.disliked.ceiling} overlaps fine floor {self.fine.floor}"
            raise ValueError(msg)
        return self


class CommunitySettings(BaseModel):
    """Community aggregation settings."""

    min_score: float = Field(default=SCORE_AXIS_MIN, description="Lowest personal score accepted")
    max_score: float = Field(default=SCORE_AXIS_MAX, description="Highest personal score accepted")
    default_global_mean: float = Field(
        default=DEFAULT_GLOBAL_MEAN,
        description="Prior mean for the leaderboard when no ratings exist",
    )
    default_prior_strength: float = Field(
        default=DEFAULT_PRIOR_STRENGTH,
        gt=0,
        description="Prior weight for the leaderboard when no ratings exist",
    )

    @model_validator(mode="after")
    def _check_range(self) -> CommunitySettings:
        if self.min_score >= self.max_score:
            msg = f"min_score {self.min_score} must be below max_score {self.max_score}"
            raise ValueError(msg)
        return self


class StorageSettings(BaseModel):
    """Where the DuckDB persistence sink keeps its data."""

    database_path: Path = Field(
        default=DEFAULT_DATABASE_PATH,
        description="DuckDB database file, relative to the root directory",
    )


class CinerankConfig(BaseSettings):
    """Root configuration for cinerank."""

    model_config = SettingsConfigDict(
        env_prefix="CINERANK_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    community: CommunitySettings = Field(default_factory=CommunitySettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # File values arrive as init kwargs; environment variables take precedence.
        return env_settings, init_settings


def config_path_for(root: Path) -> Path:
    """Return the config file location under ``root``."""
    return root / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def load_config(root: Path | None = None) -> CinerankConfig:
    """Load configuration from ``<root>/.cinerank/cinerank.toml``.

    Missing files yield the defaults (plus any environment overrides).

    Raises:
        ConfigValidationError: If the file cannot be parsed or fails validation

    """
    if root is None:
        root = Path.cwd()

    config_path = config_path_for(root)
    file_data: dict[str, Any] = {}

    if config_path.exists():
        logger.info("Loading config from %s", config_path)
        try:
            file_data = tomllib.loads(config_path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            logger.exception("Failed to parse config in %s", config_path)
            raise ConfigValidationError([{"loc": (str(config_path),), "msg": str(e)}]) from e
    else:
        logger.debug("No configuration at %s, using defaults", config_path)

    try:
        return CinerankConfig(**file_data)
    except ValidationError as e:
        for error in e.errors():
            loc = " -> ".join(str(part) for part in error["loc"])
            logger.error("  %s: %s", loc, error["msg"])
        raise ConfigValidationError(e.errors()) from e


def save_config(config: CinerankConfig, root: Path) -> Path:
    """Write ``config`` to ``<root>/.cinerank/cinerank.toml`` and return the path."""
    config_path = config_path_for(root)
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(mode="json")
    config_path.write_text(tomli_w.dumps(data), encoding="utf-8")
    logger.info("Saved config to %s", config_path)
    return config_path
