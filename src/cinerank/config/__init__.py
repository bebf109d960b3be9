"""Configuration models and loaders."""

from cinerank.config.settings import (
    CinerankConfig,
    CommunitySettings,
    ScoringSettings,
    StorageSettings,
    TierBoundsSettings,
    config_path_for,
    load_config,
    save_config,
)

__all__ = [
    "CinerankConfig",
    "CommunitySettings",
    "ScoringSettings",
    "StorageSettings",
    "TierBoundsSettings",
    "config_path_for",
    "load_config",
    "save_config",
]
