"""Configuration management."""

import os
from functools import lru_cache
from pathlib import Path

from .models import PlatformSource
from .schemas import (
    CadenceSettings,
    EliminationSettings,
    PlatformSettings,
    WarRoomConfig,
)
from .utils import data_path, load_json

CONFIG_ENV_VAR = 'WARROOM_CONFIG'
DEFAULT_CONFIG_FILE = 'warroom_config.json'


def get_config_path() -> Path:
    """Config file path: $WARROOM_CONFIG if set, else data/warroom_config.json."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return data_path(DEFAULT_CONFIG_FILE)


@lru_cache(maxsize=1)
def get_config() -> WarRoomConfig:
    """
    Load and validate the warroom configuration.

    The result is cached after the first load; call clear_config_cache()
    after changing the file or $WARROOM_CONFIG.

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config file has an invalid structure

    Example:
        from warroom.config import get_config
        config = get_config()
        print(f"Season: {config.season}")
    """
    return load_json(get_config_path(), schema=WarRoomConfig)


def get_season() -> int:
    return get_config().season


def get_default_ttl() -> float:
    """Default maximum staleness for cached matchups, in seconds."""
    return get_config().cache.default_ttl


def get_force_refresh_throttle() -> float:
    """Minimum interval between two forced refreshes of one league."""
    return get_config().cache.force_refresh_throttle


def get_fetch_timeout() -> float:
    return get_config().cache.fetch_timeout


def get_cadence_settings() -> CadenceSettings:
    return get_config().cadence


def get_elimination_settings() -> EliminationSettings:
    return get_config().elimination


def get_discrepancy_epsilon() -> float:
    return get_config().scoring.discrepancy_epsilon


def get_legacy_tables() -> dict[PlatformSource, dict[str, float]]:
    """Legacy per-platform scoring tables, keyed by platform."""
    return {
        PlatformSource(platform): table
        for platform, table in get_config().scoring.legacy_tables.items()
    }


def get_platform_settings(source: PlatformSource) -> PlatformSettings:
    return get_config().platforms[source.value]


def get_identity_dataset_path() -> Path:
    return data_path(get_config().identity_dataset)


def clear_config_cache() -> None:
    """Drop the cached configuration so the next get_config() re-reads the file."""
    get_config.cache_clear()
