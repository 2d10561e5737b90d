"""
Range configuration and tool settings.

This package provides the `.objidconfig` models and store (relaxed-JSON
parsing, legacy-shape migration, validation, merge writes, TTL cache) and
the environment-driven tool settings.
"""

from .models import ConfigFinding, ConfigReport, Range, RangeConfig
from .settings import Settings, load_settings
from .store import (
    CONFIG_FILENAME,
    RangeConfigStore,
    find_overlaps,
    get_config_path,
    merge_documents,
    migrate_legacy_shape,
    parse_relaxed_json,
    validate_config,
)

__all__ = [
    # Models
    "ConfigFinding",
    "ConfigReport",
    "Range",
    "RangeConfig",
    "Settings",
    # Store
    "CONFIG_FILENAME",
    "RangeConfigStore",
    "find_overlaps",
    "get_config_path",
    "load_settings",
    "merge_documents",
    "migrate_legacy_shape",
    "parse_relaxed_json",
    "validate_config",
]
