"""Runtime configuration for layout computation and persistence."""

from calm_layout.config.settings import (
    LayoutSettings,
    get_all_flags,
    is_enabled,
    load_settings,
    set_flag,
)

__all__ = [
    "LayoutSettings",
    "load_settings",
    "is_enabled",
    "get_all_flags",
    "set_flag",
]
