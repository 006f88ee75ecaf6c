"""
Layout configuration and feature flags.

Layout geometry is read from environment variables once per call to
load_settings(), so tests and embedders can override it without code changes.

Usage:
    from calm_layout.config.settings import load_settings, is_enabled

    settings = load_settings()
    engine = HierarchicalLayoutEngine(settings)

    if is_enabled('strict_containment'):
        # A node claimed by two containers is an error
        ...

Environment Variables:
    CALM_LAYOUT_DIRECTION=LR|RL|TB|BT   - Primary flow direction (default LR)
    CALM_LAYOUT_PADDING=40              - Container padding on every side
    CALM_LAYOUT_NODE_WIDTH=200          - Leaf node width
    CALM_LAYOUT_NODE_HEIGHT=80          - Leaf node height
    CALM_LAYOUT_STORE_DIR=path          - Directory for persisted layouts
    CALM_LAYOUT_COORDINATES=relative|absolute - Coordinate space written on save
    CALM_STRICT_CONTAINMENT=true/false  - Reject nodes claimed by two containers
"""

import os
from dataclasses import dataclass
from typing import Dict, Optional


DIRECTIONS = ("LR", "RL", "TB", "BT")
COORDINATE_SPACES = ("relative", "absolute")


# Feature flags with environment variable overrides
FEATURE_FLAGS: Dict[str, bool] = {
    'strict_containment': os.getenv('CALM_STRICT_CONTAINMENT', 'false').lower() == 'true',
}


@dataclass(frozen=True)
class LayoutSettings:
    """Geometry and persistence settings shared by the transformer and engines.

    Attributes:
        direction: Primary flow direction of the layered placement
        node_width: Default width of a leaf node
        node_height: Default height of a leaf node
        container_width: Width of a container before it is fitted to children
        container_height: Height of a container before it is fitted to children
        padding: Margin kept between a container border and its children
        node_sep: Spacing between neighbours in the same rank
        rank_sep: Spacing between consecutive ranks
        store_dir: Base directory for layout files (None keeps layouts in memory)
        coordinates: Coordinate space written when a layout is saved
    """

    direction: str = "LR"
    node_width: float = 200.0
    node_height: float = 80.0
    container_width: float = 400.0
    container_height: float = 250.0
    padding: float = 40.0
    node_sep: float = 50.0
    rank_sep: float = 50.0
    store_dir: Optional[str] = None
    coordinates: str = "relative"

    def __post_init__(self):
        if self.direction not in DIRECTIONS:
            raise ValueError(
                f"Unknown layout direction: '{self.direction}'. "
                f"Available: {', '.join(DIRECTIONS)}"
            )
        if self.coordinates not in COORDINATE_SPACES:
            raise ValueError(
                f"Unknown coordinate space: '{self.coordinates}'. "
                f"Available: {', '.join(COORDINATE_SPACES)}"
            )


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return float(value)


def load_settings() -> LayoutSettings:
    """
    Build LayoutSettings from the environment.

    Returns:
        LayoutSettings with environment overrides applied

    Raises:
        ValueError: If a variable holds an unknown direction, coordinate
            space, or a non-numeric size
    """
    return LayoutSettings(
        direction=os.getenv('CALM_LAYOUT_DIRECTION', 'LR').upper(),
        node_width=_env_float('CALM_LAYOUT_NODE_WIDTH', 200.0),
        node_height=_env_float('CALM_LAYOUT_NODE_HEIGHT', 80.0),
        padding=_env_float('CALM_LAYOUT_PADDING', 40.0),
        store_dir=os.getenv('CALM_LAYOUT_STORE_DIR') or None,
        coordinates=os.getenv('CALM_LAYOUT_COORDINATES', 'relative').lower(),
    )


def is_enabled(flag: str) -> bool:
    """
    Check if a feature flag is enabled.

    Args:
        flag: Feature flag name (e.g., 'strict_containment')

    Returns:
        True if flag is enabled, False otherwise

    Raises:
        KeyError: If flag name is not recognized
    """
    if flag not in FEATURE_FLAGS:
        available = ', '.join(FEATURE_FLAGS.keys())
        raise KeyError(
            f"Unknown feature flag: '{flag}'. "
            f"Available flags: {available}"
        )

    return FEATURE_FLAGS[flag]


def get_all_flags() -> Dict[str, bool]:
    """Get all feature flags and their current state."""
    return FEATURE_FLAGS.copy()


def set_flag(flag: str, enabled: bool) -> None:
    """
    Programmatically set a feature flag (for testing only).

    Warning:
        This is for testing only. In production, use environment variables.
    """
    if flag not in FEATURE_FLAGS:
        available = ', '.join(FEATURE_FLAGS.keys())
        raise KeyError(
            f"Unknown feature flag: '{flag}'. "
            f"Available flags: {available}"
        )

    FEATURE_FLAGS[flag] = enabled
