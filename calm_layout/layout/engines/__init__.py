"""Layout engines registry.

Available engines:
- hierarchical: recursive layered layout for nested containers
"""

from calm_layout.layout.engines.base import LayoutEngine
from calm_layout.layout.engines.hierarchical import HierarchicalLayoutEngine
from calm_layout.layout.engines.layered import LayeredPlacement, Placement

# Engine registry
ENGINES = {
    "hierarchical": HierarchicalLayoutEngine,
}


def get_engine(name: str) -> type:
    """Get layout engine class by name.

    Args:
        name: Engine name ('hierarchical')

    Returns:
        Layout engine class

    Raises:
        ValueError: If engine not found
    """
    if name not in ENGINES:
        raise ValueError(f"Unknown layout engine: {name}. Available: {list(ENGINES.keys())}")
    return ENGINES[name]


__all__ = [
    "LayoutEngine",
    "HierarchicalLayoutEngine",
    "LayeredPlacement",
    "Placement",
    "ENGINES",
    "get_engine",
]
