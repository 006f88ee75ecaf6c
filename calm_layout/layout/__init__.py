"""Layout module for automatic placement of architecture diagrams.

This module provides:
- Layout engine abstraction (LayoutEngine)
- Layered (Sugiyama) placement of a flat group of nodes
- Hierarchical engine composing layered placements of nested containers
"""

from calm_layout.layout.engines import ENGINES, get_engine
from calm_layout.layout.engines.base import LayoutEngine
from calm_layout.layout.engines.hierarchical import HierarchicalLayoutEngine

__all__ = [
    "LayoutEngine",
    "HierarchicalLayoutEngine",
    "ENGINES",
    "get_engine",
]
