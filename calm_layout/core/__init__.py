"""
Core Layer - containment, coordinate transformation, and layout persistence.

Modules:
- containment: composed-of relationships -> child/container map and tree
- transformer: architecture + stored layout -> render graph
- reconciliation: absolute <-> parent-relative coordinates, layout records
- layout_store: keyed layout records with optional file persistence
- content_source: architecture snapshot suppliers
- studio: refresh / edit / save orchestration (import from core.studio)
"""

from .containment import (
    ContainmentConflict,
    ContainmentConflictError,
    ContainmentCycleError,
    ContainmentMap,
    ContainmentTree,
    parent_maps_equal,
    resolve_containment,
)
from .content_source import (
    ContentSnapshot,
    ContentSource,
    FileContentSource,
    StaticContentSource,
)
from .layout_store import (
    LayoutNotFoundError,
    LayoutStore,
    OptimisticLockError,
    create_layout_store,
)
from .reconciliation import (
    build_layout_record,
    resolve_absolute,
    to_absolute_positions,
    to_relative_positions,
)
from .transformer import CoordinateTransformer, layout_is_usable

__all__ = [
    "ContainmentConflict",
    "ContainmentConflictError",
    "ContainmentCycleError",
    "ContainmentMap",
    "ContainmentTree",
    "parent_maps_equal",
    "resolve_containment",
    "ContentSnapshot",
    "ContentSource",
    "FileContentSource",
    "StaticContentSource",
    "LayoutNotFoundError",
    "LayoutStore",
    "OptimisticLockError",
    "create_layout_store",
    "build_layout_record",
    "resolve_absolute",
    "to_absolute_positions",
    "to_relative_positions",
    "CoordinateTransformer",
    "layout_is_usable",
]
