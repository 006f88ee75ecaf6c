"""Layout record for persisting node positions of an architecture.

This module provides schemas for persisted layout information:
- Node positions (x, y coordinates) keyed by node identity
- The containment snapshot (child -> container) taken when the layout was saved
- The flow direction the positions were laid out in
- Versioning with an etag for optimistic concurrency

Coordinate spaces:
    A record is either *legacy* or *current*, decided by ``has_parent_map``:
    - legacy (``has_parent_map=False``): positions are absolute canvas
      coordinates, and must be converted to parent-relative on load
    - current (``has_parent_map=True``): positions are already parent-relative;
      the record is only usable while its parent map equals the containment
      derived from the architecture

Wire shape (as exchanged with the layout store):
    {"nodes": {"<id>": {"x": 0, "y": 0}}, "parentMap": {"<child>": "<container>"}}

    A missing "parentMap" key marks a legacy record. An empty object marks a
    current record of an architecture without containment.
"""

import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)


class NodePosition(BaseModel):
    """Position of a single node in 2D layout space.

    Attributes:
        x: Horizontal coordinate
        y: Vertical coordinate
    """

    x: float = Field(..., description="Horizontal coordinate")
    y: float = Field(..., description="Vertical coordinate")

    @classmethod
    def from_list(cls, pos: List[float]) -> "NodePosition":
        """Create NodePosition from [x, y] list.

        Raises:
            ValueError: If pos doesn't have exactly 2 elements
        """
        if len(pos) != 2:
            raise ValueError(f"Position must be [x, y], got {len(pos)} elements")
        return cls(x=pos[0], y=pos[1])

    def offset(self, dx: float, dy: float) -> "NodePosition":
        """Return a new position shifted by (dx, dy)."""
        return NodePosition(x=self.x + dx, y=self.y + dy)


class LayoutRecord(BaseModel):
    """Persisted layout of one architecture.

    Attributes:
        architecture_id: Identity of the architecture this layout belongs to
        positions: Node positions keyed by node identity
        has_parent_map: Schema discriminant; False means absolute (legacy)
            coordinates, True means parent-relative coordinates
        parent_map: Containment snapshot (child -> container) taken at save time
        algorithm: How the positions were produced ('hierarchical', 'manual', ...)
        direction: Flow direction the positions were laid out in (None when
            unknown, e.g. records written before the direction was stored)
        version: Record version number, incremented by the store on update
        etag: SHA-256 hash for optimistic concurrency (excludes timestamps)
        created_at: ISO 8601 creation timestamp
        updated_at: ISO 8601 last modification timestamp
    """

    architecture_id: str = Field(default="", description="Architecture identity")
    positions: Dict[str, NodePosition] = Field(
        default_factory=dict, description="Node positions keyed by node identity"
    )
    has_parent_map: bool = Field(
        default=False, description="True when positions are parent-relative"
    )
    parent_map: Dict[str, str] = Field(
        default_factory=dict, description="Containment snapshot: child -> container"
    )
    algorithm: str = Field(default="manual", description="Origin of the positions")
    direction: Optional[str] = Field(default=None, description="Layout direction (LR, RL, TB, BT)")

    version: int = Field(default=1, description="Record version number")
    etag: Optional[str] = Field(default=None, description="SHA-256 content hash")
    created_at: Optional[str] = Field(default=None, description="ISO 8601 creation timestamp")
    updated_at: Optional[str] = Field(default=None, description="ISO 8601 modification timestamp")

    @model_validator(mode="after")
    def check_legacy_has_no_parent_map(self) -> "LayoutRecord":
        if not self.has_parent_map and self.parent_map:
            raise ValueError("A legacy (absolute) layout record cannot carry a parent map")
        return self

    def model_post_init(self, __context) -> None:
        """Set timestamps and etag if not provided."""
        now = datetime.now(timezone.utc).isoformat()
        if self.created_at is None:
            object.__setattr__(self, "created_at", now)
        if self.updated_at is None:
            object.__setattr__(self, "updated_at", now)
        if self.etag is None:
            object.__setattr__(self, "etag", self.compute_etag())

    @classmethod
    def empty(cls, architecture_id: str = "") -> "LayoutRecord":
        """Record meaning "no stored layout"."""
        return cls(architecture_id=architecture_id)

    @property
    def is_empty(self) -> bool:
        return not self.positions

    @property
    def is_legacy(self) -> bool:
        return not self.has_parent_map

    def get_position(self, node_id: str) -> Optional[NodePosition]:
        return self.positions.get(node_id)

    def compute_etag(self) -> str:
        """Compute SHA-256 etag from canonical content (excludes timestamps).

        Returns:
            64-character hex string
        """
        canonical = {
            "algorithm": self.algorithm,
            "direction": self.direction,
            "has_parent_map": self.has_parent_map,
            "parent_map": dict(sorted(self.parent_map.items())),
            "positions": {
                k: v.model_dump() for k, v in sorted(self.positions.items())
            },
        }
        canonical_json = json.dumps(canonical, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical_json.encode()).hexdigest()

    @classmethod
    def from_wire(
        cls,
        data: Optional[Mapping[str, Any]],
        architecture_id: str = "",
    ) -> "LayoutRecord":
        """Build a record from the store's wire shape.

        Tolerates None, {}, null node maps, and malformed position entries
        (which are dropped).

        Args:
            data: {"nodes": {...}, "parentMap": {...}} or None
            architecture_id: Identity to key the record by

        Returns:
            LayoutRecord (empty when data carries no positions)
        """
        if not data:
            return cls.empty(architecture_id)

        positions: Dict[str, NodePosition] = {}
        for node_id, pos in (data.get("nodes") or {}).items():
            try:
                if isinstance(pos, (list, tuple)):
                    positions[node_id] = NodePosition.from_list(list(pos))
                elif isinstance(pos, Mapping):
                    positions[node_id] = NodePosition(x=pos["x"], y=pos["y"])
                else:
                    raise ValueError(f"unsupported position {pos!r}")
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Dropping stored position for {node_id}: {e}")

        has_parent_map = "parentMap" in data and data["parentMap"] is not None
        parent_map = {
            str(child): str(parent)
            for child, parent in (data.get("parentMap") or {}).items()
            if parent
        }

        return cls(
            architecture_id=architecture_id or str(data.get("architectureId") or ""),
            positions=positions,
            has_parent_map=has_parent_map,
            parent_map=parent_map,
            algorithm=data.get("algorithm") or "manual",
            direction=data.get("direction") or None,
            version=data.get("version") or 1,
            etag=data.get("etag"),
            created_at=data.get("createdAt"),
            updated_at=data.get("updatedAt"),
        )

    def to_wire(self) -> Dict[str, Any]:
        """Export to the store's wire shape with deterministic key ordering."""
        data: Dict[str, Any] = {
            "architectureId": self.architecture_id,
            "algorithm": self.algorithm,
            "nodes": {
                node_id: pos.model_dump()
                for node_id, pos in sorted(self.positions.items())
            },
            "version": self.version,
            "etag": self.etag,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.direction:
            data["direction"] = self.direction
        if self.has_parent_map:
            data["parentMap"] = dict(sorted(self.parent_map.items()))
        return data


__all__ = [
    "NodePosition",
    "LayoutRecord",
]
