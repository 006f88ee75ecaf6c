"""Coordinate transformer: architecture + layout record -> render graph.

Responsibilities:
- Resolve each node's container from composed-of relationships
- Look up stored positions (origin when missing)
- Convert legacy absolute positions to parent-relative ones
- Size containers to fit their children, bottom-up
- Derive edges from connects / interacts relationships

The transformer never mutates its inputs and is idempotent: the same
architecture and record always produce the same graph.
"""

import logging
from typing import Dict, List, Optional, Tuple

from calm_layout.config.settings import DIRECTIONS, LayoutSettings
from calm_layout.core.containment import (
    ContainmentMap,
    ContainmentTree,
    parent_maps_equal,
    resolve_containment,
)
from calm_layout.models.architecture import Architecture, Connects, Interacts
from calm_layout.models.layout_record import LayoutRecord, NodePosition
from calm_layout.models.render_graph import RenderEdge, RenderGraph, RenderNode, anchors_for

logger = logging.getLogger(__name__)


def layout_is_usable(record: Optional[LayoutRecord], containment: ContainmentMap) -> bool:
    """Decide whether a stored layout can be rendered as-is.

    A record is usable when it has at least one position and either is legacy
    (absolute coordinates, converted on load) or carries a parent map equal
    to the current containment.
    """
    if record is None or record.is_empty:
        return False
    if record.is_legacy:
        return True
    return parent_maps_equal(record.parent_map, containment.parent_of)


class CoordinateTransformer:
    """Builds render graphs from architecture snapshots and layout records."""

    def __init__(self, settings: Optional[LayoutSettings] = None):
        self.settings = settings or LayoutSettings()

    def default_size(self, is_container: bool) -> Tuple[float, float]:
        """Size of a node before any fitting."""
        if is_container:
            return (self.settings.container_width, self.settings.container_height)
        return (self.settings.node_width, self.settings.node_height)

    def transform(
        self,
        architecture: Architecture,
        record: Optional[LayoutRecord] = None,
        containment: Optional[ContainmentMap] = None,
        direction: Optional[str] = None,
    ) -> RenderGraph:
        """Produce the render graph for one snapshot.

        Args:
            architecture: Architecture snapshot
            record: Stored layout (None or empty means every node at origin)
            containment: Precomputed containment (derived when omitted)
            direction: Flow direction for anchors; defaults to the direction
                the record was laid out in, then to the settings

        Returns:
            Fresh RenderGraph

        Raises:
            ContainmentCycleError: If composed-of relationships form a cycle
        """
        record = record or LayoutRecord.empty(architecture.unique_id)
        if containment is None:
            containment = resolve_containment(architecture.relationships)

        nodes_by_id = {}
        for node in architecture.nodes:
            if node.unique_id in nodes_by_id:
                logger.warning(f"Duplicate node identity {node.unique_id}; keeping the first")
                continue
            nodes_by_id[node.unique_id] = node

        tree = ContainmentTree(nodes_by_id.keys(), containment.parent_of)
        positions = self.resolve_positions(record, tree)
        sizes = self.resolve_sizes(tree, positions, containment)
        direction = direction or self.record_direction(record)
        source_anchor, target_anchor = anchors_for(direction)

        render_nodes: List[RenderNode] = []
        for node_id, node in nodes_by_id.items():
            is_container = containment.is_container(node_id)
            width, height = sizes[node_id]
            render_nodes.append(RenderNode(
                id=node_id,
                node_type=node.node_type,
                label=node.label,
                parent_id=tree.parent(node_id),
                position=positions[node_id],
                width=width,
                height=height,
                is_container=is_container,
                source_anchor=source_anchor,
                target_anchor=target_anchor,
                z_index=-1 if is_container else 1,
                node=node,
            ))

        return RenderGraph(
            nodes=render_nodes,
            edges=self.derive_edges(architecture),
            direction=direction,
        )

    def record_direction(self, record: LayoutRecord) -> str:
        if record.direction in DIRECTIONS:
            return record.direction
        return self.settings.direction

    def resolve_positions(
        self, record: LayoutRecord, tree: ContainmentTree
    ) -> Dict[str, NodePosition]:
        """Parent-relative position of every node in the tree.

        Legacy records hold absolute coordinates: a node whose parent also has
        a stored position is shifted by the parent's stored position. Current
        records are already parent-relative and are used as-is.
        """
        origin = NodePosition(x=0.0, y=0.0)
        positions: Dict[str, NodePosition] = {}

        for node_id in tree.post_order():
            stored = record.get_position(node_id)
            if stored is None:
                positions[node_id] = origin
                continue

            parent_id = tree.parent(node_id)
            parent_stored = record.get_position(parent_id) if parent_id else None
            if record.is_legacy and parent_stored is not None:
                positions[node_id] = NodePosition(
                    x=stored.x - parent_stored.x,
                    y=stored.y - parent_stored.y,
                )
            else:
                positions[node_id] = NodePosition(x=stored.x, y=stored.y)

        return positions

    def resolve_sizes(
        self,
        tree: ContainmentTree,
        positions: Dict[str, NodePosition],
        containment: ContainmentMap,
    ) -> Dict[str, Tuple[float, float]]:
        """Width/height of every node, containers grown to fit their children.

        A container's right/bottom edge is the furthest child right/bottom edge
        plus padding, and never smaller than the container default.
        """
        padding = self.settings.padding
        sizes: Dict[str, Tuple[float, float]] = {}

        for node_id in tree.post_order():
            width, height = self.default_size(containment.is_container(node_id))
            children = tree.children(node_id)
            if children:
                right = max(positions[c].x + sizes[c][0] for c in children)
                bottom = max(positions[c].y + sizes[c][1] for c in children)
                width = max(width, right + padding)
                height = max(height, bottom + padding)
            sizes[node_id] = (width, height)

        return sizes

    def derive_edges(self, architecture: Architecture) -> List[RenderEdge]:
        """One edge per connects, one edge per interacts target."""
        edges: List[RenderEdge] = []

        for rel in architecture.relationships:
            variant = rel.relationship_type
            if isinstance(variant, Connects):
                edges.append(RenderEdge(
                    id=rel.unique_id,
                    source=variant.source,
                    target=variant.destination,
                    label=rel.description,
                    animated=True,
                    relationship_id=rel.unique_id,
                ))
            elif isinstance(variant, Interacts):
                for index, target in enumerate(variant.nodes):
                    edges.append(RenderEdge(
                        id=f"{rel.unique_id}-{index}",
                        source=variant.actor,
                        target=target,
                        label=rel.description,
                        relationship_id=rel.unique_id,
                    ))

        return edges


__all__ = [
    "CoordinateTransformer",
    "layout_is_usable",
]
