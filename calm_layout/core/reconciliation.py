"""Absolute/relative coordinate reconciliation for the persistence path.

Render graphs hold parent-relative positions. Absolute positions are obtained
by summing offsets along the parent chain, memoised per identity within one
call so siblings sharing ancestors are resolved once. ``to_relative_positions``
is the exact inverse and matches the legacy conversion done on load.
"""

import logging
from typing import Dict, Mapping, Optional

from calm_layout.core.containment import ContainmentCycleError
from calm_layout.models.layout_record import LayoutRecord, NodePosition
from calm_layout.models.render_graph import RenderGraph

logger = logging.getLogger(__name__)


def resolve_absolute(
    relative: Mapping[str, NodePosition],
    parent_of: Mapping[str, str],
) -> Dict[str, NodePosition]:
    """Absolute position of every node in ``relative``.

    A node without a parent (or whose parent has no position) is already
    absolute.

    Raises:
        ContainmentCycleError: If the parent chain loops
    """
    memo: Dict[str, NodePosition] = {}

    for start in relative:
        chain = []
        current: Optional[str] = start
        while current is not None and current in relative and current not in memo:
            if current in chain:
                raise ContainmentCycleError(chain[chain.index(current):] + [current])
            chain.append(current)
            current = parent_of.get(current)

        # Unwind from the topmost unresolved ancestor down to the start node
        for node_id in reversed(chain):
            own = relative[node_id]
            parent_id = parent_of.get(node_id)
            base = memo.get(parent_id) if parent_id is not None else None
            memo[node_id] = own.offset(base.x, base.y) if base is not None else own

    return memo


def to_absolute_positions(graph: RenderGraph) -> Dict[str, NodePosition]:
    """Absolute canvas position of every node of a render graph."""
    return resolve_absolute(graph.positions(), graph.parent_map())


def to_relative_positions(
    absolute: Mapping[str, NodePosition],
    parent_of: Mapping[str, str],
) -> Dict[str, NodePosition]:
    """Parent-relative positions from absolute ones.

    A node whose parent has no absolute position keeps its coordinates.
    """
    relative: Dict[str, NodePosition] = {}
    for node_id, pos in absolute.items():
        parent_id = parent_of.get(node_id)
        parent_pos = absolute.get(parent_id) if parent_id is not None else None
        if parent_pos is None:
            relative[node_id] = NodePosition(x=pos.x, y=pos.y)
        else:
            relative[node_id] = NodePosition(x=pos.x - parent_pos.x, y=pos.y - parent_pos.y)
    return relative


def build_layout_record(
    graph: RenderGraph,
    architecture_id: str,
    coordinates: str = "relative",
    algorithm: str = "manual",
) -> LayoutRecord:
    """Snapshot a render graph as a layout record.

    Args:
        graph: Render graph with parent-relative positions
        architecture_id: Identity to key the record by
        coordinates: 'relative' writes positions as-is plus the parent map;
            'absolute' writes absolute positions and no parent map
        algorithm: Origin of the positions

    Returns:
        LayoutRecord carrying the graph's direction

    Raises:
        ValueError: If coordinates is not 'relative' or 'absolute'
    """
    logger.debug(f"Snapshot of {architecture_id}: {len(graph.nodes)} positions, {coordinates} coordinates")
    if coordinates == "relative":
        return LayoutRecord(
            architecture_id=architecture_id,
            positions=graph.positions(),
            has_parent_map=True,
            parent_map=graph.parent_map(),
            algorithm=algorithm,
            direction=graph.direction,
        )
    if coordinates == "absolute":
        return LayoutRecord(
            architecture_id=architecture_id,
            positions=to_absolute_positions(graph),
            has_parent_map=False,
            algorithm=algorithm,
            direction=graph.direction,
        )
    raise ValueError(f"Unknown coordinate space: {coordinates}")


__all__ = [
    "resolve_absolute",
    "to_absolute_positions",
    "to_relative_positions",
    "build_layout_record",
]
