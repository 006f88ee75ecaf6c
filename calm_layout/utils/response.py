"""Response envelopes and payload helpers for MCP tools."""

from typing import Any, Dict, List, Mapping, Optional

from calm_layout.core.reconciliation import to_absolute_positions
from calm_layout.models.layout_record import NodePosition
from calm_layout.models.render_graph import RenderGraph


def is_success(result: Dict[str, Any]) -> bool:
    return bool(result.get("ok"))


def success_response(
    data: Any,
    warnings: Optional[List[str]] = None
) -> Dict[str, Any]:
    """Create a successful response envelope.

    Args:
        data: The response data
        warnings: Optional list of warning messages

    Returns:
        {"ok": True, "data": ...} plus "warnings" when there are any
    """
    response = {
        "ok": True,
        "data": data
    }

    if warnings:
        response["warnings"] = warnings

    return response


def error_response(
    message: str,
    code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Create an error response envelope.

    Args:
        message: Error message
        code: Optional error code (e.g. "NOT_FOUND", "CONTAINMENT_CYCLE")
        details: Optional error details

    Returns:
        {"ok": False, "error": {"message": ..., "code": ..., "details": ...}}
    """
    error = {"message": message}

    if code:
        error["code"] = code

    if details:
        error["details"] = details

    return {
        "ok": False,
        "error": error
    }


def positions_payload(positions: Mapping[str, NodePosition]) -> Dict[str, Dict[str, float]]:
    """{node_id: {"x": ..., "y": ...}} in identity order."""
    return {node_id: {"x": pos.x, "y": pos.y} for node_id, pos in sorted(positions.items())}


def graph_payload(graph: RenderGraph) -> Dict[str, Any]:
    """JSON-ready render graph with both relative and absolute positions."""
    absolute = to_absolute_positions(graph)
    return {
        "direction": graph.direction,
        "nodes": [
            {
                "id": node.id,
                "type": node.node_type,
                "label": node.label,
                "parent_id": node.parent_id,
                "position": {"x": node.position.x, "y": node.position.y},
                "absolute_position": {"x": absolute[node.id].x, "y": absolute[node.id].y},
                "width": node.width,
                "height": node.height,
                "is_container": node.is_container,
                "source_anchor": node.source_anchor,
                "target_anchor": node.target_anchor,
                "z_index": node.z_index,
            }
            for node in graph.nodes
        ],
        "edges": [
            {
                "id": edge.id,
                "source": edge.source,
                "target": edge.target,
                "label": edge.label,
                "animated": edge.animated,
            }
            for edge in graph.edges
        ],
    }
