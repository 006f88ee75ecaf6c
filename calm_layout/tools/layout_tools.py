"""MCP tools for computing and managing architecture layouts.

Provides tools to:
- Compute a positioned render graph from an architecture document
- Read stored layouts, in stored or absolute coordinates
- Move nodes and reset layouts with etag-based optimistic concurrency
- Report whether a stored layout still fits the architecture
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from mcp import Tool

from calm_layout.config.settings import DIRECTIONS, LayoutSettings
from calm_layout.core.containment import (
    ContainmentConflictError,
    ContainmentCycleError,
    ContainmentMap,
    parent_maps_equal,
    resolve_containment,
)
from calm_layout.core.layout_store import LayoutStore, OptimisticLockError
from calm_layout.core.reconciliation import build_layout_record, resolve_absolute
from calm_layout.core.transformer import CoordinateTransformer, layout_is_usable
from calm_layout.layout.engines.hierarchical import HierarchicalLayoutEngine
from calm_layout.models.architecture import Architecture, parse_architecture
from calm_layout.models.layout_record import LayoutRecord, NodePosition
from calm_layout.models.render_graph import RenderGraph
from calm_layout.utils.response import (
    error_response,
    graph_payload,
    positions_payload,
    success_response,
)

logger = logging.getLogger(__name__)

_ARCHITECTURE_PROPERTY = {
    "description": "CALM architecture document (object or JSON text)",
    "type": ["object", "string"],
}


class LayoutTools:
    """Provides layout computation and management tools."""

    def __init__(
        self,
        layout_store: Optional[LayoutStore] = None,
        settings: Optional[LayoutSettings] = None,
    ):
        """Initialize with a layout store and layout settings.

        Args:
            layout_store: Optional layout store (created if not provided)
            settings: Optional settings (defaults if not provided)
        """
        self.settings = settings or LayoutSettings()
        self.layout_store = (
            layout_store if layout_store is not None
            else LayoutStore(base_dir=self.settings.store_dir)
        )
        self.transformer = CoordinateTransformer(self.settings)
        self.engine = HierarchicalLayoutEngine(self.settings)

    def get_tools(self) -> List[Tool]:
        """Return layout MCP tools."""
        return [
            Tool(
                name="layout_compute",
                description="Compute the render graph of an architecture. Uses the stored layout when it still fits the containment, otherwise runs the hierarchical layout.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "architecture": _ARCHITECTURE_PROPERTY,
                        "direction": {
                            "type": "string",
                            "enum": list(DIRECTIONS),
                            "description": "Primary flow direction (default from settings)"
                        },
                        "use_stored": {
                            "type": "boolean",
                            "description": "Reuse a usable stored layout",
                            "default": True
                        },
                        "store_result": {
                            "type": "boolean",
                            "description": "Store a newly computed layout",
                            "default": True
                        }
                    },
                    "required": ["architecture"]
                }
            ),
            Tool(
                name="layout_get",
                description="Get the stored layout of an architecture",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "architecture_id": {
                            "type": "string",
                            "description": "Architecture identity"
                        },
                        "absolute": {
                            "type": "boolean",
                            "description": "Return absolute canvas coordinates",
                            "default": False
                        }
                    },
                    "required": ["architecture_id"]
                }
            ),
            Tool(
                name="layout_move_node",
                description="Move one node of a stored layout. Coordinates are in the record's space (parent-relative unless the record is legacy).",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "architecture_id": {
                            "type": "string",
                            "description": "Architecture identity"
                        },
                        "node_id": {
                            "type": "string",
                            "description": "Node to move"
                        },
                        "x": {"type": "number"},
                        "y": {"type": "number"},
                        "etag": {
                            "type": "string",
                            "description": "Expected etag (from layout_get). Move fails if layout was modified since."
                        }
                    },
                    "required": ["architecture_id", "node_id", "x", "y"]
                }
            ),
            Tool(
                name="layout_reset",
                description="Discard the stored layout and recompute it with the hierarchical layout",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "architecture": _ARCHITECTURE_PROPERTY,
                        "direction": {
                            "type": "string",
                            "enum": list(DIRECTIONS),
                            "description": "Primary flow direction (default from settings)"
                        }
                    },
                    "required": ["architecture"]
                }
            ),
            Tool(
                name="layout_check",
                description="Report whether the stored layout still fits the architecture: schema, containment staleness, missing and orphan positions, containment conflicts.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "architecture": _ARCHITECTURE_PROPERTY
                    },
                    "required": ["architecture"]
                }
            ),
            Tool(
                name="layout_delete",
                description="Delete the stored layout of an architecture",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "architecture_id": {
                            "type": "string",
                            "description": "Architecture identity"
                        }
                    },
                    "required": ["architecture_id"]
                }
            ),
        ]

    async def handle_tool(self, name: str, arguments: dict) -> dict:
        """Route tool call to appropriate handler.

        Args:
            name: Tool name
            arguments: Tool arguments

        Returns:
            Standardized response
        """
        handlers = {
            "layout_compute": self._compute_layout,
            "layout_get": self._get_layout,
            "layout_move_node": self._move_node,
            "layout_reset": self._reset_layout,
            "layout_check": self._check_layout,
            "layout_delete": self._delete_layout,
        }

        handler = handlers.get(name)
        if not handler:
            return error_response(f"Unknown layout tool: {name}", code="UNKNOWN_TOOL")

        try:
            return await handler(arguments)
        except ContainmentCycleError as e:
            return error_response(str(e), code="CONTAINMENT_CYCLE", details={"cycle": e.cycle})
        except ContainmentConflictError as e:
            return error_response(
                str(e),
                code="CONTAINMENT_CONFLICT",
                details={"conflicts": [
                    {"child": c.child, "containers": list(c.containers)} for c in e.conflicts
                ]},
            )
        except OptimisticLockError as e:
            return error_response(
                str(e),
                code="ETAG_MISMATCH",
                details={"expected": e.expected_etag, "actual": e.actual_etag},
            )
        except Exception as e:
            logger.error(f"Error in {name}: {e}", exc_info=True)
            return error_response(str(e), code="TOOL_ERROR")

    def _load_architecture(self, args: dict) -> Tuple[Optional[Architecture], Optional[ContainmentMap]]:
        architecture = parse_architecture(args.get("architecture"))
        if architecture is None:
            return None, None
        containment = resolve_containment(architecture.relationships).restricted_to(
            architecture.node_ids()
        )
        return architecture, containment

    def _engine_options(self, args: dict) -> Dict[str, Any]:
        options = {}
        if args.get("direction"):
            options["direction"] = args["direction"]
        return options

    def _store(self, graph: RenderGraph, architecture_id: str) -> Optional[str]:
        """Persist a computed graph; returns the new etag, None without identity."""
        if not architecture_id:
            return None
        record = build_layout_record(
            graph,
            architecture_id,
            coordinates=self.settings.coordinates,
            algorithm=self.engine.name,
        )
        return self.layout_store.save(architecture_id, record)

    async def _compute_layout(self, args: dict) -> dict:
        """Compute the render graph of an architecture."""
        architecture, containment = self._load_architecture(args)
        if architecture is None:
            return error_response("Architecture document is empty", code="INVALID_ARCHITECTURE")

        use_stored = args.get("use_stored", True)
        store_result = args.get("store_result", True)
        direction = args.get("direction")

        record = self.layout_store.fetch(architecture.unique_id) if use_stored else None
        graph = self.transformer.transform(architecture, record, containment, direction=direction)

        computed = not layout_is_usable(record, containment)
        if not computed and direction and record.direction not in (None, direction):
            logger.info(
                f"Stored layout of {architecture.unique_id} flows {record.direction}; "
                f"recomputing for {direction}"
            )
            computed = True
        if computed:
            graph = self.engine.layout(graph, self._engine_options(args))

        result = {
            "architecture_id": architecture.unique_id,
            "computed": computed,
            "node_count": len(graph.nodes),
            "edge_count": len(graph.edges),
            "graph": graph_payload(graph),
        }

        warnings = []
        if computed and store_result:
            etag = self._store(graph, architecture.unique_id)
            if etag is None:
                warnings.append("Architecture has no unique-id; layout not stored")
            else:
                result["stored"] = True
                result["etag"] = etag

        return success_response(result, warnings=warnings)

    async def _get_layout(self, args: dict) -> dict:
        """Get a stored layout."""
        architecture_id = args["architecture_id"]
        absolute = args.get("absolute", False)

        record = self.layout_store.fetch(architecture_id)
        if record.is_empty:
            return error_response(f"No layout stored for {architecture_id}", code="NOT_FOUND")

        positions = record.positions
        coordinates = "absolute" if record.is_legacy else "relative"
        if absolute and not record.is_legacy:
            positions = resolve_absolute(record.positions, record.parent_map)
            coordinates = "absolute"

        result = {
            "architecture_id": architecture_id,
            "algorithm": record.algorithm,
            "direction": record.direction,
            "version": record.version,
            "etag": record.etag,
            "created_at": record.created_at,
            "updated_at": record.updated_at,
            "legacy": record.is_legacy,
            "coordinates": coordinates,
            "node_count": len(positions),
            "positions": positions_payload(positions),
        }
        if record.has_parent_map:
            result["parent_map"] = dict(sorted(record.parent_map.items()))

        return success_response(result)

    async def _move_node(self, args: dict) -> dict:
        """Move one node of a stored layout."""
        architecture_id = args["architecture_id"]
        node_id = args["node_id"]

        record = self.layout_store.fetch(architecture_id)
        if record.is_empty:
            return error_response(f"No layout stored for {architecture_id}", code="NOT_FOUND")
        if node_id not in record.positions:
            return error_response(
                f"Node {node_id} not in layout of {architecture_id}", code="NODE_NOT_FOUND"
            )

        positions = dict(record.positions)
        positions[node_id] = NodePosition(x=float(args["x"]), y=float(args["y"]))
        moved = LayoutRecord(
            architecture_id=architecture_id,
            positions=positions,
            has_parent_map=record.has_parent_map,
            parent_map=record.parent_map,
            algorithm="manual",
            direction=record.direction,
        )

        etag = self.layout_store.update(architecture_id, moved, expected_etag=args.get("etag"))
        logger.debug(f"Moved {node_id} in layout of {architecture_id}")

        return success_response({
            "architecture_id": architecture_id,
            "node_id": node_id,
            "position": {"x": positions[node_id].x, "y": positions[node_id].y},
            "etag": etag,
        })

    async def _reset_layout(self, args: dict) -> dict:
        """Recompute and store the layout from scratch."""
        architecture, containment = self._load_architecture(args)
        if architecture is None:
            return error_response("Architecture document is empty", code="INVALID_ARCHITECTURE")
        if not architecture.unique_id:
            return error_response(
                "Architecture has no unique-id to key the layout by", code="INVALID_ARCHITECTURE"
            )

        graph = self.transformer.transform(
            architecture, None, containment, direction=args.get("direction")
        )
        graph = self.engine.layout(graph, self._engine_options(args))
        etag = self._store(graph, architecture.unique_id)

        return success_response({
            "architecture_id": architecture.unique_id,
            "etag": etag,
            "node_count": len(graph.nodes),
            "graph": graph_payload(graph),
        })

    async def _check_layout(self, args: dict) -> dict:
        """Report how the stored layout relates to the architecture."""
        architecture, containment = self._load_architecture(args)
        if architecture is None:
            return error_response("Architecture document is empty", code="INVALID_ARCHITECTURE")

        record = self.layout_store.fetch(architecture.unique_id)
        node_ids = architecture.node_ids()
        known = set(node_ids)

        result = {
            "architecture_id": architecture.unique_id,
            "has_layout": not record.is_empty,
            "legacy": record.is_legacy,
            "usable": layout_is_usable(record, containment),
            "stale_containment": (
                not record.is_empty
                and record.has_parent_map
                and not parent_maps_equal(record.parent_map, containment.parent_of)
            ),
            "missing_positions": [n for n in node_ids if n not in record.positions],
            "orphan_positions": sorted(n for n in record.positions if n not in known),
            "containers": sorted(containment.containers),
            "conflicts": [
                {"child": c.child, "containers": list(c.containers), "winner": c.winner}
                for c in containment.conflicts
            ],
        }

        warnings = [
            f"{c.child} is claimed by {len(c.containers)} containers; {c.winner} wins"
            for c in containment.conflicts
        ]
        return success_response(result, warnings=warnings)

    async def _delete_layout(self, args: dict) -> dict:
        """Delete a stored layout."""
        architecture_id = args["architecture_id"]

        if self.layout_store.delete(architecture_id):
            return success_response({"architecture_id": architecture_id, "deleted": True})
        return error_response(f"No layout stored for {architecture_id}", code="NOT_FOUND")
