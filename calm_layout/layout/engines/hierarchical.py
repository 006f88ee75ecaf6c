"""Hierarchical layout engine: recursive layered placement of nested containers.

Algorithm:
1. Build the containment tree from the graph's parent ids. A parent id that
   is not a node of the graph makes the child top-level.
2. Bottom-up: for every container (children first), place its direct
   children as an independent layered graph, using only edges whose two
   endpoints are among those children. The container's size becomes the
   children's bounding box plus padding on every side.
3. Place the top-level nodes the same way, with every size now known.

Each group's placement is normalized so its bounding box starts at
(padding, padding), which makes every position parent-relative by
construction. Anchor sides come from the global direction.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from calm_layout.config.settings import LayoutSettings
from calm_layout.core.containment import ContainmentTree
from calm_layout.layout.engines.base import LayoutEngine
from calm_layout.layout.engines.layered import LayeredPlacement, Placement, build_group_graph
from calm_layout.models.layout_record import NodePosition
from calm_layout.models.render_graph import RenderGraph, anchors_for

logger = logging.getLogger(__name__)


class HierarchicalLayoutEngine(LayoutEngine):
    """Recursive two-phase layered layout for nested render graphs.

    Options (all optional, override the settings for one call):
        direction: 'LR', 'RL', 'TB' or 'BT'
        padding: Container padding on every side
        node_sep: Spacing between neighbours in a rank
        rank_sep: Spacing between ranks
    """

    def __init__(self, settings: Optional[LayoutSettings] = None):
        self.settings = settings or LayoutSettings()

    @property
    def name(self) -> str:
        return "hierarchical"

    @property
    def supports_nesting(self) -> bool:
        return True

    def layout(
        self,
        graph: RenderGraph,
        options: Optional[Dict[str, Any]] = None,
    ) -> RenderGraph:
        """Lay out every nesting level of ``graph``.

        Raises:
            ContainmentCycleError: If parent ids form a cycle
            ValueError: If options name an unknown direction
        """
        options = options or {}
        direction = options.get("direction", self.settings.direction)
        padding = float(options.get("padding", self.settings.padding))
        placement = LayeredPlacement(
            direction=direction,
            node_sep=float(options.get("node_sep", self.settings.node_sep)),
            rank_sep=float(options.get("rank_sep", self.settings.rank_sep)),
        )

        nodes = graph.node_index()
        tree = ContainmentTree(nodes.keys(), graph.parent_map())
        edges = [(edge.source, edge.target) for edge in graph.edges]

        sizes: Dict[str, Tuple[float, float]] = {}
        positions: Dict[str, NodePosition] = {}

        for node_id in tree.post_order():
            children = tree.children(node_id)
            if not children:
                sizes[node_id] = self._default_size(nodes[node_id].is_container)
                continue

            group = self._layout_group(children, sizes, edges, placement, padding)
            positions.update(group.positions)
            sizes[node_id] = (group.width + 2 * padding, group.height + 2 * padding)
            logger.debug(
                f"Container {node_id}: {len(children)} children, "
                f"size {sizes[node_id][0]:.0f}x{sizes[node_id][1]:.0f}"
            )

        top = self._layout_group(tree.roots, sizes, edges, placement, padding)
        positions.update(top.positions)

        source_anchor, target_anchor = anchors_for(direction)
        laid_out = []
        for node_id, node in nodes.items():
            width, height = sizes[node_id]
            laid_out.append(node.model_copy(update={
                "parent_id": tree.parent(node_id),
                "position": positions[node_id],
                "width": width,
                "height": height,
                "source_anchor": source_anchor,
                "target_anchor": target_anchor,
            }))

        logger.info(
            f"Hierarchical layout: {len(laid_out)} nodes, {len(tree.roots)} top-level, "
            f"direction {direction}"
        )
        return graph.model_copy(update={"nodes": laid_out, "direction": direction})

    def _default_size(self, is_container: bool) -> Tuple[float, float]:
        if is_container:
            return (self.settings.container_width, self.settings.container_height)
        return (self.settings.node_width, self.settings.node_height)

    def _layout_group(
        self,
        node_ids: List[str],
        sizes: Dict[str, Tuple[float, float]],
        edges: List[Tuple[str, str]],
        placement: LayeredPlacement,
        padding: float,
    ) -> Placement:
        """Place one group; positions start at (padding, padding)."""
        if not node_ids:
            return Placement()

        group = build_group_graph({node_id: sizes[node_id] for node_id in node_ids}, edges)
        placed = placement.place(group)
        return Placement(
            positions={
                node_id: pos.offset(padding, padding)
                for node_id, pos in placed.positions.items()
            },
            width=placed.width,
            height=placed.height,
        )
