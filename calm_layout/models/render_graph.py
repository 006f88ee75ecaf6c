"""Render graph: fully resolved nodes and edges ready for presentation.

Positions on RenderNode are parent-relative: a node with ``parent_id`` is
placed relative to its container's top-left corner, a node without one is
placed on the canvas. Render graphs are rebuilt on every refresh; updates
go through ``with_positions`` / ``with_nodes``, which return new graphs.
"""

from typing import Dict, Iterable, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field

from calm_layout.models.architecture import ArchitectureNode
from calm_layout.models.layout_record import NodePosition

AnchorSide = Literal["left", "right", "top", "bottom"]

# direction -> (source anchor, target anchor)
ANCHORS_BY_DIRECTION: Dict[str, tuple] = {
    "LR": ("right", "left"),
    "RL": ("left", "right"),
    "TB": ("bottom", "top"),
    "BT": ("top", "bottom"),
}


def anchors_for(direction: str) -> tuple:
    """Source/target anchor sides for a layout direction."""
    return ANCHORS_BY_DIRECTION.get(direction, ANCHORS_BY_DIRECTION["LR"])


class RenderNode(BaseModel):
    """A positioned, sized node.

    Attributes:
        id: Node identity
        node_type: Type tag from the architecture
        label: Display label
        parent_id: Container identity, None for top-level nodes
        position: Top-left corner, relative to the parent when parent_id is set
        width: Rendered width
        height: Rendered height
        is_container: True when some composed-of names this node as container
        source_anchor: Side outgoing edges attach to
        target_anchor: Side incoming edges attach to
        z_index: Stacking order (containers behind their children)
        node: Originating architecture node, when there is one
    """

    id: str = Field(..., description="Node identity")
    node_type: str = Field(default="service", description="Node type tag")
    label: str = Field(default="", description="Display label")
    parent_id: Optional[str] = Field(default=None, description="Container identity")
    position: NodePosition = Field(
        default_factory=lambda: NodePosition(x=0.0, y=0.0),
        description="Parent-relative top-left corner",
    )
    width: float = Field(..., description="Rendered width")
    height: float = Field(..., description="Rendered height")
    is_container: bool = Field(default=False)
    source_anchor: AnchorSide = Field(default="right")
    target_anchor: AnchorSide = Field(default="left")
    z_index: int = Field(default=1)
    node: Optional[ArchitectureNode] = Field(default=None, description="Source node")


class RenderEdge(BaseModel):
    """A directed edge between two render nodes."""

    id: str = Field(..., description="Edge identity, unique within the graph")
    source: str = Field(..., description="Source node identity")
    target: str = Field(..., description="Target node identity")
    label: str = Field(default="", description="Relationship description")
    animated: bool = Field(default=False)
    relationship_id: Optional[str] = Field(default=None, description="Originating relationship")


class RenderGraph(BaseModel):
    """Ordered render nodes and edges."""

    nodes: List[RenderNode] = Field(default_factory=list)
    edges: List[RenderEdge] = Field(default_factory=list)
    direction: str = Field(default="LR", description="Layout direction used for anchors")

    def get_node(self, node_id: str) -> Optional[RenderNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def node_index(self) -> Dict[str, RenderNode]:
        return {node.id: node for node in self.nodes}

    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes]

    def children_of(self, parent_id: Optional[str]) -> List[RenderNode]:
        """Direct children of a container (top-level nodes for None)."""
        return [node for node in self.nodes if node.parent_id == parent_id]

    def parent_map(self) -> Dict[str, str]:
        """Containment of this graph as child -> container."""
        return {node.id: node.parent_id for node in self.nodes if node.parent_id}

    def positions(self) -> Dict[str, NodePosition]:
        """Parent-relative positions keyed by node identity."""
        return {node.id: node.position for node in self.nodes}

    def with_nodes(self, nodes: Iterable[RenderNode]) -> "RenderGraph":
        return self.model_copy(update={"nodes": list(nodes)})

    def with_positions(self, positions: Mapping[str, NodePosition]) -> "RenderGraph":
        """Return a copy with the given parent-relative positions applied."""
        return self.with_nodes(
            node.model_copy(update={"position": positions[node.id]})
            if node.id in positions else node
            for node in self.nodes
        )


__all__ = [
    "AnchorSide",
    "ANCHORS_BY_DIRECTION",
    "anchors_for",
    "RenderNode",
    "RenderEdge",
    "RenderGraph",
]
