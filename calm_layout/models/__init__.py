"""Data models for architectures, layout records, and render graphs."""

from calm_layout.models.architecture import (
    Architecture,
    ArchitectureNode,
    ComposedOf,
    Connects,
    Flow,
    FlowTransition,
    Interacts,
    NodeInterface,
    Relationship,
    parse_architecture,
)
from calm_layout.models.layout_record import LayoutRecord, NodePosition
from calm_layout.models.render_graph import RenderEdge, RenderGraph, RenderNode, anchors_for

__all__ = [
    "Architecture",
    "ArchitectureNode",
    "ComposedOf",
    "Connects",
    "Flow",
    "FlowTransition",
    "Interacts",
    "NodeInterface",
    "Relationship",
    "parse_architecture",
    "LayoutRecord",
    "NodePosition",
    "RenderEdge",
    "RenderGraph",
    "RenderNode",
    "anchors_for",
]
