"""Hierarchical layout and render-graph transformation for CALM architectures.

Library entry point is StudioSession, which keeps one architecture's render
graph in step with its content and stored layout. The MCP server
(calm_layout.server) exposes the same operations as tools.
"""

from calm_layout.core.content_source import FileContentSource, StaticContentSource
from calm_layout.core.layout_store import LayoutStore
from calm_layout.core.studio import StudioSession

__version__ = "0.1.0"

__all__ = [
    "FileContentSource",
    "LayoutStore",
    "StaticContentSource",
    "StudioSession",
]
