"""MCP tool handlers."""

from calm_layout.tools.layout_tools import LayoutTools

__all__ = ["LayoutTools"]
