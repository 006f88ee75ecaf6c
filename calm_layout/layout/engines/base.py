"""Base layout engine protocol.

Defines the interface that all layout engines must implement.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from calm_layout.models.render_graph import RenderGraph


class LayoutEngine(ABC):
    """Abstract base class for layout engines.

    Layout engines take a render graph (possibly nested through parent ids)
    and return a new render graph with positions and sizes filled in.
    Engines are synchronous and keep no state between calls.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Engine name (e.g., 'hierarchical')."""
        ...

    @property
    @abstractmethod
    def supports_nesting(self) -> bool:
        """Whether engine lays out containers and their children."""
        ...

    @abstractmethod
    def layout(
        self,
        graph: RenderGraph,
        options: Optional[Dict[str, Any]] = None,
    ) -> RenderGraph:
        """Compute layout for a graph.

        Args:
            graph: Render graph to lay out
            options: Engine-specific layout options

        Returns:
            New RenderGraph with parent-relative positions and sizes
        """
        ...

    def is_available(self) -> bool:
        """Check if engine can be used (pure-Python engines always can)."""
        return True
