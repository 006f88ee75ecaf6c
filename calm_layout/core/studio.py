"""Studio session: keeps one architecture's render graph in step with its
content and its stored layout.

Refresh cycle:
1. Fetch the content snapshot and parse the architecture document
2. Derive containment between known nodes
3. Fetch the stored layout and build the render graph
4. If the stored layout is not usable (missing, or saved under a different
   containment) run the hierarchical engine and persist the result

Concurrency:
    Every refresh takes a token from a RequestSequencer; a refresh that is no
    longer the latest when it completes is discarded. Starting a local edit
    also takes a token, so a refresh already running when the edit begins
    never commits over it. A remote refresh that arrives or completes while a
    local edit is in flight leaves positions untouched.

Usage:
    session = StudioSession(FileContentSource("arch.json"), LayoutStore(base_dir="."))
    graph = session.refresh()
    with session.local_edit():
        session.move_node("api", 120, 40)
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from calm_layout.config.settings import LayoutSettings
from calm_layout.core.containment import ContainmentMap, resolve_containment
from calm_layout.core.content_source import ContentSource
from calm_layout.core.layout_store import LayoutStore
from calm_layout.core.reconciliation import build_layout_record
from calm_layout.core.transformer import CoordinateTransformer, layout_is_usable
from calm_layout.layout.engines.hierarchical import HierarchicalLayoutEngine
from calm_layout.models.architecture import Architecture, parse_architecture
from calm_layout.models.layout_record import NodePosition
from calm_layout.models.render_graph import RenderGraph

logger = logging.getLogger(__name__)


class RequestSequencer:
    """Monotonic request tokens; only the latest issued token is current."""

    def __init__(self):
        self._latest = 0
        self._lock = threading.Lock()

    def issue(self) -> int:
        with self._lock:
            self._latest += 1
            return self._latest

    def is_current(self, token: int) -> bool:
        with self._lock:
            return token == self._latest

    @property
    def latest(self) -> int:
        return self._latest


class StudioSession:
    """Render state of one architecture plus the operations that change it."""

    def __init__(
        self,
        content_source: ContentSource,
        layout_store: Optional[LayoutStore] = None,
        settings: Optional[LayoutSettings] = None,
    ):
        self.content_source = content_source
        self.layout_store = layout_store if layout_store is not None else LayoutStore()
        self.settings = settings or LayoutSettings()
        self.transformer = CoordinateTransformer(self.settings)
        self.engine = HierarchicalLayoutEngine(self.settings)

        self.architecture: Optional[Architecture] = None
        self.containment: Optional[ContainmentMap] = None
        self.graph: Optional[RenderGraph] = None
        self.last_save_ok: Optional[bool] = None

        self._sequencer = RequestSequencer()
        self._edits_in_flight = 0
        self._edit_lock = threading.Lock()
        self._commit_lock = threading.RLock()

    @property
    def architecture_id(self) -> str:
        return self.architecture.unique_id if self.architecture else ""

    @property
    def edit_in_flight(self) -> bool:
        return self._edits_in_flight > 0

    @contextmanager
    def local_edit(self) -> Iterator["StudioSession"]:
        """Mark a local edit as in flight for the duration of the block.

        Refreshes started before the block are made stale.
        """
        with self._edit_lock:
            self._edits_in_flight += 1
            self._sequencer.issue()
        try:
            yield self
        finally:
            with self._edit_lock:
                self._edits_in_flight -= 1

    def refresh(self, remote: bool = False) -> Optional[RenderGraph]:
        """Rebuild the render graph from the latest content and stored layout.

        Args:
            remote: True when triggered by an external change notification

        Returns:
            Current render graph, or None when there is no architecture

        Raises:
            ContainmentCycleError: If composed-of relationships form a cycle
            ValueError: If the architecture document is not valid JSON
        """
        if remote and self.edit_in_flight:
            logger.debug("Ignoring remote refresh while a local edit is in flight")
            return self.graph

        token = self._sequencer.issue()
        snapshot = self.content_source.fetch_snapshot()
        architecture = parse_architecture(snapshot.json)

        if architecture is None:
            with self._commit_lock:
                if self._sequencer.is_current(token):
                    self.architecture = None
                    self.containment = None
                    self.graph = None
                return self.graph

        containment = resolve_containment(architecture.relationships).restricted_to(
            architecture.node_ids()
        )
        record = self.layout_store.fetch(architecture.unique_id)
        graph = self.transformer.transform(architecture, record, containment)

        relayout = not layout_is_usable(record, containment)
        if relayout:
            if record.is_empty:
                logger.info(f"No stored layout for {architecture.unique_id}; computing one")
            else:
                logger.info(
                    f"Stored layout for {architecture.unique_id} was saved under a "
                    f"different containment; recomputing"
                )
            graph = self.engine.layout(graph)

        with self._commit_lock:
            if not self._sequencer.is_current(token):
                logger.debug(f"Discarding stale refresh #{token}")
                return self.graph
            if remote and self.edit_in_flight:
                logger.debug("Dropping remote refresh that finished during a local edit")
                return self.graph

            self.architecture = architecture
            self.containment = containment
            self.graph = graph
            if relayout:
                self.save_layout(algorithm=self.engine.name)
            return graph

    def move_node(self, node_id: str, x: float, y: float) -> RenderGraph:
        """Move a node to a parent-relative position and persist the layout.

        Containers are refitted around the moved node.

        Raises:
            KeyError: If the node is not part of the current graph
        """
        if self.graph is None or self.graph.get_node(node_id) is None:
            raise KeyError(node_id)

        with self.local_edit(), self._commit_lock:
            positions = self.graph.positions()
            positions[node_id] = NodePosition(x=x, y=y)
            moved = self.graph.with_positions(positions)
            record = build_layout_record(moved, self.architecture_id)
            self.graph = self.transformer.transform(self.architecture, record, self.containment)
            logger.debug(f"Moved {node_id} to ({x:.1f}, {y:.1f})")
            self.save_layout()
        return self.graph

    def reset_layout(self) -> Optional[RenderGraph]:
        """Discard stored positions, run the automatic layout, and persist."""
        if self.architecture is None:
            return None

        with self.local_edit(), self._commit_lock:
            graph = self.transformer.transform(self.architecture, None, self.containment)
            self.graph = self.engine.layout(graph)
            self.save_layout(algorithm=self.engine.name)
        return self.graph

    def save_layout(self, algorithm: str = "manual") -> bool:
        """Persist the current graph.

        Failures are logged and reported as False; the in-memory graph is kept.
        """
        if self.graph is None:
            return False

        record = build_layout_record(
            self.graph,
            self.architecture_id,
            coordinates=self.settings.coordinates,
            algorithm=algorithm,
        )
        try:
            self.layout_store.save(self.architecture_id, record)
        except Exception as e:
            logger.error(f"Failed to save layout of {self.architecture_id}: {e}", exc_info=True)
            self.last_save_ok = False
            return False

        self.last_save_ok = True
        return True


__all__ = [
    "RequestSequencer",
    "StudioSession",
]
