"""Layered (Sugiyama) placement of one flat group of nodes.

Implements the standard Sugiyama framework on a NetworkX DiGraph whose nodes
carry ``width`` and ``height`` attributes:
1. Cycle breaking (greedy back-edge removal)
2. Rank assignment (longest path from sources)
3. Dummy node insertion (for edges spanning several ranks)
4. Crossing minimization (barycenter heuristic, multi-pass)
5. Coordinate assignment (median alignment with per-node extents)

Work happens in rank/order space: the rank axis follows the flow direction,
the order axis runs across it. The result is mapped to x/y for the requested
direction (LR, RL, TB, BT) and normalized so the group's bounding box starts
at (0, 0).

Dummy nodes have zero extent and are never part of the result.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Hashable, Iterable, List, Set, Tuple

import networkx as nx

from calm_layout.models.layout_record import NodePosition

logger = logging.getLogger(__name__)

DEFAULT_NODE_SEP = 50.0
DEFAULT_RANK_SEP = 50.0
CROSSING_PASSES = 24
ALIGNMENT_PASSES = 12


@dataclass
class Placement:
    """Top-left positions of a group normalized to a (0, 0) origin.

    Attributes:
        positions: node identity -> top-left corner
        width: Width of the group's bounding box
        height: Height of the group's bounding box
    """

    positions: Dict[str, NodePosition] = field(default_factory=dict)
    width: float = 0.0
    height: float = 0.0


def build_group_graph(
    sizes: Dict[str, Tuple[float, float]],
    edges: Iterable[Tuple[str, str]],
) -> nx.DiGraph:
    """Graph of one group: only edges with both endpoints in the group are kept."""
    G = nx.DiGraph()
    for node_id, (width, height) in sizes.items():
        G.add_node(node_id, width=width, height=height)
    for source, target in edges:
        if source in sizes and target in sizes and source != target:
            G.add_edge(source, target)
    return G


class LayeredPlacement:
    """Sugiyama placement with a fixed direction and spacing."""

    def __init__(
        self,
        direction: str = "LR",
        node_sep: float = DEFAULT_NODE_SEP,
        rank_sep: float = DEFAULT_RANK_SEP,
    ):
        if direction not in ("LR", "RL", "TB", "BT"):
            raise ValueError(f"Unknown layout direction: {direction}")
        self.direction = direction
        self.node_sep = node_sep
        self.rank_sep = rank_sep

    @property
    def horizontal(self) -> bool:
        return self.direction in ("LR", "RL")

    def place(self, graph: nx.DiGraph) -> Placement:
        """Compute the placement of every node in ``graph``.

        The input graph is not modified.
        """
        if graph.number_of_nodes() == 0:
            return Placement()

        G = nx.DiGraph()
        for node_id, attrs in graph.nodes(data=True):
            rank_ext, order_ext = self._extents(attrs.get("width", 0.0), attrs.get("height", 0.0))
            G.add_node(node_id, rank_ext=rank_ext, order_ext=order_ext)
        G.add_edges_from((u, v) for u, v in graph.edges() if u != v)

        _break_cycles(G)
        layers = _assign_layers(G)
        layers, dummy_nodes = _insert_dummy_nodes(G, layers)
        _minimize_crossings(G, layers)
        rank_pos, order_pos = self._assign_coordinates(G, layers)

        return self._to_placement(G, rank_pos, order_pos, dummy_nodes)

    def _extents(self, width: float, height: float) -> Tuple[float, float]:
        """(extent along the rank axis, extent along the order axis)."""
        if self.horizontal:
            return float(width), float(height)
        return float(height), float(width)

    def _assign_coordinates(
        self, G: nx.DiGraph, layers: List[List[Hashable]]
    ) -> Tuple[Dict[Hashable, float], Dict[Hashable, float]]:
        """Rank-axis and order-axis top-left coordinate of every node."""
        rank_pos: Dict[Hashable, float] = {}
        order_pos: Dict[Hashable, float] = {}
        order_ext = {n: G.nodes[n]["order_ext"] for n in G.nodes}

        # Each rank is as deep as its deepest node; nodes are centred in it
        cursor = 0.0
        for layer in layers:
            depth = max((G.nodes[n]["rank_ext"] for n in layer), default=0.0)
            for n in layer:
                rank_pos[n] = cursor + (depth - G.nodes[n]["rank_ext"]) / 2.0
            cursor += depth + self.rank_sep

        for layer in layers:
            offset = 0.0
            for n in layer:
                order_pos[n] = offset
                offset += order_ext[n] + self.node_sep

        for _ in range(ALIGNMENT_PASSES):
            for idx in range(1, len(layers)):
                self._align_to_connected(G, layers[idx], order_pos, order_ext)
            for idx in range(len(layers) - 2, -1, -1):
                self._align_to_connected(G, layers[idx], order_pos, order_ext)

        return rank_pos, order_pos

    def _align_to_connected(
        self,
        G: nx.DiGraph,
        layer: List[Hashable],
        order_pos: Dict[Hashable, float],
        order_ext: Dict[Hashable, float],
    ) -> None:
        """Shift nodes in a layer toward the median centre of their neighbours."""
        ideal: Dict[Hashable, float] = {}

        for n in layer:
            connected = list(G.predecessors(n)) + list(G.successors(n))
            centres = sorted(order_pos[nb] + order_ext[nb] / 2.0 for nb in connected)
            if not centres:
                ideal[n] = order_pos[n]
                continue

            mid = len(centres) // 2
            if len(centres) % 2 == 1:
                median = centres[mid]
            else:
                median = (centres[mid - 1] + centres[mid]) / 2.0
            ideal[n] = median - order_ext[n] / 2.0

        self._place_with_order(layer, ideal, order_pos, order_ext)

    def _place_with_order(
        self,
        layer: List[Hashable],
        ideal: Dict[Hashable, float],
        order_pos: Dict[Hashable, float],
        order_ext: Dict[Hashable, float],
    ) -> None:
        """Place nodes at their ideal offsets keeping layer order and spacing."""
        placed = [ideal[n] for n in layer]

        for i in range(1, len(layer)):
            min_pos = placed[i - 1] + order_ext[layer[i - 1]] + self.node_sep
            if placed[i] < min_pos:
                placed[i] = min_pos

        for i in range(len(layer) - 2, -1, -1):
            max_pos = placed[i + 1] - self.node_sep - order_ext[layer[i]]
            if placed[i] > max_pos:
                placed[i] = max_pos

        for n, pos in zip(layer, placed):
            order_pos[n] = pos

    def _to_placement(
        self,
        G: nx.DiGraph,
        rank_pos: Dict[Hashable, float],
        order_pos: Dict[Hashable, float],
        dummy_nodes: Set[Hashable],
    ) -> Placement:
        boxes: Dict[str, Tuple[float, float, float, float]] = {}
        for n in G.nodes:
            if n in dummy_nodes:
                continue
            rank_ext = G.nodes[n]["rank_ext"]
            order_ext = G.nodes[n]["order_ext"]
            r, o = rank_pos[n], order_pos[n]
            if self.direction in ("RL", "BT"):
                r = -(r + rank_ext)
            if self.horizontal:
                boxes[n] = (r, o, rank_ext, order_ext)
            else:
                boxes[n] = (o, r, order_ext, rank_ext)

        min_x = min(x for x, _, _, _ in boxes.values())
        min_y = min(y for _, y, _, _ in boxes.values())
        max_x = max(x + w for x, _, w, _ in boxes.values())
        max_y = max(y + h for _, y, _, h in boxes.values())

        return Placement(
            positions={
                n: NodePosition(x=x - min_x, y=y - min_y)
                for n, (x, y, _, _) in boxes.items()
            },
            width=max_x - min_x,
            height=max_y - min_y,
        )


# ---------------------------------------------------------------------------
# Cycle breaking
# ---------------------------------------------------------------------------

def _break_cycles(G: nx.DiGraph) -> None:
    """Remove one edge per cycle until the graph is acyclic."""
    removed = 0
    while True:
        try:
            cycle = nx.find_cycle(G)
        except nx.NetworkXNoCycle:
            break
        u, v = cycle[-1][0], cycle[-1][1]
        G.remove_edge(u, v)
        removed += 1
    if removed:
        logger.debug(f"Removed {removed} edge(s) to break cycles before ranking")


# ---------------------------------------------------------------------------
# Rank assignment (longest path from sources)
# ---------------------------------------------------------------------------

def _assign_layers(G: nx.DiGraph) -> List[List[Hashable]]:
    node_layer: Dict[Hashable, int] = {}
    for n in nx.topological_sort(G):
        preds = list(G.predecessors(n))
        node_layer[n] = max(node_layer[p] for p in preds) + 1 if preds else 0

    layers: List[List[Hashable]] = [[] for _ in range(max(node_layer.values()) + 1)]
    # Keep insertion order inside each layer so the initial ordering is stable
    for n in G.nodes:
        layers[node_layer[n]].append(n)
    return layers


# ---------------------------------------------------------------------------
# Dummy node insertion
# ---------------------------------------------------------------------------

def _insert_dummy_nodes(
    G: nx.DiGraph, layers: List[List[Hashable]]
) -> Tuple[List[List[Hashable]], Set[Hashable]]:
    node_layer = {n: i for i, layer in enumerate(layers) for n in layer}
    dummy_nodes: Set[Hashable] = set()
    counter = 0

    for u, v in list(G.edges()):
        lu, lv = node_layer[u], node_layer[v]
        if lv - lu <= 1:
            continue

        G.remove_edge(u, v)
        prev = u
        for step in range(1, lv - lu):
            counter += 1
            d = ("__dummy__", counter)
            dummy_nodes.add(d)
            G.add_node(d, rank_ext=0.0, order_ext=0.0)
            G.add_edge(prev, d)
            layers[lu + step].append(d)
            prev = d
        G.add_edge(prev, v)

    return layers, dummy_nodes


# ---------------------------------------------------------------------------
# Crossing minimization (barycenter heuristic)
# ---------------------------------------------------------------------------

def _count_crossings(G: nx.DiGraph, layer_a: List[Hashable], layer_b: List[Hashable]) -> int:
    pos_b = {n: i for i, n in enumerate(layer_b)}
    edges = []
    for i, u in enumerate(layer_a):
        for v in G.successors(u):
            if v in pos_b:
                edges.append((i, pos_b[v]))

    crossings = 0
    for i in range(len(edges)):
        for j in range(i + 1, len(edges)):
            if (edges[i][0] - edges[j][0]) * (edges[i][1] - edges[j][1]) < 0:
                crossings += 1
    return crossings


def _total_crossings(G: nx.DiGraph, layers: List[List[Hashable]]) -> int:
    return sum(_count_crossings(G, layers[i], layers[i + 1]) for i in range(len(layers) - 1))


def _barycenter_sort(
    G: nx.DiGraph, fixed_layer: List[Hashable], free_layer: List[Hashable], downward: bool
) -> List[Hashable]:
    """Reorder free_layer by the mean index of its neighbours in fixed_layer.

    Nodes without neighbours in fixed_layer keep their relative slot.
    """
    fixed_pos = {n: i for i, n in enumerate(fixed_layer)}
    current = {n: i for i, n in enumerate(free_layer)}
    anchored: List[Tuple[Hashable, float]] = []
    unanchored: List[Hashable] = []

    for n in free_layer:
        neighbors = G.predecessors(n) if downward else G.successors(n)
        relevant = [fixed_pos[nb] for nb in neighbors if nb in fixed_pos]
        if relevant:
            anchored.append((n, sum(relevant) / len(relevant)))
        else:
            unanchored.append(n)

    anchored.sort(key=lambda item: item[1])
    result = [n for n, _ in anchored]

    for u in unanchored:
        best = len(result)
        for i, r in enumerate(result):
            if current[r] > current[u]:
                best = i
                break
        result.insert(best, u)

    return result


def _minimize_crossings(G: nx.DiGraph, layers: List[List[Hashable]], passes: int = CROSSING_PASSES) -> None:
    """Multi-pass barycenter crossing minimization (in-place)."""
    if len(layers) <= 1:
        return

    best_order = [list(layer) for layer in layers]
    best_crossings = _total_crossings(G, layers)

    for iteration in range(passes):
        if best_crossings == 0:
            break
        if iteration % 2 == 0:
            for i in range(1, len(layers)):
                layers[i] = _barycenter_sort(G, layers[i - 1], layers[i], downward=True)
        else:
            for i in range(len(layers) - 2, -1, -1):
                layers[i] = _barycenter_sort(G, layers[i + 1], layers[i], downward=False)

        crossings = _total_crossings(G, layers)
        if crossings < best_crossings:
            best_crossings = crossings
            best_order = [list(layer) for layer in layers]

    for i in range(len(layers)):
        layers[i] = best_order[i]


__all__ = [
    "Placement",
    "LayeredPlacement",
    "build_group_graph",
    "DEFAULT_NODE_SEP",
    "DEFAULT_RANK_SEP",
]
