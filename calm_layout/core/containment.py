"""Containment Module - derive node nesting from composed-of relationships.

This module provides:
- resolve_containment(): one pass over relationships producing child -> container
  and the set of container identities
- ContainmentTree: identity-indexed arena over the architecture's nodes with
  cycle detection, used by the transformer and the hierarchical layout engine

Containment policy:
    A node claimed by more than one composed-of keeps the last claim in
    relationship order. Every such node is reported in ContainmentMap.conflicts
    and logged. With the 'strict_containment' feature flag the conflict is
    raised as ContainmentConflictError instead.

Usage:
    from calm_layout.core.containment import resolve_containment, ContainmentTree

    containment = resolve_containment(architecture.relationships)
    tree = ContainmentTree(architecture.node_ids(), containment.parent_of)
    for node_id in tree.post_order():
        ...
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple

from calm_layout.config.settings import is_enabled
from calm_layout.models.architecture import ComposedOf, Relationship

logger = logging.getLogger(__name__)


class ContainmentCycleError(ValueError):
    """Raised when a container transitively contains itself."""

    def __init__(self, cycle: List[str]):
        self.cycle = cycle
        super().__init__(f"Containment cycle: {' -> '.join(cycle)}")


class ContainmentConflictError(ValueError):
    """Raised in strict mode when a node is claimed by several containers."""

    def __init__(self, conflicts: List["ContainmentConflict"]):
        self.conflicts = conflicts
        described = ", ".join(
            f"{c.child} in {list(c.containers)}" for c in conflicts[:5]
        )
        super().__init__(f"Nodes claimed by more than one container: {described}")


@dataclass(frozen=True)
class ContainmentConflict:
    """A node listed under more than one container.

    Attributes:
        child: The contested node
        containers: Claiming containers in processing order; the last one wins
    """

    child: str
    containers: Tuple[str, ...]

    @property
    def winner(self) -> str:
        return self.containers[-1]


@dataclass
class ContainmentMap:
    """Derived containment of one architecture snapshot.

    Attributes:
        parent_of: child identity -> container identity
        containers: identities named as a composed-of container
        conflicts: nodes claimed by more than one container
    """

    parent_of: Dict[str, str] = field(default_factory=dict)
    containers: Set[str] = field(default_factory=set)
    conflicts: List[ContainmentConflict] = field(default_factory=list)

    def parent(self, node_id: str) -> Optional[str]:
        return self.parent_of.get(node_id)

    def is_container(self, node_id: str) -> bool:
        return node_id in self.containers

    def children(self, container_id: str) -> List[str]:
        return [child for child, parent in self.parent_of.items() if parent == container_id]

    def restricted_to(self, node_ids: Iterable[str]) -> "ContainmentMap":
        """Containment between known nodes only, as it ends up in a render graph."""
        known = set(node_ids)
        return ContainmentMap(
            parent_of={
                child: parent for child, parent in self.parent_of.items()
                if child in known and parent in known
            },
            containers={c for c in self.containers if c in known},
            conflicts=[c for c in self.conflicts if c.child in known],
        )


def resolve_containment(
    relationships: Iterable[Relationship],
    strict: Optional[bool] = None,
) -> ContainmentMap:
    """Derive child -> container and the container set from relationships.

    Args:
        relationships: Relationships in processing order
        strict: Raise on conflicting claims (defaults to the
            'strict_containment' feature flag)

    Returns:
        ContainmentMap

    Raises:
        ContainmentConflictError: In strict mode, if a node is claimed twice
    """
    containment = ContainmentMap()
    claims: Dict[str, List[str]] = {}

    for rel in relationships:
        variant = rel.relationship_type
        if not isinstance(variant, ComposedOf):
            continue

        containment.containers.add(variant.container)
        for child in variant.nodes:
            containment.parent_of[child] = variant.container
            claims.setdefault(child, []).append(variant.container)

    for child, claimants in claims.items():
        # Keep each container once, at its last claim, so the winner stays last
        ordered = tuple(reversed(list(dict.fromkeys(reversed(claimants)))))
        if len(ordered) > 1:
            conflict = ContainmentConflict(child=child, containers=ordered)
            containment.conflicts.append(conflict)
            logger.warning(
                f"Node {child} is claimed by containers {list(ordered)}; "
                f"keeping {conflict.winner}"
            )

    if strict is None:
        strict = is_enabled("strict_containment")
    if strict and containment.conflicts:
        raise ContainmentConflictError(containment.conflicts)

    return containment


def parent_maps_equal(
    stored: Optional[Mapping[str, str]],
    current: Optional[Mapping[str, str]],
) -> bool:
    """Exact equality of two child -> container maps (None counts as empty)."""
    return dict(stored or {}) == dict(current or {})


class ContainmentTree:
    """Identity-indexed containment tree over a fixed node set.

    Children keep the order of ``node_ids``. A parent identity that is not in
    the node set makes the child a root.

    Raises:
        ContainmentCycleError: From the constructor, if the parent relation
            has a cycle
    """

    def __init__(self, node_ids: Iterable[str], parent_of: Mapping[str, str]):
        self._order: List[str] = list(dict.fromkeys(node_ids))
        known = set(self._order)

        self._parent: Dict[str, str] = {}
        self._children: Dict[str, List[str]] = {node_id: [] for node_id in self._order}
        self._roots: List[str] = []

        for node_id in self._order:
            parent = parent_of.get(node_id)
            if parent is not None and parent in known:
                self._parent[node_id] = parent
                self._children[parent].append(node_id)
            else:
                if parent is not None:
                    logger.debug(f"Parent {parent} of {node_id} is not a known node; treating as top-level")
                self._roots.append(node_id)

        self._check_acyclic()

    def _check_acyclic(self) -> None:
        reached: Set[str] = set()
        stack = list(self._roots)
        while stack:
            node_id = stack.pop()
            reached.add(node_id)
            stack.extend(self._children[node_id])

        for node_id in self._order:
            if node_id not in reached:
                raise ContainmentCycleError(self._cycle_from(node_id))

    def _cycle_from(self, start: str) -> List[str]:
        visiting: List[str] = []
        current = start
        while current not in visiting:
            visiting.append(current)
            current = self._parent[current]
        return visiting[visiting.index(current):] + [current]

    @property
    def roots(self) -> List[str]:
        return list(self._roots)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._children

    def __len__(self) -> int:
        return len(self._order)

    def parent(self, node_id: str) -> Optional[str]:
        return self._parent.get(node_id)

    def children(self, node_id: Optional[str]) -> List[str]:
        """Direct children of a node; the roots for None."""
        if node_id is None:
            return self.roots
        return list(self._children.get(node_id, []))

    def post_order(self) -> Iterator[str]:
        """Every node after all of its descendants (bottom-up)."""
        stack: List[Tuple[str, bool]] = [(root, False) for root in reversed(self._roots)]
        while stack:
            node_id, expanded = stack.pop()
            if expanded:
                yield node_id
                continue
            stack.append((node_id, True))
            for child in reversed(self._children[node_id]):
                stack.append((child, False))


__all__ = [
    "ContainmentCycleError",
    "ContainmentConflictError",
    "ContainmentConflict",
    "ContainmentMap",
    "resolve_containment",
    "parent_maps_equal",
    "ContainmentTree",
]
