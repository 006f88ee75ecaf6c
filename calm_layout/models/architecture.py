"""Architecture model: typed nodes and typed relationships.

This module provides schemas for the architecture JSON consumed by the layout
core:
- Nodes (services, databases, actors, systems, ...)
- Relationships as a tagged union of connects / interacts / composed-of
- Flows (ordered relationship transitions), carried through untouched

The JSON uses hyphenated keys ("unique-id", "node-type", "relationship-type").
Models accept those spellings through aliases and also the Python field names.

Relationship variants are modelled as a pydantic discriminated union on
``kind``. The wire shape ``{"connects": {...}}`` is converted to the tagged
shape ``{"kind": "connects", ...}`` before validation, so a relationship with
zero or several populated variants fails validation instead of being
half-interpreted.
"""

import json
import logging
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)

RELATIONSHIP_KINDS = ("connects", "interacts", "composed-of")


def _node_reference(value: Any) -> Any:
    """Unwrap ``{"node": "id"}`` endpoint objects to the bare identity."""
    if isinstance(value, dict):
        return value.get("node")
    return value


class NodeInterface(BaseModel):
    """Interface exposed by a node (protocol, port, ...)."""

    model_config = {"populate_by_name": True, "extra": "allow"}

    unique_id: str = Field(..., alias="unique-id", description="Interface identity")
    protocol: Optional[str] = Field(default=None, description="Protocol name")
    port: Optional[int] = Field(default=None, description="Port number")


class ArchitectureNode(BaseModel):
    """A typed node of the architecture.

    Attributes:
        unique_id: Identity, unique within the architecture
        node_type: Type tag (service, database, actor, system, queue, ...)
        name: Display name
        description: Free text
        owner: Optional owning team
        cost_center: Optional cost center
        metadata: Optional free-form metadata
        interfaces: Optional interface list
    """

    model_config = {"populate_by_name": True}

    unique_id: str = Field(..., alias="unique-id", description="Node identity")
    node_type: str = Field(default="service", alias="node-type", description="Node type tag")
    name: str = Field(default="", description="Display name")
    description: str = Field(default="", description="Node description")
    owner: Optional[str] = Field(default=None, description="Owning team")
    cost_center: Optional[str] = Field(default=None, alias="costCenter", description="Cost center")
    metadata: Optional[Dict[str, Any]] = Field(default=None, description="Free-form metadata")
    interfaces: List[NodeInterface] = Field(default_factory=list, description="Exposed interfaces")

    @field_validator("unique_id")
    @classmethod
    def validate_identity(cls, v: str) -> str:
        if not v:
            raise ValueError("Node unique-id must not be empty")
        return v

    @property
    def label(self) -> str:
        """Name to render, falling back to the identity."""
        return self.name or self.unique_id


class Connects(BaseModel):
    """Directed edge between two node identities."""

    kind: Literal["connects"] = "connects"
    source: str = Field(..., description="Source node identity")
    destination: str = Field(..., description="Destination node identity")

    @field_validator("source", "destination", mode="before")
    @classmethod
    def unwrap_endpoint(cls, v: Any) -> Any:
        return _node_reference(v)


class Interacts(BaseModel):
    """One actor connected to each of several target nodes."""

    kind: Literal["interacts"] = "interacts"
    actor: str = Field(..., description="Actor node identity")
    nodes: List[str] = Field(default_factory=list, description="Target node identities")


class ComposedOf(BaseModel):
    """The container node is the parent of each listed node."""

    kind: Literal["composed-of"] = "composed-of"
    container: str = Field(..., description="Container node identity")
    nodes: List[str] = Field(default_factory=list, description="Child node identities")


RelationshipType = Annotated[
    Union[Connects, Interacts, ComposedOf],
    Field(discriminator="kind"),
]


class Relationship(BaseModel):
    """A typed relationship between nodes."""

    model_config = {"populate_by_name": True}

    unique_id: str = Field(..., alias="unique-id", description="Relationship identity")
    description: str = Field(default="", description="Relationship description")
    relationship_type: RelationshipType = Field(
        ..., alias="relationship-type", description="Exactly one relationship variant"
    )

    @model_validator(mode="before")
    @classmethod
    def tag_relationship_type(cls, data: Any) -> Any:
        """Convert ``{"connects": {...}}`` into ``{"kind": "connects", ...}``."""
        if not isinstance(data, dict):
            return data

        data = dict(data)
        raw = data.pop("relationship_type", None)
        raw = data.get("relationship-type", raw)
        if not isinstance(raw, dict) or "kind" in raw:
            if raw is not None:
                data["relationship-type"] = raw
            return data

        present = [kind for kind in RELATIONSHIP_KINDS if raw.get(kind) is not None]
        if len(present) != 1:
            raise ValueError(
                f"Relationship must have exactly one of {RELATIONSHIP_KINDS}, got {present or 'none'}"
            )

        body = raw[present[0]]
        if not isinstance(body, dict):
            raise ValueError(f"Relationship variant '{present[0]}' must be an object")

        data["relationship-type"] = {"kind": present[0], **body}
        return data

    @property
    def kind(self) -> str:
        return self.relationship_type.kind


class FlowTransition(BaseModel):
    """One step of a flow."""

    model_config = {"populate_by_name": True}

    relationship_unique_id: str = Field(..., alias="relationship-unique-id")
    sequence_number: int = Field(..., alias="sequence-number")
    direction: str = Field(default="source-to-destination")


class Flow(BaseModel):
    """Ordered walk over relationships. Not used for placement."""

    model_config = {"populate_by_name": True}

    unique_id: str = Field(..., alias="unique-id")
    name: str = Field(default="")
    description: str = Field(default="")
    transitions: List[FlowTransition] = Field(default_factory=list)


class Architecture(BaseModel):
    """Architecture snapshot: ordered nodes and relationships.

    Attributes:
        unique_id: Architecture identity (layout records are keyed by it)
        name: Display name
        description: Free text
        nodes: Ordered node list
        relationships: Ordered relationship list (processing order matters for
            containment: the last composed-of claiming a node wins)
        flows: Optional flows
        metadata: Optional free-form metadata
    """

    model_config = {"populate_by_name": True}

    unique_id: str = Field(default="", alias="unique-id", description="Architecture identity")
    name: str = Field(default="")
    description: str = Field(default="")
    nodes: List[ArchitectureNode] = Field(default_factory=list)
    relationships: List[Relationship] = Field(default_factory=list)
    flows: Optional[List[Flow]] = Field(default=None)
    metadata: Optional[Any] = Field(default=None)

    def node_ids(self) -> List[str]:
        """Node identities in declaration order."""
        return [node.unique_id for node in self.nodes]

    def get_node(self, node_id: str) -> Optional[ArchitectureNode]:
        for node in self.nodes:
            if node.unique_id == node_id:
                return node
        return None


def _validate_items(model: type, items: Any, what: str) -> List[Any]:
    """Validate a list of raw items, skipping the malformed ones."""
    result = []
    if not isinstance(items, list):
        return result

    for index, raw in enumerate(items):
        try:
            result.append(model.model_validate(raw))
        except ValidationError as e:
            logger.debug(f"Skipping malformed {what} #{index}: {e.error_count()} error(s)")
    return result


def parse_architecture(data: Union[str, bytes, Dict[str, Any], None]) -> Optional[Architecture]:
    """Build an Architecture from JSON text or a decoded dict.

    Malformed nodes, relationships, and flows are skipped, never fatal.

    Args:
        data: Architecture JSON (text or dict)

    Returns:
        Architecture, or None when the document is empty ("", "null", "{}")

    Raises:
        ValueError: If the text is not valid JSON
    """
    if data is None:
        return None

    if isinstance(data, (str, bytes)):
        text = data.decode() if isinstance(data, bytes) else data
        if text.strip() in ("", "null", "{}"):
            return None
        data = json.loads(text)

    if not isinstance(data, dict) or not data:
        return None

    return Architecture(
        unique_id=str(data.get("unique-id") or data.get("unique_id") or ""),
        name=data.get("name") or "",
        description=data.get("description") or "",
        nodes=_validate_items(ArchitectureNode, data.get("nodes"), "node"),
        relationships=_validate_items(Relationship, data.get("relationships"), "relationship"),
        flows=_validate_items(Flow, data["flows"], "flow") if data.get("flows") is not None else None,
        metadata=data.get("metadata"),
    )


__all__ = [
    "NodeInterface",
    "ArchitectureNode",
    "Connects",
    "Interacts",
    "ComposedOf",
    "RelationshipType",
    "Relationship",
    "FlowTransition",
    "Flow",
    "Architecture",
    "parse_architecture",
]
