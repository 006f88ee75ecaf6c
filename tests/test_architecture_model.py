"""Tests for architecture parsing.

Tests cover:
- Hyphenated JSON keys and Python field names
- Relationship variants (connects, interacts, composed-of)
- Skipping malformed nodes and relationships
- Empty documents
"""

import json

import pytest

from calm_layout.models.architecture import (
    Architecture,
    ArchitectureNode,
    ComposedOf,
    Connects,
    Interacts,
    Relationship,
    parse_architecture,
)


class TestParseArchitecture:
    """Test parse_architecture on documents and text."""

    def test_parse_dict(self, shop_architecture):
        """Test nodes and relationships keep document order."""
        arch = parse_architecture(shop_architecture)

        assert isinstance(arch, Architecture)
        assert arch.unique_id == "shop"
        assert arch.node_ids() == ["A", "B", "C"]
        assert arch.get_node("A").node_type == "system"
        assert arch.get_node("B").label == "Orders"
        assert len(arch.relationships) == 1

    def test_parse_json_text(self, shop_architecture):
        """Test text and bytes documents parse like dicts."""
        text = json.dumps(shop_architecture)
        assert parse_architecture(text).node_ids() == ["A", "B", "C"]
        assert parse_architecture(text.encode()).node_ids() == ["A", "B", "C"]

    @pytest.mark.parametrize("document", [None, "", "  ", "null", "{}", {}])
    def test_empty_documents(self, document):
        """Test empty documents mean no architecture."""
        assert parse_architecture(document) is None

    def test_invalid_json_raises(self):
        """Test broken JSON text is an error."""
        with pytest.raises(ValueError):
            parse_architecture("{nodes: [")

    def test_malformed_node_skipped(self):
        """Test a node without identity is dropped, not fatal."""
        arch = parse_architecture({
            "unique-id": "x",
            "nodes": [{"name": "nameless"}, {"unique-id": "ok"}, {"unique-id": ""}],
        })
        assert arch.node_ids() == ["ok"]

    def test_label_falls_back_to_identity(self):
        node = ArchitectureNode(unique_id="db")
        assert node.label == "db"
        assert node.node_type == "service"

    def test_flows_carried(self, shop_architecture):
        """Test flows are parsed even though layout ignores them."""
        shop_architecture["flows"] = [{
            "unique-id": "checkout",
            "name": "Checkout",
            "transitions": [
                {"relationship-unique-id": "a-contains-bc", "sequence-number": 1},
            ],
        }]
        arch = parse_architecture(shop_architecture)
        assert arch.flows[0].transitions[0].sequence_number == 1


class TestRelationships:
    """Test the relationship tagged union."""

    def test_connects_unwraps_node_references(self):
        rel = Relationship.model_validate({
            "unique-id": "r1",
            "relationship-type": {
                "connects": {"source": {"node": "a", "interfaces": ["http"]}, "destination": {"node": "b"}}
            },
        })
        assert rel.kind == "connects"
        assert isinstance(rel.relationship_type, Connects)
        assert rel.relationship_type.source == "a"
        assert rel.relationship_type.destination == "b"

    def test_interacts(self):
        rel = Relationship.model_validate({
            "unique-id": "r2",
            "relationship-type": {"interacts": {"actor": "user", "nodes": ["a", "b"]}},
        })
        assert isinstance(rel.relationship_type, Interacts)
        assert rel.relationship_type.nodes == ["a", "b"]

    def test_composed_of(self):
        rel = Relationship.model_validate({
            "unique-id": "r3",
            "relationship-type": {"composed-of": {"container": "sys", "nodes": ["a"]}},
        })
        assert isinstance(rel.relationship_type, ComposedOf)
        assert rel.relationship_type.container == "sys"

    def test_python_field_names(self):
        """Test already-tagged variants validate directly."""
        rel = Relationship(
            unique_id="r4",
            relationship_type=ComposedOf(container="sys", nodes=["a"]),
        )
        assert rel.kind == "composed-of"

    def test_several_variants_rejected(self):
        with pytest.raises(ValueError):
            Relationship.model_validate({
                "unique-id": "r5",
                "relationship-type": {
                    "connects": {"source": {"node": "a"}, "destination": {"node": "b"}},
                    "composed-of": {"container": "a", "nodes": ["b"]},
                },
            })

    def test_malformed_relationships_skipped(self):
        """Test missing or broken sub-objects never fail the whole document."""
        arch = parse_architecture({
            "unique-id": "x",
            "nodes": [{"unique-id": "a"}, {"unique-id": "b"}],
            "relationships": [
                {"unique-id": "no-type"},
                {"unique-id": "empty-type", "relationship-type": {}},
                {"unique-id": "bad-connects", "relationship-type": {"connects": {"source": {"node": "a"}}}},
                {"unique-id": "not-an-object", "relationship-type": {"composed-of": "a"}},
                {
                    "unique-id": "good",
                    "relationship-type": {"connects": {"source": {"node": "a"}, "destination": {"node": "b"}}},
                },
            ],
        })
        assert [r.unique_id for r in arch.relationships] == ["good"]
