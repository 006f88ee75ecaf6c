"""Shared fixtures for the layout test suite."""

import copy

import pytest

from calm_layout.config import settings as settings_module
from calm_layout.config.settings import LayoutSettings
from calm_layout.core.layout_store import LayoutStore


SHOP_ARCHITECTURE = {
    "unique-id": "shop",
    "name": "Shop",
    "nodes": [
        {"unique-id": "A", "node-type": "system", "name": "Shop Platform"},
        {"unique-id": "B", "node-type": "service", "name": "Orders"},
        {"unique-id": "C", "node-type": "service", "name": "Payments"},
    ],
    "relationships": [
        {
            "unique-id": "a-contains-bc",
            "relationship-type": {"composed-of": {"container": "A", "nodes": ["B", "C"]}},
        },
    ],
}


@pytest.fixture(autouse=True)
def restore_feature_flags():
    """Feature flags are module state; keep tests independent."""
    saved = dict(settings_module.FEATURE_FLAGS)
    yield
    settings_module.FEATURE_FLAGS.clear()
    settings_module.FEATURE_FLAGS.update(saved)


@pytest.fixture
def shop_architecture():
    """Container A holding services B and C, no edges."""
    return copy.deepcopy(SHOP_ARCHITECTURE)


@pytest.fixture
def connected_shop_architecture(shop_architecture):
    """Shop architecture plus a user actor and B -> C traffic."""
    shop_architecture["nodes"].append({"unique-id": "U", "node-type": "actor", "name": "Customer"})
    shop_architecture["relationships"].extend([
        {
            "unique-id": "b-calls-c",
            "description": "charge",
            "relationship-type": {
                "connects": {"source": {"node": "B"}, "destination": {"node": "C"}}
            },
        },
        {
            "unique-id": "u-uses",
            "relationship-type": {"interacts": {"actor": "U", "nodes": ["B", "C"]}},
        },
    ])
    return shop_architecture


@pytest.fixture
def layout_settings():
    return LayoutSettings()


@pytest.fixture
def layout_store():
    return LayoutStore()


@pytest.fixture
def file_layout_store(tmp_path):
    return LayoutStore(base_dir=tmp_path)
