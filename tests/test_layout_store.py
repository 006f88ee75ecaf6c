"""Tests for the layout store (memory and file persistence)."""

import json
import logging
import threading

import pytest

from calm_layout.core.layout_store import (
    LayoutNotFoundError,
    LayoutStore,
    OptimisticLockError,
    create_layout_store,
)
from calm_layout.models.layout_record import LayoutRecord, NodePosition


def relative_record(**positions):
    return LayoutRecord(
        positions={k: NodePosition(x=x, y=y) for k, (x, y) in positions.items()},
        has_parent_map=True,
        parent_map={"B": "A"} if "B" in positions else {},
    )


class TestLayoutStore:
    """Test keyed storage with optimistic concurrency."""

    def test_missing_layout_reads_as_empty(self, layout_store):
        record = layout_store.fetch("shop")
        assert record.is_empty
        assert record.architecture_id == "shop"
        assert not layout_store.exists("shop")

    def test_save_and_fetch(self, layout_store):
        etag = layout_store.save("shop", relative_record(A=(0, 0), B=(40, 40)))
        record = layout_store.fetch("shop")

        assert record.etag == etag
        assert record.architecture_id == "shop"
        assert record.positions["B"] == NodePosition(x=40, y=40)
        assert record.version == 1
        assert "shop" in layout_store

    def test_fetch_returns_copy(self, layout_store):
        layout_store.save("shop", relative_record(A=(0, 0)))
        record = layout_store.fetch("shop")
        record.positions["A"] = NodePosition(x=999, y=999)

        assert layout_store.fetch("shop").positions["A"] == NodePosition(x=0, y=0)

    def test_save_replaces_and_bumps_version(self, layout_store):
        layout_store.save("shop", relative_record(A=(0, 0)))
        layout_store.save("shop", relative_record(A=(10, 0)))

        record = layout_store.fetch("shop")
        assert record.version == 2
        assert record.positions["A"] == NodePosition(x=10, y=0)

    def test_update_with_matching_etag(self, layout_store):
        etag = layout_store.save("shop", relative_record(A=(0, 0)))
        new_etag = layout_store.update("shop", relative_record(A=(5, 5)), expected_etag=etag)

        assert new_etag != etag
        assert layout_store.fetch("shop").etag == new_etag

    def test_update_with_stale_etag(self, layout_store):
        etag = layout_store.save("shop", relative_record(A=(0, 0)))
        layout_store.update("shop", relative_record(A=(5, 5)), expected_etag=etag)

        with pytest.raises(OptimisticLockError) as exc_info:
            layout_store.update("shop", relative_record(A=(9, 9)), expected_etag=etag)
        assert exc_info.value.expected_etag == etag

    def test_update_missing_layout(self, layout_store):
        with pytest.raises(LayoutNotFoundError):
            layout_store.update("shop", relative_record(A=(0, 0)))

    def test_save_requires_identity(self, layout_store):
        with pytest.raises(ValueError):
            layout_store.save("", relative_record(A=(0, 0)))

    def test_delete(self, layout_store):
        layout_store.save("one", relative_record(A=(0, 0)))
        layout_store.save("two", relative_record(A=(0, 0)))

        assert layout_store.delete("one")
        assert not layout_store.delete("one")
        assert "one" not in layout_store
        assert "two" in layout_store

    def test_concurrent_saves_keep_versions_consistent(self, layout_store):
        def save_many():
            for i in range(20):
                layout_store.save("shop", relative_record(A=(i, i)))

        threads = [threading.Thread(target=save_many) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert layout_store.fetch("shop").version == 80

    def test_factory(self, tmp_path):
        store = create_layout_store(tmp_path)
        assert isinstance(store, LayoutStore)
        assert store.base_dir == tmp_path


class TestLayoutFiles:
    """Test persistence under {base_dir}/layout/{id}.layout.json."""

    def test_save_writes_wire_shape(self, file_layout_store, tmp_path):
        file_layout_store.save("shop", relative_record(A=(0, 0), B=(40, 40)))

        path = tmp_path / "layout" / "shop.layout.json"
        assert path.exists()
        data = json.loads(path.read_text())
        assert data["nodes"]["B"] == {"x": 40.0, "y": 40.0}
        assert data["parentMap"] == {"B": "A"}

    def test_reload_from_disk(self, file_layout_store, tmp_path):
        etag = file_layout_store.save("shop", relative_record(A=(0, 0), B=(40, 40)))

        reopened = LayoutStore(base_dir=tmp_path)
        record = reopened.fetch("shop")
        assert record.positions["B"] == NodePosition(x=40, y=40)
        assert record.parent_map == {"B": "A"}
        assert record.etag == etag
        assert reopened.exists("shop")

    def test_missing_file_is_empty(self, file_layout_store):
        assert file_layout_store.fetch("nothing-here").is_empty

    def test_legacy_file_without_parent_map(self, file_layout_store, tmp_path):
        (tmp_path / "layout").mkdir()
        (tmp_path / "layout" / "old.layout.json").write_text(
            json.dumps({"nodes": {"A": {"x": 50, "y": 50}, "B": {"x": 80, "y": 70}}})
        )

        record = file_layout_store.fetch("old")
        assert record.is_legacy
        assert record.positions["B"] == NodePosition(x=80, y=70)

    def test_update_from_file_only_layout(self, file_layout_store, tmp_path):
        etag = file_layout_store.save("shop", relative_record(A=(0, 0)))
        reopened = LayoutStore(base_dir=tmp_path)

        reopened.update("shop", relative_record(A=(1, 1)), expected_etag=etag)
        assert reopened.fetch("shop").version == 2

    def test_delete_removes_file(self, file_layout_store, tmp_path):
        file_layout_store.save("shop", relative_record(A=(0, 0)))
        assert file_layout_store.delete("shop")
        assert not (tmp_path / "layout" / "shop.layout.json").exists()

    def test_identity_is_made_filename_safe(self, file_layout_store, tmp_path):
        path = file_layout_store.layout_path("../escape/me")
        assert path.parent == tmp_path / "layout"
        assert path.name == ".._escape_me.layout.json"

    def test_layout_path_requires_base_dir(self, layout_store):
        with pytest.raises(ValueError):
            layout_store.layout_path("shop")

    @pytest.mark.parametrize("content", ["", "{not json", "[1, 2]", "null"])
    def test_unreadable_file_is_empty(self, file_layout_store, tmp_path, content, caplog):
        (tmp_path / "layout").mkdir()
        (tmp_path / "layout" / "shop.layout.json").write_text(content)

        with caplog.at_level(logging.WARNING):
            record = file_layout_store.fetch("shop")

        assert record.is_empty
        assert not file_layout_store.exists("shop")
        assert "Ignoring unreadable layout file" in caplog.text

    def test_save_replaces_unreadable_file(self, file_layout_store, tmp_path):
        (tmp_path / "layout").mkdir()
        (tmp_path / "layout" / "shop.layout.json").write_text("")

        file_layout_store.save("shop", relative_record(A=(0, 0)))

        record = LayoutStore(base_dir=tmp_path).fetch("shop")
        assert record.version == 1
        assert record.positions["A"] == NodePosition(x=0, y=0)

    def test_direction_is_persisted(self, file_layout_store, tmp_path):
        file_layout_store.save("shop", LayoutRecord(
            positions={"A": NodePosition(x=0, y=0)},
            has_parent_map=True,
            direction="TB",
        ))

        data = json.loads((tmp_path / "layout" / "shop.layout.json").read_text())
        assert data["direction"] == "TB"
        assert LayoutStore(base_dir=tmp_path).fetch("shop").direction == "TB"
