"""Layout Store Module - Persistent Storage for Layout Records.

This module provides storage for layout records keyed by architecture identity:
- In-memory caching for fast access
- Optional file-based persistence (JSON) under a base directory
- Etag-based optimistic concurrency control

A missing record is never an error on fetch: it reads as the empty record,
meaning "no stored layout".

File format:
    {base_dir}/layout/{architecture_id}.layout.json in the record wire shape
    ({"nodes": {...}, "parentMap": {...}, ...}), indented with sorted keys.

Usage:
    from calm_layout.core.layout_store import LayoutStore

    store = LayoutStore(base_dir="/projects/shop")
    record = store.fetch("ecommerce-platform")
    etag = store.save("ecommerce-platform", record)
    store.update("ecommerce-platform", modified, expected_etag=etag)
"""

import json
import logging
import re
import threading
from copy import deepcopy
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Union

from calm_layout.models.layout_record import LayoutRecord

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class OptimisticLockError(Exception):
    """Raised when etag mismatch indicates concurrent modification."""

    def __init__(self, architecture_id: str, expected_etag: str, actual_etag: str):
        self.architecture_id = architecture_id
        self.expected_etag = expected_etag
        self.actual_etag = actual_etag
        super().__init__(
            f"Layout of {architecture_id} was modified (expected etag {expected_etag[:8]}..., "
            f"got {actual_etag[:8]}...)"
        )


class LayoutNotFoundError(Exception):
    """Raised when an update targets a layout that was never saved."""

    def __init__(self, architecture_id: str):
        self.architecture_id = architecture_id
        super().__init__(f"Layout of {architecture_id} not found")


class LayoutStore:
    """Thread-safe storage for layout records with optional file persistence.

    Example:
        store = LayoutStore()
        record = store.fetch("arch-1")          # empty record, not an error
        etag = store.save("arch-1", computed)
        current = store.fetch("arch-1")
        store.update("arch-1", moved, expected_etag=current.etag)
    """

    def __init__(self, base_dir: Optional[Union[str, Path]] = None):
        """Initialize the layout store.

        Args:
            base_dir: Directory holding the layout/ folder (None keeps
                records in memory only)
        """
        self._records: Dict[str, LayoutRecord] = {}
        self._lock = threading.RLock()
        self.base_dir = Path(base_dir) if base_dir is not None else None

    def _require_id(self, architecture_id: str) -> str:
        if not architecture_id:
            raise ValueError("Architecture identity is required to store a layout")
        return architecture_id

    def fetch(self, architecture_id: str) -> LayoutRecord:
        """Retrieve the layout of an architecture.

        Args:
            architecture_id: Architecture identity

        Returns:
            Deep copy of the stored record, or the empty record when none exists
        """
        with self._lock:
            if architecture_id in self._records:
                return deepcopy(self._records[architecture_id])

            if architecture_id and self.base_dir is not None:
                record = self._read_layout_file(architecture_id)
                if record is not None:
                    self._records[architecture_id] = record
                    return deepcopy(record)

            return LayoutRecord.empty(architecture_id)

    def save(self, architecture_id: str, record: LayoutRecord) -> str:
        """Create or replace the layout of an architecture.

        Args:
            architecture_id: Architecture identity
            record: Record to store

        Returns:
            New etag

        Raises:
            ValueError: If architecture_id is empty
            OSError: If the layout file cannot be written
        """
        self._require_id(architecture_id)
        with self._lock:
            current = self._current(architecture_id)
            stored = self._stamp(architecture_id, record, current)
            if self.base_dir is not None:
                self._write_layout_file(stored)
            self._records[architecture_id] = stored
            logger.debug(
                f"Saved layout {architecture_id} v{stored.version} (etag: {stored.etag[:8]}...)"
            )
            return stored.etag

    def update(
        self,
        architecture_id: str,
        record: LayoutRecord,
        expected_etag: Optional[str] = None,
    ) -> str:
        """Replace an existing layout with optimistic concurrency control.

        Args:
            architecture_id: Architecture identity
            record: Updated record
            expected_etag: If provided, update fails if current etag doesn't match

        Returns:
            New etag after update

        Raises:
            LayoutNotFoundError: If no layout is stored for the architecture
            OptimisticLockError: If expected_etag doesn't match current etag
        """
        with self._lock:
            current = self._current(architecture_id)
            if current is None:
                raise LayoutNotFoundError(architecture_id)

            if expected_etag is not None and current.etag != expected_etag:
                raise OptimisticLockError(architecture_id, expected_etag, current.etag)

            stored = self._stamp(architecture_id, record, current)
            if self.base_dir is not None:
                self._write_layout_file(stored)
            self._records[architecture_id] = stored
            logger.debug(
                f"Updated layout {architecture_id} v{stored.version} (etag: {stored.etag[:8]}...)"
            )
            return stored.etag

    def delete(self, architecture_id: str) -> bool:
        """Delete the layout of an architecture (memory and file).

        Returns:
            True if deleted, False if not found
        """
        with self._lock:
            found = self._records.pop(architecture_id, None) is not None
            if architecture_id and self.base_dir is not None:
                path = self.layout_path(architecture_id)
                if path.exists():
                    path.unlink()
                    found = True
            if found:
                logger.debug(f"Deleted layout {architecture_id}")
            return found

    def exists(self, architecture_id: str) -> bool:
        with self._lock:
            return self._current(architecture_id) is not None

    def _current(self, architecture_id: str) -> Optional[LayoutRecord]:
        if architecture_id in self._records:
            return self._records[architecture_id]
        if architecture_id and self.base_dir is not None:
            record = self._read_layout_file(architecture_id)
            if record is not None:
                self._records[architecture_id] = record
            return record
        return None

    def _stamp(
        self,
        architecture_id: str,
        record: LayoutRecord,
        current: Optional[LayoutRecord],
    ) -> LayoutRecord:
        """Copy of record keyed, versioned, and timestamped for storage."""
        stored = deepcopy(record)
        now = datetime.now(timezone.utc).isoformat()
        object.__setattr__(stored, "architecture_id", architecture_id)
        object.__setattr__(stored, "version", current.version + 1 if current else 1)
        object.__setattr__(stored, "created_at", current.created_at if current else now)
        object.__setattr__(stored, "updated_at", now)
        object.__setattr__(stored, "etag", stored.compute_etag())
        return stored

    # =========================================================================
    # File Persistence
    # =========================================================================

    def layout_path(self, architecture_id: str) -> Path:
        """Path of the layout file of an architecture.

        Raises:
            ValueError: If the store has no base directory
        """
        if self.base_dir is None:
            raise ValueError("Layout store has no base directory")
        safe_name = _UNSAFE_FILENAME_CHARS.sub("_", architecture_id)
        return self.base_dir / "layout" / f"{safe_name}.layout.json"

    def _write_layout_file(self, record: LayoutRecord) -> Path:
        file_path = self.layout_path(record.architecture_id)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, "w") as f:
            json.dump(record.to_wire(), f, indent=2, sort_keys=True)

        logger.info(f"Saved layout to {file_path}")
        return file_path

    def _read_layout_file(self, architecture_id: str) -> Optional[LayoutRecord]:
        """Read a layout file.

        Returns None when the file does not exist or cannot be parsed; an
        unreadable layout is the same as no stored layout.
        """
        file_path = self.layout_path(architecture_id)
        if not file_path.exists():
            return None

        try:
            with open(file_path, "r") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError(f"expected an object, got {type(data).__name__}")
            return LayoutRecord.from_wire(data, architecture_id=architecture_id)
        except ValueError as e:
            logger.warning(f"Ignoring unreadable layout file {file_path}: {e}")
            return None

    def __contains__(self, architecture_id: str) -> bool:
        return self.exists(architecture_id)


def create_layout_store(base_dir: Optional[Union[str, Path]] = None) -> LayoutStore:
    """Create a new layout store instance."""
    return LayoutStore(base_dir=base_dir)


__all__ = [
    "LayoutStore",
    "LayoutNotFoundError",
    "OptimisticLockError",
    "create_layout_store",
]
