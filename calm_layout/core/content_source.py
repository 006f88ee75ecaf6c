"""Content sources supply architecture snapshots to a studio session.

Only ``ContentSnapshot.json`` (the architecture document) is consumed by the
layout core. The other fields travel along for callers that show them.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContentSnapshot:
    """One fetch of an architecture's content.

    Attributes:
        dsl_text: Source text of the architecture DSL, if any
        diagram_source_text: Generated diagram source, if any
        json: Architecture document (JSON text or decoded dict)
        preview_image: Rendered preview, if any
    """

    dsl_text: str = ""
    diagram_source_text: str = ""
    json: Union[str, Dict[str, Any], None] = None
    preview_image: Optional[bytes] = None


class ContentSource(ABC):
    """Supplier of architecture snapshots."""

    @abstractmethod
    def fetch_snapshot(self) -> ContentSnapshot:
        """Fetch the latest snapshot."""
        pass


class StaticContentSource(ContentSource):
    """In-memory source; ``publish`` replaces the snapshot served next."""

    def __init__(self, snapshot: Optional[ContentSnapshot] = None):
        self._snapshot = snapshot or ContentSnapshot()

    @classmethod
    def from_architecture(cls, architecture: Union[str, Dict[str, Any]]) -> "StaticContentSource":
        return cls(ContentSnapshot(json=architecture))

    def publish(self, snapshot: ContentSnapshot) -> None:
        self._snapshot = snapshot

    def fetch_snapshot(self) -> ContentSnapshot:
        return self._snapshot


class FileContentSource(ContentSource):
    """Reads the architecture document from disk on every fetch.

    A missing architecture file yields a snapshot without a document, which
    callers treat as "no architecture yet".
    """

    def __init__(
        self,
        architecture_path: Union[str, Path],
        dsl_path: Optional[Union[str, Path]] = None,
    ):
        self.architecture_path = Path(architecture_path)
        self.dsl_path = Path(dsl_path) if dsl_path is not None else None

    def fetch_snapshot(self) -> ContentSnapshot:
        """Read the current files.

        Raises:
            OSError: If an existing file cannot be read
        """
        document = None
        if self.architecture_path.exists():
            document = self.architecture_path.read_text(encoding="utf-8")
        else:
            logger.info(f"No architecture file at {self.architecture_path}")

        dsl_text = ""
        if self.dsl_path is not None and self.dsl_path.exists():
            dsl_text = self.dsl_path.read_text(encoding="utf-8")

        return ContentSnapshot(dsl_text=dsl_text, json=document)


__all__ = [
    "ContentSnapshot",
    "ContentSource",
    "StaticContentSource",
    "FileContentSource",
]
