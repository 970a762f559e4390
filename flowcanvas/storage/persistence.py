"""
Workflow Persistence.

Saves the workflow as a serialized blob in a key-value store and handles
the JSON export/import format. Two stores are provided: an in-memory one
and a directory of JSON files. Either can be replaced with anything that
offers get/set/remove/keys.
"""

from typing import Any, Dict, List, Optional
from pathlib import Path
from pydantic import BaseModel, Field, ValidationError
from datetime import datetime, timezone
import json
import logging
import time

from flowcanvas.config import settings
from flowcanvas.engine.models import WorkflowEdge, WorkflowNode, find_duplicate_ids
from flowcanvas.exceptions import PersistenceError, WorkflowImportError


logger = logging.getLogger(__name__)

EXPORT_VERSION = "1.0.0"


def _now_ms() -> int:
    return int(time.time() * 1000)


class WorkflowData(BaseModel):
    """The persisted shape of a workflow."""
    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[WorkflowEdge] = Field(default_factory=list)
    timestamp: int = Field(default_factory=_now_ms)


class ExportMetadata(BaseModel):
    exported_at: str
    node_count: int
    edge_count: int


class ExportedWorkflow(WorkflowData):
    """A workflow framed for export."""
    version: str = EXPORT_VERSION
    metadata: ExportMetadata


# ============================================================
# Key-value stores
# ============================================================

class MemoryStore:
    """In-memory key-value store."""

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> bool:
        if key in self._data:
            del self._data[key]
            return True
        return False

    def keys(self) -> List[str]:
        return list(self._data.keys())

    def __len__(self) -> int:
        return len(self._data)


class FileStore:
    """Key-value store backed by one JSON file per key in a directory."""

    def __init__(self, directory: str):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def remove(self, key: str) -> bool:
        path = self._path(key)
        if path.exists():
            path.unlink()
            return True
        return False

    def keys(self) -> List[str]:
        return sorted(p.stem for p in self.directory.glob("*.json"))

    def __len__(self) -> int:
        return len(self.keys())


def create_store(directory: Optional[str] = None):
    """A FileStore for directory, or a MemoryStore when none is configured."""
    directory = directory if directory is not None else settings.STORAGE_DIR
    if directory:
        return FileStore(directory)
    return MemoryStore()


# ============================================================
# Workflow storage
# ============================================================

class WorkflowStorage:
    """
    Saves and loads the current workflow, plus timestamped backups.

    Usage:
        storage = WorkflowStorage(MemoryStore())
        storage.save(nodes, edges)
        data = storage.load()  # None if nothing saved
    """

    def __init__(self, store=None, key: Optional[str] = None):
        self.store = store if store is not None else create_store()
        self.key = key or settings.STORAGE_KEY

    @property
    def backup_prefix(self) -> str:
        return f"{self.key}_backup_"

    def save(self, nodes: List[WorkflowNode], edges: List[WorkflowEdge]) -> WorkflowData:
        """
        Save the workflow under the storage key.

        Raises:
            PersistenceError: If the store rejects the write
        """
        data = WorkflowData(nodes=nodes, edges=edges)
        self._write(self.key, data)
        logger.debug(f"Saved workflow ({len(nodes)} nodes, {len(edges)} edges)")
        return data

    def load(self) -> Optional[WorkflowData]:
        """Load the saved workflow. Missing or unreadable data gives None."""
        return self._read(self.key)

    def clear(self) -> None:
        self.store.remove(self.key)

    def has_stored(self) -> bool:
        return self.store.get(self.key) is not None

    def storage_size(self) -> int:
        """Size of the saved blob in characters (0 if none)."""
        blob = self.store.get(self.key)
        return len(blob) if blob else 0

    def create_backup(
        self,
        nodes: List[WorkflowNode],
        edges: List[WorkflowEdge],
        backup_key: Optional[str] = None
    ) -> str:
        """Save a copy under a backup key and return the key."""
        key = backup_key or f"{self.backup_prefix}{_now_ms()}"
        if backup_key is None:
            suffix = 1
            base = key
            while self.store.get(key) is not None:
                key = f"{base}_{suffix}"
                suffix += 1
        self._write(key, WorkflowData(nodes=nodes, edges=edges))
        logger.info(f"Created backup: {key}")
        return key

    def list_backups(self) -> List[str]:
        return sorted(k for k in self.store.keys() if k.startswith(self.backup_prefix))

    def restore_backup(self, backup_key: str) -> Optional[WorkflowData]:
        return self._read(backup_key)

    def delete_backup(self, backup_key: str) -> bool:
        return self.store.remove(backup_key)

    def _write(self, key: str, data: WorkflowData) -> None:
        try:
            self.store.set(key, data.model_dump_json())
        except (OSError, ValueError, TypeError) as e:
            raise PersistenceError(f"Failed to save workflow: {e}") from e

    def _read(self, key: str) -> Optional[WorkflowData]:
        try:
            blob = self.store.get(key)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read '{key}': {e}")
            return None
        if not blob:
            return None
        try:
            return WorkflowData.model_validate_json(blob)
        except ValidationError as e:
            logger.warning(f"Stored workflow '{key}' is unreadable: {e}")
            return None


# ============================================================
# Export / import
# ============================================================

def export_workflow_to_json(nodes: List[WorkflowNode], edges: List[WorkflowEdge]) -> str:
    """Serialize a workflow to the export format (indented JSON)."""
    exported = ExportedWorkflow(
        nodes=nodes,
        edges=edges,
        metadata=ExportMetadata(
            exported_at=datetime.now(timezone.utc).isoformat(),
            node_count=len(nodes),
            edge_count=len(edges),
        ),
    )
    return exported.model_dump_json(indent=2)


def import_workflow_from_json(json_string: str) -> WorkflowData:
    """
    Parse an exported workflow.

    Raises:
        WorkflowImportError: If the text is not JSON, lacks a nodes or edges
            list, or contains malformed nodes/edges or repeated ids
    """
    try:
        document: Any = json.loads(json_string)
    except (TypeError, ValueError) as e:
        raise WorkflowImportError(f"Invalid workflow format: {e}") from e

    if not isinstance(document, dict):
        raise WorkflowImportError("Invalid workflow format: expected a JSON object")
    if not isinstance(document.get("nodes"), list):
        raise WorkflowImportError("Invalid workflow format: missing or invalid nodes")
    if not isinstance(document.get("edges"), list):
        raise WorkflowImportError("Invalid workflow format: missing or invalid edges")

    try:
        data = WorkflowData(
            nodes=document["nodes"],
            edges=document["edges"],
            timestamp=document.get("timestamp") or _now_ms(),
        )
    except ValidationError as e:
        raise WorkflowImportError(f"Invalid workflow format: {e}") from e

    for kind, items in (("node", data.nodes), ("edge", data.edges)):
        duplicates = find_duplicate_ids(items)
        if duplicates:
            raise WorkflowImportError(
                f"Invalid workflow format: duplicate {kind} id(s): {', '.join(duplicates)}"
            )

    return data
