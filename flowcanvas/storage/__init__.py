"""
Storage package - Workflow persistence and import/export.
"""

from flowcanvas.storage.persistence import (
    FileStore,
    MemoryStore,
    WorkflowData,
    WorkflowStorage,
    export_workflow_to_json,
    import_workflow_from_json,
)

__all__ = [
    "FileStore",
    "MemoryStore",
    "WorkflowData",
    "WorkflowStorage",
    "export_workflow_to_json",
    "import_workflow_from_json",
]
