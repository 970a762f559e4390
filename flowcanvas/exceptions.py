"""
Custom exceptions for FlowCanvas.

Exception Hierarchy:
- FlowCanvasError (base)
  - NodeNotFoundError
  - EdgeNotFoundError
  - InvalidEdgeError
  - WorkflowImportError
  - PersistenceError

Validation problems and history boundaries are not exceptions: validation
returns a list of messages and undo/redo return None at the boundaries.
"""


class FlowCanvasError(Exception):
    """Base exception for all FlowCanvas errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NodeNotFoundError(FlowCanvasError):
    """A node id does not exist in the current workflow."""

    def __init__(self, node_id: str):
        super().__init__(f"Node '{node_id}' not found")
        self.node_id = node_id


class EdgeNotFoundError(FlowCanvasError):
    """An edge id does not exist in the current workflow."""

    def __init__(self, edge_id: str):
        super().__init__(f"Edge '{edge_id}' not found")
        self.edge_id = edge_id


class InvalidEdgeError(FlowCanvasError):
    """An edge would reference a node that is not in the workflow."""
    pass


class WorkflowImportError(FlowCanvasError):
    """Imported text is not a valid workflow document."""
    pass


class PersistenceError(FlowCanvasError):
    """Saving to the backing store failed."""
    pass
