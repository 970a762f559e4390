"""
Shared API dependencies.

The API serves a single workflow through one process-wide controller.
Tests swap it out with `app.dependency_overrides[get_controller]`.
"""

from flowcanvas.controller import WorkflowController
from flowcanvas.storage.persistence import WorkflowStorage


# Global controller instance
workflow_controller = WorkflowController(storage=WorkflowStorage())


def get_controller() -> WorkflowController:
    """Dependency returning the process-wide controller."""
    return workflow_controller
