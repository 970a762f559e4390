"""
Engine package - Graph model, history and execution.
"""

from flowcanvas.engine.models import WorkflowNode, WorkflowEdge, WorkflowSnapshot, NodeKind, Position
from flowcanvas.engine.history import HistoryManager, create_snapshot
from flowcanvas.engine.executor import (
    Executor,
    ExecutionContext,
    ExecutionResult,
    ExecutionState,
    execute_workflow,
)
from flowcanvas.engine.validation import validate_workflow, validator_registry

__all__ = [
    "WorkflowNode",
    "WorkflowEdge",
    "WorkflowSnapshot",
    "NodeKind",
    "Position",
    "HistoryManager",
    "create_snapshot",
    "Executor",
    "ExecutionContext",
    "ExecutionResult",
    "ExecutionState",
    "execute_workflow",
    "validate_workflow",
    "validator_registry",
]
