"""
Pydantic Schemas for API Request/Response Models.

These schemas define the structure of data flowing through the API,
providing automatic validation and documentation.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from flowcanvas.engine.executor import ExecutionStatus, LogEntry, NodeStatus
from flowcanvas.engine.models import NodeKind, Position, WorkflowEdge, WorkflowNode


# ============================================================
# Node Schemas
# ============================================================

class NodeCreateRequest(BaseModel):
    """Request to add a node."""
    label: str = Field(..., description="Node type label, e.g. 'Email' or 'End'")
    kind: Optional[NodeKind] = Field(None, description="Required for labels outside the built-in catalog")
    config: Optional[Dict[str, Any]] = Field(None, description="Config (defaults to the catalog's)")
    position: Optional[Position] = None
    icon: Optional[str] = None
    id: Optional[str] = Field(None, description="Explicit node id (generated if omitted)")

    class Config:
        json_schema_extra = {
            "example": {
                "label": "Email",
                "config": {"to": "ops@example.com", "subject": "Deploy", "body": "Done"},
                "position": {"x": 240, "y": 120}
            }
        }


class NodeUpdateRequest(BaseModel):
    """Request to update a node's data."""
    label: Optional[str] = None
    kind: Optional[NodeKind] = None
    config: Optional[Dict[str, Any]] = None
    icon: Optional[str] = None
    merge_config: bool = Field(True, description="Merge config into the existing one instead of replacing it")


# ============================================================
# Edge Schemas
# ============================================================

class EdgeCreateRequest(BaseModel):
    """Request to connect two nodes."""
    source: str
    target: str
    label: Optional[str] = None
    type: str = "smoothstep"
    animated: bool = True
    id: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {"source": "node_a1b2c3", "target": "node_d4e5f6", "label": "on success"}
        }


class EdgeUpdateRequest(BaseModel):
    """Request to update an edge's display fields."""
    label: Optional[str] = None
    type: Optional[str] = None
    animated: Optional[bool] = None


# ============================================================
# Workflow Schemas
# ============================================================

class WorkflowResponse(BaseModel):
    """The live workflow graph."""
    nodes: List[WorkflowNode]
    edges: List[WorkflowEdge]
    node_count: int
    edge_count: int
    can_undo: bool
    can_redo: bool
    selected_node_id: Optional[str] = None


class HistoryActionResponse(BaseModel):
    """Result of an undo or redo."""
    applied: bool = Field(..., description="False when already at the history boundary")
    workflow: WorkflowResponse


class HistoryInfoResponse(BaseModel):
    """History stack summary."""
    current_index: int
    total_snapshots: int
    can_undo: bool
    can_redo: bool
    memory_usage: str


class ValidationResponse(BaseModel):
    """Workflow validation result."""
    valid: bool
    errors: List[str]


class SaveResponse(BaseModel):
    """Result of an explicit save."""
    saved: bool
    timestamp: Optional[int] = None
    node_count: int
    edge_count: int


class LoadResponse(BaseModel):
    """Result of loading the saved workflow."""
    loaded: bool
    workflow: WorkflowResponse


class ImportRequest(BaseModel):
    """Request to import an exported workflow."""
    content: str = Field(..., description="Exported workflow JSON text")


# ============================================================
# Execution Schemas
# ============================================================

class ExecutionStartRequest(BaseModel):
    """Request to run the workflow."""
    async_execution: bool = Field(
        False,
        description="If true, run in background and return immediately"
    )


class ExecutionResultResponse(BaseModel):
    """Response after running the workflow."""
    run_id: Optional[str] = None
    success: bool
    status: ExecutionStatus
    executed_nodes: List[str]
    error: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    total_duration_ms: Optional[float] = None

    class Config:
        json_schema_extra = {
            "example": {
                "run_id": "0b6d5c1e-4a5f-4d7a-9f3e-2d7f0c1b8e21",
                "success": True,
                "status": "completed",
                "executed_nodes": ["node_manual", "node_http", "node_end"],
                "error": None,
                "errors": [],
                "started_at": "2024-01-01T12:00:00+00:00",
                "completed_at": "2024-01-01T12:00:03+00:00",
                "total_duration_ms": 3004.2
            }
        }


class ExecutionStateResponse(BaseModel):
    """Observable state of the current or last run."""
    is_running: bool
    is_paused: bool
    current_node_id: Optional[str]
    logs: List[LogEntry]
    node_statuses: Dict[str, NodeStatus]


class ExecutionCommandResponse(BaseModel):
    """Result of a pause/resume/stop command."""
    applied: bool = Field(..., description="False when no run is in progress")
    state: ExecutionStateResponse


# ============================================================
# Node Type Schemas
# ============================================================

class NodeTypeInfo(BaseModel):
    """A node type from the built-in catalog."""
    type: str
    label: str
    kind: NodeKind
    icon: str
    color: str
    description: str
    config: Dict[str, Any]


class NodeTypeListResponse(BaseModel):
    """Response listing the built-in node types."""
    node_types: List[NodeTypeInfo]
    total: int


# ============================================================
# Error Schemas
# ============================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
