"""
Workflow API Routes.

Endpoints for editing the workflow graph, undo/redo, validation,
persistence and import/export. Every mutating edit goes through the
controller, which records one history snapshot per edit.
"""

from fastapi import APIRouter, Depends, Response, status
import logging

from flowcanvas.api.dependencies import get_controller
from flowcanvas.api.schemas import (
    EdgeCreateRequest,
    EdgeUpdateRequest,
    ErrorResponse,
    HistoryActionResponse,
    HistoryInfoResponse,
    ImportRequest,
    LoadResponse,
    NodeCreateRequest,
    NodeUpdateRequest,
    SaveResponse,
    ValidationResponse,
    WorkflowResponse,
)
from flowcanvas.controller import WorkflowController
from flowcanvas.engine.models import Position, WorkflowEdge, WorkflowNode


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflow", tags=["Workflow"])


def _workflow_response(controller: WorkflowController) -> WorkflowResponse:
    return WorkflowResponse(
        nodes=controller.nodes,
        edges=controller.edges,
        node_count=controller.node_count,
        edge_count=controller.edge_count,
        can_undo=controller.can_undo,
        can_redo=controller.can_redo,
        selected_node_id=controller.selected_node_id,
    )


@router.get("", response_model=WorkflowResponse)
async def get_workflow(controller: WorkflowController = Depends(get_controller)) -> WorkflowResponse:
    """Get the live workflow graph."""
    return _workflow_response(controller)


# ============================================================
# Node Endpoints
# ============================================================

@router.post(
    "/nodes",
    response_model=WorkflowNode,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse, "description": "Unknown node type without kind"}},
)
async def add_node(
    request: NodeCreateRequest,
    controller: WorkflowController = Depends(get_controller),
) -> WorkflowNode:
    """
    Add a node to the workflow.

    Built-in labels (see `GET /node-types`) fill in kind, icon and default
    config automatically.
    """
    return controller.add_node(
        label=request.label,
        kind=request.kind,
        config=request.config,
        position=request.position,
        icon=request.icon,
        node_id=request.id,
    )


@router.patch(
    "/nodes/{node_id}",
    response_model=WorkflowNode,
    responses={404: {"model": ErrorResponse}},
)
async def update_node(
    node_id: str,
    request: NodeUpdateRequest,
    controller: WorkflowController = Depends(get_controller),
) -> WorkflowNode:
    """Update a node's label, kind, icon or config."""
    return controller.update_node(
        node_id,
        label=request.label,
        config=request.config,
        kind=request.kind,
        icon=request.icon,
        merge_config=request.merge_config,
    )


@router.put(
    "/nodes/{node_id}/position",
    response_model=WorkflowNode,
    responses={404: {"model": ErrorResponse}},
)
async def move_node(
    node_id: str,
    position: Position,
    controller: WorkflowController = Depends(get_controller),
) -> WorkflowNode:
    """Move a node on the canvas. Not recorded in history."""
    return controller.update_node_position(node_id, position)


@router.post(
    "/nodes/{node_id}/duplicate",
    response_model=WorkflowNode,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}},
)
async def duplicate_node(
    node_id: str,
    controller: WorkflowController = Depends(get_controller),
) -> WorkflowNode:
    """Duplicate a node (edges are not copied)."""
    return controller.duplicate_node(node_id)


@router.delete(
    "/nodes/{node_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def remove_node(node_id: str, controller: WorkflowController = Depends(get_controller)):
    """Remove a node and its edges."""
    controller.remove_node(node_id)
    logger.info(f"Removed node: {node_id}")


# ============================================================
# Edge Endpoints
# ============================================================

@router.post(
    "/edges",
    response_model=WorkflowEdge,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse, "description": "Endpoint is not a node"}},
)
async def add_edge(
    request: EdgeCreateRequest,
    controller: WorkflowController = Depends(get_controller),
) -> WorkflowEdge:
    """Connect two nodes."""
    return controller.add_edge(
        source=request.source,
        target=request.target,
        label=request.label,
        edge_type=request.type,
        animated=request.animated,
        edge_id=request.id,
    )


@router.patch(
    "/edges/{edge_id}",
    response_model=WorkflowEdge,
    responses={404: {"model": ErrorResponse}},
)
async def update_edge(
    edge_id: str,
    request: EdgeUpdateRequest,
    controller: WorkflowController = Depends(get_controller),
) -> WorkflowEdge:
    """Update an edge's label, type or animation flag."""
    return controller.update_edge(
        edge_id,
        label=request.label,
        edge_type=request.type,
        animated=request.animated,
    )


@router.delete(
    "/edges/{edge_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def remove_edge(edge_id: str, controller: WorkflowController = Depends(get_controller)):
    """Remove an edge."""
    controller.remove_edge(edge_id)


# ============================================================
# History Endpoints
# ============================================================

@router.post("/undo", response_model=HistoryActionResponse)
async def undo(controller: WorkflowController = Depends(get_controller)) -> HistoryActionResponse:
    """Undo the last edit. `applied` is false when there is nothing to undo."""
    applied = controller.undo()
    return HistoryActionResponse(applied=applied, workflow=_workflow_response(controller))


@router.post("/redo", response_model=HistoryActionResponse)
async def redo(controller: WorkflowController = Depends(get_controller)) -> HistoryActionResponse:
    """Redo the last undone edit. `applied` is false when there is nothing to redo."""
    applied = controller.redo()
    return HistoryActionResponse(applied=applied, workflow=_workflow_response(controller))


@router.get("/history", response_model=HistoryInfoResponse)
async def get_history(controller: WorkflowController = Depends(get_controller)) -> HistoryInfoResponse:
    """Summary of the undo/redo stack."""
    return HistoryInfoResponse(**controller.history_info().to_dict())


# ============================================================
# Validation & Persistence Endpoints
# ============================================================

@router.post("/validate", response_model=ValidationResponse)
async def validate(controller: WorkflowController = Depends(get_controller)) -> ValidationResponse:
    """Validate structure and node configs without running."""
    result = controller.validate_workflow()
    return ValidationResponse(valid=result.valid, errors=result.errors)


@router.post(
    "/save",
    response_model=SaveResponse,
    responses={500: {"model": ErrorResponse, "description": "Storage failure"}},
)
async def save(controller: WorkflowController = Depends(get_controller)) -> SaveResponse:
    """Save the workflow now."""
    data = controller.save_workflow()
    return SaveResponse(
        saved=data is not None,
        timestamp=data.timestamp if data else None,
        node_count=controller.node_count,
        edge_count=controller.edge_count,
    )


@router.post("/load", response_model=LoadResponse)
async def load(controller: WorkflowController = Depends(get_controller)) -> LoadResponse:
    """Replace the workflow with the saved one, if any."""
    loaded = controller.load_workflow()
    return LoadResponse(loaded=loaded, workflow=_workflow_response(controller))


@router.post("/clear", response_model=WorkflowResponse)
async def clear(controller: WorkflowController = Depends(get_controller)) -> WorkflowResponse:
    """Remove every node and edge and reset history."""
    controller.clear_workflow()
    return _workflow_response(controller)


@router.get("/export")
async def export(controller: WorkflowController = Depends(get_controller)) -> Response:
    """Export the workflow as a JSON document."""
    return Response(
        content=controller.export_workflow(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="workflow.json"'},
    )


@router.post(
    "/import",
    response_model=WorkflowResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid workflow document"}},
)
async def import_workflow(
    request: ImportRequest,
    controller: WorkflowController = Depends(get_controller),
) -> WorkflowResponse:
    """Replace the workflow with an exported document."""
    controller.import_workflow(request.content)
    logger.info(f"Imported workflow ({controller.node_count} nodes)")
    return _workflow_response(controller)
