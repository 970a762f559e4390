"""
Node Types API Routes.

Endpoints for browsing the built-in node catalog.
"""

from fastapi import APIRouter, HTTPException

from flowcanvas.api.schemas import ErrorResponse, NodeTypeInfo, NodeTypeListResponse
from flowcanvas.engine.node_types import get_node_type, list_node_types


router = APIRouter(prefix="/node-types", tags=["Node Types"])


@router.get(
    "",
    response_model=NodeTypeListResponse,
)
async def list_types() -> NodeTypeListResponse:
    """
    List the built-in node types.

    Each entry carries the kind, icon, color and default config a new node
    of that type starts with.
    """
    infos = [NodeTypeInfo(**t) for t in list_node_types()]
    return NodeTypeListResponse(node_types=infos, total=len(infos))


@router.get(
    "/{label}",
    response_model=NodeTypeInfo,
    responses={404: {"model": ErrorResponse}},
)
async def get_type(label: str) -> NodeTypeInfo:
    """Get a single node type by label."""
    definition = get_node_type(label)
    if definition is None:
        raise HTTPException(
            status_code=404,
            detail=f"Node type '{label}' not found"
        )
    return NodeTypeInfo(**definition.to_dict())
