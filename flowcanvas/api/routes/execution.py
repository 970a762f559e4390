"""
Execution API Routes.

Endpoints for running the workflow and steering a run in progress.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
import logging

from flowcanvas.api.dependencies import get_controller
from flowcanvas.api.schemas import (
    ErrorResponse,
    ExecutionCommandResponse,
    ExecutionResultResponse,
    ExecutionStartRequest,
    ExecutionStateResponse,
)
from flowcanvas.controller import WorkflowController
from flowcanvas.engine.executor import ALREADY_RUNNING, ExecutionStatus


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/execution", tags=["Execution"])


def _state_response(controller: WorkflowController) -> ExecutionStateResponse:
    state = controller.execution
    return ExecutionStateResponse(
        is_running=state.is_running,
        is_paused=state.is_paused,
        current_node_id=state.current_node_id,
        logs=list(state.logs),
        node_statuses=dict(state.node_statuses),
    )


@router.post(
    "/start",
    response_model=ExecutionResultResponse,
    responses={409: {"model": ErrorResponse, "description": "A run is already in progress"}},
)
async def start_execution(
    background_tasks: BackgroundTasks,
    request: ExecutionStartRequest = ExecutionStartRequest(),
    controller: WorkflowController = Depends(get_controller),
) -> ExecutionResultResponse:
    """
    Run the workflow from its trigger node.

    Validation failures are not HTTP errors: the run fails with
    `status="failed"` and the messages in `errors`. If `async_execution`
    is True, the run happens in the background; follow it with
    `GET /execution/state` or the `/ws/execution` WebSocket.
    """
    if controller.is_running:
        raise HTTPException(status_code=409, detail=ALREADY_RUNNING)

    if request.async_execution:
        background_tasks.add_task(_execute_in_background, controller)
        return ExecutionResultResponse(
            success=False,
            status=ExecutionStatus.RUNNING,
            executed_nodes=[],
        )

    result = await controller.start_execution()
    return ExecutionResultResponse(**result.to_dict())


async def _execute_in_background(controller: WorkflowController):
    """Execute the workflow in the background."""
    try:
        result = await controller.start_execution()
        logger.info(f"Background run {result.run_id} finished: {result.status.value}")
    except Exception as e:
        logger.exception(f"Background execution failed: {e}")


@router.post("/pause", response_model=ExecutionCommandResponse)
async def pause(controller: WorkflowController = Depends(get_controller)) -> ExecutionCommandResponse:
    """Set the pause flag (advisory; node work in flight is not interrupted)."""
    applied = controller.pause_execution()
    return ExecutionCommandResponse(applied=applied, state=_state_response(controller))


@router.post("/resume", response_model=ExecutionCommandResponse)
async def resume(controller: WorkflowController = Depends(get_controller)) -> ExecutionCommandResponse:
    """Clear the pause flag."""
    applied = controller.resume_execution()
    return ExecutionCommandResponse(applied=applied, state=_state_response(controller))


@router.post("/stop", response_model=ExecutionCommandResponse)
async def stop(controller: WorkflowController = Depends(get_controller)) -> ExecutionCommandResponse:
    """
    Stop the run in progress.

    The current node finishes its work; nothing after it is started.
    """
    applied = controller.stop_execution()
    if applied:
        logger.info("Stop requested")
    return ExecutionCommandResponse(applied=applied, state=_state_response(controller))


@router.get("/state", response_model=ExecutionStateResponse)
async def get_state(controller: WorkflowController = Depends(get_controller)) -> ExecutionStateResponse:
    """Get the logs and node statuses of the current or last run."""
    return _state_response(controller)


@router.delete("/logs", status_code=status.HTTP_204_NO_CONTENT)
async def clear_logs(controller: WorkflowController = Depends(get_controller)):
    """Clear the run log."""
    controller.clear_logs()
