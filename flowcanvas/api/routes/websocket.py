"""
WebSocket Routes for Real-time Execution Streaming.

Provides live log and node status updates while the workflow runs.
"""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
import asyncio
import logging

from flowcanvas.api.dependencies import get_controller
from flowcanvas.config import settings
from flowcanvas.controller import WorkflowController
from flowcanvas.engine.executor import ALREADY_RUNNING, ExecutionResult


logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws/execution")
async def websocket_execution(
    websocket: WebSocket,
    controller: WorkflowController = Depends(get_controller),
):
    """
    WebSocket endpoint for watching a workflow run.

    Message format (client -> server):
    ```json
    {"action": "start"}
    ```
    or `{"action": "subscribe"}` to watch a run started elsewhere.

    Message format (server -> client):
    ```json
    {"type": "log", "kind": "info", "message": "Executing: HTTP (node_2)", "timestamp": "..."}
    {"type": "status", "node_id": "node_2", "status": "running"}
    {"type": "completed", "status": "completed", "executed_nodes": [...], "error": null}
    ```
    """
    await websocket.accept()

    try:
        data = await websocket.receive_json()
        action = data.get("action")

        if action not in ("start", "subscribe"):
            await websocket.send_json({
                "type": "error",
                "error": "Expected 'start' or 'subscribe' action"
            })
            return

        run_task = None
        if action == "start":
            if controller.is_running:
                await websocket.send_json({"type": "error", "error": ALREADY_RUNNING})
                return
            run_task = asyncio.create_task(controller.start_execution())
            # Let the run reset the state before the first poll
            await asyncio.sleep(0)

        await websocket.send_json({
            "type": "started" if run_task else "subscribed",
            "is_running": controller.is_running,
        })

        result = await _stream_state(websocket, controller, run_task)

        completed: Dict[str, Any] = {
            "type": "completed",
            "node_statuses": {k: v.value for k, v in controller.execution.node_statuses.items()},
        }
        if result is not None:
            completed.update(
                status=result.status.value,
                run_id=result.run_id,
                executed_nodes=result.executed_nodes,
                error=result.error,
                errors=result.errors,
            )
        await websocket.send_json(completed)

    except WebSocketDisconnect:
        logger.info("Execution watcher disconnected")
    except Exception as e:
        logger.exception(f"WebSocket error: {e}")
        try:
            await websocket.send_json({"type": "error", "error": str(e)})
        except Exception as send_error:
            logger.debug(f"Could not report error to client: {send_error}")


async def _stream_state(
    websocket: WebSocket,
    controller: WorkflowController,
    run_task: Optional[asyncio.Task],
) -> Optional[ExecutionResult]:
    """Poll the execution state and forward new logs and status changes."""
    state = controller.execution
    sent_logs = 0
    sent_statuses: Dict[str, str] = {}

    while True:
        finished = run_task.done() if run_task else not controller.is_running

        # A new run resets the log list
        if len(state.logs) < sent_logs:
            sent_logs = 0
        for entry in state.logs[sent_logs:]:
            await websocket.send_json({"type": "log", **entry.model_dump(mode="json")})
        sent_logs = len(state.logs)

        for node_id, status in list(state.node_statuses.items()):
            if sent_statuses.get(node_id) != status.value:
                sent_statuses[node_id] = status.value
                await websocket.send_json({
                    "type": "status",
                    "node_id": node_id,
                    "status": status.value,
                })

        if finished:
            return run_task.result() if run_task else None

        await asyncio.sleep(settings.WS_POLL_INTERVAL)
