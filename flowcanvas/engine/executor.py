"""
Async Workflow Executor.

Runs a workflow graph depth-first from its trigger node. Node work is
simulated by a fixed delay followed by an optional handler hook where real
execution plugs in. Progress is reported only through the log and status
sinks of the execution context.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple, Union
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pydantic import BaseModel, Field
import asyncio
import inspect
import logging
import time
import uuid

from flowcanvas.config import settings
from flowcanvas.engine.models import (
    WorkflowEdge,
    WorkflowNode,
    find_next_nodes,
    find_trigger_nodes,
)
from flowcanvas.engine.validation import ValidationResult, validate_workflow


# Configure logging
logger = logging.getLogger(__name__)


ALREADY_RUNNING = "Execution already running"
STOPPED_BY_USER = "Execution stopped by user"
NO_TRIGGER = (
    "No trigger node found. Please add a trigger node (Manual or Webhook) "
    "to start the workflow."
)


class NodeStatus(str, Enum):
    """Status of a single node during a run."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


class LogKind(str, Enum):
    """Severity of a run log entry."""
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"


class ExecutionStatus(str, Enum):
    """Run-level state."""
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    STOPPED = "stopped"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LogEntry(BaseModel):
    """A single user-facing log line of a run."""
    kind: LogKind
    message: str
    timestamp: datetime = Field(default_factory=_utcnow)


class ExecutionState(BaseModel):
    """
    Observable state of the current (or last) run.

    Reset at the start of every run and left in its terminal shape
    until the next one.
    """
    is_running: bool = False
    is_paused: bool = False
    current_node_id: Optional[str] = None
    logs: List[LogEntry] = Field(default_factory=list)
    node_statuses: Dict[str, NodeStatus] = Field(default_factory=dict)


LogSink = Callable[[LogEntry], None]
StatusSink = Callable[[str, NodeStatus], None]
NodeHandler = Callable[[WorkflowNode], Union[Awaitable[Any], Any]]
Validator = Callable[[List[WorkflowNode], List[WorkflowEdge]], ValidationResult]


@dataclass
class ExecutionContext:
    """Everything a run needs: the graph, the state, and the output sinks."""
    nodes: List[WorkflowNode]
    edges: List[WorkflowEdge]
    state: ExecutionState
    on_log: LogSink
    on_status_change: StatusSink


@dataclass
class ExecutionResult:
    """Result of a workflow execution."""
    run_id: str
    success: bool
    status: ExecutionStatus
    executed_nodes: List[str] = field(default_factory=list)
    error: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_duration_ms: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "success": self.success,
            "status": self.status.value,
            "executed_nodes": list(self.executed_nodes),
            "error": self.error,
            "errors": list(self.errors),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "total_duration_ms": self.total_duration_ms,
        }


# ============================================================
# State transitions
# ============================================================

def initialize_execution(state: ExecutionState) -> None:
    """Reset the state for a new run."""
    state.is_running = True
    state.is_paused = False
    state.current_node_id = None
    state.logs = []
    state.node_statuses = {}


def cleanup_execution(state: ExecutionState) -> None:
    """Clear the run flags. Logs and statuses are kept."""
    state.is_running = False
    state.is_paused = False
    state.current_node_id = None


def pause_execution(state: ExecutionState, on_log: LogSink) -> None:
    """Set the advisory pause flag. Work in flight is not interrupted."""
    state.is_paused = True
    on_log(LogEntry(kind=LogKind.WARNING, message="Execution paused"))


def resume_execution(state: ExecutionState, on_log: LogSink) -> None:
    """Clear the advisory pause flag."""
    state.is_paused = False
    on_log(LogEntry(kind=LogKind.INFO, message="Execution resumed"))


def stop_execution(state: ExecutionState, on_log: LogSink) -> None:
    """Request cancellation; the run unwinds at the next node boundary."""
    state.is_running = False
    state.is_paused = False
    state.current_node_id = None
    on_log(LogEntry(kind=LogKind.WARNING, message=STOPPED_BY_USER))


class Executor:
    """
    Async workflow executor.

    Executes a workflow graph, handling:
    - Validation before any node is touched
    - Depth-first traversal from the trigger, siblings in edge order
    - Cycle and diamond safety (each node runs at most once per run)
    - Cooperative stop, checked before and after every node
    - Unconditional cleanup of the run flags

    Usage:
        executor = Executor(context, delay=0.5)
        result = await executor.run()
    """

    def __init__(
        self,
        context: ExecutionContext,
        delay: Optional[float] = None,
        node_handler: Optional[NodeHandler] = None,
        validator: Optional[Validator] = validate_workflow,
        run_id: Optional[str] = None,
    ):
        """
        Initialize the executor.

        Args:
            context: Graph, state and sinks for this run
            delay: Simulated work per node in seconds (defaults to settings)
            node_handler: Optional hook called with each node after the delay;
                raising marks the node as failed
            validator: Workflow validator, or None to skip validation
            run_id: Optional run ID (generated if not provided)
        """
        self.context = context
        self.delay = settings.EXECUTION_DELAY if delay is None else delay
        self.node_handler = node_handler
        self.validator = validator
        self.run_id = run_id or str(uuid.uuid4())

        self._status = ExecutionStatus.IDLE
        self._stop_requested = False
        self._executed: List[str] = []
        self._statuses: Dict[str, NodeStatus] = {}
        self._index: Dict[str, WorkflowNode] = {}

    @property
    def status(self) -> ExecutionStatus:
        """Get the run-level status."""
        return self._status

    @property
    def state(self) -> ExecutionState:
        return self.context.state

    @property
    def executed_nodes(self) -> List[str]:
        return list(self._executed)

    def pause(self) -> None:
        pause_execution(self.state, self.context.on_log)

    def resume(self) -> None:
        resume_execution(self.state, self.context.on_log)

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def stop(self) -> None:
        """Stop this run. Holds even if the shared state is reset by another run."""
        self._stop_requested = True
        stop_execution(self.state, self.context.on_log)

    async def run(self) -> ExecutionResult:
        """
        Execute the workflow.

        Returns:
            ExecutionResult; never raises for workflow-level failures
        """
        if self.state.is_running:
            logger.warning(f"Run {self.run_id} rejected: another run is in progress")
            return ExecutionResult(
                run_id=self.run_id,
                success=False,
                status=ExecutionStatus.FAILED,
                error=ALREADY_RUNNING,
            )

        start_time = time.time()
        started_at = _utcnow()
        initialize_execution(self.state)
        self._status = ExecutionStatus.RUNNING
        self._executed = []
        self._statuses = {}
        self._index = {n.id: n for n in self.context.nodes}
        logger.info(f"Starting run {self.run_id} ({len(self._index)} nodes)")

        status = ExecutionStatus.FAILED
        error: Optional[str] = None
        errors: List[str] = []

        try:
            if self.validator is not None:
                validation = self.validator(self.context.nodes, self.context.edges)
                if not validation.valid:
                    errors = list(validation.errors)
                    error = f"Workflow validation failed ({len(errors)} error(s))"
                    self.state.logs = []
                    for message in errors:
                        self._log(LogKind.ERROR, message)
                    logger.info(f"Run {self.run_id} rejected by validation: {errors}")
                    return self._result(status, error, errors, started_at, start_time)

            triggers = find_trigger_nodes(self.context.nodes)
            if not triggers:
                error = NO_TRIGGER
                self._log(LogKind.ERROR, error)
                return self._result(status, error, errors, started_at, start_time)

            trigger = triggers[0]
            if len(triggers) > 1:
                self._log(
                    LogKind.WARNING,
                    f"Multiple trigger nodes found ({len(triggers)}); "
                    f"starting from the first: {trigger.label} ({trigger.id})"
                )

            self._log(LogKind.INFO, f"Starting workflow execution from: {trigger.label}")
            for node in self.context.nodes:
                self._set_status(node.id, NodeStatus.PENDING)

            status, error = await self._traverse(trigger.id)
            self._mark_skipped()

            if status == ExecutionStatus.COMPLETED:
                self._log(
                    LogKind.SUCCESS,
                    f"Workflow execution completed successfully ({len(self._executed)} nodes)"
                )
            elif status == ExecutionStatus.STOPPED:
                self._log(
                    LogKind.WARNING,
                    f"Workflow execution stopped by user after {len(self._executed)} node(s)"
                )
            else:
                self._log(LogKind.ERROR, f"Workflow execution failed: {error}")

        except Exception as e:
            logger.exception(f"Run {self.run_id} failed: {e}")
            status = ExecutionStatus.FAILED
            error = str(e)
            self._log(LogKind.ERROR, f"Workflow execution failed: {error}")

        finally:
            cleanup_execution(self.state)

        return self._result(status, error, errors, started_at, start_time)

    async def _traverse(self, start_id: str) -> Tuple[ExecutionStatus, Optional[str]]:
        """
        Depth-first traversal with an explicit stack.

        Children are pushed in reverse edge order so they are popped in edge
        order, giving the same visit order as a recursive pre-order walk.
        """
        visited: Set[str] = set()
        stack = [start_id]

        while stack:
            node_id = stack.pop()

            # Already executed in this run: the branch ends here
            if node_id in visited:
                continue

            if self._should_stop():
                logger.info(f"Run {self.run_id} stopped before node '{node_id}'")
                return ExecutionStatus.STOPPED, STOPPED_BY_USER

            node = self._index.get(node_id)
            if node is None:
                message = f"Node not found: {node_id}"
                self._log(LogKind.ERROR, message)
                return ExecutionStatus.FAILED, message

            if not await self._execute_node(node):
                return ExecutionStatus.FAILED, f"Failed to execute node: {node.label} ({node.id})"

            visited.add(node_id)
            self._executed.append(node_id)

            if self._should_stop():
                logger.info(f"Run {self.run_id} stopped after node '{node_id}'")
                return ExecutionStatus.STOPPED, STOPPED_BY_USER

            stack.extend(reversed(find_next_nodes(node_id, self.context.edges)))

        return ExecutionStatus.COMPLETED, None

    async def _execute_node(self, node: WorkflowNode) -> bool:
        """Execute a single node. Returns False if its work failed."""
        self.state.current_node_id = node.id
        self._set_status(node.id, NodeStatus.RUNNING)
        self._log(LogKind.INFO, f"Executing: {node.label} ({node.id})")

        try:
            # Suspension point; real work replaces or follows the delay
            await asyncio.sleep(self.delay)
            if self.node_handler is not None:
                outcome = self.node_handler(node)
                if inspect.isawaitable(outcome):
                    await outcome
        except Exception as e:
            logger.error(f"Node {node.label} ({node.id}) failed: {e}")
            self._set_status(node.id, NodeStatus.ERROR)
            self._log(LogKind.ERROR, f"Error in {node.label} ({node.id}): {e}")
            return False

        self._set_status(node.id, NodeStatus.SUCCESS)
        self._log(LogKind.SUCCESS, f"Completed: {node.label}")
        return True

    def _should_stop(self) -> bool:
        return self._stop_requested or not self.state.is_running

    def _mark_skipped(self) -> None:
        for node_id, status in list(self._statuses.items()):
            if status == NodeStatus.PENDING:
                self._set_status(node_id, NodeStatus.SKIPPED)

    def _log(self, kind: LogKind, message: str) -> None:
        try:
            self.context.on_log(LogEntry(kind=kind, message=message))
        except Exception as e:
            logger.warning(f"Log sink failed: {e}")

    def _set_status(self, node_id: str, status: NodeStatus) -> None:
        self._statuses[node_id] = status
        try:
            self.context.on_status_change(node_id, status)
        except Exception as e:
            logger.warning(f"Status sink failed: {e}")

    def _result(
        self,
        status: ExecutionStatus,
        error: Optional[str],
        errors: List[str],
        started_at: datetime,
        start_time: float,
    ) -> ExecutionResult:
        self._status = status
        if status == ExecutionStatus.COMPLETED:
            logger.info(f"Run {self.run_id} completed ({len(self._executed)} nodes)")
        else:
            logger.info(f"Run {self.run_id} ended with {status.value}: {error}")
        return ExecutionResult(
            run_id=self.run_id,
            success=status == ExecutionStatus.COMPLETED,
            status=status,
            executed_nodes=list(self._executed),
            error=error,
            errors=errors,
            started_at=started_at,
            completed_at=_utcnow(),
            total_duration_ms=(time.time() - start_time) * 1000,
        )


async def execute_workflow(
    nodes: List[WorkflowNode],
    edges: List[WorkflowEdge],
    on_log: Optional[LogSink] = None,
    on_status_change: Optional[StatusSink] = None,
    state: Optional[ExecutionState] = None,
    delay: Optional[float] = None,
    node_handler: Optional[NodeHandler] = None,
) -> ExecutionResult:
    """
    Convenience function to execute a workflow.

    Without explicit sinks, logs and statuses are written into the state.

    Args:
        nodes: Workflow nodes
        edges: Workflow edges
        on_log: Optional log sink
        on_status_change: Optional status sink
        state: Optional execution state (a fresh one if not provided)
        delay: Simulated work per node in seconds
        node_handler: Optional per-node hook

    Returns:
        ExecutionResult
    """
    state = state or ExecutionState()

    def default_log(entry: LogEntry) -> None:
        state.logs.append(entry)

    def default_status(node_id: str, status: NodeStatus) -> None:
        state.node_statuses[node_id] = status

    context = ExecutionContext(
        nodes=nodes,
        edges=edges,
        state=state,
        on_log=on_log or default_log,
        on_status_change=on_status_change or default_status,
    )
    executor = Executor(context, delay=delay, node_handler=node_handler)
    return await executor.run()
