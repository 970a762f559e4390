"""
Workflow Controller.

Owns the live graph. Every mutating edit records exactly one history
snapshot and schedules a debounced autosave; run commands are forwarded to
the execution engine with sinks that write into the shared ExecutionState.
"""

from typing import Any, Dict, List, Optional
import logging
import uuid

from flowcanvas.config import settings
from flowcanvas.engine.executor import (
    ALREADY_RUNNING,
    ExecutionContext,
    ExecutionResult,
    ExecutionState,
    Executor,
    ExecutionStatus,
    LogEntry,
    NodeHandler,
    NodeStatus,
    pause_execution,
    resume_execution,
    stop_execution,
)
from flowcanvas.engine.history import HistoryInfo, HistoryManager, create_snapshot
from flowcanvas.engine.models import NodeKind, Position, WorkflowEdge, WorkflowNode, WorkflowSnapshot
from flowcanvas.engine.node_types import get_node_type
from flowcanvas.engine.validation import ValidationResult, validate_workflow
from flowcanvas.exceptions import EdgeNotFoundError, InvalidEdgeError, NodeNotFoundError
from flowcanvas.scheduling import ScheduledTask
from flowcanvas.storage.persistence import (
    WorkflowData,
    WorkflowStorage,
    export_workflow_to_json,
    import_workflow_from_json,
)


logger = logging.getLogger(__name__)

DUPLICATE_OFFSET = 50.0


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class WorkflowController:
    """
    Coordinates the live graph, its history, persistence, and runs.

    Attributes:
        nodes: Live nodes (only this controller mutates them)
        edges: Live edges
        history: Undo/redo stack
        execution: State of the current or last run
        storage: Optional persistence collaborator
    """

    def __init__(
        self,
        storage: Optional[WorkflowStorage] = None,
        history_limit: Optional[int] = None,
        execution_delay: Optional[float] = None,
        autosave_delay: Optional[float] = None,
        node_handler: Optional[NodeHandler] = None,
    ):
        self.nodes: List[WorkflowNode] = []
        self.edges: List[WorkflowEdge] = []
        self.selected_node_id: Optional[str] = None

        self.history = HistoryManager(limit=history_limit)
        self.execution = ExecutionState()
        self.storage = storage

        self.execution_delay = execution_delay
        self.autosave_delay = settings.AUTOSAVE_DELAY if autosave_delay is None else autosave_delay
        self.node_handler = node_handler

        self._autosave = ScheduledTask("autosave")
        self._active_run: Optional[Executor] = None

        # Baseline so the first edit can be undone
        self._save_to_history()

    # ============================================================
    # Lookups
    # ============================================================

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo()

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo()

    @property
    def is_running(self) -> bool:
        """True until the current run has fully unwound, even after a stop."""
        return self._active_run is not None or self.execution.is_running

    @property
    def autosave_pending(self) -> bool:
        return self._autosave.pending

    def get_node(self, node_id: str) -> WorkflowNode:
        for node in self.nodes:
            if node.id == node_id:
                return node
        raise NodeNotFoundError(node_id)

    def get_edge(self, edge_id: str) -> WorkflowEdge:
        for edge in self.edges:
            if edge.id == edge_id:
                return edge
        raise EdgeNotFoundError(edge_id)

    def snapshot(self) -> WorkflowSnapshot:
        """A deep copy of the live graph."""
        return create_snapshot(self.nodes, self.edges)

    # ============================================================
    # Node edits
    # ============================================================

    def add_node(
        self,
        label: str,
        kind: Optional[NodeKind] = None,
        config: Optional[Dict[str, Any]] = None,
        position: Optional[Position] = None,
        icon: Optional[str] = None,
        node_id: Optional[str] = None,
    ) -> WorkflowNode:
        """
        Add a node to the workflow.

        Kind, icon and default config come from the built-in catalog when the
        label is a known node type.

        Raises:
            ValueError: If kind is missing for an unknown label, or node_id
                is already taken
        """
        definition = get_node_type(label)
        if kind is None:
            if definition is None:
                raise ValueError(f"Unknown node type '{label}'; kind is required")
            kind = definition.kind

        if node_id is not None and any(n.id == node_id for n in self.nodes):
            raise ValueError(f"Node '{node_id}' already exists in the workflow")

        node = WorkflowNode(
            id=node_id or _new_id("node"),
            kind=kind,
            label=label,
            config=dict(config) if config is not None else (
                definition.default_config() if definition else {}
            ),
            position=position or Position(x=100, y=100),
            icon=icon if icon is not None else (definition.icon if definition else ""),
        )
        self.nodes.append(node)
        logger.debug(f"Added node {node.id} ({label})")
        self._commit()
        return node

    def remove_node(self, node_id: str) -> None:
        """Remove a node and every edge touching it."""
        self.get_node(node_id)
        self.nodes = [n for n in self.nodes if n.id != node_id]
        self.edges = [e for e in self.edges if e.source != node_id and e.target != node_id]
        if self.selected_node_id == node_id:
            self.selected_node_id = None
        self._commit()

    def update_node(
        self,
        node_id: str,
        label: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
        kind: Optional[NodeKind] = None,
        icon: Optional[str] = None,
        merge_config: bool = True,
    ) -> WorkflowNode:
        """Update a node's data. Config is merged unless merge_config is False."""
        node = self.get_node(node_id)
        if label is not None:
            node.label = label
        if kind is not None:
            node.kind = kind
        if icon is not None:
            node.icon = icon
        if config is not None:
            node.config = {**node.config, **config} if merge_config else dict(config)
        self._commit()
        return node

    def update_node_position(self, node_id: str, position: Position) -> WorkflowNode:
        """Move a node. Display only, so no history entry is recorded."""
        node = self.get_node(node_id)
        node.position = position
        self._schedule_autosave()
        return node

    def duplicate_node(self, node_id: str) -> WorkflowNode:
        """Copy a node (without its edges) next to the original."""
        node = self.get_node(node_id)
        return self.add_node(
            label=node.label,
            kind=node.kind,
            config=node.model_copy(deep=True).config,
            position=Position(x=node.position.x + DUPLICATE_OFFSET, y=node.position.y + DUPLICATE_OFFSET),
            icon=node.icon,
        )

    def select_node(self, node_id: Optional[str]) -> None:
        if node_id is not None:
            self.get_node(node_id)
        self.selected_node_id = node_id

    # ============================================================
    # Edge edits
    # ============================================================

    def add_edge(
        self,
        source: str,
        target: str,
        label: Optional[str] = None,
        edge_type: str = "smoothstep",
        animated: bool = True,
        edge_id: Optional[str] = None,
    ) -> WorkflowEdge:
        """
        Connect two existing nodes.

        Raises:
            InvalidEdgeError: If either endpoint is not in the workflow
        """
        node_ids = {n.id for n in self.nodes}
        for end in (source, target):
            if end not in node_ids:
                raise InvalidEdgeError(f"Edge endpoint '{end}' is not a node in the workflow")

        edge = WorkflowEdge(
            id=edge_id or _new_id("edge"),
            source=source,
            target=target,
            label=label,
            type=edge_type,
            animated=animated,
        )
        self.edges.append(edge)
        self._commit()
        return edge

    def update_edge(
        self,
        edge_id: str,
        label: Optional[str] = None,
        edge_type: Optional[str] = None,
        animated: Optional[bool] = None,
    ) -> WorkflowEdge:
        """Update an edge's display fields."""
        edge = self.get_edge(edge_id)
        if label is not None:
            edge.label = label
        if edge_type is not None:
            edge.type = edge_type
        if animated is not None:
            edge.animated = animated
        self._commit()
        return edge

    def remove_edge(self, edge_id: str) -> None:
        self.get_edge(edge_id)
        self.edges = [e for e in self.edges if e.id != edge_id]
        self._commit()

    # ============================================================
    # History
    # ============================================================

    def undo(self) -> bool:
        """Restore the previous snapshot. False when there is nothing to undo."""
        snapshot = self.history.undo()
        if snapshot is None:
            return False
        self._restore(snapshot)
        return True

    def redo(self) -> bool:
        """Restore the next snapshot. False when there is nothing to redo."""
        snapshot = self.history.redo()
        if snapshot is None:
            return False
        self._restore(snapshot)
        return True

    def history_info(self) -> HistoryInfo:
        return self.history.info()

    # ============================================================
    # Persistence
    # ============================================================

    def save_workflow(self) -> Optional[WorkflowData]:
        """Save now, superseding any pending autosave."""
        self._autosave.cancel()
        if self.storage is None:
            return None
        return self.storage.save(self.nodes, self.edges)

    def load_workflow(self) -> bool:
        """Replace the graph with the saved one. False if nothing is saved."""
        if self.storage is None:
            return False
        data = self.storage.load()
        if data is None:
            return False
        self._replace(data.nodes, data.edges)
        self._save_to_history()
        logger.info(f"Workflow loaded ({len(self.nodes)} nodes)")
        return True

    def clear_workflow(self) -> None:
        """Empty the graph and start a fresh history."""
        logger.info("Clearing workflow")
        self.nodes = []
        self.edges = []
        self.selected_node_id = None
        self.history.clear()
        self._commit()

    def export_workflow(self) -> str:
        return export_workflow_to_json(self.nodes, self.edges)

    def import_workflow(self, json_string: str) -> WorkflowData:
        """
        Replace the graph with an exported workflow.

        Raises:
            WorkflowImportError: If the text is not a valid workflow
        """
        data = import_workflow_from_json(json_string)
        self._replace(data.nodes, data.edges)
        self._commit()
        return data

    # ============================================================
    # Execution
    # ============================================================

    def validate_workflow(self) -> ValidationResult:
        return validate_workflow(self.nodes, self.edges)

    async def start_execution(self) -> ExecutionResult:
        """Run the current graph. The engine sees a copy, so edits mid-run do not affect it."""
        if self._active_run is not None:
            logger.warning("Run rejected: the previous run has not finished")
            return ExecutionResult(
                run_id=str(uuid.uuid4()),
                success=False,
                status=ExecutionStatus.FAILED,
                error=ALREADY_RUNNING,
            )

        snapshot = self.snapshot()
        context = ExecutionContext(
            nodes=snapshot.nodes,
            edges=snapshot.edges,
            state=self.execution,
            on_log=self._add_log,
            on_status_change=self._set_node_status,
        )
        executor = Executor(context, delay=self.execution_delay, node_handler=self.node_handler)
        self._active_run = executor
        try:
            return await executor.run()
        finally:
            self._active_run = None

    def pause_execution(self) -> bool:
        if not self.execution.is_running:
            return False
        pause_execution(self.execution, self._add_log)
        return True

    def resume_execution(self) -> bool:
        if not self.execution.is_running:
            return False
        resume_execution(self.execution, self._add_log)
        return True

    def stop_execution(self) -> bool:
        if self._active_run is not None:
            if self._active_run.stop_requested:
                return False
            self._active_run.stop()
            return True
        if not self.execution.is_running:
            return False
        stop_execution(self.execution, self._add_log)
        return True

    def clear_logs(self) -> None:
        self.execution.logs = []

    def _add_log(self, entry: LogEntry) -> None:
        self.execution.logs.append(entry)

    def _set_node_status(self, node_id: str, status: NodeStatus) -> None:
        self.execution.node_statuses[node_id] = status
        if status == NodeStatus.RUNNING:
            self.execution.current_node_id = node_id

    # ============================================================
    # Internals
    # ============================================================

    def _save_to_history(self) -> None:
        self.history.record(self.snapshot())

    def _commit(self) -> None:
        self._save_to_history()
        self._schedule_autosave()

    def _schedule_autosave(self) -> None:
        if self.storage is None:
            return
        self._autosave.schedule(self.autosave_delay, self._autosave_now)

    def _autosave_now(self) -> None:
        self.storage.save(self.nodes, self.edges)
        logger.debug("Autosaved workflow")

    def _replace(self, nodes: List[WorkflowNode], edges: List[WorkflowEdge]) -> None:
        self.nodes = [n.model_copy(deep=True) for n in nodes]
        self.edges = [e.model_copy(deep=True) for e in edges]
        if self.selected_node_id and not any(n.id == self.selected_node_id for n in self.nodes):
            self.selected_node_id = None

    def _restore(self, snapshot: WorkflowSnapshot) -> None:
        self._replace(snapshot.nodes, snapshot.edges)
        self._schedule_autosave()
