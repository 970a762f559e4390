"""
Tests for the workflow execution engine.
"""

import pytest

from flowcanvas.engine.executor import (
    ALREADY_RUNNING,
    NO_TRIGGER,
    STOPPED_BY_USER,
    ExecutionContext,
    ExecutionState,
    ExecutionStatus,
    Executor,
    LogKind,
    NodeStatus,
    execute_workflow,
)
from flowcanvas.engine.models import NodeKind

from tests.conftest import chain, make_node


class Recorder:
    """Collects everything the executor emits through its sinks."""

    def __init__(self):
        self.logs = []
        self.statuses = []

    def on_log(self, entry):
        self.logs.append(entry)

    def on_status_change(self, node_id, status):
        self.statuses.append((node_id, status))

    def messages(self):
        return [entry.message for entry in self.logs]

    def statuses_for(self, node_id):
        return [status for nid, status in self.statuses if nid == node_id]


def make_executor(nodes, edges, recorder=None, state=None, **kwargs):
    recorder = recorder or Recorder()
    context = ExecutionContext(
        nodes=nodes,
        edges=edges,
        state=state or ExecutionState(),
        on_log=recorder.on_log,
        on_status_change=recorder.on_status_change,
    )
    kwargs.setdefault("delay", 0)
    return Executor(context, **kwargs), recorder


# ============================================================
# Traversal
# ============================================================

class TestTraversal:
    """Tests for depth-first traversal order and safety."""

    @pytest.mark.asyncio
    async def test_linear_workflow(self, linear_workflow):
        """Manual -> HTTP -> End runs every node in order."""
        nodes, edges = linear_workflow
        executor, recorder = make_executor(nodes, edges)

        result = await executor.run()

        assert result.success
        assert result.status == ExecutionStatus.COMPLETED
        assert result.executed_nodes == ["manual", "http", "end"]
        for node_id in ("manual", "http", "end"):
            assert recorder.statuses_for(node_id) == [
                NodeStatus.PENDING, NodeStatus.RUNNING, NodeStatus.SUCCESS
            ]

        messages = recorder.messages()
        assert messages[0] == "Starting workflow execution from: Manual"
        assert "Executing: HTTP (http)" in messages
        assert "Completed: HTTP" in messages
        assert messages[-1] == "Workflow execution completed successfully (3 nodes)"
        assert recorder.logs[-1].kind == LogKind.SUCCESS

    @pytest.mark.asyncio
    async def test_branches_follow_edge_order(self):
        """Each branch is finished before the next sibling starts."""
        nodes = [
            make_node("t", "Manual"),
            make_node("a", "Transform"),
            make_node("a1", "Transform"),
            make_node("b", "Transform"),
            make_node("end", "End"),
        ]
        edges = chain(("t", "a"), ("t", "b"), ("a", "a1"), ("b", "end"))
        executor, _ = make_executor(nodes, edges)

        result = await executor.run()

        assert result.executed_nodes == ["t", "a", "a1", "b", "end"]

    @pytest.mark.asyncio
    async def test_cycle_terminates(self):
        """A -> B -> A runs each node once."""
        nodes = [
            make_node("a", "Manual"),
            make_node("b", "Transform"),
            make_node("end", "End"),
        ]
        edges = chain(("a", "b"), ("b", "a"), ("b", "end"))
        executor, recorder = make_executor(nodes, edges)

        result = await executor.run()

        assert result.success
        assert result.executed_nodes == ["a", "b", "end"]
        assert recorder.statuses_for("a").count(NodeStatus.RUNNING) == 1

    @pytest.mark.asyncio
    async def test_diamond_runs_join_once(self):
        """T -> A, T -> B, A -> C, B -> C runs C exactly once."""
        nodes = [
            make_node("t", "Manual"),
            make_node("a", "Transform"),
            make_node("b", "Transform"),
            make_node("c", "End"),
        ]
        edges = chain(("t", "a"), ("t", "b"), ("a", "c"), ("b", "c"))
        executor, recorder = make_executor(nodes, edges)

        result = await executor.run()

        assert result.executed_nodes == ["t", "a", "c", "b"]
        assert recorder.statuses_for("c").count(NodeStatus.RUNNING) == 1

    @pytest.mark.asyncio
    async def test_unreachable_nodes_are_skipped(self):
        nodes = [
            make_node("t", "Manual"),
            make_node("end", "End"),
            make_node("island", "Transform"),
        ]
        edges = chain(("t", "end"))
        state = ExecutionState()
        executor, recorder = make_executor(nodes, edges, state=state)

        result = await executor.run()

        assert result.success
        assert "island" not in result.executed_nodes
        assert recorder.statuses_for("island") == [NodeStatus.PENDING, NodeStatus.SKIPPED]

    @pytest.mark.asyncio
    async def test_multiple_triggers_uses_first(self):
        nodes = [
            make_node("t1", "Manual"),
            make_node("t2", "Webhook"),
            make_node("end", "End"),
        ]
        edges = chain(("t1", "end"), ("t2", "end"))
        executor, recorder = make_executor(nodes, edges)

        result = await executor.run()

        assert result.executed_nodes == ["t1", "end"]
        warnings = [e for e in recorder.logs if e.kind == LogKind.WARNING]
        assert len(warnings) == 1
        assert "t1" in warnings[0].message


# ============================================================
# Run preconditions
# ============================================================

class TestPreconditions:
    """Tests for checks that happen before any node runs."""

    @pytest.mark.asyncio
    async def test_no_trigger(self):
        """Without validation, a graph with no trigger fails with one error log."""
        nodes = [make_node("x", "Transform"), make_node("end", "End")]
        executor, recorder = make_executor(nodes, chain(("x", "end")), validator=None)

        result = await executor.run()

        assert not result.success
        assert result.status == ExecutionStatus.FAILED
        assert result.error == NO_TRIGGER
        assert recorder.messages() == [NO_TRIGGER]
        assert recorder.statuses == []

    @pytest.mark.asyncio
    async def test_no_trigger_caught_by_validation(self):
        nodes = [make_node("end", "End")]
        executor, recorder = make_executor(nodes, [])

        result = await executor.run()

        assert not result.success
        assert "Workflow must have at least one trigger node (Manual or Webhook)" in result.errors
        assert recorder.statuses == []

    @pytest.mark.asyncio
    async def test_validation_gate(self):
        """An Email node without a recipient stops the run before any node starts."""
        nodes = [
            make_node("t", "Manual"),
            make_node("mail", "Email", config={"subject": "Hi", "body": "Hello"}),
            make_node("end", "End"),
        ]
        state = ExecutionState()
        executor, recorder = make_executor(
            nodes, chain(("t", "mail"), ("mail", "end")), state=state
        )

        result = await executor.run()

        assert not result.success
        assert result.errors == ["Email (mail): Invalid or missing email address"]
        assert recorder.messages() == result.errors
        assert all(entry.kind == LogKind.ERROR for entry in recorder.logs)
        assert recorder.statuses == []
        assert result.executed_nodes == []
        assert state.is_running is False

    @pytest.mark.asyncio
    async def test_already_running(self, linear_workflow):
        """A second run is rejected and leaves the state untouched."""
        nodes, edges = linear_workflow
        state = ExecutionState(is_running=True, current_node_id="http")
        executor, recorder = make_executor(nodes, edges, state=state)

        result = await executor.run()

        assert not result.success
        assert result.error == ALREADY_RUNNING
        assert state.is_running is True
        assert state.current_node_id == "http"
        assert recorder.logs == []


# ============================================================
# Stop, pause and failures
# ============================================================

class TestControl:
    """Tests for stop, pause and node failure handling."""

    @pytest.mark.asyncio
    async def test_stop_after_current_node(self):
        """Stopping during B finishes B and never starts C."""
        nodes = [
            make_node("a", "Manual"),
            make_node("b", "Transform"),
            make_node("c", "End"),
        ]
        state = ExecutionState()
        recorder = Recorder()
        holder = {}

        def handler(node):
            if node.id == "b":
                holder["executor"].stop()

        executor, _ = make_executor(
            nodes, chain(("a", "b"), ("b", "c")),
            recorder=recorder, state=state, node_handler=handler,
        )
        holder["executor"] = executor

        result = await executor.run()

        assert result.status == ExecutionStatus.STOPPED
        assert result.executed_nodes == ["a", "b"]
        assert NodeStatus.RUNNING not in recorder.statuses_for("c")
        assert recorder.statuses_for("c")[-1] == NodeStatus.SKIPPED
        assert STOPPED_BY_USER in recorder.messages()
        assert recorder.logs[-1].kind == LogKind.WARNING
        assert state.is_running is False
        assert state.current_node_id is None

    @pytest.mark.asyncio
    async def test_stop_survives_state_reset(self):
        """A stopped executor stays stopped even if the shared state is marked running again."""
        nodes = [
            make_node("a", "Manual"),
            make_node("b", "Transform"),
            make_node("c", "End"),
        ]
        state = ExecutionState()
        holder = {}

        def handler(node):
            if node.id == "a":
                holder["executor"].stop()
                state.is_running = True

        executor, recorder = make_executor(
            nodes, chain(("a", "b"), ("b", "c")), state=state, node_handler=handler,
        )
        holder["executor"] = executor

        result = await executor.run()

        assert executor.stop_requested
        assert result.status == ExecutionStatus.STOPPED
        assert result.executed_nodes == ["a"]
        assert NodeStatus.RUNNING not in recorder.statuses_for("b")

    @pytest.mark.asyncio
    async def test_pause_is_advisory(self, linear_workflow):
        nodes, edges = linear_workflow
        state = ExecutionState()
        holder = {}

        def handler(node):
            if node.id == "manual":
                holder["executor"].pause()

        executor, recorder = make_executor(nodes, edges, state=state, node_handler=handler)
        holder["executor"] = executor

        result = await executor.run()

        assert result.success
        assert "Execution paused" in recorder.messages()
        assert state.is_paused is False

    @pytest.mark.asyncio
    async def test_node_failure(self, linear_workflow):
        """A failing node ends the run; later nodes are skipped."""
        nodes, edges = linear_workflow

        async def handler(node):
            if node.label == "HTTP":
                raise RuntimeError("connection refused")

        state = ExecutionState()
        executor, recorder = make_executor(nodes, edges, state=state, node_handler=handler)

        result = await executor.run()

        assert result.status == ExecutionStatus.FAILED
        assert result.executed_nodes == ["manual"]
        assert recorder.statuses_for("http")[-1] == NodeStatus.ERROR
        assert recorder.statuses_for("end")[-1] == NodeStatus.SKIPPED
        assert "Error in HTTP (http): connection refused" in recorder.messages()
        assert state.is_running is False

    @pytest.mark.asyncio
    async def test_sink_failure_does_not_abort(self, linear_workflow):
        nodes, edges = linear_workflow

        def broken_sink(entry):
            raise RuntimeError("sink down")

        context = ExecutionContext(
            nodes=nodes,
            edges=edges,
            state=ExecutionState(),
            on_log=broken_sink,
            on_status_change=lambda node_id, status: None,
        )
        result = await Executor(context, delay=0).run()

        assert result.success


class TestExecuteWorkflow:
    """Tests for the execute_workflow convenience function."""

    @pytest.mark.asyncio
    async def test_default_sinks_write_into_state(self, linear_workflow):
        nodes, edges = linear_workflow
        state = ExecutionState()

        result = await execute_workflow(nodes, edges, state=state, delay=0)

        assert result.success
        assert state.node_statuses == {
            "manual": NodeStatus.SUCCESS,
            "http": NodeStatus.SUCCESS,
            "end": NodeStatus.SUCCESS,
        }
        assert state.logs[-1].kind == LogKind.SUCCESS
        assert state.is_running is False

    @pytest.mark.asyncio
    async def test_custom_kind(self):
        """Nodes outside the catalog run as long as the graph is valid."""
        nodes = [
            make_node("t", "Manual"),
            make_node("slack", "Slack", kind=NodeKind.ACTION, config={"channel": "#ops"}),
            make_node("end", "End"),
        ]
        result = await execute_workflow(nodes, chain(("t", "slack"), ("slack", "end")), delay=0)

        assert result.executed_nodes == ["t", "slack", "end"]
