"""
History Engine for FlowCanvas.

A bounded, linear undo/redo stack of whole-graph snapshots. Snapshots are
copied on the way in and on the way out, so neither the live graph nor a
caller holding a returned snapshot can alter what history stores.
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
import logging

from flowcanvas.config import settings
from flowcanvas.engine.models import WorkflowEdge, WorkflowNode, WorkflowSnapshot


logger = logging.getLogger(__name__)


def create_snapshot(nodes: List[WorkflowNode], edges: List[WorkflowEdge]) -> WorkflowSnapshot:
    """Deep-copy the given nodes and edges into a new snapshot."""
    return WorkflowSnapshot(
        nodes=[n.model_copy(deep=True) for n in nodes],
        edges=[e.model_copy(deep=True) for e in edges],
    )


def snapshot_size_kb(snapshot: WorkflowSnapshot) -> float:
    """Approximate serialized size of a snapshot in KB."""
    return len(snapshot.model_dump_json()) / 1024


@dataclass
class HistoryState:
    """
    The snapshot stack.

    Invariant: -1 <= current_index <= len(snapshots) - 1, and
    current_index == -1 exactly when snapshots is empty.
    """
    snapshots: List[WorkflowSnapshot] = field(default_factory=list)
    current_index: int = -1


@dataclass
class HistoryInfo:
    """Summary of the history stack for display."""
    current_index: int
    total_snapshots: int
    can_undo: bool
    can_redo: bool
    memory_usage: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_index": self.current_index,
            "total_snapshots": self.total_snapshots,
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
            "memory_usage": self.memory_usage,
        }


class HistoryManager:
    """
    Manages undo/redo history for one workflow.

    Recording after an undo discards the redo branch. Once the stack holds
    more than `limit` snapshots the oldest is evicted.

    Usage:
        history = HistoryManager(limit=50)
        history.record(create_snapshot(nodes, edges))
        previous = history.undo()  # None at the oldest entry
    """

    def __init__(self, limit: Optional[int] = None):
        self.limit = limit if limit is not None else settings.HISTORY_LIMIT
        if self.limit < 1:
            raise ValueError("History limit must be at least 1")
        self.state = HistoryState()

    @property
    def snapshots(self) -> List[WorkflowSnapshot]:
        return self.state.snapshots

    @property
    def current_index(self) -> int:
        return self.state.current_index

    @property
    def current(self) -> Optional[WorkflowSnapshot]:
        """A copy of the snapshot at the current index."""
        if self.state.current_index < 0:
            return None
        return self.state.snapshots[self.state.current_index].copy_graph()

    def record(self, snapshot: WorkflowSnapshot) -> HistoryState:
        """
        Append a snapshot and make it current.

        Args:
            snapshot: The snapshot to record (copied in)

        Returns:
            The updated history state
        """
        state = self.state

        if state.current_index < len(state.snapshots) - 1:
            discarded = len(state.snapshots) - state.current_index - 1
            state.snapshots = state.snapshots[: state.current_index + 1]
            logger.debug(f"Discarded {discarded} redo snapshot(s)")

        state.snapshots.append(snapshot.copy_graph())
        state.current_index += 1

        if len(state.snapshots) > self.limit:
            state.snapshots.pop(0)
            state.current_index -= 1

        return state

    def undo(self) -> Optional[WorkflowSnapshot]:
        """Step back one snapshot. Returns None when already at the oldest."""
        if not self.can_undo():
            return None
        self.state.current_index -= 1
        return self.state.snapshots[self.state.current_index].copy_graph()

    def redo(self) -> Optional[WorkflowSnapshot]:
        """Step forward one snapshot. Returns None when already at the newest."""
        if not self.can_redo():
            return None
        self.state.current_index += 1
        return self.state.snapshots[self.state.current_index].copy_graph()

    def can_undo(self) -> bool:
        return self.state.current_index > 0

    def can_redo(self) -> bool:
        return self.state.current_index < len(self.state.snapshots) - 1

    def clear(self) -> HistoryState:
        """Reset to the empty initial state."""
        self.state = HistoryState()
        return self.state

    def optimize(self, keep_count: Optional[int] = None) -> HistoryState:
        """Keep only the newest keep_count snapshots."""
        keep = keep_count if keep_count is not None else self.limit
        state = self.state
        if keep < 1 or len(state.snapshots) <= keep:
            return state

        dropped = len(state.snapshots) - keep
        state.snapshots = state.snapshots[-keep:]
        state.current_index = max(0, min(state.current_index - dropped, len(state.snapshots) - 1))
        return state

    def info(self) -> HistoryInfo:
        """Get detailed history information."""
        total_size = sum(snapshot_size_kb(s) for s in self.state.snapshots)
        return HistoryInfo(
            current_index=self.state.current_index,
            total_snapshots=len(self.state.snapshots),
            can_undo=self.can_undo(),
            can_redo=self.can_redo(),
            memory_usage=f"{total_size:.2f} KB",
        )

    def __len__(self) -> int:
        return len(self.state.snapshots)


# ============================================================
# Snapshot comparison
# ============================================================

@dataclass
class SnapshotDiff:
    """What changed between two snapshots, by id."""
    nodes_added: int = 0
    nodes_removed: int = 0
    nodes_modified: int = 0
    edges_added: int = 0
    edges_removed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "nodes_added": self.nodes_added,
            "nodes_removed": self.nodes_removed,
            "nodes_modified": self.nodes_modified,
            "edges_added": self.edges_added,
            "edges_removed": self.edges_removed,
        }


def compare_snapshots(old: WorkflowSnapshot, new: WorkflowSnapshot) -> SnapshotDiff:
    """Count nodes and edges added, removed or modified between two snapshots."""
    old_nodes = {n.id: n for n in old.nodes}
    new_nodes = {n.id: n for n in new.nodes}
    old_edges = {e.id for e in old.edges}
    new_edges = {e.id for e in new.edges}

    return SnapshotDiff(
        nodes_added=len(new_nodes.keys() - old_nodes.keys()),
        nodes_removed=len(old_nodes.keys() - new_nodes.keys()),
        nodes_modified=sum(
            1 for node_id in old_nodes.keys() & new_nodes.keys()
            if old_nodes[node_id] != new_nodes[node_id]
        ),
        edges_added=len(new_edges - old_edges),
        edges_removed=len(old_edges - new_edges),
    )


def describe_changes(old: WorkflowSnapshot, new: WorkflowSnapshot) -> str:
    """Human readable summary, e.g. '+1 node(s), -1 edge(s)'."""
    diff = compare_snapshots(old, new)
    parts = []
    if diff.nodes_added:
        parts.append(f"+{diff.nodes_added} node(s)")
    if diff.nodes_removed:
        parts.append(f"-{diff.nodes_removed} node(s)")
    if diff.nodes_modified:
        parts.append(f"~{diff.nodes_modified} node(s)")
    if diff.edges_added:
        parts.append(f"+{diff.edges_added} edge(s)")
    if diff.edges_removed:
        parts.append(f"-{diff.edges_removed} edge(s)")
    return ", ".join(parts) if parts else "No changes"
