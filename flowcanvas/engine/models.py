"""
Graph Model for FlowCanvas.

Nodes and edges are passive data. The execution engine reads them, the
history engine copies them, and only the controller mutates them.
"""

from typing import Any, Dict, List, Optional, Set, Union
from pydantic import BaseModel, Field
from datetime import datetime, timezone
from enum import Enum


class NodeKind(str, Enum):
    """Categories of workflow steps."""
    TRIGGER = "trigger"
    ACTION = "action"
    LOGIC = "logic"


class Position(BaseModel):
    """2D canvas coordinate. Display only."""
    x: float = 0.0
    y: float = 0.0


class WorkflowNode(BaseModel):
    """
    A step in the workflow.

    Attributes:
        id: Unique identifier, stable for the node's lifetime
        kind: trigger, action or logic
        label: Step type name ("Email", "Condition", "End", ...), also the
            validator lookup key
        config: Open mapping whose meaning depends on the label
        position: Canvas coordinate
        icon: Display glyph
    """

    id: str
    kind: NodeKind
    label: str
    config: Dict[str, Any] = Field(default_factory=dict)
    position: Position = Field(default_factory=Position)
    icon: str = ""

    @property
    def is_trigger(self) -> bool:
        return self.kind == NodeKind.TRIGGER


class WorkflowEdge(BaseModel):
    """A directed connection between two nodes. Only source/target matter to traversal."""

    id: str
    source: str
    target: str
    label: Optional[str] = None
    type: str = "smoothstep"
    animated: bool = True


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowSnapshot(BaseModel):
    """An immutable deep copy of the whole graph at one instant."""

    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[WorkflowEdge] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utcnow)

    def copy_graph(self) -> "WorkflowSnapshot":
        """Return a structural clone sharing nothing with this snapshot."""
        return self.model_copy(deep=True)


# ============================================================
# Graph helpers
# ============================================================

def find_trigger_nodes(nodes: List[WorkflowNode]) -> List[WorkflowNode]:
    """All trigger nodes, in node order."""
    return [n for n in nodes if n.is_trigger]


def find_next_nodes(node_id: str, edges: List[WorkflowEdge]) -> List[str]:
    """Targets of every edge leaving node_id, in edge order."""
    return [e.target for e in edges if e.source == node_id]


def find_duplicate_ids(items: List[Union[WorkflowNode, WorkflowEdge]]) -> List[str]:
    """Ids that occur more than once, in order of first repeat."""
    seen: Set[str] = set()
    duplicates: List[str] = []
    for item in items:
        if item.id in seen and item.id not in duplicates:
            duplicates.append(item.id)
        seen.add(item.id)
    return duplicates


def find_dangling_edges(
    nodes: List[WorkflowNode],
    edges: List[WorkflowEdge]
) -> List[WorkflowEdge]:
    """Edges whose source or target is not a node of this graph."""
    node_ids = {n.id for n in nodes}
    return [e for e in edges if e.source not in node_ids or e.target not in node_ids]
