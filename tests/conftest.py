"""
Shared fixtures for the FlowCanvas test suite.
"""

from typing import Any, Dict, List, Optional

import pytest

from flowcanvas.engine.models import NodeKind, WorkflowEdge, WorkflowNode
from flowcanvas.engine.node_types import get_node_type


VALID_CONFIGS: Dict[str, Dict[str, Any]] = {
    "HTTP": {"url": "https://api.example.com/items", "method": "GET"},
    "Email": {"to": "ops@example.com", "subject": "Deploy", "body": "Done"},
    "SMS": {"to": "+1 555 123 4567", "message": "Deployed"},
    "Webhook": {"url": "https://hooks.example.com/in", "method": "POST"},
    "Condition": {"expression": "status == 200"},
    "Transform": {"script": "return data"},
    "Delay": {"duration": 5, "unit": "seconds"},
}


def make_node(
    node_id: str,
    label: str,
    kind: Optional[NodeKind] = None,
    config: Optional[Dict[str, Any]] = None,
) -> WorkflowNode:
    """Build a node; built-in labels get their kind and a valid config."""
    if kind is None:
        kind = get_node_type(label).kind
    if config is None:
        config = dict(VALID_CONFIGS.get(label, {}))
    return WorkflowNode(id=node_id, kind=kind, label=label, config=config)


def make_edge(source: str, target: str, edge_id: Optional[str] = None) -> WorkflowEdge:
    return WorkflowEdge(id=edge_id or f"{source}->{target}", source=source, target=target)


def chain(*pairs) -> List[WorkflowEdge]:
    return [make_edge(s, t) for s, t in pairs]


@pytest.fixture
def linear_workflow():
    """Manual -> HTTP -> End."""
    nodes = [
        make_node("manual", "Manual"),
        make_node("http", "HTTP"),
        make_node("end", "End"),
    ]
    edges = chain(("manual", "http"), ("http", "end"))
    return nodes, edges
