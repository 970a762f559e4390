"""
Built-in node type catalog.

Each definition carries the label used as the validator key, the node kind,
and the default config a freshly added node starts with.
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from enum import Enum
from copy import deepcopy

from flowcanvas.engine.models import NodeKind


class NodeLabel(str, Enum):
    """Labels of the built-in node types."""
    MANUAL = "Manual"
    WEBHOOK = "Webhook"
    HTTP = "HTTP"
    EMAIL = "Email"
    SMS = "SMS"
    END = "End"
    CONDITION = "Condition"
    TRANSFORM = "Transform"
    DELAY = "Delay"


@dataclass
class NodeTypeDefinition:
    """A node type offered to the user."""
    type: str
    label: NodeLabel
    kind: NodeKind
    icon: str
    color: str
    description: str = ""
    config: Dict[str, Any] = field(default_factory=dict)

    def default_config(self) -> Dict[str, Any]:
        """A fresh copy of the default config."""
        return deepcopy(self.config)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "label": self.label.value,
            "kind": self.kind.value,
            "icon": self.icon,
            "color": self.color,
            "description": self.description,
            "config": self.default_config(),
        }


NODE_TYPES: List[NodeTypeDefinition] = [
    NodeTypeDefinition(
        type="manual",
        label=NodeLabel.MANUAL,
        kind=NodeKind.TRIGGER,
        icon="⚡",
        color="#ff6b35",
        description="Manually trigger the workflow",
    ),
    NodeTypeDefinition(
        type="webhook",
        label=NodeLabel.WEBHOOK,
        kind=NodeKind.TRIGGER,
        icon="🔗",
        color="#ff6b35",
        description="Trigger workflow via HTTP webhook",
        config={"url": "", "method": "POST"},
    ),
    NodeTypeDefinition(
        type="http",
        label=NodeLabel.HTTP,
        kind=NodeKind.ACTION,
        icon="🌐",
        color="#00d4ff",
        description="HTTP Request",
        config={"url": "", "method": "GET", "headers": "{}", "body": ""},
    ),
    NodeTypeDefinition(
        type="email",
        label=NodeLabel.EMAIL,
        kind=NodeKind.ACTION,
        icon="✉️",
        color="#00d4ff",
        description="Send an email",
        config={"to": "", "subject": "", "body": ""},
    ),
    NodeTypeDefinition(
        type="sms",
        label=NodeLabel.SMS,
        kind=NodeKind.ACTION,
        icon="💬",
        color="#00d4ff",
        description="Send an SMS",
        config={"to": "", "message": ""},
    ),
    NodeTypeDefinition(
        type="end",
        label=NodeLabel.END,
        kind=NodeKind.ACTION,
        icon="🏁",
        color="#06ffa5",
        description="Terminate the workflow",
    ),
    NodeTypeDefinition(
        type="condition",
        label=NodeLabel.CONDITION,
        kind=NodeKind.LOGIC,
        icon="🔀",
        color="#ffd60a",
        description="Conditional branching logic",
        config={"expression": "", "trueLabel": "True", "falseLabel": "False"},
    ),
    NodeTypeDefinition(
        type="transform",
        label=NodeLabel.TRANSFORM,
        kind=NodeKind.LOGIC,
        icon="⚙️",
        color="#ffd60a",
        description="Transform data with a script",
        config={"script": ""},
    ),
    NodeTypeDefinition(
        type="delay",
        label=NodeLabel.DELAY,
        kind=NodeKind.LOGIC,
        icon="⏰",
        color="#ffd60a",
        description="Wait for a specified amount of time",
        config={"duration": 1, "unit": "seconds"},
    ),
]


def get_node_type(label: str) -> Optional[NodeTypeDefinition]:
    """Look up a built-in node type by label."""
    for definition in NODE_TYPES:
        if definition.label.value == label:
            return definition
    return None


def list_node_types() -> List[Dict[str, Any]]:
    """All built-in node types as dictionaries."""
    return [definition.to_dict() for definition in NODE_TYPES]
