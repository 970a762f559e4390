"""
Workflow Validation.

Checks the structural requirements of a workflow (trigger present, exactly one
End node, no dangling edges) and the per-type config of every node. Per-type
rules are pydantic schemas looked up by node label in a registry, so new node
types can plug in their own validator.
"""

from typing import Any, Callable, Dict, List, Optional, Type, Union
from dataclasses import dataclass, field
import functools
import logging
import math
import re

from pydantic import AnyUrl, BaseModel, TypeAdapter, ValidationError, field_validator, model_validator

from flowcanvas.engine.models import (
    WorkflowEdge,
    WorkflowNode,
    find_dangling_edges,
    find_duplicate_ids,
)
from flowcanvas.engine.node_types import NodeLabel


logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[\d\s\-()]+$")
PHONE_STRIP_PATTERN = re.compile(r"[\s\-()]")

MAX_DELAY_SECONDS = 86400
DELAY_UNITS = {"seconds": 1, "minutes": 60, "hours": 3600, "days": 86400}
HTTP_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")
WEBHOOK_METHODS = ("POST", "GET", "PUT")

_url_adapter = TypeAdapter(AnyUrl)


# ============================================================
# Field helpers
# ============================================================

def is_valid_email(email: str) -> bool:
    """Check a loose user@domain.tld shape."""
    return bool(EMAIL_PATTERN.match(email))


def is_valid_phone(phone: str) -> bool:
    """Digits with optional +, spaces, dashes and parentheses; at least 10 digits."""
    if not PHONE_PATTERN.match(phone):
        return False
    return len(PHONE_STRIP_PATTERN.sub("", phone)) >= 10


def is_valid_url(url: str) -> bool:
    """Check that url parses as an absolute URL."""
    try:
        _url_adapter.validate_python(url)
    except ValidationError:
        return False
    return True


def convert_to_seconds(duration: float, unit: str) -> float:
    """Convert a delay to seconds. Unknown units count as seconds."""
    return duration * DELAY_UNITS.get(unit, 1)


def format_delay(duration: float, unit: str) -> str:
    """Human readable delay, e.g. '1 minute' or '5 minutes'."""
    if duration == 1:
        return f"{duration} {unit[:-1]}"
    return f"{duration} {unit}"


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


# ============================================================
# Config schemas
# ============================================================

class NodeConfigSchema(BaseModel):
    """Base for per-type config schemas. Unknown keys are allowed."""

    class Config:
        extra = "allow"
        validate_default = True


class EmailConfig(NodeConfigSchema):
    to: Any = None
    subject: Any = None
    body: Any = None

    @field_validator("to")
    @classmethod
    def check_to(cls, value: Any) -> Any:
        if not _text(value) or not is_valid_email(_text(value)):
            raise ValueError("Invalid or missing email address")
        return value

    @field_validator("subject")
    @classmethod
    def check_subject(cls, value: Any) -> Any:
        if not _text(value):
            raise ValueError("Subject is required")
        return value

    @field_validator("body")
    @classmethod
    def check_body(cls, value: Any) -> Any:
        if not _text(value):
            raise ValueError("Email body is required")
        return value


class SmsConfig(NodeConfigSchema):
    to: Any = None
    message: Any = None

    @field_validator("to")
    @classmethod
    def check_to(cls, value: Any) -> Any:
        if not _text(value) or not is_valid_phone(_text(value)):
            raise ValueError("Invalid or missing phone number")
        return value

    @field_validator("message")
    @classmethod
    def check_message(cls, value: Any) -> Any:
        if not _text(value):
            raise ValueError("Message is required")
        return value


class HttpConfig(NodeConfigSchema):
    url: Any = None
    method: Any = None

    @field_validator("url")
    @classmethod
    def check_url(cls, value: Any) -> Any:
        if not _text(value):
            raise ValueError("URL is required")
        if not is_valid_url(_text(value)):
            raise ValueError("Invalid URL format")
        return value

    @field_validator("method")
    @classmethod
    def check_method(cls, value: Any) -> Any:
        if value not in (None, "") and value not in HTTP_METHODS:
            raise ValueError(f"Method must be one of: {', '.join(HTTP_METHODS)}")
        return value


class WebhookConfig(NodeConfigSchema):
    url: Any = None
    method: Any = None

    @field_validator("url")
    @classmethod
    def check_url(cls, value: Any) -> Any:
        if not _text(value):
            raise ValueError("Webhook URL is required")
        if not is_valid_url(_text(value)):
            raise ValueError("Invalid webhook URL format")
        return value

    @field_validator("method")
    @classmethod
    def check_method(cls, value: Any) -> Any:
        if value not in (None, "") and value not in WEBHOOK_METHODS:
            raise ValueError(f"Method must be one of: {', '.join(WEBHOOK_METHODS)}")
        return value


class ConditionConfig(NodeConfigSchema):
    expression: Any = None

    @field_validator("expression")
    @classmethod
    def check_expression(cls, value: Any) -> Any:
        if not _text(value):
            raise ValueError("Expression is required")
        return value


class TransformConfig(NodeConfigSchema):
    script: Any = None

    @field_validator("script")
    @classmethod
    def check_script(cls, value: Any) -> Any:
        if not _text(value):
            raise ValueError("Script is required")
        return value


class DelayConfig(NodeConfigSchema):
    duration: Any = None
    unit: Any = None

    @field_validator("duration")
    @classmethod
    def check_duration(cls, value: Any) -> Any:
        try:
            seconds = float(value)
        except (TypeError, ValueError):
            seconds = 0.0
        if isinstance(value, bool) or not math.isfinite(seconds) or seconds <= 0:
            raise ValueError("Duration must be a positive number")
        return value

    @field_validator("unit")
    @classmethod
    def check_unit(cls, value: Any) -> Any:
        if value not in DELAY_UNITS:
            raise ValueError(f"Time unit must be one of: {', '.join(DELAY_UNITS)}")
        return value

    @model_validator(mode="after")
    def check_total(self) -> "DelayConfig":
        if convert_to_seconds(float(self.duration), self.unit) > MAX_DELAY_SECONDS:
            raise ValueError(
                f"Duration cannot exceed 24 hours ({MAX_DELAY_SECONDS} seconds)"
            )
        return self


CONFIG_SCHEMAS: Dict[NodeLabel, Type[NodeConfigSchema]] = {
    NodeLabel.WEBHOOK: WebhookConfig,
    NodeLabel.HTTP: HttpConfig,
    NodeLabel.EMAIL: EmailConfig,
    NodeLabel.SMS: SmsConfig,
    NodeLabel.CONDITION: ConditionConfig,
    NodeLabel.TRANSFORM: TransformConfig,
    NodeLabel.DELAY: DelayConfig,
}


def node_error(node: WorkflowNode, problem: str) -> str:
    """Format a problem with a node as a user-facing message."""
    return f"{node.label} ({node.id}): {problem}"


def _error_message(error: Dict[str, Any]) -> str:
    ctx = error.get("ctx") or {}
    if "error" in ctx:
        return str(ctx["error"])
    location = ".".join(str(part) for part in error.get("loc", ()))
    return f"{location}: {error['msg']}" if location else error["msg"]


def schema_validator(schema: Type[NodeConfigSchema]) -> Callable[[WorkflowNode], List[str]]:
    """Build a node validator from a config schema."""
    def validate(node: WorkflowNode) -> List[str]:
        try:
            schema.model_validate(node.config)
        except ValidationError as e:
            return [node_error(node, _error_message(err)) for err in e.errors()]
        return []

    validate.__name__ = f"validate_{schema.__name__}"
    return validate


# ============================================================
# Validator registry
# ============================================================

NodeValidator = Callable[[WorkflowNode], List[str]]


def _key(label: Union[str, NodeLabel]) -> str:
    return label.value if isinstance(label, NodeLabel) else label


class ValidatorRegistry:
    """
    Registry of per-label node validators.

    Built-in labels are registered at import time; other node types can add
    their own. Labels without a validator always pass.

    Usage:
        registry = ValidatorRegistry()

        @registry.register("Slack")
        def validate_slack(node: WorkflowNode) -> List[str]:
            return [] if node.config.get("channel") else ["channel is required"]
    """

    def __init__(self):
        self._validators: Dict[str, NodeValidator] = {}

    def register(self, label: Union[str, NodeLabel]) -> Callable:
        """Decorator to register a validator for a label."""
        def decorator(func: NodeValidator) -> NodeValidator:
            self.add(label, func)

            @functools.wraps(func)
            def wrapper(*args, **kwargs):
                return func(*args, **kwargs)

            return wrapper

        return decorator

    def add(self, label: Union[str, NodeLabel], validator: NodeValidator) -> None:
        """Directly add a validator (non-decorator version)."""
        self._validators[_key(label)] = validator
        logger.debug(f"Registered validator for label: {_key(label)}")

    def get(self, label: Union[str, NodeLabel]) -> Optional[NodeValidator]:
        return self._validators.get(_key(label))

    def remove(self, label: Union[str, NodeLabel]) -> bool:
        if _key(label) in self._validators:
            del self._validators[_key(label)]
            return True
        return False

    def labels(self) -> List[str]:
        return list(self._validators.keys())

    def validate_node(self, node: WorkflowNode) -> List[str]:
        """Run the validator registered for the node's label, if any."""
        validator = self.get(node.label)
        return validator(node) if validator else []

    def __contains__(self, label: Union[str, NodeLabel]) -> bool:
        return _key(label) in self._validators

    def __len__(self) -> int:
        return len(self._validators)


# Global validator registry instance
validator_registry = ValidatorRegistry()

for _label, _schema in CONFIG_SCHEMAS.items():
    validator_registry.add(_label, schema_validator(_schema))


def register_validator(label: Union[str, NodeLabel]) -> Callable:
    """Convenience decorator to register a validator in the global registry."""
    return validator_registry.register(label)


# ============================================================
# Workflow validation
# ============================================================

@dataclass
class ValidationResult:
    """Outcome of validating a workflow."""
    valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors)}


def validate_node(node: WorkflowNode, registry: Optional[ValidatorRegistry] = None) -> List[str]:
    """Validate a single node's config against its label's rules."""
    return (registry or validator_registry).validate_node(node)


def validate_structure(
    nodes: List[WorkflowNode],
    edges: Optional[List[WorkflowEdge]] = None
) -> List[str]:
    """
    Check the structural requirements of a workflow.

    - at least one trigger node
    - exactly one End node
    - node ids (and edge ids, when edges are given) are unique
    - every edge connects two existing nodes (when edges are given)
    """
    errors = []

    end_count = sum(1 for n in nodes if n.label == NodeLabel.END.value)
    if end_count == 0:
        errors.append("Workflow must have an End node")
    elif end_count > 1:
        errors.append(f"Workflow must have exactly one End node (found {end_count})")

    if not any(n.is_trigger for n in nodes):
        errors.append("Workflow must have at least one trigger node (Manual or Webhook)")

    for node_id in find_duplicate_ids(nodes):
        errors.append(f"Duplicate node id: {node_id}")

    if edges is not None:
        for edge_id in find_duplicate_ids(edges):
            errors.append(f"Duplicate edge id: {edge_id}")
        node_ids = {n.id for n in nodes}
        for edge in find_dangling_edges(nodes, edges):
            missing = [end for end in (edge.source, edge.target) if end not in node_ids]
            errors.append(
                f"Edge {edge.id} references missing node(s): {', '.join(missing)}"
            )

    return errors


def validate_node_configurations(
    nodes: List[WorkflowNode],
    registry: Optional[ValidatorRegistry] = None
) -> List[str]:
    """Validate every node's config, in node order."""
    errors = []
    for node in nodes:
        errors.extend(validate_node(node, registry))
    return errors


def validate_workflow(
    nodes: List[WorkflowNode],
    edges: Optional[List[WorkflowEdge]] = None,
    registry: Optional[ValidatorRegistry] = None
) -> ValidationResult:
    """
    Validate a workflow's structure and node configurations.

    Args:
        nodes: Workflow nodes
        edges: Workflow edges (optional; enables dangling-edge checks)
        registry: Validator registry (defaults to the global one)

    Returns:
        ValidationResult with structural errors first, then config errors
    """
    errors = validate_structure(nodes, edges) + validate_node_configurations(nodes, registry)
    return ValidationResult(valid=not errors, errors=errors)
