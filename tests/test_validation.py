"""
Tests for workflow and node config validation.
"""

import pytest

from flowcanvas.engine.models import NodeKind
from flowcanvas.engine.validation import (
    ValidatorRegistry,
    convert_to_seconds,
    format_delay,
    is_valid_email,
    is_valid_phone,
    is_valid_url,
    register_validator,
    validate_node,
    validate_structure,
    validate_workflow,
    validator_registry,
)

from tests.conftest import make_edge, make_node


class TestFieldHelpers:
    """Tests for the field-level helpers."""

    @pytest.mark.parametrize("email,expected", [
        ("ops@example.com", True),
        ("first.last@sub.example.org", True),
        ("no-at-sign.com", False),
        ("two@@example.com", False),
        ("spaces in@example.com", False),
    ])
    def test_is_valid_email(self, email, expected):
        assert is_valid_email(email) is expected

    @pytest.mark.parametrize("phone,expected", [
        ("+1 555 123 4567", True),
        ("(555) 123-4567", True),
        ("12345", False),
        ("555-CALL-NOW", False),
    ])
    def test_is_valid_phone(self, phone, expected):
        assert is_valid_phone(phone) is expected

    def test_is_valid_url(self):
        assert is_valid_url("https://api.example.com/items?id=1")
        assert not is_valid_url("not a url")
        assert not is_valid_url("/relative/path")

    def test_delay_helpers(self):
        assert convert_to_seconds(2, "minutes") == 120
        assert convert_to_seconds(1, "days") == 86400
        assert format_delay(1, "minutes") == "1 minute"
        assert format_delay(5, "seconds") == "5 seconds"


class TestNodeValidators:
    """Tests for the per-label config rules."""

    def test_valid_catalog_configs(self):
        for label in ["HTTP", "Email", "SMS", "Webhook", "Condition", "Transform", "Delay"]:
            assert validate_node(make_node("n", label)) == [], label

    def test_email_errors(self):
        node = make_node("mail", "Email", config={"to": "bad", "subject": " ", "body": ""})

        assert validate_node(node) == [
            "Email (mail): Invalid or missing email address",
            "Email (mail): Subject is required",
            "Email (mail): Email body is required",
        ]

    def test_sms_errors(self):
        node = make_node("sms", "SMS", config={})

        assert validate_node(node) == [
            "SMS (sms): Invalid or missing phone number",
            "SMS (sms): Message is required",
        ]

    def test_http_url(self):
        assert validate_node(make_node("h", "HTTP", config={"url": ""})) == [
            "HTTP (h): URL is required"
        ]
        assert validate_node(make_node("h", "HTTP", config={"url": "nope"})) == [
            "HTTP (h): Invalid URL format"
        ]

    def test_http_method(self):
        node = make_node("h", "HTTP", config={"url": "https://example.com", "method": "FETCH"})
        errors = validate_node(node)

        assert len(errors) == 1
        assert "Method must be one of" in errors[0]

    def test_webhook_url(self):
        assert validate_node(make_node("w", "Webhook", config={})) == [
            "Webhook (w): Webhook URL is required"
        ]

    def test_condition_and_transform(self):
        assert validate_node(make_node("c", "Condition", config={})) == [
            "Condition (c): Expression is required"
        ]
        assert validate_node(make_node("t", "Transform", config={"script": "  "})) == [
            "Transform (t): Script is required"
        ]

    @pytest.mark.parametrize("config,message", [
        ({"duration": 0, "unit": "seconds"}, "Duration must be a positive number"),
        ({"duration": "abc", "unit": "seconds"}, "Duration must be a positive number"),
        ({"duration": 2, "unit": "days"}, "Duration cannot exceed 24 hours (86400 seconds)"),
        ({"duration": 5, "unit": "weeks"}, "Time unit must be one of: seconds, minutes, hours, days"),
        ({"duration": float("nan"), "unit": "seconds"}, "Duration must be a positive number"),
        ({"duration": "inf", "unit": "seconds"}, "Duration must be a positive number"),
    ])
    def test_delay_errors(self, config, message):
        assert validate_node(make_node("d", "Delay", config=config)) == [f"Delay (d): {message}"]

    def test_unknown_label_passes(self):
        node = make_node("s", "Slack", kind=NodeKind.ACTION, config={})
        assert validate_node(node) == []


class TestValidatorRegistry:
    """Tests for the validator registry."""

    def test_builtin_labels_registered(self):
        for label in ["HTTP", "Email", "SMS", "Webhook", "Condition", "Transform", "Delay"]:
            assert label in validator_registry
        assert "Manual" not in validator_registry
        assert "End" not in validator_registry

    def test_register_custom_validator(self):
        registry = ValidatorRegistry()

        @registry.register("Slack")
        def validate_slack(node):
            return [] if node.config.get("channel") else [f"{node.label}: channel is required"]

        node = make_node("s", "Slack", kind=NodeKind.ACTION, config={})

        assert len(registry) == 1
        assert validate_node(node, registry) == ["Slack: channel is required"]
        assert registry.remove("Slack")
        assert validate_node(node, registry) == []

    def test_register_validator_uses_global_registry(self):
        @register_validator("Pager")
        def validate_pager(node):
            return [] if node.config.get("service") else ["Pager: service is required"]

        try:
            node = make_node("p", "Pager", kind=NodeKind.ACTION, config={})
            assert "Pager" in validator_registry
            assert validate_node(node) == ["Pager: service is required"]
        finally:
            validator_registry.remove("Pager")

        assert "Pager" not in validator_registry


class TestWorkflowValidation:
    """Tests for whole-workflow validation."""

    def test_valid_workflow(self, linear_workflow):
        nodes, edges = linear_workflow
        result = validate_workflow(nodes, edges)

        assert result.valid
        assert result.to_dict() == {"valid": True, "errors": []}

    def test_missing_end(self):
        nodes = [make_node("t", "Manual")]
        assert validate_structure(nodes) == ["Workflow must have an End node"]

    def test_two_ends(self):
        nodes = [make_node("t", "Manual"), make_node("e1", "End"), make_node("e2", "End")]
        assert validate_structure(nodes) == ["Workflow must have exactly one End node (found 2)"]

    def test_missing_trigger(self):
        nodes = [make_node("e", "End")]
        assert validate_structure(nodes) == [
            "Workflow must have at least one trigger node (Manual or Webhook)"
        ]

    def test_dangling_edge(self):
        nodes = [make_node("t", "Manual"), make_node("e", "End")]
        edges = [make_edge("t", "ghost", edge_id="e1")]

        assert validate_structure(nodes, edges) == ["Edge e1 references missing node(s): ghost"]

    def test_duplicate_ids(self):
        nodes = [make_node("n1", "Manual"), make_node("n1", "End")]
        edges = [make_edge("n1", "n1", edge_id="e1"), make_edge("n1", "n1", edge_id="e1")]

        assert validate_structure(nodes) == ["Duplicate node id: n1"]
        assert validate_structure(nodes, edges) == [
            "Duplicate node id: n1",
            "Duplicate edge id: e1",
        ]
        assert not validate_workflow(nodes, edges).valid

    def test_structural_errors_come_first(self):
        nodes = [make_node("t", "Manual"), make_node("mail", "Email", config={})]
        result = validate_workflow(nodes, [])

        assert not result.valid
        assert result.errors[0] == "Workflow must have an End node"
        assert result.errors[1].startswith("Email (mail):")
