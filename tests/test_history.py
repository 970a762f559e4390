"""
Tests for the undo/redo history engine.
"""

import pytest

from flowcanvas.engine.history import (
    HistoryManager,
    compare_snapshots,
    create_snapshot,
    describe_changes,
)

from tests.conftest import make_edge, make_node


def snapshot_with(*node_ids):
    return create_snapshot([make_node(n, "Transform") for n in node_ids], [])


def ids(snapshot):
    return [n.id for n in snapshot.nodes]


class TestSnapshots:
    """Tests for snapshot isolation."""

    def test_create_snapshot_is_deep_copy(self):
        node = make_node("a", "Email")
        snapshot = create_snapshot([node], [])

        node.config["to"] = "changed@example.com"
        node.position.x = 999

        assert snapshot.nodes[0].config["to"] == "ops@example.com"
        assert snapshot.nodes[0].position.x == 0

    def test_recorded_snapshot_is_isolated(self):
        history = HistoryManager(limit=10)
        snapshot = snapshot_with("a")
        history.record(snapshot)

        snapshot.nodes[0].label = "Mutated"
        history.current.nodes[0].label = "Mutated again"

        assert history.current.nodes[0].label == "Transform"

    def test_undo_returns_copy(self):
        history = HistoryManager(limit=10)
        history.record(snapshot_with("a"))
        history.record(snapshot_with("a", "b"))

        restored = history.undo()
        restored.nodes.clear()

        assert ids(history.current) == ["a"]


class TestUndoRedo:
    """Tests for navigating the history stack."""

    def test_empty_history(self):
        history = HistoryManager(limit=10)

        assert history.current_index == -1
        assert history.current is None
        assert history.undo() is None
        assert history.redo() is None
        assert not history.can_undo()
        assert not history.can_redo()

    def test_single_snapshot_cannot_undo(self):
        history = HistoryManager(limit=10)
        history.record(snapshot_with("a"))

        assert history.current_index == 0
        assert not history.can_undo()
        assert history.undo() is None

    def test_undo_redo_are_inverse(self):
        history = HistoryManager(limit=10)
        for n in range(1, 4):
            history.record(snapshot_with(*[f"n{i}" for i in range(n)]))

        before = ids(history.current)
        assert ids(history.undo()) == ["n0", "n1"]
        assert ids(history.redo()) == before
        assert history.current_index == 2

    def test_undo_to_oldest(self):
        history = HistoryManager(limit=10)
        history.record(snapshot_with("a"))
        history.record(snapshot_with("a", "b"))
        history.record(snapshot_with("a", "b", "c"))

        assert ids(history.undo()) == ["a", "b"]
        assert ids(history.undo()) == ["a"]
        assert history.undo() is None
        assert history.current_index == 0

    def test_record_truncates_redo_branch(self):
        history = HistoryManager(limit=10)
        history.record(snapshot_with("a"))
        history.record(snapshot_with("a", "b"))
        history.record(snapshot_with("a", "b", "c"))
        history.undo()
        history.undo()

        history.record(snapshot_with("a", "x"))

        assert len(history) == 2
        assert history.current_index == 1
        assert not history.can_redo()
        assert ids(history.current) == ["a", "x"]

    def test_limit_evicts_oldest(self):
        history = HistoryManager(limit=3)
        for name in ["a", "b", "c", "d", "e"]:
            history.record(snapshot_with(name))

        assert len(history) == 3
        assert history.current_index == 2
        assert [ids(s) for s in history.snapshots] == [["c"], ["d"], ["e"]]

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            HistoryManager(limit=0)

    def test_default_limit_from_settings(self):
        assert HistoryManager().limit == 50

    def test_clear(self):
        history = HistoryManager(limit=10)
        history.record(snapshot_with("a"))
        history.record(snapshot_with("b"))

        history.clear()

        assert len(history) == 0
        assert history.current_index == -1


class TestMaintenance:
    """Tests for optimize and info."""

    def test_optimize_keeps_newest(self):
        history = HistoryManager(limit=10)
        for name in ["a", "b", "c", "d", "e"]:
            history.record(snapshot_with(name))

        history.optimize(keep_count=2)

        assert [ids(s) for s in history.snapshots] == [["d"], ["e"]]
        assert history.current_index == 1

    def test_optimize_clamps_index(self):
        history = HistoryManager(limit=10)
        for name in ["a", "b", "c", "d"]:
            history.record(snapshot_with(name))
        history.undo()
        history.undo()
        history.undo()

        history.optimize(keep_count=2)

        assert history.current_index == 0
        assert ids(history.current) == ["c"]

    def test_info(self):
        history = HistoryManager(limit=10)
        history.record(snapshot_with("a"))
        history.record(snapshot_with("a", "b"))

        info = history.info().to_dict()

        assert info["current_index"] == 1
        assert info["total_snapshots"] == 2
        assert info["can_undo"] is True
        assert info["can_redo"] is False
        assert info["memory_usage"].endswith(" KB")


class TestCompare:
    """Tests for snapshot comparison."""

    def test_compare_snapshots(self):
        old = create_snapshot(
            [make_node("a", "Manual"), make_node("b", "Transform")],
            [make_edge("a", "b")],
        )
        changed = make_node("b", "Transform", config={"script": "return 1"})
        new = create_snapshot(
            [make_node("a", "Manual"), changed, make_node("c", "End")],
            [],
        )

        diff = compare_snapshots(old, new)

        assert diff.nodes_added == 1
        assert diff.nodes_removed == 0
        assert diff.nodes_modified == 1
        assert diff.edges_removed == 1
        assert describe_changes(old, new) == "+1 node(s), ~1 node(s), -1 edge(s)"

    def test_no_changes(self):
        snapshot = snapshot_with("a")
        assert describe_changes(snapshot, snapshot.copy_graph()) == "No changes"
