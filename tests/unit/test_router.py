"""
Tests for core.execution.router branch routing.
"""

import pytest

from core.execution.router import BranchRouter, handle_index, output_handle
from core.graph.models import ExecutedRecord, GraphEdge


@pytest.fixture
def router():
    return BranchRouter()


@pytest.fixture
def edges():
    """If node with a true path to T and a false path to F."""
    return [
        GraphEdge(source="IF", target="T", source_handle="IF-output-0"),
        GraphEdge(source="IF", target="F", source_handle="IF-output-1"),
        GraphEdge(source="OTHER", target="X", source_handle="OTHER-output-1"),
    ]


class TestHandles:
    """Test cases for output handle naming."""

    def test_output_handle(self):
        assert output_handle("IF", 1) == "IF-output-1"

    def test_handle_index(self):
        assert handle_index("IF", "IF-output-0") == 0
        assert handle_index("IF", "IF-output-12") == 12

    def test_handle_of_other_node(self):
        """Test that handles naming another node are not matched."""
        assert handle_index("IF", "IF2-output-0") is None
        assert handle_index("IF", None) is None
        assert handle_index("IF", "IF-input-0") is None


class TestExplicitBranches:
    """Test cases for routing driven by the adapter's chosen port."""

    def test_taken_true_port(self, router, edges):
        record = ExecutedRecord(node_id="IF", data=[{"data": {"a": 1}}, {"data": {"a": 1}}], branches=[0])
        assert router.prune_edges("IF", record, edges) == {"F"}

    def test_taken_false_port(self, router, edges):
        record = ExecutedRecord(node_id="IF", data=[{"data": {}}, {"data": {}}], branches=[1])
        assert router.prune_edges("IF", record, edges) == {"T"}

    def test_no_port_taken_suppresses_all(self, router, edges):
        """Test an explicit empty choice suppresses every indexed port."""
        record = ExecutedRecord(node_id="IF", data=[], branches=[])
        assert router.prune_edges("IF", record, edges) == {"T", "F"}

    def test_both_ports_taken(self, router, edges):
        """Test that looped branch nodes can take both ports."""
        record = ExecutedRecord(node_id="IF", data=[], branches=[0, 1])
        assert router.prune_edges("IF", record, edges) == set()


class TestShapeHeuristic:
    """Test cases for routing inferred from result emptiness."""

    def test_empty_second_output_suppresses_port_one(self, router, edges):
        record = ExecutedRecord(node_id="IF", data=[{"data": {"ok": True}}, {"data": {}}])
        assert router.prune_edges("IF", record, edges) == {"F"}

    def test_empty_first_output_suppresses_port_zero(self, router, edges):
        record = ExecutedRecord(node_id="IF", data=[{"data": {}}, {"data": {"ok": False}}])
        assert router.prune_edges("IF", record, edges) == {"T"}

    def test_first_empty_wins(self, router, edges):
        """Test that port 0 is checked before port 1."""
        record = ExecutedRecord(node_id="IF", data=[{"data": {}}, {"data": {}}])
        assert router.prune_edges("IF", record, edges) == {"T"}

    def test_both_non_empty_fails_open(self, router, edges):
        record = ExecutedRecord(node_id="IF", data=[{"data": {"a": 1}}, {"data": {"b": 2}}])
        assert router.prune_edges("IF", record, edges) == set()

    def test_edges_without_handles_never_suppressed(self, router):
        """Test that plain edges always continue."""
        edges = [GraphEdge(source="IF", target="T")]
        record = ExecutedRecord(node_id="IF", data=[{"data": {}}])
        assert router.prune_edges("IF", record, edges) == set()
