"""
Pytest configuration and fixtures for the workflow graph runner.
"""

import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import logging
from typing import Any, Dict, List, Optional

import pytest
import structlog

from core.config import Settings, get_settings
from core.execution.context import RunContext
from core.graph.builder import build_payload
from core.graph.models import GraphEdge, GraphNode, NodeData
from plugins.base import BranchResult, NodeAdapter
from plugins.registry import AdapterRegistry


# ============================================================================
# TEST ADAPTERS
# ============================================================================

class RecordingAdapter(NodeAdapter):
    """Echoes its resolved input parameters and remembers every call."""

    name = "record"

    def __init__(self):
        self.calls: List[NodeData] = []

    async def run(self, node_data: NodeData) -> List[Dict[str, Any]]:
        self.calls.append(node_data)
        return [{"data": dict(node_data.input_parameters)}]


class FailingAdapter(NodeAdapter):
    """Fails on the configured (1-based) call number."""

    name = "fail"

    def __init__(self):
        self.calls = 0

    async def run(self, node_data: NodeData) -> List[Dict[str, Any]]:
        self.calls += 1
        fail_on = int(node_data.input_parameters.get("failOn", 1))
        if self.calls == fail_on:
            raise RuntimeError(f"boom on call {self.calls}")
        return [{"data": {"call": self.calls}}]


class SwitchAdapter(NodeAdapter):
    """Branch adapter taking the port given in ``inputParameters.take``."""

    name = "switch"
    branching = True

    async def run(self, node_data: NodeData) -> BranchResult:
        take = node_data.input_parameters.get("take")
        return BranchResult(records=[{"data": {"port": 0}}, {"data": {"port": 1}}], taken=take)


class ShapeBranchAdapter(NodeAdapter):
    """Branch adapter that only returns records, leaving routing to their shape."""

    name = "shape"
    branching = True

    async def run(self, node_data: NodeData) -> List[Dict[str, Any]]:
        return node_data.input_parameters.get("results", [])


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def settings():
    """Settings isolated from the environment and any .env file."""
    return Settings(_env_file=None, plugin_dirs=[], host_timeout=10.0, poll_interval=0.01)


@pytest.fixture
def registry():
    """Registry with the test adapters registered."""
    registry = AdapterRegistry()
    for adapter_cls in (RecordingAdapter, FailingAdapter, SwitchAdapter, ShapeBranchAdapter):
        registry.register(adapter_cls, plugin="tests")
    return registry


@pytest.fixture
def run_context(registry, settings):
    """Fresh run context over the test registry."""
    return RunContext(registry=registry, settings=settings, run_id="test-run")


def make_node(node_id: str, name: str = "record", label: Optional[str] = None, **params) -> GraphNode:
    """Node whose keyword arguments become its ``inputParameters``."""
    return GraphNode(
        id=node_id,
        data=NodeData(label=label or node_id, name=name, input_parameters=params)
    )


def make_edge(source: str, target: str, handle: Optional[str] = None) -> GraphEdge:
    return GraphEdge(source=source, target=target, source_handle=handle)


def make_payload(nodes: List[GraphNode], edges: List[GraphEdge], starting: Optional[List[str]] = None, **extra):
    """Run payload built from model objects, with the adjacency derived."""
    data = {
        "nodes": [node.model_dump(by_alias=True) for node in nodes],
        "edges": [edge.model_dump(by_alias=True) for edge in edges],
    }
    data.update(extra)
    return build_payload(data, starting_node_ids=starting)


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo logging configuration done by the CLI between tests."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    structlog.reset_defaults()
    root.handlers[:] = handlers
    root.setLevel(level)
    get_settings.cache_clear()
