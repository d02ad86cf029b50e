"""Graph data model and property path helpers."""

from core.graph.models import (
    PARAMETER_GROUPS,
    ExecutedRecord,
    GraphEdge,
    GraphNode,
    NodeData,
    RunPayload,
)
from core.graph.paths import get_path, split_path

__all__ = [
    "PARAMETER_GROUPS",
    "ExecutedRecord",
    "GraphEdge",
    "GraphNode",
    "NodeData",
    "RunPayload",
    "get_path",
    "split_path",
]
