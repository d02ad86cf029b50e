"""Helpers that turn an editor graph into a runnable payload."""

import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import yaml
import structlog
from pydantic import ValidationError

from core.execution.errors import PayloadError
from core.graph.models import GraphEdge, GraphNode, RunPayload


logger = structlog.get_logger(__name__)


def build_graph(nodes: Iterable[GraphNode], edges: Iterable[GraphEdge]) -> Dict[str, List[str]]:
    """Build the adjacency list keyed by node id, successors in edge order."""
    graph: Dict[str, List[str]] = {node.id: [] for node in nodes}
    for edge in edges:
        successors = graph.setdefault(edge.source, [])
        graph.setdefault(edge.target, [])
        if edge.target not in successors:
            successors.append(edge.target)
    return graph


def find_starting_nodes(nodes: Iterable[GraphNode], edges: Iterable[GraphEdge]) -> List[str]:
    """Nodes without incoming edges, in node order."""
    targets = {edge.target for edge in edges}
    return [node.id for node in nodes if node.id not in targets]


def build_payload(
    data: Dict,
    starting_node_ids: Optional[List[str]] = None,
    run_id: Optional[str] = None
) -> RunPayload:
    """Validate a raw graph description and fill in what the editor left out."""
    try:
        payload = RunPayload.model_validate(data)
    except ValidationError as e:
        raise PayloadError(f"Invalid graph description: {e}") from e

    if starting_node_ids:
        payload.starting_node_ids = list(starting_node_ids)
    if run_id:
        payload.run_id = run_id

    if not payload.graph:
        payload.graph = build_graph(payload.nodes, payload.edges)

    if not payload.starting_node_ids:
        payload.starting_node_ids = find_starting_nodes(payload.nodes, payload.edges)

    node_ids = {node.id for node in payload.nodes}
    unknown = [node_id for node_id in payload.starting_node_ids if node_id not in node_ids]
    if unknown:
        raise PayloadError(f"Unknown starting nodes: {', '.join(unknown)}")

    logger.debug(
        "payload_built",
        nodes=len(payload.nodes),
        edges=len(payload.edges),
        starting_nodes=payload.starting_node_ids
    )
    return payload


def load_payload(
    path: Union[str, Path],
    starting_node_ids: Optional[List[str]] = None
) -> RunPayload:
    """Load a graph description from a YAML or JSON file."""
    path = Path(path)
    try:
        with open(path, "r") as f:
            if path.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise PayloadError(f"Could not read {path}: {e}") from e

    if not isinstance(data, dict):
        raise PayloadError(f"{path} does not contain a graph description")

    return build_payload(data, starting_node_ids)
