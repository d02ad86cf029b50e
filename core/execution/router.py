"""Branch routing: which successors of a branch node are skipped."""

import re
from typing import Any, Iterable, Optional, Set

import structlog

from core.graph.models import ExecutedRecord, GraphEdge


logger = structlog.get_logger(__name__)


def output_handle(node_id: str, branch_index: int) -> str:
    return f"{node_id}-output-{branch_index}"


def handle_index(node_id: str, handle: Optional[str]) -> Optional[int]:
    """Branch index encoded in a ``{nodeId}-output-{index}`` handle."""
    if not handle:
        return None
    match = re.fullmatch(re.escape(node_id) + r"-output-(\d+)", handle)
    return int(match.group(1)) if match else None


def _is_empty(record: Any) -> bool:
    if isinstance(record, dict):
        payload = record.get("data", record)
        return isinstance(payload, dict) and not payload
    return record is None


class BranchRouter:
    """Maps a branch node's outcome to the successor ids to suppress."""

    def prune_edges(
        self,
        node_id: str,
        record: ExecutedRecord,
        edges: Iterable[GraphEdge]
    ) -> Set[str]:
        outgoing = [edge for edge in edges if edge.source == node_id]

        if record.branches is not None:
            inactive = self._ports_not_taken(node_id, outgoing, set(record.branches))
        else:
            inactive = self._empty_port(record)
            inactive = set() if inactive is None else {inactive}

        suppressed = {
            edge.target for edge in outgoing
            if handle_index(node_id, edge.source_handle) in inactive
        }
        if suppressed:
            logger.debug(
                "branch_pruned",
                node_id=node_id,
                inactive_ports=sorted(inactive),
                suppressed=sorted(suppressed)
            )
        return suppressed

    @staticmethod
    def _ports_not_taken(node_id: str, outgoing, taken: Set[int]) -> Set[int]:
        ports = {handle_index(node_id, edge.source_handle) for edge in outgoing}
        return {port for port in ports if port is not None and port not in taken}

    @staticmethod
    def _empty_port(record: ExecutedRecord) -> Optional[int]:
        """Port whose result record is empty; the first empty one wins."""
        results = record.data
        if len(results) > 0 and _is_empty(results[0]):
            return 0
        if len(results) > 1 and _is_empty(results[1]):
            return 1
        return None
