"""Exceptions raised by the workflow graph engine."""

from typing import List, Optional

from core.graph.models import ExecutedRecord


class WorkflowError(Exception):
    """Base class for workflow engine errors."""
    pass


class PayloadError(WorkflowError):
    """Raised when a graph description or control message is invalid."""
    pass


class NodeExecutionError(WorkflowError):
    """A node adapter failed; the run is aborted.

    Carries the records executed so far, ending with the failing node's
    error record.
    """

    def __init__(
        self,
        node_id: str,
        message: str,
        records: Optional[List[ExecutedRecord]] = None
    ):
        super().__init__(f"Node {node_id} failed: {message}")
        self.node_id = node_id
        self.message = message
        self.records = list(records or [])
