"""Execution hosts and the controller that runs them."""

from worker.host import ExecutionHost, HostState, Watchdog
from worker.runner import RunOutcome, WorkflowRunner

__all__ = [
    "ExecutionHost",
    "HostState",
    "RunOutcome",
    "Watchdog",
    "WorkflowRunner",
]
