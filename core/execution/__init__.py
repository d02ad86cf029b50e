"""Graph execution: variable resolution, loop expansion, routing and scheduling."""

from core.execution.errors import NodeExecutionError, PayloadError, WorkflowError
from core.execution.resolver import VariableReference, VariableResolver, find_references
from core.execution.loop import LoopExpander
from core.execution.router import BranchRouter
from core.execution.context import NodeResources, RunContext
from core.execution.scheduler import ExploredState, GraphScheduler, QueueItem

__all__ = [
    # Errors
    "NodeExecutionError",
    "PayloadError",
    "WorkflowError",

    # Resolution
    "VariableReference",
    "VariableResolver",
    "find_references",
    "LoopExpander",
    "BranchRouter",

    # Scheduling
    "NodeResources",
    "RunContext",
    "ExploredState",
    "GraphScheduler",
    "QueueItem",
]
