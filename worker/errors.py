"""Errors raised at the host/controller process boundary."""

from typing import Optional

from core.execution.errors import WorkflowError


class ChannelClosedError(WorkflowError):
    """The other end of a control channel went away."""
    pass


class HostTimeoutError(WorkflowError):
    """The host did not finish within its allotted time."""

    def __init__(self, timeout: float):
        super().__init__(f"Execution host did not finish within {timeout} seconds")
        self.timeout = timeout


class HostCrashedError(WorkflowError):
    """The host exited without sending a terminal message."""

    def __init__(self, exitcode: Optional[int] = None):
        super().__init__(f"Execution host exited unexpectedly (exit code {exitcode})")
        self.exitcode = exitcode
