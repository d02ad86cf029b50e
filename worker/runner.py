"""Controller side: runs workflows in isolated execution hosts."""

import asyncio
import multiprocessing
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import structlog

from core.config import Settings, get_settings
from core.execution.context import NodeResources
from core.graph.models import ExecutedRecord, RunPayload
from plugins.registry import AdapterRegistry
from worker.channel import Channel, PipeChannel, memory_channel_pair
from worker.errors import ChannelClosedError, HostCrashedError, HostTimeoutError
from worker.host import ExecutionHost, host_main
from worker.protocol import ErrorMessage, FinishMessage, StartMessage, StartedMessage


logger = structlog.get_logger(__name__)


@dataclass
class RunOutcome:
    """Result of one workflow run as reported by its host."""
    run_id: str
    status: str  # "finished" or "failed"
    records: List[ExecutedRecord] = field(default_factory=list)
    error: Optional[str] = None
    node_id: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == "finished"


class WorkflowRunner:
    """Starts one execution host per run and waits for its terminal message.

    A host that stays silent past ``timeout`` or dies without reporting is
    treated as failed (:class:`HostTimeoutError` / :class:`HostCrashedError`).
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        timeout: Optional[float] = None,
        registry: Optional[AdapterRegistry] = None,
        resources: Optional[NodeResources] = None
    ):
        self.settings = settings or get_settings()
        self.timeout = timeout or self.settings.host_timeout
        # Used by inline runs only; spawned hosts build their own registry
        self.registry = registry
        self.resources = resources

    async def run(self, payload: RunPayload) -> RunOutcome:
        """Run ``payload`` in a freshly spawned host process."""
        payload = self._with_run_id(payload)
        mp_context = multiprocessing.get_context("spawn")
        parent_conn, child_conn = mp_context.Pipe(duplex=True)

        settings_data = self.settings.model_dump()
        settings_data["host_timeout"] = self.timeout

        process = mp_context.Process(
            target=host_main,
            args=(child_conn, settings_data),
            name=f"workflow-host-{payload.run_id}",
            daemon=True
        )
        process.start()
        child_conn.close()

        logger.info("host_spawned", run_id=payload.run_id, pid=process.pid)

        channel = PipeChannel(parent_conn)
        try:
            try:
                await channel.send(StartMessage(value=payload))
            except ChannelClosedError:
                raise HostCrashedError(process.exitcode)
            return await self._await_outcome(
                channel,
                payload.run_id,
                is_alive=process.is_alive,
                exitcode=lambda: process.exitcode
            )
        finally:
            channel.close()
            await self._reap(process)

    async def run_inline(self, payload: RunPayload) -> RunOutcome:
        """Run ``payload`` with a host in this process over a memory channel."""
        payload = self._with_run_id(payload)
        controller_side, host_side = memory_channel_pair()
        host = ExecutionHost(
            host_side,
            settings=self.settings,
            registry=self.registry,
            resources=self.resources
        )
        host_task = asyncio.ensure_future(host.serve())

        try:
            await controller_side.send(StartMessage(value=payload))
            return await self._await_outcome(
                controller_side,
                payload.run_id,
                is_alive=lambda: not host_task.done(),
                exitcode=lambda: _task_exitcode(host_task)
            )
        finally:
            if not host_task.done():
                host_task.cancel()
                await asyncio.gather(host_task, return_exceptions=True)

    async def _await_outcome(
        self,
        channel: Channel,
        run_id: str,
        is_alive: Callable[[], bool],
        exitcode: Callable[[], Optional[int]]
    ) -> RunOutcome:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        poll_interval = self.settings.poll_interval

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.error("host_timeout", run_id=run_id, timeout=self.timeout)
                raise HostTimeoutError(self.timeout)

            try:
                message = await channel.receive(timeout=min(remaining, poll_interval))
            except asyncio.TimeoutError:
                if not is_alive():
                    raise HostCrashedError(exitcode())
                continue
            except ChannelClosedError:
                raise HostCrashedError(exitcode())

            if isinstance(message, StartedMessage):
                logger.debug("host_started", run_id=run_id)
                continue

            if isinstance(message, FinishMessage):
                logger.info("run_finished", run_id=run_id, records=len(message.value))
                return RunOutcome(run_id=run_id, status="finished", records=message.value)

            if isinstance(message, ErrorMessage):
                value = message.value
                logger.warning(
                    "run_failed",
                    run_id=run_id,
                    node_id=value.node_id,
                    error=value.message
                )
                return RunOutcome(
                    run_id=run_id,
                    status="failed",
                    records=value.workflow_executed_data,
                    error=value.message,
                    node_id=value.node_id
                )

            logger.warning("unexpected_message", run_id=run_id, key=message.key)

    async def _reap(self, process, grace: float = 5.0) -> None:
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, process.join, grace)
        if process.is_alive():
            logger.warning("host_terminating", pid=process.pid)
            process.terminate()
            await loop.run_in_executor(None, process.join, grace)
        if process.is_alive():
            process.kill()

    @staticmethod
    def _with_run_id(payload: RunPayload) -> RunPayload:
        if payload.run_id:
            return payload
        return payload.model_copy(update={"run_id": str(uuid.uuid4())})


def _task_exitcode(task: asyncio.Future) -> Optional[int]:
    if not task.done() or task.cancelled() or task.exception() is not None:
        return None
    return task.result()
