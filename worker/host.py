"""Execution host: runs one workflow inside an isolated worker process."""

import asyncio
import os
import signal
import sys
import threading
from enum import Enum
from multiprocessing.connection import Connection
from typing import Any, Callable, Dict, List, Optional

import structlog

from core.config import Settings, get_settings
from core.execution.context import NodeResources, RunContext
from core.execution.errors import NodeExecutionError, PayloadError
from core.execution.scheduler import GraphScheduler
from core.graph.models import ExecutedRecord, RunPayload
from core.monitoring.logging import configure_logging
from plugins.registry import AdapterRegistry, create_registry
from worker.channel import Channel, PipeChannel
from worker.errors import ChannelClosedError
from worker.protocol import TERMINAL_KEYS, FinishMessage, StartMessage, StartedMessage, error_message


logger = structlog.get_logger(__name__)

EXIT_FINISHED = 0
EXIT_FAILED = 1
EXIT_DELIVERY_FAILED = 2
EXIT_FORCED = 3


class HostState(Enum):
    """Lifecycle of an execution host."""
    IDLE = "idle"
    INITIALIZING = "initializing"
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"


class Watchdog:
    """Hard-kills the process once ``timeout`` seconds have passed.

    There is no cooperative cancellation for a hung adapter, so the timer
    exits the interpreter without cleanup.
    """

    def __init__(
        self,
        timeout: float,
        exit_code: int = EXIT_FORCED,
        exit_func: Callable[[int], Any] = os._exit
    ):
        self.timeout = timeout
        self.exit_code = exit_code
        self._exit_func = exit_func
        self._timer: Optional[threading.Timer] = None

    def start(self) -> None:
        if self._timer is not None:
            return
        self._timer = threading.Timer(self.timeout, self._fire)
        self._timer.daemon = True
        self._timer.start()

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()

    def _fire(self) -> None:
        logger.error("host_watchdog_expired", timeout=self.timeout)
        self._exit_func(self.exit_code)


class ExecutionHost:
    """Waits for a ``start`` message, runs the graph and reports back.

    Exactly one terminal message (``finish`` or ``error``) is sent per run.
    """

    def __init__(
        self,
        channel: Channel,
        settings: Optional[Settings] = None,
        registry: Optional[AdapterRegistry] = None,
        resources: Optional[NodeResources] = None,
        exit_func: Callable[[int], Any] = os._exit
    ):
        self.channel = channel
        self.exit_func = exit_func
        self.settings = settings or get_settings()
        self.registry = registry
        self.resources = resources or NodeResources()
        self.state = HostState.IDLE
        self.terminal_sent = False
        self._context: Optional[RunContext] = None

    @property
    def records(self) -> List[ExecutedRecord]:
        return self._context.records if self._context else []

    async def main(self) -> int:
        """Serve one run with signal handling; returns the process exit code."""
        loop = asyncio.get_running_loop()
        task = asyncio.ensure_future(self.serve())
        self._install_signal_handlers(loop, task)

        try:
            return await task
        except asyncio.CancelledError:
            logger.warning("host_interrupted", records=len(self.records), terminal_sent=self.terminal_sent)
            if self.terminal_sent:
                return EXIT_FORCED
            self.state = HostState.FAILED
            delivered = await self._deliver(error_message("Execution interrupted", self.records))
            return EXIT_FORCED if delivered else EXIT_DELIVERY_FAILED
        finally:
            self._remove_signal_handlers(loop)

    async def serve(self) -> int:
        """Wait for the ``start`` message and run it."""
        try:
            message = await self.channel.receive()
        except ChannelClosedError as e:
            logger.error("host_channel_closed", error=str(e))
            return EXIT_DELIVERY_FAILED
        except PayloadError as e:
            logger.error("host_invalid_message", error=str(e))
            self.state = HostState.FAILED
            delivered = await self._deliver(error_message(str(e)))
            return EXIT_FAILED if delivered else EXIT_DELIVERY_FAILED

        if not isinstance(message, StartMessage):
            logger.error("host_unexpected_message", key=message.key)
            self.state = HostState.FAILED
            delivered = await self._deliver(error_message(f"Expected start message, got {message.key}"))
            return EXIT_FAILED if delivered else EXIT_DELIVERY_FAILED

        return await self.run(message.value)

    async def run(self, payload: RunPayload) -> int:
        """Execute ``payload`` and send the terminal message."""
        self.state = HostState.INITIALIZING
        log = logger.bind(run_id=payload.run_id)

        if not await self._deliver(StartedMessage(value=payload.run_id)):
            return EXIT_DELIVERY_FAILED

        try:
            registry = self.registry or create_registry(self.settings.plugin_dirs)
            context_args: Dict[str, Any] = {}
            if payload.run_id:
                context_args["run_id"] = payload.run_id
            self._context = RunContext(
                registry=registry,
                settings=self.settings,
                resources=self.resources,
                records=list(payload.workflow_executed_data),
                **context_args
            )
            await self.resources.setup()
        except Exception as e:
            log.error("host_initialization_failed", error=str(e), error_type=type(e).__name__)
            self.state = HostState.FAILED
            delivered = await self._deliver(error_message(f"Initialization failed: {e}", self.records))
            return EXIT_FAILED if delivered else EXIT_DELIVERY_FAILED

        self.state = HostState.RUNNING
        log.info("host_run_started", nodes=len(payload.nodes))

        try:
            records = await GraphScheduler(self._context).run_payload(payload)
            terminal = FinishMessage(value=records)
            self.state = HostState.FINISHED
        except NodeExecutionError as e:
            terminal = error_message(e.message, e.records, e.node_id)
            self.state = HostState.FAILED
        except Exception as e:
            log.error("host_run_failed", error=str(e), error_type=type(e).__name__)
            terminal = error_message(str(e) or type(e).__name__, self.records)
            self.state = HostState.FAILED
        finally:
            await self._teardown()

        log.info("host_run_completed", state=self.state.value, records=len(self.records))

        if not await self._deliver(terminal):
            return EXIT_DELIVERY_FAILED
        return EXIT_FINISHED if self.state is HostState.FINISHED else EXIT_FAILED

    async def _teardown(self) -> None:
        try:
            await self.resources.teardown()
        except Exception as e:
            logger.warning("host_teardown_failed", error=str(e))

    async def _deliver(self, message) -> bool:
        # Marked before sending: a send cut short by cancellation may still complete
        if message.key in TERMINAL_KEYS:
            self.terminal_sent = True
        try:
            await self.channel.send(message)
            return True
        except ChannelClosedError as e:
            logger.error("host_delivery_failed", key=message.key, error=str(e))
            return False

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop, task: asyncio.Future) -> None:
        """SIGINT/SIGTERM cancel the run and start a forced-exit grace timer."""
        grace = Watchdog(self.settings.shutdown_grace_period, exit_func=self.exit_func)

        def handle_signal(sig):
            logger.info("shutdown_signal_received", signal=sig)
            grace.start()
            task.cancel()

        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, handle_signal, sig)
            except (NotImplementedError, RuntimeError):
                signal.signal(sig, lambda s, frame: loop.call_soon_threadsafe(handle_signal, s))

    @staticmethod
    def _remove_signal_handlers(loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.remove_signal_handler(sig)
            except (NotImplementedError, RuntimeError):
                signal.signal(sig, signal.SIG_DFL if sig == signal.SIGTERM else signal.default_int_handler)


def host_main(connection: Connection, settings_data: Optional[Dict[str, Any]] = None) -> None:
    """Entry point of a spawned host process."""
    settings = Settings(**settings_data) if settings_data else get_settings()
    configure_logging(settings.log_level, settings.log_format)

    watchdog = Watchdog(settings.host_timeout)
    watchdog.start()

    channel = PipeChannel(connection)
    host = ExecutionHost(channel, settings=settings)
    try:
        exit_code = asyncio.run(host.main())
    finally:
        channel.close()

    logger.debug("host_exiting", exit_code=exit_code, state=host.state.value)
    sys.exit(exit_code)
