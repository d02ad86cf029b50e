"""Per-run context threaded through scheduler, resolver and expander."""

import uuid
from dataclasses import dataclass, field
from typing import Any, List

import structlog

from core.config import Settings, get_settings
from core.graph.models import ExecutedRecord, NodeData
from plugins.registry import AdapterRegistry


class NodeResources:
    """Host-side resources made available to node executions.

    The default implementation does nothing. Deployments override it to
    decrypt node credentials before a node runs and to persist refreshed
    tokens after an adapter call.
    """

    async def setup(self) -> None:
        pass

    async def teardown(self) -> None:
        pass

    async def prepare(self, node_data: NodeData) -> NodeData:
        return node_data

    async def after_call(self, results: Any, node_data: NodeData) -> None:
        pass


@dataclass
class RunContext:
    """State owned by a single run."""
    registry: AdapterRegistry
    settings: Settings = field(default_factory=get_settings)
    resources: NodeResources = field(default_factory=NodeResources)
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    records: List[ExecutedRecord] = field(default_factory=list)

    def __post_init__(self):
        self.logger = structlog.get_logger("core.execution").bind(run_id=self.run_id)

    @property
    def max_loop(self) -> int:
        return self.settings.max_loop

    @property
    def code_keys(self) -> List[str]:
        return self.settings.code_keys
