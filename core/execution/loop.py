"""Loop expansion of nodes whose parameters reference arrays with ``$index``."""

from typing import Any, List, Optional, Sequence

import structlog

from core.graph.models import ExecutedRecord, NodeData
from core.graph.paths import get_path
from core.execution.resolver import (
    INDEX_PLACEHOLDER,
    NO_LOOP,
    VariableResolver,
    find_references,
    record_lookup,
)


logger = structlog.get_logger(__name__)


class LoopExpander:
    """Expands one node's parameters into one snapshot per loop iteration."""

    def __init__(self, resolver: VariableResolver):
        self.resolver = resolver

    def plan_iterations(
        self,
        parameters: Any,
        records: Sequence[ExecutedRecord]
    ) -> Optional[int]:
        """Number of iterations, or ``None`` when the node is not looped.

        The count is the shortest array referenced through ``[$index]``
        anywhere in ``parameters``.
        """
        lengths = list(self._array_lengths(parameters, records))
        if not lengths:
            return None
        return min(lengths)

    def expand(self, node_data: NodeData, records: Sequence[ExecutedRecord]) -> List[NodeData]:
        """Resolve ``node_data`` once per iteration.

        Every entry is an independent snapshot of the parameter groups,
        indexed by iteration number.
        """
        groups = node_data.parameter_groups()
        count = self.plan_iterations(groups, records)

        if count is None:
            return [self._snapshot(node_data, groups, records, NO_LOOP)]

        logger.debug("loop_expanded", node=node_data.name, iterations=count)
        return [
            self._snapshot(node_data, groups, records, index)
            for index in range(count)
        ]

    def _snapshot(
        self,
        node_data: NodeData,
        groups: dict,
        records: Sequence[ExecutedRecord],
        loop_index: int
    ) -> NodeData:
        resolved = {
            group: self.resolver.resolve_value(params, records, loop_index)
            for group, params in groups.items()
        }
        return node_data.with_parameters(resolved)

    def _array_lengths(self, value: Any, records: Sequence[ExecutedRecord]):
        if isinstance(value, str):
            if INDEX_PLACEHOLDER in value:
                yield from self._referenced_lengths(value, records)
        elif isinstance(value, dict):
            for item in value.values():
                yield from self._array_lengths(item, records)
        elif isinstance(value, (list, tuple)):
            for item in value:
                yield from self._array_lengths(item, records)

    @staticmethod
    def _referenced_lengths(text: str, records: Sequence[ExecutedRecord]):
        for reference in find_references(text):
            if not reference.uses_index:
                continue
            record = record_lookup(records, reference.node_id)
            if record is None:
                continue
            array_path = reference.path.split("[" + INDEX_PLACEHOLDER + "]", 1)[0]
            array = get_path({"data": record.data}, array_path)
            if isinstance(array, list):
                yield len(array)
