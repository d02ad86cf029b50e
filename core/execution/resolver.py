"""Variable resolution for ``{{nodeId[path]}}`` references in node parameters."""

import json
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence

import structlog

from core.graph.models import ExecutedRecord
from core.graph.paths import get_path


logger = structlog.get_logger(__name__)

OPEN = "{{"
CLOSE = "}}"
INDEX_PLACEHOLDER = "$index"
# Loop index used when a node runs a single, non-looped iteration
NO_LOOP = -1


@dataclass(frozen=True)
class VariableReference:
    """One ``{{...}}`` occurrence inside a parameter string."""
    template: str
    expression: str

    @property
    def node_id(self) -> str:
        return self.expression.split("[", 1)[0]

    @property
    def path(self) -> str:
        """Property path into the node's executed record, rooted at ``data``."""
        parts = self.expression.split("[", 1)
        if len(parts) == 1:
            return "data"
        return "data[" + parts[1]

    @property
    def uses_index(self) -> bool:
        return INDEX_PLACEHOLDER in self.expression


def find_references(text: str) -> List[VariableReference]:
    """Find balanced ``{{``/``}}`` pairs, innermost matches first."""
    references: List[VariableReference] = []
    stack: List[int] = []

    for idx in range(len(text) - 1):
        pair = text[idx:idx + 2]
        if pair == OPEN:
            stack.append(idx + 2)
        elif pair == CLOSE and stack:
            start = stack.pop()
            expression = text[start:idx]
            references.append(
                VariableReference(template=OPEN + expression + CLOSE, expression=expression)
            )

    return references


def record_lookup(records: Sequence[ExecutedRecord], node_id: str) -> Optional[ExecutedRecord]:
    return next((record for record in records if record.node_id == node_id), None)


class VariableResolver:
    """Resolves variable references against already executed nodes."""

    def __init__(self, code_keys: Iterable[str] = ("code",)):
        self.code_keys = frozenset(code_keys)

    def resolve(
        self,
        template: Any,
        records: Sequence[ExecutedRecord],
        loop_index: int = NO_LOOP,
        key: Optional[str] = None
    ) -> Any:
        """Resolve every reference in ``template``.

        References to nodes that have not run are left untouched. A template
        made of a single reference yields the referenced value itself unless
        ``key`` names a code parameter, in which case values are embedded as
        source literals.
        """
        if not isinstance(template, str) or OPEN not in template:
            return template

        values: Dict[str, Any] = {}
        for reference in find_references(template):
            record = record_lookup(records, reference.node_id)
            if record is None:
                logger.debug("variable_unresolved", reference=reference.template)
                continue

            path = reference.path
            if reference.uses_index:
                path = path.replace(INDEX_PLACEHOLDER, str(loop_index))
            path = str(self.resolve(path, records, loop_index))

            values[reference.template] = get_path({"data": record.data}, path)

        if not values:
            return template

        as_code = key in self.code_keys
        if not as_code and template in values:
            return values[template]

        resolved = template
        # Outer references contain inner ones, so replace the longest first
        for reference in sorted(values, key=len, reverse=True):
            resolved = resolved.replace(reference, self._embed(values[reference], as_code))
        return resolved

    def resolve_value(
        self,
        value: Any,
        records: Sequence[ExecutedRecord],
        loop_index: int = NO_LOOP,
        key: Optional[str] = None
    ) -> Any:
        """Resolve references anywhere inside a nested parameter value.

        Containers are rebuilt, so the result never shares structure with
        ``value``.
        """
        if isinstance(value, str):
            return self.resolve(value, records, loop_index, key)
        if isinstance(value, dict):
            return {
                item_key: self.resolve_value(item, records, loop_index, item_key)
                for item_key, item in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [self.resolve_value(item, records, loop_index, key) for item in value]
        return value

    @staticmethod
    def _embed(value: Any, as_code: bool) -> str:
        if as_code:
            return json.dumps(value, default=str)
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        return json.dumps(value, default=str)
