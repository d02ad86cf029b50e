"""Builtin node adapters."""

import asyncio
import re
from typing import Any, Callable, Dict, List

import structlog

from core.graph.models import NodeData
from plugins.base import BranchResult, NodeAdapter, execution_data


logger = structlog.get_logger(__name__)


def _number(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"Expected a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Expected a number, got {value!r}")


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


OPERATIONS: Dict[str, Callable[[Any, Any], bool]] = {
    "equal": lambda a, b: str(a) == str(b),
    "notEqual": lambda a, b: str(a) != str(b),
    "larger": lambda a, b: _number(a) > _number(b),
    "largerEqual": lambda a, b: _number(a) >= _number(b),
    "smaller": lambda a, b: _number(a) < _number(b),
    "smallerEqual": lambda a, b: _number(a) <= _number(b),
    "contains": lambda a, b: str(b) in str(a),
    "notContains": lambda a, b: str(b) not in str(a),
    "startsWith": lambda a, b: str(a).startswith(str(b)),
    "endsWith": lambda a, b: str(a).endswith(str(b)),
    "regex": lambda a, b: re.search(str(b), str(a)) is not None,
    "isEmpty": lambda a, b: _is_empty(a),
    "isNotEmpty": lambda a, b: not _is_empty(a),
}


class IfElseNode(NodeAdapter):
    """Evaluates conditions and routes to output 0 (true) or output 1 (false).

    ``inputParameters``:

    * ``conditions`` - list of ``{"value1", "operation", "value2"}``
    * ``combineConditions`` - ``all`` (default) or ``any``
    * ``returnData`` - data forwarded on the taken output
    """

    name = "ifElse"
    label = "If Else"
    description = "Split the flow into a true and a false path"
    category = "Utilities"
    branching = True
    inputs = {
        "conditions": "List of value1/operation/value2 comparisons",
        "combineConditions": "all or any",
        "returnData": "Data forwarded on the taken output",
    }

    async def run(self, node_data: NodeData) -> BranchResult:
        params = node_data.input_parameters
        conditions: List[Dict[str, Any]] = params.get("conditions") or []
        combine = params.get("combineConditions", "all")
        return_data = params.get("returnData")
        if not isinstance(return_data, dict):
            return_data = {"result": return_data} if return_data is not None else {}

        outcomes = [self._evaluate(condition) for condition in conditions]
        passed = any(outcomes) if combine == "any" else all(outcomes)

        # An empty payload on the inactive port keeps editor previews consistent
        payload = return_data or {"passed": passed}
        records = [
            {"data": payload if passed else {}},
            {"data": {} if passed else payload},
        ]
        return BranchResult(records=records, taken=0 if passed else 1)

    @staticmethod
    def _evaluate(condition: Dict[str, Any]) -> bool:
        operation = condition.get("operation", "equal")
        check = OPERATIONS.get(operation)
        if check is None:
            raise ValueError(f"Unknown operation: {operation}")
        return check(condition.get("value1"), condition.get("value2"))


class SetDataNode(NodeAdapter):
    """Emits its resolved input parameters as one result record.

    When ``inputParameters.data`` is a list, one record per item is emitted.
    """

    name = "setData"
    label = "Set Data"
    description = "Set or transform data for the following nodes"
    category = "Utilities"
    inputs = {"data": "Value or list of values to emit"}

    async def run(self, node_data: NodeData) -> List[Dict[str, Any]]:
        params = node_data.input_parameters
        data = params.get("data", params)

        if isinstance(data, list):
            return execution_data([item if isinstance(item, dict) else {"value": item} for item in data])
        if not isinstance(data, dict):
            data = {"value": data}
        return execution_data([data])


class DelayNode(NodeAdapter):
    """Waits ``inputParameters.seconds`` before letting the flow continue."""

    name = "delay"
    label = "Delay"
    description = "Pause the flow for a number of seconds"
    category = "Utilities"
    inputs = {"seconds": "Number of seconds to wait"}

    async def run(self, node_data: NodeData) -> List[Dict[str, Any]]:
        seconds = _number(node_data.input_parameters.get("seconds", 0))
        if seconds < 0:
            raise ValueError("Delay must not be negative")
        await asyncio.sleep(seconds)
        logger.debug("delay_completed", seconds=seconds)
        return execution_data([{"delayed": seconds}])
