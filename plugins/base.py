"""Node adapter base classes."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Union

from core.graph.models import NodeData


@dataclass
class BranchResult:
    """Output of a branch adapter: one record per output port plus the port taken.

    ``taken`` is the index of the output port whose successors should run, or
    ``None`` when neither port is taken.
    """
    records: List[Dict[str, Any]]
    taken: Optional[int] = None


NodeResult = Union[List[Dict[str, Any]], BranchResult, None]


@dataclass
class AdapterInfo:
    """Descriptive metadata shown by ``wf nodes list``."""
    name: str
    label: str
    description: str = ""
    category: str = ""
    branching: bool = False
    plugin: Optional[str] = None
    inputs: Dict[str, Any] = field(default_factory=dict)


class NodeAdapter(ABC):
    """Executes one node type.

    Subclasses set ``name`` (the type the editor stores in ``data.name``)
    and implement :meth:`run`. Result records follow the editor's
    ``[{"data": {...}}, ...]`` convention.
    """

    name: ClassVar[str] = ""
    label: ClassVar[str] = ""
    description: ClassVar[str] = ""
    category: ClassVar[str] = ""
    # Parameter name -> short description, shown by the CLI
    inputs: ClassVar[Dict[str, str]] = {}
    # Branch adapters select which outgoing ports continue the traversal
    branching: ClassVar[bool] = False

    @abstractmethod
    async def run(self, node_data: NodeData) -> NodeResult:
        """Execute the node with fully resolved parameters."""
        pass

    @classmethod
    def info(cls, plugin: Optional[str] = None) -> AdapterInfo:
        return AdapterInfo(
            name=cls.name,
            label=cls.label or cls.name,
            description=cls.description,
            category=cls.category,
            branching=cls.branching,
            plugin=plugin,
            inputs=dict(cls.inputs),
        )


def execution_data(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Wrap plain dicts in the ``{"data": ...}`` result record shape."""
    return [{"data": item} for item in items]
