"""Graph and run data models shared by the engine and the host protocol."""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

# Parameter groups of a node that take part in variable resolution
PARAMETER_GROUPS = ("actions", "networks", "input_parameters")


class WireModel(BaseModel):
    """Base for models exchanged with the editor and the controller (camelCase)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class NodeData(WireModel):
    """Parameter bag of a node as produced by the graph editor."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    label: str = ""
    name: str
    actions: Dict[str, Any] = Field(default_factory=dict)
    networks: Dict[str, Any] = Field(default_factory=dict)
    input_parameters: Dict[str, Any] = Field(default_factory=dict, alias="inputParameters")
    credentials: Dict[str, Any] = Field(default_factory=dict)

    def parameter_groups(self) -> Dict[str, Dict[str, Any]]:
        return {group: getattr(self, group) for group in PARAMETER_GROUPS}

    def with_parameters(self, groups: Dict[str, Dict[str, Any]]) -> "NodeData":
        """Return a copy of this node data with the given parameter groups."""
        return self.model_copy(update=groups)


class GraphNode(WireModel):
    id: str
    data: NodeData
    type: Optional[str] = None


class GraphEdge(WireModel):
    source: str
    target: str
    id: Optional[str] = None
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")


class ExecutedRecord(WireModel):
    """Results of one executed node, in the order the node ran."""
    node_id: str = Field(alias="nodeId")
    node_label: str = Field(default="", alias="nodeLabel")
    data: List[Any] = Field(default_factory=list)
    # Output ports chosen by a branch adapter; None when no explicit choice was made
    branches: Optional[List[int]] = None

    @property
    def failed(self) -> bool:
        return bool(self.data) and isinstance(self.data[-1], dict) and "error" in self.data[-1]


class RunPayload(WireModel):
    """Everything a host needs to execute one run."""
    run_id: Optional[str] = Field(default=None, alias="runId")
    starting_node_ids: List[str] = Field(default_factory=list, alias="startingNodeIds")
    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)
    graph: Dict[str, List[str]] = Field(default_factory=dict)
    workflow_executed_data: List[ExecutedRecord] = Field(
        default_factory=list, alias="workflowExecutedData"
    )
