"""Control messages exchanged between a controller and an execution host.

Every message is a mapping ``{"key": <kind>, "value": <payload>}``:

* ``start``    controller -> host, value is the run payload
* ``started``  host -> controller, acknowledges ``start``
* ``finish``   host -> controller, value is the full executed record list
* ``error``    host -> controller, value holds the partial records, the
               failing node id and the error message
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from core.execution.errors import PayloadError
from core.graph.models import ExecutedRecord, RunPayload, WireModel


class StartMessage(BaseModel):
    key: Literal["start"] = "start"
    value: RunPayload


class StartedMessage(BaseModel):
    key: Literal["started"] = "started"
    value: Optional[str] = None


class FinishMessage(BaseModel):
    key: Literal["finish"] = "finish"
    value: List[ExecutedRecord] = Field(default_factory=list)


class ErrorValue(WireModel):
    workflow_executed_data: List[ExecutedRecord] = Field(
        default_factory=list, alias="workflowExecutedData"
    )
    node_id: Optional[str] = Field(default=None, alias="nodeId")
    message: str


class ErrorMessage(BaseModel):
    key: Literal["error"] = "error"
    value: ErrorValue


ControlMessage = Annotated[
    Union[StartMessage, StartedMessage, FinishMessage, ErrorMessage],
    Field(discriminator="key"),
]

TERMINAL_KEYS = frozenset({"finish", "error"})

_message_adapter = TypeAdapter(ControlMessage)


def encode_message(message: BaseModel) -> Dict[str, Any]:
    return message.model_dump(by_alias=True, mode="json")


def decode_message(raw: Any) -> Union[StartMessage, StartedMessage, FinishMessage, ErrorMessage]:
    try:
        return _message_adapter.validate_python(raw)
    except ValidationError as e:
        raise PayloadError(f"Invalid control message: {e}") from e


def error_message(
    message: str,
    records: Optional[List[ExecutedRecord]] = None,
    node_id: Optional[str] = None
) -> ErrorMessage:
    return ErrorMessage(
        value=ErrorValue(
            workflow_executed_data=list(records or []),
            node_id=node_id,
            message=message
        )
    )
