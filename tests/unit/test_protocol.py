"""
Tests for worker.protocol and worker.channel.
"""

import asyncio
import multiprocessing

import pytest

from core.execution.errors import PayloadError
from core.graph.models import ExecutedRecord, RunPayload
from worker.channel import PipeChannel, memory_channel_pair
from worker.errors import ChannelClosedError
from worker.protocol import (
    ErrorMessage,
    FinishMessage,
    StartMessage,
    StartedMessage,
    TERMINAL_KEYS,
    decode_message,
    encode_message,
    error_message,
)


@pytest.fixture
def payload():
    return RunPayload.model_validate({
        "runId": "run-1",
        "startingNodeIds": ["A"],
        "nodes": [
            {"id": "A", "data": {"label": "Start", "name": "setData"}},
            {"id": "B", "data": {"label": "Next", "name": "setData", "inputParameters": {"x": 1}}},
        ],
        "edges": [{"source": "A", "target": "B", "sourceHandle": "A-output-0"}],
        "graph": {"A": ["B"]},
    })


class TestMessages:
    """Test cases for message encoding."""

    def test_start_message_uses_wire_names(self, payload):
        raw = encode_message(StartMessage(value=payload))

        assert raw["key"] == "start"
        assert raw["value"]["startingNodeIds"] == ["A"]
        assert raw["value"]["nodes"][1]["data"]["inputParameters"] == {"x": 1}
        assert raw["value"]["edges"][0]["sourceHandle"] == "A-output-0"

    def test_start_message_decodes(self, payload):
        message = decode_message(encode_message(StartMessage(value=payload)))

        assert isinstance(message, StartMessage)
        assert message.value.run_id == "run-1"
        assert message.value.nodes[1].data.input_parameters == {"x": 1}

    def test_error_message_shape(self):
        records = [ExecutedRecord(node_id="C", node_label="Call", data=[{"error": "boom"}])]
        raw = encode_message(error_message("boom", records, "C"))

        assert raw == {
            "key": "error",
            "value": {
                "workflowExecutedData": [
                    {"nodeId": "C", "nodeLabel": "Call", "data": [{"error": "boom"}], "branches": None}
                ],
                "nodeId": "C",
                "message": "boom",
            },
        }

    def test_decode_dispatches_on_key(self):
        assert isinstance(decode_message({"key": "started", "value": "run-1"}), StartedMessage)
        assert isinstance(decode_message({"key": "finish", "value": []}), FinishMessage)
        assert isinstance(decode_message({"key": "error", "value": {"message": "x"}}), ErrorMessage)

    def test_decode_rejects_unknown_key(self):
        with pytest.raises(PayloadError):
            decode_message({"key": "restart", "value": None})

    def test_decode_rejects_non_mapping(self):
        with pytest.raises(PayloadError):
            decode_message("start")

    def test_terminal_keys(self):
        assert TERMINAL_KEYS == {"finish", "error"}


class TestMemoryChannel:
    """Test cases for the in-process channel pair."""

    @pytest.mark.asyncio
    async def test_messages_arrive_in_order(self):
        left, right = memory_channel_pair()

        await left.send(StartedMessage(value="run-1"))
        await left.send(FinishMessage(value=[]))

        first = await right.receive(timeout=1)
        second = await right.receive(timeout=1)
        assert isinstance(first, StartedMessage)
        assert isinstance(second, FinishMessage)

    @pytest.mark.asyncio
    async def test_receive_timeout(self):
        left, _ = memory_channel_pair()
        with pytest.raises(asyncio.TimeoutError):
            await left.receive(timeout=0.01)

    @pytest.mark.asyncio
    async def test_closed_channel_refuses_send(self):
        left, _ = memory_channel_pair()
        left.close()
        with pytest.raises(ChannelClosedError):
            await left.send(StartedMessage())


class TestPipeChannel:
    """Test cases for the multiprocessing pipe channel."""

    @pytest.mark.asyncio
    async def test_round_trip_over_pipe(self):
        a, b = multiprocessing.Pipe(duplex=True)
        left, right = PipeChannel(a), PipeChannel(b)
        try:
            await left.send(error_message("boom", node_id="C"))
            message = await right.receive(timeout=1)
        finally:
            left.close()
            right.close()

        assert isinstance(message, ErrorMessage)
        assert message.value.node_id == "C"

    @pytest.mark.asyncio
    async def test_receive_timeout(self):
        a, b = multiprocessing.Pipe(duplex=True)
        channel = PipeChannel(a)
        try:
            with pytest.raises(asyncio.TimeoutError):
                await channel.receive(timeout=0.01)
        finally:
            channel.close()
            b.close()

    @pytest.mark.asyncio
    async def test_peer_closed(self):
        a, b = multiprocessing.Pipe(duplex=True)
        channel = PipeChannel(a)
        b.close()
        try:
            with pytest.raises(ChannelClosedError):
                await channel.receive(timeout=1)
        finally:
            channel.close()
