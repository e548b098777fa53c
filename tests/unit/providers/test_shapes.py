"""Tests for decoding upstream completion payloads."""

import pytest

from edge_ai_dispatch.core.exceptions import AIError, AIErrorCode
from edge_ai_dispatch.providers.shapes import decode_completion, decode_stream_chunk


def test_decodes_edge_response_shape():
    completion = decode_completion(
        {"response": "hello", "usage": {"prompt_tokens": 3, "completion_tokens": 2}}
    )
    assert completion.text == "hello"
    assert completion.shape == "edge"
    assert completion.tool_calls == []
    assert completion.usage.input_tokens == 3
    assert completion.usage.output_tokens == 2


def test_decodes_edge_tool_calls_with_dict_arguments():
    completion = decode_completion(
        {"response": None, "tool_calls": [{"name": "lookup", "arguments": {"q": "x"}}]}
    )
    assert completion.finish_reason == "tool_calls"
    [call] = completion.tool_calls
    assert call.name == "lookup"
    assert call.arguments == {"q": "x"}
    assert call.id == "call_0"


def test_decodes_chat_completion_shape(completion_payload, tool_call_payload):
    payload = completion_payload(
        None,
        tool_calls=[tool_call_payload("call_a", "add", {"a": 1, "b": 2})],
        finish_reason="tool_calls",
        usage={"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    )
    completion = decode_completion(payload, "openai/gpt-4o")
    assert completion.shape == "chat_completion"
    assert completion.text == ""
    [call] = completion.tool_calls
    assert (call.id, call.name, call.arguments) == ("call_a", "add", {"a": 1, "b": 2})
    assert completion.usage.total_tokens == 15


def test_malformed_tool_arguments_are_recorded_not_raised(completion_payload, tool_call_payload):
    payload = completion_payload(None, tool_calls=[tool_call_payload("c1", "add", "{not json")])
    [call] = decode_completion(payload).tool_calls
    assert call.arguments == {}
    assert "not valid JSON" in call.argument_error


def test_non_object_arguments_are_rejected(completion_payload, tool_call_payload):
    payload = completion_payload(None, tool_calls=[tool_call_payload("c1", "add", "[1, 2]")])
    [call] = decode_completion(payload).tool_calls
    assert "must be a JSON object" in call.argument_error


@pytest.mark.parametrize("payload", [{"data": 1}, ["response"], "text", {"choices": []}])
def test_unknown_or_malformed_shapes_raise_invalid_response(payload):
    with pytest.raises(AIError) as exc_info:
        decode_completion(payload, "some/model")
    assert exc_info.value.code is AIErrorCode.INVALID_RESPONSE
    assert exc_info.value.model == "some/model"


def test_stream_chunk_shapes():
    assert decode_stream_chunk({"choices": [{"delta": {"content": "hi"}}]}).text == "hi"
    assert decode_stream_chunk({"response": "yo"}).text == "yo"
    usage_only = decode_stream_chunk({"usage": {"prompt_tokens": 1, "completion_tokens": 1}})
    assert usage_only.text is None
    assert usage_only.usage.total_tokens == 2
    assert decode_stream_chunk({"other": True}) is None
    assert decode_stream_chunk([1, 2]) is None
