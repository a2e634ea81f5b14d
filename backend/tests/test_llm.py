"""Tests for the OpenAI-backed chat model and history conversion."""
import json

import httpx
import openai
import pytest

from courseware.chat.llm import (
    ChatModelConfig, ChatModelError, OpenAIChatModel, _parse_arguments, to_openai_messages, to_openai_tools,
)


def chunk(delta, finish_reason=None):
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion.chunk",
        "created": 1700000000,
        "model": "test-model",
        "choices": [{"index": 0, "delta": delta, "finish_reason": finish_reason}],
    }


def sse(*chunks):
    body = "".join(f"data: {json.dumps(c)}\n\n" for c in chunks) + "data: [DONE]\n\n"
    return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=body.encode("utf-8"))


def streaming_model(*chunks, requests=None):
    def handler(request):
        if requests is not None:
            requests.append(json.loads(request.content))
        return sse(*chunks)

    client = openai.AsyncOpenAI(
        api_key="test-key",
        base_url="http://model.test/v1",
        max_retries=0,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return OpenAIChatModel(ChatModelConfig(model_name="test-model", max_tokens=256), openai_client=client)


class Collector:
    def __init__(self):
        self.fragments = []

    async def __call__(self, text):
        self.fragments.append(text)


TOOLS = [{
    "name": "delete_block",
    "description": "Delete a block",
    "parameters": {"type": "object", "properties": {"index": {"type": "integer"}}, "required": ["index"]},
}]


class TestConversion:

    def test_history_with_tool_calls(self):
        history = [
            {"role": "user", "content": "Remove the first block"},
            {"role": "assistant", "content": [
                {"type": "text", "text": "Removing it."},
                {"type": "tool_use", "id": "call_1", "name": "delete_block", "input": {"index": 0}},
            ]},
            {"role": "user", "content": [
                {"type": "tool_result", "tool_use_id": "call_1", "content": "Deleted block 0.", "is_error": False},
            ]},
            {"role": "assistant", "content": [{"type": "text", "text": "Done."}]},
        ]

        converted = to_openai_messages("Be brief.", history)

        assert converted == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Remove the first block"},
            {"role": "assistant", "content": "Removing it.", "tool_calls": [{
                "id": "call_1",
                "type": "function",
                "function": {"name": "delete_block", "arguments": '{"index": 0}'},
            }]},
            {"role": "tool", "tool_call_id": "call_1", "content": "Deleted block 0."},
            {"role": "assistant", "content": "Done."},
        ]

    def test_tool_only_turn_has_no_text(self):
        history = [{"role": "assistant", "content": [
            {"type": "tool_use", "id": "call_2", "name": "get_assignment_state", "input": {}},
        ]}]

        assistant = to_openai_messages("", history)[1]

        assert assistant["content"] is None
        assert assistant["tool_calls"][0]["function"]["arguments"] == "{}"

    def test_user_text_parts_are_joined_and_junk_skipped(self):
        history = [
            {"role": "user", "content": [{"type": "text", "text": "one"}, {"type": "text", "text": "two"}]},
            {"role": "user", "content": 42},
        ]

        assert to_openai_messages("s", history)[1:] == [{"role": "user", "content": "one\ntwo"}]

    def test_tools(self):
        assert to_openai_tools(TOOLS) == [{
            "type": "function",
            "function": {"name": "delete_block", "description": "Delete a block", "parameters": TOOLS[0]["parameters"]},
        }]

    @pytest.mark.parametrize("raw,expected", [
        ('{"index": 2}', {"index": 2}),
        ("", {}),
        ("{not json", {}),
        ("[1, 2]", {}),
    ])
    def test_parse_arguments(self, raw, expected):
        assert _parse_arguments("delete_block", raw) == expected


class TestOpenAIChatModel:

    @pytest.mark.asyncio
    async def test_streams_text(self):
        requests = []
        model = streaming_model(
            chunk({"role": "assistant", "content": ""}),
            chunk({"content": "Hello"}),
            chunk({"content": " there"}),
            chunk({}, finish_reason="stop"),
            requests=requests,
        )
        on_text = Collector()

        reply = await model.respond("Be brief.", [{"role": "user", "content": "Hi"}], [], on_text)

        assert reply.text == "Hello there"
        assert reply.tool_calls == []
        assert on_text.fragments == ["Hello", " there"]

        sent = requests[0]
        assert sent["model"] == "test-model"
        assert sent["stream"] is True
        assert sent["max_tokens"] == 256
        assert sent["messages"][0] == {"role": "system", "content": "Be brief."}
        assert "tools" not in sent

    @pytest.mark.asyncio
    async def test_tool_call_deltas_are_merged(self):
        requests = []
        model = streaming_model(
            chunk({"content": "Deleting."}),
            chunk({"tool_calls": [{"index": 0, "id": "call_a", "type": "function",
                                   "function": {"name": "delete_block", "arguments": ""}}]}),
            chunk({"tool_calls": [{"index": 1, "id": "call_b", "type": "function",
                                   "function": {"name": "delete_block", "arguments": '{"ind'}}]}),
            chunk({"tool_calls": [{"index": 0, "function": {"arguments": '{"index"'}}]}),
            chunk({"tool_calls": [{"index": 0, "function": {"arguments": ": 3}"}}]}),
            chunk({"tool_calls": [{"index": 1, "function": {"arguments": 'ex": 1}'}}]}),
            chunk({}, finish_reason="tool_calls"),
            requests=requests,
        )

        reply = await model.respond("s", [{"role": "user", "content": "Remove two blocks"}], TOOLS, Collector())

        assert reply.text == "Deleting."
        assert [(call.id, call.name, call.input) for call in reply.tool_calls] == [
            ("call_a", "delete_block", {"index": 3}),
            ("call_b", "delete_block", {"index": 1}),
        ]
        assert requests[0]["tools"][0]["function"]["name"] == "delete_block"
        assert reply.to_message()["content"][1] == {
            "type": "tool_use", "id": "call_a", "name": "delete_block", "input": {"index": 3},
        }

    @pytest.mark.asyncio
    async def test_empty_output_raises(self):
        model = streaming_model(chunk({"role": "assistant", "content": ""}), chunk({}, finish_reason="stop"))

        with pytest.raises(ChatModelError, match="No output generated"):
            await model.respond("s", [{"role": "user", "content": "Hi"}], [], Collector())
