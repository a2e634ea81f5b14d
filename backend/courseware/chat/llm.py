"""Chat model access for the assistant.

Conversation history is stored as content-block messages::

    {"role": "user", "content": "text"}
    {"role": "assistant", "content": [{"type": "text", "text": ...},
                                      {"type": "tool_use", "id": ..., "name": ..., "input": {...}}]}
    {"role": "user", "content": [{"type": "tool_result", "tool_use_id": ..., "content": ..., "is_error": bool}]}

:class:`OpenAIChatModel` converts that history to the chat-completions format
for any OpenAI-compatible endpoint and streams the reply back.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Awaitable, Callable, Dict, List, Optional

import openai
from pydantic import BaseModel, Field

from ..config import CHAT_MAX_OUTPUT_TOKENS, CHAT_MODEL, OPENAI_API_KEY, OPENAI_BASE_URL

logger = logging.getLogger(__name__)

TextCallback = Callable[[str], Awaitable[None]]


class ChatModelError(Exception):
    """Raised when the model returns no usable output."""


@dataclass
class ToolCall:
    id: str
    name: str
    input: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ModelReply:
    """One model response: the streamed text and any requested tool calls."""
    text: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)

    def to_message(self) -> Dict[str, Any]:
        """The reply as a stored assistant message."""
        content: List[Dict[str, Any]] = []
        if self.text:
            content.append({"type": "text", "text": self.text})
        for call in self.tool_calls:
            content.append({"type": "tool_use", "id": call.id, "name": call.name, "input": call.input})
        return {"role": "assistant", "content": content}


class ChatModel(ABC):
    """A streaming, tool-calling chat model."""

    @abstractmethod
    async def respond(
        self,
        system: str,
        messages: List[Dict[str, Any]],
        tools: List[Dict[str, Any]],
        on_text: TextCallback,
    ) -> ModelReply:
        """Generate one reply, awaiting ``on_text`` for every text fragment."""


class ChatModelConfig(BaseModel):
    """Configuration for the chat model.

    Any OpenAI-compatible endpoint works by setting ``api_base``.
    """
    model_name: str = Field(default=CHAT_MODEL, description="Model name/identifier")
    api_base: Optional[str] = Field(default=OPENAI_BASE_URL, description="Base URL for the API")
    api_key: Optional[str] = Field(default=OPENAI_API_KEY, description="API key")
    max_tokens: int = Field(default=CHAT_MAX_OUTPUT_TOKENS, description="Maximum number of tokens to generate")
    temperature: float = Field(default=0.3, description="Sampling temperature (0-2)")
    timeout: float = Field(default=120.0, description="Timeout in seconds for API requests")


def to_openai_messages(system: str, messages: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Convert stored content-block history into chat-completions messages."""
    converted: List[Dict[str, Any]] = [{"role": "system", "content": system}]
    for message in messages:
        role = message.get("role")
        content = message.get("content")

        if isinstance(content, str):
            converted.append({"role": role, "content": content})
            continue
        if not isinstance(content, list):
            continue

        if role == "assistant":
            text = "".join(part.get("text", "") for part in content if part.get("type") == "text")
            tool_calls = [
                {
                    "id": part["id"],
                    "type": "function",
                    "function": {"name": part["name"], "arguments": json.dumps(part.get("input") or {})},
                }
                for part in content if part.get("type") == "tool_use"
            ]
            entry: Dict[str, Any] = {"role": "assistant", "content": text or None}
            if tool_calls:
                entry["tool_calls"] = tool_calls
            converted.append(entry)
            continue

        texts = []
        for part in content:
            if part.get("type") == "tool_result":
                converted.append({
                    "role": "tool",
                    "tool_call_id": part.get("tool_use_id"),
                    "content": str(part.get("content", "")),
                })
            elif part.get("type") == "text":
                texts.append(part.get("text", ""))
        if texts:
            converted.append({"role": "user", "content": "\n".join(texts)})
    return converted


def to_openai_tools(tools: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "type": "function",
            "function": {
                "name": tool["name"],
                "description": tool["description"],
                "parameters": tool["parameters"],
            },
        }
        for tool in tools
    ]


def _parse_arguments(name: str, raw: str) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Tool call {name} had invalid JSON arguments")
        return {}
    return value if isinstance(value, dict) else {}


class OpenAIChatModel(ChatModel):
    """Chat model backed by the OpenAI async client."""

    def __init__(self, model_config: Optional[ChatModelConfig] = None,
                 openai_client: Optional[openai.AsyncOpenAI] = None):
        self.model_config = model_config or ChatModelConfig()
        # Lazy load OpenAI client when needed
        self._openai_client = openai_client

    def _get_openai_client(self):
        if self._openai_client is None:
            kwargs: Dict[str, Any] = {"timeout": self.model_config.timeout}
            if self.model_config.api_key:
                kwargs["api_key"] = self.model_config.api_key
            if self.model_config.api_base:
                kwargs["base_url"] = self.model_config.api_base
            self._openai_client = openai.AsyncOpenAI(**kwargs)
        return self._openai_client

    async def respond(self, system, messages, tools, on_text) -> ModelReply:
        client = self._get_openai_client()
        request: Dict[str, Any] = {
            "model": self.model_config.model_name,
            "messages": to_openai_messages(system, messages),
            "max_tokens": self.model_config.max_tokens,
            "temperature": self.model_config.temperature,
            "stream": True,
        }
        if tools:
            request["tools"] = to_openai_tools(tools)

        stream = await client.chat.completions.create(**request)

        text_parts: List[str] = []
        pending: Dict[int, Dict[str, str]] = {}
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta.content:
                text_parts.append(delta.content)
                await on_text(delta.content)
            for call in delta.tool_calls or []:
                entry = pending.setdefault(call.index, {"id": "", "name": "", "arguments": ""})
                if call.id:
                    entry["id"] = call.id
                if call.function is not None:
                    if call.function.name:
                        entry["name"] += call.function.name
                    if call.function.arguments:
                        entry["arguments"] += call.function.arguments

        reply = ModelReply(
            text="".join(text_parts),
            tool_calls=[
                ToolCall(id=entry["id"], name=entry["name"], input=_parse_arguments(entry["name"], entry["arguments"]))
                for _, entry in sorted(pending.items())
            ],
        )
        if not reply.text and not reply.tool_calls:
            raise ChatModelError("No output generated")
        return reply


@lru_cache(maxsize=1)
def _default_chat_model() -> OpenAIChatModel:
    return OpenAIChatModel()


def get_chat_model() -> ChatModel:
    """Dependency returning the shared chat model."""
    return _default_chat_model()
