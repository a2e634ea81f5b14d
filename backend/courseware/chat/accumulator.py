"""Client-side assembly of a streamed assistant turn.

Frames from the chat socket are folded into ordered display parts: text
segments and tool calls. ``chat-complete`` turns the parts into a permanent
message; ``chat-error`` discards them.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from . import events

logger = logging.getLogger(__name__)


class ToolStatus(str, enum.Enum):
    none = "none"
    running = "running"
    complete = "complete"


@dataclass
class TextPart:
    text: str = ""
    kind: str = "text"


@dataclass
class ToolCallPart:
    tool_id: str
    tool_name: str
    tool_input: Dict[str, Any] = field(default_factory=dict)
    status: ToolStatus = ToolStatus.running
    result: Optional[str] = None
    is_error: bool = False
    kind: str = "tool"


Part = Union[TextPart, ToolCallPart]


@dataclass
class DisplayMessage:
    role: str
    parts: List[Part] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.parts if isinstance(part, TextPart))


class ChatTurnAccumulator:
    """Folds chat socket frames into display messages.

    ``on_block_mutation`` is called once per mutation frame (block edits,
    title and settings changes) so the editor can reload content. Tool
    completions alone never trigger it.
    """

    def __init__(self, on_block_mutation: Optional[Callable[[Dict[str, Any]], None]] = None):
        self.on_block_mutation = on_block_mutation
        self.messages: List[DisplayMessage] = []
        self.parts: List[Part] = []
        self.error: Optional[str] = None
        self.streaming = False

    def add_user_message(self, text: str) -> None:
        self.messages.append(DisplayMessage(role="user", parts=[TextPart(text=text)]))
        self.error = None
        self.streaming = True

    def handle(self, message: Dict[str, Any]) -> None:
        """Apply one ``{"event", "data"}`` frame."""
        event = message.get("event")
        data = message.get("data") or {}

        if event == events.CHAT_TEXT:
            self.append_text(data.get("text", ""))
        elif event == events.TOOL_CALL_START:
            self.start_tool(data.get("toolId"), data.get("toolName"), data.get("toolInput") or {})
        elif event == events.TOOL_CALL_COMPLETE:
            self.complete_tool(data.get("toolId"), data.get("result"), bool(data.get("isError")))
        elif event == events.CHAT_COMPLETE:
            self.complete()
        elif event == events.CHAT_ERROR:
            self.fail(data.get("message") or "Something went wrong")
        elif event in events.MUTATION_EVENTS:
            self._notify(data)
        else:
            logger.debug(f"Ignoring chat event {event}")

    def append_text(self, text: str) -> None:
        if not text:
            return
        if self.parts and isinstance(self.parts[-1], TextPart):
            self.parts[-1].text += text
        else:
            self.parts.append(TextPart(text=text))

    def start_tool(self, tool_id: str, tool_name: str, tool_input: Dict[str, Any]) -> None:
        self.parts.append(ToolCallPart(tool_id=tool_id, tool_name=tool_name, tool_input=tool_input))

    def complete_tool(self, tool_id: str, result: Optional[str], is_error: bool = False) -> None:
        for part in self.parts:
            if isinstance(part, ToolCallPart) and part.tool_id == tool_id:
                part.status = ToolStatus.complete
                part.result = result
                part.is_error = is_error
                return
        logger.debug(f"Completion for unknown tool call {tool_id}")

    def complete(self) -> None:
        if self.parts:
            self.messages.append(DisplayMessage(role="assistant", parts=self.parts))
        self.parts = []
        self.streaming = False

    def fail(self, message: str) -> None:
        self.parts = []
        self.error = message
        self.streaming = False

    def _notify(self, details: Dict[str, Any]) -> None:
        if self.on_block_mutation is not None:
            self.on_block_mutation(details)


def parse_stored_messages(messages: List[Dict[str, Any]]) -> List[DisplayMessage]:
    """Convert persisted session history into display messages.

    Tool results are hidden and stored tool calls show as complete.
    """
    display: List[DisplayMessage] = []
    for message in messages or []:
        role = message.get("role")
        content = message.get("content")

        if isinstance(content, str):
            if content:
                display.append(DisplayMessage(role=role, parts=[TextPart(text=content)]))
            continue
        if not isinstance(content, list):
            continue

        parts: List[Part] = []
        for block in content:
            block_type = block.get("type")
            if block_type == "text" and block.get("text"):
                parts.append(TextPart(text=block["text"]))
            elif block_type == "tool_use":
                parts.append(ToolCallPart(
                    tool_id=block.get("id", ""),
                    tool_name=block.get("name", ""),
                    tool_input=block.get("input") or {},
                    status=ToolStatus.complete,
                ))
        if not parts:
            continue

        # Consecutive assistant messages form one turn in the transcript.
        if role == "assistant" and display and display[-1].role == "assistant":
            display[-1].parts.extend(parts)
        else:
            display.append(DisplayMessage(role=role, parts=parts))
    return display
