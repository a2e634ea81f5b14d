"""Event names and payload builders for the chat WebSocket protocol.

Every frame is a JSON object ``{"event": <name>, "data": {...}}`` in both
directions. The client sends ``send-message``; everything else flows from
the server.
"""

from typing import Any, Dict, Optional

SEND_MESSAGE = "send-message"

CHAT_TEXT = "chat-text"
TOOL_CALL_START = "tool-call-start"
TOOL_CALL_COMPLETE = "tool-call-complete"
CHAT_COMPLETE = "chat-complete"
CHAT_ERROR = "chat-error"

BLOCK_MUTATION = "block-mutation"
ASSIGNMENT_TITLE_UPDATED = "assignment-title-updated"
ASSIGNMENT_SETTINGS_CHANGED = "assignment-settings-changed"

MUTATION_EVENTS = (BLOCK_MUTATION, ASSIGNMENT_TITLE_UPDATED, ASSIGNMENT_SETTINGS_CHANGED)

Frame = Dict[str, Any]


def frame(event: str, **data: Any) -> Frame:
    return {"event": event, "data": data}


def chat_text(session_id: str, text: str) -> Frame:
    return frame(CHAT_TEXT, text=text, sessionId=session_id)


def tool_call_start(session_id: str, tool_name: str, tool_input: Dict[str, Any], tool_id: str) -> Frame:
    return frame(TOOL_CALL_START, toolName=tool_name, toolInput=tool_input, toolId=tool_id, sessionId=session_id)


def tool_call_complete(session_id: str, tool_name: str, tool_id: str, result: str, is_error: bool) -> Frame:
    return frame(
        TOOL_CALL_COMPLETE,
        toolName=tool_name,
        toolId=tool_id,
        result=result,
        isError=is_error,
        sessionId=session_id,
    )


def chat_complete(session_id: str) -> Frame:
    return frame(CHAT_COMPLETE, sessionId=session_id)


def chat_error(session_id: Optional[str], message: str) -> Frame:
    return frame(CHAT_ERROR, message=message, sessionId=session_id)


def block_mutation(assignment_id: str, mutation: str, **details: Any) -> Frame:
    """``mutation`` is one of create, edit, delete or reorder."""
    return frame(BLOCK_MUTATION, type=mutation, assignmentId=assignment_id, **details)


def assignment_title_updated(assignment_id: str, title: str) -> Frame:
    return frame(ASSIGNMENT_TITLE_UPDATED, assignmentId=assignment_id, title=title)


def assignment_settings_changed(assignment_id: str, settings: Dict[str, Any]) -> Frame:
    return frame(ASSIGNMENT_SETTINGS_CHANGED, assignmentId=assignment_id, settings=settings)
