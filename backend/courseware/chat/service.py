"""Assistant chat: session storage and the streaming tool-calling loop."""
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import openai
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth.service import require_author
from ..config import AI_MEMORY_MAX_CHARS, CHAT_MAX_TOOL_ITERATIONS
from ..errors import AuthorizationError, CoursewareError, NotFoundError
from ..models import Assignment, ChatMemory, ChatSession, User
from . import events
from .llm import ChatModel
from .tools import ChatToolExecutor, get_tool_definitions

logger = logging.getLogger(__name__)

Send = Callable[[events.Frame], Awaitable[None]]

DEFAULT_TIMEZONE = "America/New_York"

TOOL_CAP_NOTICE = (
    "\n\n*I've reached the maximum number of tool calls for this message. "
    "Please send another message to continue.*"
)

GENERIC_ERROR = "An error occurred while processing your message."
BUSY_ERROR = "The AI service is currently busy. Please try again in a moment."
ACCESS_DENIED_ERROR = "AI service access denied. Please contact support."
NO_OUTPUT_ERROR = "The AI failed to generate a response. Please try again or rephrase your message."

_BUSY_MARKERS = ("throttl", "rate limit", "429", "Too Many Requests", "RESOURCE_EXHAUSTED")
_NO_OUTPUT_MARKERS = ("No output generated", "InvalidPrompt")


def describe_model_error(exc: Exception) -> str:
    """User-facing message for a failed chat turn."""
    if isinstance(exc, openai.RateLimitError):
        return BUSY_ERROR
    if isinstance(exc, openai.PermissionDeniedError):
        return ACCESS_DENIED_ERROR

    message = str(exc)
    if any(marker in message for marker in _BUSY_MARKERS):
        return BUSY_ERROR
    if "Access denied" in message:
        return ACCESS_DENIED_ERROR
    if any(marker in message for marker in _NO_OUTPUT_MARKERS):
        return NO_OUTPUT_ERROR
    return GENERIC_ERROR


def _local_time(timezone: str) -> str:
    now = datetime.now(ZoneInfo(timezone))
    return now.strftime("%A, %B %d, %Y at %I:%M %p")


def resolve_timezone(timezone: Optional[str]) -> str:
    if not timezone:
        return DEFAULT_TIMEZONE
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {timezone!r}, using {DEFAULT_TIMEZONE}")
        return DEFAULT_TIMEZONE
    return timezone


def build_system_prompt(assignment_name: str, course_name: str, timezone: str,
                        memories: Optional[List[str]] = None) -> str:
    prompt = f"""You are an assistant helping instructors build educational assignments. You can create, edit, delete, and reorder assignment blocks.

CURRENT CONTEXT:
- Assignment: "{assignment_name}"
- Course: "{course_name}"
- Current date/time: {_local_time(timezone)}
- Instructor's timezone: {timezone}

WORKFLOW:
- When asked about the current assignment, call get_assignment_state first
- Explain what you're doing conversationally
- After making changes, briefly confirm what was done
- When the instructor references another assignment, use list_course_assignments to find it, then read_other_assignment to see its structure

BLOCK TYPES:
Provide the full JSON node as the "content" parameter of create_block.
- paragraph: {{ "type": "paragraph", "content": [{{ "type": "text", "text": "..." }}] }}
- heading: {{ "type": "heading", "attrs": {{ "level": 1-6 }}, "content": [{{ "type": "text", "text": "..." }}] }}
- bulletList / orderedList: {{ "type": "bulletList", "content": [{{ "type": "listItem", "content": [{{ "type": "paragraph", ... }}] }}] }}
- codeBlock: {{ "type": "codeBlock", "attrs": {{ "language": "python" }}, "content": [{{ "type": "text", "text": "code here" }}] }}
- blockquote: {{ "type": "blockquote", "content": [{{ "type": "paragraph", ... }}] }}
- horizontalRule: {{ "type": "horizontalRule" }}
- mcqBlock:
  {{
    "type": "mcqBlock",
    "attrs": {{
      "mcqData": {{
        "id": "uuid",
        "question": "<p>HTML question text</p>",
        "options": [
          {{ "id": "uuid", "text": "<p>Option text</p>", "isCorrect": true }},
          {{ "id": "uuid", "text": "<p>Option text</p>", "isCorrect": false }}
        ],
        "allowMultiple": false,
        "points": 1,
        "explanation": "optional explanation"
      }}
    }}
  }}

RULES:
1. Generate unique UUIDs for all id fields
2. Questions and options are HTML strings wrapped in <p> tags
3. Every MCQ needs at least two options and at least one correct option
4. When editing MCQ blocks, do NOT change allowCheckAnswer unless the instructor explicitly asks
5. When updating settings, ONLY include the settings the instructor asked to change
6. The assignment title ("{assignment_name}") is separate from heading blocks; use update_assignment_title to rename it
7. Other assignments are read-only references
8. When the instructor states a lasting preference ("always...", "never...", "remember..."), call save_memory"""

    if memories:
        listed = "\n".join(f"- {memory}" for memory in memories)
        prompt += f"""

COURSE MEMORIES (persisted context from previous sessions):
{listed}

These memories apply to ALL assignments in this course. Follow them unless the instructor explicitly overrides one."""
    return prompt


class ChatService:
    def __init__(self, db: Session):
        self.db = db

    def _assignment_for_author(self, assignment_id: str, user: User) -> Assignment:
        assignment = self.db.get(Assignment, assignment_id)
        if assignment is None:
            raise NotFoundError("Assignment")
        require_author(self.db, user, assignment.course_id)
        return assignment

    # Sessions

    def list_sessions(self, assignment_id: str, user: User) -> List[ChatSession]:
        self._assignment_for_author(assignment_id, user)
        return (
            self.db.query(ChatSession)
            .filter(ChatSession.assignment_id == assignment_id, ChatSession.user_id == user.id)
            .order_by(ChatSession.updated_at.desc())
            .all()
        )

    def create_session(self, assignment_id: str, user: User, title: Optional[str] = None) -> ChatSession:
        self._assignment_for_author(assignment_id, user)
        session = ChatSession(assignment_id=assignment_id, user_id=user.id, title=title, messages=[])
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        logger.info(f"User {user.id} started chat session {session.id} on assignment {assignment_id}")
        return session

    def get_session(self, session_id: str, user: User) -> ChatSession:
        session = self.db.get(ChatSession, session_id)
        if session is None:
            raise NotFoundError("Session")
        if session.user_id != user.id and not user.is_admin:
            raise AuthorizationError("You can only access your own sessions")
        return session

    def delete_session(self, session_id: str, user: User) -> None:
        session = self.get_session(session_id, user)
        self.db.delete(session)
        self.db.commit()

    # Turns

    def _memories(self, course_id: str) -> List[str]:
        rows = (
            self.db.query(ChatMemory)
            .filter(ChatMemory.course_id == course_id)
            .order_by(ChatMemory.created_at)
            .all()
        )
        return [row.content for row in rows]

    async def handle_message(self, send: Send, model: ChatModel, user: User, session_id: str,
                             assignment_id: str, message: str, timezone: Optional[str] = None) -> None:
        """Run one turn: stream the reply, execute tools and persist history.

        Every outcome ends with exactly one ``chat-complete`` or ``chat-error``
        frame.
        """
        try:
            session = self.get_session(session_id, user)
            if session.assignment_id != assignment_id:
                raise NotFoundError("Chat session")
            assignment = self._assignment_for_author(assignment_id, user)
        except CoursewareError as e:
            await send(events.chat_error(session_id, e.message))
            return

        try:
            await self._run_turn(send, model, user, session, assignment, message, timezone)
        except Exception as e:
            logger.error(f"Chat turn failed for session {session_id} on assignment {assignment_id}: {e}")
            self.db.rollback()
            await send(events.chat_error(session_id, describe_model_error(e)))

    async def _run_turn(self, send: Send, model: ChatModel, user: User, session: ChatSession,
                        assignment: Assignment, message: str, timezone: Optional[str]) -> None:
        course = assignment.course
        memory_enabled = course.memory_enabled
        timezone = resolve_timezone(timezone)
        system = build_system_prompt(assignment.name, course.name, timezone, self._memories(course.id))
        tools = get_tool_definitions(memory_enabled)
        executor = ChatToolExecutor(
            self.db, assignment, user, send,
            memory_enabled=memory_enabled,
            memory_budget=course.memory_budget(AI_MEMORY_MAX_CHARS),
        )

        history: List[Dict[str, Any]] = list(session.messages or [])
        history.append({"role": "user", "content": message})

        async def on_text(text: str) -> None:
            await send(events.chat_text(session.id, text))

        for _ in range(CHAT_MAX_TOOL_ITERATIONS):
            reply = await model.respond(system, history, tools, on_text)
            history.append(reply.to_message())
            if not reply.tool_calls:
                break

            results = []
            for call in reply.tool_calls:
                await send(events.tool_call_start(session.id, call.name, call.input, call.id))
                is_error = False
                try:
                    result = await executor.execute(call.name, call.input)
                except Exception as e:
                    logger.error(f"Tool {call.name} failed in session {session.id}: {e}")
                    if isinstance(e, SQLAlchemyError):
                        self.db.rollback()
                    result = f"Error: {e}"
                    is_error = True
                await send(events.tool_call_complete(session.id, call.name, call.id, result, is_error))
                results.append({
                    "type": "tool_result",
                    "tool_use_id": call.id,
                    "content": result,
                    "is_error": is_error,
                })
            history.append({"role": "user", "content": results})
        else:
            await send(events.chat_text(session.id, TOOL_CAP_NOTICE))

        session.messages = history
        self.db.commit()
        await send(events.chat_complete(session.id))
