"""Tools the assistant can call while editing an assignment.

Each tool returns a plain-text result for the model. Problems the model can
fix (bad indices, missing arguments) raise :class:`ToolError`, which the chat
loop reports back as an error result rather than failing the turn.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, List

from sqlalchemy.orm import Session

from ..assignments.service import AssignmentService
from ..config import AI_MEMORY_MAX_CHARS, AI_MEMORY_MAX_ENTRY_CHARS
from ..content import insert_block, move_block, parse_content, remove_block, replace_block, summarize_block
from ..models import Assignment, ChatMemory, CourseRole, Enrollment, User
from . import events

logger = logging.getLogger(__name__)

Emit = Callable[[events.Frame], Awaitable[None]]

SETTINGS_FIELDS = {
    "allowLateSubmissions": ("boolean", "Whether students may submit after the due date."),
    "allowResubmissions": ("boolean", "Whether students may resubmit after submitting."),
    "showResponsesAfterSubmission": ("boolean", "Whether students see their responses after submitting."),
    "showScoreAfterSubmission": ("boolean", "Whether students see their score after submitting."),
    "timeLimitSeconds": ("integer", "Time limit in seconds, or null for no limit."),
}

BLOCK_TYPES = (
    "paragraph, heading, bulletList, orderedList, codeBlock, blockquote, horizontalRule, "
    "mcqBlock, fillInTheBlankBlock, shortAnswerBlock, pollBlock"
)

TOOL_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "name": "get_assignment_state",
        "description": (
            "Read the current assignment block structure. Returns a summary of all blocks with their types, "
            "indices, and content summaries. Call this first when the user asks about or wants to modify "
            "existing content."
        ),
        "parameters": {"type": "object", "properties": {}},
    },
    {
        "name": "create_block",
        "description": (
            "Insert a new block into the assignment at a specific position. The block will appear at the "
            "given index, pushing existing blocks down."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "block_type": {"type": "string", "description": f"The type of block to create. One of: {BLOCK_TYPES}"},
                "position": {
                    "type": "integer",
                    "description": "The 0-based index where the block should be inserted. Use -1 to append at the end.",
                },
                "content": {
                    "type": "object",
                    "description": "The full JSON node for the block (including type and attrs).",
                },
            },
            "required": ["block_type", "position", "content"],
        },
    },
    {
        "name": "edit_block",
        "description": "Modify an existing block's content. Replaces the block at the given index with the updated content.",
        "parameters": {
            "type": "object",
            "properties": {
                "block_index": {"type": "integer", "description": "The 0-based index of the block to edit."},
                "updated_content": {
                    "type": "object",
                    "description": "The full updated JSON node for the block (including type and attrs).",
                },
            },
            "required": ["block_index", "updated_content"],
        },
    },
    {
        "name": "delete_block",
        "description": "Remove a block from the assignment at the given index.",
        "parameters": {
            "type": "object",
            "properties": {
                "block_index": {"type": "integer", "description": "The 0-based index of the block to delete."},
            },
            "required": ["block_index"],
        },
    },
    {
        "name": "reorder_blocks",
        "description": "Move a block from one position to another.",
        "parameters": {
            "type": "object",
            "properties": {
                "from_index": {"type": "integer", "description": "The current 0-based index of the block to move."},
                "to_index": {"type": "integer", "description": "The target 0-based index to move the block to."},
            },
            "required": ["from_index", "to_index"],
        },
    },
    {
        "name": "get_assignment_settings",
        "description": "Read the assignment's title, publish state and settings.",
        "parameters": {"type": "object", "properties": {}},
    },
    {
        "name": "update_assignment_title",
        "description": "Rename the assignment.",
        "parameters": {
            "type": "object",
            "properties": {"title": {"type": "string", "description": "The new assignment title."}},
            "required": ["title"],
        },
    },
    {
        "name": "update_assignment_settings",
        "description": (
            "Update assignment settings. Only include the settings you want to change; "
            "omitted settings keep their current values."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                key: {"type": [json_type, "null"] if key == "timeLimitSeconds" else json_type, "description": text}
                for key, (json_type, text) in SETTINGS_FIELDS.items()
            },
        },
    },
    {
        "name": "list_course_assignments",
        "description": "List every assignment in this course grouped by module folder, with their ids.",
        "parameters": {"type": "object", "properties": {}},
    },
    {
        "name": "read_other_assignment",
        "description": (
            "Read the block structure of another assignment in the same course (read-only). "
            "Use list_course_assignments to find its id."
        ),
        "parameters": {
            "type": "object",
            "properties": {"assignment_id": {"type": "string", "description": "The id of the assignment to read."}},
            "required": ["assignment_id"],
        },
    },
    {
        "name": "save_memory",
        "description": (
            "Save important context to course memory that persists across all chat sessions in this course. "
            "Call this whenever the instructor expresses a lasting preference, rule, or standard. "
            f"Each memory should be a concise, self-contained statement (max {AI_MEMORY_MAX_ENTRY_CHARS} chars)."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "content": {
                    "type": "string",
                    "description": "A concise directive capturing the preference, e.g. 'Always use Python type hints'.",
                },
            },
            "required": ["content"],
        },
    },
]


def get_tool_definitions(memory_enabled: bool = True) -> List[Dict[str, Any]]:
    """Tools offered to the model; ``save_memory`` only when course memory is on."""
    return [tool for tool in TOOL_DEFINITIONS if memory_enabled or tool["name"] != "save_memory"]


class ToolError(Exception):
    """A tool call the model should correct and retry."""


def _int_arg(tool_input: Dict[str, Any], key: str) -> int:
    value = tool_input.get(key)
    if isinstance(value, bool):
        raise ToolError(f"{key} must be an integer")
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
    raise ToolError(f"{key} must be an integer")


def _node_arg(tool_input: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = tool_input.get(key)
    if not isinstance(value, dict):
        raise ToolError(f"{key} must be a JSON object describing the block")
    return value


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    return str(value)


class ChatToolExecutor:
    """Runs tool calls against one assignment on behalf of one user."""

    def __init__(self, db: Session, assignment: Assignment, user: User, emit: Emit,
                 memory_enabled: bool = True, memory_budget: int = AI_MEMORY_MAX_CHARS):
        self.db = db
        self.assignment = assignment
        self.user = user
        self.emit = emit
        self.memory_enabled = memory_enabled
        self.memory_budget = memory_budget
        self.assignments = AssignmentService(db)

    async def execute(self, name: str, tool_input: Dict[str, Any]) -> str:
        handler = getattr(self, f"tool_{name}", None)
        if handler is None or (name == "save_memory" and not self.memory_enabled):
            raise ToolError(f"Unknown tool: {name}")
        logger.info(f"Executing tool {name} on assignment {self.assignment.id}")
        return await handler(tool_input or {})

    def _blocks(self) -> Dict[str, Any]:
        return self.assignments.load_document(self.assignment)

    async def tool_get_assignment_state(self, tool_input: Dict[str, Any]) -> str:
        blocks = self._blocks()["content"]
        if not blocks:
            return "The assignment is currently empty. No blocks have been added yet."
        summaries = "\n".join(summarize_block(block, i) for i, block in enumerate(blocks))
        return f"Assignment has {len(blocks)} block(s):\n{summaries}"

    async def tool_create_block(self, tool_input: Dict[str, Any]) -> str:
        node = dict(_node_arg(tool_input, "content"))
        block_type = tool_input.get("block_type") or node.get("type")
        if not isinstance(block_type, str) or not block_type:
            raise ToolError("block_type is required")
        node.setdefault("type", block_type)
        position = _int_arg(tool_input, "position") if "position" in tool_input else -1

        doc = self._blocks()
        index = insert_block(doc, node, position)
        self.assignments.save_document(self.assignment, doc)

        await self.emit(events.block_mutation(self.assignment.id, "create", blockIndex=index, blockType=block_type))
        return f"Created {block_type} block at position {index}. The assignment now has {len(doc['content'])} blocks."

    async def tool_edit_block(self, tool_input: Dict[str, Any]) -> str:
        index = _int_arg(tool_input, "block_index")
        node = _node_arg(tool_input, "updated_content")

        doc = self._blocks()
        old_type = doc["content"][index]["type"] if 0 <= index < len(doc["content"]) else None
        replace_block(doc, index, node)
        self.assignments.save_document(self.assignment, doc)

        block_type = node.get("type") or old_type
        await self.emit(events.block_mutation(self.assignment.id, "edit", blockIndex=index, blockType=block_type))
        return f"Updated block at position {index} ({block_type})."

    async def tool_delete_block(self, tool_input: Dict[str, Any]) -> str:
        index = _int_arg(tool_input, "block_index")

        doc = self._blocks()
        removed = remove_block(doc, index)
        self.assignments.save_document(self.assignment, doc)

        removed_type = removed.get("type")
        await self.emit(events.block_mutation(self.assignment.id, "delete", blockIndex=index, blockType=removed_type))
        return (
            f"Deleted {removed_type} block from position {index}. "
            f"The assignment now has {len(doc['content'])} blocks."
        )

    async def tool_reorder_blocks(self, tool_input: Dict[str, Any]) -> str:
        from_index = _int_arg(tool_input, "from_index")
        to_index = _int_arg(tool_input, "to_index")

        doc = self._blocks()
        move_block(doc, from_index, to_index)
        self.assignments.save_document(self.assignment, doc)

        await self.emit(events.block_mutation(self.assignment.id, "reorder", fromIndex=from_index, toIndex=to_index))
        return f"Moved block from position {from_index} to position {to_index}."

    async def tool_get_assignment_settings(self, tool_input: Dict[str, Any]) -> str:
        assignment = self.assignment
        settings = assignment.settings or {}
        students = self.db.query(Enrollment).filter(
            Enrollment.course_id == assignment.course_id,
            Enrollment.role == CourseRole.student,
        ).count()

        lines = [f'Assignment: "{assignment.name}"', "", "SETTINGS:"]
        for key in SETTINGS_FIELDS:
            default = "not set" if key == "timeLimitSeconds" else False
            lines.append(f"- {key}: {_format_value(settings.get(key, default))}")
        for key in sorted(set(settings) - set(SETTINGS_FIELDS)):
            lines.append(f"- {key}: {_format_value(settings[key])}")
        lines.append("")
        lines.append(f"PUBLISHED: {'yes' if assignment.published else 'no'}")
        lines.append(f"TOTAL POINTS: {assignment.total_points}")
        lines.append(f"TOTAL ENROLLED STUDENTS: {students}")
        return "\n".join(lines)

    async def tool_update_assignment_title(self, tool_input: Dict[str, Any]) -> str:
        title = tool_input.get("title")
        if not isinstance(title, str) or not title.strip():
            raise ToolError("title must be a non-empty string")
        self.assignments.rename(self.assignment, title)

        await self.emit(events.assignment_title_updated(self.assignment.id, self.assignment.name))
        return f'Assignment title updated to "{self.assignment.name}".'

    async def tool_update_assignment_settings(self, tool_input: Dict[str, Any]) -> str:
        changes = {key: value for key, value in tool_input.items() if value is not None or key == "timeLimitSeconds"}
        if not changes:
            return "No settings were provided, nothing changed."
        merged = self.assignments.merge_settings(self.assignment, changes)

        await self.emit(events.assignment_settings_changed(self.assignment.id, merged))
        changed = ", ".join(f"{key}: {_format_value(value)}" for key, value in changes.items())
        return f"Assignment settings updated: {changed}."

    async def tool_list_course_assignments(self, tool_input: Dict[str, Any]) -> str:
        assignments = (
            self.db.query(Assignment)
            .filter(Assignment.course_id == self.assignment.course_id)
            .order_by(Assignment.order)
            .all()
        )
        if not assignments:
            return "No assignments found in this course."

        grouped: Dict[str, List[Assignment]] = {}
        for item in assignments:
            path = "/".join(item.module_path or []) or "(ungrouped)"
            grouped.setdefault(path, []).append(item)

        lines = [f"Course has {len(assignments)} assignment(s):\n"]
        for path in sorted(grouped):
            lines.append(f"{path}/")
            for item in grouped[path]:
                marker = " ← (current)" if item.id == self.assignment.id else ""
                lines.append(f"  - {item.name} [id: {item.id}]{marker}")
        return "\n".join(lines)

    async def tool_read_other_assignment(self, tool_input: Dict[str, Any]) -> str:
        target_id = tool_input.get("assignment_id")
        other = self.db.get(Assignment, target_id) if isinstance(target_id, str) else None
        if other is None:
            return "Assignment not found. Make sure the ID is correct and the assignment hasn't been deleted."
        if other.course_id != self.assignment.course_id:
            return (
                "Access denied: that assignment belongs to a different course. "
                "You can only read assignments within the current course."
            )

        blocks = parse_content(other.content)["content"]
        if not blocks:
            return f'Assignment "{other.name}" is empty (no blocks).'
        summaries = "\n".join(summarize_block(block, i) for i, block in enumerate(blocks))
        return f'Assignment "{other.name}" has {len(blocks)} block(s):\n{summaries}'

    async def tool_save_memory(self, tool_input: Dict[str, Any]) -> str:
        content = tool_input.get("content")
        if not isinstance(content, str) or not content.strip():
            raise ToolError("Memory content cannot be empty.")
        if len(content) > AI_MEMORY_MAX_ENTRY_CHARS:
            raise ToolError(
                f"Memory entry must be {AI_MEMORY_MAX_ENTRY_CHARS} characters or fewer. "
                f"Current length: {len(content)}."
            )

        course_id = self.assignment.course_id
        used = sum(
            len(row.content or "")
            for row in self.db.query(ChatMemory).filter(ChatMemory.course_id == course_id).all()
        )
        content = content.strip()
        if used + len(content) > self.memory_budget:
            return (
                f"Memory is full ({used}/{self.memory_budget} characters used). "
                "Ask the instructor to free up space in the course settings."
            )

        self.db.add(ChatMemory(course_id=course_id, user_id=self.user.id, content=content))
        self.db.commit()
        logger.info(f"Saved course memory for course {course_id}")
        return f'Memory saved: "{content}"'
