"""Block document model: loading, serialization, traversal and summaries.

Documents are ProseMirror-style JSON trees::

    {"type": "doc", "content": [{"type": "paragraph", "content": [...]}, ...]}

Stored content is loaded leniently. JSON is the current format, anything else
is treated as legacy HTML, and malformed structures degrade to an empty
document instead of raising.
"""

import copy
import json
import logging
import re
from html import unescape
from typing import Any, Dict, Iterator, List, Optional, Union

from .mcq import MCQ_BLOCK_TYPE, MCQBlockData, sanitize_mcq_data, validate_mcq_data

logger = logging.getLogger(__name__)

Node = Dict[str, Any]

_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


class BlockIndexError(IndexError):
    """Raised when a block index falls outside the document."""


# Containers (objects and arrays) a stored document may nest. Each block
# level costs two: the node object and its content array.
MAX_NESTING_DEPTH = 200


class DocumentTooDeepError(ValueError):
    """Raised when a document nests deeper than :data:`MAX_NESTING_DEPTH`."""

    def __init__(self, limit: int = MAX_NESTING_DEPTH):
        self.limit = limit
        super().__init__(f"Content is nested too deeply (limit {limit} levels)")


def nesting_depth(value: Any, limit: Optional[int] = None) -> int:
    """Deepest container nesting in ``value``, without recursion.

    Stops early once ``limit`` is exceeded.
    """
    deepest = 0
    stack = [(value, 1)]
    while stack:
        item, depth = stack.pop()
        if isinstance(item, dict):
            children = item.values()
        elif isinstance(item, list):
            children = item
        else:
            continue
        deepest = max(deepest, depth)
        if limit is not None and deepest > limit:
            break
        stack.extend((child, depth + 1) for child in children if isinstance(child, (dict, list)))
    return deepest


def empty_document() -> Node:
    return {"type": "doc", "content": []}


def _coerce_document(value: Any) -> Node:
    if isinstance(value, list):
        return {"type": "doc", "content": value}
    if not isinstance(value, dict):
        return empty_document()
    if value.get("type") == "doc":
        return value
    if isinstance(value.get("type"), str):
        # A bare block was stored instead of a document
        return {"type": "doc", "content": [value]}
    return empty_document()


def normalize_document(doc: Node, sanitize_warnings: Optional[List[str]] = None, sanitize_mcq: bool = True) -> Node:
    """Return a cleaned deep copy of ``doc``.

    Non-object children are dropped and every MCQ block is passed through
    :func:`sanitize_mcq_data`. Validation errors for MCQ blocks found before
    sanitizing are appended to ``sanitize_warnings`` when given. Raises
    :class:`DocumentTooDeepError` for documents nested past
    :data:`MAX_NESTING_DEPTH`. With ``sanitize_mcq=False`` MCQ attributes are
    left exactly as stored.
    """
    doc = _coerce_document(doc)
    if nesting_depth(doc, MAX_NESTING_DEPTH) > MAX_NESTING_DEPTH:
        raise DocumentTooDeepError()
    doc = copy.deepcopy(doc)

    def clean(node: Node) -> Node:
        if node.get("type") == MCQ_BLOCK_TYPE:
            if not sanitize_mcq:
                node.pop("content", None)
                return node
            attrs = node.get("attrs") if isinstance(node.get("attrs"), dict) else {}
            raw = attrs.get("mcqData")
            valid, errors = validate_mcq_data(raw)
            if not valid and sanitize_warnings is not None:
                sanitize_warnings.extend(errors)
            attrs["mcqData"] = sanitize_mcq_data(raw).to_attrs()
            node["attrs"] = attrs
            node.pop("content", None)
            return node
        children = node.get("content")
        if isinstance(children, list):
            node["content"] = [clean(child) for child in children if isinstance(child, dict)]
        elif "content" in node:
            del node["content"]
        return node

    doc = clean(doc)
    doc.setdefault("content", [])
    return doc


def parse_content(raw: Union[str, Dict[str, Any], None], sanitize_mcq: bool = True) -> Node:
    """Load stored assignment content into a normalized document.

    ``sanitize_mcq=False`` keeps JSON MCQ data as stored, for callers that
    need the author's own answer key. Legacy HTML is always sanitized.
    """
    try:
        return _load_content(raw, sanitize_mcq)
    except (DocumentTooDeepError, RecursionError) as e:
        logger.warning(f"Discarding content that cannot be loaded: {e}")
        return empty_document()


def _load_content(raw: Union[str, Dict[str, Any], None], sanitize_mcq: bool) -> Node:
    if raw is None:
        return empty_document()
    if isinstance(raw, (dict, list)):
        return normalize_document(raw, sanitize_mcq=sanitize_mcq)
    if not isinstance(raw, str) or not raw.strip():
        return empty_document()

    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        # Imported here to keep html -> document a one-way dependency
        from .html import parse_html
        logger.info("Content is not JSON, parsing as legacy HTML")
        return parse_html(raw)

    if not isinstance(value, (dict, list)):
        logger.warning(f"Discarding content with unexpected JSON type {type(value).__name__}")
        return empty_document()
    return normalize_document(value, sanitize_mcq=sanitize_mcq)


def serialize_content(doc: Node) -> str:
    return json.dumps(doc, ensure_ascii=False)


def iter_nodes(node: Node) -> Iterator[Node]:
    """Depth-first walk over ``node`` and all its descendants."""
    yield node
    for child in node.get("content") or []:
        if isinstance(child, dict):
            yield from iter_nodes(child)


def find_mcq_blocks(doc: Node) -> List[MCQBlockData]:
    """Every MCQ block in the document, at any depth, in document order."""
    return [
        sanitize_mcq_data((node.get("attrs") or {}).get("mcqData"))
        for node in iter_nodes(doc)
        if node.get("type") == MCQ_BLOCK_TYPE
    ]


def calculate_assignment_points(content: Union[str, Dict[str, Any], None]) -> float:
    """Total points available in an assignment's content; 0 when unparseable."""
    try:
        doc = parse_content(content)
    except Exception as e:
        logger.warning(f"Could not calculate assignment points: {e}")
        return 0
    return sum(block.points for block in find_mcq_blocks(doc))


def strip_html(value: str) -> str:
    """Plain text of an HTML fragment with whitespace collapsed."""
    return _SPACE_RE.sub(" ", unescape(_TAG_RE.sub(" ", value or ""))).strip()


def extract_text(node: Node) -> str:
    """Concatenated text of a node's text descendants."""
    if node.get("type") == "text":
        return node.get("text", "")
    if node.get("type") == "hardBreak":
        return "\n"
    return "".join(extract_text(child) for child in node.get("content") or [] if isinstance(child, dict))


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + "..." if len(text) > limit else text


def summarize_block(block: Node, index: int) -> str:
    """One-line description of a top-level block, e.g. ``[2] heading: "Intro" (h2)``."""
    block_type = block.get("type", "unknown")
    summary = f"[{index}] {block_type}"
    attrs = block.get("attrs") or {}

    if block_type in ("paragraph", "heading"):
        summary += f': "{_truncate(extract_text(block), 80)}"'
        if block_type == "heading" and attrs.get("level"):
            summary += f" (h{attrs['level']})"
    elif block_type == MCQ_BLOCK_TYPE:
        data = sanitize_mcq_data(attrs.get("mcqData"))
        summary += f': "{strip_html(data.question)[:60]}" ({len(data.options)} options, {data.points} pts)'
    elif block_type == "fillInTheBlankBlock":
        data = attrs.get("fillInTheBlankData") or {}
        summary += f': "{strip_html(data.get("question", ""))[:60]}" ({len(data.get("blanks") or [])} blanks)'
    elif block_type == "shortAnswerBlock":
        data = attrs.get("shortAnswerData") or {}
        summary += f': "{strip_html(data.get("prompt", ""))[:60]}" ({data.get("points") or 0} pts)'
    elif block_type == "pollBlock":
        data = attrs.get("pollData") or {}
        summary += f': "{(data.get("question") or "")[:60]}"'
    elif block_type in ("bulletList", "orderedList"):
        summary += f": {len(block.get('content') or [])} items"
    elif block_type == "codeBlock":
        summary += f": {attrs.get('language') or 'plain'} code"

    return summary


def strip_answers(doc: Node) -> Node:
    """Student view of a document: MCQ correctness flags and explanations removed."""
    doc = copy.deepcopy(doc)
    for node in iter_nodes(doc):
        if node.get("type") != MCQ_BLOCK_TYPE:
            continue
        data = sanitize_mcq_data((node.get("attrs") or {}).get("mcqData"))
        node["attrs"] = {"mcqData": {
            "id": data.id,
            "question": data.question,
            "options": [{"id": option.id, "text": option.text} for option in data.options],
            "allowMultiple": data.allow_multiple,
            "points": data.points,
            "allowCheckAnswer": data.allow_check_answer,
        }}
    return doc


def _check_index(blocks: List[Node], index: int) -> None:
    if not 0 <= index < len(blocks):
        raise BlockIndexError(
            f"Block index {index} is out of range. "
            f"The assignment has {len(blocks)} blocks (indices 0-{len(blocks) - 1})."
        )


def insert_block(doc: Node, block: Node, position: int = -1) -> int:
    """Insert a top-level block; -1 appends and larger positions are clamped.

    Returns the index the block landed at.
    """
    blocks = doc.setdefault("content", [])
    index = len(blocks) if position < 0 else min(position, len(blocks))
    blocks.insert(index, block)
    return index


def replace_block(doc: Node, index: int, block: Node) -> None:
    blocks = doc.setdefault("content", [])
    _check_index(blocks, index)
    blocks[index] = block


def remove_block(doc: Node, index: int) -> Node:
    blocks = doc.setdefault("content", [])
    _check_index(blocks, index)
    return blocks.pop(index)


def move_block(doc: Node, from_index: int, to_index: int) -> None:
    blocks = doc.setdefault("content", [])
    if not 0 <= from_index < len(blocks):
        raise BlockIndexError(f"From index {from_index} is out of range. The assignment has {len(blocks)} blocks.")
    if not 0 <= to_index < len(blocks):
        raise BlockIndexError(f"To index {to_index} is out of range. The assignment has {len(blocks)} blocks.")
    blocks.insert(to_index, blocks.pop(from_index))
