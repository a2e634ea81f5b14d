"""Assignment content: block documents, MCQ blocks and the legacy HTML format.

Pure functions only; nothing here touches the database.
"""

from .mcq import (
    MCQ_BLOCK_TYPE,
    MCQBlockData,
    MCQOption,
    default_mcq_data,
    generate_id,
    new_mcq_block,
    regenerate_ids,
    sanitize_mcq_data,
    validate_mcq_data,
)
from .document import (
    BlockIndexError,
    DocumentTooDeepError,
    MAX_NESTING_DEPTH,
    calculate_assignment_points,
    empty_document,
    extract_text,
    find_mcq_blocks,
    insert_block,
    iter_nodes,
    move_block,
    nesting_depth,
    normalize_document,
    parse_content,
    remove_block,
    replace_block,
    serialize_content,
    strip_answers,
    strip_html,
    summarize_block,
)
from .html import parse_html, render_html

__all__ = [
    "MCQ_BLOCK_TYPE",
    "MCQBlockData",
    "MCQOption",
    "default_mcq_data",
    "generate_id",
    "new_mcq_block",
    "regenerate_ids",
    "sanitize_mcq_data",
    "validate_mcq_data",
    "BlockIndexError",
    "DocumentTooDeepError",
    "MAX_NESTING_DEPTH",
    "calculate_assignment_points",
    "empty_document",
    "extract_text",
    "find_mcq_blocks",
    "insert_block",
    "iter_nodes",
    "move_block",
    "nesting_depth",
    "normalize_document",
    "parse_content",
    "remove_block",
    "replace_block",
    "serialize_content",
    "strip_answers",
    "strip_html",
    "summarize_block",
    "parse_html",
    "render_html",
]
