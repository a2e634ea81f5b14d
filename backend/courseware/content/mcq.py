"""Multiple-choice question block data: validation, sanitization and id handling."""

import math
import uuid
from typing import Any, Dict, List, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

MCQ_BLOCK_TYPE = "mcqBlock"
DEFAULT_POINTS = 1
MIN_OPTIONS = 2

# Editors emit an empty paragraph for a blank rich-text field
_EMPTY_HTML = ("", "<p></p>")


def generate_id() -> str:
    """Generate a UUID4 string for blocks and options."""
    return str(uuid.uuid4())


class MCQOption(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    text: str = ""
    is_correct: bool = Field(default=False, alias="isCorrect")


class MCQBlockData(BaseModel):
    """Payload stored at ``attrs.mcqData`` of an ``mcqBlock`` node."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    question: str = ""
    options: List[MCQOption]
    allow_multiple: bool = Field(default=False, alias="allowMultiple")
    points: Union[int, float] = DEFAULT_POINTS
    explanation: str = ""
    allow_check_answer: bool = Field(default=False, alias="allowCheckAnswer")

    def to_attrs(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys used in stored documents."""
        return self.model_dump(by_alias=True)

    @property
    def correct_option_ids(self) -> List[str]:
        return [option.id for option in self.options if option.is_correct]


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def is_blank_html(value: str) -> bool:
    return value.strip() in _EMPTY_HTML


def validate_mcq_data(data: Any, student_view: bool = False) -> Tuple[bool, List[str]]:
    """Check raw MCQ data and report every structural problem.

    Empty question or option text is allowed so freshly inserted blocks
    validate. The correct-answer check is skipped for student views, where
    correctness flags have been stripped.

    Returns:
        Tuple of (is_valid, errors).
    """
    errors: List[str] = []

    if not isinstance(data, dict):
        return False, ["MCQ data must be an object"]

    if not isinstance(data.get("id"), str) or not data["id"]:
        errors.append("MCQ must have a valid ID")

    if not isinstance(data.get("question"), str):
        errors.append("MCQ must have a question text")

    options = data.get("options")
    if not isinstance(options, list):
        errors.append("MCQ must have an options array")
    else:
        if len(options) < MIN_OPTIONS:
            errors.append(f"MCQ must have at least {MIN_OPTIONS} options")

        for index, option in enumerate(options, start=1):
            if not isinstance(option, dict):
                errors.append(f"Option {index} must be an object")
                continue
            if not isinstance(option.get("id"), str) or not option["id"]:
                errors.append(f"Option {index} must have a valid ID")
            if not isinstance(option.get("text"), str):
                errors.append(f"Option {index} must have text")
            if not isinstance(option.get("isCorrect"), bool) and not student_view:
                errors.append(f"Option {index} must have a valid isCorrect boolean")

        if not student_view:
            has_correct = any(isinstance(o, dict) and o.get("isCorrect") is True for o in options)
            if not has_correct:
                errors.append("MCQ must have at least one correct answer")

    if not isinstance(data.get("allowMultiple"), bool):
        errors.append("MCQ must have a valid allowMultiple boolean")

    points = data.get("points")
    if not _is_number(points) or points < 0:
        errors.append("MCQ must have a valid points value (>= 0)")

    if "explanation" in data and data["explanation"] is not None and not isinstance(data["explanation"], str):
        errors.append("MCQ explanation must be a string if provided")

    return len(errors) == 0, errors


def default_mcq_data() -> MCQBlockData:
    """A new block: blank question, two blank options, the first one correct."""
    return MCQBlockData(
        id=generate_id(),
        options=[
            MCQOption(id=generate_id(), is_correct=True),
            MCQOption(id=generate_id()),
        ],
    )


def sanitize_mcq_data(data: Any) -> MCQBlockData:
    """Repair arbitrary input into a structurally valid MCQ block.

    Total over all inputs: the result always has at least two options, at
    least one correct option and non-negative points. Fields that are present
    and well-typed are kept as-is.
    """
    if isinstance(data, MCQBlockData):
        data = data.to_attrs()
    if not isinstance(data, dict):
        return default_mcq_data()

    points = data.get("points")
    sanitized = MCQBlockData(
        id=data["id"] if isinstance(data.get("id"), str) and data["id"] else generate_id(),
        question=data["question"] if isinstance(data.get("question"), str) else "",
        options=[],
        allow_multiple=data["allowMultiple"] if isinstance(data.get("allowMultiple"), bool) else False,
        points=points if _is_number(points) and points >= 0 else DEFAULT_POINTS,
        explanation=data["explanation"] if isinstance(data.get("explanation"), str) else "",
        allow_check_answer=data["allowCheckAnswer"] if isinstance(data.get("allowCheckAnswer"), bool) else False,
    )

    raw_options = data.get("options")
    if isinstance(raw_options, list):
        for option in raw_options:
            if not isinstance(option, dict):
                continue
            sanitized.options.append(MCQOption(
                id=option["id"] if isinstance(option.get("id"), str) and option["id"] else generate_id(),
                text=option["text"] if isinstance(option.get("text"), str) else "",
                is_correct=option["isCorrect"] if isinstance(option.get("isCorrect"), bool) else False,
            ))

    while len(sanitized.options) < MIN_OPTIONS:
        sanitized.options.append(MCQOption(id=generate_id()))

    if not any(option.is_correct for option in sanitized.options):
        sanitized.options[0].is_correct = True

    return sanitized


def regenerate_ids(data: MCQBlockData) -> MCQBlockData:
    """Copy of ``data`` with fresh block and option ids (used for pasted blocks)."""
    return data.model_copy(update={
        "id": generate_id(),
        "options": [option.model_copy(update={"id": generate_id()}) for option in data.options],
    })


def new_mcq_block(**overrides: Any) -> Dict[str, Any]:
    """Build an ``mcqBlock`` node, optionally overriding fields of the default data."""
    data = default_mcq_data().to_attrs()
    data.update(overrides)
    return {"type": MCQ_BLOCK_TYPE, "attrs": {"mcqData": sanitize_mcq_data(data).to_attrs()}}
