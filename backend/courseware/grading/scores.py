"""Score arithmetic shared by the grader model, services and gradebook."""

import math
import re
from typing import Iterable, Optional, Union

Number = Union[int, float]

_LEADING_FLOAT_RE = re.compile(r"^\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")


def parse_score_modifier(modifier: Optional[str]) -> float:
    """Parse a modifier such as ``"+2"``, ``"-1.5 late"`` or ``"3pts"``.

    Only the leading number is used; input without one counts as 0.
    """
    if modifier is None:
        return 0.0
    if isinstance(modifier, (int, float)) and not isinstance(modifier, bool):
        return float(modifier) if math.isfinite(modifier) else 0.0
    match = _LEADING_FLOAT_RE.match(str(modifier))
    if not match:
        return 0.0
    value = float(match.group(0))
    return value if math.isfinite(value) else 0.0


def _as_number(value) -> float:
    try:
        number = float(value or 0)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def final_grade(raw_assignment_score: Optional[Number], raw_rubric_score: Optional[Number],
                score_modifier: Optional[str] = "0") -> float:
    """Autograded score plus rubric score plus the numeric modifier."""
    return _as_number(raw_assignment_score) + _as_number(raw_rubric_score) + parse_score_modifier(score_modifier)


def rubric_score(values: Optional[Iterable[Number]]) -> float:
    """Sum of the points awarded per rubric item."""
    return sum(_as_number(value) for value in values or [])
