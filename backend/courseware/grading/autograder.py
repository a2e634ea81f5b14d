"""MCQ autograder.

Scoring is all-or-nothing per block: the block's points are awarded only when
the selected option ids are exactly the correct ones.
"""

import logging
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Session

from ..content import MCQ_BLOCK_TYPE, MCQBlockData, iter_nodes, parse_content, sanitize_mcq_data
from ..models import Grader, Submission, SubmissionStatus

logger = logging.getLogger(__name__)


def _selected_ids(answer: Any) -> set:
    if isinstance(answer, str):
        return {answer}
    if isinstance(answer, (list, tuple, set)):
        return {option_id for option_id in answer if isinstance(option_id, str)}
    return set()


def _stored_correct_ids(data: Any) -> set:
    options = data.get("options") if isinstance(data, dict) else None
    if not isinstance(options, list):
        return set()
    return {
        option["id"] for option in options
        if isinstance(option, dict) and option.get("isCorrect") is True
        and isinstance(option.get("id"), str) and option["id"]
    }


def scoring_blocks(content: Any) -> List[MCQBlockData]:
    """MCQ blocks with the answer key exactly as the author stored it.

    Only options stored with ``isCorrect: true`` are correct. A block that has
    none keeps no correct option, unlike :func:`sanitize_mcq_data` which marks
    the first one.
    """
    blocks = []
    for node in iter_nodes(parse_content(content, sanitize_mcq=False)):
        if node.get("type") != MCQ_BLOCK_TYPE:
            continue
        raw = (node.get("attrs") or {}).get("mcqData")
        block = sanitize_mcq_data(raw)
        correct = _stored_correct_ids(raw)
        blocks.append(block.model_copy(update={
            "options": [option.model_copy(update={"is_correct": option.id in correct}) for option in block.options],
        }))
    return blocks


def calculate_block_score(block: MCQBlockData, answer: Any) -> Tuple[float, float]:
    """Return ``(awarded, possible)`` for one MCQ block.

    A block without any correct option awards nothing.
    """
    possible = block.points
    correct = set(block.correct_option_ids)
    if not correct:
        return 0, possible
    return (possible if _selected_ids(answer) == correct else 0), possible


def score_submission(content: Any, values: Dict[str, Any]) -> Tuple[float, Dict[str, Dict[str, float]]]:
    """Score answers against assignment content.

    Returns the total awarded points and ``{block_id: {awarded, possible}}``.
    """
    block_scores: Dict[str, Dict[str, float]] = {}
    total = 0
    for block in scoring_blocks(content):
        awarded, possible = calculate_block_score(block, (values or {}).get(block.id))
        block_scores[block.id] = {"awarded": awarded, "possible": possible}
        total += awarded
    return total, block_scores


def autograde_submission(db: Session, submission: Submission) -> Grader:
    """Score a submission and upsert its grader, marking the submission graded.

    An existing grader keeps its feedback, rubric score and modifier but goes
    back to unreviewed.
    """
    total, block_scores = score_submission(submission.assignment.content, submission.values)

    grader = submission.grader
    if grader is None:
        grader = Grader(
            submission_id=submission.id,
            feedback="",
            raw_rubric_score=0.0,
            score_modifier="0",
        )
        db.add(grader)
        submission.grader = grader

    grader.raw_assignment_score = total
    grader.block_scores = block_scores
    grader.reviewed_at = None
    grader.reviewed_by = None
    submission.status = SubmissionStatus.graded

    db.commit()
    db.refresh(grader)
    logger.info(f"Autograded submission {submission.id}: {total} points across {len(block_scores)} blocks")
    return grader
