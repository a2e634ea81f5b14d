"""Test cases for score arithmetic, the autograder and submission status."""

import json

import pytest

from courseware.content import render_html, sanitize_mcq_data, serialize_content
from courseware.grading.autograder import calculate_block_score, score_submission, scoring_blocks
from courseware.grading.scores import final_grade, parse_score_modifier, rubric_score
from courseware.submissions.status import GRADED, IN_PROGRESS, NOT_STARTED, SUBMITTED, submission_status

from conftest import quiz_document


class TestScoreModifier:

    @pytest.mark.parametrize("modifier,expected", [
        ("0", 0.0),
        ("+2", 2.0),
        ("-1.5 late", -1.5),
        ("3pts", 3.0),
        (".5", 0.5),
        ("  4", 4.0),
        ("bonus", 0.0),
        ("", 0.0),
        (None, 0.0),
        (2, 2.0),
    ])
    def test_parse(self, modifier, expected):
        assert parse_score_modifier(modifier) == expected

    def test_final_grade(self):
        assert final_grade(5, 2, "-1") == 6.0
        assert final_grade(None, None, None) == 0.0
        assert final_grade(3, 0, "oops") == 3.0

    def test_rubric_score(self):
        assert rubric_score([1, 2.5, 0]) == 3.5
        assert rubric_score(None) == 0.0


class TestAutograder:

    def block(self, allow_multiple=False):
        return sanitize_mcq_data({
            "id": "q",
            "options": [
                {"id": "a", "isCorrect": True},
                {"id": "b", "isCorrect": allow_multiple},
                {"id": "c", "isCorrect": False},
            ],
            "allowMultiple": allow_multiple,
            "points": 4,
        })

    def test_single_choice(self):
        block = self.block()

        assert calculate_block_score(block, ["a"]) == (4, 4)
        assert calculate_block_score(block, "a") == (4, 4)
        assert calculate_block_score(block, ["c"]) == (0, 4)
        assert calculate_block_score(block, None) == (0, 4)

    def test_multiple_choice_needs_exact_set(self):
        block = self.block(allow_multiple=True)

        assert calculate_block_score(block, ["b", "a"]) == (4, 4)
        assert calculate_block_score(block, ["a"]) == (0, 4)
        assert calculate_block_score(block, ["a", "b", "c"]) == (0, 4)

    def test_score_submission(self):
        content = serialize_content(quiz_document())
        total, block_scores = score_submission(content, {"q1": ["q1-a"], "q2": ["q2-b"]})

        assert total == 2
        assert block_scores == {
            "q1": {"awarded": 2, "possible": 2},
            "q2": {"awarded": 0, "possible": 3},
        }

    def test_score_submission_without_answers(self):
        total, block_scores = score_submission(serialize_content(quiz_document()), None)

        assert total == 0
        assert set(block_scores) == {"q1", "q2"}

    def test_block_without_correct_option_scores_nothing(self):
        content = json.dumps({"type": "doc", "content": [{
            "type": "mcqBlock",
            "attrs": {"mcqData": {
                "id": "broken",
                "question": "<p>Pick one</p>",
                "options": [{"id": "x", "text": "<p>X</p>"}, {"id": "y", "text": "<p>Y</p>", "isCorrect": "yes"}],
                "points": 2,
            }},
        }]})

        assert [block.correct_option_ids for block in scoring_blocks(content)] == [[]]
        assert score_submission(content, {"broken": ["x"]}) == (0, {"broken": {"awarded": 0, "possible": 2}})

    def test_legacy_html_content(self):
        html = render_html(quiz_document())

        assert [block.id for block in scoring_blocks(html)] == ["q1", "q2"]
        assert score_submission(html, {"q1": ["q1-a"], "q2": ["q2-a"]})[0] == 5


class TestSubmissionStatus:

    def test_display(self):
        assert submission_status(None) == NOT_STARTED
        assert submission_status("in-progress") == IN_PROGRESS
        assert submission_status("submitted") == SUBMITTED
        assert submission_status("submitted", has_grader=True) == GRADED
        assert submission_status("graded") == GRADED
        assert submission_status("returned") == GRADED
        assert submission_status("archived") == NOT_STARTED

    def test_labels(self):
        assert SUBMITTED.label == GRADED.label == "Submitted"
        assert GRADED.variant == "graded"
