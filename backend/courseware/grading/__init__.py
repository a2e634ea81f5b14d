"""Grading: score arithmetic, the MCQ autograder, rubrics and the gradebook."""
