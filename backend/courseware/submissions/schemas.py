"""Request and response models for submissions."""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class AnswersSave(BaseModel):
    """Selected option ids keyed by block id."""
    values: Dict[str, List[str]] = Field(default_factory=dict)


class SubmitRequest(BaseModel):
    values: Optional[Dict[str, List[str]]] = None


class CheckAnswerRequest(BaseModel):
    selected: List[str] = Field(default_factory=list)


class CheckAnswerResponse(BaseModel):
    block_id: str
    correct: bool
    explanation: str = ""


class SubmissionResponse(BaseModel):
    id: str
    assignment_id: str
    student_id: int
    values: Dict[str, List[str]]
    status: str
    status_label: str
    status_variant: str
    submitted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SubmissionSummary(BaseModel):
    """One row of an assignment's submission list."""
    student_id: int
    student_name: Optional[str]
    student_email: str
    submission_id: Optional[str] = None
    status_label: str
    status_variant: str
    submitted_at: Optional[datetime] = None
    final_grade: Optional[float] = None
