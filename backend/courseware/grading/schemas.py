"""Request and response models for graders, rubrics and the gradebook."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GraderUpdate(BaseModel):
    """Partial grader update; omitted fields are left unchanged."""
    feedback: Optional[str] = None
    score_modifier: Optional[str] = Field(default=None, max_length=50)
    reviewed: Optional[bool] = None


class EnsureGraderRequest(BaseModel):
    student_id: int


class GraderResponse(BaseModel):
    id: str
    submission_id: str
    feedback: Optional[str] = ""
    raw_assignment_score: float
    raw_rubric_score: float
    score_modifier: str
    block_scores: Dict[str, Dict[str, float]]
    reviewed_at: Optional[datetime] = None
    is_reviewed: bool
    final_grade: float

    model_config = ConfigDict(from_attributes=True)

    @field_validator('raw_assignment_score', 'raw_rubric_score', mode='before')
    @classmethod
    def default_score(cls, v):
        return v or 0.0

    @field_validator('score_modifier', mode='before')
    @classmethod
    def default_modifier(cls, v):
        return "0" if v is None else v

    @field_validator('block_scores', mode='before')
    @classmethod
    def default_block_scores(cls, v):
        return v or {}


class RubricItem(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    points: float = Field(..., ge=0)


class RubricSchemaSave(BaseModel):
    title: str = Field(default="Rubric", min_length=1, max_length=255)
    use_for_grading: bool = True
    items: List[RubricItem] = Field(default_factory=list)


class RubricSchemaResponse(BaseModel):
    id: str
    assignment_id: str
    title: str
    use_for_grading: bool
    items: List[Dict[str, Any]]
    total_points: float

    model_config = ConfigDict(from_attributes=True)


class RubricSave(BaseModel):
    """Points awarded per rubric item, in item order."""
    values: List[float]


class RubricResponse(BaseModel):
    id: str
    submission_id: str
    rubric_schema_id: str
    values: List[float]
    score: float

    model_config = ConfigDict(from_attributes=True)


class GradebookCell(BaseModel):
    assignment_id: str
    submission_id: Optional[str] = None
    status_label: str
    status_variant: str
    final_grade: Optional[float] = None
    total_points: float


class GradebookRow(BaseModel):
    student_id: int
    student_name: Optional[str]
    student_email: str
    cells: List[GradebookCell]
    total_earned: float
    total_possible: float


class GradebookAssignment(BaseModel):
    id: str
    name: str
    total_points: float
    published: bool


class GradebookResponse(BaseModel):
    course_id: str
    assignments: List[GradebookAssignment]
    rows: List[GradebookRow]
