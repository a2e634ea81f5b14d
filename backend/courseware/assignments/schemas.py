"""Request and response models for assignments."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _clean_module_path(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return v
    return [segment.strip() for segment in v if segment and segment.strip()]


class AssignmentCreate(BaseModel):
    name: str = Field(default="New Assignment", min_length=1, max_length=255)
    module_path: List[str] = Field(default_factory=list)
    settings: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('module_path')
    @classmethod
    def clean_module_path(cls, v: List[str]) -> List[str]:
        return _clean_module_path(v)


class AssignmentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    published: Optional[bool] = None
    settings: Optional[Dict[str, Any]] = None


class AssignmentMove(BaseModel):
    module_path: List[str] = Field(default_factory=list)
    index: int = Field(..., ge=0)

    @field_validator('module_path')
    @classmethod
    def clean_module_path(cls, v: List[str]) -> List[str]:
        return _clean_module_path(v)


class ContentSave(BaseModel):
    """Serialized document text as produced by the editor."""
    content: str


class AssignmentResponse(BaseModel):
    id: str
    course_id: str
    name: str
    settings: Dict[str, Any]
    module_path: List[str]
    order: float
    published: bool
    total_points: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator('settings', mode='before')
    @classmethod
    def default_settings(cls, v):
        return v or {}

    @field_validator('module_path', mode='before')
    @classmethod
    def default_module_path(cls, v):
        return v or []


class AssignmentDetail(AssignmentResponse):
    """Assignment with its parsed content document."""
    content: Dict[str, Any]
    can_edit: bool = False


class ContentSaveResponse(BaseModel):
    id: str
    total_points: float
    updated_at: Optional[datetime] = None
    warnings: List[str] = Field(default_factory=list)


class ModuleTreeResponse(BaseModel):
    course_id: str
    tree: Dict[str, Any]
