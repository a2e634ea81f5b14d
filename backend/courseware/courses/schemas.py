"""Request and response models for courses and enrollments."""
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..models import CourseRole


class CourseCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=100, pattern=r"^[a-z0-9][a-z0-9-]*$")
    settings: Dict[str, Any] = Field(default_factory=dict)


class CourseSettingsUpdate(BaseModel):
    ai_memory_enabled: Optional[bool] = None
    ai_memory_max_chars: Optional[int] = Field(default=None, ge=0)


class CourseResponse(BaseModel):
    id: str
    name: str
    slug: str
    settings: Dict[str, Any]
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator('settings', mode='before')
    @classmethod
    def default_settings(cls, v):
        return v or {}


class EnrollmentCreate(BaseModel):
    email: EmailStr
    role: CourseRole = CourseRole.student


class EnrollmentResponse(BaseModel):
    id: str
    user_id: int
    course_id: str
    role: CourseRole
    enrolled_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
