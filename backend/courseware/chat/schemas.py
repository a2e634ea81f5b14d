"""Request and response models for the assistant chat."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatSessionCreate(BaseModel):
    assignment_id: str
    title: Optional[str] = Field(None, max_length=255)


class ChatSessionSummary(BaseModel):
    id: str
    assignment_id: str
    title: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ChatSessionResponse(ChatSessionSummary):
    messages: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator('messages', mode='before')
    @classmethod
    def default_messages(cls, v):
        return v or []


class SendMessage(BaseModel):
    """Payload of a ``send-message`` frame."""
    session_id: str = Field(alias="sessionId", min_length=1)
    assignment_id: str = Field(alias="assignmentId", min_length=1)
    message: str = Field(min_length=1)
    timezone: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)
