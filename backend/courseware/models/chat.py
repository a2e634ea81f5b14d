"""ChatSession and ChatMemory models."""

from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Integer, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import uuid

from ..database import Base


class ChatSession(Base):
    """Assistant conversation about one assignment.

    ``messages`` is a list of ``{"role", "content"}`` entries where content is
    either a string or a list of text / tool_use / tool_result blocks.
    """
    __tablename__ = "ai_chat_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    assignment_id = Column(String(36), ForeignKey("assignments.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    title = Column(String(255), nullable=True)
    messages = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    assignment = relationship("Assignment", back_populates="chat_sessions")

    def __repr__(self):
        return f"<ChatSession(id={self.id}, assignment_id={self.assignment_id})>"


class ChatMemory(Base):
    """Instructor preference the assistant persists across sessions in a course."""
    __tablename__ = "ai_chat_memories"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    course_id = Column(String(36), ForeignKey("courses.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
