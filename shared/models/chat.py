"""Pydantic models for conversation threads and their messages."""

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from shared.models.document import DocumentScope, utc_now


def new_id() -> str:
    return uuid.uuid4().hex


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class Citation(BaseModel):
    """One retrieved chunk an answer was grounded on."""

    document_id: str
    document_name: str
    page_no: int
    score: float

    def to_event(self) -> dict:
        """camelCase shape sent to stream clients."""
        return {"documentId": self.document_id, "documentName": self.document_name, "pageNo": self.page_no, "score": self.score}


class ChatThread(BaseModel):
    """Groups the messages of one owner within one scope."""

    id: str = Field(default_factory=new_id)
    owner_id: str
    category: str
    state: str = ""
    district: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def for_scope(cls, owner_id: str, scope: DocumentScope) -> "ChatThread":
        return cls(owner_id=owner_id, category=scope.category, state=scope.state, district=scope.district)


class ChatMessage(BaseModel):
    """A single immutable turn of a thread."""

    id: str = Field(default_factory=new_id)
    thread_id: str
    role: MessageRole
    content: str
    citations: list[Citation] = []
    created_at: datetime = Field(default_factory=utc_now)
