"""Event models.

ProgressEvent: admin-facing notification published on every document status change.
StreamEvent  : one named server-sent event of the answer stream.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from shared.models.document import Document, DocumentProgress, DocumentStatus, utc_now


class ProgressEventKind(str, Enum):
    PROGRESS = "progress"
    READY = "ready"
    FAILED = "failed"


class ProgressEvent(BaseModel):
    """Single tagged shape for batch progress, completion and failure.

    Observers switch on ``kind``; the document store stays the source of truth,
    an event may be lost without affecting the pipeline.
    """

    kind: ProgressEventKind
    document_id: str
    status: DocumentStatus
    progress: DocumentProgress
    error_message: str | None = None
    updated_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def from_document(cls, kind: ProgressEventKind, document: Document) -> "ProgressEvent":
        return cls(
            kind=kind,
            document_id=document.id,
            status=document.status,
            progress=document.progress,
            error_message=document.error_message or None,
            updated_at=document.updated_at,
        )


class StreamEventName(str, Enum):
    READY = "ready"
    THREAD = "thread"
    TOKEN = "token"
    CITATIONS = "citations"
    DONE = "done"
    ERROR = "error"


class StreamEvent(BaseModel):
    """A named event of the answer stream, rendered as text/event-stream."""

    event: StreamEventName
    data: dict[str, Any] = {}

    @property
    def is_terminal(self) -> bool:
        return self.event in (StreamEventName.DONE, StreamEventName.ERROR)

    def to_sse(self) -> str:
        return f"event: {self.event.value}\ndata: {json.dumps(self.data, default=str)}\n\n"

    @classmethod
    def ready(cls) -> "StreamEvent":
        return cls(event=StreamEventName.READY)

    @classmethod
    def thread(cls, thread_id: str) -> "StreamEvent":
        return cls(event=StreamEventName.THREAD, data={"threadId": thread_id})

    @classmethod
    def token(cls, delta: str) -> "StreamEvent":
        return cls(event=StreamEventName.TOKEN, data={"delta": delta})

    @classmethod
    def citations(cls, citations: list[dict]) -> "StreamEvent":
        return cls(event=StreamEventName.CITATIONS, data={"citations": citations})

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(event=StreamEventName.DONE)

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls(event=StreamEventName.ERROR, data={"message": message})
