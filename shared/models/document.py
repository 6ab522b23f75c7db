"""Pydantic models for uploaded source documents.

Hierarchy:
  DocumentStatus   : lifecycle status, moves forward queued → processing → ready|failed.
  DocumentProgress : structured progress written by the ingestion worker.
  Document         : one record per uploaded PDF, owned by the document store.
  DocumentScope    : category / region filter shared by retrieval and threads.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

ALL_CATEGORIES = "all"
DEFAULT_CATEGORY = "others"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class ProgressStage(str, Enum):
    QUEUED = "queued"
    EXTRACT = "extract"
    EMBED_UPSERT = "embed+upsert"
    DONE = "done"
    FAILED = "failed"


class DocumentProgress(BaseModel):
    """Counters persisted after every flushed batch.

    pages_done is the latest page pulled from the extractor, chunks_done the
    number of chunks durably upserted into the vector store.
    """

    stage: ProgressStage = ProgressStage.QUEUED
    pages_done: int = 0
    chunks_done: int = 0


class Document(BaseModel):
    """Metadata of one uploaded PDF.

    The id doubles as the storage key and as the documentId carried in every
    vector payload, so deleting by id reaches both stores.
    """

    id: str
    owner_id: str
    filename: str
    mime: str = "application/pdf"
    size_bytes: int = 0
    storage_path: str
    category: str = DEFAULT_CATEGORY
    state: str = ""
    district: str = ""
    status: DocumentStatus = DocumentStatus.QUEUED
    progress: DocumentProgress = Field(default_factory=DocumentProgress)
    error_message: str = ""
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator("category", mode="before")
    @classmethod
    def _lowercase_category(cls, value: str | None) -> str:
        return (value or DEFAULT_CATEGORY).strip().lower()

    @field_validator("state", "district", mode="before")
    @classmethod
    def _strip_region(cls, value: str | None) -> str:
        return (value or "").strip()


class DocumentScope(BaseModel):
    """Category / region filter of a question or conversation thread.

    An empty category or the wildcard "all" matches every category. A district
    is more specific than a state and supersedes it.
    """

    category: str = ALL_CATEGORIES
    state: str = ""
    district: str = ""

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value: str | None) -> str:
        return (value or ALL_CATEGORIES).strip().lower()

    @field_validator("state", "district", mode="before")
    @classmethod
    def _strip_region(cls, value: str | None) -> str:
        return (value or "").strip()
