from pydantic import BaseModel

from shared.models.document import DocumentScope


class ChatRequest(BaseModel):
    question: str
    owner_id: str
    category: str | None = None
    state: str | None = None
    district: str | None = None
    thread_id: str | None = None

    def get_scope(self) -> DocumentScope:
        return DocumentScope(category=self.category, state=self.state, district=self.district)


class DocumentCreateRequest(BaseModel):
    """Registers a PDF the upload layer has already written to storage_path."""

    owner_id: str
    filename: str
    storage_path: str
    size_bytes: int = 0
    mime: str = "application/pdf"
    category: str | None = None
    state: str | None = None
    district: str | None = None
    document_id: str | None = None
