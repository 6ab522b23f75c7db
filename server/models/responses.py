from pydantic import BaseModel

from shared.models.document import Document, DocumentProgress, DocumentStatus


class DocumentRegisteredResponse(BaseModel):
    document_id: str
    status: DocumentStatus


class DocumentStatusResponse(BaseModel):
    id: str
    status: DocumentStatus
    progress: DocumentProgress
    error_message: str

    @classmethod
    def from_document(cls, document: Document) -> "DocumentStatusResponse":
        return cls(id=document.id, status=document.status, progress=document.progress, error_message=document.error_message)


class DocumentDeletedResponse(BaseModel):
    ok: bool = True
    deleted_document_id: str


class HealthResponse(BaseModel):
    status: str
    clients: dict[str, bool]
