from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse

from server.dependencies.auth import verify_api_key
from server.models.requests import DocumentCreateRequest
from server.models.responses import DocumentDeletedResponse, DocumentRegisteredResponse, DocumentStatusResponse
from services.documents.DocumentService import PDF_MIME, DocumentService
from shared.models.document import Document

router = APIRouter(prefix="/documents", tags=["documents"], dependencies=[Depends(verify_api_key)])


def _get_service(request: Request) -> DocumentService:
    return request.app.state.document_service


@router.post("", status_code=201)
async def register_document(request: Request, body: DocumentCreateRequest) -> DocumentRegisteredResponse:
    """Register an uploaded PDF and queue it for ingestion."""
    document = await _get_service(request).do_register(**body.model_dump())
    return DocumentRegisteredResponse(document_id=document.id, status=document.status)


@router.get("")
async def list_documents(request: Request) -> list[Document]:
    """All documents, newest first."""
    return await _get_service(request).do_list()


@router.get("/{document_id}/status")
async def get_document_status(request: Request, document_id: str) -> DocumentStatusResponse:
    document = await _get_service(request).do_get_status(document_id)
    return DocumentStatusResponse.from_document(document)


@router.get("/{document_id}/download")
async def download_document(request: Request, document_id: str) -> FileResponse:
    """Stored PDF as an attachment under its original filename."""
    document = await _get_service(request).do_get_file(document_id)
    return FileResponse(document.storage_path, media_type=PDF_MIME, filename=document.filename)


@router.post("/{document_id}/reingest", status_code=202)
async def reingest_document(request: Request, document_id: str) -> DocumentStatusResponse:
    """Drop the document's vectors and queue it again. 409 while queued or processing."""
    document = await _get_service(request).do_reingest(document_id)
    return DocumentStatusResponse.from_document(document)


@router.delete("/{document_id}")
async def delete_document(request: Request, document_id: str) -> DocumentDeletedResponse:
    """Delete vectors, stored file and record. 409 while processing."""
    await _get_service(request).do_delete(document_id)
    return DocumentDeletedResponse(deleted_document_id=document_id)
