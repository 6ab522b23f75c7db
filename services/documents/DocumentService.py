"""Document management around the ingestion pipeline.

Registration of already-stored uploads, status lookups, explicit re-ingestion
and deletion across the document store, the vector store and the file system.
"""

import asyncio
import os

from shared.clients.docstore.DocStoreClientInterface import DocStoreClientInterface
from shared.clients.queue.QueueClientInterface import QueueClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.exceptions import ConflictError, NotFoundError, ValidationError
from shared.helper.FilterBuilder import build_document_points_filter
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import new_id
from shared.models.document import Document, DocumentProgress, DocumentStatus, ProgressStage
from shared.models.job import IngestJob

PDF_MIME = "application/pdf"


class DocumentService:
    def __init__(
        self,
        helper_config: HelperConfig,
        docstore_client: DocStoreClientInterface,
        rag_client: RAGClientInterface,
        queue_client: QueueClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._docstore_client = docstore_client
        self._rag_client = rag_client
        self._queue_client = queue_client

    ##########################################
    ################ REGISTER ################
    ##########################################

    async def do_register(
        self,
        owner_id: str,
        filename: str,
        storage_path: str,
        size_bytes: int = 0,
        mime: str = PDF_MIME,
        category: str | None = None,
        state: str | None = None,
        district: str | None = None,
        document_id: str | None = None,
    ) -> Document:
        """Create a queued record for a stored upload and enqueue its ingestion.

        Raises:
            ValidationError: If the file is not a PDF or is not present at storage_path.
            ConflictError: If document_id is already taken.
        """
        if mime != PDF_MIME:
            raise ValidationError(f"Only PDF documents are supported, got '{mime}'.")
        if not filename or not owner_id:
            raise ValidationError("filename and owner_id are required.")
        if not await asyncio.to_thread(os.path.isfile, storage_path):
            raise ValidationError(f"Uploaded file not found at '{storage_path}'.")

        document = await self._docstore_client.do_create_document(Document(
            id=document_id or new_id(),
            owner_id=owner_id,
            filename=filename,
            mime=mime,
            size_bytes=size_bytes,
            storage_path=storage_path,
            category=category,
            state=state,
            district=district,
        ))
        job = await self._queue_client.do_enqueue(IngestJob(document_id=document.id))
        self.logging.info("Registered document %s ('%s'), ingestion job %s queued.", document.id, document.filename, job.id)
        return document

    ##########################################
    ################ QUERIES #################
    ##########################################

    async def do_list(self) -> list[Document]:
        return await self._docstore_client.do_list_documents()

    async def do_get_status(self, document_id: str) -> Document:
        document = await self._docstore_client.do_find_document(document_id)
        if document is None:
            raise NotFoundError(f"Document '{document_id}' not found.")
        return document

    async def do_get_file(self, document_id: str) -> Document:
        """Return the document whose stored file is present for download.

        Raises:
            NotFoundError: If the document does not exist or its file is gone.
        """
        document = await self.do_get_status(document_id)
        if not document.storage_path or not await asyncio.to_thread(os.path.isfile, document.storage_path):
            raise NotFoundError(f"File of document '{document_id}' not found on disk.")
        return document

    ##########################################
    ############### REINGEST #################
    ##########################################

    async def do_reingest(self, document_id: str) -> Document:
        """Replace a document's vectors by running ingestion again.

        Old points are deleted before the document is requeued, so the new run
        never appends duplicates. A document that still waits for its pending
        job is refused, since that job would run in addition to the new one.

        Raises:
            NotFoundError: If the document does not exist.
            ConflictError: While the document is queued or being processed.
        """
        document = await self.do_get_status(document_id)
        if document.status in (DocumentStatus.QUEUED, DocumentStatus.PROCESSING):
            raise ConflictError(
                f"Document '{document_id}' is {document.status.value}. Try again after ingestion finishes."
            )

        await self._rag_client.do_delete_points_by_filter(build_document_points_filter(document_id))
        document = await self._docstore_client.do_update_document(document_id, {
            "status": DocumentStatus.QUEUED,
            "progress": DocumentProgress(stage=ProgressStage.QUEUED),
            "error_message": "",
        })
        if document is None:
            raise NotFoundError(f"Document '{document_id}' not found.")
        job = await self._queue_client.do_enqueue(IngestJob(document_id=document_id, reprocess=True))
        self.logging.info("Document %s requeued for ingestion, job %s.", document_id, job.id)
        return document

    ##########################################
    ################ DELETE ##################
    ##########################################

    async def do_delete(self, document_id: str) -> None:
        """Delete a document from every store, vectors first.

        A vector store failure aborts before anything else is touched. A file
        that cannot be removed is logged and does not block the record deletion.

        Raises:
            NotFoundError: If the document does not exist.
            ConflictError: While the document is being processed.
            VectorStoreError: If the points could not be deleted.
        """
        document = await self.do_get_status(document_id)
        if document.status == DocumentStatus.PROCESSING:
            raise ConflictError(f"Document '{document_id}' is processing. Try again after it finishes.")

        await self._rag_client.do_delete_points_by_filter(build_document_points_filter(document_id))

        try:
            await asyncio.to_thread(os.remove, document.storage_path)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logging.warning("Could not remove file of document %s at '%s': %s", document_id, document.storage_path, e)

        await self._docstore_client.do_delete_document(document_id)
        self.logging.info("Deleted document %s.", document_id)
