"""Ingestion service.

Turns one queued document into searchable vector points: pulls pages from the
extractor, splits each page into chunks, embeds and upserts them in fixed-size
batches and keeps the document record and the admin event channel up to date.

Ordering between the three stores is the only consistency mechanism:
  1. the document is set to processing before any point is written,
  2. every batch is upserted with wait=True before progress counts it,
  3. the document is set to ready only after the last batch is durable.
"""

import asyncio
import uuid
from typing import Callable, Iterable

from services.ingestion.Chunker import CHUNK_OVERLAP, CHUNK_SIZE, chunk_text
from services.ingestion.TextExtractor import PageText, extract_pages
from shared.clients.docstore.DocStoreClientInterface import DocStoreClientInterface
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.events.EventClientInterface import EventClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import VectorPayload, VectorPoint
from shared.exceptions import NotFoundError
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Document, DocumentProgress, DocumentStatus, ProgressStage
from shared.models.events import ProgressEvent, ProgressEventKind
from shared.models.job import IngestJob

BATCH_SIZE = 64  # chunks per embedding request and upsert call

PageSource = Callable[[str], Iterable[PageText]]
ChunkFunction = Callable[[str, int, int], list[str]]


class ChunkBatch:
    """Chunks waiting to be embedded, owned by a single ingestion run."""

    def __init__(self) -> None:
        self.texts: list[str] = []
        self.payloads: list[VectorPayload] = []

    def add(self, text: str, payload: VectorPayload) -> None:
        self.texts.append(text)
        self.payloads.append(payload)

    def clear(self) -> None:
        self.texts = []
        self.payloads = []

    def __len__(self) -> int:
        return len(self.texts)


class IngestionService:
    """Runs the extract → chunk → embed → upsert pipeline for one job at a time."""

    def __init__(
        self,
        helper_config: HelperConfig,
        docstore_client: DocStoreClientInterface,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
        event_client: EventClientInterface,
        page_source: PageSource = extract_pages,
        chunk_function: ChunkFunction = chunk_text,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._docstore_client = docstore_client
        self._rag_client = rag_client
        self._embed_client = embed_client
        self._event_client = event_client
        self._page_source = page_source
        self._chunk_function = chunk_function
        self._batch_size = int(helper_config.get_number_val("INGEST_BATCH_SIZE", default=BATCH_SIZE))
        self._chunk_size = int(helper_config.get_number_val("CHUNK_SIZE", default=CHUNK_SIZE))
        self._chunk_overlap = int(helper_config.get_number_val("CHUNK_OVERLAP", default=CHUNK_OVERLAP))
        if self._batch_size < 1:
            raise ValueError(f"INGEST_BATCH_SIZE must be at least 1, got {self._batch_size}.")

    ##########################################
    ############### CORE INGEST ##############
    ##########################################

    async def do_ingest(self, job: IngestJob) -> Document:
        """Ingest the document referenced by a job.

        A redelivered job for a document that is already ready is skipped
        unless job.reprocess is set.

        Args:
            job (IngestJob): The claimed queue entry.

        Returns:
            Document: The final document record.

        Raises:
            NotFoundError: If the document record does not exist.
            ExtractionError, EmbeddingError, VectorStoreError: After the
                document has been marked failed, for the queue to decide on redelivery.
        """
        document = await self._docstore_client.do_find_document(job.document_id)
        if document is None:
            raise NotFoundError(f"Document '{job.document_id}' referenced by job {job.id} does not exist.")

        if document.status == DocumentStatus.READY and not job.reprocess:
            self.logging.info("Document %s is already ready, skipping redelivered job %s.", document.id, job.id)
            return document

        self.logging.info("Ingesting document %s ('%s'), job %s attempt %d.", document.id, document.filename, job.id, job.attempts + 1)

        pages_done = 0
        chunks_done = 0
        try:
            document = await self._update_status(
                document.id,
                DocumentStatus.PROCESSING,
                DocumentProgress(stage=ProgressStage.EXTRACT),
            )
            await self._publish(ProgressEventKind.PROGRESS, document)

            batch = ChunkBatch()
            pages = iter(self._page_source(document.storage_path))
            try:
                while True:
                    # page parsing is blocking, keep it off the event loop
                    page = await asyncio.to_thread(next, pages, None)
                    if page is None:
                        break
                    pages_done = page.page_number
                    chunks = self._chunk_function(page.text, self._chunk_size, self._chunk_overlap)
                    for chunk_index, chunk in enumerate(chunks):
                        batch.add(chunk, VectorPayload(
                            document_id=document.id,
                            category=document.category,
                            state=document.state,
                            district=document.district,
                            page_no=page.page_number,
                            chunk_index=chunk_index,
                            text=chunk,
                        ))
                        if len(batch) >= self._batch_size:
                            chunks_done = await self._flush(document.id, batch, pages_done, chunks_done)
            finally:
                close = getattr(pages, "close", None)
                if close is not None:
                    close()

            if len(batch):
                chunks_done = await self._flush(document.id, batch, pages_done, chunks_done)

            document = await self._update_status(
                document.id,
                DocumentStatus.READY,
                DocumentProgress(stage=ProgressStage.DONE, pages_done=pages_done, chunks_done=chunks_done),
            )
        except Exception as e:
            await self._mark_failed(document.id, pages_done, chunks_done, e)
            raise

        await self._publish(ProgressEventKind.READY, document)
        self.logging.info("Document %s ready: %d pages, %d chunks.", document.id, pages_done, chunks_done, color="green")
        return document

    ##########################################
    ################ BATCHES #################
    ##########################################

    async def _flush(self, document_id: str, batch: ChunkBatch, pages_done: int, chunks_done: int) -> int:
        """Embed and durably upsert one batch, then record progress.

        Returns:
            int: The new chunks_done count.
        """
        vectors = await self._embed_client.do_embed(batch.texts)
        points = [
            VectorPoint(id=str(uuid.uuid4()), vector=vector, payload=payload)
            for vector, payload in zip(vectors, batch.payloads)
        ]
        await self._rag_client.do_upsert_points(points, wait=True)
        chunks_done += len(points)
        batch.clear()
        self.logging.debug("Document %s: flushed %d chunks (pages=%d, chunks=%d).", document_id, len(points), pages_done, chunks_done)
        await self._record_progress(document_id, pages_done, chunks_done)
        return chunks_done

    async def _record_progress(self, document_id: str, pages_done: int, chunks_done: int) -> None:
        """Persist and announce batch progress. Failures are logged, never raised."""
        progress = DocumentProgress(stage=ProgressStage.EMBED_UPSERT, pages_done=pages_done, chunks_done=chunks_done)
        try:
            document = await self._docstore_client.do_update_document(document_id, {"progress": progress})
        except Exception as e:
            self.logging.warning("Could not persist progress of document %s: %s", document_id, e)
            return
        if document is not None:
            await self._publish(ProgressEventKind.PROGRESS, document)

    ##########################################
    ################ STATUS ##################
    ##########################################

    async def _update_status(self, document_id: str, status: DocumentStatus, progress: DocumentProgress) -> Document:
        document = await self._docstore_client.do_update_document(
            document_id,
            {"status": status, "progress": progress, "error_message": ""},
        )
        if document is None:
            raise NotFoundError(f"Document '{document_id}' was deleted during ingestion.")
        return document

    async def _mark_failed(self, document_id: str, pages_done: int, chunks_done: int, error: Exception) -> None:
        """Freeze progress at the last durable counts and record the error."""
        message = str(error) or error.__class__.__name__
        self.logging.error("Ingestion of document %s failed after %d pages / %d chunks: %s", document_id, pages_done, chunks_done, message)
        try:
            document = await self._docstore_client.do_update_document(document_id, {
                "status": DocumentStatus.FAILED,
                "progress": DocumentProgress(stage=ProgressStage.FAILED, pages_done=pages_done, chunks_done=chunks_done),
                "error_message": message,
            })
        except Exception as e:
            self.logging.error("Could not mark document %s as failed: %s", document_id, e)
            return
        if document is not None:
            await self._publish(ProgressEventKind.FAILED, document)

    async def _publish(self, kind: ProgressEventKind, document: Document) -> None:
        """Fire-and-forget event publish. The document store stays authoritative."""
        try:
            await self._event_client.do_publish(ProgressEvent.from_document(kind, document))
        except Exception as e:
            self.logging.warning("Dropped %s event for document %s: %s", kind.value, document.id, e)
