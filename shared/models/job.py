from datetime import datetime

from pydantic import BaseModel, Field

from shared.models.chat import new_id
from shared.models.document import utc_now


class IngestJob(BaseModel):
    """A queue entry asking the worker to ingest one document.

    Delivered at least once. A redelivered job for a document that is already
    ready is skipped unless ``reprocess`` is set, which only explicit
    re-ingestion does after deleting the document's vectors.

    Attributes:
        id:          Unique job id, stable across redeliveries.
        document_id: Document to ingest.
        attempts:    Number of failed attempts so far.
        reprocess:   Force ingestion even if the document is already ready.
        last_error:  Message of the most recent failure, if any.
        enqueued_at: Time of the original enqueue.
    """

    id: str = Field(default_factory=new_id)
    document_id: str
    attempts: int = 0
    reprocess: bool = False
    last_error: str | None = None
    enqueued_at: datetime = Field(default_factory=utc_now)
