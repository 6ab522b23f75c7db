"""Error taxonomy shared by the ingestion worker, the answer streamer and the clients."""


class BridgeError(Exception):
    """Base class for all pipeline errors.

    Attributes:
        message: Human-readable description, safe to store on a document or send to a client.
        retryable: Whether a queue redelivery may succeed where this attempt failed.
    """

    retryable: bool = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(BridgeError):
    """A referenced document or thread does not exist. Permanent."""


class ExtractionError(BridgeError):
    """The PDF is missing, corrupt or unreadable. Permanent."""

    def __init__(self, message: str, page_number: int | None = None):
        if page_number is not None:
            message = f"[page={page_number}] {message}"
        self.page_number = page_number
        super().__init__(message)


class EmbeddingError(BridgeError):
    """The embedding backend failed or returned malformed vectors."""

    retryable = True


class VectorStoreError(BridgeError):
    """The vector database rejected or failed a request."""

    retryable = True


class GenerationError(BridgeError):
    """The completion backend failed while producing an answer."""

    retryable = True


class ValidationError(BridgeError):
    """A request is rejected before any side effect (empty question, missing id)."""


class ConflictError(BridgeError):
    """The document is in a state that forbids the requested operation."""


def is_retryable(error: BaseException) -> bool:
    """Return whether a failed ingestion job should be redelivered.

    Errors outside the taxonomy (driver errors, timeouts) are assumed transient.
    """
    if isinstance(error, BridgeError):
        return error.retryable
    return True
