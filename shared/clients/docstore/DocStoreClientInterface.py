from abc import abstractmethod
from typing import Any

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatMessage, ChatThread
from shared.models.document import Document, DocumentScope, DocumentStatus


class DocStoreClientInterface(ClientInterface):
    """Durable records: documents, conversation threads and their messages.

    The document store is the single source of truth for document status;
    progress events and vector points are derived from it.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "docstore"

    ##########################################
    ############### DOCUMENTS ################
    ##########################################

    @abstractmethod
    async def do_create_document(self, document: Document) -> Document:
        """Insert a new document record.

        Raises:
            ConflictError: If a record with the same id already exists.
        """
        pass

    @abstractmethod
    async def do_find_document(self, document_id: str) -> Document | None:
        """Return the document with the given id, or None."""
        pass

    @abstractmethod
    async def do_update_document(self, document_id: str, patch: dict[str, Any]) -> Document | None:
        """Apply a partial update and bump updated_at.

        Args:
            document_id (str): Id of the document to update.
            patch (dict[str, Any]): Field name → new value. Pydantic values
                (enums, DocumentProgress) are accepted and serialised.

        Returns:
            Document | None: The updated record, or None if it does not exist.
        """
        pass

    @abstractmethod
    async def do_delete_document(self, document_id: str) -> bool:
        """Delete a document record. Returns True if a record was removed."""
        pass

    @abstractmethod
    async def do_list_documents(self) -> list[Document]:
        """Return every document, newest first."""
        pass

    @abstractmethod
    async def do_find_documents(self, status: DocumentStatus, scope: DocumentScope) -> list[Document]:
        """Return the documents with the given status inside a category / region scope.

        Scope semantics are those of shared.helper.FilterBuilder.build_document_query.
        """
        pass

    ##########################################
    ################ THREADS #################
    ##########################################

    @abstractmethod
    async def do_create_thread(self, thread: ChatThread) -> ChatThread:
        pass

    @abstractmethod
    async def do_find_thread(self, thread_id: str, owner_id: str) -> ChatThread | None:
        """Return the thread if it exists and belongs to owner_id."""
        pass

    @abstractmethod
    async def do_find_latest_thread(self, owner_id: str, scope: DocumentScope) -> ChatThread | None:
        """Return the most recently updated thread of owner_id with exactly this scope."""
        pass

    ##########################################
    ################ MESSAGES ################
    ##########################################

    @abstractmethod
    async def do_create_message(self, message: ChatMessage) -> ChatMessage:
        """Append an immutable message and bump its thread's updated_at."""
        pass
