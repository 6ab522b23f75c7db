"""Answer streaming service.

Resolves the conversation thread, restricts retrieval to ready documents in
the requested scope, embeds the question, searches the vector store and streams
a grounded answer back as named events:

    ready → [thread] → token* → [citations] → done
                                            ↘ error

Exactly one of done / error terminates every stream. Once the first event is
out, failures are only ever reported in-band as an error event.
"""

from contextlib import aclosing
from typing import AsyncIterator

from shared.clients.docstore.DocStoreClientInterface import DocStoreClientInterface
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.SearchHit import SearchHit
from shared.exceptions import BridgeError, ValidationError
from shared.helper.FilterBuilder import build_vector_filter
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatMessage, ChatThread, Citation, MessageRole
from shared.models.document import DocumentScope, DocumentStatus
from shared.models.events import StreamEvent

TOP_K = 10

NO_DOCUMENTS_MESSAGE = "No verified documents are available for the selected filters yet."
NO_CONTEXT_MESSAGE = "Information is not available in verified uploaded documents."
EMPTY_ANSWER = "(no output)"
FAILURE_MESSAGE = "Failed to generate an answer. Please try again."

SYSTEM_PROMPT = (
    "You are a helpful assistant. Answer ONLY using the provided context from verified PDFs. "
    "If the answer is not in context, say it is not available in verified documents. "
    "Keep the answer clear and practical."
)
CONTEXT_SEPARATOR = "\n\n---\n\n"


def build_context(hits: list[SearchHit], document_names: dict[str, str]) -> str:
    """Join the hit texts in ranking order, each labelled with its source and page."""
    blocks = []
    for hit in hits:
        name = document_names.get(hit.payload.document_id, hit.payload.document_id)
        blocks.append(f"Document: {name}\nPage {hit.payload.page_no}:\n{hit.payload.text}")
    return CONTEXT_SEPARATOR.join(blocks)


def build_messages(context: str, question: str) -> list[dict]:
    return [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": f"Context:\n{context}\n\nQuestion:\n{question}"},
    ]


class AnswerStreamService:
    """Turns a question plus scope into a streamed, citation-bearing answer."""

    def __init__(
        self,
        helper_config: HelperConfig,
        docstore_client: DocStoreClientInterface,
        rag_client: RAGClientInterface,
        embed_client: EmbedClientInterface,
        llm_client: LLMClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._docstore_client = docstore_client
        self._rag_client = rag_client
        self._embed_client = embed_client
        self._llm_client = llm_client
        self._top_k = int(helper_config.get_number_val("RETRIEVAL_TOP_K", default=TOP_K))

    ##########################################
    ############### VALIDATION ###############
    ##########################################

    def validate_request(self, question: str, owner_id: str) -> str:
        """Reject a request before any stream is opened or anything is persisted.

        Returns:
            str: The trimmed question.

        Raises:
            ValidationError: If the question or the owner id is empty.
        """
        question = (question or "").strip()
        if not question:
            raise ValidationError("Question is required.")
        if not (owner_id or "").strip():
            raise ValidationError("Owner id is required.")
        return question

    ##########################################
    ################ STREAM ##################
    ##########################################

    async def do_stream(
        self,
        question: str,
        owner_id: str,
        scope: DocumentScope,
        thread_id: str | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Answer a validated question as a sequence of stream events.

        Closing the iterator early (client disconnect) closes the upstream
        generation request; the already persisted user message is kept.

        Args:
            question (str): Question, already passed through validate_request.
            owner_id (str): Caller the thread belongs to.
            scope (DocumentScope): Category / region restriction.
            thread_id (str | None): Thread to continue, if the client pinned one.

        Yields:
            StreamEvent: ready, then thread / token / citations, then done or error.
        """
        yield StreamEvent.ready()
        try:
            thread, created = await self._resolve_thread(owner_id, scope, thread_id)
            if created:
                yield StreamEvent.thread(thread.id)

            await self._docstore_client.do_create_message(
                ChatMessage(thread_id=thread.id, role=MessageRole.USER, content=question)
            )

            ready_documents = await self._docstore_client.do_find_documents(DocumentStatus.READY, scope)
            if not ready_documents:
                self.logging.info("No ready documents in scope %s, answering without retrieval.", scope.model_dump())
                yield StreamEvent.token(NO_DOCUMENTS_MESSAGE)
                yield StreamEvent.done()
                return

            vectors = await self._embed_client.do_embed([question])
            vector_filter = build_vector_filter([document.id for document in ready_documents], scope)
            hits = await self._rag_client.do_search(vectors[0], limit=self._top_k, filter=vector_filter)
            if not hits:
                self.logging.info("No hits for question in thread %s.", thread.id)
                yield StreamEvent.token(NO_CONTEXT_MESSAGE)
                yield StreamEvent.done()
                return

            document_names = {document.id: document.filename for document in ready_documents}
            messages = build_messages(build_context(hits, document_names), question)

            parts: list[str] = []
            async with aclosing(self._llm_client.do_chat_stream(messages)) as deltas:
                async for delta in deltas:
                    parts.append(delta)
                    yield StreamEvent.token(delta)

            citations = [
                Citation(
                    document_id=hit.payload.document_id,
                    document_name=document_names.get(hit.payload.document_id, hit.payload.document_id),
                    page_no=hit.payload.page_no,
                    score=hit.score,
                )
                for hit in hits
            ]
            await self._docstore_client.do_create_message(ChatMessage(
                thread_id=thread.id,
                role=MessageRole.ASSISTANT,
                content="".join(parts) or EMPTY_ANSWER,
                citations=citations,
            ))
            self.logging.info("Answered question in thread %s with %d citation(s).", thread.id, len(citations))

            yield StreamEvent.citations([citation.to_event() for citation in citations])
            yield StreamEvent.done()
        except BridgeError as e:
            self.logging.error("Answer stream failed: %s", e.message)
            yield StreamEvent.error(e.message)
        except Exception as e:
            self.logging.error("Answer stream failed unexpectedly: %s", e)
            yield StreamEvent.error(FAILURE_MESSAGE)

    ##########################################
    ################ THREADS #################
    ##########################################

    async def _resolve_thread(self, owner_id: str, scope: DocumentScope, thread_id: str | None) -> tuple[ChatThread, bool]:
        """Pick the thread to append to.

        An explicit thread id wins if it belongs to the caller; otherwise the
        most recently updated thread of (owner, scope); otherwise a new one.

        Returns:
            tuple[ChatThread, bool]: The thread and whether it was just created.
        """
        if thread_id:
            thread = await self._docstore_client.do_find_thread(thread_id, owner_id)
            if thread is not None:
                return thread, False
            self.logging.warning("Thread %s not found for owner %s, resolving by scope.", thread_id, owner_id)

        thread = await self._docstore_client.do_find_latest_thread(owner_id, scope)
        if thread is not None:
            return thread, False

        thread = await self._docstore_client.do_create_thread(ChatThread.for_scope(owner_id, scope))
        self.logging.debug("Created thread %s for owner %s.", thread.id, owner_id)
        return thread, True
