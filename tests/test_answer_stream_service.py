import pytest

from services.retrieval.AnswerStreamService import (
    EMPTY_ANSWER,
    NO_CONTEXT_MESSAGE,
    NO_DOCUMENTS_MESSAGE,
    AnswerStreamService,
    build_context,
)
from shared.clients.rag.models.SearchHit import SearchHit
from shared.clients.rag.models.VectorPoint import VectorPayload
from shared.exceptions import ValidationError
from shared.models.chat import ChatThread, MessageRole
from shared.models.document import DocumentScope, DocumentStatus
from shared.models.events import StreamEventName
from tests.fakes import FakeLLM

pytestmark = [pytest.mark.unit]


def make_service(helper_config, docstore, rag, embed, llm) -> AnswerStreamService:
    return AnswerStreamService(
        helper_config=helper_config,
        docstore_client=docstore,
        rag_client=rag,
        embed_client=embed,
        llm_client=llm,
    )


async def collect(service, question="What is covered?", owner_id="user-1", scope=None, thread_id=None):
    return [
        event async for event in service.do_stream(question, owner_id, scope or DocumentScope(), thread_id)
    ]


def names(events):
    return [event.event for event in events]


def test_validate_request_rejects_empty_question(helper_config, docstore, rag, embed, llm):
    service = make_service(helper_config, docstore, rag, embed, llm)
    with pytest.raises(ValidationError):
        service.validate_request("   ", "user-1")
    with pytest.raises(ValidationError):
        service.validate_request("question", "")
    assert service.validate_request("  why?  ", "user-1") == "why?"


@pytest.mark.asyncio
async def test_no_ready_documents_gives_single_token_without_retrieval(helper_config, docstore, rag, embed, llm, make_document):
    await docstore.do_create_document(make_document("doc-1", status=DocumentStatus.PROCESSING))
    service = make_service(helper_config, docstore, rag, embed, llm)

    events = await collect(service)

    assert names(events) == [StreamEventName.READY, StreamEventName.THREAD, StreamEventName.TOKEN, StreamEventName.DONE]
    assert events[2].data == {"delta": NO_DOCUMENTS_MESSAGE}
    assert embed.calls == []
    assert rag.search_calls == []
    assert llm.calls == []


@pytest.mark.asyncio
async def test_no_hits_gives_fallback_and_no_citations(helper_config, docstore, rag, embed, llm, make_document):
    await docstore.do_create_document(make_document("doc-1", status=DocumentStatus.READY))
    service = make_service(helper_config, docstore, rag, embed, llm)

    events = await collect(service)

    assert StreamEventName.CITATIONS not in names(events)
    tokens = [e.data["delta"] for e in events if e.event == StreamEventName.TOKEN]
    assert tokens == [NO_CONTEXT_MESSAGE]
    assert events[-1].event == StreamEventName.DONE
    assert len(embed.calls) == 1
    assert llm.calls == []


@pytest.mark.asyncio
async def test_happy_path_streams_tokens_then_citations(helper_config, docstore, rag, embed, llm, make_document):
    await docstore.do_create_document(make_document("doc-1", status=DocumentStatus.READY, filename="Vaccination.pdf"))
    rag.add_point("doc-1", page_no=3, text="Children get vaccines at 6 weeks.")
    service = make_service(helper_config, docstore, rag, embed, llm)

    events = await collect(service, question="When are vaccines given?")

    assert names(events) == [
        StreamEventName.READY,
        StreamEventName.THREAD,
        StreamEventName.TOKEN,
        StreamEventName.TOKEN,
        StreamEventName.CITATIONS,
        StreamEventName.DONE,
    ]
    assert [e.data["delta"] for e in events[2:4]] == ["Hello", " world"]
    assert events[4].data["citations"] == [
        {"documentId": "doc-1", "documentName": "Vaccination.pdf", "pageNo": 3, "score": 1.0},
    ]

    system, user = llm.calls[0]
    assert system["role"] == "system"
    assert "ONLY" in system["content"]
    assert "Document: Vaccination.pdf\nPage 3:\nChildren get vaccines at 6 weeks." in user["content"]
    assert user["content"].endswith("Question:\nWhen are vaccines given?")

    user_message, assistant_message = docstore.messages
    assert user_message.role == MessageRole.USER
    assert assistant_message.role == MessageRole.ASSISTANT
    assert assistant_message.content == "Hello world"
    assert assistant_message.citations[0].page_no == 3


@pytest.mark.asyncio
async def test_search_is_filtered_to_ready_documents_in_scope(helper_config, docstore, rag, embed, llm, make_document):
    await docstore.do_create_document(make_document("health-ready", status=DocumentStatus.READY, category="health"))
    await docstore.do_create_document(make_document("edu-ready", status=DocumentStatus.READY, category="education"))
    await docstore.do_create_document(make_document("health-processing", status=DocumentStatus.PROCESSING, category="health"))
    rag.add_point("health-ready", category="health")
    rag.add_point("edu-ready", category="education")
    rag.add_point("health-processing", category="health")
    service = make_service(helper_config, docstore, rag, embed, llm)

    events = await collect(service, scope=DocumentScope(category="health"))

    citations = next(e for e in events if e.event == StreamEventName.CITATIONS).data["citations"]
    assert [c["documentId"] for c in citations] == ["health-ready"]
    search_filter = rag.search_calls[0]["filter"]
    assert search_filter["must"][0] == {"key": "documentId", "match": {"any": ["health-ready"]}}


@pytest.mark.asyncio
async def test_district_scope_excludes_other_districts(helper_config, docstore, rag, embed, llm, make_document):
    await docstore.do_create_document(make_document("a", status=DocumentStatus.READY, state="Kerala", district="Idukki"))
    await docstore.do_create_document(make_document("b", status=DocumentStatus.READY, state="Kerala", district="Wayanad"))
    rag.add_point("a", state="Kerala", district="Idukki")
    rag.add_point("b", state="Kerala", district="Wayanad")
    service = make_service(helper_config, docstore, rag, embed, llm)

    events = await collect(service, scope=DocumentScope(state="Kerala", district="Idukki"))

    citations = next(e for e in events if e.event == StreamEventName.CITATIONS).data["citations"]
    assert {c["documentId"] for c in citations} == {"a"}


@pytest.mark.asyncio
async def test_existing_thread_is_reused_without_thread_event(helper_config, docstore, rag, embed, llm):
    scope = DocumentScope(category="health")
    thread = await docstore.do_create_thread(ChatThread.for_scope("user-1", scope))
    service = make_service(helper_config, docstore, rag, embed, llm)

    events = await collect(service, scope=scope)

    assert StreamEventName.THREAD not in names(events)
    assert docstore.messages[0].thread_id == thread.id


@pytest.mark.asyncio
async def test_explicit_thread_of_other_owner_is_not_used(helper_config, docstore, rag, embed, llm):
    foreign = await docstore.do_create_thread(ChatThread.for_scope("someone-else", DocumentScope()))
    service = make_service(helper_config, docstore, rag, embed, llm)

    events = await collect(service, thread_id=foreign.id)

    thread_event = next(e for e in events if e.event == StreamEventName.THREAD)
    assert thread_event.data["threadId"] != foreign.id


@pytest.mark.asyncio
async def test_generation_failure_ends_with_error_event(helper_config, docstore, rag, embed, make_document):
    await docstore.do_create_document(make_document("doc-1", status=DocumentStatus.READY))
    rag.add_point("doc-1")
    llm = FakeLLM(deltas=["partial", "never"], fail_after=1)
    service = make_service(helper_config, docstore, rag, embed, llm)

    events = await collect(service)

    assert events[-1].event == StreamEventName.ERROR
    assert events[-1].data == {"message": "completion backend failed"}
    assert StreamEventName.DONE not in names(events)
    assert StreamEventName.CITATIONS not in names(events)
    # the question itself stays recorded
    assert [m.role for m in docstore.messages] == [MessageRole.USER]


@pytest.mark.asyncio
async def test_unexpected_failure_uses_generic_message(helper_config, docstore, rag, embed, llm):
    async def broken(*args, **kwargs):
        raise RuntimeError("socket closed")

    docstore.do_find_documents = broken
    service = make_service(helper_config, docstore, rag, embed, llm)

    events = await collect(service)

    assert events[-1].event == StreamEventName.ERROR
    assert "socket closed" not in events[-1].data["message"]


@pytest.mark.asyncio
async def test_empty_generation_is_stored_as_placeholder(helper_config, docstore, rag, embed, make_document):
    await docstore.do_create_document(make_document("doc-1", status=DocumentStatus.READY))
    rag.add_point("doc-1")
    service = make_service(helper_config, docstore, rag, embed, FakeLLM(deltas=[]))

    events = await collect(service)

    assert events[-1].event == StreamEventName.DONE
    assert docstore.messages[-1].content == EMPTY_ANSWER


@pytest.mark.asyncio
async def test_closing_stream_early_closes_generation(helper_config, docstore, rag, embed, make_document):
    await docstore.do_create_document(make_document("doc-1", status=DocumentStatus.READY))
    rag.add_point("doc-1")
    llm = FakeLLM(deltas=["a", "b", "c"])
    service = make_service(helper_config, docstore, rag, embed, llm)

    stream = service.do_stream("q", "user-1", DocumentScope())
    async for event in stream:
        if event.event == StreamEventName.TOKEN:
            break
    await stream.aclose()

    assert llm.closed
    assert [m.role for m in docstore.messages] == [MessageRole.USER]


def test_build_context_keeps_ranking_order():
    hits = [
        SearchHit(id="1", score=0.9, payload=VectorPayload(document_id="a", category="c", page_no=2, chunk_index=0, text="first")),
        SearchHit(id="2", score=0.5, payload=VectorPayload(document_id="b", category="c", page_no=7, chunk_index=1, text="second")),
    ]
    context = build_context(hits, {"a": "A.pdf"})
    assert context == "Document: A.pdf\nPage 2:\nfirst\n\n---\n\nDocument: b\nPage 7:\nsecond"
