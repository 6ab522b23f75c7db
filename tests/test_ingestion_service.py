import pytest

from services.ingestion.IngestionService import IngestionService
from services.ingestion.TextExtractor import PageText
from shared.exceptions import EmbeddingError, ExtractionError, NotFoundError, VectorStoreError
from shared.models.document import DocumentStatus, ProgressStage
from shared.models.events import ProgressEventKind
from shared.models.job import IngestJob
from tests.fakes import FakeEmbed, FakeEvents, FakeRAG

pytestmark = [pytest.mark.unit]


def pages_of(*texts: str):
    def _source(path: str):
        for index, text in enumerate(texts):
            yield PageText(page_number=index + 1, text=text)
    return _source


def failing_on_page(total: int, failing_page: int):
    def _source(path: str):
        for number in range(1, total + 1):
            if number == failing_page:
                raise ExtractionError("corrupt content stream", page_number=number)
            yield PageText(page_number=number, text=f"text of page {number}")
    return _source


def make_service(helper_config, docstore, rag, embed, events, page_source):
    return IngestionService(
        helper_config=helper_config,
        docstore_client=docstore,
        rag_client=rag,
        embed_client=embed,
        event_client=events,
        page_source=page_source,
    )


@pytest.mark.asyncio
async def test_two_page_pdf_ends_ready_with_one_upsert(helper_config, docstore, rag, embed, events, make_document):
    await docstore.do_create_document(make_document("doc-1"))
    service = make_service(helper_config, docstore, rag, embed, events, pages_of("page one text", "page two text"))

    document = await service.do_ingest(IngestJob(document_id="doc-1"))

    assert document.status == DocumentStatus.READY
    assert document.progress.stage == ProgressStage.DONE
    assert (document.progress.pages_done, document.progress.chunks_done) == (2, 2)
    assert document.error_message == ""
    assert len(rag.upsert_calls) == 1
    assert len(rag.upsert_calls[0]) == 2
    assert len(embed.calls) == 1


@pytest.mark.asyncio
async def test_points_carry_document_payload(helper_config, docstore, rag, embed, events, make_document):
    await docstore.do_create_document(make_document("doc-1", category="Health", state="Kerala", district="Idukki"))
    service = make_service(helper_config, docstore, rag, embed, events, pages_of("alpha", "beta"))

    await service.do_ingest(IngestJob(document_id="doc-1"))

    payloads = sorted((p.payload.to_payload() for p in rag.points.values()), key=lambda p: p["pageNo"])
    assert payloads[0] == {
        "documentId": "doc-1",
        "category": "health",
        "state": "Kerala",
        "district": "Idukki",
        "pageNo": 1,
        "chunkIndex": 0,
        "text": "alpha",
    }
    assert payloads[1]["pageNo"] == 2


@pytest.mark.asyncio
async def test_status_set_to_processing_before_any_point(helper_config, docstore, rag, embed, events, make_document):
    await docstore.do_create_document(make_document("doc-1"))
    service = make_service(helper_config, docstore, rag, embed, events, pages_of("a", "b"))

    await service.do_ingest(IngestJob(document_id="doc-1"))

    first_id, first_patch = docstore.updates[0]
    assert first_patch["status"] == DocumentStatus.PROCESSING
    assert first_patch["progress"].stage == ProgressStage.EXTRACT
    assert first_patch["error_message"] == ""
    assert docstore.updates[-1][1]["status"] == DocumentStatus.READY


@pytest.mark.asyncio
async def test_batches_flush_at_batch_size_and_remainder(helper_config, docstore, rag, embed, events, make_document, monkeypatch):
    monkeypatch.setenv("INGEST_BATCH_SIZE", "2")
    await docstore.do_create_document(make_document("doc-1"))
    service = make_service(helper_config, docstore, rag, embed, events, pages_of("p1", "p2", "p3", "p4", "p5"))

    document = await service.do_ingest(IngestJob(document_id="doc-1"))

    assert [len(call) for call in rag.upsert_calls] == [2, 2, 1]
    assert [len(call) for call in embed.calls] == [2, 2, 1]
    assert document.progress.chunks_done == 5


@pytest.mark.asyncio
async def test_progress_events_are_monotonic_and_end_with_totals(helper_config, docstore, rag, embed, events, make_document, monkeypatch):
    monkeypatch.setenv("INGEST_BATCH_SIZE", "3")
    monkeypatch.setenv("CHUNK_SIZE", "10")
    monkeypatch.setenv("CHUNK_OVERLAP", "2")
    await docstore.do_create_document(make_document("doc-1"))
    texts = ["x" * 25, "y" * 9, "z" * 40]
    service = make_service(helper_config, docstore, rag, embed, events, pages_of(*texts))

    await service.do_ingest(IngestJob(document_id="doc-1"))

    pages = [e.progress.pages_done for e in events.published]
    chunks = [e.progress.chunks_done for e in events.published]
    assert pages == sorted(pages)
    assert chunks == sorted(chunks)
    final = events.published[-1]
    assert final.kind == ProgressEventKind.READY
    assert final.progress.pages_done == 3
    assert final.progress.chunks_done == len(rag.points) == 3 + 1 + 5


@pytest.mark.asyncio
async def test_extraction_failure_on_page_two_freezes_progress(helper_config, docstore, rag, embed, events, make_document):
    await docstore.do_create_document(make_document("doc-1"))
    service = make_service(helper_config, docstore, rag, embed, events, failing_on_page(5, 2))

    with pytest.raises(ExtractionError):
        await service.do_ingest(IngestJob(document_id="doc-1"))

    document = docstore.documents["doc-1"]
    assert document.status == DocumentStatus.FAILED
    assert document.progress.stage == ProgressStage.FAILED
    assert document.progress.pages_done == 1
    assert document.progress.chunks_done == 0
    assert "page=2" in document.error_message
    # page one never reached the batch threshold
    assert rag.upsert_calls == []
    assert events.published[-1].kind == ProgressEventKind.FAILED


@pytest.mark.asyncio
async def test_extraction_failure_keeps_already_flushed_batch(helper_config, docstore, rag, embed, events, make_document, monkeypatch):
    monkeypatch.setenv("INGEST_BATCH_SIZE", "1")
    await docstore.do_create_document(make_document("doc-1"))
    service = make_service(helper_config, docstore, rag, embed, events, failing_on_page(5, 2))

    with pytest.raises(ExtractionError):
        await service.do_ingest(IngestJob(document_id="doc-1"))

    document = docstore.documents["doc-1"]
    assert (document.progress.pages_done, document.progress.chunks_done) == (1, 1)
    assert [p.payload.page_no for p in rag.points_of("doc-1")] == [1]


@pytest.mark.asyncio
async def test_embedding_failure_marks_failed_and_propagates(helper_config, docstore, rag, events, make_document):
    await docstore.do_create_document(make_document("doc-1"))
    embed = FakeEmbed(fail_on_call=1)
    service = make_service(helper_config, docstore, rag, embed, events, pages_of("a", "b"))

    with pytest.raises(EmbeddingError):
        await service.do_ingest(IngestJob(document_id="doc-1"))

    document = docstore.documents["doc-1"]
    assert document.status == DocumentStatus.FAILED
    assert document.error_message == "embedding backend unavailable"
    assert rag.upsert_calls == []


@pytest.mark.asyncio
async def test_vector_store_failure_marks_failed(helper_config, docstore, embed, events, make_document):
    await docstore.do_create_document(make_document("doc-1"))
    rag = FakeRAG(fail_upsert=True)
    service = make_service(helper_config, docstore, rag, embed, events, pages_of("a"))

    with pytest.raises(VectorStoreError):
        await service.do_ingest(IngestJob(document_id="doc-1"))

    assert docstore.documents["doc-1"].status == DocumentStatus.FAILED
    assert len(rag.upsert_calls) == 1


@pytest.mark.asyncio
async def test_missing_document_is_not_found(helper_config, docstore, rag, embed, events):
    service = make_service(helper_config, docstore, rag, embed, events, pages_of("a"))

    with pytest.raises(NotFoundError):
        await service.do_ingest(IngestJob(document_id="ghost"))

    assert embed.calls == []
    assert events.published == []


@pytest.mark.asyncio
async def test_redelivered_job_for_ready_document_is_noop(helper_config, docstore, rag, embed, events, make_document):
    await docstore.do_create_document(make_document("doc-1"))
    service = make_service(helper_config, docstore, rag, embed, events, pages_of("a", "b"))
    job = IngestJob(document_id="doc-1")

    await service.do_ingest(job)
    document = await service.do_ingest(job)

    assert document.status == DocumentStatus.READY
    assert len(rag.upsert_calls) == 1
    assert len(rag.points_of("doc-1")) == 2


@pytest.mark.asyncio
async def test_reprocessing_is_additive_with_fresh_point_ids(helper_config, docstore, rag, embed, events, make_document):
    await docstore.do_create_document(make_document("doc-1"))
    service = make_service(helper_config, docstore, rag, embed, events, pages_of("a", "b"))

    first = await service.do_ingest(IngestJob(document_id="doc-1"))
    first_ids = set(rag.points)
    second = await service.do_ingest(IngestJob(document_id="doc-1", reprocess=True))

    assert first.status == second.status == DocumentStatus.READY
    assert len(rag.points_of("doc-1")) == 4
    assert first_ids < set(rag.points)


@pytest.mark.asyncio
async def test_event_publish_failure_does_not_abort(helper_config, docstore, rag, embed, make_document):
    await docstore.do_create_document(make_document("doc-1"))
    service = make_service(helper_config, docstore, rag, embed, FakeEvents(fail=True), pages_of("a", "b"))

    document = await service.do_ingest(IngestJob(document_id="doc-1"))

    assert document.status == DocumentStatus.READY


@pytest.mark.asyncio
async def test_empty_pages_produce_ready_document_without_points(helper_config, docstore, rag, embed, events, make_document):
    await docstore.do_create_document(make_document("doc-1"))
    service = make_service(helper_config, docstore, rag, embed, events, pages_of("", "   "))

    document = await service.do_ingest(IngestJob(document_id="doc-1"))

    assert document.status == DocumentStatus.READY
    assert (document.progress.pages_done, document.progress.chunks_done) == (2, 0)
    assert rag.upsert_calls == []
