"""Shared fixtures: a quiet HelperConfig, documents and fake backends."""

import logging

import pytest

from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import ColorLogger
from shared.models.document import Document
from tests.fakes import FakeDocStore, FakeEmbed, FakeEvents, FakeLLM, FakeQueue, FakeRAG

_PIPELINE_ENV = (
    "INGEST_BATCH_SIZE",
    "INGEST_CONCURRENCY",
    "INGEST_CLAIM_TIMEOUT",
    "CHUNK_SIZE",
    "CHUNK_OVERLAP",
    "RETRIEVAL_TOP_K",
)


@pytest.fixture(autouse=True)
def clean_pipeline_env(monkeypatch):
    """Make every test start from the built-in pipeline defaults."""
    for key in _PIPELINE_ENV:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
def helper_config() -> HelperConfig:
    return HelperConfig(logger=ColorLogger(logging.getLogger("tests")))


@pytest.fixture
def make_document(tmp_path):
    def _make(document_id: str = "doc-1", **overrides) -> Document:
        storage_path = tmp_path / f"{document_id}.pdf"
        storage_path.write_bytes(b"%PDF-1.4 placeholder")
        fields = {
            "id": document_id,
            "owner_id": "admin-1",
            "filename": f"{document_id}.pdf",
            "storage_path": str(storage_path),
            "category": "health",
            "state": "Kerala",
        }
        fields.update(overrides)
        return Document(**fields)

    return _make


@pytest.fixture
def docstore() -> FakeDocStore:
    return FakeDocStore()


@pytest.fixture
def rag() -> FakeRAG:
    return FakeRAG()


@pytest.fixture
def embed() -> FakeEmbed:
    return FakeEmbed()


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def events() -> FakeEvents:
    return FakeEvents()


@pytest.fixture
def queue() -> FakeQueue:
    return FakeQueue()
