import json

import pytest

from shared.helper.HelperConfig import HelperConfig
from shared.models.document import Document, DocumentScope
from shared.models.events import StreamEvent
from shared.exceptions import (
    ConflictError,
    EmbeddingError,
    ExtractionError,
    GenerationError,
    NotFoundError,
    ValidationError,
    VectorStoreError,
    is_retryable,
)

pytestmark = [pytest.mark.unit]


def test_stream_event_renders_sse():
    assert StreamEvent.ready().to_sse() == "event: ready\ndata: {}\n\n"
    rendered = StreamEvent.token("Hi").to_sse()
    assert rendered.startswith("event: token\ndata: ")
    assert json.loads(rendered.split("data: ", 1)[1]) == {"delta": "Hi"}
    assert StreamEvent.done().is_terminal
    assert StreamEvent.error("x").is_terminal
    assert not StreamEvent.thread("t").is_terminal


def test_document_normalises_tags():
    document = Document(id="d", owner_id="o", filename="f.pdf", storage_path="/x", category=" Education ", state=" Goa ", district=None)
    assert (document.category, document.state, document.district) == ("education", "Goa", "")
    assert Document(id="d", owner_id="o", filename="f.pdf", storage_path="/x", category=None).category == "others"


def test_scope_defaults_to_all_categories():
    assert DocumentScope(category=None).category == "all"


@pytest.mark.parametrize("error,retryable", [
    (NotFoundError("x"), False),
    (ExtractionError("x"), False),
    (ValidationError("x"), False),
    (ConflictError("x"), False),
    (EmbeddingError("x"), True),
    (VectorStoreError("x"), True),
    (GenerationError("x"), True),
    (TimeoutError("x"), True),
])
def test_retry_classification(error, retryable):
    assert is_retryable(error) is retryable


def test_extraction_error_names_page():
    assert str(ExtractionError("bad xref", page_number=3)) == "[page=3] bad xref"


def test_helper_config_values(monkeypatch, helper_config: HelperConfig):
    monkeypatch.setenv("SOME_NUMBER", "12")
    monkeypatch.setenv("SOME_FLOAT", "0.5")
    monkeypatch.setenv("SOME_FLAG", "yes")
    monkeypatch.setenv("SOME_LIST", "[a, b,,c]")
    monkeypatch.delenv("MISSING_KEY", raising=False)

    assert helper_config.get_number_val("some_number") == 12
    assert helper_config.get_number_val("SOME_FLOAT") == 0.5
    assert helper_config.get_optional_number_val("MISSING_KEY") is None
    assert helper_config.get_bool_val("SOME_FLAG") is True
    assert helper_config.get_list_val("SOME_LIST") == ["a", "b", "c"]
    assert helper_config.get_string_val("MISSING_KEY", default="fallback") == "fallback"
    with pytest.raises(ValueError):
        helper_config.get_string_val("MISSING_KEY")


def test_helper_config_rejects_bad_values(monkeypatch, helper_config: HelperConfig):
    monkeypatch.setenv("BAD_NUMBER", "ten")
    monkeypatch.setenv("BAD_LIST", "a,b")
    with pytest.raises(ValueError):
        helper_config.get_number_val("BAD_NUMBER")
    with pytest.raises(ValueError):
        helper_config.get_list_val("BAD_LIST")
