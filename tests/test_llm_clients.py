import json

import httpx
import pytest

from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.llm.ollama.LLMClientOllama import LLMClientOllama
from shared.clients.llm.openai.LLMClientOpenai import LLMClientOpenai
from shared.exceptions import GenerationError

pytestmark = [pytest.mark.unit]

MESSAGES = [{"role": "system", "content": "s"}, {"role": "user", "content": "u"}]


@pytest.fixture
def llm_env(monkeypatch):
    monkeypatch.setenv("LLM_CHAT_MODEL", "test-model")
    monkeypatch.setenv("LLM_OLLAMA_BASE_URL", "http://ollama:11434")
    monkeypatch.setenv("LLM_OPENAI_API_KEY", "sk-test")
    monkeypatch.delenv("LLM_TEMPERATURE", raising=False)


def attach(client, body: str, status_code: int = 200) -> list[httpx.Request]:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status_code, text=body)

    client._client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return requests


async def collect(client) -> list[str]:
    return [delta async for delta in client.do_chat_stream(MESSAGES)]


def test_manager_resolves_engine(llm_env, monkeypatch, helper_config):
    monkeypatch.setenv("LLM_ENGINE", "Ollama")
    assert isinstance(LLMClientManager(helper_config=helper_config).get_client(), LLMClientOllama)


@pytest.mark.asyncio
async def test_ollama_ndjson_stream(llm_env, helper_config):
    client = LLMClientOllama(helper_config=helper_config)
    lines = [
        {"message": {"role": "assistant", "content": "Hel"}, "done": False},
        {"message": {"role": "assistant", "content": "lo"}, "done": False},
        {"message": {"role": "assistant", "content": ""}, "done": True},
    ]
    requests = attach(client, "\n".join(json.dumps(line) for line in lines) + "\n")

    assert await collect(client) == ["Hel", "lo"]
    body = json.loads(requests[0].content)
    assert requests[0].url.path == "/api/chat"
    assert body["stream"] is True
    assert body["model"] == "test-model"
    assert body["options"] == {"temperature": 0.2}


@pytest.mark.asyncio
async def test_openai_sse_stream_stops_at_done(llm_env, helper_config):
    client = LLMClientOpenai(helper_config=helper_config)
    chunks = [
        {"choices": [{"delta": {"role": "assistant"}}]},
        {"choices": [{"delta": {"content": "Hi"}}]},
        {"choices": [{"delta": {"content": " there"}}]},
    ]
    body = "".join(f"data: {json.dumps(chunk)}\n\n" for chunk in chunks) + "data: [DONE]\n\n"
    requests = attach(client, body)

    assert await collect(client) == ["Hi", " there"]
    assert requests[0].url.path == "/v1/chat/completions"
    assert requests[0].headers["Authorization"] == "Bearer sk-test"


@pytest.mark.asyncio
async def test_error_status_becomes_generation_error(llm_env, helper_config):
    client = LLMClientOpenai(helper_config=helper_config)
    attach(client, '{"error": "rate limited"}', status_code=429)

    with pytest.raises(GenerationError):
        await collect(client)


@pytest.mark.asyncio
async def test_malformed_line_becomes_generation_error(llm_env, helper_config):
    client = LLMClientOllama(helper_config=helper_config)
    attach(client, "not json\n")

    with pytest.raises(GenerationError):
        await collect(client)


def test_openai_delta_parser_ignores_keepalives(llm_env, helper_config):
    client = LLMClientOpenai(helper_config=helper_config)
    assert client.extract_chat_stream_delta(": keep-alive") == (None, False)
    assert client.extract_chat_stream_delta("data: [DONE]") == (None, True)
    assert client.extract_chat_stream_delta('data: {"choices": []}') == (None, False)
