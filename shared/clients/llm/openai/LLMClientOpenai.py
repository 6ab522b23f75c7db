import json

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig

_SSE_DATA_PREFIX = "data:"
_SSE_DONE = "[DONE]"


class LLMClientOpenai(LLMClientInterface):
    """OpenAI-compatible /v1/chat/completions backend with server-sent event streaming."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.openai.com/v1", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Openai"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.openai.com/v1"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def _get_endpoint_chat(self) -> str:
        return "/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_chat_stream_payload(self, messages: list[dict]) -> dict:
        return {
            "model": self.chat_model,
            "messages": messages,
            "stream": True,
            "temperature": self.temperature,
        }

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_stream_delta(self, line: str) -> tuple[str | None, bool]:
        """Parse one "data: {...}" line of a chat completion stream.

        Non-data lines (comments, keep-alives) carry nothing; "data: [DONE]"
        ends the stream.
        """
        if not line.startswith(_SSE_DATA_PREFIX):
            return None, False
        data = line[len(_SSE_DATA_PREFIX):].strip()
        if data == _SSE_DONE:
            return None, True
        try:
            chunk = json.loads(data)
        except json.JSONDecodeError as e:
            raise ValueError(f"Malformed OpenAI stream chunk: {data[:200]}") from e
        if chunk.get("error"):
            raise ValueError(f"OpenAI reported an error: {chunk['error']}")
        choices = chunk.get("choices") or []
        if not choices:
            return None, False
        content = (choices[0].get("delta") or {}).get("content")
        return content or None, False
