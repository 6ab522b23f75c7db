import json

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientOllama(LLMClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Ollama"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    def _get_endpoint_chat(self) -> str:
        return "/api/chat"

    ################ PAYLOAD BUILDER ##################
    def get_chat_stream_payload(self, messages: list[dict]) -> dict:
        """Build the Ollama chat request body.

        Returns:
            dict: {"model": "...", "messages": [...], "stream": True, "options": {...}}
        """
        return {
            "model": self.chat_model,
            "messages": messages,
            "stream": True,
            "options": {"temperature": self.temperature},
        }

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_stream_delta(self, line: str) -> tuple[str | None, bool]:
        """Parse one NDJSON object of an Ollama /api/chat stream.

        Each line looks like {"message": {"role": "assistant", "content": "..."}, "done": false};
        the final one carries "done": true.
        """
        try:
            chunk = json.loads(line)
        except json.JSONDecodeError as e:
            raise ValueError(f"Malformed Ollama stream line: {line[:200]}") from e
        if chunk.get("error"):
            raise ValueError(f"Ollama reported an error: {chunk['error']}")
        content = (chunk.get("message") or {}).get("content")
        return content or None, bool(chunk.get("done"))
