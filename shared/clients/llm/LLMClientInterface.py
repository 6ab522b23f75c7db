from abc import abstractmethod
from typing import AsyncIterator

import httpx
from shared.clients.HttpClientInterface import HttpClientInterface
from shared.exceptions import GenerationError
from shared.helper.HelperConfig import HelperConfig


class LLMClientInterface(HttpClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # chat / completion config
        self.chat_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_CHAT_MODEL", default=None)
        self.temperature = helper_config.get_number_val(f"{self.get_client_type().upper()}_TEMPERATURE", default=0.2)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        """Returns the endpoint path for chat/completion requests (e.g. "/api/chat")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_chat_stream_payload(self, messages: list[dict]) -> dict:
        """Build the backend-specific request body for a streamed chat completion.

        Args:
            messages (list[dict]): OpenAI-format messages
                (e.g. [{"role": "system", "content": "..."}, {"role": "user", "content": "..."}]).

        Returns:
            dict: JSON-serialisable request body with streaming enabled.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_chat_stream_delta(self, line: str) -> tuple[str | None, bool]:
        """Parse one line of a streamed chat response.

        Args:
            line (str): A single non-empty line of the response body.

        Returns:
            tuple[str | None, bool]: The text increment carried by the line
                (None if it carries none) and whether the backend signalled completion.

        Raises:
            ValueError: If the line is malformed or carries a backend error.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_chat_stream(self, messages: list[dict]) -> AsyncIterator[str]:
        """Stream the assistant reply as text increments.

        The upstream request is closed as soon as the consumer stops iterating,
        so an abandoned answer does not keep generating.

        Args:
            messages (list[dict]): OpenAI-format messages.

        Yields:
            str: Non-empty text increments in generation order.

        Raises:
            GenerationError: On transport failure, non-2xx status or a malformed stream.
        """
        body = self.get_chat_stream_payload(messages)
        try:
            async with self.do_stream_request(method="POST", endpoint=self._get_endpoint_chat(), json=body) as response:
                async for line in response.aiter_lines():
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        delta, finished = self.extract_chat_stream_delta(line)
                    except ValueError as e:
                        raise GenerationError(str(e)) from e
                    if delta:
                        yield delta
                    if finished:
                        break
        except httpx.HTTPError as e:
            raise GenerationError(f"Chat request to {self.get_engine_name()} failed: {e}") from e
