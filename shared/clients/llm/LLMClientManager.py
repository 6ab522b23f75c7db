from shared.clients.ClientManager import ClientManager
from shared.clients.llm.LLMClientInterface import LLMClientInterface


class LLMClientManager(ClientManager):
    """Instantiates the answer generation client selected by LLM_ENGINE."""

    client_type = "llm"
    class_prefix = "LLMClient"

    def get_client(self) -> LLMClientInterface:
        return self.client
