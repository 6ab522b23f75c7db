from shared.clients.ClientManager import ClientManager
from shared.clients.rag.RAGClientInterface import RAGClientInterface


class RAGClientManager(ClientManager):
    """Instantiates the vector store client selected by RAG_ENGINE."""

    client_type = "rag"
    class_prefix = "RAGClient"

    def get_client(self) -> RAGClientInterface:
        return self.client
