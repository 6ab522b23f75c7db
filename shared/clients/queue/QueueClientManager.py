from shared.clients.ClientManager import ClientManager
from shared.clients.queue.QueueClientInterface import QueueClientInterface


class QueueClientManager(ClientManager):
    """Instantiates the ingestion job queue selected by QUEUE_ENGINE."""

    client_type = "queue"
    class_prefix = "QueueClient"

    def get_client(self) -> QueueClientInterface:
        return self.client
