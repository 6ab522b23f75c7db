from shared.clients.ClientManager import ClientManager
from shared.clients.events.EventClientInterface import EventClientInterface


class EventClientManager(ClientManager):
    """Instantiates the progress event publisher selected by EVENTS_ENGINE."""

    client_type = "events"
    class_prefix = "EventClient"

    def get_client(self) -> EventClientInterface:
        return self.client
