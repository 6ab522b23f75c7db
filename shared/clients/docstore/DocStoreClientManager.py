from shared.clients.ClientManager import ClientManager
from shared.clients.docstore.DocStoreClientInterface import DocStoreClientInterface


class DocStoreClientManager(ClientManager):
    """Instantiates the document record store selected by DOCSTORE_ENGINE."""

    client_type = "docstore"
    class_prefix = "DocStoreClient"

    def get_client(self) -> DocStoreClientInterface:
        return self.client
