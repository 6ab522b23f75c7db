from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.events import ProgressEvent


class EventClientInterface(ClientInterface):
    """Fire-and-forget fan-out of document progress events. No durability, no replay."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "events"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_publish(self, event: ProgressEvent) -> int:
        """Publish one event to the admin channel.

        Returns:
            int: Number of subscribers that received it (0 is not an error).
        """
        pass
