from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.job import IngestJob


class QueueClientInterface(ClientInterface):
    """Durable at-least-once work queue for ingestion jobs.

    A claimed job stays visible as in-flight until it is completed or failed,
    so a crashed worker's jobs can be recovered and redelivered.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "queue"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_enqueue(self, job: IngestJob) -> IngestJob:
        """Append a job to the pending queue."""
        pass

    @abstractmethod
    async def do_claim(self, timeout: float) -> IngestJob | None:
        """Block up to timeout seconds for the next job and mark it in-flight.

        Returns:
            IngestJob | None: The claimed job, or None if the queue stayed empty.
        """
        pass

    @abstractmethod
    async def do_complete(self, job: IngestJob) -> None:
        """Acknowledge a successfully processed job and drop it from in-flight."""
        pass

    @abstractmethod
    async def do_fail(self, job: IngestJob, error: BaseException) -> bool:
        """Acknowledge a failed job and apply the retry policy.

        Retryable errors are redelivered with exponential backoff until the
        attempt budget is spent; permanent errors and exhausted jobs are
        dead-lettered.

        Returns:
            bool: True if the job was scheduled for redelivery.
        """
        pass

    @abstractmethod
    async def do_recover_inflight(self) -> int:
        """Move jobs left in-flight by a previous run of this worker back to pending.

        Returns:
            int: Number of recovered jobs.
        """
        pass
