"""Queue consumer loops around the ingestion service."""

import asyncio

from services.ingestion.IngestionService import IngestionService
from shared.clients.queue.QueueClientInterface import QueueClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.job import IngestJob

CLAIM_TIMEOUT_SECONDS = 5  # how long one claim blocks before the stop flag is re-checked
CONCURRENCY = 1            # serial by default to bound memory and provider load


class IngestWorker:
    """Pulls ingestion jobs and acknowledges each one exactly once.

    A failed job never stops the loop: the error is already recorded on the
    document by the ingestion service, and the queue decides on redelivery.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        queue_client: QueueClientInterface,
        ingestion_service: IngestionService,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._queue_client = queue_client
        self._ingestion_service = ingestion_service
        self._concurrency = int(helper_config.get_number_val("INGEST_CONCURRENCY", default=CONCURRENCY))
        self._claim_timeout = float(helper_config.get_number_val("INGEST_CLAIM_TIMEOUT", default=CLAIM_TIMEOUT_SECONDS))
        self._stop = asyncio.Event()

    def stop(self) -> None:
        """Ask every consumer loop to exit after its current job."""
        self._stop.set()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    async def run(self) -> None:
        """Run the consumer loops until stop() is called."""
        self.logging.info("Ingest worker started with %d consumer(s).", self._concurrency, color="green")
        await asyncio.gather(*[self._consume(index) for index in range(self._concurrency)])
        self.logging.info("Ingest worker stopped.")

    async def _consume(self, index: int) -> None:
        while not self.stopping:
            try:
                job = await self._queue_client.do_claim(timeout=self._claim_timeout)
                if job is None:
                    continue
                await self.do_process(job)
            except Exception as e:
                # queue unreachable: unacknowledged jobs stay in-flight for recovery
                self.logging.error("Consumer %d: queue error: %s", index, e)
                await asyncio.sleep(self._claim_timeout)
        self.logging.debug("Consumer %d exiting.", index)

    async def do_process(self, job: IngestJob) -> bool:
        """Ingest one claimed job and acknowledge it.

        Returns:
            bool: True if the job completed successfully.
        """
        try:
            await self._ingestion_service.do_ingest(job)
        except Exception as e:
            redelivered = await self._queue_client.do_fail(job, e)
            self.logging.warning(
                "Job %s for document %s failed (%s): %s",
                job.id, job.document_id, "will retry" if redelivered else "dead-lettered", e)
            return False
        await self._queue_client.do_complete(job)
        return True
