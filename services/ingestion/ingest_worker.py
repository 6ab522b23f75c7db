"""Ingestion worker entry point.

Consumes ingestion jobs from the queue until interrupted. Several worker
processes may run against the same queue; give each its own QUEUE_REDIS_WORKER_ID
so in-flight recovery only touches its own jobs.

Usage:
    python -m services.ingestion.ingest_worker
"""

import asyncio
import signal

from services.ingestion.IngestWorker import IngestWorker
from services.ingestion.IngestionService import IngestionService
from shared.clients.ClientInterface import ClientInterface
from shared.clients.docstore.DocStoreClientManager import DocStoreClientManager
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.events.EventClientManager import EventClientManager
from shared.clients.queue.QueueClientManager import QueueClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging


async def main() -> None:
    """Boot all clients, provision the collection and run the consumer loops."""
    logger = setup_logging(log_name="ingest_worker")
    config = HelperConfig(logger=logger)

    docstore_client = DocStoreClientManager(helper_config=config).get_client()
    rag_client = RAGClientManager(helper_config=config).get_client()
    embed_client = EmbedClientManager(helper_config=config).get_client()
    event_client = EventClientManager(helper_config=config).get_client()
    queue_client = QueueClientManager(helper_config=config).get_client()
    clients: list[ClientInterface] = [docstore_client, rag_client, embed_client, event_client, queue_client]

    try:
        # every backend is required, there is no point in consuming jobs with one missing
        for client in clients:
            await client.boot()
            if not await client.do_healthcheck():
                logger.error("%s client '%s' is not reachable. Aborting.", client.get_client_type(), client.get_engine_name())
                return

        vector_size, distance = await embed_client.do_fetch_embedding_vector_size()
        await rag_client.do_ensure_collection(vector_size=vector_size, distance=distance)
        await queue_client.do_recover_inflight()

        ingestion_service = IngestionService(
            helper_config=config,
            docstore_client=docstore_client,
            rag_client=rag_client,
            embed_client=embed_client,
            event_client=event_client,
        )
        worker = IngestWorker(helper_config=config, queue_client=queue_client, ingestion_service=ingestion_service)

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, worker.stop)

        await worker.run()
    finally:
        for client in clients:
            await client.close()


if __name__ == "__main__":
    asyncio.run(main())
