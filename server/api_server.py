"""FastAPI application entry point for docs_rag_bridge."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from server.core.error_handlers import register_error_handlers
from server.models.responses import HealthResponse
from server.routers.ChatRouter import router as chat_router
from server.routers.DocumentRouter import router as document_router
from services.documents.DocumentService import DocumentService
from services.retrieval.AnswerStreamService import AnswerStreamService
from shared.clients.ClientInterface import ClientInterface
from shared.clients.docstore.DocStoreClientManager import DocStoreClientManager
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.queue.QueueClientManager import QueueClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging

logging = setup_logging(log_name="api_server")
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)

    docstore_client = DocStoreClientManager(helper_config=app.state.helper_config).get_client()
    rag_client = RAGClientManager(helper_config=app.state.helper_config).get_client()
    embed_client = EmbedClientManager(helper_config=app.state.helper_config).get_client()
    llm_client = LLMClientManager(helper_config=app.state.helper_config).get_client()
    queue_client = QueueClientManager(helper_config=app.state.helper_config).get_client()
    clients: list[ClientInterface] = [docstore_client, rag_client, embed_client, llm_client, queue_client]

    logging.info("Booting all clients...")
    for client in clients:
        await client.boot()
    logging.info("All clients booted successfully.")

    await check_connections(clients)

    vector_size, distance = await embed_client.do_fetch_embedding_vector_size()
    await rag_client.do_ensure_collection(vector_size=vector_size, distance=distance)

    app.state.clients = clients
    app.state.answer_service = AnswerStreamService(
        helper_config=app.state.helper_config,
        docstore_client=docstore_client,
        rag_client=rag_client,
        embed_client=embed_client,
        llm_client=llm_client,
    )
    app.state.document_service = DocumentService(
        helper_config=app.state.helper_config,
        docstore_client=docstore_client,
        rag_client=rag_client,
        queue_client=queue_client,
    )

    # while the app is running...
    yield

    # when the app shuts down, close all client connections
    logging.info("Shutting down, closing all clients...")
    for client in clients:
        await client.close()
    logging.info("All clients closed.")


app = FastAPI(
    title="docs_rag_bridge",
    description=(
        "Question answering over verified PDF documents. "
        "Uploaded PDFs are registered via POST /documents and ingested by the worker; "
        "answers are streamed with citations via POST /chat/stream."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)
app.include_router(chat_router)
app.include_router(document_router)


@app.get("/healthz")
async def healthz(request: Request) -> JSONResponse:
    """Report backend reachability. 503 if any client is down."""
    results = {
        f"{client.get_client_type()}:{client.get_engine_name()}": await client.do_healthcheck()
        for client in request.app.state.clients
    }
    healthy = all(results.values())
    body = HealthResponse(status="ok" if healthy else "degraded", clients=results)
    return JSONResponse(status_code=200 if healthy else 503, content=body.model_dump())


async def check_connections(clients: list[ClientInterface]) -> None:
    """Check connectivity to all configured backends on startup.

    Raises:
        Exception: If any backend is not reachable; answers cannot be served without all of them.
    """
    for client in clients:
        if not await client.do_healthcheck():
            raise Exception(
                f"{client.get_client_type()} client '{client.__class__.__name__}' is not reachable. Cannot serve requests."
            )


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting docs_rag_bridge API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
