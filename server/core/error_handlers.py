from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.exceptions import BridgeError, ConflictError, NotFoundError, ValidationError

_STATUS_BY_ERROR: list[tuple[type[BridgeError], int]] = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
]


def get_status_code(error: BridgeError) -> int:
    """HTTP status for a pipeline error raised before a response was started.

    Backend failures (embedding, vector store, generation) map to 502.
    """
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return 502


async def handle_bridge_error(request: Request, error: BridgeError) -> JSONResponse:
    status_code = get_status_code(error)
    if status_code >= 500:
        request.app.state.logging.error("%s %s failed: %s", request.method, request.url.path, error.message)
    return JSONResponse(status_code=status_code, content={"detail": error.message})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BridgeError, handle_bridge_error)
