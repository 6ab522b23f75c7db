from contextlib import aclosing
from typing import AsyncIterator

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from server.dependencies.auth import verify_api_key
from server.models.requests import ChatRequest
from services.retrieval.AnswerStreamService import AnswerStreamService

router = APIRouter(prefix="/chat", tags=["chat"])

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


@router.post("/stream")
async def stream_answer(
    request: Request,
    body: ChatRequest,
    _: None = Depends(verify_api_key),
) -> StreamingResponse:
    """Answer a question over the verified documents as a text/event-stream.

    An empty question is rejected with 400 before the stream opens; later
    failures arrive as an in-band error event.

    Args:
        request (Request): FastAPI request (provides app.state.answer_service).
        body (ChatRequest): Question, owner, scope and optional thread id.
        _ (None): Auth dependency result (unused).

    Returns:
        StreamingResponse: Events ready, thread, token, citations, done / error.
    """
    answer_service: AnswerStreamService = request.app.state.answer_service
    question = answer_service.validate_request(body.question, body.owner_id)
    events = answer_service.do_stream(
        question=question,
        owner_id=body.owner_id,
        scope=body.get_scope(),
        thread_id=body.thread_id,
    )

    async def render() -> AsyncIterator[str]:
        async with aclosing(events):
            async for event in events:
                yield event.to_sse()
                if event.is_terminal:
                    break

    return StreamingResponse(render(), media_type="text/event-stream", headers=SSE_HEADERS)
