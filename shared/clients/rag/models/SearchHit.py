from pydantic import BaseModel

from shared.clients.rag.models.VectorPoint import VectorPayload


class SearchHit(BaseModel):
    """One similarity search result, ranked by descending score."""

    id: str
    score: float
    payload: VectorPayload
