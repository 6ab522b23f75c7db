"""VectorPoint models: what the ingestion worker writes into the vector store."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class VectorPayload(BaseModel):
    """Metadata stored alongside each chunk vector.

    Serialised with camelCase aliases because the collection's keyword indexes
    are declared on documentId, category, state and district. The chunk text
    is kept in the payload so retrieval needs no secondary fetch.

    Attributes:
        document_id:  Id of the owning document record (the correlation key).
        category:     Lowercase classification tag of the document.
        state:        Region tag, empty string when the document has none.
        district:     Sub-region tag, empty string when the document has none.
        page_no:      1-based page the chunk was cut from.
        chunk_index:  0-based position of the chunk within its page.
        text:         Raw chunk text.
    """

    model_config = ConfigDict(populate_by_name=True)

    document_id: str = Field(alias="documentId")
    category: str
    state: str = ""
    district: str = ""
    page_no: int = Field(alias="pageNo")
    chunk_index: int = Field(alias="chunkIndex")
    text: str

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class VectorPoint(BaseModel):
    """A point ready for upsert. Ids are fresh per ingestion run and never reused."""

    id: str
    vector: list[float]
    payload: VectorPayload

    def to_request(self) -> dict[str, Any]:
        return {"id": self.id, "vector": self.vector, "payload": self.payload.to_payload()}
