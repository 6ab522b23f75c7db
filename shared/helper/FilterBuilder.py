"""Scope filters for retrieval.

The same category / region rules are applied twice: once to the document store
(which documents are ready in scope) and once at the vector search boundary, so
that chunks of documents that are mid-ingestion, failed, deleted or out of scope
are never returned even if their points still exist.
"""

from typing import Iterable

from shared.models.document import ALL_CATEGORIES, DocumentScope


def resolve_region(scope: DocumentScope) -> tuple[str, str] | None:
    """Return the single region condition of a scope.

    A district is more specific than a state and supersedes it; both are never
    applied together.

    Returns:
        tuple[str, str] | None: (field, value), or None when no region is requested.
    """
    if scope.district:
        return "district", scope.district
    if scope.state:
        return "state", scope.state
    return None


def build_document_query(scope: DocumentScope) -> dict[str, str]:
    """Equality conditions selecting the documents inside a scope.

    Returns:
        dict[str, str]: Field → required value; empty for the global scope.
    """
    query: dict[str, str] = {}
    if scope.category and scope.category != ALL_CATEGORIES:
        query["category"] = scope.category
    region = resolve_region(scope)
    if region:
        field, value = region
        query[field] = value
    return query


def build_vector_filter(ready_document_ids: Iterable[str], scope: DocumentScope) -> dict:
    """Build the conjunctive Qdrant filter for a scoped similarity search.

    Args:
        ready_document_ids (Iterable[str]): Ids of the documents that are ready
            and inside the scope. Always enforced, even for the global scope.
        scope (DocumentScope): Requested category / region.

    Returns:
        dict: {"must": [...]} with one documentId match-any condition plus
            optional category and region keyword matches.
    """
    must: list[dict] = [
        {"key": "documentId", "match": {"any": list(ready_document_ids)}},
    ]
    for field, value in build_document_query(scope).items():
        must.append({"key": field, "match": {"value": value}})
    return {"must": must}


def build_document_points_filter(document_id: str) -> dict:
    """Filter selecting every vector point of one document (used for deletion)."""
    return {"must": [{"key": "documentId", "match": {"value": document_id}}]}
