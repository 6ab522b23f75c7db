from abc import abstractmethod
from typing import Any
import json

import httpx
from shared.clients.HttpClientInterface import HttpClientInterface
from shared.clients.rag.models.SearchHit import SearchHit
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.exceptions import VectorStoreError
from shared.helper.HelperConfig import HelperConfig

# payload fields filtered on at query time and on deletion
INDEXED_PAYLOAD_FIELDS = ("documentId", "category", "state", "district")


class RAGClientInterface(HttpClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    @abstractmethod
    def get_collection(self) -> str:
        """Returns the name of the collection the client reads and writes."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_points(self) -> str:
        """
        Returns the endpoint path for points upsert requests.

        Returns:
            str: The endpoint path for points requests (e.g. "/points")
        """
        pass

    @abstractmethod
    def _get_endpoint_search(self) -> str:
        """
        Returns the endpoint path for filtered nearest-neighbour search.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/search")
        """
        pass

    @abstractmethod
    def _get_endpoint_delete_points(self) -> str:
        """
        Returns the endpoint path for deleting points by filter.

        Returns:
            str: The endpoint path (e.g. "/collections/my_col/points/delete")
        """
        pass

    @abstractmethod
    def _get_endpoint_check_collection_existence(self) -> str:
        """
        Returns the endpoint path for collection existence check requests.
        """
        pass

    @abstractmethod
    def _get_endpoint_create_collection(self) -> str:
        """
        Returns the endpoint path for create collection requests.
        """
        pass

    @abstractmethod
    def _get_endpoint_payload_index(self) -> str:
        """
        Returns the endpoint path for creating a payload field index.
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_search_payload(self, vector: list[float], limit: int, filter: dict | None) -> dict:
        """
        Builds the backend-specific request payload for a similarity search.

        Args:
            vector (list[float]): The query embedding.
            limit (int): Maximum number of hits (top-K).
            filter (dict | None): Payload filter applied before ranking.

        Returns:
            dict: The payload for the search request.
        """
        pass

    @abstractmethod
    def get_delete_payload(self, filter: dict) -> dict:
        """
        Builds the backend-specific request payload for a filter-based delete.
        """
        pass

    @abstractmethod
    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        """
        Builds the backend-specific request payload for creating the collection.
        """
        pass

    @abstractmethod
    def get_payload_index_payload(self, field_name: str) -> dict:
        """
        Builds the backend-specific request payload for a keyword payload index.
        """
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_search_hits(self, raw_response: dict) -> list[SearchHit]:
        """
        Extracts ranked hits from a raw search response.

        Args:
            raw_response (dict): The raw JSON response from the search endpoint.

        Returns:
            list[SearchHit]: Hits in the order returned by the backend (descending score).
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _do_checked_request(self, action: str, **kwargs: Any) -> httpx.Response:
        """Send a request and translate any failure into VectorStoreError."""
        try:
            return await self.do_request(raise_on_error=True, **kwargs)
        except httpx.HTTPError as e:
            raise VectorStoreError(f"{self.get_engine_name()} {action} failed: {e}") from e

    async def do_existence_check(self) -> bool:
        """Check if the collection exists in the rag backend.

        Returns:
            bool: True if the collection exists, False otherwise.
        """
        resp = await self._do_checked_request("existence check", method="GET", endpoint=self._get_endpoint_check_collection_existence())
        return bool(resp.json().get("result", {}).get("exists"))

    async def do_create_collection(self, vector_size: int, distance: str = "Cosine") -> None:
        """Create the collection in the rag backend.

        Args:
            vector_size (int): The dimension of the embedding vectors.
            distance (str): The distance metric for the vectors.
        """
        await self._do_checked_request(
            "create collection",
            method="PUT",
            json=self.get_create_collection_payload(vector_size, distance),
            endpoint=self._get_endpoint_create_collection())

    async def do_create_payload_index(self, field_name: str) -> None:
        """Create a keyword index on a payload field. Idempotent on the backend side."""
        await self._do_checked_request(
            "payload index",
            method="PUT",
            json=self.get_payload_index_payload(field_name),
            endpoint=self._get_endpoint_payload_index(),
            params={"wait": "true"})

    async def do_ensure_collection(self, vector_size: int, distance: str = "Cosine") -> None:
        """Create the collection if missing and make sure every filter field is indexed.

        Args:
            vector_size (int): The dimension of the embedding vectors.
            distance (str): The distance metric for the vectors.
        """
        if not await self.do_existence_check():
            self.logging.info("Creating %s collection '%s' (size=%d, distance=%s).", self.get_engine_name(), self.get_collection(), vector_size, distance)
            await self.do_create_collection(vector_size=vector_size, distance=distance)
        for field_name in INDEXED_PAYLOAD_FIELDS:
            await self.do_create_payload_index(field_name)

    async def do_upsert_points(self, points: list[VectorPoint], wait: bool = True) -> None:
        """Upsert points into the collection.

        Args:
            points (list[VectorPoint]): The points to write.
            wait (bool): Return only once the points are durably applied.

        Raises:
            VectorStoreError: If the backend rejects the request.
        """
        await self._do_checked_request(
            "upsert",
            method="PUT",
            content=json.dumps({"points": [point.to_request() for point in points]}),
            endpoint=self._get_endpoint_points(),
            params={"wait": "true" if wait else "false"},
            additional_headers={"Content-Type": "application/json"})

    async def do_search(self, vector: list[float], limit: int, filter: dict | None = None) -> list[SearchHit]:
        """Run a filtered nearest-neighbour search.

        Args:
            vector (list[float]): The query embedding.
            limit (int): Top-K.
            filter (dict | None): Payload filter, see shared.helper.FilterBuilder.

        Returns:
            list[SearchHit]: Hits ranked by descending similarity.

        Raises:
            VectorStoreError: If the backend rejects the request.
        """
        resp = await self._do_checked_request(
            "search",
            method="POST",
            content=json.dumps(self.get_search_payload(vector, limit, filter)),
            endpoint=self._get_endpoint_search(),
            additional_headers={"Content-Type": "application/json"})
        return self.extract_search_hits(resp.json())

    async def do_delete_points_by_filter(self, filter: dict, wait: bool = True) -> None:
        """Deletes all points matching the given filter.

        Used when a document is deleted or explicitly re-ingested.

        Args:
            filter (dict): The filter that identifies which points to delete.
            wait (bool): Return only once the deletion is applied.

        Raises:
            VectorStoreError: If the backend rejects the request.
        """
        await self._do_checked_request(
            "delete",
            method="POST",
            content=json.dumps(self.get_delete_payload(filter)),
            endpoint=self._get_endpoint_delete_points(),
            params={"wait": "true" if wait else "false"},
            additional_headers={"Content-Type": "application/json"})
