from abc import abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from httpx._types import QueryParamTypes, RequestContent

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class HttpClientInterface(ClientInterface):
    """Base for clients that talk to their backend over HTTP (Qdrant, Ollama, OpenAI)."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)
        self._client: httpx.AsyncClient | None = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """
        Returns the authentication header for the client backend server, if an API key is set.

        Returns:
            dict: A dictionary containing the auth data
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        """
        Returns the base URL of the client backend server from env variables

        Returns:
            str: The base URL of the client backend server (e.g. "http://localhost:6333")
        """
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        """
        Returns the endpoint path for healthcheck requests.

        Returns:
            str: The endpoint path for healthcheck requests (e.g. "/healthz")
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> bool:
        """Check if the client backend is healthy by sending a test request.

        Returns:
            bool: True on a 2xx answer, False on any other status or a transport error.
        """
        try:
            response = await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck())
        except httpx.HTTPError as e:
            self.logging.warning("Healthcheck of %s client '%s' failed: %s", self.get_client_type(), self.get_engine_name(), e)
            return False
        return response.is_success

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self) -> None:
        """Initialise the HTTP client."""
        self._client = httpx.AsyncClient(timeout=self.timeout)

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _build_request_kwargs(
        self,
        endpoint: str,
        content: RequestContent | None,
        json: dict | None,
        params: QueryParamTypes | None,
        additional_headers: dict | None,
    ) -> dict:
        endpoint = "/" + endpoint.strip().lstrip("/") if endpoint.strip() else ""

        # httpx sets Content-Type for json bodies; raw content needs it via additional_headers
        headers: dict = {}
        headers.update(self._get_auth_header())
        if additional_headers:
            headers.update(additional_headers)

        kwargs: dict = {
            "url": f"{self._get_base_url().rstrip('/')}{endpoint}",
            "headers": headers,
            "timeout": self.timeout,
            "params": params,
        }
        if content is not None:
            kwargs["content"] = content
        elif json is not None:
            kwargs["json"] = json
        return kwargs

    def _require_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("HTTP client not initialised. Call boot() before making requests.")
        return self._client

    async def do_request(
        self,
        method: str = "GET",
        content: RequestContent | None = None,
        json: dict | None = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send an HTTP request to the client backend.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE, …).
            content: Raw bytes / string body.
            json: JSON-serialisable body (sets Content-Type automatically).
            params: URL query parameters.
            endpoint: Path to append to the base URL (leading slash optional).
            additional_headers: Extra headers that override the defaults.
            raise_on_error: Raise httpx.HTTPStatusError on a non-2xx status.

        Returns:
            The raw httpx.Response.

        Raises:
            RuntimeError: If the client is not booted.
            httpx.HTTPError: On transport failures, or on a non-2xx status when raise_on_error is True.
        """
        client = self._require_client()
        kwargs = self._build_request_kwargs(endpoint, content, json, params, additional_headers)
        response = await client.request(method, **kwargs)

        if raise_on_error and not response.is_success:
            self.logging.error(
                "Request to %s failed with status %d: %s",
                kwargs["url"],
                response.status_code,
                response.text[:500],
            )
            response.raise_for_status()

        return response

    @asynccontextmanager
    async def do_stream_request(
        self,
        method: str = "POST",
        json: dict | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
    ) -> AsyncIterator[httpx.Response]:
        """Open a request whose body is consumed incrementally.

        The connection is released when the context exits, including when the
        consumer stops early (client disconnect, cancellation).

        Raises:
            httpx.HTTPError: On transport failures or a non-2xx status.
        """
        client = self._require_client()
        kwargs = self._build_request_kwargs(endpoint, None, json, None, additional_headers)
        async with client.stream(method, **kwargs) as response:
            if not response.is_success:
                body = await response.aread()
                self.logging.error(
                    "Streaming request to %s failed with status %d: %s",
                    kwargs["url"],
                    response.status_code,
                    body[:500],
                )
                response.raise_for_status()
            yield response
