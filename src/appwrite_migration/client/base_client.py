"""Base HTTP client for Appwrite Bridge.

This module provides a base async HTTP client with connection pooling,
rate limiting, status-code to exception mapping and logging. Binary
downloads and raw multipart uploads go through the same error handling
as JSON calls.
"""

import asyncio
import time
from typing import Any
from urllib.parse import urljoin

import httpx

from appwrite_migration.client.exceptions import (
    APIError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
)
from appwrite_migration.utils.logging import (
    get_logger,
    log_api_request,
    sanitize_payload,
    truncate_payload,
)

logger = get_logger(__name__)

# Response model version the engine parses (attribute and deployment shapes)
RESPONSE_FORMAT = "1.5.0"


class BaseAPIClient:
    """Base async HTTP client for one Appwrite project.

    This client provides:
    - Connection pooling
    - Rate limiting
    - Request logging
    - Proper error handling and exception mapping

    Authentication uses the project-identifying headers
    (``X-Appwrite-Project``, ``X-Appwrite-Key``) rather than a session.
    """

    def __init__(
        self,
        endpoint: str,
        project_id: str,
        api_key: str,
        verify_ssl: bool = True,
        timeout: int = 60,
        rate_limit: int = 20,
        max_connections: int | None = None,
        max_keepalive_connections: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize base API client.

        Args:
            endpoint: Appwrite API endpoint (including the /v1 suffix)
            project_id: Project ID sent in X-Appwrite-Project
            api_key: Server API key sent in X-Appwrite-Key
            verify_ssl: Whether to verify SSL certificates
            timeout: Request timeout in seconds
            rate_limit: Maximum requests per second (0 disables limiting)
            max_connections: Maximum number of connections in pool (default: 50)
            max_keepalive_connections: Maximum keep-alive connections (default: 20)
            transport: Optional custom transport
        """
        self.endpoint = endpoint.rstrip("/")
        self.project_id = project_id
        self.api_key = api_key
        self.verify_ssl = verify_ssl

        self.rate_limit = rate_limit
        self._rate_limit_lock = asyncio.Lock()
        self._last_request_time: float = 0
        self._min_request_interval = 1.0 / rate_limit if rate_limit > 0 else 0

        if max_connections is None:
            max_connections = 50
        if max_keepalive_connections is None:
            max_keepalive_connections = 20

        self.client = httpx.AsyncClient(
            headers=self._build_headers(),
            timeout=httpx.Timeout(timeout, connect=10.0),
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max_keepalive_connections,
            ),
            verify=verify_ssl,
            follow_redirects=True,
            transport=transport,
        )

        logger.debug(
            "client_initialized",
            endpoint=self.endpoint,
            project_id=project_id,
            rate_limit=rate_limit,
        )

    def _build_headers(self) -> dict[str, str]:
        """Build HTTP headers for requests.

        Returns:
            Dictionary of HTTP headers
        """
        return {
            "X-Appwrite-Project": self.project_id,
            "X-Appwrite-Key": self.api_key,
            "X-Appwrite-Response-Format": RESPONSE_FORMAT,
            "Accept": "application/json",
        }

    def _build_url(self, path: str) -> str:
        """Build full URL from an API path.

        Args:
            path: API path relative to the endpoint

        Returns:
            Full URL
        """
        return urljoin(f"{self.endpoint}/", path.lstrip("/"))

    async def _rate_limit_wait(self) -> None:
        """Implement rate limiting by waiting if necessary."""
        if self._min_request_interval > 0:
            async with self._rate_limit_lock:
                now = time.time()
                time_since_last = now - self._last_request_time

                if time_since_last < self._min_request_interval:
                    await asyncio.sleep(self._min_request_interval - time_since_last)

                self._last_request_time = time.time()

    def _handle_error_response(self, response: httpx.Response) -> None:
        """Raise the exception matching an error response.

        Args:
            response: HTTP response object

        Raises:
            AuthenticationError: For 401 responses
            AuthorizationError: For 403 responses
            NotFoundError: For 404 responses
            ConflictError: For 409 responses
            RateLimitError: For 429 responses
            ServerError: For 5xx responses
            APIError: For other error responses
        """
        status_code = response.status_code

        try:
            error_data = response.json()
        except Exception:
            error_data = {"message": response.text}

        if not isinstance(error_data, dict):
            error_data = {"message": str(error_data)}

        error_message = error_data.get("message", "Unknown error")

        if status_code == 401:
            raise AuthenticationError(
                message="Authentication failed", status_code=status_code, response=error_data
            )
        elif status_code == 403:
            raise AuthorizationError(
                message="Authorization failed", status_code=status_code, response=error_data
            )
        elif status_code == 404:
            raise NotFoundError(message=error_message, status_code=status_code, response=error_data)
        elif status_code == 409:
            raise ConflictError(message=error_message, status_code=status_code, response=error_data)
        elif status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                message="Rate limit exceeded",
                status_code=status_code,
                response=error_data,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        elif 500 <= status_code < 600:
            raise ServerError(
                message=f"Server error: {error_message}",
                status_code=status_code,
                response=error_data,
            )
        else:
            raise APIError(
                message=f"API error: {error_message}",
                status_code=status_code,
                response=error_data,
            )

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request and map transport and HTTP errors to our exceptions."""
        url = self._build_url(path)

        await self._rate_limit_wait()

        if "json" in kwargs and kwargs["json"] is not None:
            logger.debug(
                "api_request_payload",
                method=method,
                url=url,
                payload=truncate_payload(sanitize_payload(kwargs["json"])),
            )

        start_time = time.time()

        try:
            response = await self.client.request(method=method, url=url, **kwargs)
        except httpx.TimeoutException as e:
            logger.error("timeout_error", method=method, url=url, error=str(e))
            raise NetworkError(f"Request timeout: {e}") from e
        except httpx.TransportError as e:
            logger.error("network_error", method=method, url=url, error=str(e))
            raise NetworkError(f"Network error: {e}") from e

        log_api_request(
            logger,
            method=method,
            url=url,
            status_code=response.status_code,
            duration_ms=(time.time() - start_time) * 1000,
        )

        if response.status_code >= 400:
            self._handle_error_response(response)

        return response

    async def request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Make a JSON request with rate limiting and error handling.

        Args:
            method: HTTP method (GET, POST, PUT, PATCH, DELETE)
            path: API path
            params: Query parameters
            json_data: JSON request body
            **kwargs: Additional arguments passed to httpx

        Returns:
            Response JSON data (empty dict for empty bodies)

        Raises:
            NetworkError: For network-related errors
            Various APIError subclasses: For API errors
        """
        response = await self._send(method, path, params=params, json=json_data, **kwargs)
        return response.json() if response.content else {}

    async def request_bytes(
        self, path: str, params: dict[str, Any] | None = None
    ) -> tuple[bytes, str | None]:
        """Download a binary payload.

        Args:
            path: API path
            params: Query parameters

        Returns:
            Tuple of (content, content type)
        """
        response = await self._send("GET", path, params=params)
        return response.content, response.headers.get("Content-Type")

    async def post_multipart(
        self,
        path: str,
        data: dict[str, Any],
        files: dict[str, tuple[str, bytes, str]],
    ) -> dict[str, Any]:
        """POST a ``multipart/form-data`` body against the raw HTTP API.

        The Content-Type header (with its boundary) is generated by httpx.

        Args:
            path: API path
            data: Form fields (indexed fields such as ``permissions[0]`` are distinct keys)
            files: Mapping of field name to (filename, content, content type)

        Returns:
            Response JSON data
        """
        response = await self._send("POST", path, data=data, files=files)
        return response.json() if response.content else {}

    async def get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make a GET request."""
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json_data: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make a POST request."""
        return await self.request("POST", path, json_data=json_data)

    async def put(self, path: str, json_data: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make a PUT request."""
        return await self.request("PUT", path, json_data=json_data)

    async def patch(self, path: str, json_data: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make a PATCH request."""
        return await self.request("PATCH", path, json_data=json_data)

    async def delete(self, path: str) -> dict[str, Any]:
        """Make a DELETE request."""
        return await self.request("DELETE", path)

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self.client.aclose()
        logger.debug("client_closed", endpoint=self.endpoint)

    async def __aenter__(self) -> "BaseAPIClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
