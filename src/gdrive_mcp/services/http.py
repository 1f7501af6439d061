"""Authenticated HTTP access to Google REST APIs.

Every facade owns one :class:`GoogleApiClient`, bound to the credential
provider it was built with. Requests carry a bearer token obtained from
that provider; failures surface as :class:`httpx.HTTPError` and are turned
into :class:`~gdrive_mcp.errors.RemoteOperationFailed` by the
:func:`remote_operation` decorator on each facade method.
"""

import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, TypeVar

import httpx

from gdrive_mcp.auth.providers import CredentialProvider
from gdrive_mcp.errors import RemoteOperationFailed

logger = logging.getLogger(__name__)

GMAIL_API_BASE = "https://gmail.googleapis.com/gmail/v1"
DRIVE_API_BASE = "https://www.googleapis.com/drive/v3"
DRIVE_UPLOAD_BASE = "https://www.googleapis.com/upload/drive/v3"

T = TypeVar("T")


def describe_http_error(error: httpx.HTTPError) -> str:
    """Best human-readable message for an HTTP failure.

    Prefers the ``error.message`` field of a Google API error body.
    """
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            detail = body.get("error")
            if isinstance(detail, dict) and detail.get("message"):
                return f"{detail['message']} (HTTP {response.status_code})"
            if isinstance(detail, str):
                return f"{detail} (HTTP {response.status_code})"
        return f"HTTP {response.status_code}: {response.reason_phrase}"
    return str(error) or type(error).__name__


def remote_operation(
    operation_name: str,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Wrap HTTP failures of a facade method in RemoteOperationFailed.

    Args:
        operation_name: Operation description used in the error message,
            e.g. ``"list files"``.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            try:
                return await func(*args, **kwargs)
            except httpx.HTTPError as e:
                message = describe_http_error(e)
                logger.error("Error trying to %s: %s", operation_name, message)
                raise RemoteOperationFailed(operation_name, message) from e

        return wrapper

    return decorator


class GoogleApiClient:
    """Bearer-authenticated HTTP client for one credential provider.

    Attributes:
        provider: Source of access tokens.
    """

    def __init__(self, provider: CredentialProvider) -> None:
        self.provider = provider
        self._http_client: httpx.AsyncClient | None = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client with connection pooling."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                http2=True,
                limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
                timeout=httpx.Timeout(30.0, connect=10.0),
            )
        return self._http_client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def raw_request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
        content: bytes | str | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
    ) -> httpx.Response:
        """Make an authenticated request and return the raw response.

        Args:
            method: HTTP method (GET, POST, etc.).
            url: Full URL to request.
            params: Optional query parameters.
            json_data: Optional JSON body.
            content: Optional raw body content.
            headers: Optional additional headers.
            timeout: Request timeout in seconds.

        Raises:
            httpx.HTTPStatusError: If the API answers with an error status.
        """
        access_token = await self.provider.access_token()
        client = await self._get_http_client()

        request_headers = {"Authorization": f"Bearer {access_token}"}
        if headers:
            request_headers.update(headers)

        kwargs: dict[str, Any] = {"params": params, "headers": request_headers, "timeout": timeout}
        if json_data is not None:
            kwargs["json"] = json_data
        if content is not None:
            kwargs["content"] = content

        logger.debug("%s %s", method, url)
        response = await client.request(method, url, **kwargs)
        response.raise_for_status()
        return response

    async def request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Make an authenticated JSON request.

        Returns:
            Decoded JSON body, or an empty dict for an empty response.
        """
        response = await self.raw_request(
            method,
            url,
            params=params,
            json_data=json_data,
            headers={"Accept": "application/json"},
        )
        if not response.content:
            return {}
        result: dict[str, Any] = response.json()
        return result
