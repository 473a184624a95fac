"""HTTP sender for pushing messages to remote peers."""

import logging
from typing import Any

import httpx

from peerlink.config import settings
from peerlink.errors import SendFailureError
from peerlink.http.payload import Payload

logger = logging.getLogger(__name__)


class HttpSender:
    """
    Delivers outbound messages with a single POST per message.

    Uses httpx for async HTTP requests. Messages are not retried;
    a non-success response fails the send.
    """

    DEFAULT_TIMEOUT = httpx.Timeout(
        connect=settings.http_timeout_connect,
        read=settings.http_timeout_read,
        write=settings.http_timeout_write,
        pool=10.0,
    )

    def __init__(
        self,
        timeout: httpx.Timeout | None = None,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the sender.

        Args:
            timeout: Request timeout configuration
            headers: Default headers for all requests
            transport: Optional httpx transport (e.g., for testing)
        """
        self._timeout = timeout or self.DEFAULT_TIMEOUT
        self._default_headers = {"Content-Type": "application/octet-stream", **(headers or {})}
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers=self._default_headers,
                transport=self._transport,
            )
        return self._client

    async def post(self, url: str, payload: Payload) -> httpx.Response:
        """
        POST a payload and require a success acknowledgment.

        Args:
            url: Send address of the target peer (may embed a credential)
            payload: Message body

        Returns:
            httpx.Response of the acknowledgment

        Raises:
            SendFailureError: If the response status is not 2xx
            httpx.TransportError: If the request could not be made
        """
        client = await self._get_client()
        response = await client.post(url, content=payload.content)
        if not response.is_success:
            status_text = response.reason_phrase or str(response.status_code)
            logger.warning(f"Send rejected with {response.status_code} {status_text}")
            raise SendFailureError(status_text, response.status_code)
        return response

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None
            logger.info("HTTP sender closed")

    async def __aenter__(self) -> "HttpSender":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()
