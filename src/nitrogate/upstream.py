"""Pass-through client for the metered upstream JSON-RPC service."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from nitrogate.exceptions import UpstreamUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpstreamResponse:
    status_code: int
    content: bytes
    media_type: str | None = None


class UpstreamClient:
    """Relays request bodies to ``upstream_url`` and returns the reply as-is.

    Upstream HTTP errors are relayed, not raised; only an unreachable or
    timed-out upstream raises ``UpstreamUnavailableError``.
    """

    def __init__(self, upstream_url: str, timeout: float = 30.0) -> None:
        self._url = upstream_url
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=5.0))

    async def forward(
        self, body: bytes, content_type: str = "application/json"
    ) -> UpstreamResponse:
        try:
            response = await self._client.post(
                self._url, content=body, headers={"Content-Type": content_type}
            )
        except httpx.TimeoutException as exc:
            logger.warning("Upstream %s timed out.", self._url)
            raise UpstreamUnavailableError("Upstream service timed out.") from exc
        except httpx.TransportError as exc:
            logger.warning("Upstream %s unreachable: %s", self._url, exc)
            raise UpstreamUnavailableError(f"Upstream service unreachable: {exc}") from exc

        return UpstreamResponse(
            status_code=response.status_code,
            content=response.content,
            media_type=response.headers.get("content-type"),
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
