"""Async JSON-RPC client for a go-nitro node's ``/api/v1`` endpoint."""

from __future__ import annotations

import itertools
from typing import Any

import httpx


# ---------------------------------------------------------------------------
# Exception hierarchy
# ---------------------------------------------------------------------------


class NitroError(Exception):
    """Base exception for nitro node operations."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NitroRPCError(NitroError):
    """The node answered with a JSON-RPC ``error`` member."""

    def __init__(self, message: str, code: int | None = None) -> None:
        super().__init__(message)
        self.code = code


class NitroServerError(NitroError):
    """5xx — server-side error (retryable)."""


class NitroConnectionError(NitroError):
    """Network/DNS failure (retryable)."""


class NitroTimeoutError(NitroError):
    """Request timeout (retryable)."""


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class NitroClient:
    """Async client for the go-nitro JSON-RPC API.

    Constructor accepts an explicit URL — no env-var loading. Only the two
    calls the gateway needs are exposed.
    """

    def __init__(self, rpc_url: str, timeout: float = 10.0) -> None:
        self._rpc_url = rpc_url.rstrip("/")
        self._ids = itertools.count(1)
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=5.0),
        )

    # -- internal request dispatcher -----------------------------------------

    async def _call(self, method: str, params: Any) -> Any:
        """Send a JSON-RPC request and map errors to the Nitro exception hierarchy."""
        envelope = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            response = await self._client.post(self._rpc_url, json=envelope)
        except httpx.ConnectError as exc:
            raise NitroConnectionError(str(exc)) from exc
        except httpx.TimeoutException as exc:
            raise NitroTimeoutError(str(exc)) from exc
        except httpx.TransportError as exc:
            raise NitroConnectionError(str(exc)) from exc

        if response.status_code >= 500:
            raise NitroServerError(response.text, status_code=response.status_code)
        if response.status_code >= 400:
            raise NitroError(response.text, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            raise NitroError(f"Non-JSON response from node: {exc}") from exc

        if not isinstance(body, dict):
            raise NitroError("Malformed JSON-RPC response from node.")
        error = body.get("error")
        if error:
            if isinstance(error, dict):
                raise NitroRPCError(str(error.get("message", error)), code=error.get("code"))
            raise NitroRPCError(str(error))
        return body.get("result")

    # -- public API methods ---------------------------------------------------

    async def receive_voucher(self, voucher: dict[str, Any]) -> dict[str, Any]:
        """``receive_voucher`` — returns ``{"Total": int, "Delta": int}``."""
        result = await self._call("receive_voucher", voucher)
        if not isinstance(result, dict):
            raise NitroError("receive_voucher returned no result object.")
        return result

    async def get_address(self) -> str:
        """``get_address`` — the node's payment address."""
        return str(await self._call("get_address", {}))

    # -- lifecycle ------------------------------------------------------------

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> NitroClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
