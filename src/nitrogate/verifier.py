"""Channel verifier adapter between the gateway and the nitro node.

``VoucherVerifier`` is the interface the reconciler depends on;
``NitroVoucherVerifier`` implements it on top of ``NitroClient``. Voucher
signatures, channel balances and replay protection are all the node's job.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from nitrogate.exceptions import UpstreamUnavailableError, VoucherInvalidError
from nitrogate.nitro_client import (
    NitroClient,
    NitroConnectionError,
    NitroError,
    NitroRPCError,
    NitroServerError,
    NitroTimeoutError,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifiedVoucher:
    """Node's verdict on a voucher: channel and its cumulative paid total."""

    channel_id: str
    total: int
    delta: int


@runtime_checkable
class VoucherVerifier(Protocol):
    """Anything that turns a voucher into a ``VerifiedVoucher``.

    Raises ``VoucherInvalidError`` for rejected vouchers and
    ``UpstreamUnavailableError`` when the verdict could not be obtained.
    """

    async def verify(self, voucher: Mapping[str, Any]) -> VerifiedVoucher: ...


def _as_int(value: Any, field_name: str) -> int:
    """Coerce a node amount (JSON int, decimal or 0x-hex string) to int."""
    if isinstance(value, bool):
        raise VoucherInvalidError(f"Node returned a non-numeric {field_name}.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value, 16) if value.lower().startswith("0x") else int(value)
        except ValueError:
            pass
    raise VoucherInvalidError(f"Node returned a non-numeric {field_name}: {value!r}")


class NitroVoucherVerifier:
    """Verifies vouchers through a go-nitro node's ``receive_voucher`` call.

    The call is bounded by ``timeout`` seconds; expiry is reported as
    ``UpstreamUnavailableError`` so the client knows it may retry.
    """

    def __init__(self, client: NitroClient, timeout: float = 10.0) -> None:
        self._client = client
        self._timeout = timeout

    async def verify(self, voucher: Mapping[str, Any]) -> VerifiedVoucher:
        if not isinstance(voucher, Mapping):
            raise VoucherInvalidError("Voucher must be a JSON object.")
        channel_id = voucher.get("ChannelId")
        if not isinstance(channel_id, str) or not channel_id:
            raise VoucherInvalidError("Voucher is missing ChannelId.")

        try:
            result = await asyncio.wait_for(
                self._client.receive_voucher(dict(voucher)), timeout=self._timeout
            )
        except asyncio.TimeoutError as exc:
            logger.warning("Voucher verification for %s timed out.", channel_id)
            raise UpstreamUnavailableError("Voucher verification timed out.") from exc
        except (NitroConnectionError, NitroTimeoutError, NitroServerError) as exc:
            logger.warning("Nitro node unavailable verifying %s: %s", channel_id, exc)
            raise UpstreamUnavailableError(f"Nitro node unavailable: {exc}") from exc
        except NitroRPCError as exc:
            logger.warning("Voucher for %s rejected by node: %s", channel_id, exc)
            raise VoucherInvalidError(f"Voucher rejected: {exc}") from exc
        except NitroError as exc:
            logger.warning("Voucher for %s could not be verified: %s", channel_id, exc)
            raise VoucherInvalidError(f"Voucher could not be verified: {exc}") from exc

        total = _as_int(result.get("Total"), "Total")
        delta = _as_int(result.get("Delta"), "Delta")
        if delta <= 0:
            raise VoucherInvalidError(
                f"Voucher adds no value to channel {channel_id} (delta {delta})."
            )
        return VerifiedVoucher(channel_id=channel_id, total=total, delta=delta)
