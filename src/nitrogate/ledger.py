"""Per-channel credit record for voucher metering.

Pure data model, no I/O and no locking; ``TokenLedger`` owns the
concurrency discipline. Credit values are plain Python ints, so channel
totals of any size are carried without narrowing.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass, replace
from typing import Any

from nitrogate.constants import TOKEN_BYTES


def generate_token() -> str:
    """Return a fresh URL-safe bearer token with ``TOKEN_BYTES`` of entropy."""
    return secrets.token_urlsafe(TOKEN_BYTES)


def token_hint(token: str) -> str:
    """Short prefix of a bearer token, safe to put in logs."""
    return f"{token[:6]}..." if len(token) > 6 else token


@dataclass
class CreditRecord:
    """Credit state of one payment channel.

    ``total_credits`` only ever grows (max-merge on reconciliation) and
    ``used_credits`` only grows through ``try_consume``, which refuses to
    push it past the total.
    """

    channel_id: str
    token: str
    total_credits: int = 0
    used_credits: int = 0

    @property
    def remaining(self) -> int:
        return self.total_credits - self.used_credits

    # -- mutations ------------------------------------------------------------

    def raise_total(self, verified_total: int) -> bool:
        """Merge a verified channel total. Returns True if the total moved.

        A total below the stored one is a stale verification and is ignored.
        """
        if verified_total <= self.total_credits:
            return False
        self.total_credits = verified_total
        return True

    def try_consume(self, amount: int) -> bool:
        """Spend ``amount`` credits. Returns False if insufficient (not exceptional).

        Raises ValueError for a non-positive ``amount``.
        """
        if amount <= 0:
            raise ValueError(f"amount must be positive, got {amount}")
        if self.used_credits + amount > self.total_credits:
            return False
        self.used_credits += amount
        return True

    # -- snapshots ------------------------------------------------------------

    def copy(self) -> CreditRecord:
        return replace(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel_id": self.channel_id,
            "token": self.token,
            "total": self.total_credits,
            "used": self.used_credits,
            "remaining": self.remaining,
        }
