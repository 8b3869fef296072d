"""In-memory credit ledger keyed by channel id and by bearer token.

One ``CreditRecord`` per channel, reachable through two dict indexes that
always point at the same object. All mutation of a record happens under
that channel's ``asyncio.Lock``; channels never share a lock, so traffic on
one channel does not wait on another.

State lives for the process lifetime only. A restart drops every record and
token; clients recover by resubmitting a voucher.
"""

from __future__ import annotations

import asyncio
import logging

from nitrogate.constants import CREDITS_PER_CALL, ConsumeResult
from nitrogate.ledger import CreditRecord, generate_token, token_hint

logger = logging.getLogger(__name__)


class TokenLedger:
    """Registry of channel credit records with atomic top-up and consume.

    - ``upsert()`` creates a record (fresh token) or max-merges its total.
    - ``consume()`` is a single check-and-update per record.
    - Reads return copies; callers never hold a live record.
    """

    def __init__(self) -> None:
        self._by_channel: dict[str, CreditRecord] = {}
        self._by_token: dict[str, CreditRecord] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._consumed_calls: int = 0
        self._exhausted_calls: int = 0
        self._not_found_calls: int = 0

    def _get_lock(self, channel_id: str) -> asyncio.Lock:
        """Get or create the per-channel lock."""
        if channel_id not in self._locks:
            self._locks[channel_id] = asyncio.Lock()
        return self._locks[channel_id]

    async def upsert(self, channel_id: str, verified_total: int) -> CreditRecord:
        """Create or top up the record for ``channel_id``. Returns a snapshot.

        Totals are merged with ``max()``: a lower verified total (stale or
        out-of-order verification) leaves the record unchanged.
        """
        if not channel_id:
            raise ValueError("channel_id must be non-empty")
        if verified_total < 0:
            raise ValueError(f"verified_total must be non-negative, got {verified_total}")

        async with self._get_lock(channel_id):
            record = self._by_channel.get(channel_id)
            if record is None:
                record = CreditRecord(
                    channel_id=channel_id,
                    token=generate_token(),
                    total_credits=verified_total,
                )
                # Both indexes are written with no suspension point between them.
                self._by_channel[channel_id] = record
                self._by_token[record.token] = record
                logger.info(
                    "Issued token %s for channel %s with %d credits.",
                    token_hint(record.token), channel_id, verified_total,
                )
            elif record.raise_total(verified_total):
                logger.info(
                    "Channel %s topped up to %d credits (%d used).",
                    channel_id, record.total_credits, record.used_credits,
                )
            else:
                logger.debug(
                    "Channel %s verified total %d <= stored %d; unchanged.",
                    channel_id, verified_total, record.total_credits,
                )
            return record.copy()

    async def consume(self, token: str, amount: int = CREDITS_PER_CALL) -> ConsumeResult:
        """Atomically spend ``amount`` credits from the record behind ``token``.

        Never creates a record. Insufficient credit leaves state untouched.
        """
        if amount <= 0:
            raise ValueError(f"amount must be positive, got {amount}")
        record = self._by_token.get(token)
        if record is None:
            self._not_found_calls += 1
            return ConsumeResult.NOT_FOUND

        async with self._get_lock(record.channel_id):
            if record.try_consume(amount):
                self._consumed_calls += 1
                logger.debug(
                    "Token %s spent %d credit(s), %d remaining.",
                    token_hint(token), amount, record.remaining,
                )
                return ConsumeResult.OK

        self._exhausted_calls += 1
        logger.debug(
            "Token %s exhausted (needs %d, has %d).",
            token_hint(token), amount, record.remaining,
        )
        return ConsumeResult.EXHAUSTED

    def get_by_token(self, token: str) -> CreditRecord | None:
        record = self._by_token.get(token)
        return record.copy() if record else None

    def get_by_channel(self, channel_id: str) -> CreditRecord | None:
        record = self._by_channel.get(channel_id)
        return record.copy() if record else None

    @property
    def size(self) -> int:
        """Number of channel records."""
        return len(self._by_channel)

    def health(self) -> dict[str, object]:
        """Return ledger counters for monitoring."""
        return {
            "channels": self.size,
            "total_credits": sum(r.total_credits for r in self._by_channel.values()),
            "used_credits": sum(r.used_credits for r in self._by_channel.values()),
            "consumed_calls": self._consumed_calls,
            "exhausted_calls": self._exhausted_calls,
            "not_found_calls": self._not_found_calls,
        }
