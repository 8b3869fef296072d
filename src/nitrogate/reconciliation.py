"""Voucher reconciliation: the only write path that raises channel credit."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from nitrogate.ledger import CreditRecord
from nitrogate.token_ledger import TokenLedger
from nitrogate.verifier import VoucherVerifier

logger = logging.getLogger(__name__)


class VoucherReconciler:
    """Verify a voucher, then fold the channel's verified total into the ledger.

    Verification failures propagate (``VoucherInvalidError`` or
    ``UpstreamUnavailableError``) and leave the ledger untouched. Resubmitting
    a voucher is safe: the ledger max-merges totals.
    """

    def __init__(self, verifier: VoucherVerifier, ledger: TokenLedger) -> None:
        self._verifier = verifier
        self._ledger = ledger

    async def receive(self, voucher: Mapping[str, Any]) -> CreditRecord:
        """Reconcile ``voucher`` and return the channel's credit snapshot."""
        verified = await self._verifier.verify(voucher)
        record = await self._ledger.upsert(verified.channel_id, verified.total)
        logger.info(
            "Voucher on %s verified: delta %d, channel total %d, remaining %d.",
            verified.channel_id, verified.delta, record.total_credits, record.remaining,
        )
        return record
