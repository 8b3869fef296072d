"""Metering gate: exchange credit for permission to forward a request."""

from __future__ import annotations

import logging

from nitrogate.constants import CREDITS_PER_CALL, AuthOutcome, ConsumeResult
from nitrogate.token_ledger import TokenLedger

logger = logging.getLogger(__name__)

_OUTCOMES = {
    ConsumeResult.OK: AuthOutcome.AUTHORIZED,
    ConsumeResult.NOT_FOUND: AuthOutcome.UNAUTHORIZED,
    ConsumeResult.EXHAUSTED: AuthOutcome.PAYMENT_REQUIRED,
}


class MeteringGate:
    """Spend credit for a bearer token; never raises for expected outcomes."""

    def __init__(self, ledger: TokenLedger) -> None:
        self._ledger = ledger

    async def authorize(self, token: str, cost: int = CREDITS_PER_CALL) -> AuthOutcome:
        """Consume ``cost`` credits for ``token``.

        ``PAYMENT_REQUIRED`` means nothing was consumed; the bearer should
        submit another voucher before retrying.
        """
        if cost < 1:
            raise ValueError(f"cost must be at least 1, got {cost}")
        if not token:
            return AuthOutcome.UNAUTHORIZED
        return _OUTCOMES[await self._ledger.consume(token, cost)]
