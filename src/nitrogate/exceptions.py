"""Gateway-level exception hierarchy.

Only unexpected conditions are exceptional. Unknown tokens, exhausted
credit and disallowed methods are ordinary outcomes (see ``constants``).
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base exception; ``status_code`` is the HTTP status it maps to."""

    status_code: int = 500
    kind: str = "gateway_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class VoucherInvalidError(GatewayError):
    """Voucher rejected by the verifier, malformed, or of non-positive value."""

    status_code = 400
    kind = "voucher_invalid"


class UpstreamUnavailableError(GatewayError):
    """Verifier node or upstream service unreachable or timed out (retryable)."""

    status_code = 502
    kind = "upstream_unavailable"
