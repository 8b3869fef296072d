"""nitrogate — voucher-funded credit metering for JSON-RPC services.

Payment-channel vouchers in, bearer-token request credits out.
"""

__version__ = "0.1.0"

from nitrogate.config import GatewayConfig
from nitrogate.constants import AuthOutcome, ConsumeResult, DEFAULT_ALLOWED_METHODS
from nitrogate.exceptions import GatewayError, UpstreamUnavailableError, VoucherInvalidError
from nitrogate.ledger import CreditRecord
from nitrogate.token_ledger import TokenLedger
from nitrogate.verifier import NitroVoucherVerifier, VerifiedVoucher, VoucherVerifier
from nitrogate.reconciliation import VoucherReconciler
from nitrogate.policy import MethodAllowList
from nitrogate.gate import MeteringGate

__all__ = [
    "GatewayConfig",
    "AuthOutcome",
    "ConsumeResult",
    "DEFAULT_ALLOWED_METHODS",
    "GatewayError",
    "UpstreamUnavailableError",
    "VoucherInvalidError",
    "CreditRecord",
    "TokenLedger",
    "NitroVoucherVerifier",
    "VerifiedVoucher",
    "VoucherVerifier",
    "VoucherReconciler",
    "MethodAllowList",
    "MeteringGate",
]
