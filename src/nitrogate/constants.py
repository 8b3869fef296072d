"""Constants for nitrogate voucher metering."""

from enum import Enum


TOKEN_BYTES = 48  # entropy per bearer token, before base64url encoding
CREDITS_PER_CALL = 1

# Read-only JSON-RPC surface forwarded to the upstream node.
DEFAULT_ALLOWED_METHODS: frozenset[str] = frozenset({
    "eth_blockNumber",
    "eth_call",
    "eth_chainId",
    "eth_getBalance",
    "eth_getBlockByHash",
    "eth_getBlockByNumber",
    "eth_getCode",
    "eth_getLogs",
    "eth_getStorageAt",
    "eth_getTransactionByHash",
    "eth_getTransactionReceipt",
    "net_version",
    "web3_clientVersion",
})


class ConsumeResult(str, Enum):
    """Outcome of a ledger consume attempt."""

    OK = "ok"
    NOT_FOUND = "not_found"
    EXHAUSTED = "exhausted"


class AuthOutcome(str, Enum):
    """Outcome of a metering gate check."""

    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"
    PAYMENT_REQUIRED = "payment_required"
