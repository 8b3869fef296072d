"""Gateway configuration: plain frozen dataclass, no pydantic.

``from_env()`` reads the ``CERC_NITRO_*`` variables used by the nitro-auth
deployment; hosts embedding the gateway can construct it directly instead.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from nitrogate.constants import DEFAULT_ALLOWED_METHODS
from nitrogate.policy import MethodAllowList

_PREFIX = "CERC_NITRO_AUTH_"


def _parse_bool(raw: str | None, default: bool) -> bool:
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _parse_methods(raw: str | None) -> frozenset[str]:
    if not raw:
        return DEFAULT_ALLOWED_METHODS
    return MethodAllowList.from_csv(raw).methods


@dataclass(frozen=True)
class GatewayConfig:
    listen_addr: str = "0.0.0.0"
    listen_port: int = 8547
    rpc_host: str = "127.0.0.1"
    rpc_port: int = 4006
    rpc_secure: bool = False
    upstream_url: str | None = None
    allowed_methods: frozenset[str] = field(default=DEFAULT_ALLOWED_METHODS)
    verify_timeout_secs: float = 10.0
    upstream_timeout_secs: float = 30.0
    keepalive_timeout_secs: float = 60.0
    backlog: int = 10000
    access_log: bool = True
    log_level: str = "INFO"

    @property
    def rpc_url(self) -> str:
        """JSON-RPC endpoint of the go-nitro node."""
        scheme = "https" if self.rpc_secure else "http"
        return f"{scheme}://{self.rpc_host}:{self.rpc_port}/api/v1"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> GatewayConfig:
        """Build a config from environment variables, falling back to defaults.

        ``CERC_NITRO_HTTP_SERVER_KEEPALIVE_TIMEOUT`` is given in milliseconds,
        matching the Node deployment it replaces. ``CERC_NITRO_HTTP_SERVER_TIMEOUT`` is
        not read: uvicorn has no per-socket inactivity timeout to map it to.
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        keepalive_ms = env.get("CERC_NITRO_HTTP_SERVER_KEEPALIVE_TIMEOUT")
        return cls(
            listen_addr=env.get(f"{_PREFIX}LISTEN_ADDR", defaults.listen_addr),
            listen_port=int(env.get(f"{_PREFIX}LISTEN_PORT", defaults.listen_port)),
            rpc_host=env.get(f"{_PREFIX}RPC_HOST", defaults.rpc_host),
            rpc_port=int(env.get(f"{_PREFIX}RPC_PORT", defaults.rpc_port)),
            rpc_secure=_parse_bool(env.get("CERC_NITRO_RPC_SECURE"), defaults.rpc_secure),
            upstream_url=env.get(f"{_PREFIX}UPSTREAM_URL") or None,
            allowed_methods=_parse_methods(env.get(f"{_PREFIX}ALLOWED_METHODS")),
            verify_timeout_secs=float(
                env.get(f"{_PREFIX}VERIFY_TIMEOUT", defaults.verify_timeout_secs)
            ),
            upstream_timeout_secs=float(
                env.get(f"{_PREFIX}UPSTREAM_TIMEOUT", defaults.upstream_timeout_secs)
            ),
            keepalive_timeout_secs=(
                int(keepalive_ms) / 1000 if keepalive_ms else defaults.keepalive_timeout_secs
            ),
            backlog=int(env.get("CERC_NITRO_HTTP_SERVER_BACKLOG", defaults.backlog)),
            access_log=_parse_bool(env.get("CERC_NITRO_FASTIFY_LOGGER"), defaults.access_log),
            log_level=env.get(f"{_PREFIX}LOG_LEVEL", defaults.log_level).upper(),
        )
