"""FastAPI application: voucher intake, credit checks and metered pass-through."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from nitrogate import __version__
from nitrogate.config import GatewayConfig
from nitrogate.constants import AuthOutcome
from nitrogate.exceptions import GatewayError, UpstreamUnavailableError, VoucherInvalidError
from nitrogate.gate import MeteringGate
from nitrogate.ledger import token_hint
from nitrogate.nitro_client import NitroClient, NitroError
from nitrogate.policy import MethodAllowList, extract_methods
from nitrogate.reconciliation import VoucherReconciler
from nitrogate.token_ledger import TokenLedger
from nitrogate.upstream import UpstreamClient
from nitrogate.verifier import NitroVoucherVerifier, VoucherVerifier

logger = logging.getLogger(__name__)

_DENIED = {
    AuthOutcome.UNAUTHORIZED: (401, "unauthorized", "Unknown bearer token."),
    AuthOutcome.PAYMENT_REQUIRED: (
        402, "payment_required", "Credit exhausted; submit another voucher.",
    ),
}


def _error(status_code: int, kind: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": kind, "detail": detail})


async def _gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    return _error(exc.status_code, exc.kind, str(exc))


def _bearer_token(request: Request) -> str:
    header = request.headers.get("authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return value.strip()


def create_app(
    config: GatewayConfig | None = None,
    *,
    ledger: TokenLedger | None = None,
    verifier: VoucherVerifier | None = None,
    nitro: NitroClient | None = None,
    upstream: UpstreamClient | None = None,
) -> FastAPI:
    """Build the gateway app. Collaborators not passed in are built from ``config``."""
    config = config or GatewayConfig()
    ledger = ledger or TokenLedger()
    owned: list[Any] = []

    if nitro is None and verifier is None:
        nitro = NitroClient(config.rpc_url, timeout=config.verify_timeout_secs)
        owned.append(nitro)
    if verifier is None:
        verifier = NitroVoucherVerifier(nitro, timeout=config.verify_timeout_secs)
    if upstream is None and config.upstream_url:
        upstream = UpstreamClient(config.upstream_url, timeout=config.upstream_timeout_secs)
        owned.append(upstream)

    reconciler = VoucherReconciler(verifier, ledger)
    gate = MeteringGate(ledger)
    allow_list = MethodAllowList(config.allowed_methods)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "nitrogate %s: node %s, upstream %s, %d allowed method(s).",
            __version__, config.rpc_url, config.upstream_url or "(none)", len(allow_list),
        )
        yield
        for client in owned:
            await client.close()

    app = FastAPI(title="nitrogate", version=__version__, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(GatewayError, _gateway_error_handler)
    app.state.ledger = ledger

    @app.get("/health")
    async def health() -> Response:
        return JSONResponse(content={"status": "ok", "ledger": ledger.health()})

    @app.get("/pay/address")
    async def pay_address() -> dict[str, str]:
        """Payment address of the nitro node vouchers should be made out to."""
        if nitro is None:
            raise UpstreamUnavailableError("No nitro node configured.")
        try:
            return {"address": await nitro.get_address()}
        except NitroError as exc:
            raise UpstreamUnavailableError(f"Nitro node unavailable: {exc}") from exc

    @app.post("/pay/receive")
    async def pay_receive(request: Request) -> Response:
        """Reconcile a voucher; returns the channel's token and credit snapshot."""
        try:
            voucher = await request.json()
        except ValueError as exc:
            raise VoucherInvalidError("Voucher body is not valid JSON.") from exc
        record = await reconciler.receive(voucher)
        # Plain json.dumps keeps arbitrarily large credit values intact.
        return JSONResponse(content=record.to_dict())

    @app.get("/auth/{token}")
    async def auth(token: str) -> Response:
        """Spend one credit; for reverse proxies doing sub-request auth."""
        outcome = await gate.authorize(token)
        if outcome is not AuthOutcome.AUTHORIZED:
            return _error(*_DENIED[outcome])
        record = ledger.get_by_token(token)
        return JSONResponse(content=record.to_dict() if record else {})

    async def metered_forward(request: Request, token: str) -> Response:
        body = await request.body()
        try:
            methods = extract_methods(json.loads(body))
        except ValueError as exc:
            return _error(400, "bad_request", str(exc))

        # Policy first: a disallowed call must not spend credit.
        if not allow_list.all_allowed(methods):
            rejected = [m for m in methods if not allow_list.is_allowed(m)]
            logger.info("Rejected disallowed method(s) %s.", ", ".join(rejected))
            return _error(
                401, "method_not_allowed", f"Method not allowed: {', '.join(rejected)}",
            )

        # Nothing to forward to: refuse before any credit is spent.
        if upstream is None:
            raise UpstreamUnavailableError("No upstream service configured.")

        outcome = await gate.authorize(token, cost=len(methods))
        if outcome is not AuthOutcome.AUTHORIZED:
            logger.debug("Token %s denied: %s.", token_hint(token), outcome.value)
            return _error(*_DENIED[outcome])

        reply = await upstream.forward(
            body, request.headers.get("content-type", "application/json"),
        )
        return Response(
            content=reply.content, status_code=reply.status_code, media_type=reply.media_type,
        )

    @app.post("/rpc/{token}")
    async def rpc_with_path_token(token: str, request: Request) -> Response:
        return await metered_forward(request, token)

    @app.post("/rpc")
    async def rpc_with_bearer(request: Request) -> Response:
        return await metered_forward(request, _bearer_token(request))

    return app
