"""Starlette application setup for the AIS client."""

from __future__ import annotations

import argparse
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.middleware import Middleware

from pecuniator.open_banking.consent import ConsentClient
from pecuniator.open_banking.errors import OpenBankingError
from pecuniator.open_banking.gateway import APIGateway
from pecuniator.open_banking.oauth import OAuthClient
from pecuniator.open_banking.service import OpenBankingService
from pecuniator.open_banking.transport import HttpTransport, SecureTransport
from pecuniator.utils.environment import BankConfig
from pecuniator.utils.logging import setup_logging

from .correlation import CorrelationIdMiddleware
from .routes import build_routes

logger = logging.getLogger("pecuniator.servers.main")


def build_service(config: BankConfig, transport: HttpTransport) -> OpenBankingService:
    """Wire the core clients for one bank around a shared transport."""
    return OpenBankingService(
        consent_client=ConsentClient(
            transport,
            api_base_url=config.api_base_url,
            redirect_uri=config.redirect_uri,
            valid_days=config.consent_valid_days,
            frequency_per_day=config.consent_frequency_per_day,
            recurring=config.consent_recurring,
            timeout=config.timeout,
        ),
        oauth_client=OAuthClient(
            transport,
            client_id=config.client_id,
            well_known_url=config.well_known_url,
            timeout=config.timeout,
        ),
        gateway=APIGateway(
            transport, api_base_url=config.api_base_url, timeout=config.timeout
        ),
        default_accounts=config.accounts,
    )


def create_app(
    service: OpenBankingService | None = None,
    *,
    config: BankConfig | None = None,
) -> Starlette:
    """Return the ASGI app.

    When *service* is omitted it is built from *config* (or the environment)
    during startup.  Endpoint discovery runs before traffic is accepted; a
    failure aborts startup because no session can exist without it.
    """

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info("AIS client lifespan starting...")
        owned_transport: SecureTransport | None = None
        svc = service
        if svc is None:
            cfg = config or BankConfig.from_env()
            owned_transport = SecureTransport(
                cfg.cert_file, cfg.key_file, cfg.ca_file, timeout=cfg.timeout
            )
            svc = build_service(cfg, owned_transport)
        try:
            await run_in_threadpool(svc.oauth_client.discover_endpoints)
        except OpenBankingError as exc:
            logger.error("Endpoint discovery failed: %s", exc)
            if owned_transport is not None:
                owned_transport.close()
            raise
        app.state.service = svc
        try:
            yield
        finally:
            if owned_transport is not None:
                owned_transport.close()
            logger.info("AIS client lifespan shutdown complete.")

    app = Starlette(
        routes=build_routes(),
        middleware=[Middleware(CorrelationIdMiddleware)],
        lifespan=lifespan,
    )
    if service is not None:
        app.state.service = service
    return app


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="PSD2 AIS client with PKCE sessions")
    parser.add_argument("--host", default="localhost")
    parser.add_argument("--port", type=int, default=8080)
    args = parser.parse_args(argv)

    config = BankConfig.from_env()
    setup_logging(config.log_level)
    logger.info("Start server on %s:%s", args.host, args.port)
    uvicorn.run(
        create_app(config=config),
        host=args.host,
        port=args.port,
        log_level=config.log_level.lower(),
        access_log=config.log_level == "DEBUG",
    )


if __name__ == "__main__":
    main()
