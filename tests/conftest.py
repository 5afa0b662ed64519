"""Shared fixtures built around the in-process fake bank."""

from __future__ import annotations

import pytest

from pecuniator.open_banking.consent import ConsentClient
from pecuniator.open_banking.gateway import APIGateway
from pecuniator.open_banking.oauth import OAuthClient
from pecuniator.open_banking.service import OpenBankingService
from pecuniator.open_banking.store import InMemorySessionStore

from fakes import API_BASE, CLIENT_ID, REDIRECT_URI, WELL_KNOWN, FakeBank, PKCEBank


# --------------------------------------------------------------------------- #
# pytest options                                                              #
# --------------------------------------------------------------------------- #
def pytest_addoption(parser):
    """Add integration option to pytest."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests",
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless explicitly requested.

    Tests marked with 'ci_safe' are always run (even inside the integration
    directory) because they stub all external calls and are safe for CI.
    """
    if not config.getoption("--integration", default=False):
        skip_integration = pytest.mark.skip(reason="Need --integration option to run")
        for item in items:
            if "integration" in item.keywords and "ci_safe" not in item.keywords:
                item.add_marker(skip_integration)


# --------------------------------------------------------------------------- #
# Fixtures                                                                    #
# --------------------------------------------------------------------------- #
@pytest.fixture()
def bank() -> PKCEBank:
    return PKCEBank()


@pytest.fixture()
def consent_client(bank: FakeBank) -> ConsentClient:
    return ConsentClient(bank, api_base_url=API_BASE, redirect_uri=REDIRECT_URI, timeout=5)


@pytest.fixture()
def oauth_client(bank: FakeBank) -> OAuthClient:
    return OAuthClient(bank, client_id=CLIENT_ID, well_known_url=WELL_KNOWN, timeout=5)


@pytest.fixture()
def gateway(bank: FakeBank) -> APIGateway:
    return APIGateway(bank, api_base_url=API_BASE, timeout=5)


@pytest.fixture()
def service(
    consent_client: ConsentClient, oauth_client: OAuthClient, gateway: APIGateway
) -> OpenBankingService:
    oauth_client.discover_endpoints()
    return OpenBankingService(
        consent_client=consent_client,
        oauth_client=oauth_client,
        gateway=gateway,
        store=InMemorySessionStore(),
        default_accounts=("PT123",),
    )


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"
