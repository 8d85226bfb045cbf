# techforge/conftest.py
import sys
import pytest
from pathlib import Path

from fastapi.testclient import TestClient

# Add repository root to PYTHONPATH
REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from techforge.core.config import Settings
from techforge.core.container import build_services
from techforge.core.database import Database
from techforge.features.billing.stripe_provider import StripeProvider
from techforge.main import create_app
from techforge.tests.mocks import (
    FakeGateway,
    FakeNotifier,
    FakeObjectStore,
    WEBHOOK_SECRET,
)


ADMIN_KEY = "admin-test-key"


@pytest.fixture
def test_settings():
    """Settings isolated from the developer's environment and .env file."""
    return Settings(
        _env_file=None,
        ENV="test",
        DATABASE_URL="sqlite+pysqlite:///:memory:",
        STRIPE_WEBHOOK_SECRET=WEBHOOK_SECRET,
        STRIPE_PRICE_STARTER="price_starter",
        STRIPE_PRICE_PRO="price_pro",
        STRIPE_PRICE_AGENCY="price_agency",
        PUBLIC_SITE_URL="https://shop.example.com",
        PUBLIC_DOWNLOAD_BASE="https://api.example.com",
        BRAND_NAME="TechForge",
        ADMIN_KEY=ADMIN_KEY,
    )


@pytest.fixture
def db():
    """
    Isolated in-memory database per test.

    StaticPool keeps one connection, so every session sees the same data.
    """
    database = Database("sqlite+pysqlite:///:memory:")
    database.create_all_tables()
    try:
        yield database
    finally:
        database.dispose()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def verifier():
    """Real Stripe signature verification against the test secret."""
    return StripeProvider(secret_key=None, webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
def services(test_settings, db, gateway, verifier, object_store, notifier):
    return build_services(
        test_settings,
        db=db,
        gateway=gateway,
        verifier=verifier,
        object_store=object_store,
        notifier=notifier,
    )


@pytest.fixture
def client(services):
    return TestClient(create_app(services=services))


@pytest.fixture
def admin_headers():
    return {"X-Admin-Key": ADMIN_KEY}
