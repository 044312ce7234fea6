"""Pytest configuration and fixtures."""

import os
import secrets

import pytest

# Generate a unique test secret for this test run to prevent token forgery
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_SECRET_KEY", _TEST_JWT_SECRET)

from app.database import get_billing, get_store  # noqa: E402
from app.main import app  # noqa: E402
from app.rate_limit import limiter  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from bidyard.marketplace import (  # noqa: E402
    InMemoryBilling,
    InMemoryMarketplaceStore,
    Job,
    ProviderDisplay,
)

from route_helpers import CUSTOMER_ID, JOB_ID, PROVIDER_A, PROVIDER_B, headers_for  # noqa: E402


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """Keep bid event logs out of the home directory."""
    monkeypatch.setenv("BIDYARD_DATA_DIR", str(tmp_path))
    return tmp_path


@pytest.fixture
def store():
    store = InMemoryMarketplaceStore()
    store.save_job(Job(id=JOB_ID, author_id=CUSTOMER_ID, title="Fit a new kitchen"))
    store.save_profile(PROVIDER_A, ProviderDisplay(name="Acme Fitters", rating_count=3))
    store.save_profile(PROVIDER_B, ProviderDisplay(name="Budget Builds"))
    return store


@pytest.fixture
def billing():
    return InMemoryBilling({PROVIDER_A: "1000", PROVIDER_B: "1000"})


@pytest.fixture
def client(store, billing):
    """Test client wired to in-memory marketplace collaborators."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_billing] = lambda: billing
    limiter.enabled = False
    try:
        yield TestClient(app)
    finally:
        limiter.enabled = True
        app.dependency_overrides.clear()


@pytest.fixture
def customer_headers():
    return headers_for(CUSTOMER_ID, "customer")


@pytest.fixture
def provider_a_headers():
    return headers_for(PROVIDER_A, "provider")


@pytest.fixture
def provider_b_headers():
    return headers_for(PROVIDER_B, "provider")
