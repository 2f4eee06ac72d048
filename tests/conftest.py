"""Global test fixtures.

Environment defaults are set before anything imports loan_wizard, since
Settings are read at import time.
"""

from __future__ import annotations

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SACCO_API_BASE_URL", "http://sacco.test")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "10000")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from slowapi import Limiter
from slowapi.util import get_remote_address

from factories import FakeSaccoApi, make_identity, make_token
from loan_wizard.core.identity import IdentityContext
from loan_wizard.main import app
from loan_wizard.services.wizard import WizardSessionRegistry


@pytest.fixture(autouse=True)
def _disable_rate_limiter():
    """Swap in a limiter without default limits for all tests."""
    original = app.state.limiter
    app.state.limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")
    yield
    app.state.limiter = original


@pytest.fixture
def identity() -> IdentityContext:
    return make_identity()


@pytest.fixture
def fake_api() -> FakeSaccoApi:
    return FakeSaccoApi()


@pytest.fixture
def registry(fake_api) -> WizardSessionRegistry:
    return WizardSessionRegistry(fake_api, limit_per_owner=3)


@pytest.fixture
def client(monkeypatch, fake_api, registry) -> TestClient:
    monkeypatch.setattr(app.state, "sacco_api", fake_api, raising=False)
    monkeypatch.setattr(app.state, "wizard_sessions", registry, raising=False)
    return TestClient(app)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token()}"}
