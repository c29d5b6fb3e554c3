from __future__ import annotations

import os
from uuid import uuid4

import pytest

# app.core.config builds its module-level Settings at import time.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

from app.core.config import Settings  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import build_engine, build_session_factory  # noqa: E402
from app.services.rating_queries import RatingQueryService  # noqa: E402
from app.services.rating_store import RatingStore  # noqa: E402
from app.services.settlement import SettlementCoordinator  # noqa: E402
from tests.testkit import ApiClient, IdentityFactory  # noqa: E402


@pytest.fixture(scope="session")
def api() -> ApiClient:
    if os.getenv("RUN_API_INTEGRATION", "0") != "1":
        pytest.skip("API integration tests disabled. Set RUN_API_INTEGRATION=1.")
    if not os.getenv("TEST_JWT_SECRET"):
        pytest.fail("TEST_JWT_SECRET must match the JWT_SECRET of the server under test.")

    base_url = os.getenv("TEST_API_BASE_URL", "http://localhost:8000")
    client = ApiClient(base_url)
    try:
        health = client.call("GET", "/health")
    except Exception as exc:  # pragma: no cover - guard rail
        pytest.fail(f"API not reachable at {base_url}: {exc}")
    if not isinstance(health, dict) or not health.get("ok"):
        pytest.fail(f"Invalid health check at {base_url}: {health}")
    return client


@pytest.fixture(scope="session")
def identity_factory() -> IdentityFactory:
    return IdentityFactory(seed=uuid4().hex[:8])


@pytest.fixture
def cfg(tmp_path) -> Settings:
    return Settings(
        ENV="test",
        JWT_SECRET="test-secret",
        DATABASE_URL=f"sqlite:///{tmp_path / 'ratings.db'}",
        SQLITE_BUSY_TIMEOUT_SECONDS=30,
    )


@pytest.fixture
def engine(cfg):
    engine = build_engine(cfg)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(engine, cfg) -> RatingStore:
    return RatingStore(build_session_factory(engine), cfg)


@pytest.fixture
def coordinator(store, cfg) -> SettlementCoordinator:
    return SettlementCoordinator(store, cfg)


@pytest.fixture
def queries(store) -> RatingQueryService:
    return RatingQueryService(store)
