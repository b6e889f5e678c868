"""Shared pytest fixtures for lucky-triple tests."""
import os
import sys
from pathlib import Path
from typing import Generator

# Must be set before lucky_triple.core.config is imported
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_LEVEL"] = "WARNING"

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Add project root to Python path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Fresh in-memory database per test; StaticPool keeps every connection on the same database."""
    from lucky_triple.models import Base

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestSessionLocal()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def make_account(db_session: Session):
    """Factory for persisted accounts: make_account(email, balance=0, role="player")."""
    from lucky_triple.core.auth import hash_password
    from lucky_triple.models import Account

    def _make(email: str, balance: float = 0.0, role: str = "player", phone: str = "+233245550000",
              password: str = "secret123"):
        account = Account(
            email=email,
            password_hash=hash_password(password),
            phone=phone,
            balance=balance,
            role=role,
        )
        db_session.add(account)
        db_session.commit()
        return account

    return _make


@pytest.fixture
def player(make_account):
    return make_account("player@example.com", balance=50.0, phone="+233245550001")


@pytest.fixture
def admin(make_account):
    return make_account("boss@example.com", role="admin", phone="+233245550099")


@pytest.fixture
def headers_for():
    """Bearer Authorization header for an account."""
    from lucky_triple.core.auth import create_access_token

    def _headers(account) -> dict:
        return {"Authorization": f"Bearer {create_access_token(account)}"}

    return _headers


@pytest.fixture
def player_headers(player, headers_for) -> dict:
    return headers_for(player)


@pytest.fixture
def admin_headers(admin, headers_for) -> dict:
    return headers_for(admin)


@pytest.fixture
def sms_requests():
    """Requests captured by the mock Payloqa transport."""
    return []


@pytest.fixture
def sms_client(sms_requests):
    """PayloqaClient backed by httpx.MockTransport; every send succeeds."""
    from lucky_triple.services.payloqa_client import PayloqaClient

    def handler(request: httpx.Request) -> httpx.Response:
        sms_requests.append(request)
        return httpx.Response(
            200,
            json={"success": True, "data": {"message_id": f"msg-{len(sms_requests)}", "cost": 0.03, "status": "sent"}},
        )

    return PayloqaClient(
        api_key="test-key",
        platform_id="test-platform",
        bulk_delay=0,
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def test_client(db_session, sms_client):
    """
    FastAPI TestClient bound to the per-test database.

    Note: We don't use context manager (with TestClient) so the lifespan
    (table creation on the real engine, scheduler) does not run.
    """
    from fastapi.testclient import TestClient
    from lucky_triple.main import app
    from lucky_triple.core.database import get_db
    from lucky_triple.api.routes.admin import get_sms_client

    def override_get_db():
        yield db_session

    async def override_get_sms_client():
        yield sms_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sms_client] = override_get_sms_client

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()
