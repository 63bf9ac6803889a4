"""Shared pytest fixtures for the test suite.

Provides:
- Database setup/teardown with per-test isolation
- Sample portfolio / transcript builders
- A TestClient with the assistant gateway swapped for a fake
"""
import os
import sys
import tempfile
from pathlib import Path
from typing import List, Optional

import pytest

# Add the project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables early (BEFORE cryptofolio imports)
_BOOT_DIR = tempfile.mkdtemp(prefix="cryptofolio-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_BOOT_DIR, 'boot.db')}"
os.environ["ENABLE_DEV_AUTH"] = "true"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["GEMINI_API_KEY"] = "AIzaTestKey00000000000000000000000"
os.environ["LOG_LEVEL"] = "WARNING"

from cryptofolio.core.config import reset_settings  # noqa: E402
from cryptofolio.services.schemas import ChatRole, ChatTurn, PortfolioEntry  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_settings_for_tests():
    """Reset settings singleton so per-test env changes take effect."""
    reset_settings()
    yield
    reset_settings()


# === DATABASE FIXTURES ===

@pytest.fixture(scope="function")
def test_db(tmp_path, monkeypatch):
    """Point DATABASE_URL at a fresh file and run migrations."""
    db_path = tmp_path / "test_cryptofolio.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    reset_settings()

    from cryptofolio.db.connect import init_db
    init_db()
    yield str(db_path)
    reset_settings()


# === DATA BUILDERS ===

def make_entry(coin_id: str = "bitcoin", amount: float = 1, avg_buy_price: float = 50000,
               coin_name: Optional[str] = "Bitcoin", buy_date: Optional[str] = None) -> PortfolioEntry:
    return PortfolioEntry(
        coin_id=coin_id,
        coin_name=coin_name,
        amount=amount,
        avg_buy_price=avg_buy_price,
        buy_date=buy_date,
    )


def make_history(count: int) -> List[ChatTurn]:
    """Alternating user/assistant turns numbered from 0."""
    return [
        ChatTurn(
            role=ChatRole.USER if i % 2 == 0 else ChatRole.ASSISTANT,
            content=f"turn {i}",
        )
        for i in range(count)
    ]


@pytest.fixture
def sample_portfolio() -> List[PortfolioEntry]:
    return [make_entry()]


# === API FIXTURES ===

class FakeGateway:
    """Stands in for AssistantGateway in route tests."""

    def __init__(self, reply: str = "Your portfolio looks balanced.", error: Exception = None):
        self.reply = reply
        self.error = error
        self.requests = []

    async def generate(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def client(test_db, fake_gateway):
    """TestClient on a fresh database with the gateway dependency overridden."""
    from fastapi.testclient import TestClient
    from cryptofolio.api.main import app
    from cryptofolio.api.deps import get_assistant_gateway

    app.dependency_overrides[get_assistant_gateway] = lambda: fake_gateway
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def dev_headers(user_id: str = "user-1") -> dict:
    return {"X-Dev-User": user_id}
