from __future__ import annotations

import hashlib
import hmac
import json
import os
import sys
import time
from pathlib import Path

# Add backend folder to sys.path so `import prompt_manager...` works in tests when running from backend root
BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

# Must be set before prompt_manager.core.database is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.pop("SENTRY_DSN", None)

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from prompt_manager.core.config import StripeConfig
from prompt_manager.core.database import Base
from prompt_manager.core.errors import UpstreamUnavailable
from prompt_manager.models import tables  # noqa: F401
from prompt_manager.models.schemas import SubscriptionSnapshot

WEBHOOK_SECRET = "whsec_test_secret"


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def stripe_config() -> StripeConfig:
    return StripeConfig(api_key="sk_test_x", webhook_secret=WEBHOOK_SECRET, webhook_tolerance=300)


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header the way Stripe does (HMAC-SHA256 over "t.payload")."""
    ts = int(time.time()) if timestamp is None else timestamp
    signed = f"{ts}.".encode("utf-8") + payload
    sig = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={sig}"


def make_event(event_type: str, data_object: dict, event_id: str = "evt_test_1") -> bytes:
    return json.dumps({
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": data_object},
    }).encode("utf-8")


class FakeSubscriptions:
    """Stands in for SubscriptionFetcher; statuses keyed by subscription id."""

    def __init__(self, statuses: dict[str, str] | None = None, customer_id: str | None = None):
        self.statuses = dict(statuses or {})
        self.customer_id = customer_id
        self.calls: list[str] = []

    async def fetch(self, subscription_id: str) -> SubscriptionSnapshot:
        self.calls.append(subscription_id)
        if subscription_id not in self.statuses:
            raise UpstreamUnavailable(f"Failed to fetch Stripe subscription {subscription_id}")
        return SubscriptionSnapshot(
            id=subscription_id,
            status=self.statuses[subscription_id],
            customer_id=self.customer_id,
        )
