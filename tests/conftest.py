"""Pytest configuration and shared fixtures for all tests."""

import os
import sys
from pathlib import Path

# Minimal environment for settings validation
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("ADMIN_USER_IDS", "user_admin")
os.environ.setdefault("PAYOUT_MINIMUM_BALANCE", "25.00")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import dramatiq  # noqa: E402
from dramatiq.brokers.stub import StubBroker  # noqa: E402

# Actors bind to the stub broker instead of Redis
dramatiq.set_broker(StubBroker())

import itertools  # noqa: E402
from datetime import UTC, datetime  # noqa: E402
from decimal import Decimal  # noqa: E402
from unittest.mock import AsyncMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import select  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from app.models import (  # noqa: E402
    ActivityLog,
    Affiliate,
    AffiliateStatus,
    Base,
    OrderSource,
    Payout,
    PayoutMethod,
    PayoutStatus,
    Referral,
    ReferralStatus,
    Tier,
)
from app.services.audit.activity_logger import ActivityLogger  # noqa: E402
from app.services.audit.diagnostics import DiagnosticSink  # noqa: E402
from app.services.integrations.notifier import AffiliateNotifier  # noqa: E402
from app.services.webhooks.referral_recorder import HandlerDeps  # noqa: E402


@pytest_asyncio.fixture
async def engine(tmp_path):
    """
    File-backed SQLite engine with the full schema.

    A file (not :memory:) lets audit sinks open their own connections.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def notification_client():
    """Marketing client mock that accepts every event."""
    client = AsyncMock()
    client.track = AsyncMock(return_value=True)
    return client


@pytest.fixture
def diagnostics(session_factory):
    return DiagnosticSink(session_factory)


@pytest.fixture
def activity(session_factory):
    return ActivityLogger(session_factory)


@pytest.fixture
def notifier(notification_client):
    return AffiliateNotifier(notification_client)


@pytest.fixture
def deps(notifier, activity, diagnostics):
    return HandlerDeps(notifier=notifier, activity=activity, diagnostics=diagnostics)


@pytest.fixture
def processor():
    """Payout processor mock."""
    mock = AsyncMock()
    mock.create_batch = AsyncMock()
    mock.get_batch = AsyncMock()
    mock.verify_webhook_signature = AsyncMock(return_value=True)
    return mock


@pytest_asyncio.fixture
async def tiers(session):
    """Two-rung ladder: Initiate 10% from 0, Adept 15% from 6."""
    ladder = [
        Tier(name="Initiate", slug="initiate", min_referrals=0, commission_rate=Decimal("0.10"), sort_order=1),
        Tier(name="Adept", slug="adept", min_referrals=6, commission_rate=Decimal("0.15"), sort_order=2),
    ]
    session.add_all(ladder)
    await session.commit()
    return ladder


@pytest.fixture
def make_affiliate(session):
    """Factory for committed affiliates."""
    counter = itertools.count(1)

    async def _make(**overrides) -> Affiliate:
        n = next(counter)
        data = {
            "email": f"affiliate{n}@example.com",
            "first_name": "Affiliate",
            "last_name": f"Number{n}",
            "status": AffiliateStatus.APPROVED,
            "tier": "initiate",
            "commission_rate": Decimal("0.10"),
            "referral_code": f"AFFCODE{n:03d}",
            "paypal_email": f"affiliate{n}@pay.example.com",
        }
        data.update(overrides)
        affiliate = Affiliate(**data)
        session.add(affiliate)
        await session.commit()
        return affiliate

    return _make


@pytest.fixture
def make_referral(session):
    """Factory for committed referrals."""
    counter = itertools.count(1)

    async def _make(affiliate_id: int, **overrides) -> Referral:
        n = next(counter)
        data = {
            "affiliate_id": affiliate_id,
            "order_id": f"seed-order-{n}",
            "order_source": OrderSource.STOREFRONT,
            "order_number": f"#{1000 + n}",
            "order_date": datetime.now(UTC),
            "order_subtotal": Decimal("100.00"),
            "order_total": Decimal("100.00"),
            "commission_rate": Decimal("0.10"),
            "commission_amount": Decimal("10.00"),
            "status": ReferralStatus.PENDING,
        }
        data.update(overrides)
        referral = Referral(**data)
        session.add(referral)
        await session.commit()
        return referral

    return _make


@pytest.fixture
def make_payout(session):
    """Factory for committed payouts."""

    async def _make(affiliate_id: int, **overrides) -> Payout:
        data = {
            "affiliate_id": affiliate_id,
            "amount": Decimal("30.00"),
            "method": PayoutMethod.PAYPAL,
            "status": PayoutStatus.PROCESSING,
            "paypal_batch_id": "PB-1",
        }
        data.update(overrides)
        payout = Payout(**data)
        session.add(payout)
        await session.commit()
        return payout

    return _make


@pytest.fixture
def activity_actions(session_factory):
    """Read back logged activity actions in insertion order."""

    async def _read(affiliate_id: int | None = None) -> list[str]:
        async with session_factory() as s:
            query = select(ActivityLog.action).order_by(ActivityLog.id)
            if affiliate_id is not None:
                query = query.where(ActivityLog.affiliate_id == affiliate_id)
            return list((await s.execute(query)).scalars())

    return _read


@pytest.fixture
def tracked_events(notification_client):
    """Event names sent through the notification client mock."""

    def _events() -> list[str]:
        return [call.args[0] for call in notification_client.track.await_args_list]

    return _events
