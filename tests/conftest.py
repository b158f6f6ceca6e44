import os

# Point the application at SQLite before database.py builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "False")

from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.models import Base, InvoiceStatus
from app.repositories.ledger import LedgerRepository
from app.schemas.billing import InvoiceCreate, InvoiceItemCreate
from app.services.ledger import BillingLedger


@pytest_asyncio.fixture()
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture()
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture()
def repository(session) -> LedgerRepository:
    return LedgerRepository(session)


@pytest.fixture()
def ledger(repository) -> BillingLedger:
    return BillingLedger(repository)


@pytest.fixture()
def make_invoice(ledger):
    """Create a sent invoice with a single line of the given amount"""
    async def _make_invoice(
        amount="100.00",
        status=InvoiceStatus.SENT,
        issued_date=None,
        due_date=None,
        patient_id=1,
    ):
        return await ledger.create_invoice(InvoiceCreate(
            patient_id=patient_id,
            items=[InvoiceItemCreate(description="Composite filling", unit_price=Decimal(amount))],
            status=status,
            issued_date=issued_date or date(2024, 3, 1),
            due_date=due_date,
        ))
    return _make_invoice
