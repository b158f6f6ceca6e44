import asyncio
import logging

from database import engine
from app.models import Base

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def create_ledger_tables():
    """Create ledger tables directly using SQLAlchemy (local setups without Alembic)"""
    async with engine.begin() as conn:
        # Create all tables
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    logger.info(f"Ledger tables created: {', '.join(sorted(Base.metadata.tables))}")

if __name__ == "__main__":
    asyncio.run(create_ledger_tables())
