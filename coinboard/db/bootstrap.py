# coinboard/db/bootstrap.py
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine

from coinboard.db.session import Base, engine as default_engine
import coinboard.db.models  # noqa: F401  registers ClientStorageEntry


async def ensure_storage_schema(engine: AsyncEngine = default_engine) -> None:
    """
    Create the client storage table idempotently.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
