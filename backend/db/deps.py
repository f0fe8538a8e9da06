from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from db.session import SessionLocal, engine


async def get_db() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as db:
        yield db


def get_engine() -> AsyncEngine:
    return engine
