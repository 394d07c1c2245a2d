import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class Database:
    """Owns the engine and session factory for the lifetime of the process."""

    def __init__(self, url: str, *, echo: bool = False):
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, echo=echo)
        self.sessionmaker = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.sessionmaker() as session:
            yield session

    async def ping(self) -> None:
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def connect(self, retries: int = 5, delay_s: float = 5.0) -> None:
        for attempt in range(1, retries + 1):
            try:
                await self.ping()
            except Exception as exc:
                logger.error("Database connection attempt %s failed", attempt, extra={"error": str(exc)})
                if attempt == retries:
                    logger.error("All database connection attempts failed")
                    raise
                logger.warning("Retrying database connection in %s seconds", delay_s, extra={"attempt": attempt})
                await asyncio.sleep(delay_s)
            else:
                logger.info("Connected to database", extra={"url": self.engine.url.render_as_string(hide_password=True)})
                return

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


def get_database(request: Request) -> Database:
    return request.app.state.db
