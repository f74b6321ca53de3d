"""SQLite storage for sessions, workflows, executions and permissions."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cadence.db.models import Base

# Seconds a writer waits on a locked database before failing
BUSY_TIMEOUT = 5

_CONNECT_PRAGMAS = (
    # Cascades on sessions -> messages and workflows -> executions
    "PRAGMA foreign_keys=ON",
    # Pollers, webhook runs and the API write concurrently
    "PRAGMA journal_mode=WAL",
)


def _apply_pragmas(dbapi_conn: Any, connection_record: Any) -> None:
    cursor = dbapi_conn.cursor()
    for pragma in _CONNECT_PRAGMAS:
        cursor.execute(pragma)
    cursor.close()


class DatabaseManager:
    """Owns the async engine and hands out one session per unit of work."""

    def __init__(self, db_path: Path | str = "cadence.db"):
        self.db_path = Path(db_path)
        self.engine = create_async_engine(
            f"sqlite+aiosqlite:///{self.db_path}",
            connect_args={"timeout": BUSY_TIMEOUT},
        )
        event.listen(self.engine.sync_engine, "connect", _apply_pragmas)
        self.session_factory = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    async def init_db(self) -> None:
        """Create the database file's directory and any missing tables."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session that commits on clean exit and rolls back on error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
