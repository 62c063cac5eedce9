"""SQL-backed session store.

Uses the `wizard_sessions` table (models/wizard_session.py). Writes are a
select-then-update upsert inside one transaction; the engine never sees
concurrent writers for the same session key in normal use. When two
first writes do race, the unique index on `session_key` rejects the
second insert and that write is retried as an update (last write wins).
"""

import logging
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from formwizard.database import Base
from formwizard.middleware.exceptions import SessionStoreUnavailable
from formwizard.models.wizard_session import WizardSession, utcnow

logger = logging.getLogger(__name__)


class DatabaseSessionStore:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession], ttl: int = 7200):
        self.sessionmaker = sessionmaker
        self.ttl = ttl

    def _cutoff(self, ttl: Optional[int] = None):
        return utcnow() - timedelta(seconds=self.ttl if ttl is None else ttl)

    async def create_tables(self) -> None:
        """Create missing tables. Runs once at startup."""
        async with self.sessionmaker() as db:
            conn = await db.connection()
            await conn.run_sync(lambda sync_conn: Base.metadata.create_all(sync_conn, checkfirst=True))
            await db.commit()

    async def get(self, key: str, default: Optional[dict[str, Any]] = None) -> Optional[dict[str, Any]]:
        try:
            async with self.sessionmaker() as db:
                row = await self._find(db, key)
        except OperationalError as e:
            logger.error(f"Database error reading session {key}: {e}")
            raise SessionStoreUnavailable() from e

        if row is None or row.updated_at < self._cutoff():
            return default
        return row.data

    async def set(self, key: str, value: dict[str, Any]) -> None:
        try:
            try:
                await self._upsert(key, value)
            except IntegrityError:
                # another request inserted the same key between our read and insert
                logger.info(f"Concurrent first write for session {key}; retrying as update")
                await self._overwrite(key, value)
        except OperationalError as e:
            logger.error(f"Database error writing session {key}: {e}")
            raise SessionStoreUnavailable() from e

    async def _find(self, db: AsyncSession, key: str) -> Optional[WizardSession]:
        result = await db.execute(
            select(WizardSession).where(WizardSession.session_key == key)
        )
        return result.scalar_one_or_none()

    async def _upsert(self, key: str, value: dict[str, Any]) -> None:
        async with self.sessionmaker() as db:
            row = await self._find(db, key)
            if row is None:
                db.add(WizardSession(session_key=key, data=value))
            else:
                row.data = value
                row.updated_at = utcnow()
            await db.commit()

    async def _overwrite(self, key: str, value: dict[str, Any]) -> None:
        async with self.sessionmaker() as db:
            await db.execute(
                update(WizardSession)
                .where(WizardSession.session_key == key)
                .values(data=value, updated_at=utcnow())
            )
            await db.commit()

    async def delete(self, key: str) -> None:
        try:
            async with self.sessionmaker() as db:
                await db.execute(delete(WizardSession).where(WizardSession.session_key == key))
                await db.commit()
        except OperationalError as e:
            logger.error(f"Database error deleting session {key}: {e}")
            raise SessionStoreUnavailable() from e

    async def purge_expired(self, ttl: Optional[int] = None) -> int:
        """Delete rows not written within `ttl` seconds. Returns the count."""
        async with self.sessionmaker() as db:
            result = await db.execute(
                delete(WizardSession).where(WizardSession.updated_at < self._cutoff(ttl))
            )
            await db.commit()
        purged = result.rowcount or 0
        if purged:
            logger.info(f"Purged {purged} expired wizard sessions")
        return purged

    async def ping(self) -> bool:
        try:
            async with self.sessionmaker() as db:
                await db.execute(select(1))
            return True
        except OperationalError as e:
            logger.warning(f"Database ping failed: {e}")
            return False

    async def close(self) -> None:
        """Dispose the engine this store's sessions are bound to."""
        engine = self.sessionmaker.kw.get("bind")
        if engine is not None:
            await engine.dispose()
