"""App lifespan — prepares the session store and runs the purge loop.

The database back-end cannot expire rows on its own, so a small
asyncio.sleep loop deletes sessions older than the TTL every
`session_purge_interval_seconds`. Memory and redis stores expire keys
themselves and get no loop.

Configuration (.env):
    SESSION_BACKEND=database
    SESSION_PURGE_INTERVAL_SECONDS=900
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from formwizard.config import settings
from formwizard.stores.database import DatabaseSessionStore

logger = logging.getLogger("formwizard.lifespan")


async def _purge_loop(store: DatabaseSessionStore, interval: int) -> None:
    """Delete expired sessions every `interval` seconds until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            await store.purge_expired()
        except Exception:
            logger.exception("Unhandled error purging expired wizard sessions")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and start purging on startup; stop and close on shutdown."""
    store = app.state.session_store
    task: Optional[asyncio.Task] = None

    if isinstance(store, DatabaseSessionStore):
        await store.create_tables()
        task = asyncio.create_task(_purge_loop(store, settings.session_purge_interval_seconds))
        logger.info("Session purge loop started")

    logger.info(
        "FormWizard started with %d wizard(s) on the %s session store",
        len(app.state.wizards),
        settings.session_backend,
    )
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            logger.info("Session purge loop stopped")
        await store.close()
