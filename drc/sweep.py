"""Retention sweep, meant for a cron / scheduled job:

    python -m drc.sweep

Deletes cache rows written more than ``cache_retention_days`` ago
(regardless of their TTL) and disasters still pending review after
``pending_disaster_retention_days``.
"""

import asyncio
import logging
import sys
from datetime import timedelta

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from drc.config import Settings, settings
from drc.models.disaster import STATUS_PENDING, Disaster, utcnow
from drc.services.cache import CacheStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("drc.sweep")


async def sweep(session: AsyncSession, app_settings: Settings = settings) -> tuple[int, int]:
    """Return ``(cache_rows_deleted, pending_disasters_deleted)``."""
    cache_rows = await CacheStore(session).sweep(
        timedelta(days=app_settings.cache_retention_days)
    )
    cutoff = utcnow() - timedelta(days=app_settings.pending_disaster_retention_days)
    result = await session.execute(
        delete(Disaster).where(
            Disaster.status == STATUS_PENDING,
            Disaster.created_at < cutoff,
        )
    )
    await session.commit()
    return cache_rows, result.rowcount


async def _run() -> int:
    from drc.database import async_session, engine

    try:
        async with async_session() as session:
            cache_rows, disasters = await sweep(session)
    except SQLAlchemyError as exc:
        logger.error(f"Sweep failed: {exc}")
        return 1
    finally:
        await engine.dispose()
    logger.info(f"Deleted {cache_rows} stale cache rows and {disasters} pending disasters")
    return 0


def main() -> None:
    sys.exit(asyncio.run(_run()))


if __name__ == "__main__":
    main()
