"""Cache-aside access to the shared ``cache`` table.

Every enrichment endpoint keys its upstream result by feature namespace,
subject id and the raw request parameters, then serves the stored JSON
while ``now < expires_at``. Failures against the table are logged and
reported as a miss so they never block the upstream fetch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from drc.models.cache import CacheEntry
from drc.models.disaster import utcnow

logger = logging.getLogger(__name__)

_UPSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


def cache_key(namespace: str, *parts: Any) -> str:
    """Join namespace and parts with ``:``.

    Parts are stringified verbatim, so ``"40.0"`` and ``"40.00"`` give
    different keys.
    """
    return ":".join([namespace, *(str(p) for p in parts)])


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back naive; everything is written in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class CachedValue:
    value: dict[str, Any]
    expires_at: datetime

    def is_fresh(self, now: datetime) -> bool:
        return now < _as_utc(self.expires_at)


class CacheStore:
    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._db = db
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, key: str) -> CachedValue | None:
        """Return the stored row for *key*, fresh or not."""
        try:
            result = await self._db.execute(
                select(CacheEntry.value, CacheEntry.expires_at).where(
                    CacheEntry.key == key
                )
            )
            row = result.one_or_none()
        except SQLAlchemyError:
            logger.exception("Cache read failed for %s; treating as miss", key)
            await self._db.rollback()
            return None
        if row is None:
            return None
        return CachedValue(value=row.value, expires_at=row.expires_at)

    async def get_fresh(self, key: str) -> dict[str, Any] | None:
        cached = await self.get(key)
        if cached is None or not cached.is_fresh(self.now()):
            logger.info("Cache miss: %s", key)
            return None
        logger.info("Cache hit: %s", key)
        return cached.value

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert(self, key: str, value: dict[str, Any], ttl: timedelta) -> None:
        """Insert or overwrite *key*; the last writer wins."""
        now = self.now()
        values = {
            "key": key,
            "value": value,
            "expires_at": now + ttl,
            "created_at": now,
        }
        try:
            insert = _UPSERTS.get(self._db.get_bind().dialect.name)
            if insert is None:
                await self._db.merge(CacheEntry(**values))
            else:
                stmt = insert(CacheEntry).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[CacheEntry.key],
                    set_={
                        "value": stmt.excluded.value,
                        "expires_at": stmt.excluded.expires_at,
                        "created_at": stmt.excluded.created_at,
                    },
                )
                await self._db.execute(stmt)
            await self._db.commit()
        except SQLAlchemyError:
            logger.exception("Cache write failed for %s", key)
            await self._db.rollback()

    async def delete(self, key: str) -> int:
        """Delete exactly *key*; returns 0 or 1."""
        try:
            result = await self._db.execute(delete(CacheEntry).where(CacheEntry.key == key))
            await self._db.commit()
        except SQLAlchemyError:
            logger.exception("Cache invalidation failed for %s", key)
            await self._db.rollback()
            return 0
        return result.rowcount

    async def delete_by_prefix(self, prefix: str) -> int:
        """Delete every row whose key starts with *prefix* (exact, case-sensitive)."""
        if not prefix:
            raise ValueError("Refusing to invalidate with an empty prefix")
        try:
            result = await self._db.execute(
                delete(CacheEntry).where(
                    func.substr(CacheEntry.key, 1, len(prefix)) == prefix
                )
            )
            await self._db.commit()
        except SQLAlchemyError:
            logger.exception("Cache invalidation failed for prefix %s", prefix)
            await self._db.rollback()
            return 0
        logger.info("Invalidated %d cache rows with prefix %s", result.rowcount, prefix)
        return result.rowcount

    async def sweep(self, max_age: timedelta) -> int:
        """Delete rows written more than *max_age* ago, regardless of TTL."""
        cutoff = self.now() - max_age
        result = await self._db.execute(
            delete(CacheEntry).where(CacheEntry.created_at < cutoff)
        )
        await self._db.commit()
        return result.rowcount
