"""Disaster CRUD endpoints with an audit trail and version checks."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select, type_coerce
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from drc.database import get_db
from drc.dependencies import get_cache_store
from drc.models.disaster import (
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
    Disaster,
)
from drc.realtime import Broadcaster, get_broadcaster
from drc.schemas.common import MessageOut
from drc.schemas.disaster import (
    DisasterCreate,
    DisasterOut,
    DisasterReview,
    DisasterUpdate,
)
from drc.services.cache import CacheStore, cache_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/disasters", tags=["Disasters"])

# Namespaces whose keys are scoped to a single disaster id.
_SCOPED_NAMESPACES = ("resources", "external_resources", "image_verification")


async def _get_or_404(db: AsyncSession, disaster_id: str) -> Disaster:
    disaster = await db.get(Disaster, disaster_id)
    if not disaster:
        raise HTTPException(status_code=404, detail="Disaster not found.")
    return disaster


def _check_version(disaster: Disaster, version: int | None) -> None:
    if version is not None and version != disaster.version:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=(
                f"Disaster was modified by someone else "
                f"(current version {disaster.version}, yours {version})."
            ),
        )


async def _commit_or_conflict(db: AsyncSession) -> None:
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Disaster was modified concurrently; reload and retry.",
        )


async def _invalidate_metadata_caches(cache: CacheStore, disaster_id: str) -> None:
    # Official updates and social feeds are searched by the disaster's text.
    await cache.delete(cache_key("official_updates", disaster_id))
    await cache.delete_by_prefix(cache_key("social_media", disaster_id) + ":")


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@router.get("", response_model=list[DisasterOut])
async def list_disasters(
    tag: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Disaster).order_by(Disaster.created_at.desc())
    if tag and db.get_bind().dialect.name == "postgresql":
        stmt = stmt.where(type_coerce(Disaster.tags, JSONB).contains([tag]))
    result = await db.execute(stmt)
    disasters = result.scalars().all()
    if tag:
        disasters = [d for d in disasters if tag in (d.tags or [])]
    return disasters


@router.get("/recent", response_model=list[DisasterOut])
async def recent_disasters(
    limit: int = Query(10, ge=1, le=100),
    status_filter: str | None = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Disaster).order_by(Disaster.created_at.desc()).limit(limit)
    if status_filter:
        stmt = stmt.where(Disaster.status == status_filter)
    result = await db.execute(stmt)
    return result.scalars().all()


@router.get("/{disaster_id}", response_model=DisasterOut)
async def get_disaster(disaster_id: str, db: AsyncSession = Depends(get_db)):
    return await _get_or_404(db, disaster_id)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


@router.post("", response_model=DisasterOut, status_code=status.HTTP_201_CREATED)
async def create_disaster(
    body: DisasterCreate,
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    disaster = Disaster(**body.model_dump(by_alias=False), status=STATUS_PENDING)
    disaster.record("create", body.owner_id)
    db.add(disaster)
    await db.commit()
    await db.refresh(disaster)
    logger.info("Created disaster %s (%s)", disaster.id, disaster.title)
    out = DisasterOut.model_validate(disaster)
    broadcaster.publish("disaster_created", out.model_dump(mode="json"))
    return out


@router.put("/{disaster_id}", response_model=DisasterOut)
async def update_disaster(
    disaster_id: str,
    body: DisasterUpdate,
    db: AsyncSession = Depends(get_db),
    cache: CacheStore = Depends(get_cache_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    disaster = await _get_or_404(db, disaster_id)
    _check_version(disaster, body.version)

    changes = body.model_dump(
        by_alias=False, exclude_unset=True, exclude={"version", "user_id"}
    )
    for field, value in changes.items():
        if value is not None:
            setattr(disaster, field, value)
    disaster.record("update", body.user_id)
    await _commit_or_conflict(db)
    await db.refresh(disaster)

    await _invalidate_metadata_caches(cache, disaster_id)
    out = DisasterOut.model_validate(disaster)
    broadcaster.publish("disaster_updated", out.model_dump(mode="json"))
    return out


async def _review(
    db: AsyncSession,
    broadcaster: Broadcaster,
    disaster_id: str,
    body: DisasterReview,
    new_status: str,
    action: str,
) -> DisasterOut:
    disaster = await _get_or_404(db, disaster_id)
    _check_version(disaster, body.version)
    disaster.status = new_status
    disaster.record(action, body.user_id)
    await _commit_or_conflict(db)
    await db.refresh(disaster)
    logger.info("Disaster %s is now %s", disaster_id, new_status)
    out = DisasterOut.model_validate(disaster)
    broadcaster.publish("disaster_updated", out.model_dump(mode="json"))
    return out


@router.post("/{disaster_id}/approve", response_model=DisasterOut)
async def approve_disaster(
    disaster_id: str,
    body: DisasterReview | None = None,
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    return await _review(
        db, broadcaster, disaster_id, body or DisasterReview(), STATUS_APPROVED, "approve"
    )


@router.post("/{disaster_id}/reject", response_model=DisasterOut)
async def reject_disaster(
    disaster_id: str,
    body: DisasterReview | None = None,
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    return await _review(
        db, broadcaster, disaster_id, body or DisasterReview(), STATUS_REJECTED, "reject"
    )


@router.delete("/{disaster_id}", response_model=MessageOut)
async def delete_disaster(
    disaster_id: str,
    db: AsyncSession = Depends(get_db),
    cache: CacheStore = Depends(get_cache_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    disaster = await _get_or_404(db, disaster_id)
    await db.delete(disaster)
    await db.commit()

    await _invalidate_metadata_caches(cache, disaster_id)
    for namespace in _SCOPED_NAMESPACES:
        await cache.delete_by_prefix(cache_key(namespace, disaster_id) + ":")
    logger.info("Deleted disaster %s", disaster_id)
    broadcaster.publish("disaster_deleted", {"id": disaster_id})
    return MessageOut(message="Deleted", id=disaster_id)
