"""Field reports attached to a disaster."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from drc.database import get_db
from drc.models.disaster import Disaster, Report
from drc.realtime import Broadcaster, get_broadcaster
from drc.schemas.common import MessageOut
from drc.schemas.disaster import ReportCreate, ReportOut, ReportUpdate

router = APIRouter(prefix="/disasters", tags=["Reports"])

VERIFICATION_STATUSES = ("pending", "verified", "suspicious", "rejected")


async def _get_report_or_404(db: AsyncSession, disaster_id: str, report_id: str) -> Report:
    report = await db.get(Report, report_id)
    if not report or report.disaster_id != disaster_id:
        raise HTTPException(status_code=404, detail="Report not found.")
    return report


@router.post(
    "/{disaster_id}/reports",
    response_model=ReportOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_report(
    disaster_id: str,
    body: ReportCreate,
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    if not await db.get(Disaster, disaster_id):
        raise HTTPException(status_code=404, detail="Disaster not found.")
    report = Report(disaster_id=disaster_id, **body.model_dump(by_alias=False))
    db.add(report)
    await db.commit()
    await db.refresh(report)
    out = ReportOut.model_validate(report)
    broadcaster.publish("report_created", out.model_dump(mode="json"))
    return out


@router.put("/{disaster_id}/reports/{report_id}", response_model=ReportOut)
async def update_report(
    disaster_id: str,
    report_id: str,
    body: ReportUpdate,
    db: AsyncSession = Depends(get_db),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    report = await _get_report_or_404(db, disaster_id, report_id)
    if body.verification_status is not None:
        if body.verification_status not in VERIFICATION_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Invalid verification status: {body.verification_status}",
            )
        report.verification_status = body.verification_status
    if body.content is not None:
        report.content = body.content
    if body.image_url is not None:
        report.image_url = body.image_url
    await db.commit()
    await db.refresh(report)
    out = ReportOut.model_validate(report)
    broadcaster.publish("report_updated", out.model_dump(mode="json"))
    return out


@router.delete("/{disaster_id}/reports/{report_id}", response_model=MessageOut)
async def delete_report(
    disaster_id: str,
    report_id: str,
    db: AsyncSession = Depends(get_db),
):
    report = await _get_report_or_404(db, disaster_id, report_id)
    await db.delete(report)
    await db.commit()
    return MessageOut(message="Deleted", id=report_id)
