from datetime import datetime

from pydantic import ConfigDict, Field

from drc.schemas.common import CamelModel


# ---------------------------------------------------------------------------
# Disaster
# ---------------------------------------------------------------------------
class DisasterCreate(CamelModel):
    title: str = Field(min_length=1, max_length=300)
    location_name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    tags: list[str] = Field(min_length=1)
    owner_id: str = Field(min_length=1)
    lat: float | None = Field(default=None, ge=-90, le=90)
    lon: float | None = Field(default=None, ge=-180, le=180)


class DisasterUpdate(CamelModel):
    # Concurrency token: the version the client last read.
    version: int
    user_id: str | None = None
    title: str | None = Field(default=None, min_length=1, max_length=300)
    location_name: str | None = None
    description: str | None = None
    tags: list[str] | None = None
    lat: float | None = Field(default=None, ge=-90, le=90)
    lon: float | None = Field(default=None, ge=-180, le=180)


class DisasterReview(CamelModel):
    user_id: str | None = None
    version: int | None = None


class AuditEntry(CamelModel):
    action: str
    user_id: str | None = None
    timestamp: str


class DisasterOut(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    location_name: str
    description: str
    tags: list[str]
    owner_id: str
    status: str
    lat: float | None = None
    lon: float | None = None
    audit_trail: list[AuditEntry] = []
    created_at: datetime
    version: int


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------
class ReportCreate(CamelModel):
    content: str = Field(min_length=1)
    image_url: str | None = None
    user_id: str | None = None


class ReportUpdate(CamelModel):
    content: str | None = Field(default=None, min_length=1)
    image_url: str | None = None
    verification_status: str | None = None


class ReportOut(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    disaster_id: str
    user_id: str | None = None
    content: str
    image_url: str | None = None
    verification_status: str
    created_at: datetime
