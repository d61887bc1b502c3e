"""Request / response shapes of the cached enrichment endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import ConfigDict, Field

from drc.schemas.common import CamelModel


# ---------------------------------------------------------------------------
# Geocoding
# ---------------------------------------------------------------------------
class GeocodeRequest(CamelModel):
    description: str | None = None
    # Skips the Gemini extraction step when the caller already knows it.
    location_name: str | None = None


class GeocodeResult(CamelModel):
    lat: str
    lon: str
    display_name: str


class GeocodeOut(GeocodeResult):
    location_name: str
    cached: bool = False


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------
class ResourceCreate(CamelModel):
    name: str = Field(min_length=1)
    location_name: str = ""
    type: str = Field(min_length=1)
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)


class ResourceOut(CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    disaster_id: str
    name: str
    location_name: str = ""
    type: str
    lat: float
    lon: float
    distance_meters: float | None = None
    created_at: datetime | None = None


class ResourceListOut(CamelModel):
    resources: list[ResourceOut] = []
    cached: bool = False


class ExternalResource(CamelModel):
    id: int
    name: str | None = None
    type: str
    address: str | None = None
    lat: float | None = None
    lon: float | None = None


class ExternalResourceListOut(CamelModel):
    resources: list[ExternalResource] = []
    cached: bool = False


# ---------------------------------------------------------------------------
# Image verification
# ---------------------------------------------------------------------------
class ImageVerificationRequest(CamelModel):
    image_url: str | None = None


class ImageVerificationOut(CamelModel):
    image_url: str
    summary: str | None = None
    cached: bool = False


# ---------------------------------------------------------------------------
# Official updates
# ---------------------------------------------------------------------------
class OfficialUpdateItem(CamelModel):
    title: str
    link: str
    description: str = ""
    date: str = ""


class OfficialUpdateSource(CamelModel):
    source: str
    items: list[OfficialUpdateItem] = []


class OfficialUpdatesOut(CamelModel):
    updates: list[OfficialUpdateSource] = []
    cached: bool = False


# ---------------------------------------------------------------------------
# Social media
# ---------------------------------------------------------------------------
class SocialPost(CamelModel):
    post: str
    user: str
    timestamp: str
    priority: bool = False
    priority_reason: str | None = None


class SocialMediaOut(CamelModel):
    disaster_id: str
    posts: list[SocialPost] = []
    source: str
    cached: bool = False
