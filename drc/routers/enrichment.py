"""Cached enrichment endpoints: geocoding, resources, images, news, social."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from drc.ratelimit import RateLimit
from drc.schemas.enrichment import (
    ExternalResourceListOut,
    GeocodeOut,
    GeocodeRequest,
    ImageVerificationOut,
    ImageVerificationRequest,
    OfficialUpdatesOut,
    ResourceCreate,
    ResourceListOut,
    ResourceOut,
    SocialMediaOut,
)
from drc.dependencies import (
    get_geocode_service,
    get_image_verification_service,
    get_official_updates_service,
    get_overpass_service,
    get_resource_service,
    get_social_media_service,
)
from drc.services.base import InvalidRequestError, NotFoundError, parse_coordinate
from drc.services.geocode import GeocodeService
from drc.services.http import UpstreamError
from drc.services.image_verification import ImageVerificationService
from drc.services.official_updates import OfficialUpdatesService
from drc.services.overpass import DEFAULT_AMENITY, OverpassService
from drc.services.resources import ResourceService
from drc.services.social_media import SocialMediaService


router = APIRouter(tags=["Enrichment"])


def _coordinates(lat: str | None, lon: str | None) -> tuple[float, float]:
    try:
        return parse_coordinate(lat, "lat", 90), parse_coordinate(lon, "lon", 180)
    except InvalidRequestError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


# ---------------------------------------------------------------------------
# Geocoding
# ---------------------------------------------------------------------------


@router.post(
    "/geocode",
    response_model=GeocodeOut,
    dependencies=[Depends(RateLimit("geocode"))],
)
async def geocode(
    body: GeocodeRequest,
    service: GeocodeService = Depends(get_geocode_service),
):
    try:
        return await service.geocode(body.description, body.location_name)
    except InvalidRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except UpstreamError as exc:
        raise HTTPException(status_code=502, detail=f"Geocoding failed: {exc}")


# ---------------------------------------------------------------------------
# Resources (local registry, cached by location)
# ---------------------------------------------------------------------------


@router.get("/disasters/{disaster_id}/resources", response_model=ResourceListOut)
async def nearby_resources(
    disaster_id: str,
    lat: str | None = Query(None),
    lon: str | None = Query(None),
    service: ResourceService = Depends(get_resource_service),
):
    lat_value, lon_value = _coordinates(lat, lon)
    return await service.nearby(disaster_id, lat, lon, lat_value, lon_value)


@router.post(
    "/disasters/{disaster_id}/resources",
    response_model=list[ResourceOut],
    status_code=status.HTTP_201_CREATED,
)
async def add_resources(
    disaster_id: str,
    body: list[ResourceCreate],
    service: ResourceService = Depends(get_resource_service),
):
    if not body:
        raise HTTPException(status_code=400, detail="No resources supplied.")
    try:
        return await service.add_many(disaster_id, body)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.post(
    "/disasters/{disaster_id}/resources/auto-populate",
    response_model=list[ResourceOut],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(RateLimit("external-resources"))],
)
async def auto_populate_resources(
    disaster_id: str,
    lat: str | None = Query(None),
    lon: str | None = Query(None),
    type: str = Query(DEFAULT_AMENITY, min_length=1),
    service: ResourceService = Depends(get_resource_service),
):
    lat_value, lon_value = _coordinates(lat, lon)
    try:
        return await service.auto_populate(disaster_id, lat_value, lon_value, type)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except UpstreamError as exc:
        raise HTTPException(status_code=502, detail=f"Resource import failed: {exc}")


# ---------------------------------------------------------------------------
# External resources (Overpass)
# ---------------------------------------------------------------------------


@router.get(
    "/disasters/{disaster_id}/external-resources",
    response_model=ExternalResourceListOut,
    dependencies=[Depends(RateLimit("external-resources"))],
)
async def external_resources(
    disaster_id: str,
    lat: str | None = Query(None),
    lon: str | None = Query(None),
    type: str = Query(DEFAULT_AMENITY, min_length=1),
    radius: int | None = Query(None, gt=0, le=50_000),
    service: OverpassService = Depends(get_overpass_service),
):
    lat_value, lon_value = _coordinates(lat, lon)
    try:
        return await service.external_resources(
            disaster_id, lat, lon, lat_value, lon_value, type, radius
        )
    except UpstreamError as exc:
        raise HTTPException(status_code=502, detail=f"External resource lookup failed: {exc}")


# ---------------------------------------------------------------------------
# Image verification
# ---------------------------------------------------------------------------


@router.post("/disasters/{disaster_id}/verify-image", response_model=ImageVerificationOut)
async def verify_image(
    disaster_id: str,
    body: ImageVerificationRequest,
    service: ImageVerificationService = Depends(get_image_verification_service),
):
    try:
        return await service.verify(disaster_id, body.image_url)
    except InvalidRequestError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except UpstreamError as exc:
        raise HTTPException(status_code=502, detail=f"Image verification failed: {exc}")


# ---------------------------------------------------------------------------
# Official updates (FEMA)
# ---------------------------------------------------------------------------


@router.get("/disasters/{disaster_id}/official-updates", response_model=OfficialUpdatesOut)
async def official_updates(
    disaster_id: str,
    service: OfficialUpdatesService = Depends(get_official_updates_service),
):
    try:
        return await service.official_updates(disaster_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


# ---------------------------------------------------------------------------
# Social media (never fails; falls back to cached or sample data)
# ---------------------------------------------------------------------------


@router.get(
    "/disasters/{disaster_id}/social-media",
    response_model=SocialMediaOut,
    dependencies=[Depends(RateLimit("social-media"))],
)
async def social_media(
    disaster_id: str,
    tag: str | None = Query(None),
    service: SocialMediaService = Depends(get_social_media_service),
):
    return await service.feed(disaster_id, tag)
