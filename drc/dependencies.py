"""Request-scoped wiring of the enrichment services.

Shared collaborators (HTTP client, broadcaster, Gemini client, settings)
live on ``app.state`` and are handed to each service explicitly.
"""

from __future__ import annotations

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from drc.config import Settings
from drc.database import get_db
from drc.realtime import Broadcaster, get_broadcaster
from drc.services.cache import CacheStore
from drc.services.gemini import GeminiClient
from drc.services.geocode import GeocodeService
from drc.services.image_verification import ImageVerificationService
from drc.services.official_updates import OfficialUpdatesService
from drc.services.overpass import OverpassService
from drc.services.resources import ResourceService
from drc.services.social_media import SocialMediaService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_gemini(request: Request) -> GeminiClient:
    return request.app.state.gemini


def get_cache_store(db: AsyncSession = Depends(get_db)) -> CacheStore:
    return CacheStore(db)


class _Collaborators:
    def __init__(
        self,
        cache: CacheStore = Depends(get_cache_store),
        http: httpx.AsyncClient = Depends(get_http_client),
        broadcaster: Broadcaster = Depends(get_broadcaster),
        settings: Settings = Depends(get_settings),
    ) -> None:
        self.args = (cache, http, broadcaster, settings)


def get_geocode_service(
    deps: _Collaborators = Depends(),
    gemini: GeminiClient = Depends(get_gemini),
) -> GeocodeService:
    return GeocodeService(*deps.args, gemini=gemini)


def get_overpass_service(deps: _Collaborators = Depends()) -> OverpassService:
    return OverpassService(*deps.args)


def get_resource_service(
    deps: _Collaborators = Depends(),
    db: AsyncSession = Depends(get_db),
    overpass: OverpassService = Depends(get_overpass_service),
) -> ResourceService:
    return ResourceService(*deps.args, db=db, overpass=overpass)


def get_image_verification_service(
    deps: _Collaborators = Depends(),
    gemini: GeminiClient = Depends(get_gemini),
) -> ImageVerificationService:
    return ImageVerificationService(*deps.args, gemini=gemini)


def get_official_updates_service(
    deps: _Collaborators = Depends(),
    db: AsyncSession = Depends(get_db),
) -> OfficialUpdatesService:
    return OfficialUpdatesService(*deps.args, db=db)


def get_social_media_service(deps: _Collaborators = Depends()) -> SocialMediaService:
    return SocialMediaService(*deps.args)
