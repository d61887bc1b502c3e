"""Free-text description → coordinates (Gemini + Nominatim)."""

from __future__ import annotations

import logging
from typing import Any

from drc.services.base import EnrichmentService, InvalidRequestError, NotFoundError
from drc.services.cache import cache_key
from drc.services.gemini import GeminiClient
from drc.services.http import USER_AGENT
from drc.schemas.enrichment import GeocodeOut, GeocodeResult

logger = logging.getLogger(__name__)


class GeocodeService(EnrichmentService):
    def __init__(self, *args: Any, gemini: GeminiClient, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._gemini = gemini

    async def geocode(
        self, description: str | None, location_name: str | None = None
    ) -> GeocodeOut:
        if not location_name:
            if not description or not description.strip():
                raise InvalidRequestError("Missing description")
            location_name = await self._gemini.extract_location(description)
            if not location_name:
                logger.warning("No location found in description %r", description)
                raise NotFoundError("No location found in description")
        location_name = location_name.strip()

        key = cache_key("geocode", location_name)
        cached = await self.cache.get_fresh(key)
        if cached is not None:
            return GeocodeOut.model_validate(
                {**cached, "locationName": location_name, "cached": True}
            )

        geo = await self._search(location_name)
        if geo is None and "," in location_name:
            # "Lower East Side, Manhattan" → "Lower East Side"
            simplified = location_name.split(",")[0].strip()
            logger.warning("Retrying geocode of %r as %r", location_name, simplified)
            geo = await self._search(simplified)
        if geo is None:
            raise NotFoundError(f"Location not found: {location_name}")

        result = GeocodeResult(
            lat=str(geo["lat"]),
            lon=str(geo["lon"]),
            display_name=str(geo.get("display_name", location_name)),
        )
        await self.cache.upsert(key, result.model_dump(mode="json"), self.ttl)
        logger.info("Geocoded %r to %s,%s", location_name, result.lat, result.lon)
        out = GeocodeOut(**result.model_dump(by_alias=False), location_name=location_name)
        self._notify("geocode_resolved", out.model_dump(mode="json"))
        return out

    async def _search(self, query: str) -> dict[str, Any] | None:
        resp = await self._request(
            "GET",
            self.settings.nominatim_url,
            params={"format": "json", "q": query},
            headers={"User-Agent": USER_AGENT},
            timeout=self.settings.http_timeout_seconds,
        )
        data = resp.json()
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return data[0]
        return None
