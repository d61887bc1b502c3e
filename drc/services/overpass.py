"""OpenStreetMap amenities around a point, via the Overpass API."""

from __future__ import annotations

import logging
from typing import Any

from drc.schemas.enrichment import ExternalResource, ExternalResourceListOut
from drc.services.base import EnrichmentService
from drc.services.cache import cache_key
from drc.services.http import USER_AGENT

logger = logging.getLogger(__name__)

DEFAULT_AMENITY = "hospital"
MAX_RESULTS = 20


def build_overpass_query(lat: float, lon: float, amenity: str, radius: int) -> str:
    around = f"around:{radius},{lat},{lon}"
    return (
        "[out:json][timeout:25];\n"
        "(\n"
        f'  node["amenity"="{amenity}"]({around});\n'
        f'  way["amenity"="{amenity}"]({around});\n'
        f'  relation["amenity"="{amenity}"]({around});\n'
        ");\n"
        "out center tags;\n"
    )


def parse_elements(payload: Any, amenity: str) -> list[ExternalResource]:
    """Map Overpass elements to resources; ways/relations carry a ``center``."""
    elements = payload.get("elements") if isinstance(payload, dict) else None
    if not isinstance(elements, list):
        return []
    resources: list[ExternalResource] = []
    for el in elements:
        if not isinstance(el, dict) or "id" not in el:
            continue
        tags = el.get("tags") or {}
        center = el.get("center") or {}
        resources.append(
            ExternalResource(
                id=el["id"],
                name=tags.get("name"),
                type=tags.get("amenity") or amenity,
                address=tags.get("address") or _street_address(tags),
                lat=el.get("lat", center.get("lat")),
                lon=el.get("lon", center.get("lon")),
            )
        )
        if len(resources) == MAX_RESULTS:
            break
    return resources


def _street_address(tags: dict[str, Any]) -> str | None:
    street = tags.get("addr:street")
    if not street:
        return None
    number = tags.get("addr:housenumber")
    return f"{number} {street}" if number else street


class OverpassService(EnrichmentService):
    async def find_amenities(
        self, lat: float, lon: float, amenity: str, radius: int
    ) -> list[ExternalResource]:
        """Uncached Overpass lookup, also used to auto-populate resources."""
        resp = await self._request(
            "POST",
            self.settings.overpass_url,
            content=build_overpass_query(lat, lon, amenity, radius),
            headers={"Content-Type": "text/plain", "User-Agent": USER_AGENT},
            timeout=self.settings.http_timeout_seconds * 3,
        )
        return parse_elements(resp.json(), amenity)

    async def external_resources(
        self,
        disaster_id: str,
        lat_raw: str,
        lon_raw: str,
        lat: float,
        lon: float,
        amenity: str = DEFAULT_AMENITY,
        radius: int | None = None,
    ) -> ExternalResourceListOut:
        radius = radius or self.settings.resource_radius_meters
        key = cache_key("external_resources", disaster_id, lat_raw, lon_raw, amenity, radius)
        cached = await self.cache.get_fresh(key)
        if cached is not None:
            return ExternalResourceListOut.model_validate({**cached, "cached": True})

        resources = await self.find_amenities(lat, lon, amenity, radius)
        dumped = [r.model_dump(mode="json") for r in resources]
        await self.cache.upsert(key, {"resources": dumped}, self.ttl)
        logger.info(
            "Overpass returned %d %s resources for disaster %s",
            len(resources), amenity, disaster_id,
        )
        self._notify(
            "external_resources_updated", {"disaster_id": disaster_id, "resources": dumped}
        )
        return ExternalResourceListOut(resources=resources)
