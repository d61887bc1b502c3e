"""Relief resources registered against a disaster, looked up by distance."""

from __future__ import annotations

import logging
import math
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from drc.models.disaster import Disaster, Resource
from drc.schemas.enrichment import ResourceCreate, ResourceListOut, ResourceOut
from drc.services.base import EnrichmentService, NotFoundError
from drc.services.cache import cache_key
from drc.services.overpass import OverpassService

logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6_371_000.0


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(a))


def resources_prefix(disaster_id: str) -> str:
    return cache_key("resources", disaster_id) + ":"


class ResourceService(EnrichmentService):
    def __init__(
        self,
        *args: Any,
        db: AsyncSession,
        overpass: OverpassService,
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self._db = db
        self._overpass = overpass

    # ------------------------------------------------------------------
    # Cached lookup
    # ------------------------------------------------------------------

    async def nearby(
        self, disaster_id: str, lat_raw: str, lon_raw: str, lat: float, lon: float
    ) -> ResourceListOut:
        key = cache_key("resources", disaster_id, lat_raw, lon_raw)
        cached = await self.cache.get_fresh(key)
        if cached is not None:
            return ResourceListOut.model_validate({**cached, "cached": True})

        resources = await self._lookup(disaster_id, lat, lon)
        dumped = [r.model_dump(mode="json") for r in resources]
        await self.cache.upsert(key, {"resources": dumped}, self.ttl)
        logger.info("Found %d resources near disaster %s", len(resources), disaster_id)
        self._notify("resources_updated", {"disaster_id": disaster_id, "resources": dumped})
        return ResourceListOut(resources=resources)

    async def _lookup(self, disaster_id: str, lat: float, lon: float) -> list[ResourceOut]:
        result = await self._db.execute(
            select(Resource).where(Resource.disaster_id == disaster_id)
        )
        radius = self.settings.resource_radius_meters
        nearby: list[ResourceOut] = []
        for row in result.scalars():
            distance = haversine_meters(lat, lon, row.lat, row.lon)
            if distance <= radius:
                out = ResourceOut.model_validate(row)
                nearby.append(out.model_copy(update={"distance_meters": round(distance, 1)}))
        nearby.sort(key=lambda r: r.distance_meters or 0.0)
        return nearby

    # ------------------------------------------------------------------
    # Bulk writes (invalidate every cached variant for the disaster)
    # ------------------------------------------------------------------

    async def add_many(
        self, disaster_id: str, items: list[ResourceCreate]
    ) -> list[ResourceOut]:
        if await self._db.get(Disaster, disaster_id) is None:
            raise NotFoundError("Disaster not found.")
        rows = [Resource(disaster_id=disaster_id, **item.model_dump(by_alias=False)) for item in items]
        self._db.add_all(rows)
        await self._db.commit()
        for row in rows:
            await self._db.refresh(row)

        await self.cache.delete_by_prefix(resources_prefix(disaster_id))
        created = [ResourceOut.model_validate(row) for row in rows]
        self._notify(
            "resources_updated",
            {"disaster_id": disaster_id, "resources": [r.model_dump(mode="json") for r in created]},
        )
        return created

    async def auto_populate(
        self, disaster_id: str, lat: float, lon: float, amenity: str
    ) -> list[ResourceOut]:
        """Import nearby OSM amenities as resources of the disaster."""
        if await self._db.get(Disaster, disaster_id) is None:
            raise NotFoundError("Disaster not found.")
        found = await self._overpass.find_amenities(
            lat, lon, amenity, self.settings.resource_radius_meters
        )
        items = [
            ResourceCreate(
                name=r.name or f"Unnamed {r.type}",
                location_name=r.address or "",
                type=r.type,
                lat=r.lat,
                lon=r.lon,
            )
            for r in found
            if r.lat is not None and r.lon is not None
        ]
        logger.info("Auto-populating %d %s resources for %s", len(items), amenity, disaster_id)
        if not items:
            return []
        return await self.add_many(disaster_id, items)
