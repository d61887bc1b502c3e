"""FEMA press releases relevant to a disaster, scraped server-side."""

from __future__ import annotations

import html as html_mod
import logging
import re
from typing import Any

from curl_cffi import requests as cf_requests
from sqlalchemy.ext.asyncio import AsyncSession

from drc.models.disaster import Disaster
from drc.schemas.enrichment import (
    OfficialUpdateItem,
    OfficialUpdateSource,
    OfficialUpdatesOut,
)
from drc.services.base import EnrichmentService, NotFoundError
from drc.services.cache import cache_key

logger = logging.getLogger(__name__)

MAX_ITEMS = 5

_ROW_START = re.compile(r'<div[^>]*class="[^"]*views-listing[^"]*views-row[^"]*"[^>]*>', re.I)
_TITLE = re.compile(
    r'class="[^"]*list-view-title[^"]*"[^>]*>[\s\S]*?<a[^>]*href="([^"]+)"[^>]*>([\s\S]*?)</a>',
    re.I,
)
_BODY = re.compile(
    r'class="[^"]*views-field-body[^"]*"[\s\S]*?'
    r'<(div|span)[^>]*class="[^"]*field-content[^"]*"[^>]*>([\s\S]*?)</\1>',
    re.I,
)
_DATE = re.compile(r'<time[^>]*class="[^"]*datetime[^"]*"[^>]*>([\s\S]*?)</time>', re.I)


class OfficialUpdatesService(EnrichmentService):
    def __init__(self, *args: Any, db: AsyncSession, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._db = db

    async def official_updates(self, disaster_id: str) -> OfficialUpdatesOut:
        key = cache_key("official_updates", disaster_id)
        cached = await self.cache.get(key)
        if cached is not None and cached.is_fresh(self.cache.now()):
            logger.info("Official updates cache hit for %s", disaster_id)
            return OfficialUpdatesOut.model_validate({**cached.value, "cached": True})

        disaster = await self._db.get(Disaster, disaster_id)
        if disaster is None:
            logger.error("Official updates requested for unknown disaster %s", disaster_id)
            raise NotFoundError("Disaster not found")

        page = await self._fetch_html(
            f"{self.settings.fema_base_url}/press-release/search",
            {"keywords": " ".join(self._keywords(disaster))},
        )
        if page is None:
            if cached is not None:
                logger.info("Serving stale official updates for %s", disaster_id)
                return OfficialUpdatesOut.model_validate({**cached.value, "cached": True})
            # Nothing to fall back on; the empty answer is not cached.
            return OfficialUpdatesOut(updates=[OfficialUpdateSource(source="FEMA")])

        items = self.parse_press_releases(page)[:MAX_ITEMS]
        out = OfficialUpdatesOut(updates=[OfficialUpdateSource(source="FEMA", items=items)])
        dumped = out.model_dump(mode="json", exclude={"cached"})
        await self.cache.upsert(key, dumped, self.ttl)
        logger.info("Scraped %d FEMA updates for disaster %s", len(items), disaster_id)
        self._notify("official_updates_updated", {"disaster_id": disaster_id, **dumped})
        return out

    @staticmethod
    def _keywords(disaster: Disaster) -> list[str]:
        return [k for k in (*(disaster.tags or []), disaster.location_name, disaster.title) if k]

    async def _fetch_html(self, url: str, params: dict[str, str]) -> str | None:
        # curl_cffi impersonates a real browser TLS fingerprint; fema.gov
        # rejects plain HTTP clients.
        try:
            async with cf_requests.AsyncSession(impersonate="chrome") as session:
                resp = await session.get(
                    url, params=params, timeout=self.settings.http_timeout_seconds * 3
                )
        except Exception as exc:
            logger.error("FEMA fetch failed: %s", exc)
            return None
        if resp.status_code != 200:
            logger.error("FEMA returned %d for %s", resp.status_code, url)
            return None
        return resp.text

    # ------------------------------------------------------------------
    # HTML parsing
    # ------------------------------------------------------------------

    def parse_press_releases(self, page: str) -> list[OfficialUpdateItem]:
        starts = [m.start() for m in _ROW_START.finditer(page)]
        items: list[OfficialUpdateItem] = []
        for idx, start in enumerate(starts):
            end = starts[idx + 1] if idx + 1 < len(starts) else len(page)
            row = page[start:end]
            title_match = _TITLE.search(row)
            if not title_match:
                continue
            link = html_mod.unescape(title_match.group(1).strip())
            title = self._strip_html(title_match.group(2))
            if not title or not link:
                continue
            if link.startswith("/"):
                link = self.settings.fema_base_url + link
            body_match = _BODY.search(row)
            date_match = _DATE.search(row)
            items.append(
                OfficialUpdateItem(
                    title=title,
                    link=link,
                    description=self._strip_html(body_match.group(2)) if body_match else "",
                    date=self._strip_html(date_match.group(1)) if date_match else "",
                )
            )
        return items

    @staticmethod
    def _strip_html(value: str) -> str:
        text = re.sub(r"<[^>]*>", " ", value)
        text = html_mod.unescape(text)
        return re.sub(r"\s+", " ", text).strip()
