"""Gemini-vision authenticity check for images attached to reports."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from drc.schemas.enrichment import ImageVerificationOut
from drc.services.base import EnrichmentService, InvalidRequestError
from drc.services.cache import cache_key
from drc.services.gemini import GeminiClient
from drc.services.http import USER_AGENT

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


class ImageVerificationService(EnrichmentService):
    def __init__(self, *args: Any, gemini: GeminiClient, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self._gemini = gemini

    async def verify(self, disaster_id: str, image_url: str | None) -> ImageVerificationOut:
        if not image_url or not image_url.strip():
            raise InvalidRequestError("Missing image_url in request body")
        self._check_url(image_url)

        key = cache_key("image_verification", disaster_id, image_url)
        cached = await self.cache.get_fresh(key)
        if cached is not None:
            return ImageVerificationOut.model_validate({**cached, "cached": True})

        resp = await self._request(
            "GET",
            image_url,
            headers={"User-Agent": USER_AGENT},
            timeout=self.settings.http_timeout_seconds,
            follow_redirects=True,
        )
        mime_type = self._mime_type(resp.headers.get("content-type"))
        summary = await self._gemini.describe_image(resp.content, mime_type)

        out = ImageVerificationOut(image_url=image_url, summary=summary)
        await self.cache.upsert(key, out.model_dump(mode="json", exclude={"cached"}), self.ttl)
        logger.info("Verified image %s for disaster %s", image_url, disaster_id)
        self._notify(
            "image_verified", {"disaster_id": disaster_id, **out.model_dump(mode="json")}
        )
        return out

    @staticmethod
    def _check_url(image_url: str) -> None:
        try:
            url = httpx.URL(image_url)
        except httpx.InvalidURL:
            raise InvalidRequestError(f"Invalid image_url: {image_url!r}") from None
        if url.scheme not in ("http", "https") or not url.host:
            raise InvalidRequestError(f"Invalid image_url: {image_url!r}")

    @staticmethod
    def _mime_type(content_type: str | None) -> str:
        if not content_type:
            return DEFAULT_MIME_TYPE
        mime = content_type.split(";", 1)[0].strip().lower()
        return mime if mime.startswith("image/") else DEFAULT_MIME_TYPE
