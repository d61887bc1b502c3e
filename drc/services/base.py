from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

import httpx

from drc.config import Settings
from drc.realtime import Broadcaster
from drc.services.cache import CacheStore
from drc.services.http import request_with_retry

logger = logging.getLogger(__name__)


class NotFoundError(Exception):
    """The subject (or the thing looked up for it) does not exist."""


class InvalidRequestError(ValueError):
    """Missing or malformed request parameter."""


def parse_coordinate(raw: str | None, name: str, bound: float) -> float:
    if raw is None or not raw.strip():
        raise InvalidRequestError(f"Missing {name} query parameter")
    try:
        value = float(raw)
    except ValueError:
        raise InvalidRequestError(f"Invalid {name}: {raw!r}") from None
    if value != value or not -bound <= value <= bound:
        raise InvalidRequestError(f"Invalid {name}: {raw!r}")
    return value


class EnrichmentService:
    """Shared plumbing for fetchers that cache an upstream answer."""

    def __init__(
        self,
        cache: CacheStore,
        http: httpx.AsyncClient,
        broadcaster: Broadcaster,
        settings: Settings,
    ) -> None:
        self.cache = cache
        self.http = http
        self.broadcaster = broadcaster
        self.settings = settings

    @property
    def ttl(self) -> timedelta:
        return timedelta(minutes=self.settings.cache_ttl_minutes)

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        return await request_with_retry(
            self.http,
            method,
            url,
            max_attempts=self.settings.http_max_attempts,
            backoff=self.settings.http_retry_backoff_seconds,
            **kwargs,
        )

    def _notify(self, event_type: str, payload: Any) -> None:
        try:
            self.broadcaster.publish(event_type, payload)
        except Exception:
            logger.exception("Broadcast of %s failed", event_type)
