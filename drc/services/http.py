"""Outbound HTTP with a bounded retry for transient network failures."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

USER_AGENT = "DRC-Platform/1.0"

# Timeouts, refused/reset connections and DNS failures (httpx reports the
# latter as ConnectError). Status errors are never retried.
TRANSIENT_ERRORS: tuple[type[Exception], ...] = (
    httpx.TimeoutException,
    httpx.ConnectError,
    httpx.ReadError,
    httpx.WriteError,
    httpx.RemoteProtocolError,
)


class UpstreamError(Exception):
    """An external API could not produce a usable answer."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_attempts: int = 3,
    backoff: float = 0.5,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request, retrying only transient transport errors.

    Raises ``UpstreamError`` once *max_attempts* transient failures have
    been seen, or immediately on a 4xx/5xx response.
    """
    for attempt in range(1, max_attempts + 1):
        try:
            resp = await client.request(method, url, **kwargs)
            resp.raise_for_status()
            return resp
        except TRANSIENT_ERRORS as exc:
            logger.warning(
                "%s %s failed (attempt %d/%d): %r", method, url, attempt, max_attempts, exc
            )
            if attempt == max_attempts:
                raise UpstreamError(
                    f"{method} {url} failed after {max_attempts} attempts: {exc}"
                ) from exc
            await asyncio.sleep(backoff * attempt)
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.error("%s %s returned %d", method, url, status)
            raise UpstreamError(f"{method} {url} returned {status}", status_code=status) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.error("%s %s failed: %r", method, url, exc)
            raise UpstreamError(f"{method} {url} failed: {exc}") from exc
    raise UpstreamError(f"{method} {url} was not attempted (max_attempts={max_attempts})")
