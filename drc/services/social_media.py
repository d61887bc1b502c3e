"""Social-media feed for a disaster (Bluesky), with priority tagging.

This is the one endpoint family that never fails: if Bluesky is down or
unconfigured the last cached feed is served even when expired, and
failing that a static sample feed.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable

from drc.schemas.enrichment import SocialMediaOut, SocialPost
from drc.services.base import EnrichmentService
from drc.services.cache import cache_key
from drc.services.http import UpstreamError

logger = logging.getLogger(__name__)

TIMELINE_LIMIT = 10

SOURCE_BLUESKY = "bluesky"
SOURCE_MOCK = "mock"

# Checked in order; the first hit becomes the priority reason.
URGENCY_KEYWORDS = (
    "trapped",
    "urgent",
    "sos",
    "emergency",
    "stranded",
    "evacuat",
    "injured",
    "help needed",
)

MOCK_POSTS: tuple[dict[str, str], ...] = (
    {"post": "#floodrelief Need food and clean water in Lower East Side, Manhattan", "user": "citizen1", "timestamp": "2025-06-17T10:00:00Z"},
    {"post": "Urgent: water level rising near Queens Blvd! #floodSOS", "user": "netrunnerX", "timestamp": "2025-06-17T10:05:00Z"},
    {"post": "Red Cross shelter operational in Brooklyn Heights. Walk-ins welcome. #relief", "user": "reliefAdmin", "timestamp": "2025-06-17T10:10:00Z"},
    {"post": "Anyone near SoHo with medical experience? Elderly trapped. #flood #urgent", "user": "localMedic", "timestamp": "2025-06-17T10:12:00Z"},
    {"post": "We're handing out blankets and hot meals on 5th Ave & 20th St. #floodrelief", "user": "mealTeam6", "timestamp": "2025-06-17T10:15:00Z"},
    {"post": "Signal weak in Bronx. No power since last night. Need update on rescue.", "user": "bronxVoices", "timestamp": "2025-06-17T10:18:00Z"},
    {"post": "Boat team heading to Canal St. Ping us if stranded in that zone. #rescueOps", "user": "floodFleetOps", "timestamp": "2025-06-17T10:22:00Z"},
    {"post": "We need diapers, formula at Harlem shelter ASAP. #helpneeded", "user": "harlemRelief", "timestamp": "2025-06-17T10:25:00Z"},
    {"post": "Just saw debris floating across Madison Ave. Don't drive. #floodupdate", "user": "trafficWatchNY", "timestamp": "2025-06-17T10:27:00Z"},
    {"post": "Trapped with 3 kids at 88th & York. Floor 2. No cell signal. Please assist! #floodSOS", "user": "momInDistress", "timestamp": "2025-06-17T10:32:00Z"},
    {"post": "Downtown hospital generator failed. Evacuating critical patients. #urgent", "user": "nyEmergencyCoord", "timestamp": "2025-06-17T10:35:00Z"},
    {"post": "Dogs and cats left behind in East Village! Volunteers needed. #animalrescue", "user": "petrescueNYC", "timestamp": "2025-06-17T10:40:00Z"},
    {"post": "Food truck open at Times Sq giving free hot meals. #floodrelief", "user": "streetAid", "timestamp": "2025-06-17T10:45:00Z"},
    {"post": "We need more blankets at Staten Island center. It's freezing. #floodrelief", "user": "volunteerHQ", "timestamp": "2025-06-17T10:47:00Z"},
    {"post": "Trapped under debris near Battery Park. Sending GPS location. Please hurry.", "user": "geoStranded", "timestamp": "2025-06-17T10:50:00Z"},
    {"post": "N95 masks needed at the Midtown shelter due to mold. #postfloodhealth", "user": "medWatch", "timestamp": "2025-06-17T10:53:00Z"},
    {"post": "Building collapse in Bushwick reported. Awaiting confirmation. #disaster", "user": "crisisSignal", "timestamp": "2025-06-17T10:55:00Z"},
)


def classify_priority(text: str) -> str | None:
    """Return the first urgency keyword contained in *text* (case-insensitive)."""
    lowered = text.lower()
    for keyword in URGENCY_KEYWORDS:
        if keyword in lowered:
            return keyword
    return None


def annotate(posts: Iterable[dict[str, Any]]) -> list[SocialPost]:
    annotated: list[SocialPost] = []
    for raw in posts:
        reason = classify_priority(raw["post"])
        annotated.append(
            SocialPost(
                post=raw["post"],
                user=raw["user"],
                timestamp=raw["timestamp"],
                priority=reason is not None,
                priority_reason=reason,
            )
        )
    return annotated


class SocialMediaService(EnrichmentService):
    async def feed(self, disaster_id: str, tag: str | None = None) -> SocialMediaOut:
        keyword = tag or disaster_id
        key = cache_key("social_media", disaster_id, keyword)
        cached = await self.cache.get(key)
        if cached is not None and cached.is_fresh(self.cache.now()):
            logger.info("Social media cache hit for %s (%s)", disaster_id, keyword)
            return SocialMediaOut.model_validate({**cached.value, "cached": True})

        try:
            posts = await self._fetch_bluesky(keyword)
        except (UpstreamError, ValueError) as exc:
            logger.error("Bluesky fetch failed for %s (%s): %s", disaster_id, keyword, exc)
            if cached is not None:
                logger.info("Serving stale social media cache for %s", disaster_id)
                return SocialMediaOut.model_validate({**cached.value, "cached": True})
            logger.info("Serving mock social media feed for %s", disaster_id)
            return SocialMediaOut(
                disaster_id=disaster_id, posts=annotate(MOCK_POSTS), source=SOURCE_MOCK
            )

        if posts:
            out = SocialMediaOut(disaster_id=disaster_id, posts=annotate(posts), source=SOURCE_BLUESKY)
        else:
            logger.info("No Bluesky posts matched %r; using mock feed", keyword)
            out = SocialMediaOut(disaster_id=disaster_id, posts=annotate(MOCK_POSTS), source=SOURCE_MOCK)

        dumped = out.model_dump(mode="json", exclude={"cached"})
        await self.cache.upsert(key, dumped, self.ttl)
        self._notify("social_media_updated", dumped)
        return out

    async def _fetch_bluesky(self, keyword: str) -> list[dict[str, str]]:
        if not self.settings.bluesky_identifier or not self.settings.bluesky_password:
            raise UpstreamError("Bluesky credentials not configured")
        base = self.settings.bluesky_service_url.rstrip("/")
        session = await self._request(
            "POST",
            f"{base}/xrpc/com.atproto.server.createSession",
            json={
                "identifier": self.settings.bluesky_identifier,
                "password": self.settings.bluesky_password,
            },
            timeout=self.settings.http_timeout_seconds,
        )
        token = session.json().get("accessJwt")
        if not token:
            raise UpstreamError("Bluesky login returned no access token")
        timeline = await self._request(
            "GET",
            f"{base}/xrpc/app.bsky.feed.getTimeline",
            params={"limit": TIMELINE_LIMIT},
            headers={"Authorization": f"Bearer {token}"},
            timeout=self.settings.http_timeout_seconds,
        )
        return self._matching_posts(timeline.json(), keyword)

    @staticmethod
    def _matching_posts(payload: Any, keyword: str) -> list[dict[str, str]]:
        feed = payload.get("feed") if isinstance(payload, dict) else None
        needle = keyword.lower()
        posts: list[dict[str, str]] = []
        for item in feed or []:
            post = (item or {}).get("post") or {}
            record = post.get("record") or {}
            text = record.get("text")
            if not isinstance(text, str) or needle not in text.lower():
                continue
            posts.append(
                {
                    "post": text,
                    "user": (post.get("author") or {}).get("handle", ""),
                    "timestamp": record.get("createdAt", ""),
                }
            )
        return posts
