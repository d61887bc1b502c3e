import httpx
import pytest

from drc.services.base import InvalidRequestError, NotFoundError
from drc.services.geocode import GeocodeService
from drc.services.http import UpstreamError
from drc.services.image_verification import ImageVerificationService

from tests.conftest import FakeGemini

NOMINATIM_HOST = "nominatim.openstreetmap.org"


def _nominatim(request: httpx.Request) -> httpx.Response:
    if request.url.params["q"] == "Manhattan":
        return httpx.Response(
            200, json=[{"lat": "40.7896", "lon": "-73.9598", "display_name": "Manhattan, New York"}]
        )
    return httpx.Response(200, json=[])


async def test_geocode_extracts_location_and_simplifies_on_miss(
    cache, http, upstream, broadcaster, test_settings
):
    upstream.on(NOMINATIM_HOST, _nominatim)
    gemini = FakeGemini(location="Manhattan, NYC")
    service = GeocodeService(cache, http, broadcaster, test_settings, gemini=gemini)

    out = await service.geocode("Heavy flooding in Manhattan, NYC")

    assert (out.lat, out.lon) == ("40.7896", "-73.9598")
    assert out.location_name == "Manhattan, NYC"
    assert out.cached is False
    assert [r.url.params["q"] for r in upstream.calls_to(NOMINATIM_HOST)] == [
        "Manhattan, NYC",
        "Manhattan",
    ]
    assert (await cache.get_fresh("geocode:Manhattan, NYC"))["displayName"] == "Manhattan, New York"

    again = await service.geocode("Heavy flooding in Manhattan, NYC")
    assert again.cached is True
    assert len(upstream.calls_to(NOMINATIM_HOST)) == 2


async def test_geocode_with_known_location_skips_gemini(
    cache, http, upstream, broadcaster, test_settings
):
    upstream.on(NOMINATIM_HOST, _nominatim)
    gemini = FakeGemini()
    service = GeocodeService(cache, http, broadcaster, test_settings, gemini=gemini)

    out = await service.geocode(None, "Manhattan")

    assert out.display_name == "Manhattan, New York"
    assert gemini.calls == []


async def test_geocode_requires_description(cache, http, broadcaster, test_settings):
    service = GeocodeService(cache, http, broadcaster, test_settings, gemini=FakeGemini())

    with pytest.raises(InvalidRequestError):
        await service.geocode("   ")


async def test_geocode_without_location_in_text(cache, http, broadcaster, test_settings):
    service = GeocodeService(cache, http, broadcaster, test_settings, gemini=FakeGemini(location=None))

    with pytest.raises(NotFoundError):
        await service.geocode("Something happened somewhere")


async def test_geocode_unknown_place(cache, http, upstream, broadcaster, test_settings):
    upstream.on(NOMINATIM_HOST, _nominatim)
    service = GeocodeService(cache, http, broadcaster, test_settings, gemini=FakeGemini())

    with pytest.raises(NotFoundError):
        await service.geocode(None, "Atlantis")
    assert await cache.get("geocode:Atlantis") is None


async def test_verify_image_caches_summary(cache, http, upstream, broadcaster, test_settings):
    upstream.on(
        "images.example",
        lambda request: httpx.Response(
            200, content=b"\x89PNG", headers={"content-type": "image/png; charset=binary"}
        ),
    )
    gemini = FakeGemini(summary="No signs of manipulation.")
    service = ImageVerificationService(cache, http, broadcaster, test_settings, gemini=gemini)

    out = await service.verify("abc", "https://images.example/flood.png")

    assert out.summary == "No signs of manipulation."
    assert gemini.calls == ["image/png"]
    again = await service.verify("abc", "https://images.example/flood.png")
    assert again.cached is True
    assert len(upstream.calls_to("images.example")) == 1


async def test_verify_image_requires_url(cache, http, broadcaster, test_settings):
    service = ImageVerificationService(cache, http, broadcaster, test_settings, gemini=FakeGemini())

    with pytest.raises(InvalidRequestError):
        await service.verify("abc", "")


async def test_verify_image_download_failure(cache, http, upstream, broadcaster, test_settings):
    upstream.on("images.example", lambda request: httpx.Response(403))
    service = ImageVerificationService(cache, http, broadcaster, test_settings, gemini=FakeGemini())

    with pytest.raises(UpstreamError) as exc_info:
        await service.verify("abc", "https://images.example/private.png")
    assert exc_info.value.status_code == 403


@pytest.mark.parametrize("image_url", ["not-a-url", "ftp://images.example/a.png", "https://"])
async def test_verify_image_rejects_malformed_url(
    cache, http, upstream, broadcaster, test_settings, image_url
):
    service = ImageVerificationService(cache, http, broadcaster, test_settings, gemini=FakeGemini())

    with pytest.raises(InvalidRequestError):
        await service.verify("abc", image_url)
    assert upstream.requests == []
