from datetime import timedelta

import pytest

from drc.services.base import NotFoundError
from drc.services.official_updates import MAX_ITEMS, OfficialUpdatesService

ROW = """
<div class="views-listing views-row">
  <div class="views-field views-field-title list-view-title">
    <a href="{href}">{title}</a>
  </div>
  <div class="views-field views-field-body">
    <div class="field-content"><p>Assistance available for residents.</p></div>
  </div>
  <time class="datetime">June 17, 2025</time>
</div>
"""

PAGE = (
    "<html><body>"
    + ROW.format(href="/press-release/20250617/flood", title="Flood &amp; Storm Update")
    + ROW.format(href="https://www.fema.gov/press-release/shelters", title="<span>Shelters Open</span>")
    + '<div class="views-listing views-row"><p>No title here</p></div>'
    + "</body></html>"
)


@pytest.fixture
def service(cache, http, broadcaster, test_settings, session):
    return OfficialUpdatesService(cache, http, broadcaster, test_settings, db=session)


def test_parse_press_releases(service):
    items = service.parse_press_releases(PAGE)

    assert [i.title for i in items] == ["Flood & Storm Update", "Shelters Open"]
    assert items[0].link == "https://www.fema.gov/press-release/20250617/flood"
    assert items[1].link == "https://www.fema.gov/press-release/shelters"
    assert items[0].description == "Assistance available for residents."
    assert items[0].date == "June 17, 2025"


def test_parse_press_releases_without_rows(service):
    assert service.parse_press_releases("<html>maintenance</html>") == []


async def test_official_updates_scrapes_and_caches(service, monkeypatch, disaster, cache, broadcaster):
    fetched = []

    async def fake_fetch(url, params):
        fetched.append((url, params))
        return PAGE.replace("</body>", ROW.format(href="/x", title="Extra") * 10 + "</body>")

    monkeypatch.setattr(service, "_fetch_html", fake_fetch)
    queue = broadcaster.subscribe()

    out = await service.official_updates(disaster.id)

    assert out.cached is False
    assert out.updates[0].source == "FEMA"
    assert len(out.updates[0].items) == MAX_ITEMS
    assert fetched == [
        (
            "https://www.fema.gov/press-release/search",
            {"keywords": "flood urgent Manhattan, NYC NYC Flood"},
        )
    ]
    assert queue.get_nowait()["eventType"] == "official_updates_updated"

    again = await service.official_updates(disaster.id)
    assert again.cached is True
    assert len(fetched) == 1
    assert await cache.get_fresh("official_updates:abc") is not None


async def test_failed_scrape_is_not_cached(service, monkeypatch, disaster, cache):
    async def failed_fetch(url, params):
        return None

    monkeypatch.setattr(service, "_fetch_html", failed_fetch)

    out = await service.official_updates(disaster.id)

    assert out.updates[0].items == []
    assert await cache.get("official_updates:abc") is None


async def test_failed_scrape_serves_stale_updates(service, monkeypatch, disaster, cache, clock):
    stale = {
        "updates": [
            {
                "source": "FEMA",
                "items": [{"title": "Shelters Open", "link": "https://www.fema.gov/press-release/shelters"}],
            }
        ]
    }
    await cache.upsert("official_updates:abc", stale, timedelta(minutes=60))
    clock.advance(minutes=61)

    async def failed_fetch(url, params):
        return None

    monkeypatch.setattr(service, "_fetch_html", failed_fetch)

    out = await service.official_updates(disaster.id)

    assert out.cached is True
    assert [i.title for i in out.updates[0].items] == ["Shelters Open"]


async def test_unknown_disaster(service):
    with pytest.raises(NotFoundError):
        await service.official_updates("missing")
