from datetime import datetime, timezone

from drc.ratelimit import FixedWindowRateLimiter
from drc.realtime import Broadcaster


class ManualClock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_publish_reaches_every_listener():
    broadcaster = Broadcaster()
    first, second = broadcaster.subscribe(), broadcaster.subscribe()

    delivered = broadcaster.publish(
        "disaster_created", {"id": "abc", "created_at": datetime(2025, 6, 17, tzinfo=timezone.utc)}
    )

    assert delivered == 2
    event = first.get_nowait()
    assert event == second.get_nowait()
    assert event["eventType"] == "disaster_created"
    assert event["payload"]["created_at"] == "2025-06-17T00:00:00+00:00"


def test_full_listener_loses_event_without_blocking_others():
    broadcaster = Broadcaster(queue_size=1)
    slow, fast = broadcaster.subscribe(), broadcaster.subscribe()
    broadcaster.publish("resources_updated", {"n": 1})
    fast.get_nowait()

    assert broadcaster.publish("resources_updated", {"n": 2}) == 1
    assert slow.get_nowait()["payload"] == {"n": 1}
    assert slow.empty()
    assert fast.get_nowait()["payload"] == {"n": 2}


def test_unsubscribed_listener_gets_nothing():
    broadcaster = Broadcaster()
    queue = broadcaster.subscribe()
    broadcaster.unsubscribe(queue)

    assert broadcaster.publish("disaster_deleted", {"id": "abc"}) == 0
    assert queue.empty()
    assert broadcaster.listener_count == 0


def test_rate_limiter_counts_per_key_and_window():
    clock = ManualClock(10.0)
    limiter = FixedWindowRateLimiter(limit=2, window_seconds=60, clock=clock)

    assert limiter.hit("rate_limit:1.2.3.4:geocode") == (True, 50.0)
    assert limiter.hit("rate_limit:1.2.3.4:geocode")[0] is True
    assert limiter.hit("rate_limit:1.2.3.4:geocode") == (False, 50.0)
    assert limiter.hit("rate_limit:5.6.7.8:geocode")[0] is True

    clock.now = 60.0
    assert limiter.hit("rate_limit:1.2.3.4:geocode") == (True, 60.0)


def test_rate_limiter_forgets_past_windows():
    clock = ManualClock(0.0)
    limiter = FixedWindowRateLimiter(limit=1, window_seconds=60, clock=clock)
    for host in ("1.1.1.1", "2.2.2.2", "3.3.3.3"):
        limiter.hit(f"rate_limit:{host}:social-media")
    assert limiter.tracked_keys == 3

    clock.now = 125.0
    assert limiter.hit("rate_limit:4.4.4.4:social-media")[0] is True
    assert limiter.tracked_keys == 1
    assert limiter.hit("rate_limit:1.1.1.1:social-media")[0] is True
