"""
Tests for the TTL cache, the task queue and the home page caches.
"""

import threading

from app.core.cache import NullCache, TTLCache
from app.core.tasks import InlineTaskQueue, TaskQueue
from app.models.site import HeroMessage
from app.services import home
from app.services.home import HomeCaches


class TestTTLCache:
    """Tests for the single-slot TTL cache."""

    def test_value_expires_after_ttl(self, clock) -> None:
        cache = TTLCache("settings", ttl_seconds=60, clock=clock)
        cache.set({"theme": "dark"})
        clock.advance(59)
        assert cache.get() == {"theme": "dark"}
        clock.advance(1)
        assert cache.get() is None

    def test_get_or_load_calls_loader_once_per_ttl(self, clock) -> None:
        cache = TTLCache("settings", ttl_seconds=10, clock=clock)
        calls = []

        def loader():
            calls.append(1)
            return len(calls)

        assert cache.get_or_load(loader) == 1
        assert cache.get_or_load(loader) == 1
        clock.advance(10)
        assert cache.get_or_load(loader) == 2

    def test_none_from_loader_is_cached(self, clock) -> None:
        cache = TTLCache("hero_messages", ttl_seconds=10, clock=clock)
        calls = []

        def loader():
            calls.append(1)
            return None

        assert cache.get_or_load(loader) is None
        assert cache.get_or_load(loader) is None
        assert len(calls) == 1
        clock.advance(10)
        cache.get_or_load(loader)
        assert len(calls) == 2

    def test_invalidate(self, clock) -> None:
        cache = TTLCache("settings", ttl_seconds=60, clock=clock)
        cache.set([1])
        cache.invalidate()
        assert cache.get() is None

    def test_null_cache_never_stores(self) -> None:
        cache = NullCache()
        cache.set("value")
        assert cache.get() is None
        assert cache.get_or_load(lambda: "fresh") == "fresh"


class TestTaskQueue:
    """Jobs are fire and forget; failures go to the sink."""

    def test_inline_queue_runs_and_records(self) -> None:
        seen = []
        queue = InlineTaskQueue()
        queue.enqueue("collect", seen.append, 42)
        assert seen == [42]
        assert queue.executed == [("collect", (42,), {})]

    def test_failure_goes_to_sink_not_caller(self) -> None:
        failures = []
        queue = InlineTaskQueue(failure_sink=lambda name, exc: failures.append((name, str(exc))))

        def boom():
            raise RuntimeError("smtp down")

        queue.enqueue("notify", boom)
        assert failures == [("notify", "smtp down")]

    def test_thread_pool_queue(self) -> None:
        done = threading.Event()
        queue = TaskQueue(max_workers=1)
        queue.enqueue("signal", done.set)
        assert done.wait(timeout=5)
        queue.shutdown()


class TestHomeCaches:
    """Admin writes invalidate the matching cache slot."""

    def test_announcements_are_cached_until_written(self, db, clock) -> None:
        caches = HomeCaches(announcements=TTLCache("announcements", 300, clock=clock))
        assert home.active_announcements(db, caches) == []

        home.save_announcement(db, caches, {"title": "Office closed Friday"})
        assert [a["title"] for a in home.active_announcements(db, caches)] == ["Office closed Friday"]

    def test_stale_value_served_within_ttl(self, db, clock) -> None:
        caches = HomeCaches(hero_messages=TTLCache("hero_messages", 300, clock=clock))
        home.save_hero_message(db, caches, {"text": "Welcome"})
        assert len(home.active_hero_messages(db, caches)) == 1

        # Written behind the cache's back
        db.add(HeroMessage(text="Sneaky"))
        db.commit()
        assert len(home.active_hero_messages(db, caches)) == 1

        clock.advance(300)
        assert len(home.active_hero_messages(db, caches)) == 2

    def test_update_settings_merges_and_invalidates(self, db, clock) -> None:
        caches = HomeCaches(settings=TTLCache("app_settings", 600, clock=clock))
        assert home.app_settings(db, caches) == {}
        home.update_settings(db, caches, {"site_name": "Intranet", "theme": "light"})
        assert home.update_settings(db, caches, {"theme": "dark"}) == {"site_name": "Intranet", "theme": "dark"}

    def test_inactive_announcements_are_hidden(self, db) -> None:
        caches = HomeCaches()
        saved = home.save_announcement(db, caches, {"title": "Old news", "is_active": True})
        home.save_announcement(db, caches, {"is_active": False}, announcement_id=saved["id"])
        assert home.active_announcements(db, caches) == []
        assert len(home.list_announcements(db)) == 1
