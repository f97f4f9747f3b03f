"""공유 스토어 유닛 테스트"""
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from eventvista.core.exceptions import StoreConnectionException
from eventvista.services import InMemorySharedStore, RedisSharedStore


class TestInMemorySharedStore:
    """in-memory 스토어 동작"""

    def test_set_get_delete(self, store):
        store.set("k", "v")
        assert store.get("k") == "v"
        assert store.delete("k") is True
        assert store.get("k") is None
        assert store.delete("k") is False

    def test_value_expires_after_ttl(self, store, clock):
        store.set("k", "v", ttl_seconds=30)
        clock.advance(29)
        assert store.get("k") == "v"
        clock.advance(1)
        assert store.get("k") is None

    def test_incr_window_counts_and_resets(self, store, clock):
        """윈도우 안에서는 누적, 만료 후 1부터 다시"""
        assert store.incr_window("c", 900) == (1, 900)
        clock.advance(100)
        assert store.incr_window("c", 900) == (2, 800)
        clock.advance(800)
        assert store.incr_window("c", 900) == (1, 900)

    def test_cleanup_removes_expired(self, store, clock):
        store.set("a", "1", ttl_seconds=10)
        store.set("b", "2")
        store.incr_window("c", 10)
        clock.advance(10)
        assert store.cleanup() == 2
        assert store.get("b") == "2"

    def test_writes_purge_untouched_expired_keys(self, clock):
        """다시 조회되지 않는 키(지나간 클라이언트/캐시 지문)도 쓰기 중에 정리"""
        store = InMemorySharedStore(clock=clock, purge_every=3)
        store.incr_window("rate_limit:search:1.1.1.1:900", 900)
        store.set("events:old", "[]", ttl_seconds=30)
        clock.advance(900)

        store.incr_window("rate_limit:search:2.2.2.2:900", 900)

        assert store.size() == 1

    def test_purge_every_must_be_positive(self, clock):
        with pytest.raises(ValueError):
            InMemorySharedStore(clock=clock, purge_every=0)

    def test_ping(self, store):
        assert store.ping() is True


class TestRedisSharedStore:
    """Redis 스토어 - 오류 변환"""

    def _store(self):
        client = MagicMock()
        client.register_script.return_value = MagicMock(return_value=[3, 120])
        return RedisSharedStore(client), client

    def test_incr_window_uses_script(self):
        store, client = self._store()
        assert store.incr_window("rate_limit:api:1.2.3.4:900", 900) == (3, 120)
        script = client.register_script.return_value
        script.assert_called_once_with(keys=["rate_limit:api:1.2.3.4:900"], args=[900])

    def test_set_with_ttl_uses_setex(self):
        store, client = self._store()
        store.set("k", "v", ttl_seconds=30)
        client.setex.assert_called_once_with("k", 30, "v")

    def test_redis_error_becomes_store_exception(self):
        store, client = self._store()
        client.get.side_effect = RedisConnectionError("down")
        with pytest.raises(StoreConnectionException) as exc_info:
            store.get("k")
        assert exc_info.value.details == {"op": "get"}

    def test_ping_failure_returns_false(self):
        store, client = self._store()
        client.ping.side_effect = RedisConnectionError("down")
        assert store.ping() is False


def test_in_memory_store_satisfies_interface():
    store = InMemorySharedStore()
    for name in ("get", "set", "delete", "incr_window", "ping"):
        assert callable(getattr(store, name))
