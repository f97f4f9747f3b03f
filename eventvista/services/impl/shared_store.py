"""공유 스토어 - 레이트 리밋 카운터와 결과 캐시가 공유하는 저장소

운영에서는 Redis, 테스트/단일 프로세스 개발 모드에서는 in-memory 구현을 주입합니다.
"""
import threading
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

from redis import Redis
from redis.exceptions import RedisError

from eventvista.core.exceptions import StoreConnectionException
from eventvista.core.logging import logger


# INCR + 첫 증가 시 EXPIRE + TTL 조회를 한 번에 (동시 요청 간 경쟁 없음)
_INCR_WINDOW_SCRIPT = """
local current = redis.call('INCR', KEYS[1])
if current == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
end
local ttl = redis.call('TTL', KEYS[1])
if ttl < 0 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
    ttl = tonumber(ARGV[1])
end
return {current, ttl}
"""


class SharedStore(Protocol):
    """get/set/increment 인터페이스"""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        ...

    def delete(self, key: str) -> bool:
        ...

    def incr_window(self, key: str, window_seconds: int) -> Tuple[int, int]:
        """카운터 증가 후 (증가된 값, 윈도우 남은 초) 반환"""
        ...

    def ping(self) -> bool:
        ...


class RedisSharedStore:
    """Redis 기반 공유 스토어"""

    def __init__(self, redis_client: Redis):
        self.redis_client = redis_client
        self._incr_window = redis_client.register_script(_INCR_WINDOW_SCRIPT)

    @classmethod
    def from_url(cls, redis_url: str) -> "RedisSharedStore":
        """Redis 클라이언트 생성 (연결은 첫 명령에서 수립)"""
        client = Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            health_check_interval=30,
        )
        return cls(client)

    def get(self, key: str) -> Optional[str]:
        try:
            return self.redis_client.get(key)
        except RedisError as e:
            logger.error(f"[STORE] Redis get failed: {type(e).__name__}")
            raise StoreConnectionException(type(e).__name__, details={"op": "get"}) from e

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        try:
            if ttl_seconds:
                self.redis_client.setex(key, ttl_seconds, value)
            else:
                self.redis_client.set(key, value)
        except RedisError as e:
            logger.error(f"[STORE] Redis set failed: {type(e).__name__}")
            raise StoreConnectionException(type(e).__name__, details={"op": "set"}) from e

    def delete(self, key: str) -> bool:
        try:
            return self.redis_client.delete(key) > 0
        except RedisError as e:
            logger.error(f"[STORE] Redis delete failed: {type(e).__name__}")
            raise StoreConnectionException(type(e).__name__, details={"op": "delete"}) from e

    def incr_window(self, key: str, window_seconds: int) -> Tuple[int, int]:
        try:
            count, ttl = self._incr_window(keys=[key], args=[int(window_seconds)])
            return int(count), int(ttl)
        except RedisError as e:
            logger.error(f"[STORE] Redis incr_window failed: {type(e).__name__}")
            raise StoreConnectionException(type(e).__name__, details={"op": "incr_window"}) from e

    def ping(self) -> bool:
        try:
            return bool(self.redis_client.ping())
        except RedisError:
            return False


class InMemorySharedStore:
    """프로세스 로컬 공유 스토어 (테스트/개발용, 레이트 리밋 폴백)

    만료 항목은 같은 키를 다시 읽을 때 지워지고, 그 외에는 purge_every번
    쓸 때마다 전체를 한 번 정리합니다.
    """

    def __init__(self, clock: Callable[[], float] = time.time, purge_every: int = 1000):
        if purge_every <= 0:
            raise ValueError("purge_every must be positive")
        self._clock = clock
        self._lock = threading.Lock()
        self.purge_every = purge_every
        self._writes = 0
        # key -> (value, expires_at | None)
        self._values: Dict[str, Tuple[str, Optional[float]]] = {}
        # key -> (count, window_reset_at)
        self._counters: Dict[str, Tuple[int, float]] = {}

    def _alive(self, key: str, now: float) -> Optional[str]:
        entry = self._values.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and now >= expires_at:
            del self._values[key]
            return None
        return value

    def _purge(self, now: float) -> int:
        expired = [k for k, (_, exp) in self._values.items() if exp is not None and now >= exp]
        for key in expired:
            del self._values[key]
        stale = [k for k, (_, reset_at) in self._counters.items() if now >= reset_at]
        for key in stale:
            del self._counters[key]
        return len(expired) + len(stale)

    def _after_write(self, now: float) -> None:
        self._writes += 1
        if self._writes >= self.purge_every:
            self._writes = 0
            purged = self._purge(now)
            if purged:
                logger.debug(f"[STORE] Purged {purged} expired in-memory entries")

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._alive(key, self._clock())

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        with self._lock:
            now = self._clock()
            expires_at = now + ttl_seconds if ttl_seconds else None
            self._values[key] = (value, expires_at)
            self._after_write(now)

    def delete(self, key: str) -> bool:
        with self._lock:
            removed_value = self._values.pop(key, None) is not None
            removed_counter = self._counters.pop(key, None) is not None
            return removed_value or removed_counter

    def incr_window(self, key: str, window_seconds: int) -> Tuple[int, int]:
        with self._lock:
            now = self._clock()
            entry = self._counters.get(key)
            if entry is None or now >= entry[1]:
                # 새 윈도우
                entry = (1, now + window_seconds)
            else:
                entry = (entry[0] + 1, entry[1])
            self._counters[key] = entry
            self._after_write(now)
            ttl = max(0, int(entry[1] - now + 0.999))
            return entry[0], ttl

    def ping(self) -> bool:
        return True

    def cleanup(self) -> int:
        """만료 항목 정리 (정리된 개수 반환)"""
        with self._lock:
            self._writes = 0
            return self._purge(self._clock())

    def size(self) -> int:
        """보관 중인 값 + 카운터 수"""
        with self._lock:
            return len(self._values) + len(self._counters)
