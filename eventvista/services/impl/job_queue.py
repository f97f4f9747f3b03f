"""잡 큐 - 스크래핑 잡 메시지의 at-least-once 전달

Redis 키 구성 (`<q>` = 큐 이름):
    <q>:pending              대기 리스트 (LPUSH / 오른쪽에서 꺼냄)
    <q>:processing           처리 중 리스트 (LMOVE로 원자적 이동)
    <q>:claims               처리 중 메시지 → 클레임 시각 해시
    <q>:delayed              지연/재시도 메시지 sorted set (score = 실행 시각)
    <q>:dead                 재시도 소진 메시지 (최근 DEAD_LETTER_LIMIT건)
    <q>:published:<job_id>   잡당 한 번만 발행하기 위한 마커

처리 중 메시지를 다른 곳으로 옮기는 작업(ack/nack/재전달)은 모두 같은 Lua 스크립트로
수행합니다. processing에서 실제로 제거한 쪽만 다음 위치로 옮길 수 있으므로, 스위퍼가
이미 회수한 전달을 워커가 다시 nack해도 재시도가 두 번 예약되지 않습니다.
"""
import json
import threading
import time
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Protocol, Tuple

from redis import Redis
from redis.exceptions import RedisError

from eventvista.core.exceptions import QueueException, QueuePublishException
from eventvista.core.logging import logger

PUBLISHED_MARKER_TTL = 7 * 24 * 3600
PUBLISHED_MEMORY_LIMIT = 10_000
DEAD_LETTER_LIMIT = 1000

# KEYS: processing, claims, pending, delayed, dead
# ARGV: raw, mode(none|pending|delayed|dead), payload, score, dead_limit
_MOVE_CLAIM_SCRIPT = """
local removed = redis.call('LREM', KEYS[1], 1, ARGV[1])
redis.call('HDEL', KEYS[2], ARGV[1])
if removed == 0 then
    return 0
end
local mode = ARGV[2]
if mode == 'pending' then
    redis.call('LPUSH', KEYS[3], ARGV[3])
elseif mode == 'delayed' then
    redis.call('ZADD', KEYS[4], ARGV[4], ARGV[3])
elseif mode == 'dead' then
    redis.call('LPUSH', KEYS[5], ARGV[3])
    redis.call('LTRIM', KEYS[5], 0, tonumber(ARGV[5]) - 1)
end
return removed
"""


class NackResult(str, Enum):
    """nack 결과"""

    RETRY = "retry"  # 백오프 후 재시도 예약
    EXHAUSTED = "exhausted"  # 재시도 소진, dead로 이동
    NOT_OWNED = "not_owned"  # 이미 회수된 전달 (스위퍼가 재전달함)


@dataclass(frozen=True)
class QueueMessage:
    """큐 메시지 본문 (잡 ID + 스크래핑 파라미터)"""

    job_id: str
    query: str
    platforms: Tuple[str, ...]
    city: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jobId": self.job_id,
            "query": self.query,
            "platforms": list(self.platforms),
            "city": self.city,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueueMessage":
        return cls(
            job_id=str(data["jobId"]),
            query=str(data["query"]),
            platforms=tuple(data.get("platforms") or ()),
            city=str(data.get("city") or ""),
        )


@dataclass
class Delivery:
    """워커에 전달된 메시지 (attempt는 0부터)"""

    message: QueueMessage
    attempt: int
    raw: str
    last_error: Optional[str] = None


@dataclass
class RequeueReport:
    """requeue_stalled 결과"""

    requeued: int = 0
    exhausted: List[QueueMessage] = field(default_factory=list)


def _encode(message: QueueMessage, attempt: int, error: Optional[str] = None) -> str:
    payload: Dict[str, Any] = {"message": message.to_dict(), "attempt": attempt}
    if error:
        payload["error"] = error[:500]
    return json.dumps(payload, ensure_ascii=False, sort_keys=True)


def _decode(raw: str) -> Delivery:
    try:
        payload = json.loads(raw)
        return Delivery(
            message=QueueMessage.from_dict(payload["message"]),
            attempt=int(payload.get("attempt", 0)),
            raw=raw,
            last_error=payload.get("error"),
        )
    except (ValueError, KeyError, TypeError) as e:
        raise QueueException(
            "Malformed queue message",
            "QUEUE_MESSAGE_MALFORMED",
            {"reason": type(e).__name__},
        ) from e


class JobQueue(Protocol):
    """잡 큐 인터페이스"""

    max_attempts: int

    def publish(self, message: QueueMessage, delay: Optional[float] = None) -> bool:
        ...

    def claim(self) -> Optional[Delivery]:
        ...

    def ack(self, delivery: Delivery) -> None:
        ...

    def nack(self, delivery: Delivery, error: str) -> NackResult:
        ...

    def requeue_stalled(self, visibility_timeout: float) -> RequeueReport:
        ...

    def stats(self) -> Dict[str, int]:
        ...


class _RetryPolicy:
    """재시도 정책 (지수 백오프)"""

    def __init__(self, max_attempts: int, backoff_base: float, initial_delay: float):
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.initial_delay = initial_delay

    def can_retry(self, attempt: int) -> bool:
        return attempt + 1 < self.max_attempts

    def backoff(self, attempt: int) -> float:
        return self.backoff_base * (2 ** attempt)


def _log_nack(job_id: str, result: NackResult, attempt: int, max_attempts: int, delay: float) -> None:
    if result == NackResult.RETRY:
        logger.warning(f"[QUEUE] Job {job_id} failed (attempt {attempt + 1}/{max_attempts}), retry in {delay:.1f}s")
    elif result == NackResult.EXHAUSTED:
        logger.error(f"[QUEUE] Job {job_id} exhausted {max_attempts} attempts")
    else:
        logger.warning(f"[QUEUE] Nack ignored for job {job_id}: delivery already reclaimed")


class RedisJobQueue(_RetryPolicy):
    """Redis 리스트 기반 신뢰성 큐"""

    def __init__(
        self,
        redis_client: Redis,
        name: str,
        max_attempts: int = 3,
        backoff_base: float = 2.0,
        initial_delay: float = 1.0,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(max_attempts, backoff_base, initial_delay)
        self.redis_client = redis_client
        self.name = name
        self._clock = clock
        self.pending_key = f"{name}:pending"
        self.processing_key = f"{name}:processing"
        self.claims_key = f"{name}:claims"
        self.delayed_key = f"{name}:delayed"
        self.dead_key = f"{name}:dead"
        self._move_claim_script = redis_client.register_script(_MOVE_CLAIM_SCRIPT)

    @classmethod
    def from_url(cls, redis_url: str, name: str, **kwargs: Any) -> "RedisJobQueue":
        client = Redis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
        )
        return cls(client, name, **kwargs)

    def _marker_key(self, job_id: str) -> str:
        return f"{self.name}:published:{job_id}"

    def publish(self, message: QueueMessage, delay: Optional[float] = None) -> bool:
        """메시지 발행

        Returns:
            True: 발행됨 / False: 이미 발행된 잡 (중복 무시)

        Raises:
            QueuePublishException: Redis가 쓰기를 거부한 경우
        """
        delay = self.initial_delay if delay is None else delay
        raw = _encode(message, 0)
        try:
            if not self.redis_client.set(self._marker_key(message.job_id), "1", nx=True, ex=PUBLISHED_MARKER_TTL):
                logger.warning(f"[QUEUE] Job already published, skipping: {message.job_id}")
                return False

            if delay > 0:
                self.redis_client.zadd(self.delayed_key, {raw: self._clock() + delay})
            else:
                self.redis_client.lpush(self.pending_key, raw)
        except RedisError as e:
            logger.error(f"[QUEUE] Publish failed: job={message.job_id}, error={type(e).__name__}")
            raise QueuePublishException(message.job_id, type(e).__name__) from e

        logger.info(f"[QUEUE] Published job {message.job_id} (delay={delay}s)")
        return True

    def _promote_due(self) -> int:
        """실행 시각이 된 지연 메시지를 대기 리스트로 이동"""
        due = self.redis_client.zrangebyscore(self.delayed_key, "-inf", self._clock())
        promoted = 0
        for raw in due:
            # 여러 워커가 동시에 승격해도 zrem 성공한 쪽만 push
            if self.redis_client.zrem(self.delayed_key, raw):
                self.redis_client.lpush(self.pending_key, raw)
                promoted += 1
        return promoted

    def claim(self) -> Optional[Delivery]:
        """메시지 하나를 처리 중으로 옮겨 반환 (없으면 None, 블로킹 없음)"""
        try:
            self._promote_due()
            raw = self.redis_client.lmove(self.pending_key, self.processing_key, "RIGHT", "LEFT")
            if raw is None:
                return None
            self.redis_client.hset(self.claims_key, raw, str(self._clock()))
        except RedisError as e:
            raise QueueException("Queue claim failed", "QUEUE_CLAIM_ERROR", {"reason": type(e).__name__}) from e

        try:
            return _decode(raw)
        except QueueException:
            logger.error("[QUEUE] Malformed message moved to dead list")
            self._move_claim(raw, "dead", raw)
            return None

    def _move_claim(self, raw: str, mode: str = "none", payload: str = "", score: float = 0.0) -> bool:
        """processing에서 raw를 제거하고, 제거한 경우에만 mode 위치로 payload 이동"""
        removed = self._move_claim_script(
            keys=[self.processing_key, self.claims_key, self.pending_key, self.delayed_key, self.dead_key],
            args=[raw, mode, payload, score, DEAD_LETTER_LIMIT],
        )
        return bool(removed)

    def ack(self, delivery: Delivery) -> None:
        try:
            self._move_claim(delivery.raw)
        except RedisError as e:
            raise QueueException("Queue ack failed", "QUEUE_ACK_ERROR", {"reason": type(e).__name__}) from e

    def nack(self, delivery: Delivery, error: str) -> NackResult:
        """처리 실패 보고 (재시도 예약 / dead 이동 / 이미 회수됨)"""
        delay = 0.0
        try:
            if self.can_retry(delivery.attempt):
                delay = self.backoff(delivery.attempt)
                retry_raw = _encode(delivery.message, delivery.attempt + 1, error)
                moved = self._move_claim(delivery.raw, "delayed", retry_raw, self._clock() + delay)
                result = NackResult.RETRY if moved else NackResult.NOT_OWNED
            else:
                dead_raw = _encode(delivery.message, delivery.attempt, error)
                moved = self._move_claim(delivery.raw, "dead", dead_raw)
                result = NackResult.EXHAUSTED if moved else NackResult.NOT_OWNED
        except RedisError as e:
            raise QueueException("Queue nack failed", "QUEUE_NACK_ERROR", {"reason": type(e).__name__}) from e

        _log_nack(delivery.message.job_id, result, delivery.attempt, self.max_attempts, delay)
        return result

    def requeue_stalled(self, visibility_timeout: float) -> RequeueReport:
        """클레임 후 visibility_timeout이 지난 메시지 재전달 (워커 크래시 복구)"""
        report = RequeueReport()
        now = self._clock()
        try:
            claims = self.redis_client.hgetall(self.claims_key)
            for raw in self.redis_client.lrange(self.processing_key, 0, -1):
                claimed_at = float(claims.get(raw, 0) or 0)
                if now - claimed_at <= visibility_timeout:
                    continue
                try:
                    delivery = _decode(raw)
                except QueueException:
                    self._move_claim(raw, "dead", raw)
                    continue

                if self.can_retry(delivery.attempt):
                    retry_raw = _encode(delivery.message, delivery.attempt + 1, "Visibility timeout exceeded")
                    if self._move_claim(raw, "pending", retry_raw):
                        report.requeued += 1
                elif self._move_claim(raw, "dead", raw):
                    report.exhausted.append(delivery.message)
        except RedisError as e:
            raise QueueException("Queue requeue failed", "QUEUE_REQUEUE_ERROR", {"reason": type(e).__name__}) from e

        if report.requeued or report.exhausted:
            logger.warning(f"[QUEUE] Stalled deliveries: requeued={report.requeued}, exhausted={len(report.exhausted)}")
        return report

    def stats(self) -> Dict[str, int]:
        try:
            return {
                "pending": self.redis_client.llen(self.pending_key),
                "processing": self.redis_client.llen(self.processing_key),
                "delayed": self.redis_client.zcard(self.delayed_key),
                "dead": self.redis_client.llen(self.dead_key),
            }
        except RedisError as e:
            raise QueueException("Queue stats failed", "QUEUE_STATS_ERROR", {"reason": type(e).__name__}) from e

    def ping(self) -> bool:
        try:
            return bool(self.redis_client.ping())
        except RedisError:
            return False


class InMemoryJobQueue(_RetryPolicy):
    """프로세스 내 큐 (테스트/redis_disabled 모드)"""

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_base: float = 2.0,
        initial_delay: float = 1.0,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(max_attempts, backoff_base, initial_delay)
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: Deque[str] = deque()
        self._processing: Dict[str, float] = {}
        self._delayed: List[Tuple[float, str]] = []
        self._dead: Deque[str] = deque(maxlen=DEAD_LETTER_LIMIT)
        # job_id -> 발행 시각 (발행 순서 유지, Redis 마커와 같은 TTL)
        self._published: "OrderedDict[str, float]" = OrderedDict()
        # 테스트에서 브로커 장애 재현용
        self.fail_publish = False

    def _expire_published(self, now: float) -> None:
        while self._published:
            job_id, published_at = next(iter(self._published.items()))
            if now - published_at < PUBLISHED_MARKER_TTL and len(self._published) <= PUBLISHED_MEMORY_LIMIT:
                break
            del self._published[job_id]

    def publish(self, message: QueueMessage, delay: Optional[float] = None) -> bool:
        if self.fail_publish:
            logger.error(f"[QUEUE] Publish failed: job={message.job_id}, error=BrokerUnavailable")
            raise QueuePublishException(message.job_id, "BrokerUnavailable")

        delay = self.initial_delay if delay is None else delay
        with self._lock:
            now = self._clock()
            self._expire_published(now)
            if message.job_id in self._published:
                logger.warning(f"[QUEUE] Job already published, skipping: {message.job_id}")
                return False
            self._published[message.job_id] = now
            raw = _encode(message, 0)
            if delay > 0:
                self._delayed.append((now + delay, raw))
            else:
                self._pending.appendleft(raw)

        logger.info(f"[QUEUE] Published job {message.job_id} (delay={delay}s)")
        return True

    def _promote_due(self) -> None:
        now = self._clock()
        due = sorted((item for item in self._delayed if item[0] <= now), key=lambda item: item[0])
        if not due:
            return
        self._delayed = [item for item in self._delayed if item[0] > now]
        for _, raw in due:
            self._pending.appendleft(raw)

    def claim(self) -> Optional[Delivery]:
        with self._lock:
            self._promote_due()
            if not self._pending:
                return None
            raw = self._pending.pop()
            self._processing[raw] = self._clock()
        return _decode(raw)

    def ack(self, delivery: Delivery) -> None:
        with self._lock:
            self._processing.pop(delivery.raw, None)

    def nack(self, delivery: Delivery, error: str) -> NackResult:
        delay = 0.0
        with self._lock:
            if self._processing.pop(delivery.raw, None) is None:
                result = NackResult.NOT_OWNED
            elif self.can_retry(delivery.attempt):
                delay = self.backoff(delivery.attempt)
                retry_raw = _encode(delivery.message, delivery.attempt + 1, error)
                self._delayed.append((self._clock() + delay, retry_raw))
                result = NackResult.RETRY
            else:
                self._dead.appendleft(_encode(delivery.message, delivery.attempt, error))
                result = NackResult.EXHAUSTED

        _log_nack(delivery.message.job_id, result, delivery.attempt, self.max_attempts, delay)
        return result

    def requeue_stalled(self, visibility_timeout: float) -> RequeueReport:
        report = RequeueReport()
        with self._lock:
            now = self._clock()
            stalled = [raw for raw, claimed_at in self._processing.items() if now - claimed_at > visibility_timeout]
            for raw in stalled:
                del self._processing[raw]
                delivery = _decode(raw)
                if self.can_retry(delivery.attempt):
                    self._pending.appendleft(
                        _encode(delivery.message, delivery.attempt + 1, "Visibility timeout exceeded")
                    )
                    report.requeued += 1
                else:
                    self._dead.appendleft(raw)
                    report.exhausted.append(delivery.message)

        if report.requeued or report.exhausted:
            logger.warning(f"[QUEUE] Stalled deliveries: requeued={report.requeued}, exhausted={len(report.exhausted)}")
        return report

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                "pending": len(self._pending),
                "processing": len(self._processing),
                "delayed": len(self._delayed),
                "dead": len(self._dead),
            }

    def ping(self) -> bool:
        return True
