"""잡 큐 유닛 테스트 (in-memory 계약 + Redis 키 사용/오류 처리)"""
import json
from unittest.mock import MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from eventvista.core.exceptions import QueueException, QueuePublishException
from eventvista.services import InMemoryJobQueue, NackResult, QueueMessage, RedisJobQueue
from eventvista.services.impl import job_queue as job_queue_module


def _message(job_id: str = "search-1-aaaa") -> QueueMessage:
    return QueueMessage(job_id=job_id, query="react", platforms=("luma", "eventbrite"), city="San Francisco")


def _raw(job_id: str = "search-1-aaaa", attempt: int = 0) -> str:
    return json.dumps({"message": _message(job_id).to_dict(), "attempt": attempt})


class TestQueueMessage:
    def test_wire_format_is_camel_case(self):
        assert _message().to_dict() == {
            "jobId": "search-1-aaaa",
            "query": "react",
            "platforms": ["luma", "eventbrite"],
            "city": "San Francisco",
        }

    def test_from_dict_restores_message(self):
        assert QueueMessage.from_dict(_message().to_dict()) == _message()


class TestInMemoryJobQueue:
    """at-least-once 큐 계약"""

    def test_publish_then_claim(self, queue):
        assert queue.publish(_message()) is True
        delivery = queue.claim()
        assert delivery.message == _message()
        assert delivery.attempt == 0
        assert queue.claim() is None

    def test_duplicate_publish_ignored(self, queue):
        """같은 잡은 한 번만 발행"""
        assert queue.publish(_message()) is True
        assert queue.publish(_message()) is False
        assert queue.stats()["pending"] == 1

    def test_fifo_order(self, queue):
        queue.publish(_message("a"))
        queue.publish(_message("b"))
        assert queue.claim().message.job_id == "a"
        assert queue.claim().message.job_id == "b"

    def test_initial_delay(self, clock):
        queue = InMemoryJobQueue(initial_delay=1.0, clock=clock)
        queue.publish(_message())
        assert queue.claim() is None
        clock.advance(1.0)
        assert queue.claim() is not None

    def test_ack_removes_from_processing(self, queue):
        queue.publish(_message())
        delivery = queue.claim()
        assert queue.stats()["processing"] == 1
        queue.ack(delivery)
        assert queue.stats() == {"pending": 0, "processing": 0, "delayed": 0, "dead": 0}

    def test_nack_retries_with_exponential_backoff(self, queue, clock):
        queue.publish(_message())

        first = queue.claim()
        assert queue.nack(first, "boom") == NackResult.RETRY
        assert queue.claim() is None
        clock.advance(2.0)
        second = queue.claim()
        assert second.attempt == 1
        assert second.last_error == "boom"

        assert queue.nack(second, "boom again") == NackResult.RETRY
        clock.advance(3)
        assert queue.claim() is None
        clock.advance(1)
        third = queue.claim()
        assert third.attempt == 2

    def test_nack_exhausted_goes_to_dead(self, queue, clock):
        """3번째 시도 실패 후에는 재시도 없음"""
        queue.publish(_message())
        for _ in range(2):
            assert queue.nack(queue.claim(), "boom") == NackResult.RETRY
            clock.advance(10)
        last = queue.claim()
        assert last.attempt == 2
        assert queue.nack(last, "boom") == NackResult.EXHAUSTED
        assert queue.stats()["dead"] == 1
        clock.advance(100)
        assert queue.claim() is None

    def test_requeue_stalled(self, queue, clock):
        queue.publish(_message())
        queue.claim()
        clock.advance(600)
        assert queue.requeue_stalled(600).requeued == 0
        clock.advance(1)
        report = queue.requeue_stalled(600)
        assert report.requeued == 1
        redelivered = queue.claim()
        assert redelivered.attempt == 1

    def test_requeue_stalled_exhausted(self, clock):
        queue = InMemoryJobQueue(max_attempts=1, initial_delay=0, clock=clock)
        queue.publish(_message())
        queue.claim()
        clock.advance(601)
        report = queue.requeue_stalled(600)
        assert report.requeued == 0
        assert report.exhausted == [_message()]

    def test_fail_publish(self, queue):
        queue.fail_publish = True
        with pytest.raises(QueuePublishException):
            queue.publish(_message())
        assert queue.stats()["pending"] == 0


class TestInMemoryReclaim:
    """스위퍼가 회수한 전달에 대한 늦은 nack/ack"""

    def test_late_nack_does_not_schedule_second_retry(self, queue, clock):
        queue.publish(_message())
        slow = queue.claim()
        clock.advance(700)
        assert queue.requeue_stalled(600).requeued == 1

        assert queue.nack(slow, "boom") == NackResult.NOT_OWNED
        assert queue.stats() == {"pending": 1, "processing": 0, "delayed": 0, "dead": 0}

    def test_late_nack_after_exhaustion_is_not_owned(self, clock):
        queue = InMemoryJobQueue(max_attempts=1, initial_delay=0, clock=clock)
        queue.publish(_message())
        slow = queue.claim()
        clock.advance(700)
        assert queue.requeue_stalled(600).exhausted == [_message()]

        assert queue.nack(slow, "boom") == NackResult.NOT_OWNED
        assert queue.stats()["dead"] == 1

    def test_late_ack_leaves_redelivery(self, queue, clock):
        queue.publish(_message())
        slow = queue.claim()
        clock.advance(700)
        queue.requeue_stalled(600)

        queue.ack(slow)

        assert queue.claim().attempt == 1


class TestInMemoryBounds:
    """장기 실행 시 메모리 상한"""

    def test_published_marker_expires(self, queue, clock):
        queue.publish(_message())
        queue.ack(queue.claim())
        assert queue.publish(_message()) is False
        clock.advance(job_queue_module.PUBLISHED_MARKER_TTL)
        assert queue.publish(_message()) is True

    def test_published_markers_capped(self, queue, monkeypatch):
        monkeypatch.setattr(job_queue_module, "PUBLISHED_MEMORY_LIMIT", 2)
        for job_id in ("a", "b", "c"):
            queue.publish(_message(job_id))
        # 가장 오래된 마커부터 밀려남
        assert queue.publish(_message("a")) is True
        assert queue.publish(_message("c")) is False

    def test_dead_letters_capped(self, clock, monkeypatch):
        monkeypatch.setattr(job_queue_module, "DEAD_LETTER_LIMIT", 2)
        queue = InMemoryJobQueue(max_attempts=1, initial_delay=0, clock=clock)
        for job_id in ("a", "b", "c"):
            queue.publish(_message(job_id))
            assert queue.nack(queue.claim(), "boom") == NackResult.EXHAUSTED
        assert queue.stats()["dead"] == 2


class TestRedisJobQueue:
    """Redis 큐 - 키 사용 및 오류 변환"""

    KEYS = [
        "eventScraping:processing",
        "eventScraping:claims",
        "eventScraping:pending",
        "eventScraping:delayed",
        "eventScraping:dead",
    ]

    def _queue(self, clock, moved=1):
        client = MagicMock()
        script = MagicMock(return_value=moved)
        client.register_script.return_value = script
        queue = RedisJobQueue(client, "eventScraping", initial_delay=0, clock=clock)
        return queue, client, script

    def _claimed(self, queue, client, attempt=0):
        client.zrangebyscore.return_value = []
        client.lmove.return_value = _raw(attempt=attempt)
        return queue.claim()

    def test_publish_sets_marker_and_pushes(self, clock):
        queue, client, _ = self._queue(clock)
        client.set.return_value = True
        assert queue.publish(_message()) is True
        client.set.assert_called_once_with(
            "eventScraping:published:search-1-aaaa", "1", nx=True, ex=7 * 24 * 3600
        )
        key, raw = client.lpush.call_args[0]
        assert key == "eventScraping:pending"
        assert json.loads(raw)["message"]["jobId"] == "search-1-aaaa"

    def test_publish_duplicate_skipped(self, clock):
        queue, client, _ = self._queue(clock)
        client.set.return_value = None
        assert queue.publish(_message()) is False
        client.lpush.assert_not_called()

    def test_publish_delay_uses_sorted_set(self, clock):
        queue, client, _ = self._queue(clock)
        client.set.return_value = True
        queue.publish(_message(), delay=5)
        (key, mapping), _ = client.zadd.call_args
        assert key == "eventScraping:delayed"
        assert list(mapping.values()) == [clock() + 5]

    def test_publish_redis_error(self, clock):
        """브로커 장애는 QueuePublishException"""
        queue, client, _ = self._queue(clock)
        client.set.side_effect = RedisConnectionError("down")
        with pytest.raises(QueuePublishException) as exc_info:
            queue.publish(_message())
        assert exc_info.value.details["job_id"] == "search-1-aaaa"

    def test_claim_empty(self, clock):
        queue, client, _ = self._queue(clock)
        client.zrangebyscore.return_value = []
        client.lmove.return_value = None
        assert queue.claim() is None

    def test_claim_records_claim_time(self, clock):
        queue, client, _ = self._queue(clock)
        delivery = self._claimed(queue, client)
        assert delivery.message == _message()
        client.lmove.assert_called_once_with(
            "eventScraping:pending", "eventScraping:processing", "RIGHT", "LEFT"
        )
        client.hset.assert_called_once_with("eventScraping:claims", delivery.raw, str(clock()))

    def test_claim_malformed_goes_to_dead(self, clock):
        queue, client, script = self._queue(clock)
        client.zrangebyscore.return_value = []
        client.lmove.return_value = "not-json"
        assert queue.claim() is None
        args = script.call_args.kwargs["args"]
        assert args[:3] == ["not-json", "dead", "not-json"]

    def test_claim_redis_error(self, clock):
        queue, client, _ = self._queue(clock)
        client.zrangebyscore.side_effect = RedisConnectionError("down")
        with pytest.raises(QueueException):
            queue.claim()

    def test_promote_due_only_moves_won_entries(self, clock):
        """동시에 승격하는 다른 워커가 zrem에 이기면 push하지 않음"""
        queue, client, _ = self._queue(clock)
        client.zrangebyscore.return_value = ["a", "b"]
        client.zrem.side_effect = [1, 0]
        client.lmove.return_value = None

        assert queue.claim() is None

        client.zrangebyscore.assert_called_once_with("eventScraping:delayed", "-inf", clock())
        client.lpush.assert_called_once_with("eventScraping:pending", "a")

    def test_ack_removes_claim(self, clock):
        queue, client, script = self._queue(clock)
        delivery = self._claimed(queue, client)

        queue.ack(delivery)

        script.assert_called_once_with(
            keys=self.KEYS,
            args=[delivery.raw, "none", "", 0.0, job_queue_module.DEAD_LETTER_LIMIT],
        )

    def test_ack_redis_error(self, clock):
        queue, client, script = self._queue(clock)
        delivery = self._claimed(queue, client)
        script.side_effect = RedisConnectionError("down")
        with pytest.raises(QueueException) as exc_info:
            queue.ack(delivery)
        assert exc_info.value.error_code == "QUEUE_ACK_ERROR"

    def test_nack_schedules_backoff(self, clock):
        queue, client, script = self._queue(clock)
        delivery = self._claimed(queue, client, attempt=1)

        assert queue.nack(delivery, "boom") == NackResult.RETRY

        raw, mode, payload, score, _ = script.call_args.kwargs["args"]
        assert raw == delivery.raw
        assert mode == "delayed"
        assert score == clock() + 4.0
        assert json.loads(payload)["attempt"] == 2
        assert json.loads(payload)["error"] == "boom"

    def test_nack_exhausted_moves_to_dead(self, clock):
        queue, client, script = self._queue(clock)
        delivery = self._claimed(queue, client, attempt=2)

        assert queue.nack(delivery, "boom") == NackResult.EXHAUSTED

        _, mode, payload, _, limit = script.call_args.kwargs["args"]
        assert mode == "dead"
        assert json.loads(payload)["attempt"] == 2
        assert limit == job_queue_module.DEAD_LETTER_LIMIT

    def test_nack_not_owned(self, clock):
        """스크립트가 processing에서 지우지 못하면 아무 것도 예약하지 않음"""
        queue, client, script = self._queue(clock)
        delivery = self._claimed(queue, client)
        script.return_value = 0

        assert queue.nack(delivery, "boom") == NackResult.NOT_OWNED

    def test_nack_redis_error(self, clock):
        queue, client, script = self._queue(clock)
        delivery = self._claimed(queue, client)
        script.side_effect = RedisConnectionError("down")
        with pytest.raises(QueueException) as exc_info:
            queue.nack(delivery, "boom")
        assert exc_info.value.error_code == "QUEUE_NACK_ERROR"

    def test_requeue_stalled_only_expired_claims(self, clock):
        queue, client, script = self._queue(clock)
        stale, fresh = _raw("a"), _raw("b")
        client.lrange.return_value = [stale, fresh]
        client.hgetall.return_value = {stale: str(clock() - 700), fresh: str(clock() - 10)}

        report = queue.requeue_stalled(600)

        assert report.requeued == 1
        script.assert_called_once()
        raw, mode, payload, _, _ = script.call_args.kwargs["args"]
        assert (raw, mode) == (stale, "pending")
        assert json.loads(payload)["attempt"] == 1
        assert json.loads(payload)["error"] == "Visibility timeout exceeded"

    def test_requeue_stalled_exhausted(self, clock):
        queue, client, script = self._queue(clock)
        stale = _raw(attempt=2)
        client.lrange.return_value = [stale]
        client.hgetall.return_value = {stale: str(clock() - 700)}

        report = queue.requeue_stalled(600)

        assert report.requeued == 0
        assert report.exhausted == [_message()]
        assert script.call_args.kwargs["args"][:3] == [stale, "dead", stale]

    def test_requeue_stalled_lost_race(self, clock):
        """워커가 먼저 ack/nack한 전달은 세지 않음"""
        queue, client, _ = self._queue(clock, moved=0)
        stale = _raw()
        client.lrange.return_value = [stale]
        client.hgetall.return_value = {stale: str(clock() - 700)}

        report = queue.requeue_stalled(600)

        assert report.requeued == 0
        assert report.exhausted == []

    def test_stats(self, clock):
        queue, client, _ = self._queue(clock)
        client.llen.side_effect = [2, 1, 0]
        client.zcard.return_value = 3
        assert queue.stats() == {"pending": 2, "processing": 1, "delayed": 3, "dead": 0}
