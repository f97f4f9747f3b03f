"""상태 폴러 유닛 테스트"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from eventvista.core.exceptions import JobNotFoundException, StatusPollException
from eventvista.engine import HttpStatusClient, PollerState, StatusPoller
from tests.fixtures import FakeClock


class ScriptedStatus:
    """호출마다 준비된 응답(또는 예외)을 순서대로 반환"""

    def __init__(self, *responses, clock=None, step=0.0):
        self.responses = list(responses)
        self.calls = 0
        self.clock = clock
        self.step = step

    async def __call__(self, job_id):
        self.calls += 1
        if self.clock is not None:
            self.clock.advance(self.step)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


RUNNING = {"success": True, "status": "running", "jobId": "j"}
COMPLETED = {"success": True, "status": "completed", "jobId": "j", "events": [{"id": 1}], "total": 1}
FAILED = {"success": False, "status": "failed", "jobId": "j", "error": "All platforms failed: luma"}


class TestPolling:
    """종료 상태까지 폴링"""

    async def test_checks_immediately(self):
        fetch = ScriptedStatus(COMPLETED)
        outcome = await StatusPoller(fetch, interval=10).poll("j")
        assert outcome.is_success
        assert outcome.events == [{"id": 1}]
        assert outcome.total == 1
        assert fetch.calls == 1

    async def test_polls_until_completed(self):
        fetch = ScriptedStatus(RUNNING, RUNNING, COMPLETED)
        poller = StatusPoller(fetch, interval=0.01)
        outcome = await poller.poll("j")
        assert outcome.status == "completed"
        assert poller.queries == 3
        assert poller.state == PollerState.COMPLETED

    async def test_failed_job(self):
        outcome = await StatusPoller(ScriptedStatus(RUNNING, FAILED), interval=0.01).poll("j")
        assert outcome.status == "failed"
        assert outcome.error == "All platforms failed: luma"

    async def test_job_not_found(self):
        outcome = await StatusPoller(ScriptedStatus(JobNotFoundException("j")), interval=0.01).poll("j")
        assert outcome.status == "failed"
        assert outcome.error == "Job not found"

    async def test_total_defaults_to_event_count(self):
        payload = {"status": "completed", "events": [{"id": 1}, {"id": 2}]}
        outcome = await StatusPoller(ScriptedStatus(payload)).poll("j")
        assert outcome.total == 2


class TestErrors:
    async def test_consecutive_errors_fail(self):
        fetch = ScriptedStatus(StatusPollException("j", "ConnectionError"))
        poller = StatusPoller(fetch, interval=0.01, max_consecutive_errors=3)
        outcome = await poller.poll("j")
        assert outcome.error == "Unable to reach status endpoint"
        assert fetch.calls == 3

    async def test_error_counter_resets_on_success(self):
        error = StatusPollException("j", "HTTP 502")
        fetch = ScriptedStatus(error, error, RUNNING, error, error, COMPLETED)
        outcome = await StatusPoller(fetch, interval=0.01, max_consecutive_errors=3).poll("j")
        assert outcome.status == "completed"

    async def test_timeout(self):
        clock = FakeClock()
        fetch = ScriptedStatus(RUNNING, clock=clock, step=10)
        poller = StatusPoller(fetch, interval=0.01, timeout=25, clock=clock)
        outcome = await poller.poll("j")
        assert outcome.error == "Polling timed out"
        assert fetch.calls == 3


class TestCancellation:
    """취소 토큰"""

    async def test_cancel_stops_polling(self):
        fetch = ScriptedStatus(RUNNING)
        poller = StatusPoller(fetch, interval=0.05)
        task = asyncio.create_task(poller.poll("j"))
        await asyncio.sleep(0.01)
        poller.cancel()
        assert await asyncio.wait_for(task, timeout=1) is None
        calls = fetch.calls
        await asyncio.sleep(0.1)
        assert fetch.calls == calls
        assert poller.state == PollerState.CANCELLED

    async def test_response_after_cancel_discarded(self):
        poller = None

        async def fetch(job_id):
            poller.cancel()
            return COMPLETED

        poller = StatusPoller(fetch, interval=0.01)
        assert await poller.poll("j") is None

    async def test_cancel_before_start(self):
        fetch = ScriptedStatus(COMPLETED)
        poller = StatusPoller(fetch)
        poller.cancel()
        assert await poller.poll("j") is None
        assert fetch.calls == 0

    async def test_cancel_after_completion_ignored(self):
        poller = StatusPoller(ScriptedStatus(COMPLETED))
        await poller.poll("j")
        poller.cancel()
        assert poller.state == PollerState.COMPLETED

    async def test_single_use(self):
        poller = StatusPoller(ScriptedStatus(COMPLETED))
        await poller.poll("j")
        with pytest.raises(RuntimeError):
            await poller.poll("j")

    def test_invalid_interval(self):
        with pytest.raises(ValueError):
            StatusPoller(ScriptedStatus(RUNNING), interval=0)


class TestHttpStatusClient:
    """HTTP 응답 → 폴러 예외 매핑"""

    def _client(self, status_code=200, payload=None, error=None):
        client = HttpStatusClient("http://localhost:8000/")
        response = MagicMock(status_code=status_code)
        response.json.return_value = payload
        session = MagicMock()
        session.get = AsyncMock(return_value=response, side_effect=error)
        session.close = AsyncMock()
        client._session = session
        return client, session

    async def test_fetch_ok(self):
        client, session = self._client(payload=RUNNING)
        assert await client.fetch("j") == RUNNING
        args, kwargs = session.get.call_args
        assert args[0] == "http://localhost:8000/api/events/search/status"
        assert kwargs["params"] == {"jobId": "j"}

    async def test_fetch_404(self):
        client, _ = self._client(status_code=404)
        with pytest.raises(JobNotFoundException):
            await client.fetch("j")

    async def test_fetch_server_error(self):
        client, _ = self._client(status_code=503)
        with pytest.raises(StatusPollException):
            await client.fetch("j")

    async def test_fetch_network_error(self):
        client, _ = self._client(error=ConnectionError("refused"))
        with pytest.raises(StatusPollException):
            await client.fetch("j")

    async def test_close(self):
        client, session = self._client()
        await client.close()
        session.close.assert_awaited_once()
        await client.close()
