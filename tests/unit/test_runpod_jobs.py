"""Unit tests for the RunPod submit/poll state machine."""

import httpx
import pytest

from models.generation import JobState, PollPolicy
from services.runpod_jobs import RunPodJobError, RunPodJobRunner

FAST = PollPolicy(max_attempts=3, interval_seconds=0)


def _runner(handler) -> RunPodJobRunner:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RunPodJobRunner(api_key="test-key", client=client, api_base="https://rp.test/v2")


def _status_handler(statuses: list):
    """Submit returns job-1; each status call pops the next scripted response."""
    calls = {"status": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer test-key"
        if request.method == "POST":
            assert request.url.path == "/v2/ep/run"
            return httpx.Response(200, json={"id": "job-1"})
        assert request.url.path == "/v2/ep/status/job-1"
        calls["status"] += 1
        item = statuses.pop(0) if statuses else {"status": "IN_PROGRESS"}
        if isinstance(item, int):
            return httpx.Response(item, text="upstream error")
        return httpx.Response(200, json=item)

    return handler, calls


@pytest.mark.unit
class TestRunPodJobRunner:
    @pytest.mark.asyncio
    async def test_run_until_completed(self):
        handler, calls = _status_handler(
            [{"status": "IN_QUEUE"}, {"status": "COMPLETED", "output": {"url": "https://x/y"}}]
        )
        runner = _runner(handler)
        try:
            job = await runner.submit("ep", {"input": {}})
            assert job.state == JobState.SUBMITTED

            output = await runner.poll(job, FAST)

            assert output == {"url": "https://x/y"}
            assert job.state == JobState.SUCCEEDED
            assert job.attempts == 2
            assert calls["status"] == 2
        finally:
            await runner.close()

    @pytest.mark.asyncio
    async def test_failed_job_raises_with_state(self):
        handler, _ = _status_handler([{"status": "FAILED", "error": "CUDA OOM"}])
        runner = _runner(handler)
        try:
            with pytest.raises(RunPodJobError) as exc_info:
                await runner.run("ep", {"input": {}}, FAST)
            assert exc_info.value.state == JobState.FAILED
            assert exc_info.value.job.error == "CUDA OOM"
        finally:
            await runner.close()

    @pytest.mark.asyncio
    async def test_attempt_budget_exhausted_times_out(self):
        handler, calls = _status_handler([])
        runner = _runner(handler)
        try:
            job = await runner.submit("ep", {"input": {}})
            with pytest.raises(RunPodJobError) as exc_info:
                await runner.poll(job, FAST)
            assert exc_info.value.state == JobState.TIMED_OUT
            assert job.state == JobState.TIMED_OUT
            assert calls["status"] == FAST.max_attempts
        finally:
            await runner.close()

    @pytest.mark.asyncio
    async def test_transient_status_errors_consume_attempts(self):
        handler, _ = _status_handler([503, {"status": "COMPLETED", "output": "ok"}])
        runner = _runner(handler)
        try:
            assert await runner.run("ep", {"input": {}}, FAST) == "ok"
        finally:
            await runner.close()

    @pytest.mark.asyncio
    async def test_submit_rejected(self):
        runner = _runner(lambda request: httpx.Response(401, text="bad key"))
        try:
            with pytest.raises(RunPodJobError, match="401"):
                await runner.submit("ep", {"input": {}})
        finally:
            await runner.close()

    @pytest.mark.asyncio
    async def test_submit_requires_configuration(self):
        runner = RunPodJobRunner(api_key="")
        try:
            assert not runner.is_configured()
            with pytest.raises(RunPodJobError, match="RUNPOD_API_KEY"):
                await runner.submit("ep", {})
        finally:
            await runner.close()

    @pytest.mark.asyncio
    async def test_finished_job_is_not_polled_again(self):
        handler, calls = _status_handler([{"status": "COMPLETED", "output": {"url": "https://x/y"}}])
        runner = _runner(handler)
        try:
            job = await runner.submit("ep", {"input": {}})
            await runner.poll(job, FAST)

            assert await runner.poll(job, FAST) == {"url": "https://x/y"}
            assert calls["status"] == 1
        finally:
            await runner.close()

    @pytest.mark.asyncio
    async def test_failed_job_stays_failed(self):
        handler, calls = _status_handler([{"status": "FAILED", "error": "CUDA OOM"}])
        runner = _runner(handler)
        try:
            job = await runner.submit("ep", {"input": {}})
            with pytest.raises(RunPodJobError):
                await runner.poll(job, FAST)

            with pytest.raises(RunPodJobError, match="CUDA OOM") as exc_info:
                await runner.poll(job, FAST)
            assert exc_info.value.state == JobState.FAILED
            assert calls["status"] == 1
        finally:
            await runner.close()
