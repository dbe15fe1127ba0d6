"""RunPod serverless job runner shared by every generation service.

Every generation back-end is a RunPod endpoint with the same contract:
POST ``/run`` returns a job id, GET ``/status/<id>`` reports
IN_QUEUE / IN_PROGRESS / COMPLETED / FAILED. A job moves through
submitted -> polling -> succeeded | failed | timed_out, and the polling budget
is a PollPolicy rather than inline loop constants.
"""

import asyncio
import logging

import httpx

from models.generation import JobState, PollPolicy, RunPodJob

logger = logging.getLogger(__name__)

RUNPOD_API_BASE = "https://api.runpod.ai/v2"

PENDING_STATUSES = ("IN_QUEUE", "IN_PROGRESS")


class RunPodJobError(Exception):
    """Raised when a RunPod job cannot be submitted, fails, or times out."""

    def __init__(self, message: str, state: JobState = JobState.FAILED, job: RunPodJob | None = None):
        super().__init__(message)
        self.state = state
        self.job = job


class RunPodJobRunner:
    """Submits jobs to RunPod endpoints and polls them to a terminal state."""

    def __init__(
        self,
        api_key: str,
        client: httpx.AsyncClient | None = None,
        api_base: str = RUNPOD_API_BASE,
    ):
        self.api_key = api_key
        self.api_base = api_base.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=60.0)

    def is_configured(self) -> bool:
        return bool(self.api_key)

    @property
    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def submit(self, endpoint_id: str, payload: dict) -> RunPodJob:
        """Submit a job and return it in the SUBMITTED state.

        Raises:
            RunPodJobError: If the endpoint rejects the request or returns no id.
        """
        if not self.is_configured():
            raise RunPodJobError("RUNPOD_API_KEY not configured")
        if not endpoint_id:
            raise RunPodJobError("RunPod endpoint id not configured")

        url = f"{self.api_base}/{endpoint_id}/run"
        try:
            response = await self.client.post(url, headers=self._headers, json=payload)
            response.raise_for_status()
        except httpx.TimeoutException:
            raise RunPodJobError(f"RunPod submit to {endpoint_id} timed out")
        except httpx.HTTPStatusError as e:
            raise RunPodJobError(
                f"RunPod submit to {endpoint_id} failed: "
                f"{e.response.status_code} {e.response.text[:200]}"
            )
        except httpx.HTTPError as e:
            raise RunPodJobError(f"RunPod submit to {endpoint_id} failed: {e}")

        try:
            job_id = response.json().get("id")
        except ValueError:
            job_id = None
        if not job_id:
            raise RunPodJobError(f"RunPod endpoint {endpoint_id} did not return a job ID")

        logger.info(f"RunPod job submitted: {job_id} (endpoint: {endpoint_id})")
        return RunPodJob(endpoint_id=endpoint_id, job_id=job_id)

    async def poll(self, job: RunPodJob, policy: PollPolicy):
        """Poll a submitted job until it reaches a terminal state.

        Non-2xx status responses and transport errors use up an attempt and
        are retried on the next tick.

        Returns:
            The job's ``output`` payload.

        Raises:
            RunPodJobError: With ``state`` FAILED or TIMED_OUT.
        """
        if job.state.is_terminal:
            if job.state == JobState.SUCCEEDED:
                return job.output
            raise RunPodJobError(
                f"RunPod job {job.job_id} already ended: {job.error or job.state.value}",
                job.state,
                job,
            )

        status_url = f"{self.api_base}/{job.endpoint_id}/status/{job.job_id}"
        job.state = JobState.POLLING

        while job.attempts < policy.max_attempts:
            await asyncio.sleep(policy.interval_seconds)
            job.attempts += 1

            try:
                response = await self.client.get(status_url, headers=self._headers)
                response.raise_for_status()
                data = response.json()
            except (httpx.HTTPError, ValueError) as e:
                logger.debug(f"RunPod job {job.job_id} status check failed: {e}")
                continue

            status = data.get("status")
            if job.attempts % 10 == 0:
                logger.debug(
                    f"RunPod job {job.job_id} poll {job.attempts}/{policy.max_attempts}: {status}"
                )

            if status == "COMPLETED":
                job.state = JobState.SUCCEEDED
                job.output = data.get("output")
                return job.output

            if status == "FAILED":
                job.state = JobState.FAILED
                job.error = str(data.get("error", "Unknown error"))
                raise RunPodJobError(
                    f"RunPod job {job.job_id} failed: {job.error}", JobState.FAILED, job
                )

            if status not in PENDING_STATUSES:
                logger.warning(f"Unexpected RunPod status for {job.job_id}: {status}")

        job.state = JobState.TIMED_OUT
        job.error = f"timed out after {policy.budget_seconds:.0f}s"
        raise RunPodJobError(
            f"RunPod job {job.job_id} timed out after {job.attempts} polls",
            JobState.TIMED_OUT,
            job,
        )

    async def run(self, endpoint_id: str, payload: dict, policy: PollPolicy):
        """Submit a job and wait for its output."""
        job = await self.submit(endpoint_id, payload)
        return await self.poll(job, policy)

    async def close(self) -> None:
        await self.client.aclose()
