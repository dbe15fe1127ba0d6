"""Upscale service - 2x super-resolution of a finished render on RunPod."""

import logging
import re
import time

from models.generation import UPSCALE_POLL, PollPolicy, UpscaleResult
from services.runpod_jobs import RunPodJobError, RunPodJobRunner

logger = logging.getLogger(__name__)

OUTSCALE = 2
OUTPUT_PREFIX = "upscaled/episodes/"

# https://{bucket}.nyc3.digitaloceanspaces.com/{key}
VIRTUAL_HOSTED_SPACES = re.compile(r"^https://([^./]+)\.nyc3\.digitaloceanspaces\.com/(.+)$")


class UpscaleServiceError(Exception):
    """Raised when an upscale job fails or returns no video."""

    pass


def safe_title(title: str | None) -> str:
    """Lowercase, dash-separated filename stem from a video title."""
    cleaned = re.sub(r"[^a-zA-Z0-9\s\-_]", "", title or "video")
    return re.sub(r"\s+", "-", cleaned).lower() or "video"


def normalize_spaces_url(url: str) -> str:
    """Rewrite a virtual-hosted Spaces URL to the path-style form."""
    match = VIRTUAL_HOSTED_SPACES.match(url)
    if not match:
        return url
    bucket, key = match.groups()
    return f"https://nyc3.digitaloceanspaces.com/{bucket}/{key}"


def extract_upscaled_url(output) -> str | None:
    if not isinstance(output, dict):
        return None
    return (
        output.get("output_url")
        or output.get("upscaled_video_url")
        or output.get("video_url")
        or output.get("url")
    )


class UpscaleService:
    """Runs the video upscaler endpoint."""

    def __init__(
        self,
        runner: RunPodJobRunner,
        endpoint_id: str,
        poll_policy: PollPolicy = UPSCALE_POLL,
    ):
        self.runner = runner
        self.endpoint_id = endpoint_id
        self.poll_policy = poll_policy

    def is_configured(self) -> bool:
        return bool(self.runner.is_configured() and self.endpoint_id)

    def build_payload(self, video_url: str, title: str | None = None, hd: bool = True) -> dict:
        return {
            "input": {
                "video_url": video_url,
                "preset": "fast" if hd else "express",
                "outscale": OUTSCALE,
                "output_prefix": OUTPUT_PREFIX,
                "output_filename": f"{safe_title(title)}-{int(time.time() * 1000)}",
            }
        }

    async def upscale(self, video_url: str, title: str | None = None, hd: bool = True) -> UpscaleResult:
        """Upscale ``video_url`` and return the new video's URL.

        Raises:
            UpscaleServiceError: If the job fails, times out or returns no URL.
        """
        if not self.is_configured():
            raise UpscaleServiceError("Upscaling not configured (RUNPOD_UPSCALE_ENDPOINT_ID)")

        payload = self.build_payload(video_url, title, hd)
        logger.info(f"Starting upscale for {video_url} (preset: {payload['input']['preset']})")

        try:
            job = await self.runner.submit(self.endpoint_id, payload)
            output = await self.runner.poll(job, self.poll_policy)
        except RunPodJobError as e:
            raise UpscaleServiceError(f"Upscale failed: {e}")

        url = extract_upscaled_url(output)
        if not url:
            raise UpscaleServiceError(f"Upscale job {job.job_id} completed but returned no URL")

        url = normalize_spaces_url(url)
        logger.info(f"Upscale complete: {url}")
        return UpscaleResult(video_url=url, job_id=job.job_id)
