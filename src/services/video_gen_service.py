"""Video generation service - animates keyframes on RunPod endpoints.

On-camera shots go to a lip-sync worker (image + speech -> talking clip with the
speech embedded). Cutaway shots go to an image-to-video worker (image + motion
prompt -> silent clip).
"""

import logging
import uuid

from models.generation import VIDEO_POLL, AnimationResult, PollPolicy
from models.timeline import first_present
from services.runpod_jobs import RunPodJobError, RunPodJobRunner

logger = logging.getLogger(__name__)

LIPSYNC_FPS = 30
CUTAWAY_FPS = 24
RENDER_WIDTH = 960
RENDER_HEIGHT = 544
LIPSYNC_PROMPT = "A person is talking in a natural way."


class VideoGenServiceError(Exception):
    """Raised when video generation fails."""


def _unique_filename(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}.mp4"


def extract_video_url(output) -> str | None:
    """Find the video URL in a worker output, trying each known location in order."""
    if isinstance(output, str):
        return output if output.startswith("http") else None
    if not isinstance(output, dict):
        return None

    nested = output.get("output") if isinstance(output.get("output"), dict) else {}
    artifacts = output.get("artifacts") if isinstance(output.get("artifacts"), dict) else {}
    nested_artifacts = nested.get("artifacts") if isinstance(nested.get("artifacts"), dict) else {}
    results = output.get("results")

    return first_present(
        output.get("output_video_url"),
        output.get("video_url"),
        output.get("url"),
        output.get("s3_url"),
        nested.get("video_url"),
        nested.get("s3_url"),
        nested_artifacts.get("video_url"),
        artifacts.get("video_url"),
        output.get("result") if isinstance(output.get("result"), str) else None,
        results[0] if isinstance(results, list) and results else None,
    )


def extract_last_frame_url(output) -> str | None:
    if not isinstance(output, dict):
        return None
    nested = output.get("output") if isinstance(output.get("output"), dict) else {}
    return first_present(
        output.get("last_frame_url"), output.get("lastFrameUrl"), nested.get("last_frame_url")
    )


class VideoGenService:
    """Lip-sync and motion-from-image animation."""

    def __init__(
        self,
        runner: RunPodJobRunner,
        lipsync_endpoint_id: str,
        i2v_endpoint_id: str,
        poll_policy: PollPolicy = VIDEO_POLL,
    ) -> None:
        self.runner = runner
        self.lipsync_endpoint_id = lipsync_endpoint_id
        self.i2v_endpoint_id = i2v_endpoint_id
        self.poll_policy = poll_policy

    def is_configured(self) -> bool:
        return bool(self.runner.is_configured() and (self.lipsync_endpoint_id or self.i2v_endpoint_id))

    async def _run(self, endpoint_id: str, payload: dict, kind: str) -> AnimationResult:
        try:
            job = await self.runner.submit(endpoint_id, payload)
            logger.info(f"{kind} video job started: {job.job_id}")
            output = await self.runner.poll(job, self.poll_policy)
        except RunPodJobError as e:
            raise VideoGenServiceError(f"{kind} video generation failed: {e}")

        video_url = extract_video_url(output)
        if not video_url:
            raise VideoGenServiceError(f"{kind} video job {job.job_id} returned no video URL")

        logger.info(f"{kind} video ready: {video_url}")
        return AnimationResult(
            video_url=video_url,
            job_id=job.job_id,
            last_frame_url=extract_last_frame_url(output),
        )

    async def animate_on_camera(
        self, image_url: str, audio_url: str, duration_sec: float
    ) -> AnimationResult:
        """Lip-sync the keyframe to the speech audio."""
        num_frames = max(1, round(duration_sec * LIPSYNC_FPS))
        payload = {
            "input": {
                "input_type": "image",
                "person_count": "single",
                "prompt": LIPSYNC_PROMPT,
                "image_url": image_url,
                "wav_url": audio_url,
                "width": RENDER_WIDTH,
                "height": RENDER_HEIGHT,
                "fps": LIPSYNC_FPS,
                "num_frames": num_frames,
                "teacache": True,
                "return_base64": False,
                "filename": _unique_filename("aroll"),
            }
        }
        logger.info(f"Generating on-camera lip-sync ({duration_sec:.1f}s, {num_frames} frames)")
        return await self._run(self.lipsync_endpoint_id, payload, "On-camera")

    async def animate_cutaway(
        self, image_url: str, prompt: str, duration_sec: float
    ) -> AnimationResult:
        """Animate the keyframe with motion described by the prompt."""
        num_frames = max(1, round(duration_sec * CUTAWAY_FPS))
        payload = {
            "input": {
                "image": image_url,
                "prompt": prompt,
                "num_frames": num_frames,
                "fps": CUTAWAY_FPS,
                "width": RENDER_WIDTH,
                "height": RENDER_HEIGHT,
                "guidance_scale": 3.0,
                "num_inference_steps": 25,
                "enhance_prompt": True,
                "filename": _unique_filename("broll"),
                "return_base64": False,
            }
        }
        logger.info(f"Generating cutaway animation ({duration_sec:.1f}s, {num_frames} frames)")
        return await self._run(self.i2v_endpoint_id, payload, "Cutaway")
