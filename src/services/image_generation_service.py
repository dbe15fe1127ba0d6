"""Keyframe image generation on RunPod.

Two endpoints:
- text-to-image for brand new frames (cutaways, master keyframe without references)
- image-to-image editing for frames built from character/setting references
"""

import logging

from models.generation import IMAGE_POLL, KeyframeResult, PollPolicy
from models.timeline import first_present
from services.runpod_jobs import RunPodJobError, RunPodJobRunner

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 1024
DEFAULT_HEIGHT = 576
DEFAULT_STEPS = 30
DEFAULT_GUIDANCE = 7.5
DEFAULT_EDIT_STRENGTH = 0.7

OUTPUT_SPEC = {
    "type": "scenes",
    "ext": "png",
    "root_prefix": "Catalog",
    "filename": "{name}_{job_id}",
}


class ImageGenerationServiceError(Exception):
    """Raised when keyframe generation fails."""

    pass


class ImageGenerationService:
    """Text-to-image and image-to-image keyframe generation."""

    def __init__(
        self,
        runner: RunPodJobRunner,
        t2i_endpoint_id: str,
        i2i_endpoint_id: str,
        poll_policy: PollPolicy = IMAGE_POLL,
    ):
        self.runner = runner
        self.t2i_endpoint_id = t2i_endpoint_id
        self.i2i_endpoint_id = i2i_endpoint_id
        self.poll_policy = poll_policy

    def is_configured(self) -> bool:
        return bool(self.runner.is_configured() and self.t2i_endpoint_id)

    @staticmethod
    def _base_input(prompt: str, width: int, height: int, negative_prompt: str) -> dict:
        return {
            "negative_prompt": negative_prompt,
            "width": width or DEFAULT_WIDTH,
            "height": height or DEFAULT_HEIGHT,
            "num_inference_steps": DEFAULT_STEPS,
            "guidance_scale": DEFAULT_GUIDANCE,
            "seed": -1,
            "output": dict(OUTPUT_SPEC),
        }

    @staticmethod
    def parse_output(output) -> str | None:
        if not isinstance(output, dict):
            return output if isinstance(output, str) and output.startswith("http") else None
        result = output.get("result") if isinstance(output.get("result"), dict) else {}
        return first_present(output.get("image_url"), output.get("url"), result.get("image_url"))

    async def _run(self, endpoint_id: str, payload: dict, mode: str) -> KeyframeResult:
        try:
            job = await self.runner.submit(endpoint_id, payload)
            logger.info(f"Image job started ({mode}): {job.job_id}")
            output = await self.runner.poll(job, self.poll_policy)
        except RunPodJobError as e:
            raise ImageGenerationServiceError(f"Image generation ({mode}) failed: {e}")

        image_url = self.parse_output(output)
        if not image_url:
            raise ImageGenerationServiceError(
                f"Image generation ({mode}) returned no image URL"
            )
        return KeyframeResult(image_url=image_url, job_id=job.job_id)

    async def text_to_image(
        self,
        prompt: str,
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
        negative_prompt: str = "",
    ) -> KeyframeResult:
        """Generate a keyframe purely from a prompt."""
        logger.info(f"Generating keyframe (T2I): \"{prompt[:50]}...\"")
        payload = {"input": {"prompt": prompt, **self._base_input(prompt, width, height, negative_prompt)}}
        return await self._run(self.t2i_endpoint_id, payload, "T2I")

    async def image_to_image(
        self,
        prompt: str,
        reference_urls: list[str],
        strength: float = DEFAULT_EDIT_STRENGTH,
        width: int = DEFAULT_WIDTH,
        height: int = DEFAULT_HEIGHT,
        negative_prompt: str = "",
    ) -> KeyframeResult:
        """Generate a keyframe by editing/combining reference images."""
        if not reference_urls:
            raise ImageGenerationServiceError("image_to_image needs at least one reference image")

        logger.info(
            f"Generating keyframe (I2I, {len(reference_urls)} reference(s)): \"{prompt[:50]}...\""
        )
        payload = {
            "input": {
                "scene_prompt": prompt,
                **self._base_input(prompt, width, height, negative_prompt),
                "image_urls": list(reference_urls),
                "reference_urls": list(reference_urls),
                "creative_edit": False,
                "edit_strength": strength,
                "identity_emphasis": 2.2,
                "true_guidance_scale": 2.4,
                "preserve_identity": True,
            }
        }
        return await self._run(self.i2i_endpoint_id or self.t2i_endpoint_id, payload, "I2I")
