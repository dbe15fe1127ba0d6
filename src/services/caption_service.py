"""Caption service - burned-in word-highlight captions via the caption toolkit.

The toolkit either answers with the captioned file's URL or accepts the job
and writes ``<output base>/<request id>_captioned.mp4`` later, in which case
the file is polled for with HEAD requests.
"""

import asyncio
import logging
import time
from typing import Optional

import httpx

from models.generation import CAPTION_POLL, CaptionResult, PollPolicy

logger = logging.getLogger(__name__)

DEFAULT_CAPTION_OUTPUT_BASE_URL = "https://nyc3.digitaloceanspaces.com/n8n-nca-bucket/n8n-nca-bucket"
REQUEST_TIMEOUT_SECONDS = 300.0

DEFAULT_CAPTION_STYLE = {
    "line_color": "#FFFFFF",
    "word_color": "#FFFF00",
    "all_caps": False,
    "max_words_per_line": 3,
    "font_size": 40,
    "font_family": "The Bold Font",
    "position": "bottom_center",
    "style": "highlight",
}


class CaptionServiceError(Exception):
    """Raised when captioning fails or the captioned file never appears."""

    pass


class CaptionService:
    """Client for the caption rendering toolkit."""

    def __init__(
        self,
        service_url: Optional[str],
        api_key: str = "",
        output_base_url: str = DEFAULT_CAPTION_OUTPUT_BASE_URL,
        webhook_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        poll_policy: PollPolicy = CAPTION_POLL,
    ):
        self.service_url = service_url
        self.api_key = api_key
        self.output_base_url = output_base_url.rstrip("/")
        self.webhook_url = webhook_url
        self.client = client or httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS)
        self.poll_policy = poll_policy

    def is_configured(self) -> bool:
        return bool(self.service_url)

    def predicted_url(self, request_id: str) -> str:
        return f"{self.output_base_url}/{request_id}_captioned.mp4"

    def build_payload(
        self,
        video_url: str,
        request_id: str,
        style: Optional[dict] = None,
        upscale: bool = False,
    ) -> dict:
        payload = {
            "id": request_id,
            "video_url": video_url,
            "replace": [],
            "settings": {**DEFAULT_CAPTION_STYLE, **(style or {})},
            "doUpscale": upscale,
        }
        if self.webhook_url:
            payload["webhook_url"] = self.webhook_url
        return payload

    async def caption(
        self,
        video_url: str,
        request_id: Optional[str] = None,
        style: Optional[dict] = None,
        upscale: bool = False,
    ) -> CaptionResult:
        """Burn captions into ``video_url``.

        Raises:
            CaptionServiceError: If the toolkit rejects the job or the
                captioned file does not appear within the poll budget.
        """
        if not self.is_configured():
            raise CaptionServiceError("Captions not configured (CAPTION_SERVICE_URL)")

        request_id = request_id or f"cap-{int(time.time() * 1000)}"
        payload = self.build_payload(video_url, request_id, style, upscale)
        logger.info(f"Requesting captions for {video_url} ({request_id})")

        try:
            response = await self.client.post(
                self.service_url,
                json=payload,
                headers={"X-API-Key": self.api_key, "Content-Type": "application/json"},
            )
            response.raise_for_status()
        except httpx.TimeoutException:
            raise CaptionServiceError("Caption request timed out")
        except httpx.HTTPStatusError as e:
            raise CaptionServiceError(
                f"Caption toolkit error: {e.response.status_code} - {e.response.text[:200]}"
            )
        except httpx.HTTPError as e:
            raise CaptionServiceError(f"Caption toolkit unreachable: {e}")

        try:
            data = response.json()
        except ValueError:
            data = {}
        if isinstance(data, dict):
            direct = data.get("output_url") or data.get("captioned_video_url") or data.get("caption_url")
            if direct:
                logger.info(f"Captioned video returned directly: {direct}")
                return CaptionResult(video_url=direct, job_id=request_id)

        url = await self._wait_for_file(self.predicted_url(request_id))
        return CaptionResult(video_url=url, job_id=request_id)

    async def _wait_for_file(self, url: str) -> str:
        logger.info(f"No URL in caption response, polling for {url}")
        for attempt in range(1, self.poll_policy.max_attempts + 1):
            try:
                response = await self.client.head(url)
            except httpx.HTTPError as e:
                raise CaptionServiceError(f"Captioned file check failed: {e}")
            if response.status_code == 200:
                logger.info(f"Captioned file confirmed after {attempt} check(s)")
                return url
            if response.status_code not in (403, 404):
                raise CaptionServiceError(
                    f"Captioned file check returned {response.status_code}: {url}"
                )
            await asyncio.sleep(self.poll_policy.interval_seconds)

        raise CaptionServiceError(
            f"Captioned video did not appear within {self.poll_policy.budget_seconds:.0f}s: {url}"
        )

    async def close(self) -> None:
        await self.client.aclose()
