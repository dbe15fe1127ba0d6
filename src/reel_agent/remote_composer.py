"""Remote render variant: ships the filter graph to an ffmpeg toolkit service.

The toolkit downloads the inputs itself, renders asynchronously and calls a
webhook when done. The output lands at a predictable object URL
(``<output base>/<job id>_output_0.mp4``), which ``render`` returns right away.
Callers that need the file can wait on it with ``wait_for_output``.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Optional

import httpx

from models.generation import PollPolicy
from models.timeline import Clip, ClipMeta, ClipType, Timeline, TimelineError
from reel_agent.filter_graph import FilterGraphBuilder
from services.media_probe import has_audio_stream

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_BASE_URL = "https://n8n-nca-bucket.nyc3.digitaloceanspaces.com"
OUTPUT_POLL = PollPolicy(max_attempts=120, interval_seconds=10.0)

AudioProbe = Callable[[str], Awaitable[bool]]

RESPONSE_METADATA = {
    "thumbnail": True,
    "filesize": True,
    "duration": True,
    "bitrate": True,
    "encoder": True,
}


class RemoteComposerError(Exception):
    """Raised when the toolkit rejects a job or the output never appears."""

    pass


def clip_has_audio(clip: Clip) -> bool:
    """Embedded-audio flag recorded on the clip; unknown means no."""
    if clip.meta is None or clip.meta.has_embedded_audio is None:
        return False
    return clip.meta.has_embedded_audio


class RemoteComposer:
    """Submits Timeline renders to the ffmpeg compose toolkit."""

    def __init__(
        self,
        toolkit_url: str,
        api_key: str,
        job_id: str,
        webhook_url: Optional[str] = None,
        output_base_url: str = DEFAULT_OUTPUT_BASE_URL,
        client: Optional[httpx.AsyncClient] = None,
        audio_probe: AudioProbe = has_audio_stream,
    ):
        self.toolkit_url = toolkit_url
        self.api_key = api_key
        self.job_id = job_id
        self.webhook_url = webhook_url
        self.output_base_url = output_base_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=60.0)
        self.audio_probe = audio_probe
        self.builder = FilterGraphBuilder()

    @property
    def output_url(self) -> str:
        return f"{self.output_base_url}/{self.job_id}_output_0.mp4"

    def build_request(self, timeline: Timeline) -> dict:
        """Compose request body for the toolkit.

        Raises:
            RemoteComposerError: If the timeline has nothing to render
        """
        try:
            graph = self.builder.build(timeline, has_audio=clip_has_audio)
        except TimelineError as e:
            raise RemoteComposerError(str(e))

        inputs = []
        for graph_input in graph.inputs:
            entry: dict = {"file_url": graph_input.source}
            if graph_input.options:
                entry["options"] = [
                    {"option": option, "argument": argument}
                    for option, argument in graph_input.options
                ]
            inputs.append(entry)

        request = {
            "id": self.job_id,
            "inputs": inputs,
            "filters": [{"filter": graph.filter_complex}],
            "outputs": [
                {
                    "options": [
                        {"option": option, "argument": argument}
                        for option, argument in graph.output_options
                    ]
                }
            ],
            "metadata": dict(RESPONSE_METADATA),
        }
        if self.webhook_url:
            request["webhook_url"] = self.webhook_url
        return request

    async def resolve_embedded_audio(self, timeline: Timeline) -> None:
        """Probe video clips whose embedded-audio flag was never recorded."""
        unknown = [
            clip
            for track in timeline.video_tracks
            for clip in track.clips
            if clip.type == ClipType.VIDEO
            and (clip.meta is None or clip.meta.has_embedded_audio is None)
        ]
        if not unknown:
            return

        results = await asyncio.gather(*(self.audio_probe(clip.src) for clip in unknown))
        for clip, has_audio in zip(unknown, results):
            clip.meta = ClipMeta(has_embedded_audio=bool(has_audio))
        logger.debug(f"Probed embedded audio for {len(unknown)} clip(s)")

    async def render(self, timeline: Timeline) -> str:
        """Submit the render and return the URL the output will appear at.

        Raises:
            RemoteComposerError: If the toolkit is unreachable or rejects the job
        """
        await self.resolve_embedded_audio(timeline)
        request = self.build_request(timeline)
        logger.info(f"Submitting remote render {self.job_id} ({len(request['inputs'])} inputs)")

        try:
            response = await self.client.post(
                self.toolkit_url,
                json=request,
                headers={"X-API-Key": self.api_key, "Content-Type": "application/json"},
            )
            response.raise_for_status()
        except httpx.TimeoutException:
            raise RemoteComposerError("Compose toolkit request timed out")
        except httpx.HTTPStatusError as e:
            raise RemoteComposerError(
                f"Compose toolkit error: {e.response.status_code} - {e.response.text[:200]}"
            )
        except httpx.HTTPError as e:
            raise RemoteComposerError(f"Compose toolkit unreachable: {e}")

        logger.info(f"Remote render accepted; output expected at {self.output_url}")
        return self.output_url

    async def wait_for_output(self, url: str, policy: PollPolicy = OUTPUT_POLL) -> str:
        """Poll ``url`` with HEAD requests until the rendered file exists.

        Raises:
            RemoteComposerError: If the file has not appeared within the policy budget
        """
        for attempt in range(1, policy.max_attempts + 1):
            try:
                response = await self.client.head(url)
                if response.status_code == 200:
                    logger.info(f"Remote render available after {attempt} check(s): {url}")
                    return url
            except httpx.HTTPError as e:
                logger.warning(f"Output check {attempt}/{policy.max_attempts} failed: {e}")
            await asyncio.sleep(policy.interval_seconds)

        raise RemoteComposerError(
            f"Remote render output did not appear within {policy.budget_seconds:.0f}s: {url}"
        )

    async def close(self) -> None:
        await self.client.aclose()
