"""FFmpeg-based render engine for Timelines.

Takes a Timeline (video track played back to back, audio tracks mixed by
position) and renders it into a single MP4 with one ffmpeg run:

1. Resolve every clip source to a local file through the asset cache
2. Probe video sources for embedded audio
3. Build the filter graph (normalize, concat, delay and mix audio)
4. Encode with libx264/aac, stopping at the shortest stream
5. Publish the file to object storage

No MoviePy dependency. ffmpeg and ffprobe run off the event loop.
"""

import asyncio
import logging
import subprocess
import time
from pathlib import Path
from typing import Callable, Optional

from models.timeline import Clip, ClipType, Timeline, TimelineError
from reel_agent.filter_graph import FilterGraphBuilder, slugify
from services.asset_cache import AssetCache, AssetCacheError
from services.media_probe import has_audio_stream_sync
from services.object_storage import ObjectStorage, ObjectStorageError

logger = logging.getLogger(__name__)

RENDERS_PREFIX = "renders"
FFMPEG_TIMEOUT_SECONDS = 1800


class VideoComposerError(Exception):
    """Raised when a Timeline cannot be rendered or published."""

    pass


class VideoComposer:
    """Renders Timelines with FFmpeg and publishes the result.

    FFmpeg-first approach: everything happens in one filter graph, so no
    intermediate per-scene files are written.
    """

    def __init__(
        self,
        asset_cache: AssetCache,
        storage: Optional[ObjectStorage] = None,
        output_dir: Optional[Path] = None,
        audio_probe: Callable[[str], bool] = has_audio_stream_sync,
        job_id: str = "render",
        renders_prefix: str = RENDERS_PREFIX,
    ):
        self.asset_cache = asset_cache
        self.storage = storage
        self.output_dir = output_dir or Path("output")
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.audio_probe = audio_probe
        self.job_id = job_id
        self.renders_prefix = renders_prefix.strip("/")
        self.builder = FilterGraphBuilder()

    def output_filename(self, timeline: Timeline) -> str:
        """``<title slug or job id>_<ms timestamp>.mp4``."""
        stem = slugify(timeline.meta.title) if timeline.meta.title else ""
        return f"{stem or self.job_id}_{int(time.time() * 1000)}.mp4"

    async def render(self, timeline: Timeline) -> str:
        """Render the timeline and return the published URL.

        Without object storage configured the local file path is returned.

        Raises:
            VideoComposerError: On invalid timelines, failed downloads, ffmpeg
                failures or failed uploads
        """
        try:
            timeline.validate()
        except TimelineError as e:
            raise VideoComposerError(f"Invalid timeline: {e}")

        if not timeline.video_clips() and timeline.cover_image() is None:
            raise VideoComposerError("Timeline has no video clips and no cover image")

        clips = [c for c in timeline.all_clips() if c.src]
        logger.info(
            f"Composing timeline: {len(timeline.video_clips())} video clips, "
            f"{len(timeline.audio_clips())} audio clips, "
            f"{timeline.resolution.width}x{timeline.resolution.height}@{timeline.fps}"
        )

        try:
            local_paths = await self.asset_cache.resolve(clips)
        except AssetCacheError as e:
            raise VideoComposerError(f"Asset download failed: {e}")

        embedded_audio = await self._probe_video_audio(timeline.video_clips(), local_paths)

        try:
            graph = self.builder.build(
                timeline,
                locate=lambda src: str(local_paths[src]),
                has_audio=lambda clip: embedded_audio.get(clip.id, False),
            )
        except TimelineError as e:
            raise VideoComposerError(str(e))

        output_path = self.output_dir / self.output_filename(timeline)
        cmd = [
            "ffmpeg", "-y",
            *graph.input_args(),
            "-filter_complex", graph.filter_complex,
            *graph.output_args(),
            str(output_path),
        ]
        await asyncio.to_thread(
            self._run_ffmpeg, cmd, f"render {len(graph.inputs)} inputs -> {output_path.name}"
        )
        logger.info(f"Composition complete: {output_path}")

        return await self._publish(output_path)

    async def close(self) -> None:
        await self.asset_cache.close()

    async def _probe_video_audio(
        self, clips: list[Clip], local_paths: dict[str, Path]
    ) -> dict[str, bool]:
        video_clips = [c for c in clips if c.type == ClipType.VIDEO and c.src in local_paths]
        results = await asyncio.gather(
            *(asyncio.to_thread(self.audio_probe, str(local_paths[c.src])) for c in video_clips)
        )
        return {clip.id: bool(found) for clip, found in zip(video_clips, results)}

    async def _publish(self, output_path: Path) -> str:
        if self.storage is None:
            logger.warning("Object storage not configured; returning local render path")
            return str(output_path)

        key = f"{self.renders_prefix}/{output_path.name}"
        try:
            return await asyncio.to_thread(
                self.storage.upload_file, key, output_path, "video/mp4"
            )
        except ObjectStorageError as e:
            raise VideoComposerError(f"Upload failed: {e}")

    # ------------------------------------------------------------------
    # Utilities
    # ------------------------------------------------------------------

    def _run_ffmpeg(self, cmd: list[str], description: str = "") -> None:
        """Run FFmpeg command with error handling.

        Args:
            cmd: FFmpeg command as list of arguments
            description: Human-readable description for logging

        Raises:
            VideoComposerError: If FFmpeg returns a non-zero exit code
        """
        logger.info(f"FFmpeg: {description}")
        logger.debug(f"Command: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=FFMPEG_TIMEOUT_SECONDS
            )
        except subprocess.TimeoutExpired:
            raise VideoComposerError(f"FFmpeg timed out ({description})")

        if result.returncode != 0:
            logger.error(f"FFmpeg stderr: {result.stderr[-1000:]}")
            raise VideoComposerError(
                f"FFmpeg failed ({description}): {result.stderr[:500]}"
            )
