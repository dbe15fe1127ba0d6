"""Video director - runs the full pipeline for one video.

plan shots -> generate assets into a Timeline -> (music bed) -> render
-> (captions) -> (upscale).

Captions and upscaling work on the rendered file, so with the remote composer
the director waits for the output before either step. Both steps are optional
and a failure in either keeps the previous video.

Progress is reported as ``(percent, message)`` through an optional callback so
the CLI can drive a progress bar and the API can update job status.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

from models.generation import MusicResult
from models.shot import RenderSettings, Shot
from models.timeline import Clip, ClipType, Timeline, TimelineMeta, Track
from reel_agent.orchestrator import AssetOrchestrator
from reel_agent.planner import SegmentInput, ShotPlanner
from reel_agent.remote_composer import DEFAULT_OUTPUT_BASE_URL, RemoteComposer
from reel_agent.video_composer import VideoComposer
from services.asset_cache import AssetCache
from services.caption_service import DEFAULT_CAPTION_OUTPUT_BASE_URL, CaptionService, CaptionServiceError
from services.image_generation_service import ImageGenerationService
from services.music_service import DEFAULT_MUSIC_PROMPT, MusicService, MusicServiceError, map_music_style
from services.object_storage import storage_from_config
from services.runpod_jobs import RunPodJobRunner
from services.tts_service import TTSService
from services.upscale_service import UpscaleService, UpscaleServiceError
from services.video_gen_service import VideoGenService

logger = logging.getLogger(__name__)

MUSIC_TRACK_NAME = "music"
MUSIC_VOLUME = 0.07

ProgressCallback = Callable[[int, str], None]
Composer = Union[VideoComposer, RemoteComposer]


@dataclass
class DirectorOptions:
    """Per-video choices that are not render settings."""

    title: Optional[str] = None
    music_enabled: bool = False
    music_label: Optional[str] = None
    music_prompt: Optional[str] = None
    music_tags: Optional[str] = None
    captions: bool = False
    caption_style: Optional[dict] = None
    upscale: bool = False


@dataclass
class DirectorResult:
    """Everything a finished run produced."""

    shots: list[Shot]
    timeline: Timeline
    video_url: str
    # Remote render submitted but not waited on
    awaiting_output: bool = False

    def to_dict(self) -> dict:
        return {
            "videoUrl": self.video_url,
            "awaitingOutput": self.awaiting_output,
            "shots": [s.to_dict() for s in self.shots],
            "timeline": self.timeline.to_dict(),
        }


def add_music_track(timeline: Timeline, music: MusicResult, volume: float = MUSIC_VOLUME) -> Clip:
    """Lay a music bed under the whole timeline, trimmed to the timeline length."""
    length = timeline.duration_sec or timeline.compute_duration()
    used = min(music.duration_sec, length) if length > 0 else music.duration_sec
    clip = Clip(
        id="music-1",
        src=music.audio_url,
        type=ClipType.AUDIO,
        in_sec=0.0,
        out_sec=used,
        timeline_start=0.0,
        timeline_end=used,
        volume=volume,
    )
    timeline.audio_tracks.append(Track(name=MUSIC_TRACK_NAME, clips=[clip]))
    timeline.meta.music_enabled = True
    timeline.duration_sec = timeline.compute_duration()
    return clip


class VideoDirector:
    """Runs planner, orchestrator, music and composer in order."""

    def __init__(
        self,
        planner: ShotPlanner,
        orchestrator: AssetOrchestrator,
        composer: Composer,
        music: Optional[MusicService] = None,
        on_progress: Optional[ProgressCallback] = None,
        captions: Optional[CaptionService] = None,
        upscaler: Optional[UpscaleService] = None,
    ):
        self.planner = planner
        self.orchestrator = orchestrator
        self.composer = composer
        self.music = music
        self.captions = captions
        self.upscaler = upscaler
        self.on_progress = on_progress
        if self.orchestrator.on_progress is None:
            self.orchestrator.on_progress = self._report

    def _report(self, percent: int, message: str) -> None:
        logger.info(f"[{percent}%] {message}")
        if self.on_progress:
            self.on_progress(percent, message)

    def plan(self, segments: list[SegmentInput], settings: RenderSettings) -> list[Shot]:
        return self.planner.plan(segments, settings)

    async def run(
        self,
        segments: list[SegmentInput],
        settings: RenderSettings,
        options: Optional[DirectorOptions] = None,
    ) -> DirectorResult:
        """Produce a finished video from script segments.

        Raises:
            PlanningError, OrchestrationError, VideoComposerError,
            RemoteComposerError: Propagated after a failure progress event.
        """
        options = options or DirectorOptions()
        try:
            self._report(5, "Planning shots...")
            shots = self.planner.plan(segments, settings)
            self._report(30, f"Planned {len(shots)} shots")

            meta = TimelineMeta(title=options.title, upscale=options.upscale)
            timeline = await self.orchestrator.execute(shots, settings, meta)

            if options.music_enabled:
                await self._add_music(timeline, options)

            self._report(93, "Rendering video...")
            video_url = await self.composer.render(timeline)

            finishing = options.captions or options.upscale
            awaiting_output = isinstance(self.composer, RemoteComposer) and not finishing
            if isinstance(self.composer, RemoteComposer) and finishing:
                video_url = await self.composer.wait_for_output(video_url)
        except Exception as e:
            logger.error(f"Pipeline failed: {e}")
            self._report(0, f"Failed: {e}")
            raise

        if options.captions:
            video_url = await self._add_captions(video_url, options)
        if options.upscale:
            video_url = await self._upscale(video_url, options)

        self._report(100, "Video ready")
        return DirectorResult(
            shots=shots, timeline=timeline, video_url=video_url, awaiting_output=awaiting_output
        )

    async def _add_captions(self, video_url: str, options: DirectorOptions) -> str:
        if self.captions is None or not self.captions.is_configured():
            logger.warning("Captions requested but the caption service is not configured; skipping")
            return video_url

        self._report(95, "Adding captions...")
        try:
            result = await self.captions.caption(video_url, style=options.caption_style)
        except CaptionServiceError as e:
            logger.error(f"Captioning failed, keeping the uncaptioned video: {e}")
            return video_url
        return result.video_url

    async def _upscale(self, video_url: str, options: DirectorOptions) -> str:
        if self.upscaler is None or not self.upscaler.is_configured():
            logger.warning("Upscale requested but the upscaler is not configured; skipping")
            return video_url

        self._report(98, "Upscaling video...")
        try:
            result = await self.upscaler.upscale(video_url, title=options.title)
        except UpscaleServiceError as e:
            logger.error(f"Upscaling failed, keeping the original resolution: {e}")
            return video_url
        return result.video_url

    async def _add_music(self, timeline: Timeline, options: DirectorOptions) -> None:
        if self.music is None or not self.music.is_configured():
            logger.warning("Music requested but the music service is not configured; skipping")
            return

        self._report(91, "Generating music...")
        tags = map_music_style(options.music_label)
        prompt = tags or options.music_prompt or DEFAULT_MUSIC_PROMPT
        try:
            result = await self.music.generate(
                prompt, timeline.duration_sec, tags=options.music_tags or tags
            )
        except MusicServiceError as e:
            logger.error(f"Music generation failed, continuing without music: {e}")
            return

        add_music_track(timeline, result)
        logger.info(f"Music added to timeline: {result.audio_url}")

    async def close(self) -> None:
        """Close HTTP clients owned by the collaborators."""
        await self.orchestrator.tts.runner.close()
        await self.composer.close()
        if self.captions is not None:
            await self.captions.close()


def build_composer(config: dict, job_id: str) -> Composer:
    """Local or remote composer according to RENDER_MODE."""
    if config.get("render_mode") == "remote":
        return RemoteComposer(
            toolkit_url=config["compose_toolkit_url"],
            api_key=config.get("compose_toolkit_api_key", ""),
            job_id=job_id,
            webhook_url=config.get("compose_webhook_url"),
            output_base_url=config.get("compose_output_base_url") or DEFAULT_OUTPUT_BASE_URL,
        )

    return VideoComposer(
        asset_cache=AssetCache(Path(config["asset_cache_dir"])),
        storage=storage_from_config(config),
        output_dir=Path(config["local_output_folder"]) / job_id,
        job_id=job_id,
        renders_prefix=config.get("storage_prefix") or "renders",
    )


def build_director(
    config: dict, job_id: str, on_progress: Optional[ProgressCallback] = None
) -> VideoDirector:
    """Wire a VideoDirector from load_config() output."""
    runner = RunPodJobRunner(api_key=config.get("runpod_api_key") or "")
    tts = TTSService(
        runner,
        endpoint_id=config.get("runpod_tts_endpoint_id", ""),
        default_voice_id=config.get("default_voice_id"),
    )
    images = ImageGenerationService(
        runner,
        t2i_endpoint_id=config.get("runpod_t2i_endpoint_id", ""),
        i2i_endpoint_id=config.get("runpod_i2i_endpoint_id", ""),
    )
    videos = VideoGenService(
        runner,
        lipsync_endpoint_id=config.get("runpod_lipsync_endpoint_id", ""),
        i2v_endpoint_id=config.get("runpod_i2v_endpoint_id", ""),
    )
    music = MusicService(runner, endpoint_id=config.get("runpod_music_endpoint_id", ""))
    orchestrator = AssetOrchestrator(
        tts, images, videos, image_concurrency=config.get("image_concurrency", 1)
    )
    captions = CaptionService(
        config.get("caption_service_url"),
        api_key=config.get("caption_api_key", ""),
        output_base_url=config.get("caption_output_base_url") or DEFAULT_CAPTION_OUTPUT_BASE_URL,
    )
    upscaler = UpscaleService(runner, endpoint_id=config.get("runpod_upscale_endpoint_id", ""))
    return VideoDirector(
        planner=ShotPlanner(),
        orchestrator=orchestrator,
        composer=build_composer(config, job_id),
        music=music,
        on_progress=on_progress,
        captions=captions,
        upscaler=upscaler,
    )
