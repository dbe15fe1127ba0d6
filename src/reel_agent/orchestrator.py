"""Asset orchestrator - turns a shot list into a Timeline.

Generation runs in four phases, each fully awaited before the next starts:

1. Voice: speech for every shot with dialogue. The realized length of a
   segment's speech is redistributed evenly over that segment's sibling shots.
2. Master keyframe: one image shared by every on-camera shot so the speaker
   looks the same throughout.
3. Per-shot images: cutaway keyframes (and on-camera shots still missing one),
   bounded by a semaphore because the image workers run out of GPU memory
   under parallel load.
4. Video: lip-sync for on-camera shots with speech, motion-from-image for the
   rest.

Individual generation failures degrade the shot (planned duration, still image
instead of video) rather than failing the job. Only when nothing usable comes
out does the orchestrator raise.
"""

import asyncio
import dataclasses
import itertools
import logging
from collections.abc import Awaitable, Callable, Iterator
from typing import Optional

from models.shot import RenderSettings, Route, Shot
from models.timeline import (
    Clip,
    ClipMeta,
    ClipType,
    Resolution,
    Timeline,
    TimelineMeta,
    Track,
    first_present,
)
from services.image_generation_service import ImageGenerationService, ImageGenerationServiceError
from services.media_probe import has_audio_stream
from services.tts_service import TTSService, TTSServiceError
from services.video_gen_service import VideoGenService, VideoGenServiceError

logger = logging.getLogger(__name__)

MASTER_KEYFRAME_STRENGTH = 0.7
CUTAWAY_KEYFRAME_STRENGTH = 0.75
DEFAULT_IMAGE_CONCURRENCY = 1

VIDEO_TRACK_NAME = "main"
NARRATION_TRACK_NAME = "narration"

ProgressCallback = Callable[[int, str], None]
AudioProbe = Callable[[str], Awaitable[bool]]


class OrchestrationError(Exception):
    """Raised when asset generation produced nothing usable."""

    pass


class ShotGroups:
    """Sibling shots keyed by segment id, in planning order."""

    def __init__(self, shots: list[Shot]):
        self._groups: dict[str, list[Shot]] = {}
        for shot in shots:
            self._groups.setdefault(shot.seg_id, []).append(shot)

    def __getitem__(self, seg_id: str) -> list[Shot]:
        return self._groups[seg_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._groups)

    def __len__(self) -> int:
        return len(self._groups)

    def siblings(self, shot: Shot) -> list[Shot]:
        return self._groups.get(shot.seg_id, [shot])

    def apply_realized_duration(self, seg_id: str, realized_sec: float) -> None:
        """Spread a segment's realized speech length over its siblings.

        Reads and writes happen without a suspension point in between, so
        concurrent voice tasks cannot interleave a partial update.
        """
        group = self._groups[seg_id]
        for live, updated in zip(group, redistribute_durations(group, realized_sec)):
            live.duration_sec = updated.duration_sec


def redistribute_durations(group: list[Shot], realized_sec: float) -> list[Shot]:
    """Return copies of ``group`` whose durations split ``realized_sec`` evenly.

    Raises:
        ValueError: If ``realized_sec`` is not positive.
    """
    if realized_sec <= 0:
        raise ValueError(f"Realized duration must be positive, got {realized_sec}")
    if not group:
        return []
    share = realized_sec / len(group)
    return [dataclasses.replace(shot, duration_sec=share) for shot in group]


def _segment_runs(shots: list[Shot]) -> Iterator[tuple[str, list[Shot]]]:
    for seg_id, run in itertools.groupby(shots, key=lambda s: s.seg_id):
        yield seg_id, list(run)


def build_timeline(
    shots: list[Shot],
    settings: RenderSettings,
    embedded_audio: Optional[dict[str, bool]] = None,
    meta: Optional[TimelineMeta] = None,
) -> Timeline:
    """Lay shots end to end on one video track, with speech on a narration track.

    Args:
        shots: Resolved shots in playback order
        settings: Render settings (fps, frame size)
        embedded_audio: Shot id -> whether its resolved video carries an audio
            stream. Missing entries mean "no embedded audio".
        meta: Timeline render hints

    A shot with neither a video nor an image gets no clip; its time is spread
    over the segment's remaining shots so the segment still covers its
    narration. A segment where no shot has media is left out entirely,
    narration included, which keeps the video track gapless.
    """
    embedded_audio = embedded_audio or {}
    video_clips: list[Clip] = []
    audio_clips: list[Clip] = []
    cursor = 0.0

    for seg_id, group in _segment_runs(shots):
        present = [s for s in group if first_present(s.video_url, s.image_url)]
        if not present:
            logger.warning(f"Segment {seg_id} has no video or image; leaving it out of the timeline")
            continue

        missing_sec = sum(s.duration_sec for s in group if s not in present)
        extra = missing_sec / len(present)
        if missing_sec:
            logger.warning(
                f"Segment {seg_id}: {len(group) - len(present)} shot(s) without media, "
                f"{missing_sec:.2f}s moved to the remaining shots"
            )

        segment_start = cursor
        starts: dict[str, float] = {}
        for shot in present:
            duration = shot.duration_sec + extra
            is_video = bool(shot.video_url)
            video_has_audio = is_video and embedded_audio.get(shot.id, False)
            starts[shot.id] = cursor
            video_clips.append(
                Clip(
                    id=shot.id,
                    src=first_present(shot.video_url, shot.image_url),
                    type=ClipType.VIDEO if is_video else ClipType.IMAGE,
                    in_sec=0.0,
                    out_sec=duration,
                    timeline_start=cursor,
                    timeline_end=cursor + duration,
                    seg_id=shot.seg_id,
                    meta=ClipMeta(has_embedded_audio=video_has_audio) if is_video else None,
                )
            )
            cursor += duration

        for shot in group:
            if not shot.owns_voice:
                continue
            # Lip-synced video already carries the speech
            if shot.is_on_camera and shot.video_url and embedded_audio.get(shot.id, False):
                continue
            start = starts.get(shot.id, segment_start)
            audio_clips.append(
                Clip(
                    id=f"{shot.id}_audio",
                    src=shot.voice_url,
                    type=ClipType.AUDIO,
                    in_sec=0.0,
                    out_sec=shot.voice_duration_sec,
                    timeline_start=start,
                    timeline_end=start + shot.voice_duration_sec,
                    seg_id=shot.seg_id,
                    volume=1.0,
                )
            )

    timeline = Timeline(
        video_tracks=[Track(name=VIDEO_TRACK_NAME, clips=video_clips)],
        audio_tracks=[Track(name=NARRATION_TRACK_NAME, clips=audio_clips)],
        fps=settings.fps,
        resolution=Resolution(width=settings.width, height=settings.height),
        meta=meta or TimelineMeta(),
    )
    timeline.duration_sec = timeline.compute_duration()
    return timeline


class AssetOrchestrator:
    """Coordinates voice, keyframe and video generation for a shot list."""

    def __init__(
        self,
        tts: TTSService,
        images: ImageGenerationService,
        videos: VideoGenService,
        image_concurrency: int = DEFAULT_IMAGE_CONCURRENCY,
        audio_probe: AudioProbe = has_audio_stream,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.tts = tts
        self.images = images
        self.videos = videos
        self.image_concurrency = max(1, image_concurrency)
        self.audio_probe = audio_probe
        self.on_progress = on_progress

    def _report(self, percent: int, message: str) -> None:
        if self.on_progress:
            self.on_progress(percent, message)

    async def execute(
        self,
        shots: list[Shot],
        settings: RenderSettings,
        meta: Optional[TimelineMeta] = None,
    ) -> Timeline:
        """Generate every asset and assemble the Timeline.

        Raises:
            OrchestrationError: If on-camera shots got no image at all, or no
                shot ended up with an image or a video.
        """
        if not shots:
            raise OrchestrationError("No shots to orchestrate")

        groups = ShotGroups(shots)
        logger.info(f"Orchestrating {len(shots)} shots in {len(groups)} segments")

        self._report(35, "Generating voiceover...")
        await self._voice_phase(shots, groups, settings)

        self._report(45, "Generating master keyframe...")
        master_url = await self._master_keyframe_phase(shots, settings)
        on_camera = [s for s in shots if s.is_on_camera]
        for shot in on_camera:
            shot.image_url = master_url

        self._report(50, "Generating keyframes...")
        await self._image_phase(shots, settings)
        if on_camera and not any(s.image_url for s in on_camera):
            raise OrchestrationError("No image could be produced for the on-camera shots")

        self._report(70, "Animating shots...")
        await self._video_phase(shots)
        if not any(s.image_url or s.video_url for s in shots):
            raise OrchestrationError("Asset generation failed: nothing usable was produced")

        self._report(88, "Checking clip audio...")
        embedded_audio = await self._probe_embedded_audio(shots)

        timeline = build_timeline(shots, settings, embedded_audio, meta)
        logger.info(
            f"Timeline built: {len(timeline.video_clips())} video clips, "
            f"{len(timeline.audio_clips())} audio clips, {timeline.duration_sec:.1f}s"
        )
        self._report(90, "Timeline assembled")
        return timeline

    async def _voice_phase(
        self, shots: list[Shot], groups: ShotGroups, settings: RenderSettings
    ) -> None:
        async def voice(shot: Shot) -> None:
            try:
                result = await self.tts.synthesize(
                    shot.dialogue, voice_id=settings.voice_id, ref_audio_url=settings.voice_url
                )
            except TTSServiceError as e:
                logger.error(f"Voice failed for {shot.id}; keeping planned duration: {e}")
                return

            if result.duration_sec <= 0:
                logger.error(f"Voice for {shot.id} has no duration; keeping planned duration")
                return

            shot.voice_url = result.audio_url
            shot.voice_duration_sec = result.duration_sec
            groups.apply_realized_duration(shot.seg_id, result.duration_sec)
            logger.info(
                f"Voice ready for {shot.id}: {result.duration_sec:.2f}s over "
                f"{len(groups.siblings(shot))} shot(s)"
            )

        speaking = [s for s in shots if s.dialogue and s.dialogue.strip()]
        await asyncio.gather(*(voice(s) for s in speaking))

    async def _master_keyframe_phase(
        self, shots: list[Shot], settings: RenderSettings
    ) -> Optional[str]:
        first_on_camera = next((s for s in shots if s.is_on_camera), None)
        if first_on_camera is None:
            return None

        references = settings.reference_images()
        if references:
            try:
                result = await self.images.image_to_image(
                    first_on_camera.prompt,
                    references,
                    strength=MASTER_KEYFRAME_STRENGTH,
                    width=settings.width,
                    height=settings.height,
                )
                logger.info(f"Master keyframe generated (I2I): {result.image_url}")
                return result.image_url
            except ImageGenerationServiceError as e:
                fallback = first_present(settings.character_image, settings.setting_image)
                logger.error(f"Master keyframe failed, falling back to reference image: {e}")
                return fallback

        try:
            result = await self.images.text_to_image(
                first_on_camera.prompt, width=settings.width, height=settings.height
            )
            logger.info(f"Master keyframe generated (T2I): {result.image_url}")
            return result.image_url
        except ImageGenerationServiceError as e:
            logger.error(f"Master keyframe failed: {e}")
            return None

    async def _image_phase(self, shots: list[Shot], settings: RenderSettings) -> None:
        semaphore = asyncio.Semaphore(self.image_concurrency)
        use_setting = Route.parse(settings.route) == Route.CUTAWAY and bool(settings.setting_image)

        async def keyframe(shot: Shot) -> None:
            async with semaphore:
                try:
                    if not shot.is_on_camera and use_setting:
                        result = await self.images.image_to_image(
                            shot.prompt,
                            [settings.setting_image],
                            strength=CUTAWAY_KEYFRAME_STRENGTH,
                            width=settings.width,
                            height=settings.height,
                        )
                    else:
                        result = await self.images.text_to_image(
                            shot.prompt, width=settings.width, height=settings.height
                        )
                except ImageGenerationServiceError as e:
                    logger.error(f"Keyframe failed for {shot.id}: {e}")
                    return
                shot.image_url = result.image_url

        pending = [s for s in shots if not s.is_on_camera or not s.image_url]
        await asyncio.gather(*(keyframe(s) for s in pending))

    async def _video_phase(self, shots: list[Shot]) -> None:
        async def animate(shot: Shot) -> None:
            try:
                if shot.is_on_camera and shot.voice_url:
                    result = await self.videos.animate_on_camera(
                        shot.image_url, shot.voice_url, shot.duration_sec
                    )
                else:
                    result = await self.videos.animate_cutaway(
                        shot.image_url, shot.prompt, shot.duration_sec
                    )
            except VideoGenServiceError as e:
                logger.error(f"Video failed for {shot.id}; using the still image: {e}")
                return
            shot.video_url = result.video_url
            shot.last_frame_url = result.last_frame_url

        await asyncio.gather(*(animate(s) for s in shots if s.image_url))

    async def _probe_embedded_audio(self, shots: list[Shot]) -> dict[str, bool]:
        with_video = [s for s in shots if s.video_url]
        results = await asyncio.gather(*(self.audio_probe(s.video_url) for s in with_video))
        return {shot.id: bool(has_audio) for shot, has_audio in zip(with_video, results)}
