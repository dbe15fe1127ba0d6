"""FFmpeg filter graph construction for Timeline renders.

The builder is pure: it turns a Timeline plus a way of locating each clip's
media into input specs, filter chains and output options. The local composer
feeds it cached file paths; the remote composer feeds it the original URLs.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Optional

from models.timeline import Clip, ClipType, Timeline, TimelineError

VIDEO_LABEL = "vout"
AUDIO_LABEL = "aout"
SILENCE_SAMPLE_RATE = 44100
MUSIC_TRACK_DEFAULT_VOLUME = 0.3
# Cover-only renders with no audio to size them
MIN_COVER_DURATION = 5.0


def _fmt(seconds: float) -> str:
    return f"{max(0.0, seconds):.3f}"


def _delay_ms(seconds: float) -> int:
    return max(0, round(seconds * 1000))


@dataclass
class GraphInput:
    """One ffmpeg input: its source plus input-side options."""

    source: str
    options: list[tuple[str, str]] = field(default_factory=list)

    def to_args(self) -> list[str]:
        args: list[str] = []
        for option, argument in self.options:
            args.extend([option, argument])
        return [*args, "-i", self.source]


@dataclass
class FilterGraph:
    """Inputs, filter chains and output options for a single ffmpeg run."""

    inputs: list[GraphInput]
    filters: list[str]
    video_label: str = VIDEO_LABEL
    audio_label: str = AUDIO_LABEL
    output_options: list[tuple[str, str]] = field(default_factory=list)

    @property
    def filter_complex(self) -> str:
        return ";".join(self.filters)

    def input_args(self) -> list[str]:
        return [arg for graph_input in self.inputs for arg in graph_input.to_args()]

    def output_args(self) -> list[str]:
        args: list[str] = []
        for option, argument in self.output_options:
            args.append(option)
            if argument:
                args.append(argument)
        return args


class FilterGraphBuilder:
    """Compiles a Timeline into a FilterGraph."""

    def build(
        self,
        timeline: Timeline,
        locate: Optional[Callable[[str], str]] = None,
        has_audio: Optional[Callable[[Clip], bool]] = None,
    ) -> FilterGraph:
        """Build the graph.

        Args:
            timeline: Timeline to render
            locate: Maps a clip ``src`` to the ffmpeg input (file path or URL).
                Defaults to the src itself.
            has_audio: Whether a video clip's source carries an audio stream.
                Defaults to "no".

        Raises:
            TimelineError: If the timeline has neither video clips nor a cover image.
        """
        locate = locate or (lambda src: src)
        has_audio = has_audio or (lambda clip: False)

        video_clips = [c for c in timeline.video_clips() if c.src]
        length = timeline.duration_sec or timeline.compute_duration()
        width, height = timeline.resolution.width, timeline.resolution.height

        inputs: list[GraphInput] = []
        filters: list[str] = []
        audio_labels: list[str] = []

        if video_clips:
            video_labels = []
            for n, clip in enumerate(video_clips):
                index = len(inputs)
                if clip.type == ClipType.IMAGE:
                    inputs.append(GraphInput(locate(clip.src), self._still_options(clip.duration)))
                    head = f"[{index}:v]trim=duration={_fmt(clip.duration)},setpts=PTS-STARTPTS"
                else:
                    inputs.append(GraphInput(locate(clip.src)))
                    # Clone the last frame so a short source still fills its slot
                    head = (
                        f"[{index}:v]tpad=stop_mode=clone:stop_duration={_fmt(clip.duration)},"
                        f"trim=start={_fmt(clip.in_sec)}:end={_fmt(clip.out_sec)},setpts=PTS-STARTPTS"
                    )
                label = f"v{n}"
                filters.append(f"{head},{self._normalize(width, height, timeline.fps)}[{label}]")
                video_labels.append(f"[{label}]")

                if clip.type == ClipType.VIDEO and has_audio(clip):
                    audio_label = f"a{len(audio_labels)}"
                    filters.append(
                        f"[{index}:a]atrim=start={_fmt(clip.in_sec)}:end={_fmt(clip.out_sec)},"
                        f"asetpts=PTS-STARTPTS,adelay={_delay_ms(clip.timeline_start)}:all=1"
                        f"[{audio_label}]"
                    )
                    audio_labels.append(f"[{audio_label}]")

            filters.append(
                f"{''.join(video_labels)}concat=n={len(video_labels)}:v=1:a=0[{VIDEO_LABEL}]"
            )
        else:
            cover = timeline.cover_image()
            if cover is None or not cover.src:
                raise TimelineError("Timeline has no video clips and no cover image")
            length = length or MIN_COVER_DURATION
            inputs.append(GraphInput(locate(cover.src), self._still_options(length)))
            filters.append(
                f"[0:v]trim=duration={_fmt(length)},setpts=PTS-STARTPTS,"
                f"{self._normalize(width, height, timeline.fps)}[{VIDEO_LABEL}]"
            )

        for track in timeline.audio_tracks:
            default_volume = MUSIC_TRACK_DEFAULT_VOLUME if track.name.lower() == "music" else 1.0
            for clip in track.clips:
                if not clip.src:
                    continue
                index = len(inputs)
                inputs.append(GraphInput(locate(clip.src)))
                volume = clip.volume if clip.volume is not None else default_volume
                audio_label = f"a{len(audio_labels)}"
                filters.append(
                    f"[{index}:a]atrim=start={_fmt(clip.in_sec)}:end={_fmt(clip.out_sec)},"
                    f"asetpts=PTS-STARTPTS,volume={volume:g},"
                    f"adelay={_delay_ms(clip.timeline_start)}:all=1[{audio_label}]"
                )
                audio_labels.append(f"[{audio_label}]")

        if audio_labels:
            filters.append(
                f"{''.join(audio_labels)}amix=inputs={len(audio_labels)}:"
                f"duration=longest:normalize=0[{AUDIO_LABEL}]"
            )
        else:
            filters.append(
                f"anullsrc=r={SILENCE_SAMPLE_RATE}:cl=stereo,"
                f"atrim=duration={_fmt(length)}[{AUDIO_LABEL}]"
            )

        return FilterGraph(
            inputs=inputs,
            filters=filters,
            output_options=self.output_options(timeline),
        )

    @staticmethod
    def _still_options(duration: float) -> list[tuple[str, str]]:
        return [("-loop", "1"), ("-t", _fmt(duration))]

    @staticmethod
    def _normalize(width: int, height: int, fps: int) -> str:
        """Letterbox into the frame, then pin sample aspect, rate and pixel format."""
        return (
            f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
            f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2,"
            f"setsar=1,fps={fps},format=yuv420p"
        )

    @staticmethod
    def output_options(timeline: Timeline) -> list[tuple[str, str]]:
        meta = timeline.meta
        return [
            ("-map", f"[{VIDEO_LABEL}]"),
            ("-map", f"[{AUDIO_LABEL}]"),
            ("-c:v", "libx264"),
            ("-crf", str(meta.video_crf)),
            ("-preset", meta.video_preset),
            ("-pix_fmt", "yuv420p"),
            ("-r", str(timeline.fps)),
            ("-c:a", "aac"),
            ("-b:a", meta.audio_bitrate),
            ("-movflags", "+faststart"),
            ("-shortest", ""),
        ]


def slugify(title: str, max_length: int = 80) -> str:
    """Lower-case, URL-safe file stem for a title."""
    return re.sub(r"[^a-z0-9]+", "_", title.lower()).strip("_")[:max_length]
