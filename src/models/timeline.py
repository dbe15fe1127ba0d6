"""Timeline (EDL) data models.

The Timeline is the canonical render specification shared by the orchestrator
and both composers. Video tracks play their clips back to back; audio tracks are
mixed, each clip positioned by its own ``timeline_start``.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

# Tolerance used when comparing clip boundaries (float seconds)
EPSILON = 1e-6


class TimelineError(Exception):
    """Raised when a Timeline breaks one of its invariants."""

    pass


class ClipType(str, Enum):
    """Kind of media a clip points at."""

    VIDEO = "video"
    AUDIO = "audio"
    IMAGE = "image"


def first_present(*candidates: Any) -> Any:
    """Return the first candidate that is not None or empty, else None."""
    for candidate in candidates:
        if candidate:
            return candidate
    return None


@dataclass
class Resolution:
    """Output frame size in pixels."""

    width: int = 1024
    height: int = 576

    def to_dict(self) -> dict:
        return {"width": self.width, "height": self.height}


@dataclass
class ClipMeta:
    """Per-clip render hints."""

    has_embedded_audio: Optional[bool] = None

    def to_dict(self) -> dict:
        return {"hasEmbeddedAudio": self.has_embedded_audio}


@dataclass
class TimelineMeta:
    """Render hints that do not affect timing."""

    title: Optional[str] = None
    video_crf: int = 23
    video_preset: str = "medium"
    audio_bitrate: str = "160k"
    music_enabled: bool = False
    upscale: bool = False

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "videoCrf": self.video_crf,
            "videoPreset": self.video_preset,
            "audioBitrate": self.audio_bitrate,
            "musicEnabled": self.music_enabled,
            "upscale": self.upscale,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "TimelineMeta":
        data = data or {}
        return cls(
            title=data.get("title"),
            video_crf=int(data.get("videoCrf", 23)),
            video_preset=data.get("videoPreset", "medium"),
            audio_bitrate=data.get("audioBitrate", "160k"),
            music_enabled=bool(data.get("musicEnabled", False)),
            upscale=bool(data.get("upscale", False)),
        )


@dataclass
class Clip:
    """One playable unit placed on a track."""

    id: str
    src: Optional[str]
    type: ClipType
    in_sec: float
    out_sec: float
    timeline_start: float
    timeline_end: float
    seg_id: Optional[str] = None
    volume: Optional[float] = None
    meta: Optional[ClipMeta] = None

    @property
    def duration(self) -> float:
        """Used duration of the source (``out - in``)."""
        return self.out_sec - self.in_sec

    def to_dict(self) -> dict:
        """Convert to the EDL JSON shape."""
        result: dict[str, Any] = {
            "id": self.id,
            "src": self.src,
            "type": self.type.value,
            "in": self.in_sec,
            "out": self.out_sec,
            "timelineStart": self.timeline_start,
            "timelineEnd": self.timeline_end,
        }
        if self.seg_id is not None:
            result["segId"] = self.seg_id
        if self.volume is not None:
            result["volume"] = self.volume
        if self.meta is not None:
            result["meta"] = self.meta.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "Clip":
        meta = data.get("meta")
        return cls(
            id=str(data["id"]),
            src=data.get("src") or None,
            type=ClipType(data.get("type", "video")),
            in_sec=float(data.get("in", 0.0)),
            out_sec=float(data.get("out", 0.0)),
            timeline_start=float(data.get("timelineStart", 0.0)),
            timeline_end=float(data.get("timelineEnd", 0.0)),
            seg_id=data.get("segId"),
            volume=data.get("volume"),
            meta=ClipMeta(has_embedded_audio=meta.get("hasEmbeddedAudio")) if meta else None,
        )


@dataclass
class Track:
    """Named, ordered list of clips."""

    name: str
    clips: list[Clip] = field(default_factory=list)

    @property
    def end(self) -> float:
        """Latest clip end on this track (0 when empty)."""
        return max((c.timeline_end for c in self.clips), default=0.0)

    def to_dict(self) -> dict:
        return {"name": self.name, "clips": [c.to_dict() for c in self.clips]}

    @classmethod
    def from_dict(cls, data: dict) -> "Track":
        return cls(
            name=data.get("name", ""),
            clips=[Clip.from_dict(c) for c in data.get("clips", [])],
        )


@dataclass
class Timeline:
    """Multi-track render specification (EDL)."""

    video_tracks: list[Track] = field(default_factory=list)
    audio_tracks: list[Track] = field(default_factory=list)
    image_tracks: list[Track] = field(default_factory=list)
    duration_sec: float = 0.0
    fps: int = 30
    resolution: Resolution = field(default_factory=Resolution)
    meta: TimelineMeta = field(default_factory=TimelineMeta)

    def video_clips(self) -> list[Clip]:
        return [c for track in self.video_tracks for c in track.clips]

    def audio_clips(self) -> list[Clip]:
        return [c for track in self.audio_tracks for c in track.clips]

    def all_clips(self) -> list[Clip]:
        return [
            c
            for track in (*self.video_tracks, *self.audio_tracks, *self.image_tracks)
            for c in track.clips
        ]

    def cover_image(self) -> Optional[Clip]:
        """First clip of the ``kf`` image track, used when there is no video."""
        for track in self.image_tracks:
            if track.name.lower() == "kf" and track.clips:
                return track.clips[0]
        return None

    def get_audio_track(self, name: str) -> Optional[Track]:
        for track in self.audio_tracks:
            if track.name.lower() == name.lower():
                return track
        return None

    def compute_duration(self) -> float:
        """Rendered length: the latest end over video and audio tracks."""
        return max(
            (track.end for track in (*self.video_tracks, *self.audio_tracks)),
            default=0.0,
        )

    def validate(self) -> None:
        """Check the structural invariants.

        Raises:
            TimelineError: On duplicate clip ids, inverted trim windows,
                placement that does not match the trim window, or gaps/overlaps
                on a video track.
        """
        seen: set[str] = set()
        for clip in self.all_clips():
            if clip.id in seen:
                raise TimelineError(f"Duplicate clip id: {clip.id}")
            seen.add(clip.id)
            if clip.out_sec < clip.in_sec - EPSILON:
                raise TimelineError(f"Clip {clip.id} has out < in")
            placed = clip.timeline_end - clip.timeline_start
            if abs(placed - clip.duration) > 1e-3:
                raise TimelineError(
                    f"Clip {clip.id} placement ({placed:.3f}s) does not match "
                    f"its trim window ({clip.duration:.3f}s)"
                )

        for track in self.video_tracks:
            for prev, cur in zip(track.clips, track.clips[1:]):
                if abs(cur.timeline_start - prev.timeline_end) > 1e-3:
                    raise TimelineError(
                        f"Video track '{track.name}' is not gapless between "
                        f"{prev.id} and {cur.id}"
                    )

    def to_dict(self) -> dict:
        """Convert to the EDL JSON shape."""
        return {
            "tracks": {
                "video": [t.to_dict() for t in self.video_tracks],
                "audio": [t.to_dict() for t in self.audio_tracks],
                "images": [t.to_dict() for t in self.image_tracks],
            },
            "durationSec": self.duration_sec,
            "fps": self.fps,
            "resolution": self.resolution.to_dict(),
            "meta": self.meta.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Timeline":
        tracks = data.get("tracks", {})
        res = data.get("resolution") or {}
        return cls(
            video_tracks=[Track.from_dict(t) for t in tracks.get("video", [])],
            audio_tracks=[Track.from_dict(t) for t in tracks.get("audio", [])],
            image_tracks=[Track.from_dict(t) for t in tracks.get("images", []) or []],
            duration_sec=float(data.get("durationSec", 0.0)),
            fps=int(data.get("fps", 30)),
            resolution=Resolution(
                width=int(res.get("width", 1024)), height=int(res.get("height", 576))
            ),
            meta=TimelineMeta.from_dict(data.get("meta")),
        )
