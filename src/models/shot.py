"""Planning-time models: script segments, render settings and shots."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

DEFAULT_SEGMENT_DURATION = 4.0


class Route(str, Enum):
    """Which kind of footage a video is built from."""

    ON_CAMERA = "on_camera"
    CUTAWAY = "cutaway"
    MIXED = "mixed"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Route":
        """Parse a route name, accepting the script writer's aroll/broll/combo."""
        if isinstance(value, Route):
            return value
        key = (value or "").strip().lower()
        return _ROUTE_ALIASES.get(key, cls.CUTAWAY)


class ShotType(str, Enum):
    """Speaking subject on screen vs supplementary footage."""

    ON_CAMERA = "on_camera"
    CUTAWAY = "cutaway"

    @classmethod
    def from_track_hint(cls, hint: Optional[str]) -> "ShotType":
        key = (hint or "").strip().lower()
        if key in ("aroll", "a-roll", "on_camera", "on-camera"):
            return cls.ON_CAMERA
        return cls.CUTAWAY


_ROUTE_ALIASES = {
    "on_camera": Route.ON_CAMERA,
    "on-camera": Route.ON_CAMERA,
    "aroll": Route.ON_CAMERA,
    "cutaway": Route.CUTAWAY,
    "broll": Route.CUTAWAY,
    "mixed": Route.MIXED,
    "combo": Route.MIXED,
}


@dataclass
class ScriptSegment:
    """One segment of the script writer's output."""

    seg_id: Optional[str] = None
    dialogue: Optional[str] = None
    visual: Optional[str] = None
    visuals: Optional[list[str]] = None
    duration: Optional[float] = None
    track: Optional[str] = None
    character: Optional[str] = None
    action: Optional[str] = None
    notes: Optional[str] = None

    @property
    def planned_duration(self) -> float:
        return self.duration if self.duration is not None else DEFAULT_SEGMENT_DURATION

    def has_content(self) -> bool:
        return bool(self.dialogue or self.visual or self.visuals or self.action)

    @classmethod
    def from_dict(cls, data: dict) -> "ScriptSegment":
        """Build from the script JSON (camelCase keys)."""
        duration = data.get("duration")
        visuals = data.get("visuals")
        return cls(
            seg_id=data.get("segId") or data.get("seg_id"),
            dialogue=data.get("dialogue"),
            visual=data.get("visual"),
            visuals=list(visuals) if visuals else None,
            duration=float(duration) if duration is not None else None,
            track=data.get("track"),
            character=data.get("character"),
            action=data.get("action"),
            notes=data.get("notes"),
        )


@dataclass
class RenderSettings:
    """Global render parameters and user choices for one video."""

    width: int = 1024
    height: int = 576
    fps: int = 30
    aspect_ratio: str = "16:9"
    route: Route = Route.CUTAWAY
    character_image: Optional[str] = None
    setting_image: Optional[str] = None
    voice_id: Optional[str] = None
    voice_url: Optional[str] = None
    style: Optional[str] = None
    camera_angle: Optional[str] = None

    @classmethod
    def for_aspect_ratio(cls, aspect_ratio: str = "16:9", **kwargs) -> "RenderSettings":
        """Settings sized for the aspect ratio (portrait swaps to 576x1024)."""
        if "route" in kwargs:
            kwargs["route"] = Route.parse(kwargs["route"])
        settings = cls(aspect_ratio=aspect_ratio, **kwargs)
        if aspect_ratio == "9:16":
            settings.width, settings.height = 576, 1024
        return settings

    def reference_images(self) -> list[str]:
        """Reference images for the master keyframe, setting first."""
        return [url for url in (self.setting_image, self.character_image) if url]


@dataclass
class Shot:
    """A planning-time unit that becomes one video clip (and maybe one audio clip)."""

    id: str
    seg_id: str
    shot_key: str
    prompt: str
    duration_sec: float
    type: ShotType
    dialogue: Optional[str] = None

    # Filled in by the asset orchestrator
    voice_url: Optional[str] = None
    voice_duration_sec: Optional[float] = None
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    last_frame_url: Optional[str] = None

    @property
    def is_on_camera(self) -> bool:
        return self.type == ShotType.ON_CAMERA

    @property
    def owns_voice(self) -> bool:
        return bool(self.voice_url and self.voice_duration_sec)

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "segId": self.seg_id,
            "shotKey": self.shot_key,
            "prompt": self.prompt,
            "durationSec": self.duration_sec,
            "type": self.type.value,
            "dialogue": self.dialogue,
            "voiceUrl": self.voice_url,
            "voiceDurationSec": self.voice_duration_sec,
            "imageUrl": self.image_url,
            "videoUrl": self.video_url,
            "lastFrameUrl": self.last_frame_url,
        }
