# Data models for shotreel
from .timeline import (
    Clip,
    ClipMeta,
    ClipType,
    Resolution,
    Timeline,
    TimelineError,
    TimelineMeta,
    Track,
    first_present,
)
from .shot import (
    DEFAULT_SEGMENT_DURATION,
    RenderSettings,
    Route,
    ScriptSegment,
    Shot,
    ShotType,
)
from .generation import (
    CAPTION_POLL,
    IMAGE_POLL,
    MUSIC_POLL,
    UPSCALE_POLL,
    VIDEO_POLL,
    VOICE_POLL,
    AnimationResult,
    CaptionResult,
    JobState,
    KeyframeResult,
    MusicResult,
    PollPolicy,
    RunPodJob,
    UpscaleResult,
    VoiceResult,
)

__all__ = [
    # Timeline (EDL)
    "Clip",
    "ClipMeta",
    "ClipType",
    "Resolution",
    "Timeline",
    "TimelineError",
    "TimelineMeta",
    "Track",
    "first_present",
    # Planning
    "DEFAULT_SEGMENT_DURATION",
    "RenderSettings",
    "Route",
    "ScriptSegment",
    "Shot",
    "ShotType",
    # Generation jobs
    "CAPTION_POLL",
    "IMAGE_POLL",
    "MUSIC_POLL",
    "UPSCALE_POLL",
    "VIDEO_POLL",
    "VOICE_POLL",
    "AnimationResult",
    "CaptionResult",
    "JobState",
    "KeyframeResult",
    "MusicResult",
    "PollPolicy",
    "RunPodJob",
    "UpscaleResult",
    "VoiceResult",
]
