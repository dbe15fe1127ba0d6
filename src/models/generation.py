"""Models for remote generation jobs (voice, keyframes, animation, music)."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class JobState(str, Enum):
    """Lifecycle of a submitted generation job."""

    SUBMITTED = "submitted"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED, JobState.TIMED_OUT)


@dataclass(frozen=True)
class PollPolicy:
    """How long to wait on a job: attempts x interval."""

    max_attempts: int
    interval_seconds: float

    @property
    def budget_seconds(self) -> float:
        return self.max_attempts * self.interval_seconds


# Per asset class polling budgets
VOICE_POLL = PollPolicy(max_attempts=60, interval_seconds=1.5)     # ~90s
IMAGE_POLL = PollPolicy(max_attempts=300, interval_seconds=2.0)    # ~10 min
VIDEO_POLL = PollPolicy(max_attempts=400, interval_seconds=10.0)   # ~66 min
MUSIC_POLL = PollPolicy(max_attempts=120, interval_seconds=5.0)    # ~10 min
UPSCALE_POLL = PollPolicy(max_attempts=240, interval_seconds=5.0)  # ~20 min
CAPTION_POLL = PollPolicy(max_attempts=30, interval_seconds=2.0)   # ~1 min


@dataclass
class RunPodJob:
    """A job on a RunPod serverless endpoint and where it is in its lifecycle."""

    endpoint_id: str
    job_id: str
    state: JobState = JobState.SUBMITTED
    attempts: int = 0
    output: Any = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "endpoint_id": self.endpoint_id,
            "job_id": self.job_id,
            "state": self.state.value,
            "attempts": self.attempts,
            "error": self.error,
        }


@dataclass
class VoiceResult:
    """Synthesized speech."""

    audio_url: str
    duration_sec: float
    job_id: str


@dataclass
class KeyframeResult:
    """A generated keyframe image."""

    image_url: str
    job_id: str


@dataclass
class AnimationResult:
    """An animated clip generated from a keyframe."""

    video_url: str
    job_id: str
    last_frame_url: Optional[str] = None


@dataclass
class MusicResult:
    """A generated background music bed."""

    audio_url: str
    duration_sec: float
    job_id: str


@dataclass
class UpscaleResult:
    """A rendered video after super-resolution."""

    video_url: str
    job_id: str


@dataclass
class CaptionResult:
    """A rendered video with burned-in captions."""

    video_url: str
    job_id: str
