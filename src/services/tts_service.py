"""TTS service - character voice synthesis on a RunPod endpoint.

Each line of dialogue becomes one single-turn "multi" job. Synthesis output is
occasionally corrupted (looping or stuck audio), which shows up as a clip far
longer than the text could take to say, so results are length-checked and
retried.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from models.generation import VOICE_POLL, PollPolicy, VoiceResult
from services.media_probe import media_duration
from services.runpod_jobs import RunPodJobError, RunPodJobRunner

logger = logging.getLogger(__name__)

DEFAULT_VOICE_ID = "fe3b2cea-969a-4b5d-bc90-fde8578f1dd5"
LEGACY_VOICE_IDS = ("en_us_001",)

# ~150 words per minute
WORDS_PER_SECOND = 2.5
GLITCH_FACTOR = 2.0
MAX_ATTEMPTS = 5
RETRY_DELAY_SECONDS = 1.0

DurationProbe = Callable[[str], Awaitable[float]]


class TTSServiceError(Exception):
    """Raised when speech synthesis fails."""

    pass


def expected_duration(text: str) -> float:
    """Rough spoken length of ``text`` in seconds (never below 1s)."""
    words = len(text.split())
    return max(1.0, words / WORDS_PER_SECOND)


def is_glitched(text: str, duration_sec: float) -> bool:
    """True when the audio is more than twice as long as the text warrants."""
    return duration_sec > expected_duration(text) * GLITCH_FACTOR


class TTSService:
    """Speech synthesis with duration-glitch detection and retry."""

    def __init__(
        self,
        runner: RunPodJobRunner,
        endpoint_id: str,
        default_voice_id: str = DEFAULT_VOICE_ID,
        max_attempts: int = MAX_ATTEMPTS,
        retry_delay: float = RETRY_DELAY_SECONDS,
        poll_policy: PollPolicy = VOICE_POLL,
        duration_probe: DurationProbe = media_duration,
    ):
        self.runner = runner
        self.endpoint_id = endpoint_id
        self.default_voice_id = default_voice_id or DEFAULT_VOICE_ID
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self.poll_policy = poll_policy
        self.duration_probe = duration_probe

    def is_configured(self) -> bool:
        return bool(self.runner.is_configured() and self.endpoint_id)

    def build_payload(
        self,
        text: str,
        voice_id: str | None = None,
        ref_audio_url: str | None = None,
        speaker: str = "Narrator",
    ) -> dict:
        """Build the single-turn dialogue payload.

        A reference recording wins over a voice id; an unset or legacy voice id
        falls back to the default voice.
        """
        turn: dict = {"text": text, "speaker": speaker, "pause_duration": 0.2}
        if ref_audio_url:
            turn["ref_audio_urls"] = [ref_audio_url]
        else:
            if not voice_id or voice_id in LEGACY_VOICE_IDS:
                voice_id = self.default_voice_id
            turn["voice_id"] = voice_id

        return {
            "input": {
                "mode": "multi",
                "dialogue": [turn],
                "sample_rate": 24000,
                "max_new_tokens": 1200,
                "temperature": 0.3,
            }
        }

    @staticmethod
    def parse_output(output) -> tuple[str | None, float]:
        """Pull (audio_url, duration_sec) out of the worker's output."""
        if isinstance(output, list):
            first = output[0] if output and isinstance(output[0], dict) else {}
            return first.get("url"), float(first.get("duration") or 0.0)
        if not isinstance(output, dict):
            return None, 0.0

        nested = output.get("output") if isinstance(output.get("output"), dict) else {}
        audio_url = output.get("audio_url") or output.get("url") or nested.get("audio_url")

        duration = 0.0
        if output.get("duration_sec"):
            duration = float(output["duration_sec"])
        elif output.get("duration_samples") and output.get("sampling_rate"):
            duration = output["duration_samples"] / output["sampling_rate"]
        return audio_url, duration

    async def _synthesize_once(self, payload: dict) -> tuple[str, float, str]:
        job = await self.runner.submit(self.endpoint_id, payload)
        output = await self.runner.poll(job, self.poll_policy)
        audio_url, duration = self.parse_output(output)
        if not audio_url:
            raise TTSServiceError(f"Voice job {job.job_id} returned no audio URL")

        if duration <= 0:
            duration = await self.duration_probe(audio_url)
            logger.debug(f"Voice job {job.job_id} reported no duration; probed {duration:.2f}s")
        if duration <= 0:
            raise TTSServiceError(f"Voice job {job.job_id} audio has no usable duration")
        return audio_url, duration, job.job_id

    async def synthesize(
        self,
        text: str,
        voice_id: str | None = None,
        ref_audio_url: str | None = None,
    ) -> VoiceResult:
        """Synthesize ``text`` and return the audio URL and its duration.

        Raises:
            TTSServiceError: After ``max_attempts`` failed, glitched or
                zero-length attempts.
        """
        if not text or not text.strip():
            raise TTSServiceError("Text is empty")
        if not self.is_configured():
            raise TTSServiceError(
                "TTS not configured. Set RUNPOD_API_KEY and RUNPOD_TTS_ENDPOINT_ID in .env"
            )

        payload = self.build_payload(text, voice_id, ref_audio_url)
        limit = expected_duration(text) * GLITCH_FACTOR
        last_error: Exception | None = None

        logger.info(f"Generating TTS: \"{text[:30]}...\"")

        for attempt in range(1, self.max_attempts + 1):
            try:
                audio_url, duration, job_id = await self._synthesize_once(payload)
            except (RunPodJobError, TTSServiceError) as e:
                logger.warning(f"TTS attempt {attempt}/{self.max_attempts} failed: {e}")
                last_error = e
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.retry_delay)
                continue

            if is_glitched(text, duration):
                logger.warning(
                    f"TTS glitch detected: {duration:.1f}s exceeds {limit:.1f}s limit "
                    f"({len(text.split())} words), attempt {attempt}/{self.max_attempts}"
                )
                last_error = TTSServiceError(
                    f"Voice glitch: duration {duration:.1f}s > {limit:.1f}s limit"
                )
                continue

            logger.info(f"TTS complete: {audio_url} ({duration:.2f}s)")
            return VoiceResult(audio_url=audio_url, duration_sec=duration, job_id=job_id)

        raise TTSServiceError(
            f"Voice generation failed after {self.max_attempts} attempts: {last_error}"
        )
