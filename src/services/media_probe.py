"""ffprobe helpers for inspecting local files or remote media URLs."""

import asyncio
import json
import logging
import subprocess

logger = logging.getLogger(__name__)

PROBE_TIMEOUT_SECONDS = 60


def probe_streams(source: str, timeout: int = PROBE_TIMEOUT_SECONDS) -> list[dict]:
    """Return the stream list of a media file or URL.

    Returns an empty list when ffprobe fails.
    """
    cmd = [
        "ffprobe",
        "-v", "error",
        "-show_entries", "stream=codec_type,duration",
        "-of", "json",
        source,
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        if result.returncode == 0:
            return json.loads(result.stdout).get("streams", [])
        logger.warning(f"ffprobe failed for {source}: {result.stderr[:200]}")
    except (OSError, subprocess.SubprocessError, ValueError) as e:
        logger.warning(f"ffprobe failed for {source}: {e}")
    return []


def has_audio_stream_sync(source: str) -> bool:
    """True when the media has at least one audio stream.

    A failed probe counts as "no audio".
    """
    return any(s.get("codec_type") == "audio" for s in probe_streams(source))


async def has_audio_stream(source: str) -> bool:
    """Async wrapper around has_audio_stream_sync (runs ffprobe off the loop)."""
    return await asyncio.to_thread(has_audio_stream_sync, source)


def probe_duration(source: str) -> float:
    """Longest stream duration in seconds, or 0.0 when unknown."""
    durations = []
    for stream in probe_streams(source):
        try:
            durations.append(float(stream.get("duration") or 0.0))
        except (TypeError, ValueError):
            continue
    return max(durations, default=0.0)


async def media_duration(source: str) -> float:
    """Async wrapper around probe_duration."""
    return await asyncio.to_thread(probe_duration, source)
