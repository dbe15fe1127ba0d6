"""Shared pytest fixtures for shotreel tests."""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from models.generation import AnimationResult, KeyframeResult, VoiceResult  # noqa: E402
from models.shot import RenderSettings, Route  # noqa: E402


@pytest.fixture
def sample_config(tmp_path) -> dict:
    """Sample configuration for testing."""
    return {
        "runpod_api_key": "test_runpod_key",
        "runpod_tts_endpoint_id": "tts-ep",
        "runpod_t2i_endpoint_id": "t2i-ep",
        "runpod_i2i_endpoint_id": "i2i-ep",
        "runpod_lipsync_endpoint_id": "lipsync-ep",
        "runpod_i2v_endpoint_id": "i2v-ep",
        "runpod_music_endpoint_id": "music-ep",
        "runpod_upscale_endpoint_id": "upscale-ep",
        "default_voice_id": None,
        "image_concurrency": 1,
        "local_output_folder": str(tmp_path / "output"),
        "asset_cache_dir": str(tmp_path / "cache"),
        "render_mode": "local",
        "storage_access_key_id": None,
        "storage_secret_access_key": None,
        "storage_prefix": "renders",
        "compose_toolkit_url": None,
        "caption_service_url": None,
        "log_level": "INFO",
        "log_json": False,
    }


@pytest.fixture
def cutaway_settings() -> RenderSettings:
    return RenderSettings(route=Route.CUTAWAY, style="cinematic")


@pytest.fixture
def on_camera_settings() -> RenderSettings:
    return RenderSettings(route=Route.ON_CAMERA, style="photorealistic", camera_angle="standard")


@pytest.fixture
def mock_tts():
    """TTSService stand-in: every line takes 4 seconds."""
    mock = Mock()
    mock.synthesize = AsyncMock(
        side_effect=lambda text, voice_id=None, ref_audio_url=None: VoiceResult(
            audio_url=f"https://cdn.test/voice/{abs(hash(text)) % 10000}.wav",
            duration_sec=4.0,
            job_id="voice-job",
        )
    )
    mock.runner = Mock(close=AsyncMock())
    return mock


@pytest.fixture
def mock_images():
    """ImageGenerationService stand-in returning one URL per call."""
    mock = Mock()
    counter = {"n": 0}

    def _next(*args, **kwargs):
        counter["n"] += 1
        return KeyframeResult(image_url=f"https://cdn.test/img/{counter['n']}.png", job_id="img-job")

    mock.text_to_image = AsyncMock(side_effect=_next)
    mock.image_to_image = AsyncMock(side_effect=_next)
    return mock


@pytest.fixture
def mock_videos():
    """VideoGenService stand-in returning one URL per call."""
    mock = Mock()
    counter = {"n": 0}

    def _next(*args, **kwargs):
        counter["n"] += 1
        return AnimationResult(video_url=f"https://cdn.test/vid/{counter['n']}.mp4", job_id="vid-job")

    mock.animate_on_camera = AsyncMock(side_effect=_next)
    mock.animate_cutaway = AsyncMock(side_effect=_next)
    return mock


@pytest.fixture
def sample_segments() -> list[dict]:
    """Three-segment mixed script."""
    return [
        {"segId": "SEG-01", "track": "aroll", "dialogue": "Welcome to the show.", "action": "waving"},
        {
            "segId": "SEG-02",
            "visuals": ["coffee pouring", "sunrise over roofs", "busy street"],
            "dialogue": "Every morning starts the same way, with coffee and a view.",
            "duration": 9,
        },
        {"segId": "SEG-03", "visual": "closing shot of the skyline", "duration": 3},
    ]
