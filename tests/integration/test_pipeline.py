"""Integration tests for the full plan -> generate -> render pipeline.

The RunPod API and the CDN are served by httpx.MockTransport and ffmpeg is
patched out, so every other component runs for real.
"""

import json
import subprocess
from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from models.generation import PollPolicy
from models.shot import RenderSettings, Route
from models.timeline import ClipType
from reel_agent.director import DirectorOptions, VideoDirector
from reel_agent.orchestrator import AssetOrchestrator
from reel_agent.planner import ShotPlanner
from reel_agent.video_composer import VideoComposer
from services.asset_cache import AssetCache
from services.image_generation_service import ImageGenerationService
from services.runpod_jobs import RunPodJobRunner
from services.tts_service import WORDS_PER_SECOND, TTSService
from services.video_gen_service import VideoGenService

FAST = PollPolicy(max_attempts=3, interval_seconds=0)


class FakeRunPod:
    """Serves /run and /status for every endpoint with canned outputs."""

    def __init__(self):
        self.jobs: dict[str, dict] = {}
        self.submitted: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        parts = request.url.path.strip("/").split("/")
        endpoint = parts[1]
        if request.method == "POST":
            job_id = f"{endpoint}-{len(self.jobs) + 1}"
            self.jobs[job_id] = self._output(endpoint, job_id, json.loads(request.content)["input"])
            self.submitted.append(endpoint)
            return httpx.Response(200, json={"id": job_id})
        return httpx.Response(200, json={"status": "COMPLETED", "output": self.jobs[parts[-1]]})

    @staticmethod
    def _output(endpoint: str, job_id: str, payload: dict) -> dict:
        if endpoint == "tts-ep":
            words = len(payload["dialogue"][0]["text"].split())
            return {"audio_url": f"https://cdn.test/tts/{job_id}.wav", "duration_sec": words / WORDS_PER_SECOND * 1.2}
        if endpoint in ("t2i-ep", "i2i-ep"):
            return {"image_url": f"https://cdn.test/img/{job_id}.png"}
        return {"video_url": f"https://cdn.test/vid/{job_id}.mp4"}


def _has_embedded_audio(source: str) -> bool:
    return "lipsync" in source


@pytest.fixture
def fake_runpod():
    return FakeRunPod()


@pytest.fixture
def director(fake_runpod, tmp_path):
    runner = RunPodJobRunner("rp-key", client=httpx.AsyncClient(transport=httpx.MockTransport(fake_runpod)))
    cdn = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200, content=b"media")))
    orchestrator = AssetOrchestrator(
        TTSService(runner, "tts-ep", poll_policy=FAST, retry_delay=0),
        ImageGenerationService(runner, "t2i-ep", "i2i-ep", poll_policy=FAST),
        VideoGenService(runner, "lipsync-ep", "i2v-ep", poll_policy=FAST),
        audio_probe=AsyncMock(side_effect=_has_embedded_audio),
    )
    composer = VideoComposer(
        AssetCache(tmp_path / "cache", client=cdn),
        output_dir=tmp_path / "out",
        audio_probe=_has_embedded_audio,
        job_id="it-job",
    )
    return VideoDirector(ShotPlanner(), orchestrator, composer)


def _ffmpeg_ok(cmd, **kwargs):
    Path(cmd[-1]).write_bytes(b"mp4")
    return subprocess.CompletedProcess(args=cmd, returncode=0, stdout="", stderr="")


@pytest.mark.integration
class TestPipeline:
    @pytest.mark.asyncio
    async def test_mixed_script_end_to_end(self, director, fake_runpod, sample_segments, tmp_path):
        settings = RenderSettings(route=Route.MIXED, style="cinematic")

        try:
            with patch("reel_agent.video_composer.subprocess.run", side_effect=_ffmpeg_ok) as run:
                result = await director.run(sample_segments, settings, DirectorOptions(title="Morning Coffee"))
        finally:
            await director.close()

        # One on-camera shot, three fan-out cutaways, one single cutaway
        assert len(result.shots) == 5
        timeline = result.timeline
        timeline.validate()
        video = timeline.video_clips()
        assert len(video) == 5
        assert all(c.type == ClipType.VIDEO for c in video)

        # Lip-synced clip carries its own speech, so only the cutaway voice is laid
        narration = timeline.get_audio_track("narration").clips
        assert len(narration) == 1
        assert narration[0].seg_id == "SEG-02"

        # SEG-02 siblings share the realized voice length evenly
        seg_two = [c for c in video if c.seg_id == "SEG-02"]
        assert [c.duration for c in seg_two] == pytest.approx([narration[0].duration / 3] * 3)
        assert timeline.duration_sec == pytest.approx(video[-1].timeline_end)

        cmd = run.call_args.args[0]
        assert cmd.count("-i") == 6
        assert "-shortest" in cmd
        assert Path(result.video_url).exists()
        assert Path(result.video_url).name.startswith("morning_coffee_")

        assert fake_runpod.submitted.count("lipsync-ep") == 1
        assert fake_runpod.submitted.count("i2v-ep") == 4
        assert fake_runpod.submitted.count("tts-ep") == 2

    @pytest.mark.asyncio
    async def test_timeline_round_trips_through_json(self, director, sample_segments):
        settings = RenderSettings(route=Route.CUTAWAY)

        try:
            with patch("reel_agent.video_composer.subprocess.run", side_effect=_ffmpeg_ok):
                result = await director.run(sample_segments, settings)
        finally:
            await director.close()

        payload = json.loads(json.dumps(result.to_dict()))
        assert payload["timeline"]["tracks"]["video"][0]["name"] == "main"
        assert len(payload["shots"]) == len(result.shots)
