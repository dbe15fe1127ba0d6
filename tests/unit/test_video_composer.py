"""Unit tests for the local ffmpeg composer."""

import subprocess
from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import pytest

from models.timeline import Clip, ClipType, Timeline, TimelineMeta, Track
from reel_agent.video_composer import VideoComposer, VideoComposerError
from services.asset_cache import AssetCacheError
from services.object_storage import ObjectStorageError


def _five_second_timeline(title: str | None = "Launch Day") -> Timeline:
    video = Clip("S01", "https://cdn.test/vid/1.mp4", ClipType.VIDEO, 0.0, 5.0, 0.0, 5.0)
    audio = Clip("S01_audio", "https://cdn.test/tts/1.wav", ClipType.AUDIO, 0.0, 5.0, 0.0, 5.0, volume=1.0)
    return Timeline(
        video_tracks=[Track("main", [video])],
        audio_tracks=[Track("narration", [audio])],
        duration_sec=5.0,
        meta=TimelineMeta(title=title),
    )


def _cache(tmp_path: Path) -> Mock:
    cache = Mock()
    cache.resolve = AsyncMock(
        return_value={
            "https://cdn.test/vid/1.mp4": tmp_path / "S01_1.mp4",
            "https://cdn.test/tts/1.wav": tmp_path / "S01_audio_1.wav",
        }
    )
    cache.close = AsyncMock()
    return cache


def _ok(*args, **kwargs) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=args, returncode=0, stdout="", stderr="")


@pytest.mark.unit
class TestVideoComposer:
    @pytest.mark.asyncio
    async def test_render_and_publish(self, tmp_path):
        storage = Mock()
        storage.upload_file.return_value = "https://cdn.test/renders/launch_day.mp4"
        composer = VideoComposer(
            _cache(tmp_path), storage=storage, output_dir=tmp_path / "out",
            audio_probe=lambda path: False, job_id="job-1",
        )

        with patch("reel_agent.video_composer.subprocess.run", side_effect=_ok) as run:
            url = await composer.render(_five_second_timeline())

        assert url == "https://cdn.test/renders/launch_day.mp4"
        cmd = run.call_args.args[0]
        assert cmd[:2] == ["ffmpeg", "-y"]
        assert cmd[cmd.index("-i") + 1] == str(tmp_path / "S01_1.mp4")
        assert "-shortest" in cmd
        assert Path(cmd[-1]).name.startswith("launch_day_")

        key, path, content_type = storage.upload_file.call_args.args
        assert key.startswith("renders/launch_day_") and key.endswith(".mp4")
        assert content_type == "video/mp4"

    @pytest.mark.asyncio
    async def test_local_path_without_storage(self, tmp_path):
        composer = VideoComposer(_cache(tmp_path), output_dir=tmp_path, audio_probe=lambda path: False, job_id="job-7")

        with patch("reel_agent.video_composer.subprocess.run", side_effect=_ok):
            result = await composer.render(_five_second_timeline(title=None))

        assert Path(result).parent == tmp_path
        assert Path(result).name.startswith("job-7_")

    @pytest.mark.asyncio
    async def test_embedded_audio_probed_from_local_file(self, tmp_path):
        probe = Mock(return_value=True)
        composer = VideoComposer(_cache(tmp_path), output_dir=tmp_path, audio_probe=probe)

        with patch("reel_agent.video_composer.subprocess.run", side_effect=_ok) as run:
            await composer.render(_five_second_timeline())

        probe.assert_called_once_with(str(tmp_path / "S01_1.mp4"))
        graph = run.call_args.args[0][run.call_args.args[0].index("-filter_complex") + 1]
        assert "amix=inputs=2" in graph

    @pytest.mark.asyncio
    async def test_ffmpeg_failure(self, tmp_path):
        composer = VideoComposer(_cache(tmp_path), output_dir=tmp_path, audio_probe=lambda path: False)
        failed = subprocess.CompletedProcess(args=[], returncode=1, stdout="", stderr="Invalid data")

        with patch("reel_agent.video_composer.subprocess.run", return_value=failed):
            with pytest.raises(VideoComposerError, match="Invalid data"):
                await composer.render(_five_second_timeline())

    @pytest.mark.asyncio
    async def test_download_failure(self, tmp_path):
        cache = _cache(tmp_path)
        cache.resolve.side_effect = AssetCacheError("Download failed for x: 404")
        composer = VideoComposer(cache, output_dir=tmp_path)

        with pytest.raises(VideoComposerError, match="Asset download failed"):
            await composer.render(_five_second_timeline())

    @pytest.mark.asyncio
    async def test_upload_failure(self, tmp_path):
        storage = Mock()
        storage.upload_file.side_effect = ObjectStorageError("denied")
        composer = VideoComposer(_cache(tmp_path), storage=storage, output_dir=tmp_path, audio_probe=lambda path: False)

        with patch("reel_agent.video_composer.subprocess.run", side_effect=_ok):
            with pytest.raises(VideoComposerError, match="Upload failed"):
                await composer.render(_five_second_timeline())

    @pytest.mark.asyncio
    async def test_empty_timeline_rejected(self, tmp_path):
        composer = VideoComposer(_cache(tmp_path), output_dir=tmp_path)

        with pytest.raises(VideoComposerError, match="no video clips"):
            await composer.render(Timeline(video_tracks=[Track("main")]))

    @pytest.mark.asyncio
    async def test_invalid_timeline_rejected(self, tmp_path):
        timeline = _five_second_timeline()
        timeline.audio_tracks[0].clips[0].id = "S01"
        composer = VideoComposer(_cache(tmp_path), output_dir=tmp_path)

        with pytest.raises(VideoComposerError, match="Duplicate clip id"):
            await composer.render(timeline)
