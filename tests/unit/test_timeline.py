"""Unit tests for the Timeline (EDL) model."""

import pytest

from models.timeline import (
    Clip,
    ClipMeta,
    ClipType,
    Timeline,
    TimelineError,
    TimelineMeta,
    Track,
    first_present,
)


def _video(clip_id: str, start: float, end: float, src: str = "https://cdn.test/a.mp4") -> Clip:
    return Clip(
        id=clip_id,
        src=src,
        type=ClipType.VIDEO,
        in_sec=0.0,
        out_sec=end - start,
        timeline_start=start,
        timeline_end=end,
    )


def _audio(clip_id: str, start: float, length: float) -> Clip:
    return Clip(
        id=clip_id,
        src="https://cdn.test/v.wav",
        type=ClipType.AUDIO,
        in_sec=0.0,
        out_sec=length,
        timeline_start=start,
        timeline_end=start + length,
        volume=1.0,
    )


@pytest.mark.unit
class TestFirstPresent:
    def test_returns_first_non_empty(self):
        assert first_present(None, "", "b", "c") == "b"

    def test_all_missing(self):
        assert first_present(None, "", None) is None


@pytest.mark.unit
class TestTimeline:
    def test_compute_duration_uses_latest_end(self):
        timeline = Timeline(
            video_tracks=[Track("main", [_video("S01", 0, 4), _video("S02", 4, 7)])],
            audio_tracks=[Track("narration", [_audio("S02_audio", 4, 5)])],
        )
        assert timeline.compute_duration() == pytest.approx(9.0)

    def test_empty_timeline_has_zero_duration(self):
        assert Timeline().compute_duration() == 0.0

    def test_validate_accepts_gapless_video(self):
        timeline = Timeline(
            video_tracks=[Track("main", [_video("S01", 0, 4), _video("S02", 4, 7)])],
            audio_tracks=[Track("narration", [_audio("a1", 0, 4), _audio("a2", 2, 4)])],
        )
        timeline.validate()

    def test_validate_rejects_gap(self):
        timeline = Timeline(video_tracks=[Track("main", [_video("S01", 0, 4), _video("S02", 5, 7)])])
        with pytest.raises(TimelineError, match="gapless"):
            timeline.validate()

    def test_validate_rejects_duplicate_ids(self):
        timeline = Timeline(
            video_tracks=[Track("main", [_video("S01", 0, 4)])],
            audio_tracks=[Track("narration", [_audio("S01", 0, 4)])],
        )
        with pytest.raises(TimelineError, match="Duplicate"):
            timeline.validate()

    def test_validate_rejects_inverted_trim(self):
        clip = _video("S01", 0, 4)
        clip.in_sec, clip.out_sec = 3.0, 1.0
        with pytest.raises(TimelineError):
            Timeline(video_tracks=[Track("main", [clip])]).validate()

    def test_cover_image_from_kf_track(self):
        cover = Clip("kf-1", "https://cdn.test/cover.png", ClipType.IMAGE, 0, 10, 0, 10)
        timeline = Timeline(image_tracks=[Track("KF", [cover])])
        assert timeline.cover_image() is cover
        assert Timeline().cover_image() is None

    def test_edl_shape(self):
        clip = _video("S01", 0, 4)
        clip.seg_id = "SEG-01"
        clip.meta = ClipMeta(has_embedded_audio=True)
        timeline = Timeline(
            video_tracks=[Track("main", [clip])],
            audio_tracks=[Track("narration", [])],
            duration_sec=4.0,
            meta=TimelineMeta(title="Demo"),
        )

        data = timeline.to_dict()

        assert set(data) == {"tracks", "durationSec", "fps", "resolution", "meta"}
        assert set(data["tracks"]) == {"video", "audio", "images"}
        clip_data = data["tracks"]["video"][0]["clips"][0]
        assert clip_data["in"] == 0.0
        assert clip_data["out"] == 4.0
        assert clip_data["timelineStart"] == 0.0
        assert clip_data["timelineEnd"] == 4.0
        assert clip_data["segId"] == "SEG-01"
        assert "volume" not in clip_data
        assert data["resolution"] == {"width": 1024, "height": 576}
        assert data["meta"]["title"] == "Demo"

    def test_from_dict_restores_typed_fields(self):
        data = {
            "tracks": {
                "video": [{"name": "main", "clips": [
                    {"id": "S01", "src": "https://cdn.test/a.png", "type": "image",
                     "in": 0, "out": 3, "timelineStart": 0, "timelineEnd": 3},
                ]}],
                "audio": [{"name": "music", "clips": [
                    {"id": "music-1", "src": "https://cdn.test/m.mp3", "type": "audio",
                     "in": 0, "out": 3, "timelineStart": 0, "timelineEnd": 3, "volume": 0.07},
                ]}],
            },
            "durationSec": 3,
            "fps": 24,
            "resolution": {"width": 576, "height": 1024},
            "meta": {"videoCrf": 20},
        }

        timeline = Timeline.from_dict(data)

        assert timeline.video_clips()[0].type == ClipType.IMAGE
        assert timeline.get_audio_track("MUSIC").clips[0].volume == 0.07
        assert timeline.image_tracks == []
        assert timeline.fps == 24
        assert timeline.resolution.height == 1024
        assert timeline.meta.video_crf == 20
        assert timeline.meta.video_preset == "medium"
