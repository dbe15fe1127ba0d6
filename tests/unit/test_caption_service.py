"""Unit tests for the burned-in caption client."""

import json

import httpx
import pytest

from models.generation import PollPolicy
from services.caption_service import DEFAULT_CAPTION_STYLE, CaptionService, CaptionServiceError

FAST = PollPolicy(max_attempts=3, interval_seconds=0)


def _service(handler, **kwargs) -> CaptionService:
    return CaptionService(
        "https://captions.test/render",
        api_key="secret",
        output_base_url="https://bucket.test/captions/",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        poll_policy=FAST,
        **kwargs,
    )


@pytest.mark.unit
class TestCaptionService:
    def test_payload_merges_style(self):
        service = _service(lambda r: httpx.Response(200))

        payload = service.build_payload("https://cdn.test/out.mp4", "cap-1", {"font_size": 60}, upscale=True)

        assert payload["id"] == "cap-1"
        assert payload["replace"] == []
        assert payload["settings"]["font_size"] == 60
        assert payload["settings"]["word_color"] == DEFAULT_CAPTION_STYLE["word_color"]
        assert payload["doUpscale"] is True
        assert "webhook_url" not in payload

    @pytest.mark.asyncio
    async def test_direct_url_returned(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["key"] = request.headers["X-API-Key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"captioned_video_url": "https://cdn.test/cap.mp4"})

        service = _service(handler)
        try:
            result = await service.caption("https://cdn.test/out.mp4", request_id="cap-1")
        finally:
            await service.close()

        assert result.video_url == "https://cdn.test/cap.mp4"
        assert result.job_id == "cap-1"
        assert seen["key"] == "secret"
        assert seen["body"]["video_url"] == "https://cdn.test/out.mp4"

    @pytest.mark.asyncio
    async def test_predicted_file_polled(self):
        heads = {"n": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                return httpx.Response(202, json={"status": "accepted"})
            assert str(request.url) == "https://bucket.test/captions/cap-2_captioned.mp4"
            heads["n"] += 1
            return httpx.Response(200 if heads["n"] == 2 else 404)

        service = _service(handler)
        try:
            result = await service.caption("https://cdn.test/out.mp4", request_id="cap-2")
        finally:
            await service.close()

        assert result.video_url == "https://bucket.test/captions/cap-2_captioned.mp4"
        assert heads["n"] == 2

    @pytest.mark.asyncio
    async def test_file_never_appears(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="ok") if request.method == "POST" else httpx.Response(404)

        service = _service(handler)
        try:
            with pytest.raises(CaptionServiceError, match="did not appear"):
                await service.caption("https://cdn.test/out.mp4", request_id="cap-3")
        finally:
            await service.close()

    @pytest.mark.asyncio
    async def test_rejected_request(self):
        service = _service(lambda r: httpx.Response(401, text="bad key"))
        try:
            with pytest.raises(CaptionServiceError, match="401"):
                await service.caption("https://cdn.test/out.mp4")
        finally:
            await service.close()

    @pytest.mark.asyncio
    async def test_unconfigured(self):
        service = CaptionService(None, client=httpx.AsyncClient())
        try:
            with pytest.raises(CaptionServiceError, match="not configured"):
                await service.caption("https://cdn.test/out.mp4")
        finally:
            await service.close()
