"""Pydantic request/response models for the render API."""

from typing import Any

from pydantic import BaseModel, Field

# =============================================================================
# Response Models
# =============================================================================


class RootResponse(BaseModel):
    """Root endpoint response."""

    message: str
    version: str

    model_config = {"json_schema_extra": {"examples": [{"message": "shotreel API", "version": "0.1.0"}]}}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    render_mode: str
    ffmpeg_available: bool

    model_config = {
        "json_schema_extra": {
            "examples": [{"status": "healthy", "render_mode": "local", "ffmpeg_available": True}]
        }
    }


class RenderProgressResponse(BaseModel):
    """Render job progress details."""

    percent: int = Field(ge=0, le=100)
    message: str


class RenderJobResponse(BaseModel):
    """Render job status."""

    id: str
    status: str
    created_at: str
    updated_at: str
    progress: RenderProgressResponse
    title: str | None = None
    video_url: str | None = None
    error: str | None = None
    timeline: dict | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": "3f2a9c1b7d4e",
                    "status": "processing",
                    "created_at": "2026-02-08T12:00:00+00:00",
                    "updated_at": "2026-02-08T12:05:00+00:00",
                    "progress": {"percent": 50, "message": "Generating keyframes..."},
                }
            ]
        }
    }


class RenderCreatedResponse(BaseModel):
    """Response when a render job is accepted."""

    job_id: str
    status: str


class WebhookAckResponse(BaseModel):
    """Response to a toolkit completion callback."""

    job_id: str
    status: str


# =============================================================================
# Request Models
# =============================================================================


class RenderRequest(BaseModel):
    """Start a render from script segments."""

    segments: list[dict[str, Any]] = Field(min_length=1)
    title: str | None = None
    aspect_ratio: str = "16:9"
    route: str = "cutaway"
    style: str | None = None
    camera_angle: str | None = None
    character_image: str | None = None
    setting_image: str | None = None
    voice_id: str | None = None
    voice_url: str | None = None
    music_enabled: bool = False
    music_label: str | None = None
    music_prompt: str | None = None
    music_tags: str | None = None
    captions: bool = False
    caption_style: dict[str, Any] | None = None
    upscale: bool = False

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "title": "Morning Routine",
                    "route": "mixed",
                    "segments": [
                        {"segId": "SEG-01", "track": "aroll", "dialogue": "Let me show you my morning.", "duration": 4},
                        {"segId": "SEG-02", "visuals": ["coffee pouring", "sunrise", "city street"], "duration": 9},
                    ],
                }
            ]
        }
    }


class ComposeWebhookPayload(BaseModel):
    """Completion callback from the ffmpeg compose toolkit."""

    code: int | None = None
    id: str | None = None
    job_id: str | None = None
    message: str | None = None
    response: Any = None

    model_config = {"extra": "allow"}

    def output_url(self) -> str | None:
        """First ``file_url`` in the toolkit response, if any."""
        items = self.response if isinstance(self.response, list) else [self.response]
        for item in items:
            if isinstance(item, dict) and item.get("file_url"):
                return item["file_url"]
            if isinstance(item, str) and item.startswith("http"):
                return item
        return None
