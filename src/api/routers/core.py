"""Root and health routes."""

import shutil

from api.dependencies import get_config
from api.schemas import HealthResponse, RootResponse
from fastapi import APIRouter

API_VERSION = "0.1.0"

router = APIRouter(tags=["Core"])


@router.get("/", response_model=RootResponse, summary="API root")
async def root() -> dict[str, str]:
    return {"message": "shotreel API", "version": API_VERSION}


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Reports the render mode and whether local renders can run.",
)
async def health() -> dict:
    """Local renders need ffmpeg and ffprobe on PATH; remote renders do not."""
    render_mode = get_config().get("render_mode", "local")
    ffmpeg_available = bool(shutil.which("ffmpeg") and shutil.which("ffprobe"))
    status = "healthy" if ffmpeg_available or render_mode == "remote" else "degraded"
    return {"status": status, "render_mode": render_mode, "ffmpeg_available": ffmpeg_available}
