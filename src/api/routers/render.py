"""Render job routes: start a pipeline run, check on it, receive toolkit callbacks."""

import asyncio
import logging
import uuid
from datetime import datetime, timezone

from api import dependencies
from api.schemas import (
    ComposeWebhookPayload,
    RenderCreatedResponse,
    RenderJobResponse,
    RenderRequest,
    WebhookAckResponse,
)
from fastapi import APIRouter, HTTPException
from models.shot import RenderSettings
from reel_agent.director import DirectorOptions
from utils.logging import clear_job_context, set_job_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Renders"])

# Render job storage (in-memory)
render_jobs: dict[str, dict] = {}

# Keep references to background tasks to prevent garbage collection
_background_tasks: set = set()


class RenderStatus:
    """Render job status constants."""

    QUEUED = "queued"
    PROCESSING = "processing"
    # Remote render submitted; waiting for the toolkit webhook
    RENDERING = "rendering"
    COMPLETED = "completed"
    FAILED = "failed"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _update(job_id: str, **fields) -> None:
    job = render_jobs.get(job_id)
    if job is None:
        return
    job.update(fields)
    job["updated_at"] = _now()


async def _run_render_job(job_id: str, request: RenderRequest) -> None:
    """Run the full pipeline in the background."""
    set_job_context(job_id, route=request.route)

    def on_progress(percent: int, message: str) -> None:
        _update(job_id, progress={"percent": max(0, min(100, percent)), "message": message})

    settings = RenderSettings.for_aspect_ratio(
        request.aspect_ratio,
        route=request.route,
        style=request.style,
        camera_angle=request.camera_angle,
        character_image=request.character_image,
        setting_image=request.setting_image,
        voice_id=request.voice_id,
        voice_url=request.voice_url,
    )
    options = DirectorOptions(
        title=request.title,
        music_enabled=request.music_enabled,
        music_label=request.music_label,
        music_prompt=request.music_prompt,
        music_tags=request.music_tags,
        captions=request.captions,
        caption_style=request.caption_style,
        upscale=request.upscale,
    )

    _update(job_id, status=RenderStatus.PROCESSING)
    director = dependencies.create_director(job_id, on_progress=on_progress)
    try:
        result = await director.run(request.segments, settings, options)
        _update(
            job_id,
            status=RenderStatus.RENDERING if result.awaiting_output else RenderStatus.COMPLETED,
            video_url=result.video_url,
            timeline=result.timeline.to_dict(),
        )
        logger.info(f"Render job {job_id} finished pipeline: {result.video_url}")
    except Exception as e:
        logger.error(f"Render job {job_id} failed: {e}")
        _update(job_id, status=RenderStatus.FAILED, error=str(e))
    finally:
        await director.close()
        clear_job_context()


@router.post(
    "/api/renders",
    response_model=RenderCreatedResponse,
    summary="Start a render",
    description="Plan, generate and render a video from script segments. Returns 202 with job_id.",
    status_code=202,
)
async def create_render(request: RenderRequest) -> dict:
    """Start a render job - returns 202 with job_id."""
    job_id = uuid.uuid4().hex[:12]
    created = _now()
    render_jobs[job_id] = {
        "id": job_id,
        "status": RenderStatus.QUEUED,
        "title": request.title,
        "created_at": created,
        "updated_at": created,
        "progress": {"percent": 0, "message": "Queued"},
        "video_url": None,
        "error": None,
        "timeline": None,
    }

    logger.info(f"Render request {job_id}: {len(request.segments)} segments, route={request.route}")

    task = asyncio.create_task(_run_render_job(job_id, request))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    return {"job_id": job_id, "status": RenderStatus.QUEUED}


@router.get(
    "/api/renders/{job_id}",
    response_model=RenderJobResponse,
    summary="Get render job",
    responses={404: {"description": "Job not found"}},
)
async def get_render(job_id: str) -> dict:
    """Get render job status."""
    if job_id not in render_jobs:
        raise HTTPException(status_code=404, detail="Job not found")
    return render_jobs[job_id]


@router.post(
    "/api/renders/{job_id}/webhook",
    response_model=WebhookAckResponse,
    summary="Compose toolkit callback",
    description="Called by the remote ffmpeg toolkit when a render finishes.",
    responses={404: {"description": "Job not found"}},
)
async def render_webhook(job_id: str, payload: ComposeWebhookPayload) -> dict:
    """Mark a remote render as finished or failed."""
    if job_id not in render_jobs:
        raise HTTPException(status_code=404, detail="Job not found")

    if render_jobs[job_id]["status"] != RenderStatus.RENDERING:
        # Only renders still waiting on the toolkit take the webhook
        logger.info(f"Ignoring compose webhook for {job_id}: job is {render_jobs[job_id]['status']}")
        return {"job_id": job_id, "status": render_jobs[job_id]["status"]}

    if payload.code is not None and payload.code >= 400:
        _update(
            job_id,
            status=RenderStatus.FAILED,
            error=payload.message or f"Compose toolkit returned {payload.code}",
        )
        logger.error(f"Remote render {job_id} failed: {payload.message}")
    else:
        url = payload.output_url() or render_jobs[job_id].get("video_url")
        _update(
            job_id,
            status=RenderStatus.COMPLETED,
            video_url=url,
            progress={"percent": 100, "message": "Video ready"},
        )
        logger.info(f"Remote render {job_id} completed: {url}")

    return {"job_id": job_id, "status": render_jobs[job_id]["status"]}
