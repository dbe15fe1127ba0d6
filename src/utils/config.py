"""Configuration loading and validation for shotreel."""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from rich.logging import RichHandler

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / ".env")

RENDER_MODES = ("local", "remote")

# Third-party loggers pinned to WARNING
NOISY_LOGGERS = [
    "httpx",
    "httpcore",
    "botocore",
    "boto3",
    "s3transfer",
    "urllib3.connectionpool",
]


def load_config() -> dict:
    """Load configuration from environment variables."""

    # Helper function to resolve paths relative to project root
    def resolve_path(path: str | None, default_relative: str) -> str:
        if not path:
            return str(PROJECT_ROOT / default_relative)
        if Path(path).is_absolute():
            return path
        return str(PROJECT_ROOT / path)

    config = {
        # RunPod generation workers
        "runpod_api_key": os.getenv("RUNPOD_API_KEY"),
        "runpod_tts_endpoint_id": os.getenv("RUNPOD_TTS_ENDPOINT_ID", ""),
        "runpod_t2i_endpoint_id": os.getenv("RUNPOD_T2I_ENDPOINT_ID", ""),
        "runpod_i2i_endpoint_id": os.getenv("RUNPOD_I2I_ENDPOINT_ID", ""),
        "runpod_lipsync_endpoint_id": os.getenv("RUNPOD_LIPSYNC_ENDPOINT_ID", ""),
        "runpod_i2v_endpoint_id": os.getenv("RUNPOD_I2V_ENDPOINT_ID", ""),
        "runpod_music_endpoint_id": os.getenv("RUNPOD_MUSIC_ENDPOINT_ID", ""),
        "runpod_upscale_endpoint_id": os.getenv("RUNPOD_UPSCALE_ENDPOINT_ID", ""),
        "default_voice_id": os.getenv("DEFAULT_VOICE_ID"),
        # Image workers run out of GPU memory under parallel load
        "image_concurrency": int(os.getenv("IMAGE_CONCURRENCY", "1")),
        # Rendering
        "local_output_folder": resolve_path(os.getenv("LOCAL_OUTPUT_FOLDER"), "output"),
        "asset_cache_dir": resolve_path(os.getenv("ASSET_CACHE_DIR"), ".cache/assets"),
        "render_mode": os.getenv("RENDER_MODE", "local").lower(),
        # S3-compatible object storage for finished renders
        "storage_endpoint_url": os.getenv("STORAGE_ENDPOINT_URL"),
        "storage_region": os.getenv("STORAGE_REGION"),
        "storage_access_key_id": os.getenv("STORAGE_ACCESS_KEY_ID"),
        "storage_secret_access_key": os.getenv("STORAGE_SECRET_ACCESS_KEY"),
        "storage_bucket": os.getenv("STORAGE_BUCKET"),
        "storage_public_url": os.getenv("STORAGE_PUBLIC_URL"),
        "storage_prefix": os.getenv("STORAGE_PREFIX", "renders"),
        # Remote ffmpeg compose toolkit
        "compose_toolkit_url": os.getenv("COMPOSE_TOOLKIT_URL"),
        "compose_toolkit_api_key": os.getenv("COMPOSE_TOOLKIT_API_KEY", ""),
        "compose_webhook_url": os.getenv("COMPOSE_WEBHOOK_URL"),
        "compose_output_base_url": os.getenv("COMPOSE_OUTPUT_BASE_URL"),
        # Burned-in captions
        "caption_service_url": os.getenv("CAPTION_SERVICE_URL"),
        "caption_api_key": os.getenv("CAPTION_API_KEY", ""),
        "caption_output_base_url": os.getenv("CAPTION_OUTPUT_BASE_URL"),
        # Logging
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": os.getenv("LOG_JSON", "false").lower() == "true",
    }

    return config


def validate_config(config: dict, generation: bool = True) -> list[str]:
    """Validate configuration and return list of errors.

    Args:
        config: Configuration from load_config
        generation: Whether RunPod generation will run. Re-rendering a saved
            timeline only needs the render settings.
    """
    errors = []

    if generation:
        if not config.get("runpod_api_key"):
            errors.append("RUNPOD_API_KEY is required")

        if not config.get("runpod_t2i_endpoint_id"):
            errors.append("RUNPOD_T2I_ENDPOINT_ID is required for keyframe generation")

    if config.get("image_concurrency", 1) < 1:
        errors.append("IMAGE_CONCURRENCY must be at least 1")

    render_mode = config.get("render_mode", "local")
    if render_mode not in RENDER_MODES:
        errors.append(f"RENDER_MODE must be one of {', '.join(RENDER_MODES)} (got {render_mode!r})")

    if render_mode == "remote" and not config.get("compose_toolkit_url"):
        errors.append("COMPOSE_TOOLKIT_URL is required when RENDER_MODE=remote")

    has_key = bool(config.get("storage_access_key_id"))
    has_secret = bool(config.get("storage_secret_access_key"))
    if has_key != has_secret:
        errors.append(
            "STORAGE_ACCESS_KEY_ID and STORAGE_SECRET_ACCESS_KEY must be set together"
        )

    # Validate local paths
    for key, name in (("local_output_folder", "output"), ("asset_cache_dir", "asset cache")):
        if config.get(key):
            try:
                Path(config[key]).mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Cannot create {name} folder: {e}")

    return errors


def setup_logging(log_level: str = "INFO") -> None:
    """Set up logging configuration with Rich for beautiful terminal output."""
    # Clear any existing handlers
    logging.root.handlers.clear()

    # Rich handler for beautiful console output
    rich_handler = RichHandler(
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        markup=False,  # Disable markup to avoid conflicts
    )

    # File handler for plain text logging
    log_file = PROJECT_ROOT / "shotreel.log"
    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    # Configure root logger
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        handlers=[rich_handler, file_handler],
        format="%(message)s",
    )

    # Suppress noisy third-party loggers
    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
