"""Config singleton and pipeline wiring for the render API."""

from typing import Callable, Optional

from reel_agent.director import VideoDirector, build_director
from utils.config import load_config

_config: dict | None = None


def get_config() -> dict:
    """Get or load the configuration."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def create_director(
    job_id: str, on_progress: Optional[Callable[[int, str], None]] = None
) -> VideoDirector:
    """Build a director for one render job."""
    return build_director(get_config(), job_id, on_progress=on_progress)
