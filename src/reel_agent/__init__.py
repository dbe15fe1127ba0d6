"""Reel agent - shot planning, asset orchestration and timeline rendering."""

from .planner import PlanningError, ShotPlanner
from .orchestrator import (
    AssetOrchestrator,
    OrchestrationError,
    ShotGroups,
    build_timeline,
    redistribute_durations,
)
from .filter_graph import FilterGraph, FilterGraphBuilder
from .video_composer import VideoComposer, VideoComposerError
from .remote_composer import RemoteComposer, RemoteComposerError
from .director import DirectorOptions, DirectorResult, VideoDirector, build_director

__all__ = [
    "ShotPlanner",
    "PlanningError",
    "AssetOrchestrator",
    "OrchestrationError",
    "ShotGroups",
    "build_timeline",
    "redistribute_durations",
    "FilterGraph",
    "FilterGraphBuilder",
    "VideoComposer",
    "VideoComposerError",
    "RemoteComposer",
    "RemoteComposerError",
    "VideoDirector",
    "DirectorOptions",
    "DirectorResult",
    "build_director",
]
