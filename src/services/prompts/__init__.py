"""Prompts module - prompt vocabulary for keyframe and animation generation.

    from services.prompts import map_style, map_camera, SHOT_VARIANTS
"""

from services.prompts.shots import (
    CAMERA_ANGLES,
    DEFAULT_CUTAWAY_VISUAL,
    GROUP_SAFETY_RAIL,
    IDENTITY_CUE,
    MULTI_SUBJECT_KEYWORDS,
    SHOT_VARIANTS,
    SOLO_SAFETY_RAIL,
    VISUAL_STYLES,
    map_camera,
    map_style,
    needs_solo_subject,
)

__all__ = [
    "VISUAL_STYLES",
    "CAMERA_ANGLES",
    "SHOT_VARIANTS",
    "MULTI_SUBJECT_KEYWORDS",
    "DEFAULT_CUTAWAY_VISUAL",
    "SOLO_SAFETY_RAIL",
    "GROUP_SAFETY_RAIL",
    "IDENTITY_CUE",
    "map_style",
    "map_camera",
    "needs_solo_subject",
]
