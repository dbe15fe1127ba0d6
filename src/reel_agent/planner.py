"""Shot planner - expands script segments into a timed shot list.

Each segment becomes one Shot (on-camera or cutaway) or, for cutaway footage,
several sibling Shots sharing the segment's duration: one per visual when the
script provides a ``visuals`` list, or a rotating set of shot-variety framings
when a single visual would otherwise have to carry a long, static clip.

Planning is a pure function of its input. Running it twice on identical
segments and settings yields identical shot ids, keys, prompts and durations.
"""

import logging
import math
from collections.abc import Iterable, Mapping
from typing import Union

from models.shot import RenderSettings, Route, ScriptSegment, Shot, ShotType
from services.prompts import (
    DEFAULT_CUTAWAY_VISUAL,
    GROUP_SAFETY_RAIL,
    IDENTITY_CUE,
    SHOT_VARIANTS,
    SOLO_SAFETY_RAIL,
    map_camera,
    map_style,
    needs_solo_subject,
)

logger = logging.getLogger(__name__)

# Cutaway segments longer than this are auto-split
AUTO_SPLIT_THRESHOLD_SEC = 4.0
TARGET_SUB_SHOT_SEC = 3.0

SegmentInput = Union[ScriptSegment, Mapping]


class PlanningError(Exception):
    """Raised when the script segments cannot be turned into shots."""

    pass


class ShotPlanner:
    """Turns script segments into Shots for the asset orchestrator."""

    def plan(self, segments: Iterable[SegmentInput], settings: RenderSettings) -> list[Shot]:
        """Expand segments into an ordered shot list.

        Args:
            segments: ScriptSegment objects or script JSON mappings
            settings: Render settings (route, style, camera angle)

        Returns:
            Shots in playback order

        Raises:
            PlanningError: On malformed segments, non-positive durations or
                duplicate segment ids
        """
        route = Route.parse(settings.route)
        shots: list[Shot] = []
        seen_seg_ids: set[str] = set()

        for index, raw in enumerate(segments, start=1):
            segment = self._coerce(raw, index)
            seg_id = segment.seg_id or f"SEG-{index:02d}"
            if seg_id in seen_seg_ids:
                raise PlanningError(f"Duplicate segment id {seg_id!r} at segment {index}")
            seen_seg_ids.add(seg_id)

            shot_type = self._shot_type(segment, route)
            if shot_type == ShotType.CUTAWAY:
                planned = self._plan_cutaway(segment, index, seg_id, settings)
            else:
                planned = [self._plan_on_camera(segment, index, seg_id, settings)]

            logger.debug(
                f"Segment {seg_id}: {shot_type.value}, {segment.planned_duration:.1f}s "
                f"-> {len(planned)} shot(s)"
            )
            shots.extend(planned)

        logger.info(f"Planned {len(shots)} shots from {len(seen_seg_ids)} segments ({route.value} route)")
        return shots

    @staticmethod
    def _coerce(raw: SegmentInput, index: int) -> ScriptSegment:
        if isinstance(raw, ScriptSegment):
            segment = raw
        elif isinstance(raw, Mapping):
            try:
                segment = ScriptSegment.from_dict(dict(raw))
            except (TypeError, ValueError) as e:
                raise PlanningError(f"Segment {index} is malformed: {e}")
        else:
            raise PlanningError(f"Segment {index} is not a mapping: {type(raw).__name__}")

        if not segment.has_content():
            raise PlanningError(f"Segment {index} has no dialogue, visual or action")
        if segment.planned_duration <= 0:
            raise PlanningError(
                f"Segment {index} has non-positive duration {segment.planned_duration}"
            )
        return segment

    @staticmethod
    def _shot_type(segment: ScriptSegment, route: Route) -> ShotType:
        if route == Route.ON_CAMERA:
            return ShotType.ON_CAMERA
        if route == Route.MIXED:
            return ShotType.from_track_hint(segment.track)
        return ShotType.CUTAWAY

    def _plan_cutaway(
        self, segment: ScriptSegment, index: int, seg_id: str, settings: RenderSettings
    ) -> list[Shot]:
        duration = segment.planned_duration
        style_prefix = f"Style: {map_style(settings.style)}. "

        if segment.visuals and len(segment.visuals) > 1:
            visuals = [v or DEFAULT_CUTAWAY_VISUAL for v in segment.visuals]
        elif duration > AUTO_SPLIT_THRESHOLD_SEC:
            base_visual = segment.visual or _single_visual(segment) or DEFAULT_CUTAWAY_VISUAL
            count = math.ceil(duration / TARGET_SUB_SHOT_SEC)
            visuals = [
                f"{SHOT_VARIANTS[k % len(SHOT_VARIANTS)]} of {base_visual}" for k in range(count)
            ]
            logger.debug(f"Auto-splitting {duration:.1f}s cutaway {seg_id} into {count} shots")
        else:
            visual = segment.visual or _single_visual(segment) or DEFAULT_CUTAWAY_VISUAL
            return [
                Shot(
                    id=f"S{index:02d}",
                    seg_id=seg_id,
                    shot_key=f"{seg_id}-S{index:02d}",
                    prompt=style_prefix + visual,
                    duration_sec=duration,
                    type=ShotType.CUTAWAY,
                    dialogue=segment.dialogue,
                )
            ]

        sub_duration = duration / len(visuals)
        return [
            Shot(
                id=f"S{index:02d}-{k + 1}",
                seg_id=seg_id,
                shot_key=f"{seg_id}-S{index:02d}-sub{k}",
                prompt=style_prefix + visual,
                duration_sec=sub_duration,
                type=ShotType.CUTAWAY,
                # Only the first sub-shot speaks; siblings get their length from its voice
                dialogue=segment.dialogue if k == 0 else None,
            )
            for k, visual in enumerate(visuals)
        ]

    def _plan_on_camera(
        self, segment: ScriptSegment, index: int, seg_id: str, settings: RenderSettings
    ) -> Shot:
        return Shot(
            id=f"S{index:02d}",
            seg_id=seg_id,
            shot_key=f"{seg_id}-S{index:02d}",
            prompt=self.on_camera_prompt(segment, settings),
            duration_sec=segment.planned_duration,
            type=ShotType.ON_CAMERA,
            dialogue=segment.dialogue,
        )

    @staticmethod
    def on_camera_prompt(segment: ScriptSegment, settings: RenderSettings) -> str:
        """Camera framing, then style, then action, ending with the identity cue."""
        subject_text = " ".join(
            part or "" for part in (segment.character, segment.action, segment.visual, segment.notes)
        )
        rail = SOLO_SAFETY_RAIL if needs_solo_subject(subject_text) else GROUP_SAFETY_RAIL
        parts = [
            map_camera(settings.camera_angle),
            map_style(settings.style),
            f"{rail} Add {segment.action or 'character in scene'}.",
            IDENTITY_CUE,
        ]
        return " ".join(p for p in parts if p)


def _single_visual(segment: ScriptSegment) -> str | None:
    if segment.visuals and len(segment.visuals) == 1:
        return segment.visuals[0]
    return None
