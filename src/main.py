"""Main application entry point for shotreel."""

import argparse
import asyncio
import json
import logging
import sys
import uuid
from pathlib import Path
from typing import Optional

from rich.console import Console
from tqdm import tqdm

from models.shot import RenderSettings
from models.timeline import Timeline
from reel_agent.director import DirectorOptions, build_composer, build_director
from reel_agent.planner import ShotPlanner
from utils.config import load_config, setup_logging, validate_config

logger = logging.getLogger(__name__)
console = Console()


class ProgressBarCallback:
    """Drives a single tqdm bar from (percent, message) progress events."""

    def __init__(self):
        self.bar: Optional[tqdm] = None

    def __call__(self, percent: int, message: str) -> None:
        if self.bar is None:
            self.bar = tqdm(
                total=100,
                desc="Overall Progress",
                unit="%",
                leave=True,
                bar_format="{l_bar}{bar}| {n:.0f}/{total:.0f}% [{elapsed}]",
            )
        # Failure events report 0; keep the bar where it was
        if percent > self.bar.n:
            self.bar.n = percent
        self.bar.set_description(message[:40])
        self.bar.refresh()

    def close(self) -> None:
        if self.bar:
            self.bar.close()


def load_script(path: Path) -> tuple[list[dict], dict]:
    """Read a script file: a list of segments or ``{"segments": [...], ...}``.

    Returns the segments and any top-level settings in the file.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, list):
        return data, {}
    if isinstance(data, dict) and isinstance(data.get("segments"), list):
        extras = {k: v for k, v in data.items() if k != "segments"}
        return data["segments"], extras
    raise ValueError(f"{path} must contain a list of segments or an object with 'segments'")


def build_settings(args: argparse.Namespace, extras: dict) -> RenderSettings:
    """Command-line flags win over settings stored in the script file."""

    def pick(flag: Optional[str], key: str) -> Optional[str]:
        return flag if flag is not None else extras.get(key)

    return RenderSettings.for_aspect_ratio(
        pick(args.aspect_ratio, "aspectRatio") or "16:9",
        route=pick(args.route, "route"),
        style=pick(args.style, "style"),
        camera_angle=pick(args.camera_angle, "cameraAngle"),
        character_image=pick(getattr(args, "character_image", None), "characterImage"),
        setting_image=pick(getattr(args, "setting_image", None), "settingImage"),
        voice_id=pick(getattr(args, "voice_id", None), "voiceId"),
        voice_url=pick(getattr(args, "voice_url", None), "voiceUrl"),
    )


def cmd_plan(args: argparse.Namespace) -> int:
    segments, extras = load_script(Path(args.script))
    shots = ShotPlanner().plan(segments, build_settings(args, extras))
    console.print_json(json.dumps([s.to_dict() for s in shots]))
    return 0


async def cmd_run(args: argparse.Namespace, config: dict) -> int:
    segments, extras = load_script(Path(args.script))
    settings = build_settings(args, extras)
    options = DirectorOptions(
        title=args.title or extras.get("title"),
        music_enabled=args.music,
        music_label=args.music_label,
        music_prompt=args.music_prompt,
        captions=args.captions,
        upscale=args.upscale,
    )

    job_id = args.job_id or uuid.uuid4().hex[:12]
    progress = ProgressBarCallback()
    director = build_director(config, job_id, on_progress=progress)
    try:
        result = await director.run(segments, settings, options)
    finally:
        progress.close()
        await director.close()

    if args.save_timeline:
        Path(args.save_timeline).write_text(
            json.dumps(result.timeline.to_dict(), indent=2), encoding="utf-8"
        )
        console.print(f"Timeline saved to {args.save_timeline}")

    console.print(f"[bold green]Video ready:[/bold green] {result.video_url}")
    return 0


async def cmd_render(args: argparse.Namespace, config: dict) -> int:
    data = json.loads(Path(args.timeline).read_text(encoding="utf-8"))
    timeline = Timeline.from_dict(data)

    job_id = args.job_id or uuid.uuid4().hex[:12]
    composer = build_composer(config, job_id)
    try:
        url = await composer.render(timeline)
    finally:
        await composer.close()

    console.print(f"[bold green]Video ready:[/bold green] {url}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="shotreel - script to finished video",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  shotreel plan script.json --route mixed       # Print the shot list
  shotreel run script.json --title "My Video"   # Generate and render
  shotreel render timeline.json                 # Re-render a saved timeline
        """,
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_settings_flags(p: argparse.ArgumentParser) -> None:
        p.add_argument("script", help="Script JSON file")
        p.add_argument("--route", default=None, help="on_camera | cutaway | mixed")
        p.add_argument("--aspect-ratio", default=None, help="16:9 (default) or 9:16")
        p.add_argument("--style", default=None, help="Visual style label")
        p.add_argument("--camera-angle", default=None, help="Camera angle label")

    plan_parser = sub.add_parser("plan", help="Print the planned shot list")
    add_settings_flags(plan_parser)

    run_parser = sub.add_parser("run", help="Generate assets and render a video")
    add_settings_flags(run_parser)
    run_parser.add_argument("--title", default=None)
    run_parser.add_argument("--character-image", default=None, help="Character reference image URL")
    run_parser.add_argument("--setting-image", default=None, help="Setting reference image URL")
    run_parser.add_argument("--voice-id", default=None)
    run_parser.add_argument("--voice-url", default=None, help="Reference audio URL for voice cloning")
    run_parser.add_argument("--music", action="store_true", help="Add a generated music bed")
    run_parser.add_argument("--music-label", default=None, help="Music genre label")
    run_parser.add_argument("--music-prompt", default=None)
    run_parser.add_argument("--captions", action="store_true", help="Burn in word-highlight captions")
    run_parser.add_argument("--upscale", action="store_true", help="2x upscale the finished video")
    run_parser.add_argument("--save-timeline", default=None, help="Write the timeline JSON here")
    run_parser.add_argument("--job-id", default=None)

    render_parser = sub.add_parser("render", help="Render a saved timeline JSON")
    render_parser.add_argument("timeline", help="Timeline JSON file")
    render_parser.add_argument("--job-id", default=None)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    config = load_config()
    setup_logging(args.log_level or config.get("log_level", "INFO"))

    if args.command == "plan":
        try:
            return cmd_plan(args)
        except Exception as e:
            logger.error(f"Planning failed: {e}")
            return 1

    errors = validate_config(config, generation=(args.command == "run"))
    if errors:
        for error in errors:
            console.print(f"[red]Config error:[/red] {error}")
        return 1

    command = cmd_run if args.command == "run" else cmd_render
    try:
        return asyncio.run(command(args, config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
