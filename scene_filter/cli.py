#!/usr/bin/env python3
"""
Scene Filter - CLI Entry Point

Inspect and edit the local segment database, move it between machines,
adjust filter settings, and pre-scan subtitle files for candidate scenes.

Usage:
    scene-filter segments tt0111161
    scene-filter add tt0111161 120.5 131 sexual
    scene-filter export backup.json
    scene-filter import backup.json --policy prefer-imported
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .config import Config
from .detection import scan_subtitles
from .error_handler import UserFriendlyError, get_friendly_message, safe_operation
from .segments import (
    MergePolicy,
    PlaybackAction,
    SafeMode,
    Segment,
    effective_action,
    filter_auto_apply,
    threshold,
)
from .service import SceneFilterService
from .storage import JsonFileStore

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = Path.home() / ".scenefilter" / "config.yaml"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="scene-filter",
        description="Manage scene segments for filtered movie playback",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  scene-filter segments tt0111161
  scene-filter add tt0111161 120.5 131 nudity
  scene-filter remove tt0111161 0
  scene-filter settings --safe-mode STRICT --threshold 80
  scene-filter detect movie.en.srt tt0111161
        """
    )

    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help="Path to configuration YAML file"
    )

    parser.add_argument(
        "--store",
        type=Path,
        default=None,
        help="Path to the JSON segment store (overrides the config)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Only log warnings and errors"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    segments = commands.add_parser("segments", help="Show merged segments for a movie")
    segments.add_argument("movie_id", help="IMDb id, e.g. tt0111161")

    add = commands.add_parser("add", help="Add a manual segment")
    add.add_argument("movie_id")
    add.add_argument("start", type=float, help="Start time in seconds")
    add.add_argument("end", type=float, help="End time in seconds")
    add.add_argument("type", choices=["sexual", "nudity"])

    remove = commands.add_parser("remove", help="Remove a manual segment by index")
    remove.add_argument("movie_id")
    remove.add_argument("index", type=int, help="Index in the movie's manual segment list")

    export = commands.add_parser("export", help="Export local segments to a JSON file")
    export.add_argument("file", type=Path)

    import_ = commands.add_parser("import", help="Merge local segments from a JSON export")
    import_.add_argument("file", type=Path)
    import_.add_argument(
        "--policy",
        default=MergePolicy.PREFER_EXISTING.value,
        help="prefer-existing, prefer-imported or keep-both (default: prefer-existing)"
    )

    settings = commands.add_parser("settings", help="Show or change filter settings")
    settings.add_argument(
        "--safe-mode",
        type=str.upper,
        choices=[mode.value for mode in SafeMode],
        default=None,
    )
    settings.add_argument(
        "--threshold",
        type=float,
        default=None,
        help="Confidence threshold (0-100); can only raise the safe mode floor"
    )

    detect = commands.add_parser("detect", help="Scan a subtitle file for candidate scenes")
    detect.add_argument("srt", type=Path, help="SRT subtitle file")
    detect.add_argument("movie_id", nargs="?", default=None,
                        help="Store candidates for this movie as detector segments")

    return parser.parse_args(argv)


def _format_segment(index: int, segment: Segment, action: Optional[PlaybackAction] = None) -> str:
    confidence = getattr(segment, "effective_confidence", segment.confidence_score)
    line = (
        f"{index:>3}  {segment.start:>9.3f} - {segment.end:<9.3f} "
        f"{segment.type.value:<7} {segment.source_type.value:<9} conf {confidence:>3}"
    )
    if action is not None:
        line += f"  -> {action.value}"
    return line


def cmd_segments(service: SceneFilterService, args: argparse.Namespace) -> int:
    """Print the merged list; auto-applied segments show their playback action."""
    state = service.state()
    segments = service.merged_segments(args.movie_id, state)
    auto_ids = {s.segment_id for s in filter_auto_apply(segments, state)}

    print(f"Segments for {args.movie_id} (source: {service.active_source}, threshold: {threshold(state)})")
    if not segments:
        print("  none")
        return 0
    for index, segment in enumerate(segments):
        action = effective_action(segment, state) if segment.segment_id in auto_ids else None
        print(_format_segment(index, segment, action))
    return 0


def cmd_add(service: SceneFilterService, args: argparse.Namespace) -> int:
    result = service.add_user_segment(args.movie_id, {
        "start": args.start,
        "end": args.end,
        "type": args.type,
    })
    if not result.ok:
        print(f"Error: {result.error}")
        return 1
    print(f"Added {args.type} segment {args.start:.3f}-{args.end:.3f} to {args.movie_id}")
    return 0


def cmd_remove(service: SceneFilterService, args: argparse.Namespace) -> int:
    result = service.remove_user_segment(args.movie_id, args.index)
    if not result.ok:
        print(f"Error: {result.error}")
        return 1
    print(f"Removed manual segment {args.index} from {args.movie_id}")
    return 0


@safe_operation("export")
def cmd_export(service: SceneFilterService, args: argparse.Namespace) -> int:
    payload = service.export_local_db()["payload"]
    args.file.parent.mkdir(parents=True, exist_ok=True)
    with open(args.file, 'w', encoding='utf-8') as f:
        json.dump(payload, f, indent=2)

    movies = set(payload["userSegmentsByMovieId"]) | set(payload["localAiSegmentsByMovieId"])
    print(f"Exported {len(movies)} movies to {args.file}")
    return 0


@safe_operation("import")
def cmd_import(service: SceneFilterService, args: argparse.Namespace) -> int:
    with open(args.file, 'r', encoding='utf-8') as f:
        payload = json.load(f)

    result = service.import_local_db(payload, args.policy)
    if not result.ok:
        print(f"Error: {result.error}")
        return 1

    summary = result["summary"]
    print(
        f"Imported {summary['movies']} movies ({summary['strategy']}): "
        f"{summary['added']} added, {summary['replaced']} replaced, {summary['skipped']} skipped"
    )
    return 0


def cmd_settings(service: SceneFilterService, args: argparse.Namespace) -> int:
    updates = {}
    if args.safe_mode is not None:
        updates["safe_mode"] = args.safe_mode
    if args.threshold is not None:
        updates["confidence_threshold"] = args.threshold
    if updates:
        service.save_settings(updates)

    state = service.state()
    print(f"Safe mode:            {state.safe_mode}")
    print(f"Confidence threshold: {state.confidence_threshold:g} (effective {threshold(state)})")
    print(f"Community sync:       {'on' if state.community_sync_enabled else 'off'}")
    print(f"Adaptive mode:        {'on' if state.adaptive_mode else 'off'}")
    print(f"Audio only:           {'on' if state.audio_only_mode else 'off'}")
    for category, action in state.category_actions.items():
        print(f"Action for {category + ':':<10} {action}")
    return 0


@safe_operation("subtitle scan")
def cmd_detect(service: SceneFilterService, args: argparse.Namespace) -> int:
    if not args.srt.exists():
        print(f"Error: subtitle file not found: {args.srt}")
        return 1

    candidates = scan_subtitles(args.srt, service.detector_config)
    for index, segment in enumerate(candidates):
        print(_format_segment(index, segment))

    if args.movie_id:
        result = service.add_heuristic_segments(args.movie_id, candidates)
        if not result.ok:
            print(f"Error: {result.error}")
            return 1
        print(f"Stored {result.get('added', 0)} new detector segments for {args.movie_id}")
    else:
        print(f"Found {len(candidates)} candidate segments")
    return 0


COMMANDS = {
    "segments": cmd_segments,
    "add": cmd_add,
    "remove": cmd_remove,
    "export": cmd_export,
    "import": cmd_import,
    "settings": cmd_settings,
    "detect": cmd_detect,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    config_path = args.config
    if config_path is None and DEFAULT_CONFIG.exists():
        config_path = DEFAULT_CONFIG
    config = Config.load(config_path)

    if args.verbose:
        config.logging.level = "DEBUG"
        config.logging.debug_mode = True
    elif args.quiet:
        config.logging.level = "WARNING"
    config.setup_logging()

    store = JsonFileStore(args.store) if args.store else None
    service = SceneFilterService.from_config(config, store=store)

    try:
        service.ensure_defaults()
        return COMMANDS[args.command](service, args)
    except UserFriendlyError as e:
        logger.debug(f"{args.command} failed: {e.technical_message}")
        print(f"Error: {e.user_message}")
        return 1
    except (OSError, ValueError) as e:
        title, message = get_friendly_message(e)
        logger.error(f"{args.command} failed: {e}")
        print(f"{title}: {message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
