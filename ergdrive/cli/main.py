"""Terminal CLI entrypoint: play an ERG workout on simulated devices."""

from __future__ import annotations

import argparse
import asyncio
import logging
from dataclasses import replace
from pathlib import Path

from ergdrive.config import EngineConfig
from ergdrive.core.aggregator import SessionRecord
from ergdrive.core.engine import ErgEngine
from ergdrive.core.scheduler import InvalidWorkoutError, ProgressSnapshot
from ergdrive.export.artifacts import (
    export_session_csv,
    export_session_fit,
    export_session_tcx,
    save_session_json,
)
from ergdrive.workout.library import build_workout_from_template, list_templates, sample_workout
from ergdrive.workout.model import WorkoutDefinition
from ergdrive.workout.parser import WorkoutParseError, load_workout


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ERG workout player with automatic Di2 shifting")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--workout", type=Path, default=None, help="Workout file (.erg, .mrc, .zwo)")
    source.add_argument("--template", default=None, help="Built-in workout template key")
    parser.add_argument(
        "--list-templates",
        action="store_true",
        help="List built-in workout templates and exit",
    )
    parser.add_argument("--ftp", type=int, default=None, help="FTP in watts")
    parser.add_argument(
        "--tick-interval",
        type=float,
        default=None,
        help="Seconds between workout ticks (lower values fast-forward the session)",
    )
    parser.add_argument(
        "--no-auto-shift",
        action="store_true",
        help="Disable automatic gear selection",
    )
    parser.add_argument("--export-dir", type=Path, default=None, help="Where to write FIT/TCX/JSON/CSV")
    parser.add_argument("--env-file", default=None, help="Load settings from this .env file")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    return parser


def _resolve_config(args: argparse.Namespace) -> EngineConfig:
    config = EngineConfig.from_env(args.env_file)
    overrides: dict[str, object] = {}
    if args.ftp is not None:
        overrides["ftp_watts"] = args.ftp
    if args.tick_interval is not None:
        overrides["tick_interval_sec"] = args.tick_interval
    if args.no_auto_shift:
        overrides["auto_shift"] = False
    if args.export_dir is not None:
        overrides["export_dir"] = args.export_dir
    if args.debug:
        overrides["log_level"] = "DEBUG"
    return replace(config, **overrides) if overrides else config


def _resolve_workout(args: argparse.Namespace, config: EngineConfig) -> WorkoutDefinition:
    if args.workout is not None:
        return load_workout(args.workout, ftp_watts=config.ftp_watts)
    if args.template is not None:
        return build_workout_from_template(args.template, config.ftp_watts)
    return sample_workout()


def _print_progress(snapshot: ProgressSnapshot) -> None:
    minutes, seconds = divmod(snapshot.remaining_sec, 60)
    print(
        f"[{snapshot.interval_index + 1}/{snapshot.interval_total}] "
        f"{snapshot.interval_label:<14} {snapshot.phase:<8} "
        f"target {snapshot.target_watts:>4} W | actual {snapshot.actual_watts:>4} W | "
        f"remaining {minutes:02d}:{seconds:02d}"
    )


def _print_summary(record: SessionRecord) -> None:
    summary = record.summary
    status = "completed" if record.completed else "stopped"
    print(f"Workout {record.workout_name} {status} after {record.elapsed_sec}s")
    print(
        f"Power avg {summary.avg_power_watts} W / max {summary.max_power_watts} W | "
        f"HR avg {summary.avg_heart_rate_bpm} / max {summary.max_heart_rate_bpm} bpm | "
        f"Cadence avg {summary.avg_cadence_rpm} rpm"
    )
    print(f"Distance {summary.distance_km:.2f} km | Calories {summary.calories_kcal} kcal")


async def run_workout(workout: WorkoutDefinition, config: EngineConfig) -> SessionRecord | None:
    engine = ErgEngine(config)
    engine.scheduler.add_progress_listener(_print_progress)
    try:
        return await engine.run(workout)
    except asyncio.CancelledError:
        return engine.state.last_record


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()

    if args.list_templates:
        for template in list_templates():
            print(f"{template.key:<16} {template.name:<16} {template.description}")
        return 0

    try:
        config = _resolve_config(args)
    except ValueError as exc:
        parser.error(str(exc))
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        workout = _resolve_workout(args, config)
    except (WorkoutParseError, ValueError) as exc:
        print(f"Error: {exc}")
        return 1

    try:
        record = asyncio.run(run_workout(workout, config))
    except InvalidWorkoutError as exc:
        print(f"Error: {exc}")
        return 1
    except KeyboardInterrupt:
        print("Interrupted")
        return 130

    if record is None:
        return 1

    _print_summary(record)
    for path in (
        export_session_fit(record, config.export_dir),
        export_session_tcx(record, config.export_dir),
        save_session_json(record, config.export_dir),
        export_session_csv(record, config.export_dir),
    ):
        print(f"Saved {path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
