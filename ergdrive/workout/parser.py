"""Workout file parser (ERG/MRC interval tables and Zwift ZWO segments)."""

from __future__ import annotations

import logging
import math
import xml.etree.ElementTree as ET
from pathlib import Path

from ergdrive.workout.model import Interval, WorkoutDefinition

logger = logging.getLogger(__name__)

DEFAULT_FTP_WATTS = 250

FALLBACK_DURATION_SEC = 3600
FALLBACK_TARGET_WATTS = 200
FALLBACK_LABEL = "Steady state workout"

_ZWO_DEFAULT_DURATION_SEC = 300
_ZWO_DEFAULT_POWER = 0.6
_ZWO_MAX_REPEAT = 50
_ZWO_SEGMENTS = {"Warmup", "Cooldown", "Ramp", "SteadyState", "IntervalsT", "FreeRide"}


class WorkoutParseError(ValueError):
    """Raised when a workout file cannot be read at all."""


def load_workout(path: str | Path, ftp_watts: int = DEFAULT_FTP_WATTS) -> WorkoutDefinition:
    file_path = Path(path)
    suffix = file_path.suffix.lower()
    if suffix not in {".erg", ".mrc", ".zwo"}:
        raise WorkoutParseError(
            f"Unsupported workout format '{file_path.suffix}'. Use .erg, .mrc or .zwo"
        )

    try:
        text = file_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise WorkoutParseError(f"Unable to read workout file {file_path}: {exc}") from exc

    if suffix == ".zwo":
        return parse_zwo_text(text, ftp_watts=ftp_watts, default_name=file_path.stem)
    return parse_erg_text(text, ftp_watts=ftp_watts, default_name=file_path.stem)


def parse_erg_text(
    text: str,
    ftp_watts: int = DEFAULT_FTP_WATTS,
    default_name: str = "Unknown Workout",
) -> WorkoutDefinition:
    """Parse an interval table where each [COURSE DATA] row is `minutes<ws>percent_ftp`.

    Malformed or empty input never raises: it yields the single-interval fallback.
    """
    name = default_name
    description = ""
    intervals: list[Interval] = []

    lines = [line.strip() for line in text.splitlines()]
    in_course_data = False
    for line in lines:
        if in_course_data:
            if not line or line.startswith("["):
                break
            interval = _parse_erg_row(line, ftp_watts)
            if interval is not None:
                intervals.append(interval)
            continue

        if line.startswith("NAME="):
            name = line[len("NAME="):].strip() or default_name
        elif line.startswith("DESCRIPTION="):
            description = line[len("DESCRIPTION="):].strip()
        elif line.startswith("[COURSE DATA]"):
            in_course_data = True

    return _build_workout(name=name, description=description, intervals=intervals)


def parse_zwo_text(
    text: str,
    ftp_watts: int = DEFAULT_FTP_WATTS,
    default_name: str = "Zwift Workout",
) -> WorkoutDefinition:
    """Parse a Zwift workout document; malformed XML yields the fallback workout."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        logger.warning("Invalid ZWO document (%s), using fallback workout", exc)
        return _build_workout(name=default_name, description="", intervals=[])

    name = (root.findtext("name") or "").strip() or default_name
    description = (root.findtext("description") or "").strip()
    segments_root = root.find("workout")
    intervals: list[Interval] = []
    if segments_root is not None:
        for segment in segments_root:
            if segment.tag not in _ZWO_SEGMENTS:
                continue
            try:
                intervals.extend(_parse_zwo_segment(segment, ftp_watts))
            except ValueError as exc:
                logger.warning("Skipping ZWO segment <%s>: %s", segment.tag, exc)

    return _build_workout(name=name, description=description, intervals=intervals)


def intensity_label(percent_ftp: float) -> str:
    if percent_ftp < 60:
        return "Recovery"
    if percent_ftp < 75:
        return "Endurance"
    if percent_ftp < 90:
        return "Tempo"
    if percent_ftp < 105:
        return "Threshold"
    if percent_ftp < 120:
        return "VO2 Max"
    return "Neuromuscular"


def fallback_workout(name: str = "Unknown Workout", description: str = "") -> WorkoutDefinition:
    return WorkoutDefinition(
        name=name,
        description=description,
        intervals=(
            Interval(
                duration_sec=FALLBACK_DURATION_SEC,
                target_watts=FALLBACK_TARGET_WATTS,
                label=FALLBACK_LABEL,
            ),
        ),
    )


def _parse_erg_row(line: str, ftp_watts: int) -> Interval | None:
    parts = line.split()
    if len(parts) < 2:
        return None
    try:
        minutes = float(parts[0])
        percent = float(parts[1])
    except ValueError:
        return None

    seconds = minutes * 60
    watts = percent * ftp_watts / 100.0
    if not (math.isfinite(seconds) and math.isfinite(watts)):
        return None
    duration_sec = int(round(seconds))
    if duration_sec <= 0 or percent < 0:
        return None
    return Interval(
        duration_sec=duration_sec,
        target_watts=int(round(watts)),
        label=intensity_label(percent),
    )


def _parse_zwo_segment(segment: ET.Element, ftp_watts: int) -> list[Interval]:
    if segment.tag == "IntervalsT" and segment.get("OnDuration") is not None:
        repeat = int(_float_attr(segment, "Repeat", 1.0))
        if repeat > _ZWO_MAX_REPEAT:
            logger.warning("Capping IntervalsT Repeat=%d at %d", repeat, _ZWO_MAX_REPEAT)
            repeat = _ZWO_MAX_REPEAT
        on_duration = int(round(_float_attr(segment, "OnDuration", _ZWO_DEFAULT_DURATION_SEC)))
        off_duration = int(round(_float_attr(segment, "OffDuration", 0.0)))
        on_power = _float_attr(segment, "OnPower", _ZWO_DEFAULT_POWER)
        off_power = _float_attr(segment, "OffPower", _ZWO_DEFAULT_POWER)
        out: list[Interval] = []
        for _ in range(max(1, repeat)):
            out.extend(_zwo_interval(on_duration, on_power, ftp_watts))
            out.extend(_zwo_interval(off_duration, off_power, ftp_watts))
        return out

    duration = int(round(_float_attr(segment, "Duration", _ZWO_DEFAULT_DURATION_SEC)))
    if segment.get("Power") is not None:
        power = _float_attr(segment, "Power", _ZWO_DEFAULT_POWER)
    elif segment.get("PowerLow") is not None and segment.get("PowerHigh") is not None:
        power = (_float_attr(segment, "PowerLow", 0.0) + _float_attr(segment, "PowerHigh", 0.0)) / 2
    else:
        power = _ZWO_DEFAULT_POWER
    return _zwo_interval(duration, power, ftp_watts)


def _zwo_interval(duration_sec: int, power_ftp: float, ftp_watts: int) -> list[Interval]:
    watts = power_ftp * ftp_watts
    if not math.isfinite(watts):
        raise ValueError(f"power {power_ftp!r} out of range")
    if duration_sec <= 0:
        return []
    return [
        Interval(
            duration_sec=duration_sec,
            target_watts=max(0, int(round(watts))),
            label=intensity_label(power_ftp * 100),
        )
    ]


def _float_attr(element: ET.Element, name: str, default: float) -> float:
    raw = element.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"invalid {name}={raw!r}") from exc
    if not math.isfinite(value):
        raise ValueError(f"invalid {name}={raw!r}")
    return value


def _build_workout(
    *, name: str, description: str, intervals: list[Interval]
) -> WorkoutDefinition:
    if not intervals:
        logger.warning("No usable intervals in '%s', using fallback workout", name)
        return fallback_workout(name=name, description=description)
    return WorkoutDefinition(name=name, description=description, intervals=tuple(intervals))
