"""Session sample log and end-of-session summary statistics."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from ergdrive.core.samples import SensorSample

logger = logging.getLogger(__name__)

# Mechanical work to kilocalories.
CALORIE_WORK_FACTOR = 0.015
JOULES_PER_CALORIE = 4.184


@dataclass(frozen=True)
class SessionSummary:
    avg_power_watts: int = 0
    max_power_watts: int = 0
    avg_heart_rate_bpm: int = 0
    max_heart_rate_bpm: int = 0
    avg_cadence_rpm: int = 0
    distance_km: float = 0.0
    calories_kcal: int = 0


@dataclass(frozen=True)
class SessionRecord:
    session_id: str
    workout_name: str
    started_at: datetime
    ended_at: datetime | None
    samples: tuple[SensorSample, ...]
    summary: SessionSummary
    elapsed_sec: int
    planned_duration_sec: int
    completed: bool


@dataclass
class _ActiveSession:
    session_id: str
    workout_name: str
    started_at: datetime
    planned_duration_sec: int
    samples: list[SensorSample] = field(default_factory=list)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def summarize(samples: Sequence[SensorSample], elapsed_sec: int) -> SessionSummary:
    """Compute the session summary from a sample log and the running time."""
    if not samples:
        return SessionSummary()

    count = len(samples)
    avg_power = round_half_up(sum(s.power_watts for s in samples) / count)
    avg_heart_rate = round_half_up(sum(s.heart_rate_bpm for s in samples) / count)
    avg_cadence = round_half_up(sum(s.cadence_rpm for s in samples) / count)
    avg_speed = sum(s.speed_kmh for s in samples) / count

    return SessionSummary(
        avg_power_watts=avg_power,
        max_power_watts=max(s.power_watts for s in samples),
        avg_heart_rate_bpm=avg_heart_rate,
        max_heart_rate_bpm=max(s.heart_rate_bpm for s in samples),
        avg_cadence_rpm=avg_cadence,
        distance_km=round(avg_speed * (elapsed_sec / 3600), 2),
        calories_kcal=round_half_up(
            avg_power * elapsed_sec * CALORIE_WORK_FACTOR / JOULES_PER_CALORIE
        ),
    )


class SensorAggregator:
    def __init__(self) -> None:
        self._active: Optional[_ActiveSession] = None
        self._paused = False

    @property
    def active(self) -> bool:
        return self._active is not None

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def sample_count(self) -> int:
        return len(self._active.samples) if self._active is not None else 0

    def begin(
        self,
        *,
        session_id: str,
        workout_name: str,
        started_at: datetime,
        planned_duration_sec: int,
    ) -> None:
        if self._active is not None:
            logger.warning(
                "Discarding unfinished session %s", self._active.session_id
            )
        self._active = _ActiveSession(
            session_id=session_id,
            workout_name=workout_name,
            started_at=started_at,
            planned_duration_sec=planned_duration_sec,
        )
        self._paused = False

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def record(self, sample: SensorSample) -> bool:
        if self._active is None or self._paused:
            return False
        self._active.samples.append(sample)
        return True

    def finalize(
        self, *, ended_at: datetime, elapsed_sec: int, completed: bool
    ) -> SessionRecord | None:
        session = self._active
        if session is None:
            return None
        self._active = None
        self._paused = False

        samples = tuple(session.samples)
        summary = summarize(samples, elapsed_sec)
        logger.info(
            "Session %s finalized: %d samples, avg %dW, %.2f km, %d kcal",
            session.session_id,
            len(samples),
            summary.avg_power_watts,
            summary.distance_km,
            summary.calories_kcal,
        )
        return SessionRecord(
            session_id=session.session_id,
            workout_name=session.workout_name,
            started_at=session.started_at,
            ended_at=ended_at,
            samples=samples,
            summary=summary,
            elapsed_sec=elapsed_sec,
            planned_duration_sec=session.planned_duration_sec,
            completed=completed,
        )
