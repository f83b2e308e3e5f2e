"""Interval progression state machine for ERG workout playback."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Literal, Optional
from uuid import uuid4

from ergdrive.core.aggregator import SensorAggregator, SessionRecord
from ergdrive.core.listeners import ListenerRegistry
from ergdrive.core.samples import SensorSample, apply_sensor_update
from ergdrive.core.timer import PeriodicTimer
from ergdrive.workout.model import Interval, WorkoutDefinition

logger = logging.getLogger(__name__)

Phase = Literal["warmup", "main", "interval", "recovery", "cooldown"]
SchedulerState = Literal["idle", "running", "paused", "finished"]

RECOVERY_BELOW_WATTS = 150
INTERVAL_ABOVE_WATTS = 250


class InvalidWorkoutError(ValueError):
    """Raised when a workout cannot be started."""


@dataclass(frozen=True)
class ProgressSnapshot:
    interval_index: int
    interval_total: int
    interval_label: str
    interval_elapsed_sec: int
    interval_remaining_sec: int
    elapsed_sec: int
    remaining_sec: int
    total_time_sec: int
    phase: Phase
    target_watts: int
    actual_watts: int
    target_cadence_rpm: int | None = None


ProgressListener = Callable[[ProgressSnapshot], None]
DataListener = Callable[[SensorSample], None]
FinishListener = Callable[[SessionRecord], None]
TickListener = Callable[[Interval], None]


def derive_phase(interval_index: int, interval_total: int, target_watts: float) -> Phase:
    if interval_index == 0:
        return "warmup"
    if interval_index == interval_total - 1:
        return "cooldown"
    if target_watts < RECOVERY_BELOW_WATTS:
        return "recovery"
    if target_watts > INTERVAL_ABOVE_WATTS:
        return "interval"
    return "main"


def validate_workout(workout: WorkoutDefinition) -> None:
    if not workout.intervals:
        raise InvalidWorkoutError(f"Workout '{workout.name}' has no intervals")
    for index, interval in enumerate(workout.intervals, start=1):
        if interval.duration_sec <= 0:
            raise InvalidWorkoutError(f"Interval {index}: duration_sec must be > 0")
        if interval.target_watts < 0:
            raise InvalidWorkoutError(f"Interval {index}: target_watts must be >= 0")


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class IntervalScheduler:
    """Advances a workout one second per tick and records the session.

    With `tick_interval_sec` set, `start`/`resume` run an internal
    `PeriodicTimer` (requires a running asyncio loop). Without it, an external
    clock drives the scheduler by calling `tick()`.
    """

    def __init__(
        self,
        aggregator: SensorAggregator | None = None,
        tick_interval_sec: float | None = None,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._aggregator = aggregator or SensorAggregator()
        self._tick_interval_sec = tick_interval_sec
        self._now = now
        self._state: SchedulerState = "idle"
        self._workout: Optional[WorkoutDefinition] = None
        self._session_id: Optional[str] = None
        self._timer: Optional[PeriodicTimer] = None
        self._elapsed_sec = 0
        self._interval_index = 0
        self._interval_elapsed_sec = 0
        self._completed = False
        self._latest_sample = SensorSample()
        self._progress_listeners: ListenerRegistry[ProgressSnapshot] = ListenerRegistry("progress")
        self._data_listeners: ListenerRegistry[SensorSample] = ListenerRegistry("data")
        self._finish_listeners: ListenerRegistry[SessionRecord] = ListenerRegistry("finish")
        self._tick_listeners: ListenerRegistry[Interval] = ListenerRegistry("tick")

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == "running"

    @property
    def elapsed_sec(self) -> int:
        return self._elapsed_sec

    @property
    def interval_index(self) -> int:
        return self._interval_index

    @property
    def workout(self) -> Optional[WorkoutDefinition]:
        return self._workout

    @property
    def latest_sample(self) -> SensorSample:
        return self._latest_sample

    @property
    def sample_count(self) -> int:
        return self._aggregator.sample_count

    @property
    def timer_active(self) -> bool:
        return self._timer is not None and self._timer.active

    def start(self, workout: WorkoutDefinition) -> None:
        if self._state in ("running", "paused"):
            raise RuntimeError("Workout already running")
        validate_workout(workout)
        if self._tick_interval_sec is not None:
            # Fail before mutating anything when no loop can host the timer.
            asyncio.get_running_loop()

        self._workout = workout
        self._session_id = f"workout_{uuid4().hex}"
        self._elapsed_sec = 0
        self._interval_index = 0
        self._interval_elapsed_sec = 0
        self._completed = False
        self._aggregator.begin(
            session_id=self._session_id,
            workout_name=workout.name,
            started_at=self._now(),
            planned_duration_sec=workout.total_time_sec,
        )
        self._state = "running"
        self._start_timer()
        logger.info(
            "Started workout: %s (%d intervals, %ds)",
            workout.name,
            len(workout.intervals),
            workout.total_time_sec,
        )

    def pause(self) -> None:
        if self._state != "running":
            return
        self._cancel_timer()
        self._aggregator.pause()
        self._state = "paused"
        logger.info("Workout paused at %ds", self._elapsed_sec)

    def resume(self) -> None:
        if self._state != "paused":
            return
        self._aggregator.resume()
        self._state = "running"
        self._start_timer()
        logger.info("Workout resumed at %ds", self._elapsed_sec)

    def stop(self) -> SessionRecord | None:
        if self._state not in ("running", "paused"):
            return None
        self._cancel_timer()
        record = self._aggregator.finalize(
            ended_at=self._now(),
            elapsed_sec=self._elapsed_sec,
            completed=self._completed,
        )
        self._state = "finished"
        self._workout = None
        self._session_id = None
        logger.info(
            "Workout %s at %ds", "completed" if self._completed else "stopped", self._elapsed_sec
        )
        if record is not None:
            self._finish_listeners.notify(record)
        return record

    def tick(self) -> ProgressSnapshot | None:
        if self._state != "running" or self._workout is None:
            return None
        workout = self._workout

        self._elapsed_sec += 1
        self._interval_elapsed_sec += 1
        interval = workout.intervals[self._interval_index]
        if self._interval_elapsed_sec >= interval.duration_sec:
            if self._interval_index + 1 < len(workout.intervals):
                self._interval_index += 1
                self._interval_elapsed_sec = 0
                logger.info(
                    "Moving to interval %d/%d",
                    self._interval_index + 1,
                    len(workout.intervals),
                )
            else:
                self._completed = True

        self._tick_listeners.notify(workout.intervals[self._interval_index])
        if self._state != "running":
            return None
        self._aggregator.record(self._latest_sample)
        snapshot = self._snapshot(workout)
        self._progress_listeners.notify(snapshot)

        if self._completed:
            self.stop()
        return snapshot

    def update_sensor_data(self, **changes: Any) -> SensorSample:
        self._latest_sample = apply_sensor_update(self._latest_sample, **changes)
        self._data_listeners.notify(self._latest_sample)
        return self._latest_sample

    def current_progress(self) -> ProgressSnapshot | None:
        if self._workout is None or self._state not in ("running", "paused"):
            return None
        return self._snapshot(self._workout)

    def add_progress_listener(self, callback: ProgressListener) -> ProgressListener:
        return self._progress_listeners.add(callback)

    def remove_progress_listener(self, callback: ProgressListener) -> bool:
        return self._progress_listeners.remove(callback)

    def add_data_listener(self, callback: DataListener) -> DataListener:
        return self._data_listeners.add(callback)

    def remove_data_listener(self, callback: DataListener) -> bool:
        return self._data_listeners.remove(callback)

    def add_tick_listener(self, callback: TickListener) -> TickListener:
        """Called with the current interval after the clock advances and before
        the sample is recorded, so readings fed through `update_sensor_data`
        land in this tick's sample."""
        return self._tick_listeners.add(callback)

    def remove_tick_listener(self, callback: TickListener) -> bool:
        return self._tick_listeners.remove(callback)

    def add_finish_listener(self, callback: FinishListener) -> FinishListener:
        return self._finish_listeners.add(callback)

    def remove_finish_listener(self, callback: FinishListener) -> bool:
        return self._finish_listeners.remove(callback)

    def _snapshot(self, workout: WorkoutDefinition) -> ProgressSnapshot:
        total = workout.total_time_sec
        index = self._interval_index
        interval = workout.intervals[index]
        interval_elapsed = interval.duration_sec if self._completed else self._interval_elapsed_sec
        return ProgressSnapshot(
            interval_index=index,
            interval_total=len(workout.intervals),
            interval_label=interval.label or f"Interval {index + 1}",
            interval_elapsed_sec=interval_elapsed,
            interval_remaining_sec=interval.duration_sec - interval_elapsed,
            elapsed_sec=self._elapsed_sec,
            remaining_sec=total - self._elapsed_sec,
            total_time_sec=total,
            phase=derive_phase(index, len(workout.intervals), interval.target_watts),
            target_watts=interval.target_watts,
            actual_watts=self._latest_sample.power_watts,
            target_cadence_rpm=interval.target_cadence_rpm,
        )

    def _start_timer(self) -> None:
        if self._tick_interval_sec is None:
            return
        self._cancel_timer()
        self._timer = PeriodicTimer(self._tick_interval_sec, self.tick)
        self._timer.start()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
