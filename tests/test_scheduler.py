from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest

from ergdrive.core.aggregator import SessionRecord
from ergdrive.core.scheduler import (
    IntervalScheduler,
    InvalidWorkoutError,
    ProgressSnapshot,
    derive_phase,
)
from ergdrive.workout.model import Interval, WorkoutDefinition


def _workout(*intervals: tuple[int, int]) -> WorkoutDefinition:
    return WorkoutDefinition(
        name="Test",
        intervals=tuple(Interval(duration, watts) for duration, watts in intervals),
    )


def _fixed_clock() -> tuple[list[datetime], Callable[[], datetime]]:
    current = [datetime(2026, 3, 1, 7, 0, tzinfo=timezone.utc)]

    def now() -> datetime:
        return current[0]

    return current, now


def test_finishes_after_total_ticks() -> None:
    scheduler = IntervalScheduler()
    records: list[SessionRecord] = []
    scheduler.add_finish_listener(records.append)

    scheduler.start(_workout((3, 120), (2, 200)))
    for _ in range(5):
        scheduler.tick()

    assert scheduler.state == "finished"
    assert scheduler.elapsed_sec == 5
    assert len(records) == 1
    assert records[0].completed is True
    assert records[0].elapsed_sec == 5
    assert len(records[0].samples) == 5


def test_final_snapshot_reports_zero_remaining() -> None:
    scheduler = IntervalScheduler()
    snapshots: list[ProgressSnapshot] = []
    scheduler.add_progress_listener(snapshots.append)

    scheduler.start(_workout((3, 120), (2, 200)))
    for _ in range(5):
        scheduler.tick()

    assert [s.elapsed_sec for s in snapshots] == [1, 2, 3, 4, 5]
    assert all(s.elapsed_sec + s.remaining_sec == 5 for s in snapshots)
    assert snapshots[-1].remaining_sec == 0
    assert snapshots[-1].interval_index == 1
    assert snapshots[-1].interval_remaining_sec == 0


def test_interval_boundary_scenario() -> None:
    scheduler = IntervalScheduler()
    scheduler.start(_workout((600, 150), (300, 250), (180, 120)))

    snapshot = None
    for _ in range(600):
        snapshot = scheduler.tick()

    assert snapshot is not None
    assert scheduler.interval_index == 1
    assert snapshot.interval_index == 1
    assert snapshot.phase == "main"
    assert snapshot.target_watts == 250
    assert snapshot.elapsed_sec + snapshot.remaining_sec == 1080


def test_ticks_after_finish_are_ignored() -> None:
    scheduler = IntervalScheduler()
    scheduler.start(_workout((2, 100)))
    scheduler.tick()
    scheduler.tick()

    assert scheduler.tick() is None
    assert scheduler.elapsed_sec == 2
    assert scheduler.stop() is None


def test_paused_ticks_do_not_append_samples() -> None:
    scheduler = IntervalScheduler()
    scheduler.start(_workout((60, 150)))

    for _ in range(3):
        scheduler.tick()
    scheduler.pause()
    for _ in range(5):
        assert scheduler.tick() is None
    assert scheduler.sample_count == 3
    assert scheduler.elapsed_sec == 3

    scheduler.resume()
    scheduler.tick()
    scheduler.tick()

    record = scheduler.stop()
    assert record is not None
    assert len(record.samples) == 5
    assert record.elapsed_sec == 5
    assert record.completed is False


def test_pause_and_stop_are_idempotent() -> None:
    scheduler = IntervalScheduler()
    scheduler.start(_workout((60, 150)))
    scheduler.tick()

    scheduler.pause()
    scheduler.pause()
    assert scheduler.state == "paused"

    scheduler.resume()
    scheduler.resume()
    assert scheduler.state == "running"

    assert scheduler.stop() is not None
    assert scheduler.stop() is None
    assert scheduler.state == "finished"


def test_ordering_violations_are_noops() -> None:
    scheduler = IntervalScheduler()
    scheduler.pause()
    scheduler.resume()
    assert scheduler.stop() is None
    assert scheduler.tick() is None
    assert scheduler.state == "idle"
    assert scheduler.current_progress() is None


def test_start_rejects_invalid_workouts() -> None:
    scheduler = IntervalScheduler()

    with pytest.raises(InvalidWorkoutError):
        scheduler.start(WorkoutDefinition(name="Empty", intervals=()))
    with pytest.raises(InvalidWorkoutError):
        scheduler.start(_workout((60, 150), (0, 200)))

    assert scheduler.state == "idle"
    assert scheduler.workout is None


def test_start_while_running_raises() -> None:
    scheduler = IntervalScheduler()
    scheduler.start(_workout((60, 150)))

    with pytest.raises(RuntimeError):
        scheduler.start(_workout((30, 100)))


def test_restart_creates_new_record() -> None:
    scheduler = IntervalScheduler()
    scheduler.start(_workout((2, 150)))
    scheduler.tick()
    first = scheduler.stop()

    scheduler.start(_workout((2, 150)))
    assert scheduler.elapsed_sec == 0
    scheduler.tick()
    scheduler.tick()

    assert scheduler.state == "finished"
    assert first is not None
    assert len(first.samples) == 1


def test_record_times_come_from_clock() -> None:
    current, now = _fixed_clock()
    scheduler = IntervalScheduler(now=now)
    scheduler.start(_workout((60, 150)))
    current[0] = current[0] + timedelta(minutes=5)

    record = scheduler.stop()

    assert record is not None
    assert record.started_at == datetime(2026, 3, 1, 7, 0, tzinfo=timezone.utc)
    assert record.ended_at == datetime(2026, 3, 1, 7, 5, tzinfo=timezone.utc)
    assert record.session_id.startswith("workout_")
    assert record.planned_duration_sec == 60


def test_derive_phase() -> None:
    assert derive_phase(0, 5, 300) == "warmup"
    assert derive_phase(4, 5, 300) == "cooldown"
    assert derive_phase(2, 5, 149) == "recovery"
    assert derive_phase(2, 5, 150) == "main"
    assert derive_phase(2, 5, 250) == "main"
    assert derive_phase(2, 5, 251) == "interval"
    assert derive_phase(0, 1, 200) == "warmup"


def test_update_sensor_data_merges_and_is_recorded() -> None:
    scheduler = IntervalScheduler()
    seen: list[int] = []
    scheduler.add_data_listener(lambda sample: seen.append(sample.power_watts))

    scheduler.start(_workout((60, 150)))
    before = scheduler.latest_sample
    scheduler.update_sensor_data(power_watts=180, cadence_rpm=91.0)
    scheduler.update_sensor_data(heart_rate_bpm=132)
    snapshot = scheduler.tick()

    assert before.power_watts == 0
    assert seen == [180, 180]
    assert snapshot is not None
    assert snapshot.actual_watts == 180

    record = scheduler.stop()
    assert record is not None
    assert record.samples[0].power_watts == 180
    assert record.samples[0].cadence_rpm == 91.0
    assert record.samples[0].heart_rate_bpm == 132


def test_update_sensor_data_rejects_unknown_fields() -> None:
    scheduler = IntervalScheduler()
    with pytest.raises(TypeError):
        scheduler.update_sensor_data(torque=12)


def test_listener_changes_during_dispatch() -> None:
    scheduler = IntervalScheduler()
    calls: list[str] = []

    def late(_snapshot: ProgressSnapshot) -> None:
        calls.append("late")

    def second(_snapshot: ProgressSnapshot) -> None:
        calls.append("second")

    def first(_snapshot: ProgressSnapshot) -> None:
        calls.append("first")
        scheduler.remove_progress_listener(second)
        scheduler.add_progress_listener(late)

    scheduler.add_progress_listener(first)
    scheduler.add_progress_listener(second)
    scheduler.start(_workout((60, 150)))

    scheduler.tick()
    assert calls == ["first"]

    scheduler.tick()
    assert calls == ["first", "first", "late"]


def test_stop_from_listener_mid_tick() -> None:
    scheduler = IntervalScheduler()
    records: list[SessionRecord] = []
    scheduler.add_finish_listener(records.append)
    scheduler.add_progress_listener(lambda _s: scheduler.stop())

    scheduler.start(_workout((60, 150)))
    snapshot = scheduler.tick()

    assert snapshot is not None
    assert scheduler.state == "finished"
    assert len(records) == 1
    assert len(records[0].samples) == 1
    assert scheduler.tick() is None


def test_timer_driven_session_runs_to_completion() -> None:
    async def _run() -> None:
        scheduler = IntervalScheduler(tick_interval_sec=0.01)
        finished = asyncio.Event()
        records: list[SessionRecord] = []

        def on_finish(record: SessionRecord) -> None:
            records.append(record)
            finished.set()

        scheduler.add_finish_listener(on_finish)
        scheduler.start(_workout((3, 120), (2, 280), (2, 100)))
        assert scheduler.timer_active

        await asyncio.wait_for(finished.wait(), timeout=5.0)

        assert scheduler.state == "finished"
        assert not scheduler.timer_active
        assert records[0].elapsed_sec == 7
        assert len(records[0].samples) == 7

    asyncio.run(_run())


def test_pause_cancels_timer_and_resume_restarts_it() -> None:
    async def _run() -> None:
        scheduler = IntervalScheduler(tick_interval_sec=0.01)
        scheduler.start(_workout((600, 150)))
        await asyncio.sleep(0.05)

        scheduler.pause()
        assert not scheduler.timer_active
        frozen = scheduler.elapsed_sec
        await asyncio.sleep(0.05)
        assert scheduler.elapsed_sec == frozen

        scheduler.resume()
        assert scheduler.timer_active
        await asyncio.sleep(0.05)
        assert scheduler.elapsed_sec > frozen

        record = scheduler.stop()
        assert record is not None
        assert not scheduler.timer_active
        assert len(record.samples) == record.elapsed_sec

    asyncio.run(_run())


def test_timer_requires_running_loop() -> None:
    scheduler = IntervalScheduler(tick_interval_sec=1.0)
    with pytest.raises(RuntimeError):
        scheduler.start(_workout((60, 150)))
    assert scheduler.state == "idle"


def test_tick_listener_readings_land_in_same_tick() -> None:
    scheduler = IntervalScheduler()
    records: list[SessionRecord] = []
    snapshots: list[ProgressSnapshot] = []
    scheduler.add_finish_listener(records.append)
    scheduler.add_progress_listener(snapshots.append)
    scheduler.add_tick_listener(
        lambda interval: scheduler.update_sensor_data(power_watts=interval.target_watts)
    )

    scheduler.start(_workout((2, 120), (2, 300)))
    for _ in range(4):
        scheduler.tick()

    assert [s.power_watts for s in records[0].samples] == [120, 300, 300, 300]
    assert all(s.actual_watts == s.target_watts for s in snapshots)


def test_stop_from_tick_listener_skips_recording() -> None:
    scheduler = IntervalScheduler()
    scheduler.add_tick_listener(lambda _interval: scheduler.stop())
    scheduler.start(_workout((60, 150)))

    assert scheduler.tick() is None
    assert scheduler.state == "finished"


def test_snapshot_carries_interval_cadence() -> None:
    scheduler = IntervalScheduler()
    scheduler.start(
        WorkoutDefinition(
            name="Cadence",
            intervals=(Interval(60, 200, "Spin", 105), Interval(60, 150)),
        )
    )

    snapshot = scheduler.tick()

    assert snapshot is not None
    assert snapshot.target_cadence_rpm == 105
    for _ in range(60):
        snapshot = scheduler.tick()
    assert snapshot is not None
    assert snapshot.target_cadence_rpm is None
