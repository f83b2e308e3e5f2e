"""Async runtime engine wiring the workout clock, sensors and auto-shifting."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from ergdrive.config import EngineConfig
from ergdrive.core.aggregator import SessionRecord
from ergdrive.core.gears import DeviceLimits, GearSelector
from ergdrive.core.samples import GearState
from ergdrive.core.scheduler import IntervalScheduler, ProgressSnapshot
from ergdrive.core.state import EngineState
from ergdrive.devices.simulated import (
    SimulatedDi2,
    SimulatedHeartRateMonitor,
    SimulatedPowerMeter,
)
from ergdrive.workout.model import Interval, WorkoutDefinition

logger = logging.getLogger(__name__)

_Connector = SimulatedDi2 | SimulatedHeartRateMonitor | SimulatedPowerMeter


class ErgEngine:
    def __init__(
        self,
        config: EngineConfig | None = None,
        di2: SimulatedDi2 | None = None,
        heart_rate: SimulatedHeartRateMonitor | None = None,
        power_meter: SimulatedPowerMeter | None = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._di2 = di2 or SimulatedDi2(
            front_gears=self._config.front_gears,
            rear_gears=self._config.rear_gears,
            shift_delay_sec=self._config.shift_delay_sec,
        )
        self._heart_rate = heart_rate or SimulatedHeartRateMonitor()
        self._power_meter = power_meter or SimulatedPowerMeter()
        self.state = EngineState()
        self.scheduler = IntervalScheduler(tick_interval_sec=self._config.tick_interval_sec)
        self.gears = GearSelector(
            self._di2,
            DeviceLimits(front_count=self._di2.front_gears, rear_count=self._di2.rear_gears),
            initial_gear=self.scheduler.latest_sample.gear,
            target_cadence_rpm=self._config.target_cadence_rpm,
            on_shift=self._on_shift,
        )
        self._shift_tasks: set[asyncio.Task[bool]] = set()
        self.scheduler.add_tick_listener(self._on_tick)
        self.scheduler.add_progress_listener(self._on_progress)

    async def connect_devices(self) -> dict[str, bool]:
        devices = (
            ("di2", self._di2),
            ("heart_rate", self._heart_rate),
            ("power_meter", self._power_meter),
        )
        results = await asyncio.gather(
            *(self._connect_device(name, device) for name, device in devices)
        )
        self.state.connected_devices = {
            name: ok for (name, _), ok in zip(devices, results)
        }
        return dict(self.state.connected_devices)

    async def disconnect_devices(self) -> None:
        for device in (self._di2, self._heart_rate, self._power_meter):
            await device.disconnect()
        self.state.connected_devices = {}

    async def run(self, workout: WorkoutDefinition) -> SessionRecord | None:
        """Play `workout` to completion (or until stopped) and return its record."""
        finished = asyncio.Event()
        records: list[SessionRecord] = []

        def _on_finish(record: SessionRecord) -> None:
            records.append(record)
            self.state.last_record = record
            finished.set()

        self.scheduler.add_finish_listener(_on_finish)
        try:
            await self.connect_devices()
            self.scheduler.start(workout)
            await finished.wait()
        finally:
            self.scheduler.stop()
            self.scheduler.remove_finish_listener(_on_finish)
            await self._drain_shifts()
            await self.disconnect_devices()
        return records[-1] if records else None

    def pause(self) -> None:
        self.scheduler.pause()

    def resume(self) -> None:
        self.scheduler.resume()

    def stop(self) -> SessionRecord | None:
        return self.scheduler.stop()

    async def _connect_device(self, name: str, device: _Connector) -> bool:
        try:
            ok = await asyncio.wait_for(device.connect(), timeout=self._config.connect_timeout_sec)
        except asyncio.TimeoutError:
            logger.warning(
                "%s connection timed out after %.1fs; continuing with default readings",
                name,
                self._config.connect_timeout_sec,
            )
            return False
        except Exception as exc:
            logger.warning(
                "%s connection failed (%s); continuing with default readings", name, exc
            )
            return False
        if not ok:
            logger.warning("%s unavailable; continuing with default readings", name)
        return bool(ok)

    def _on_tick(self, interval: Interval) -> None:
        reading = self._power_meter.read(interval.target_watts)
        heart_rate: Optional[int] = None
        if self._heart_rate.connected:
            actual = int(reading.get("power_watts", self.scheduler.latest_sample.power_watts))
            heart_rate = self._heart_rate.respond_to_effort(interval.target_watts, actual)
        self.scheduler.update_sensor_data(**reading, heart_rate_bpm=heart_rate)

    def _on_progress(self, snapshot: ProgressSnapshot) -> None:
        self.state.last_progress = snapshot
        self.state.last_update = datetime.now(tz=timezone.utc)

        if not self._config.auto_shift or not self._di2.connected:
            return
        if not self.scheduler.is_running:
            return
        task = asyncio.get_running_loop().create_task(
            self.gears.auto_shift(
                snapshot.target_watts,
                self.scheduler.latest_sample,
                target_cadence_rpm=snapshot.target_cadence_rpm,
            )
        )
        self._shift_tasks.add(task)
        task.add_done_callback(self._shift_tasks.discard)

    def _on_shift(self, gear: GearState) -> None:
        self.state.shift_count += 1
        self.scheduler.update_sensor_data(gear=gear)

    async def _drain_shifts(self) -> None:
        if not self._shift_tasks:
            return
        pending = tuple(self._shift_tasks)
        results = await asyncio.gather(*pending, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.warning("Shift task failed: %s", result)
