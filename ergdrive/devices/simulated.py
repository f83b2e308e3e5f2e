"""Simulated Di2, heart-rate and power-meter connectors (no BLE required)."""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass

from ergdrive.core.samples import GearState

logger = logging.getLogger(__name__)

MAX_HEART_RATE_BPM = 190
_SIM_SEED = 20260225


@dataclass(frozen=True)
class DeviceInfo:
    device_id: str
    name: str
    battery_level: int | None = None


@dataclass(frozen=True)
class HeartRateZone:
    zone: int
    name: str


class _SimulatedDevice:
    def __init__(
        self,
        info: DeviceInfo,
        connect_delay_sec: float,
        fail_connect: bool,
    ) -> None:
        self._info = info
        self._connect_delay_sec = connect_delay_sec
        self._fail_connect = fail_connect
        self._connected = False

    @property
    def info(self) -> DeviceInfo:
        return self._info

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> bool:
        if self._connect_delay_sec > 0:
            await asyncio.sleep(self._connect_delay_sec)
        if self._fail_connect:
            logger.warning("Unable to connect to %s", self._info.name)
            return False
        self._connected = True
        logger.info("Connected to %s", self._info.name)
        return True

    async def disconnect(self) -> None:
        if not self._connected:
            return
        self._connected = False
        logger.info("Disconnected from %s", self._info.name)


class SimulatedDi2(_SimulatedDevice):
    """Shimano Di2 drivetrain with a 2x11 compact setup."""

    def __init__(
        self,
        front_gears: int = 2,
        rear_gears: int = 11,
        shift_delay_sec: float = 0.5,
        connect_delay_sec: float = 0.0,
        fail_connect: bool = False,
    ) -> None:
        super().__init__(
            DeviceInfo("shimano-di2-001", "Shimano Di2 Ultegra", battery_level=85),
            connect_delay_sec=connect_delay_sec,
            fail_connect=fail_connect,
        )
        self.front_gears = front_gears
        self.rear_gears = rear_gears
        self._shift_delay_sec = shift_delay_sec
        self.shift_log: list[GearState] = []

    async def shift_to(self, gear: GearState) -> None:
        if not self._connected:
            raise RuntimeError("Di2 not connected")
        if not (1 <= gear.front <= self.front_gears and 1 <= gear.rear <= self.rear_gears):
            raise ValueError(f"Gear {gear.front}/{gear.rear} out of range")
        if self._shift_delay_sec > 0:
            await asyncio.sleep(self._shift_delay_sec)
        self.shift_log.append(gear)


class SimulatedHeartRateMonitor(_SimulatedDevice):
    def __init__(
        self,
        resting_bpm: int = 65,
        connect_delay_sec: float = 0.0,
        fail_connect: bool = False,
        seed: int = _SIM_SEED,
    ) -> None:
        super().__init__(
            DeviceInfo("hr-belt-001", "Heart Rate Monitor", battery_level=92),
            connect_delay_sec=connect_delay_sec,
            fail_connect=fail_connect,
        )
        self._current_bpm = resting_bpm
        self._rng = random.Random(seed)

    @property
    def current_bpm(self) -> int:
        return self._current_bpm if self._connected else 0

    def respond_to_effort(self, target_watts: int, actual_watts: int) -> int:
        """Drift heart rate toward the zone implied by the target power."""
        if not self._connected:
            return 0

        target_bpm = _zone_heart_rate(target_watts)
        difference = target_bpm - self._current_bpm
        step = max(-3, min(3, difference))
        bpm = self._current_bpm + step

        if target_watts > 0 and abs(actual_watts - target_watts) / target_watts > 0.1:
            bpm += int(round(self._rng.uniform(-4.0, 4.0)))

        self._current_bpm = max(50, min(200, bpm))
        return self._current_bpm


class SimulatedPowerMeter(_SimulatedDevice):
    def __init__(
        self,
        connect_delay_sec: float = 0.0,
        fail_connect: bool = False,
        seed: int = _SIM_SEED,
    ) -> None:
        super().__init__(
            DeviceInfo("power-meter-001", "Power Meter", battery_level=78),
            connect_delay_sec=connect_delay_sec,
            fail_connect=fail_connect,
        )
        self._rng = random.Random(seed)

    def read(self, target_watts: int) -> dict[str, float | int]:
        """Return power/cadence/speed scattered around the ERG target."""
        if not self._connected:
            return {}
        variation = self._rng.uniform(-10.0, 10.0)
        accuracy = self._rng.uniform(0.9, 1.1)
        power = max(0, int(round(target_watts * accuracy + variation)))
        cadence = max(0, 85 + int(round(self._rng.uniform(-10.0, 10.0))))
        speed = max(0.0, 25 + (power - 200) / 10)
        return {
            "power_watts": power,
            "cadence_rpm": float(cadence),
            "speed_kmh": round(speed, 1),
        }


def _zone_heart_rate(target_watts: int) -> int:
    if target_watts > 250:
        return 170
    if target_watts > 200:
        return 155
    if target_watts > 150:
        return 140
    return 120


def heart_rate_zone(bpm: int, max_bpm: int = MAX_HEART_RATE_BPM) -> HeartRateZone:
    percentage = (bpm / max_bpm) * 100
    if percentage < 60:
        return HeartRateZone(1, "Recovery")
    if percentage < 70:
        return HeartRateZone(2, "Aerobic Base")
    if percentage < 80:
        return HeartRateZone(3, "Aerobic")
    if percentage < 90:
        return HeartRateZone(4, "Threshold")
    return HeartRateZone(5, "VO2 Max")

