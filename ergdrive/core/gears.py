"""Automatic gear selection for an electronic drivetrain during ERG workouts.

`recommend` maps a target power to the gear that keeps the rider near the
target cadence; `should_shift` is the hysteresis gate; `GearSelector` owns the
held gear and serializes commands sent to the drivetrain connector.

Tier policy (fixed, not configurable), with P = target power, C = target cadence:

    P > 250        front 2                          rear clamp(round(P/C/4), 1, 8)
    150 < P <= 250 front 2 if speed > 25 km/h else 1 rear clamp(round(P/C/3), 3, 9)
    P <= 150       front 1                          rear clamp(round(P/C/2), 6, 11)

Both results are then clamped to the device's chainring and cog counts.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol

from ergdrive.core.aggregator import round_half_up
from ergdrive.core.samples import GearState, SensorSample

logger = logging.getLogger(__name__)

DEFAULT_TARGET_CADENCE_RPM = 90
HIGH_POWER_THRESHOLD_WATTS = 250
LOW_POWER_THRESHOLD_WATTS = 150
BIG_RING_SPEED_KMH = 25
MIN_REAR_SHIFT_COGS = 2

# Compact crankset and approximate 11-28T cassette, for ratio display only.
BIG_RING_TEETH = 50
SMALL_RING_TEETH = 34
SMALLEST_COG_TEETH = 11
COG_TEETH_STEP = 1.5


@dataclass(frozen=True)
class DeviceLimits:
    front_count: int = 2
    rear_count: int = 11

    def __post_init__(self) -> None:
        if self.front_count < 1 or self.rear_count < 1:
            raise ValueError("Gear counts must be >= 1")


class DrivetrainConnector(Protocol):
    async def shift_to(self, gear: GearState) -> None: ...


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, value))


def recommend(
    target_watts: float,
    speed_kmh: float,
    limits: DeviceLimits,
    target_cadence_rpm: float = DEFAULT_TARGET_CADENCE_RPM,
) -> GearState:
    if target_cadence_rpm <= 0:
        raise ValueError("Target cadence must be > 0")
    ratio = target_watts / target_cadence_rpm

    if target_watts > HIGH_POWER_THRESHOLD_WATTS:
        front = 2
        rear = _clamp(round_half_up(ratio / 4), 1, 8)
    elif target_watts > LOW_POWER_THRESHOLD_WATTS:
        front = 2 if speed_kmh > BIG_RING_SPEED_KMH else 1
        rear = _clamp(round_half_up(ratio / 3), 3, 9)
    else:
        front = 1
        rear = _clamp(round_half_up(ratio / 2), 6, 11)

    return GearState(
        front=_clamp(front, 1, limits.front_count),
        rear=_clamp(rear, 1, limits.rear_count),
    )


def should_shift(proposed: GearState, current: GearState) -> bool:
    """Front ring changes always pass; rear changes need at least two cogs."""
    return (
        proposed.front != current.front
        or abs(proposed.rear - current.rear) >= MIN_REAR_SHIFT_COGS
    )


def gear_ratio(gear: GearState) -> float:
    front_teeth = BIG_RING_TEETH if gear.front == 2 else SMALL_RING_TEETH
    rear_teeth = SMALLEST_COG_TEETH + (gear.rear - 1) * COG_TEETH_STEP
    return round(front_teeth / rear_teeth, 2)


ShiftCallback = Callable[[GearState], Awaitable[None] | None]


class GearSelector:
    """Holds the drivetrain gear and issues one shift command at a time.

    Requests queue on a lock. When several are waiting, only the newest one is
    sent: older waiting requests are superseded and return False. A command
    already sent to the connector always runs to completion.
    """

    def __init__(
        self,
        connector: Optional[DrivetrainConnector],
        limits: DeviceLimits | None = None,
        initial_gear: GearState | None = None,
        target_cadence_rpm: float = DEFAULT_TARGET_CADENCE_RPM,
        on_shift: Optional[ShiftCallback] = None,
    ) -> None:
        self._connector = connector
        self._limits = limits or DeviceLimits()
        self._current = self._clamp_to_limits(initial_gear or GearState(front=2, rear=8))
        self._target_cadence_rpm = target_cadence_rpm
        self._on_shift = on_shift
        self._lock = asyncio.Lock()
        self._generation = 0

    @property
    def current(self) -> GearState:
        return self._current

    @property
    def limits(self) -> DeviceLimits:
        return self._limits

    def ratio(self) -> float:
        return gear_ratio(self._current)

    def propose(
        self,
        target_watts: float,
        sample: SensorSample,
        target_cadence_rpm: float | None = None,
    ) -> GearState:
        """Recommend a gear; an interval's own cadence target overrides the default."""
        return recommend(
            target_watts,
            sample.speed_kmh,
            self._limits,
            target_cadence_rpm=target_cadence_rpm or self._target_cadence_rpm,
        )

    async def auto_shift(
        self,
        target_watts: float,
        sample: SensorSample,
        target_cadence_rpm: float | None = None,
    ) -> bool:
        if self._connector is None:
            return False
        proposed = self.propose(target_watts, sample, target_cadence_rpm)
        if not should_shift(proposed, self._current):
            logger.debug(
                "Holding %d/%d (proposed %d/%d)",
                self._current.front,
                self._current.rear,
                proposed.front,
                proposed.rear,
            )
            return False
        return await self.issue_shift(proposed)

    async def issue_shift(self, gear: GearState) -> bool:
        if self._connector is None:
            return False

        target = self._clamp_to_limits(gear)
        self._generation += 1
        generation = self._generation
        async with self._lock:
            if generation != self._generation:
                logger.debug("Shift to %d/%d superseded", target.front, target.rear)
                return False
            if target == self._current:
                return False

            logger.info("Shifting to gear: front %d, rear %d", target.front, target.rear)
            try:
                await self._connector.shift_to(target)
            except Exception as exc:
                logger.warning(
                    "Shift to %d/%d failed (%s); keeping %d/%d",
                    target.front,
                    target.rear,
                    exc,
                    self._current.front,
                    self._current.rear,
                )
                return False

            self._current = target
            if self._on_shift is not None:
                maybe_coro = self._on_shift(target)
                if asyncio.iscoroutine(maybe_coro):
                    await maybe_coro
            return True

    async def shift_front_up(self) -> bool:
        if self._current.front >= self._limits.front_count:
            return False
        return await self.issue_shift(
            GearState(front=self._current.front + 1, rear=self._current.rear)
        )

    async def shift_front_down(self) -> bool:
        if self._current.front <= 1:
            return False
        return await self.issue_shift(
            GearState(front=self._current.front - 1, rear=self._current.rear)
        )

    async def shift_rear_up(self) -> bool:
        if self._current.rear >= self._limits.rear_count:
            return False
        return await self.issue_shift(
            GearState(front=self._current.front, rear=self._current.rear + 1)
        )

    async def shift_rear_down(self) -> bool:
        if self._current.rear <= 1:
            return False
        return await self.issue_shift(
            GearState(front=self._current.front, rear=self._current.rear - 1)
        )

    def _clamp_to_limits(self, gear: GearState) -> GearState:
        return GearState(
            front=_clamp(gear.front, 1, self._limits.front_count),
            rear=_clamp(gear.rear, 1, self._limits.rear_count),
        )
