"""Live sensor readings and drivetrain gear state."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any


@dataclass(frozen=True)
class GearState:
    front: int
    rear: int


@dataclass(frozen=True)
class SensorSample:
    speed_kmh: float = 0.0
    cadence_rpm: float = 0.0
    power_watts: int = 0
    heart_rate_bpm: int = 0
    gear: GearState = GearState(front=2, rear=8)


_SAMPLE_FIELDS = frozenset(field.name for field in fields(SensorSample))


def apply_sensor_update(sample: SensorSample, **changes: Any) -> SensorSample:
    """Return a new sample with `changes` merged over `sample`.

    Values left as None are ignored so connectors can forward partial readings.
    """
    unknown = set(changes) - _SAMPLE_FIELDS
    if unknown:
        raise TypeError(f"Unknown sensor field(s): {', '.join(sorted(unknown))}")

    present = {key: value for key, value in changes.items() if value is not None}
    for key in ("speed_kmh", "cadence_rpm", "power_watts", "heart_rate_bpm"):
        if key in present and present[key] < 0:
            present[key] = 0
    if not present:
        return sample
    return replace(sample, **present)
