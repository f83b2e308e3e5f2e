"""Workout domain models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Interval:
    duration_sec: int
    target_watts: int
    label: str | None = None
    target_cadence_rpm: int | None = None


@dataclass(frozen=True)
class WorkoutDefinition:
    name: str
    intervals: tuple[Interval, ...]
    description: str = ""

    @property
    def total_time_sec(self) -> int:
        return sum(interval.duration_sec for interval in self.intervals)

    def ftp_percentages(self, ftp_watts: int) -> tuple[int, ...]:
        if ftp_watts <= 0:
            raise ValueError("FTP must be > 0")
        return tuple(
            int(round((interval.target_watts / ftp_watts) * 100))
            for interval in self.intervals
        )
