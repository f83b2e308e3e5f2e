"""Shared runtime state for the ERG engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from ergdrive.core.aggregator import SessionRecord
from ergdrive.core.scheduler import ProgressSnapshot


@dataclass
class EngineState:
    connected_devices: dict[str, bool] = field(default_factory=dict)
    last_progress: ProgressSnapshot | None = None
    last_update: datetime | None = None
    shift_count: int = 0
    last_record: SessionRecord | None = None
