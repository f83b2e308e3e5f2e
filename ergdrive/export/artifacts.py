"""Session JSON snapshots and per-second CSV exports."""

from __future__ import annotations

import csv
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

from ergdrive.core.aggregator import SessionRecord
from ergdrive.export.fit import build_fit
from ergdrive.export.tcx import build_tcx

CSV_HEADER = (
    "session_id",
    "workout_name",
    "t_sec",
    "power_watts",
    "cadence_rpm",
    "heart_rate_bpm",
    "speed_kmh",
    "gear_front",
    "gear_rear",
)


def session_to_dict(record: SessionRecord) -> dict[str, Any]:
    payload = asdict(record)
    payload["started_at"] = record.started_at.isoformat()
    payload["ended_at"] = record.ended_at.isoformat() if record.ended_at else None
    return payload


def save_session_json(record: SessionRecord, out_dir: Path) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    out = out_dir / f"{record.session_id}.json"
    out.write_text(
        json.dumps(session_to_dict(record), ensure_ascii=True, indent=2), encoding="utf-8"
    )
    return out


def export_session_csv(record: SessionRecord, out_dir: Path) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    out = out_dir / f"{record.session_id}.csv"
    with out.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.writer(handle)
        writer.writerow(CSV_HEADER)
        for t_sec, sample in enumerate(record.samples, start=1):
            writer.writerow(
                [
                    record.session_id,
                    record.workout_name,
                    t_sec,
                    sample.power_watts,
                    sample.cadence_rpm,
                    sample.heart_rate_bpm,
                    sample.speed_kmh,
                    sample.gear.front,
                    sample.gear.rear,
                ]
            )
    return out


def export_session_tcx(record: SessionRecord, out_dir: Path) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    out = out_dir / f"{record.session_id}.tcx"
    out.write_text(build_tcx(record), encoding="utf-8")
    return out


def export_session_fit(record: SessionRecord, out_dir: Path) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    out = out_dir / f"{record.session_id}.fit"
    out.write_bytes(build_fit(record))
    return out
