"""Activity summaries in the shape third-party platforms accept on upload."""

from __future__ import annotations

from typing import Any

from ergdrive.core.aggregator import SessionRecord


def session_duration_sec(record: SessionRecord) -> int:
    """Wall-clock duration, including pauses; 0 when the session never ended."""
    if record.ended_at is None:
        return 0
    return max(0, int((record.ended_at - record.started_at).total_seconds()))


def _average_speed_kmh(record: SessionRecord, duration_sec: int) -> float:
    if duration_sec <= 0:
        return 0.0
    return round(record.summary.distance_km / (duration_sec / 3600), 2)


def to_strava_activity(record: SessionRecord) -> dict[str, Any]:
    duration = session_duration_sec(record)
    summary = record.summary
    return {
        "id": record.session_id,
        "name": f"ERG Workout: {record.workout_name}",
        "type": "Ride",
        "start_date": record.started_at.isoformat(),
        "elapsed_time": duration,
        "distance": round(summary.distance_km * 1000, 1),
        "average_speed": _average_speed_kmh(record, duration),
        "average_watts": summary.avg_power_watts,
        "max_watts": summary.max_power_watts,
        "average_heartrate": summary.avg_heart_rate_bpm,
        "max_heartrate": summary.max_heart_rate_bpm,
        "kilojoules": int(round(summary.avg_power_watts * duration / 1000)),
        "device_watts": True,
        "trainer": True,
    }


def to_garmin_activity(record: SessionRecord) -> dict[str, Any]:
    duration = session_duration_sec(record)
    summary = record.summary
    return {
        "activityId": record.session_id,
        "activityName": f"ERG Training: {record.workout_name}",
        "activityType": "cycling",
        "startTimeGMT": record.started_at.isoformat(),
        "duration": duration,
        "distance": round(summary.distance_km * 1000, 1),
        "averageSpeed": _average_speed_kmh(record, duration),
        "maxSpeed": max((s.speed_kmh for s in record.samples), default=0.0),
        "averagePower": summary.avg_power_watts,
        "maxPower": summary.max_power_watts,
        "averageHR": summary.avg_heart_rate_bpm,
        "maxHR": summary.max_heart_rate_bpm,
        "calories": summary.calories_kcal,
    }
