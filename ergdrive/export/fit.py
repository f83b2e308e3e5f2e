"""Garmin FIT activity export for finished sessions."""

from __future__ import annotations

from datetime import timezone

from fit_tool.fit_file_builder import FitFileBuilder
from fit_tool.profile.messages.activity_message import ActivityMessage
from fit_tool.profile.messages.event_message import EventMessage
from fit_tool.profile.messages.file_id_message import FileIdMessage
from fit_tool.profile.messages.lap_message import LapMessage
from fit_tool.profile.messages.record_message import RecordMessage
from fit_tool.profile.messages.session_message import SessionMessage
from fit_tool.profile.profile_type import Event, EventType, FileType, Manufacturer, Sport, SubSport

from ergdrive.core.aggregator import SessionRecord


def _timestamp_ms(record: SessionRecord) -> int:
    started = record.started_at
    if started.tzinfo is None:
        started = started.replace(tzinfo=timezone.utc)
    return int(started.timestamp() * 1000)


def _timer_event(event_type: EventType, timestamp_ms: int) -> EventMessage:
    event = EventMessage()
    event.event = Event.TIMER
    event.event_type = event_type
    event.timestamp = timestamp_ms
    return event


def _fill_totals(message: LapMessage | SessionMessage, record: SessionRecord, start_ms: int) -> None:
    summary = record.summary
    message.start_time = start_ms
    message.total_elapsed_time = float(record.elapsed_sec)
    message.total_timer_time = float(record.elapsed_sec)
    message.total_distance = summary.distance_km * 1000.0
    message.avg_power = summary.avg_power_watts
    message.max_power = summary.max_power_watts
    message.avg_cadence = summary.avg_cadence_rpm
    message.total_calories = summary.calories_kcal
    message.total_work = summary.avg_power_watts * record.elapsed_sec
    if summary.avg_heart_rate_bpm > 0:
        message.avg_heart_rate = summary.avg_heart_rate_bpm
        message.max_heart_rate = summary.max_heart_rate_bpm


def build_fit(record: SessionRecord) -> bytes:
    """Encode one indoor cycling activity: a record per sample, one lap, one session."""
    start_ms = _timestamp_ms(record)
    end_ms = start_ms + record.elapsed_sec * 1000
    builder = FitFileBuilder(auto_define=True)

    file_id = FileIdMessage()
    file_id.type = FileType.ACTIVITY
    file_id.manufacturer = Manufacturer.DEVELOPMENT
    file_id.product = 1
    file_id.serial_number = 1
    file_id.time_created = start_ms
    builder.add(file_id)
    builder.add(_timer_event(EventType.START, start_ms))

    distance_m = 0.0
    for index, sample in enumerate(record.samples):
        speed_ms = sample.speed_kmh / 3.6
        distance_m += speed_ms
        message = RecordMessage()
        message.timestamp = start_ms + index * 1000
        message.power = sample.power_watts
        message.cadence = int(round(sample.cadence_rpm))
        message.speed = speed_ms
        message.distance = distance_m
        if sample.heart_rate_bpm > 0:
            message.heart_rate = sample.heart_rate_bpm
        builder.add(message)

    builder.add(_timer_event(EventType.STOP, end_ms))

    lap = LapMessage()
    lap.timestamp = end_ms
    _fill_totals(lap, record, start_ms)
    builder.add(lap)

    session = SessionMessage()
    session.timestamp = end_ms
    _fill_totals(session, record, start_ms)
    session.sport = Sport.CYCLING
    session.sub_sport = SubSport.INDOOR_CYCLING
    session.first_lap_index = 0
    session.num_laps = 1
    builder.add(session)

    activity = ActivityMessage()
    activity.timestamp = end_ms
    activity.total_timer_time = float(record.elapsed_sec)
    activity.num_sessions = 1
    builder.add(activity)

    return builder.build().to_bytes()
