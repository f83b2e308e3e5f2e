"""Garmin TCX track log export for finished sessions."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from datetime import datetime, timedelta, timezone

from ergdrive.core.aggregator import SessionRecord

TCX_NS = "http://www.garmin.com/xmlschemas/TrainingCenterDatabase/v2"
ACTIVITY_EXT_NS = "http://www.garmin.com/xmlschemas/ActivityExtension/v2"
XSI_NS = "http://www.w3.org/2001/XMLSchema-instance"
CREATOR_NAME = "ergdrive"

ET.register_namespace("", TCX_NS)
ET.register_namespace("ax", ACTIVITY_EXT_NS)
ET.register_namespace("xsi", XSI_NS)


def _tcx(tag: str) -> str:
    return f"{{{TCX_NS}}}{tag}"


def _ext(tag: str) -> str:
    return f"{{{ACTIVITY_EXT_NS}}}{tag}"


def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _text(parent: ET.Element, tag: str, value: object) -> ET.Element:
    element = ET.SubElement(parent, tag)
    element.text = str(value)
    return element


def _heart_rate(parent: ET.Element, tag: str, bpm: int) -> None:
    # Schema requires bpm >= 1; no reading means no element.
    if bpm <= 0:
        return
    _text(ET.SubElement(parent, tag), _tcx("Value"), bpm)


def build_tcx(record: SessionRecord) -> str:
    """Render one Biking activity with one lap and a trackpoint per recorded second."""
    summary = record.summary
    start = _iso(record.started_at)

    root = ET.Element(_tcx("TrainingCenterDatabase"))
    activities = ET.SubElement(root, _tcx("Activities"))
    activity = ET.SubElement(activities, _tcx("Activity"), {"Sport": "Biking"})
    _text(activity, _tcx("Id"), start)

    lap = ET.SubElement(activity, _tcx("Lap"), {"StartTime": start})
    _text(lap, _tcx("TotalTimeSeconds"), record.elapsed_sec)
    _text(lap, _tcx("DistanceMeters"), round(summary.distance_km * 1000, 1))
    max_speed_ms = max((s.speed_kmh for s in record.samples), default=0.0) / 3.6
    _text(lap, _tcx("MaximumSpeed"), round(max_speed_ms, 3))
    _text(lap, _tcx("Calories"), summary.calories_kcal)
    _heart_rate(lap, _tcx("AverageHeartRateBpm"), summary.avg_heart_rate_bpm)
    _heart_rate(lap, _tcx("MaximumHeartRateBpm"), summary.max_heart_rate_bpm)
    _text(lap, _tcx("Intensity"), "Active")
    _text(lap, _tcx("Cadence"), summary.avg_cadence_rpm)
    _text(lap, _tcx("TriggerMethod"), "Manual")

    track = ET.SubElement(lap, _tcx("Track"))
    for index, sample in enumerate(record.samples):
        point = ET.SubElement(track, _tcx("Trackpoint"))
        _text(point, _tcx("Time"), _iso(record.started_at + timedelta(seconds=index)))
        _heart_rate(point, _tcx("HeartRateBpm"), sample.heart_rate_bpm)
        _text(point, _tcx("Cadence"), int(round(sample.cadence_rpm)))
        tpx = ET.SubElement(ET.SubElement(point, _tcx("Extensions")), _ext("TPX"))
        _text(tpx, _ext("Speed"), round(sample.speed_kmh / 3.6, 3))
        _text(tpx, _ext("Watts"), sample.power_watts)

    lx = ET.SubElement(ET.SubElement(lap, _tcx("Extensions")), _ext("LX"))
    _text(lx, _ext("AvgWatts"), summary.avg_power_watts)
    _text(lx, _ext("MaxWatts"), summary.max_power_watts)

    creator = ET.SubElement(activity, _tcx("Creator"), {f"{{{XSI_NS}}}type": "Device_t"})
    _text(creator, _tcx("Name"), CREATOR_NAME)
    _text(creator, _tcx("UnitId"), 0)
    _text(creator, _tcx("ProductID"), 0)
    version = ET.SubElement(creator, _tcx("Version"))
    _text(version, _tcx("VersionMajor"), 1)
    _text(version, _tcx("VersionMinor"), 0)

    ET.indent(root)
    body = ET.tostring(root, encoding="unicode")
    return '<?xml version="1.0" encoding="UTF-8"?>\n' + body + "\n"
