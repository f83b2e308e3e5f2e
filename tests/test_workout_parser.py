from __future__ import annotations

from pathlib import Path

import pytest

from ergdrive.workout.parser import (
    WorkoutParseError,
    intensity_label,
    load_workout,
    parse_erg_text,
    parse_zwo_text,
)

ERG_TEXT = """[COURSE HEADER]
NAME=Sweet Spot Blocks
DESCRIPTION=Two blocks at threshold
[END COURSE HEADER]
[COURSE DATA]
10 55
20 90
5.5 50
[END COURSE DATA]
"""

ZWO_TEXT = """<workout_file>
    <name>Over Unders</name>
    <description>Short and sharp</description>
    <workout>
        <Warmup Duration="300" PowerLow="0.4" PowerHigh="0.6"/>
        <IntervalsT Repeat="2" OnDuration="60" OffDuration="30" OnPower="1.2" OffPower="0.5"/>
        <SteadyState Duration="120" Power="0.8"/>
        <textevent message="go"/>
    </workout>
</workout_file>
"""


def test_parse_erg_rows_against_ftp() -> None:
    workout = parse_erg_text(ERG_TEXT, ftp_watts=200)

    assert workout.name == "Sweet Spot Blocks"
    assert workout.description == "Two blocks at threshold"
    assert [i.duration_sec for i in workout.intervals] == [600, 1200, 330]
    assert [i.target_watts for i in workout.intervals] == [110, 180, 100]
    assert [i.label for i in workout.intervals] == ["Recovery", "Threshold", "Recovery"]
    assert workout.total_time_sec == 2130


def test_parse_erg_skips_malformed_rows() -> None:
    text = "[COURSE DATA]\n5 60\nnot a row\n3\n-1 80\n2 100\n"

    workout = parse_erg_text(text, ftp_watts=250)

    assert [(i.duration_sec, i.target_watts) for i in workout.intervals] == [(300, 150), (120, 250)]


def test_unusable_text_falls_back_to_steady_state() -> None:
    workout = parse_erg_text("this is not a workout", default_name="Mystery")

    assert workout.name == "Mystery"
    assert len(workout.intervals) == 1
    assert workout.intervals[0].duration_sec == 3600
    assert workout.intervals[0].target_watts == 200
    assert workout.intervals[0].label == "Steady state workout"


def test_parse_zwo_segments() -> None:
    workout = parse_zwo_text(ZWO_TEXT, ftp_watts=200)

    assert workout.name == "Over Unders"
    assert workout.description == "Short and sharp"
    assert [(i.duration_sec, i.target_watts) for i in workout.intervals] == [
        (300, 100),
        (60, 240),
        (30, 100),
        (60, 240),
        (30, 100),
        (120, 160),
    ]
    assert workout.total_time_sec == 600


def test_parse_zwo_invalid_xml_falls_back() -> None:
    workout = parse_zwo_text("<workout_file><workout>", default_name="Broken")

    assert workout.name == "Broken"
    assert workout.total_time_sec == 3600


def test_intensity_labels() -> None:
    assert intensity_label(59) == "Recovery"
    assert intensity_label(60) == "Endurance"
    assert intensity_label(75) == "Tempo"
    assert intensity_label(104.9) == "Threshold"
    assert intensity_label(110) == "VO2 Max"
    assert intensity_label(150) == "Neuromuscular"


def test_load_workout_by_extension(tmp_path: Path) -> None:
    erg_file = tmp_path / "blocks.erg"
    erg_file.write_text("[COURSE DATA]\n1 100\n", encoding="utf-8")
    zwo_file = tmp_path / "over_unders.zwo"
    zwo_file.write_text(ZWO_TEXT, encoding="utf-8")

    erg = load_workout(erg_file, ftp_watts=300)
    zwo = load_workout(zwo_file)

    assert erg.name == "blocks"
    assert erg.intervals[0].target_watts == 300
    assert zwo.name == "Over Unders"


def test_load_workout_rejects_unknown_extension(tmp_path: Path) -> None:
    workout_file = tmp_path / "plan.txt"
    workout_file.write_text("1 100\n", encoding="utf-8")

    with pytest.raises(WorkoutParseError):
        load_workout(workout_file)


def test_load_workout_missing_file(tmp_path: Path) -> None:
    with pytest.raises(WorkoutParseError):
        load_workout(tmp_path / "missing.mrc")


def test_parse_erg_skips_non_finite_rows() -> None:
    text = "[COURSE DATA]\nnan 100\ninf 100\n1e308 100\n10 1e308\n5 50\n"

    workout = parse_erg_text(text, ftp_watts=250)

    assert [(i.duration_sec, i.target_watts) for i in workout.intervals] == [(300, 125)]


def test_parse_erg_all_non_finite_falls_back() -> None:
    workout = parse_erg_text("[COURSE DATA]\nnan nan\ninf 100\n", default_name="Bad")

    assert workout.name == "Bad"
    assert workout.total_time_sec == 3600


def test_parse_zwo_skips_non_finite_segments() -> None:
    text = """<workout_file>
        <workout>
            <SteadyState Duration="inf" Power="0.8"/>
            <SteadyState Duration="nan" Power="0.8"/>
            <SteadyState Duration="120" Power="1e308"/>
            <SteadyState Duration="60" Power="0.5"/>
        </workout>
    </workout_file>"""

    workout = parse_zwo_text(text, ftp_watts=200)

    assert [(i.duration_sec, i.target_watts) for i in workout.intervals] == [(60, 100)]


def test_parse_zwo_caps_interval_repeats() -> None:
    text = """<workout_file>
        <workout>
            <IntervalsT Repeat="1000000000" OnDuration="30" OffDuration="30"
                        OnPower="1.1" OffPower="0.5"/>
        </workout>
    </workout_file>"""

    workout = parse_zwo_text(text, ftp_watts=200)

    assert len(workout.intervals) == 100
    assert workout.total_time_sec == 3000
