from __future__ import annotations

import pytest

from ergdrive.workout.library import build_workout_from_template, list_templates, sample_workout


def test_template_catalog_has_expected_keys() -> None:
    keys = {template.key for template in list_templates()}
    assert {"threshold_2x5", "vo2_4x3", "endurance_45"}.issubset(keys)


def test_build_workout_from_template_scales_to_ftp() -> None:
    workout = build_workout_from_template("threshold_2x5", ftp_watts=200)

    assert workout.name == "Threshold 2x5 (200 FTP)"
    assert [i.target_watts for i in workout.intervals] == [110, 200, 96, 200, 90]
    assert workout.intervals[1].target_cadence_rpm == 90
    assert workout.total_time_sec == 1980


def test_build_workout_from_template_rejects_bad_input() -> None:
    with pytest.raises(ValueError):
        build_workout_from_template("threshold_2x5", ftp_watts=0)
    with pytest.raises(ValueError):
        build_workout_from_template("unknown", ftp_watts=250)


def test_sample_workout_shape() -> None:
    workout = sample_workout()

    assert len(workout.intervals) == 7
    assert workout.total_time_sec == 2460
    assert workout.intervals[0].label == "Warmup"
    assert workout.ftp_percentages(250) == (60, 100, 48, 112, 48, 100, 40)


def test_ftp_percentages_requires_positive_ftp() -> None:
    with pytest.raises(ValueError):
        sample_workout().ftp_percentages(0)
