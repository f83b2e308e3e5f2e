"""Built-in ERG workouts expressed relative to FTP."""

from __future__ import annotations

from dataclasses import dataclass

from ergdrive.workout.model import Interval, WorkoutDefinition


@dataclass(frozen=True)
class TemplateInterval:
    duration_sec: int
    intensity_pct: float
    label: str
    target_cadence_rpm: int | None = None


@dataclass(frozen=True)
class WorkoutTemplate:
    key: str
    name: str
    description: str
    intervals: tuple[TemplateInterval, ...]


TEMPLATES: tuple[WorkoutTemplate, ...] = (
    WorkoutTemplate(
        key="threshold_2x5",
        name="Threshold 2x5",
        description="Two threshold blocks with a short recovery",
        intervals=(
            TemplateInterval(600, 0.55, "Warmup"),
            TemplateInterval(300, 1.00, "Threshold 1", 90),
            TemplateInterval(180, 0.48, "Recovery"),
            TemplateInterval(300, 1.00, "Threshold 2", 90),
            TemplateInterval(600, 0.45, "Cooldown"),
        ),
    ),
    WorkoutTemplate(
        key="vo2_4x3",
        name="VO2 Max 4x3",
        description="Four 3-minute efforts above threshold",
        intervals=(
            TemplateInterval(600, 0.55, "Warmup"),
            TemplateInterval(180, 1.15, "VO2 #1", 100),
            TemplateInterval(180, 0.50, "Recovery #1"),
            TemplateInterval(180, 1.15, "VO2 #2", 100),
            TemplateInterval(180, 0.50, "Recovery #2"),
            TemplateInterval(180, 1.15, "VO2 #3", 100),
            TemplateInterval(180, 0.50, "Recovery #3"),
            TemplateInterval(180, 1.15, "VO2 #4", 100),
            TemplateInterval(600, 0.45, "Cooldown"),
        ),
    ),
    WorkoutTemplate(
        key="endurance_45",
        name="Endurance 45",
        description="Steady aerobic riding",
        intervals=(
            TemplateInterval(480, 0.55, "Warmup"),
            TemplateInterval(1800, 0.70, "Endurance", 88),
            TemplateInterval(420, 0.50, "Cooldown"),
        ),
    ),
)


def list_templates() -> tuple[WorkoutTemplate, ...]:
    return TEMPLATES


def build_workout_from_template(template_key: str, ftp_watts: int) -> WorkoutDefinition:
    if ftp_watts <= 0:
        raise ValueError("FTP must be > 0")

    template = next((item for item in TEMPLATES if item.key == template_key), None)
    if template is None:
        raise ValueError(f"Unknown workout template '{template_key}'")

    intervals = tuple(
        Interval(
            duration_sec=item.duration_sec,
            target_watts=max(1, int(round(ftp_watts * item.intensity_pct))),
            label=item.label,
            target_cadence_rpm=item.target_cadence_rpm,
        )
        for item in template.intervals
    )
    return WorkoutDefinition(
        name=f"{template.name} ({ftp_watts} FTP)",
        description=template.description,
        intervals=intervals,
    )


def sample_workout() -> WorkoutDefinition:
    """One-hour structured session used when no workout file is given."""
    return WorkoutDefinition(
        name="Sample ERG Workout",
        description="A structured training session with intervals",
        intervals=(
            Interval(600, 150, "Warmup"),
            Interval(300, 250, "Threshold"),
            Interval(180, 120, "Recovery"),
            Interval(300, 280, "VO2 Max"),
            Interval(180, 120, "Recovery"),
            Interval(300, 250, "Threshold"),
            Interval(600, 100, "Cooldown"),
        ),
    )
