from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Literal

from .project_models import AXES

PhaseReference = Literal["construction_start", "mobilisation_start", "soft_opening", "mobilisation_end"]
"""Named project boundary dates that milestones and actions can be anchored to."""

PHASE_REFERENCES: tuple[PhaseReference, ...] = (
    "construction_start",
    "mobilisation_start",
    "soft_opening",
    "mobilisation_end",
)


DurationPolicy = Literal["sibling_gap", "unit"]
"""How single-date entities get a CPM duration: gap to the previous sibling, or one day."""

DEFAULT_LOOKBACK_DAYS = 30


@dataclass(frozen=True)
class ProjectConfig:
    """Phase boundary dates of the project, as configured in the settings screen."""

    construction_start: date = date(2024, 1, 1)
    mobilisation_start: date = date(2026, 1, 1)
    soft_opening: date = date(2026, 11, 1)
    mobilisation_end: date = date(2027, 3, 1)

    def phase_dates(self) -> dict[str, date]:
        return {ref: getattr(self, ref) for ref in PHASE_REFERENCES}


@dataclass(frozen=True)
class ScheduleConfig:
    """
    Knobs for one scheduling pass.

    `today` stands in for the wall clock whenever a date is missing, so two
    calls with the same config always agree.
    """

    axes: tuple[str, ...] = AXES
    today: date = field(default_factory=date.today)
    duration_policy: DurationPolicy = "sibling_gap"
    anchor_roots: bool = False
    lookback_days: int = DEFAULT_LOOKBACK_DAYS
    project: ProjectConfig = field(default_factory=ProjectConfig)
