from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Literal, Protocol


AXES: tuple[str, ...] = (
    "axe1_rh",
    "axe2_commercial",
    "axe3_technique",
    "axe4_budget",
    "axe5_marketing",
    "axe6_exploitation",
    "axe7_construction",
    "axe8_divers",
)
"""Ordered workstreams; the position of an axis is its phase row."""

AXE_LABELS: dict[str, str] = {
    "axe1_rh": "AXE 1 - RH & Organisation",
    "axe2_commercial": "AXE 2 - Commercial & Leasing",
    "axe3_technique": "AXE 3 - Technique & Handover",
    "axe4_budget": "AXE 4 - Budget & Pilotage",
    "axe5_marketing": "AXE 5 - Marketing & Communication",
    "axe6_exploitation": "AXE 6 - Exploitation & Systèmes",
    "axe7_construction": "AXE 7 - Construction",
    "axe8_divers": "AXE 8 - Divers & Transverse",
}

ActionStatus = Literal[
    "a_planifier",
    "planifie",
    "a_faire",
    "en_cours",
    "en_attente",
    "bloque",
    "en_validation",
    "termine",
    "annule",
    "reporte",
]
MilestoneStatus = Literal["a_venir", "en_approche", "en_danger", "atteint", "depasse", "annule"]

ACTION_STATUSES: tuple[str, ...] = ActionStatus.__args__
MILESTONE_STATUSES: tuple[str, ...] = MilestoneStatus.__args__

TERMINAL_MILESTONE_STATUSES = frozenset({"atteint", "depasse"})
"""Statuses that count as 100% progress for a milestone without linked actions."""


class ScheduleEntity(Protocol):
    """Capability set shared by actions and milestones for inference and CPM."""

    id: int | None
    title: str
    axis: str
    progress: int
    status: str

    @property
    def planned_start(self) -> date | None: ...

    @property
    def planned_end(self) -> date | None: ...

    @property
    def anchor_date(self) -> date | None: ...


@dataclass
class Action:
    """Task with a planned start/end window, optionally attached to a milestone."""

    id: int | None
    title: str
    axis: str
    planned_start: date | None = None
    planned_end: date | None = None
    progress: int = 0
    status: str = "a_planifier"
    milestone_id: int | None = None
    phase_reference: str | None = None
    trigger_offset_days: int | None = None
    planned_duration_days: int | None = None
    meta: dict[str, Any] | None = None

    @property
    def anchor_date(self) -> date | None:
        """Actions are ordered by their planned start."""
        return self.planned_start


@dataclass
class Milestone:
    """Single-date checkpoint ("jalon"); its period is reconstructed for the timeline."""

    id: int | None
    title: str
    axis: str
    due_date: date | None = None
    progress: int = 0
    status: str = "a_venir"
    phase_reference: str | None = None
    trigger_offset_days: int | None = None
    meta: dict[str, Any] | None = None

    @property
    def planned_start(self) -> None:
        return None

    @property
    def planned_end(self) -> date | None:
        return self.due_date

    @property
    def anchor_date(self) -> date | None:
        """Milestones are ordered by their due date."""
        return self.due_date


@dataclass
class PertNode:
    """
    One entity placed in the dependency network.

    Edges are arena indices into the owning node list, never references to
    other nodes. Timing fields are day offsets from the graph epoch and stay at
    zero until the CPM solver fills them in.
    """

    id: int
    entity: ScheduleEntity
    phase_index: int
    column_index: int
    duration: int = 1
    planned_offset: int = 0
    es: int = 0
    ef: int = 0
    ls: int = 0
    lf: int = 0
    slack: int = 0
    is_critical: bool = False
    predecessors: list[int] = field(default_factory=list)
    successors: list[int] = field(default_factory=list)


@dataclass
class ScheduleGraph:
    """Solved node arena plus the summary figures the PERT view displays."""

    nodes: list[PertNode]
    epoch: date
    project_end: int = 0
    unclassified_ids: list[int | None] = field(default_factory=list)

    @property
    def critical_count(self) -> int:
        return sum(1 for node in self.nodes if node.is_critical)

    @property
    def max_columns(self) -> int:
        return max((node.column_index + 1 for node in self.nodes), default=0)

    def nodes_by_phase(self) -> dict[int, list[PertNode]]:
        """Nodes grouped by phase row, in column order; empty phases are absent."""
        grouped: dict[int, list[PertNode]] = {}
        for node in self.nodes:
            grouped.setdefault(node.phase_index, []).append(node)
        return grouped

    def edges(self) -> list[tuple[int, int]]:
        """(source, target) arena index pairs in arena order."""
        return [(idx, succ) for idx, node in enumerate(self.nodes) for succ in node.successors]

    def critical_path(self) -> list[PertNode]:
        return [node for node in self.nodes if node.is_critical]


@dataclass(frozen=True)
class GanttPeriod:
    """Reconstructed interval drawn for a milestone on the timeline."""

    start_date: date
    end_date: date
    progress: int
    linked_count: int
    start_source: Literal["linked_actions", "previous_milestone", "lookback"] = "lookback"

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days


@dataclass
class GanttRow:
    """
    One timeline row handed to renderers.

    `previous_id` names the earlier milestone of the same axis that the row is
    chained to, which renderers draw as a dashed guide line.
    """

    order: int
    milestone: Milestone
    period: GanttPeriod
    previous_id: int | None = None
