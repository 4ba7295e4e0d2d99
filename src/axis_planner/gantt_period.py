from __future__ import annotations

import logging
import math
from datetime import date, timedelta
from typing import Iterable, Sequence

from .config import PHASE_REFERENCES, ProjectConfig, ScheduleConfig
from .dates import add_days, days_between
from .project_models import TERMINAL_MILESTONE_STATUSES, Action, GanttPeriod, GanttRow, Milestone

logger = logging.getLogger(__name__)


def phase_date(project: ProjectConfig, reference: str) -> date:
    """Boundary date of a named project phase."""
    if reference not in PHASE_REFERENCES:
        raise KeyError(f"Unknown phase reference '{reference}'")
    return getattr(project, reference)


def date_from_phase(project: ProjectConfig, reference: str, offset_days: int) -> date:
    """Phase date shifted by a signed offset (negative = before the phase)."""
    return add_days(phase_date(project, reference), offset_days)


def offset_from_phase(project: ProjectConfig, reference: str, target: date) -> int:
    """Inverse of date_from_phase: signed days from the phase date to `target`."""
    return days_between(phase_date(project, reference), target)


def detect_phase_for_date(project: ProjectConfig, day: date) -> str:
    """Phase reference whose boundary is closest to `day`; ties keep the earlier reference."""
    closest = "soft_opening"
    best: int | None = None
    for reference in PHASE_REFERENCES:
        distance = abs(days_between(phase_date(project, reference), day))
        if best is None or distance < best:
            best = distance
            closest = reference
    return closest


def resolve_due_date(milestone: Milestone, config: ScheduleConfig) -> date:
    """
    Target date of a milestone, never None.

    Order: stored due date, phase reference + trigger offset, phase
    reference alone, then `config.today`.
    """

    if milestone.due_date is not None:
        return milestone.due_date
    reference = milestone.phase_reference
    if reference in PHASE_REFERENCES:
        if milestone.trigger_offset_days is not None:
            return date_from_phase(config.project, reference, milestone.trigger_offset_days)
        return phase_date(config.project, reference)
    logger.debug("Milestone %s has no due date; using today", milestone.id)
    return config.today


def resolve_action_due(action: Action, config: ScheduleConfig) -> date | None:
    """
    End date of an action for list views.

    Order: planned end, phase reference + offset (+ planned duration),
    planned start + planned duration, planned start alone. None when the
    action carries no usable date at all.
    """

    if action.planned_end is not None:
        return action.planned_end
    duration = action.planned_duration_days or 0
    if action.phase_reference in PHASE_REFERENCES and action.trigger_offset_days is not None:
        start = date_from_phase(config.project, action.phase_reference, action.trigger_offset_days)
        return add_days(start, duration) if duration > 0 else start
    if action.planned_start is not None:
        return add_days(action.planned_start, duration) if duration > 0 else action.planned_start
    return None


def resolve_period(
    milestone: Milestone,
    linked_actions: Sequence[Action],
    previous: Milestone | None,
    config: ScheduleConfig,
) -> GanttPeriod:
    """
    Reconstruct the interval drawn for a milestone on the timeline.

    Start date, first applicable rule wins:

    1. earliest planned start among linked actions;
    2. linked actions exist but none is dated: due date minus the lookback;
    3. due date of the previous milestone in the same axis;
    4. due date minus the lookback.

    A late linked action can put the start after the end; the period keeps it
    and renderers give such bars a minimum width.
    """

    end_date = resolve_due_date(milestone, config)
    lookback_start = add_days(end_date, -config.lookback_days)

    if linked_actions:
        starts = [action.planned_start for action in linked_actions if action.planned_start is not None]
        if starts:
            start_date, source = min(starts), "linked_actions"
        else:
            start_date, source = lookback_start, "lookback"
    elif previous is not None and previous.due_date is not None:
        start_date, source = previous.due_date, "previous_milestone"
    else:
        start_date, source = lookback_start, "lookback"

    if start_date > end_date:
        logger.debug("Milestone %s has a linked action starting after its due date %s", milestone.id, end_date)

    return GanttPeriod(
        start_date=start_date,
        end_date=end_date,
        progress=milestone_progress(milestone, linked_actions),
        linked_count=len(linked_actions),
        start_source=source,
    )


def milestone_progress(milestone: Milestone, linked_actions: Sequence[Action]) -> int:
    """Mean progress of linked actions (rounded half up), else 100/0 from the status."""
    if linked_actions:
        mean = sum(action.progress for action in linked_actions) / len(linked_actions)
        return int(math.floor(mean + 0.5))
    return 100 if milestone.status in TERMINAL_MILESTONE_STATUSES else 0


def resolve_timeline(
    milestones: Iterable[Milestone],
    actions: Iterable[Action],
    config: ScheduleConfig | None = None,
) -> list[GanttRow]:
    """
    Resolve every milestone period, in timeline order.

    Milestones are stable-sorted by due date (undated first); each one is
    chained to the latest earlier milestone of its axis that has a due date.
    """

    config = config or ScheduleConfig()
    linked: dict[int, list[Action]] = {}
    for action in actions:
        if action.milestone_id is not None:
            linked.setdefault(action.milestone_id, []).append(action)

    ordered = sorted(milestones, key=lambda milestone: milestone.due_date or date.min)
    last_in_axis: dict[str, Milestone] = {}
    rows: list[GanttRow] = []

    for order, milestone in enumerate(ordered):
        previous = last_in_axis.get(milestone.axis)
        children = linked.get(milestone.id, []) if milestone.id is not None else []
        period = resolve_period(milestone, children, previous, config)
        rows.append(
            GanttRow(
                order=order,
                milestone=milestone,
                period=period,
                previous_id=previous.id if previous is not None else None,
            )
        )
        if milestone.due_date is not None:
            last_in_axis[milestone.axis] = milestone

    return rows


def timeline_window(dates: Iterable[date | None], today: date) -> tuple[date, date]:
    """
    Visible date range of the timeline.

    From the first day of the month before the earliest date to the last day
    of the month two months after the latest; today to six months ahead when
    nothing is dated.
    """

    known = [day for day in dates if day is not None]
    if known:
        low, high = min(known), max(known)
    else:
        low, high = today, _add_months(today, 6)
    start = _add_months(low.replace(day=1), -1)
    end = _add_months(high.replace(day=1), 3) - timedelta(days=1)
    return start, end


def _add_months(day: date, months: int) -> date:
    index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    last_day = (date(year + month // 12, month % 12 + 1, 1) - timedelta(days=1)).day
    return date(year, month, min(day.day, last_day))
