import datetime as dt

import pytest

from axis_planner.config import ProjectConfig, ScheduleConfig
from axis_planner.gantt_period import (
    date_from_phase,
    detect_phase_for_date,
    milestone_progress,
    offset_from_phase,
    resolve_action_due,
    resolve_due_date,
    resolve_period,
    resolve_timeline,
    timeline_window,
)
from axis_planner.project_models import Action, Milestone
from axis_planner.render_gantt import render_gantt

TODAY = dt.date(2025, 1, 15)
CONFIG = ScheduleConfig(today=TODAY)
DUE = dt.date(2025, 2, 1)


def _milestone(id=1, axis="axe1_rh", due=DUE, status="a_venir", **kwargs):
    return Milestone(id=id, title=f"Jalon {id}", axis=axis, due_date=due, status=status, **kwargs)


def _action(id, start=None, progress=0, milestone_id=1, **kwargs):
    return Action(
        id=id,
        title=f"Action {id}",
        axis="axe1_rh",
        planned_start=start,
        progress=progress,
        milestone_id=milestone_id,
        **kwargs,
    )


def test_start_comes_from_earliest_linked_action():
    actions = [_action(1, dt.date(2025, 1, 10)), _action(2, dt.date(2025, 1, 5))]

    period = resolve_period(_milestone(), actions, previous=None, config=CONFIG)

    assert period.start_date == dt.date(2025, 1, 5)
    assert period.end_date == DUE
    assert period.start_source == "linked_actions"
    assert period.linked_count == 2
    assert period.duration_days == 27


def test_start_falls_back_to_previous_milestone_due_date():
    previous = _milestone(id=0, due=dt.date(2025, 1, 20))

    period = resolve_period(_milestone(), [], previous=previous, config=CONFIG)

    assert period.start_date == dt.date(2025, 1, 20)
    assert period.start_source == "previous_milestone"
    assert period.linked_count == 0


def test_start_falls_back_to_lookback_window():
    period = resolve_period(_milestone(), [], previous=None, config=CONFIG)

    assert period.start_date == DUE - dt.timedelta(days=30)
    assert period.start_source == "lookback"


def test_lookback_window_is_configurable():
    config = ScheduleConfig(today=TODAY, lookback_days=7)

    period = resolve_period(_milestone(), [], previous=None, config=config)

    assert period.start_date == dt.date(2025, 1, 25)


def test_undated_linked_actions_skip_the_previous_milestone():
    previous = _milestone(id=0, due=dt.date(2025, 1, 20))
    actions = [_action(1), _action(2)]

    period = resolve_period(_milestone(), actions, previous=previous, config=CONFIG)

    assert period.start_date == dt.date(2025, 1, 2)
    assert period.start_source == "lookback"
    assert period.linked_count == 2


def test_late_linked_action_keeps_its_start_after_the_due_date():
    period = resolve_period(_milestone(), [_action(1, dt.date(2025, 3, 1))], previous=None, config=CONFIG)

    assert period.start_date == dt.date(2025, 3, 1)
    assert period.end_date == DUE
    assert period.start_source == "linked_actions"
    assert period.duration_days == -28


def test_renderer_accepts_a_period_starting_after_its_due_date(tmp_path):
    rows = resolve_timeline([_milestone()], [_action(1, dt.date(2025, 3, 1))], CONFIG)
    out_file = tmp_path / "late.svg"

    render_gantt(rows, out_path=str(out_file), title="Jalons", today=TODAY)

    assert rows[0].period.start_date > rows[0].period.end_date
    assert out_file.stat().st_size > 0


def test_progress_is_the_mean_of_linked_actions():
    actions = [_action(1, progress=40), _action(2, progress=60)]

    assert resolve_period(_milestone(), actions, None, CONFIG).progress == 50


def test_progress_rounds_half_up():
    assert milestone_progress(_milestone(), [_action(1, progress=42), _action(2, progress=43)]) == 43


@pytest.mark.parametrize("status, expected", [("atteint", 100), ("depasse", 100), ("en_danger", 0), ("a_venir", 0)])
def test_progress_without_linked_actions_follows_status(status, expected):
    assert milestone_progress(_milestone(status=status), []) == expected


def test_missing_due_date_uses_phase_reference_and_offset():
    milestone = _milestone(due=None, phase_reference="soft_opening", trigger_offset_days=-30)

    assert resolve_due_date(milestone, CONFIG) == dt.date(2026, 10, 2)


def test_missing_due_date_uses_phase_date_alone():
    milestone = _milestone(due=None, phase_reference="mobilisation_end")

    assert resolve_due_date(milestone, CONFIG) == dt.date(2027, 3, 1)


def test_missing_due_date_without_reference_uses_today():
    period = resolve_period(_milestone(due=None), [], None, CONFIG)

    assert period.end_date == TODAY
    assert period.start_date == TODAY - dt.timedelta(days=30)


def test_phase_helpers_round_trip():
    project = ProjectConfig()
    target = date_from_phase(project, "soft_opening", -45)

    assert offset_from_phase(project, "soft_opening", target) == -45
    assert detect_phase_for_date(project, dt.date(2026, 10, 1)) == "soft_opening"
    assert detect_phase_for_date(project, dt.date(2024, 2, 1)) == "construction_start"


def test_unknown_phase_reference_raises_key_error():
    with pytest.raises(KeyError):
        date_from_phase(ProjectConfig(), "grand_opening", 0)


def test_action_due_resolution_order():
    start = dt.date(2025, 5, 1)

    assert resolve_action_due(_action(1, start, planned_end=dt.date(2025, 5, 9)), CONFIG) == dt.date(2025, 5, 9)
    assert resolve_action_due(
        _action(2, start, phase_reference="soft_opening", trigger_offset_days=-30, planned_duration_days=10), CONFIG
    ) == dt.date(2026, 10, 12)
    assert resolve_action_due(_action(3, start, planned_duration_days=4), CONFIG) == dt.date(2025, 5, 5)
    assert resolve_action_due(_action(4, start), CONFIG) == start
    assert resolve_action_due(_action(5), CONFIG) is None


def test_timeline_orders_milestones_and_chains_within_axis():
    milestones = [
        _milestone(id=1, axis="axe1_rh", due=dt.date(2025, 3, 1)),
        _milestone(id=2, axis="axe2_commercial", due=dt.date(2025, 2, 1)),
        _milestone(id=3, axis="axe1_rh", due=dt.date(2025, 4, 1)),
        _milestone(id=4, axis="axe1_rh", due=None),
    ]
    actions = [
        _action(10, dt.date(2025, 1, 20), progress=80, milestone_id=2),
        _action(11, dt.date(2025, 1, 10), progress=20, milestone_id=2),
        _action(12, dt.date(2025, 1, 1), milestone_id=None),
    ]

    rows = resolve_timeline(milestones, actions, CONFIG)

    assert [row.milestone.id for row in rows] == [4, 2, 1, 3]
    by_id = {row.milestone.id: row for row in rows}
    assert by_id[4].period.end_date == TODAY
    assert by_id[2].period.start_date == dt.date(2025, 1, 10)
    assert by_id[2].period.progress == 50
    assert by_id[1].previous_id is None
    assert by_id[1].period.start_date == dt.date(2025, 1, 30)
    assert by_id[3].previous_id == 1
    assert by_id[3].period.start_date == dt.date(2025, 3, 1)


def test_timeline_window_pads_to_whole_months():
    assert timeline_window([dt.date(2025, 3, 15), None, dt.date(2025, 6, 10)], TODAY) == (
        dt.date(2025, 2, 1),
        dt.date(2025, 8, 31),
    )
    assert timeline_window([dt.date(2025, 1, 5)], TODAY) == (dt.date(2024, 12, 1), dt.date(2025, 3, 31))


def test_timeline_window_without_dates_starts_from_today():
    assert timeline_window([], TODAY) == (dt.date(2024, 12, 1), dt.date(2025, 9, 30))


def test_renderer_produces_svg(tmp_path):
    milestones = [_milestone(id=1), _milestone(id=2, due=dt.date(2025, 3, 1), status="atteint")]
    rows = resolve_timeline(milestones, [_action(1, dt.date(2025, 1, 3), progress=30)], CONFIG)

    out_file = tmp_path / "timeline.svg"
    render_gantt(rows, out_path=str(out_file), title="Jalons", today=TODAY)

    assert out_file.exists()
    assert out_file.stat().st_size > 0
