import datetime as dt
import textwrap

import pytest

from axis_planner.__main__ import main
from axis_planner.parse_project import ProjectValidationError, load_plan, parse_plan

PLAN_YAML = textwrap.dedent(
    """
    project:
      name: Cosmos Angré
      today: 2025-01-15
      lookback_days: 21
      phases:
        soft_opening: 2026-11
        mobilisation_end: 2027-03-15
    actions:
      - id: 1
        title: Recruter l'équipe
        axis: axe1_rh
        planned_start: 2025-01-06
        planned_end: 2025-01-20
        progress: 40
        status: en_cours
        milestone_id: 10
      - id: 2
        title: Signer les baux
        axis: axe2_commercial
        planned_start: not-a-date
        planned_end: 2025-02-10
    milestones:
      - id: 10
        title: Équipe en place
        axis: axe1_rh
        due_date: 2025-02-01
      - id: 11
        title: Ouverture
        axis: axe2_commercial
        phase_reference: soft_opening
        trigger_offset_days: -30
    """
)


def _write(tmp_path, text=PLAN_YAML):
    path = tmp_path / "plan.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_plan_reads_settings_and_entities(tmp_path):
    plan = load_plan(str(_write(tmp_path)))

    assert plan.name == "Cosmos Angré"
    assert plan.config.today == dt.date(2025, 1, 15)
    assert plan.config.lookback_days == 21
    assert plan.config.project.soft_opening == dt.date(2026, 11, 1)
    assert plan.config.project.mobilisation_end == dt.date(2027, 3, 15)
    assert plan.config.project.construction_start == dt.date(2024, 1, 1)

    first, second = plan.actions
    assert (first.planned_start, first.planned_end, first.progress) == (dt.date(2025, 1, 6), dt.date(2025, 1, 20), 40)
    assert first.milestone_id == 10
    assert second.planned_start is None
    assert second.status == "a_planifier"

    assert [m.id for m in plan.milestones] == [10, 11]
    assert plan.milestones[1].due_date is None
    assert plan.milestones[1].trigger_offset_days == -30


@pytest.mark.parametrize(
    "document, message",
    [
        ({"project": {"name": "X", "colour": "red"}}, "unexpected fields"),
        ({"project": {"name": "X"}, "actions": [{"id": 1, "title": "A", "axis": "axe1_rh", "progress": 140}]}, "between 0 and 100"),
        ({"project": {"name": "X"}, "milestones": [{"id": 1, "title": "A", "axis": "a"}, {"id": 1, "title": "B", "axis": "a"}]}, "duplicate id"),
        ({"project": {"name": "X", "axes": []}}, "axis names"),
        ({"project": {"name": "X", "phases": {"soft_opening": "soon"}}}, "YYYY-MM"),
        ({"project": {"name": "X", "duration_policy": "guess"}}, "sibling_gap"),
        ({"project": {"name": "X"}, "milestones": [{"id": 1, "title": "A", "axis": "a", "phase_reference": "later"}]}, "phase_reference"),
        ({"project": {"name": "X"}, "actions": [{"id": 1, "title": "A", "axis": "a", "status": "atteint"}]}, "status"),
        ({"project": {"name": "X"}, "milestones": [{"id": 1, "title": "A", "axis": "a", "status": "en_cours"}]}, "status"),
        ({"actions": []}, "project"),
    ],
)
def test_malformed_documents_raise_validation_error(document, message):
    with pytest.raises(ProjectValidationError, match=message):
        parse_plan(document)


def test_cli_renders_pert_view(tmp_path):
    out_file = tmp_path / "out" / "pert.svg"

    code = main([str(_write(tmp_path)), "--view", "pert", "--kind", "actions", "--out", str(out_file)])

    assert code == 0
    assert out_file.stat().st_size > 0


def test_cli_renders_gantt_view(tmp_path):
    out_file = tmp_path / "gantt.svg"

    code = main([str(_write(tmp_path)), "--view", "gantt", "--out", str(out_file), "--scale", "0.8"])

    assert code == 0
    assert out_file.exists()


@pytest.mark.parametrize("view", ["pert", "gantt"])
def test_cli_treats_empty_plan_as_success(tmp_path, capsys, view):
    path = _write(tmp_path, "project:\n  name: Vide\n  today: 2025-01-15\n")
    out_file = tmp_path / f"{view}.svg"

    assert main([str(path), "--view", view, "--out", str(out_file)]) == 0

    assert not out_file.exists()
    err = capsys.readouterr().err
    assert "Nothing to schedule" in err
    assert "scheduling unavailable" not in err


def test_cli_reports_invalid_plan(tmp_path, capsys):
    path = _write(tmp_path, "project:\n  name: X\n  colour: red\n")

    assert main([str(path), "--out", str(tmp_path / "x.svg")]) == 2
    assert "unexpected fields" in capsys.readouterr().err


def test_cli_reports_missing_file(tmp_path):
    assert main([str(tmp_path / "missing.yaml")]) == 1
