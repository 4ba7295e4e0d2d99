from __future__ import annotations

import datetime as _dt
import logging
from dataclasses import dataclass, field
from typing import Any

import yaml

from .config import PHASE_REFERENCES, DEFAULT_LOOKBACK_DAYS, ProjectConfig, ScheduleConfig
from .dates import parse_date
from .project_models import ACTION_STATUSES, MILESTONE_STATUSES, Action, Milestone

logger = logging.getLogger(__name__)


class ProjectValidationError(Exception):
    """Raised when the plan document is malformed (bad types, duplicate ids, unknown keys)."""


@dataclass
class Plan:
    """Everything read from a plan document: settings plus both entity collections."""

    name: str
    config: ScheduleConfig
    actions: list[Action] = field(default_factory=list)
    milestones: list[Milestone] = field(default_factory=list)


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like actions[0].planned_start."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:  # pragma: no cover - trivial
        return ".".join(self.parts) if self.parts else "root"


_PROJECT_KEYS = {"name", "today", "axes", "lookback_days", "duration_policy", "anchor_roots", "phases"}
_ACTION_KEYS = {
    "id",
    "title",
    "axis",
    "planned_start",
    "planned_end",
    "progress",
    "status",
    "milestone_id",
    "phase_reference",
    "trigger_offset_days",
    "planned_duration_days",
    "meta",
}
_MILESTONE_KEYS = {
    "id",
    "title",
    "axis",
    "due_date",
    "progress",
    "status",
    "phase_reference",
    "trigger_offset_days",
    "meta",
}


def load_plan(path: str) -> Plan:
    """Load a Plan from a YAML file at the given path (no scheduling)."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return parse_plan(raw)


def parse_plan(data: Any) -> Plan:
    path = _Path()
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping at top level")
    _assert_allowed_keys(data, {"project", "actions", "milestones"}, path)

    project_raw = data.get("project")
    if not isinstance(project_raw, dict):
        raise ProjectValidationError(f"{path}: missing required mapping 'project'")
    name, config = _parse_project(project_raw, path.child("project"))

    ids: set[int] = set()
    actions = [
        _parse_action(item, path.child(f"actions[{idx}]"), ids)
        for idx, item in enumerate(_optional_list(data, "actions", path))
    ]
    ids = set()
    milestones = [
        _parse_milestone(item, path.child(f"milestones[{idx}]"), ids)
        for idx, item in enumerate(_optional_list(data, "milestones", path))
    ]

    known_axes = set(config.axes)
    unknown = sum(1 for entity in [*actions, *milestones] if entity.axis not in known_axes)
    if unknown:
        logger.warning("%d entities use an axis outside the configured list and will not be scheduled", unknown)

    return Plan(name=name, config=config, actions=actions, milestones=milestones)


def _parse_project(data: dict[str, Any], path: _Path) -> tuple[str, ScheduleConfig]:
    _assert_allowed_keys(data, _PROJECT_KEYS, path)
    name = _require_str(data, "name", path)

    overrides: dict[str, Any] = {}
    if "today" in data:
        overrides["today"] = _parse_required_date(data["today"], path.child("today"))

    if "axes" in data:
        axes = data["axes"]
        if not isinstance(axes, list) or not axes or not all(isinstance(a, str) and a for a in axes):
            raise ProjectValidationError(f"{path.child('axes')}: expected non-empty list of axis names")
        if len(set(axes)) != len(axes):
            raise ProjectValidationError(f"{path.child('axes')}: duplicate axis names")
        overrides["axes"] = tuple(axes)

    lookback = data.get("lookback_days", DEFAULT_LOOKBACK_DAYS)
    if not _is_int(lookback) or lookback < 0:
        raise ProjectValidationError(f"{path.child('lookback_days')}: expected non-negative integer")
    overrides["lookback_days"] = lookback

    policy = data.get("duration_policy", "sibling_gap")
    if policy not in ("sibling_gap", "unit"):
        raise ProjectValidationError(f"{path.child('duration_policy')}: expected 'sibling_gap' or 'unit'")
    overrides["duration_policy"] = policy

    anchor_roots = data.get("anchor_roots", False)
    if not isinstance(anchor_roots, bool):
        raise ProjectValidationError(f"{path.child('anchor_roots')}: expected boolean")
    overrides["anchor_roots"] = anchor_roots

    phases_raw = data.get("phases")
    if phases_raw is not None:
        if not isinstance(phases_raw, dict):
            raise ProjectValidationError(f"{path.child('phases')}: expected mapping of phase dates")
        _assert_allowed_keys(phases_raw, set(PHASE_REFERENCES), path.child("phases"))
        phase_dates = {
            ref: _parse_required_date(value, path.child(f"phases.{ref}")) for ref, value in phases_raw.items()
        }
        overrides["project"] = ProjectConfig(**phase_dates)

    return name, ScheduleConfig(**overrides)


def _parse_action(data: Any, path: _Path, ids: set[int]) -> Action:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for action")
    _assert_allowed_keys(data, _ACTION_KEYS, path)

    return Action(
        id=_parse_id(data, path, ids),
        title=_require_str(data, "title", path),
        axis=_require_str(data, "axis", path),
        planned_start=_parse_optional_date(data.get("planned_start"), path.child("planned_start")),
        planned_end=_parse_optional_date(data.get("planned_end"), path.child("planned_end")),
        progress=_parse_progress(data.get("progress", 0), path.child("progress")),
        status=_parse_status(data, ACTION_STATUSES, path) or "a_planifier",
        milestone_id=_optional_int(data, "milestone_id", path),
        phase_reference=_parse_phase_reference(data, path),
        trigger_offset_days=_optional_int(data, "trigger_offset_days", path),
        planned_duration_days=_optional_int(data, "planned_duration_days", path),
        meta=_parse_meta(data.get("meta"), path.child("meta")),
    )


def _parse_milestone(data: Any, path: _Path, ids: set[int]) -> Milestone:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for milestone")
    _assert_allowed_keys(data, _MILESTONE_KEYS, path)

    return Milestone(
        id=_parse_id(data, path, ids),
        title=_require_str(data, "title", path),
        axis=_require_str(data, "axis", path),
        due_date=_parse_optional_date(data.get("due_date"), path.child("due_date")),
        progress=_parse_progress(data.get("progress", 0), path.child("progress")),
        status=_parse_status(data, MILESTONE_STATUSES, path) or "a_venir",
        phase_reference=_parse_phase_reference(data, path),
        trigger_offset_days=_optional_int(data, "trigger_offset_days", path),
        meta=_parse_meta(data.get("meta"), path.child("meta")),
    )


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(set(data.keys()) - allowed)
    if extras:
        raise ProjectValidationError(f"{path}: unexpected fields {extras}")


def _optional_list(data: dict[str, Any], key: str, path: _Path) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ProjectValidationError(f"{path.child(key)}: expected list")
    return value


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    if key not in data:
        raise ProjectValidationError(f"{path}: missing required field '{key}'")
    value = data[key]
    if not isinstance(value, str) or not value.strip():
        raise ProjectValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _optional_str(data: dict[str, Any], key: str, path: _Path) -> str | None:
    if data.get(key) is None:
        return None
    return _require_str(data, key, path)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _optional_int(data: dict[str, Any], key: str, path: _Path) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if not _is_int(value):
        raise ProjectValidationError(f"{path.child(key)}: expected integer")
    return value


def _parse_id(data: dict[str, Any], path: _Path, ids: set[int]) -> int | None:
    value = _optional_int(data, "id", path)
    if value is None:
        return None
    if value in ids:
        raise ProjectValidationError(f"{path.child('id')}: duplicate id {value}")
    ids.add(value)
    return value


def _parse_progress(value: Any, path: _Path) -> int:
    if not _is_int(value) or not 0 <= value <= 100:
        raise ProjectValidationError(f"{path}: expected integer between 0 and 100")
    return value


def _parse_status(data: dict[str, Any], allowed: tuple[str, ...], path: _Path) -> str | None:
    value = _optional_str(data, "status", path)
    if value is not None and value not in allowed:
        raise ProjectValidationError(f"{path.child('status')}: expected one of {list(allowed)}")
    return value


def _parse_phase_reference(data: dict[str, Any], path: _Path) -> str | None:
    value = _optional_str(data, "phase_reference", path)
    if value is not None and value not in PHASE_REFERENCES:
        raise ProjectValidationError(f"{path.child('phase_reference')}: expected one of {list(PHASE_REFERENCES)}")
    return value


def _parse_optional_date(value: Any, path: _Path) -> _dt.date | None:
    """Entity dates are data, not structure: bad values degrade to None."""
    if value is None:
        return None
    parsed = parse_date(value)
    if parsed is None:
        logger.warning("%s: unparseable date %r treated as missing", path, value)
    return parsed


def _parse_required_date(value: Any, path: _Path) -> _dt.date:
    parsed = parse_date(value)
    if parsed is None:
        raise ProjectValidationError(f"{path}: expected YYYY-MM-DD or YYYY-MM date")
    return parsed


def _parse_meta(value: Any, path: _Path) -> dict[str, Any] | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ProjectValidationError(f"{path}: expected mapping for meta")
    return value
