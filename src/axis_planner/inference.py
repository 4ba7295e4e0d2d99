from __future__ import annotations

import logging
from datetime import date
from typing import Sequence

from .config import DurationPolicy
from .dates import day_offset, days_between
from .project_models import PertNode, ScheduleEntity

logger = logging.getLogger(__name__)


def project_epoch(entities: Sequence[ScheduleEntity], today: date) -> date:
    """Day 0 of the graph: earliest anchor date, or `today` when nothing is dated."""
    dated = [entity.anchor_date for entity in entities if entity.anchor_date is not None]
    return min(dated) if dated else today


def infer_dependencies(
    entities: Sequence[ScheduleEntity],
    axes: Sequence[str],
    epoch: date,
    duration_policy: DurationPolicy = "sibling_gap",
) -> tuple[list[PertNode], list[int | None]]:
    """
    Build the node arena and its inferred edges.

    - Groups entities by axis, in the order of `axes`; unknown axes are dropped
      and their ids returned as the second element.
    - Orders each group by anchor date with a stable sort; undated entities
      sort as day 0, i.e. first.
    - Chains every group sequentially and bridges the last node of each phase
      to the first node of the next one.

    Arena order is (phase, column), so every edge points forward in the list.
    """

    axis_positions = {axis: idx for idx, axis in enumerate(axes)}
    groups: list[list[ScheduleEntity]] = [[] for _ in axes]
    unclassified: list[int | None] = []

    for entity in entities:
        position = axis_positions.get(entity.axis)
        if position is None:
            unclassified.append(entity.id)
            continue
        groups[position].append(entity)

    if unclassified:
        logger.info("Excluded %d entities with an unknown axis from the graph", len(unclassified))

    nodes: list[PertNode] = []
    last_of_phase: dict[int, int] = {}

    for phase_index, group in enumerate(groups):
        ordered = sorted(group, key=lambda entity: entity.anchor_date or date.min)
        previous_idx: int | None = None
        for column_index, entity in enumerate(ordered):
            idx = len(nodes)
            node = PertNode(
                id=entity.id if entity.id is not None else idx,
                entity=entity,
                phase_index=phase_index,
                column_index=column_index,
                planned_offset=day_offset(entity.planned_start, epoch),
            )
            previous = nodes[previous_idx] if previous_idx is not None else None
            node.duration = _initial_duration(entity, previous, epoch, duration_policy)
            nodes.append(node)

            if previous_idx is not None:
                _link(nodes, previous_idx, idx)
            elif phase_index - 1 in last_of_phase:
                _link(nodes, last_of_phase[phase_index - 1], idx)
            previous_idx = idx

        if previous_idx is not None:
            last_of_phase[phase_index] = previous_idx

    logger.debug("Inferred %d nodes and %d edges", len(nodes), sum(len(n.successors) for n in nodes))
    return nodes, unclassified


def planned_finish_offset(entity: ScheduleEntity, epoch: date) -> int:
    """Offset of the entity's planned end, falling back to its start, then day 0."""
    return day_offset(entity.planned_end or entity.planned_start, epoch)


def _initial_duration(
    entity: ScheduleEntity,
    previous: PertNode | None,
    epoch: date,
    policy: DurationPolicy,
) -> int:
    start, end = entity.planned_start, entity.planned_end
    if start is not None and end is not None:
        return max(1, days_between(start, end))
    if end is None or policy == "unit":
        return 1

    due_offset = day_offset(end, epoch)
    if previous is None:
        return max(1, due_offset)
    return max(1, due_offset - planned_finish_offset(previous.entity, epoch))


def _link(nodes: list[PertNode], source: int, target: int) -> None:
    if source in nodes[target].predecessors:
        return
    nodes[target].predecessors.append(source)
    nodes[source].successors.append(target)
