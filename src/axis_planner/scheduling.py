from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from .config import ScheduleConfig
from .inference import infer_dependencies, project_epoch
from .project_models import PertNode, ScheduleEntity, ScheduleGraph

logger = logging.getLogger(__name__)


class SchedulingError(Exception):
    """Raised when the network is structurally invalid (cycle, negative slack); callers fall back to raw dates."""


@dataclass(frozen=True)
class Cycle:
    """Represents a detected cycle path for error reporting."""

    path: list[str]

    def __str__(self) -> str:  # pragma: no cover - simple formatting
        return " -> ".join(self.path)


def solve(entities: Sequence[ScheduleEntity], config: ScheduleConfig | None = None) -> ScheduleGraph:
    """
    Infer dependencies for `entities` and run the CPM passes over them.

    Pure function of its inputs: nothing is cached, and the same entities with
    the same config always produce the same graph. An empty collection yields
    an empty graph.
    """

    config = config or ScheduleConfig()
    epoch = project_epoch(entities, config.today)
    nodes, unclassified = infer_dependencies(entities, config.axes, epoch, config.duration_policy)
    project_end = solve_cpm(nodes, anchor_roots=config.anchor_roots)
    return ScheduleGraph(nodes=nodes, epoch=epoch, project_end=project_end, unclassified_ids=unclassified)


def solve_cpm(nodes: list[PertNode], anchor_roots: bool = False) -> int:
    """
    Fill ES/EF/LS/LF, slack and the critical flag of every node; return the project end.

    - Forward pass: ES is the latest predecessor finish (0, or the planned
      start offset when `anchor_roots` is set, for roots).
    - Backward pass seeded from max(EF, 1).
    - Each pass sweeps the arena at most len(nodes) times; a node still
      waiting on a neighbour after that means the edges contain a cycle.
    """

    if not nodes:
        return 1

    def forward(node: PertNode) -> None:
        if node.predecessors:
            node.es = max(nodes[p].ef for p in node.predecessors)
        else:
            node.es = node.planned_offset if anchor_roots else 0
        node.ef = node.es + node.duration

    _sweep(nodes, order=range(len(nodes)), waits_on="predecessors", visit=forward)

    project_end = max(max(node.ef for node in nodes), 1)

    def backward(node: PertNode) -> None:
        if node.successors:
            node.lf = min(nodes[s].ls for s in node.successors)
        else:
            node.lf = project_end
        node.ls = node.lf - node.duration
        node.slack = node.ls - node.es
        node.is_critical = node.slack == 0

    _sweep(nodes, order=range(len(nodes) - 1, -1, -1), waits_on="successors", visit=backward)

    _assert_solved(nodes)
    logger.debug(
        "CPM solved %d nodes: project end J%d, %d critical",
        len(nodes),
        project_end,
        sum(1 for node in nodes if node.is_critical),
    )
    return project_end


def _sweep(nodes: list[PertNode], order: range, waits_on: str, visit) -> None:
    done = [False] * len(nodes)
    remaining = len(nodes)

    for _ in range(len(nodes)):
        for idx in order:
            if done[idx]:
                continue
            if all(done[other] for other in getattr(nodes[idx], waits_on)):
                visit(nodes[idx])
                done[idx] = True
                remaining -= 1
        if remaining == 0:
            return

    cycle = _find_cycle(nodes)
    raise SchedulingError(f"Dependency cycle detected: {cycle}" if cycle else "Dependency graph did not converge")


def _assert_solved(nodes: list[PertNode]) -> None:
    for node in nodes:
        if node.slack < 0:
            raise SchedulingError(f"Node {node.id} has negative slack {node.slack}")


def _find_cycle(nodes: list[PertNode]) -> Cycle | None:
    state: dict[int, str] = {}
    stack: list[int] = []
    positions: dict[int, int] = {}

    def dfs(idx: int) -> Cycle | None:
        state[idx] = "visiting"
        positions[idx] = len(stack)
        stack.append(idx)

        for pred in nodes[idx].predecessors:
            pred_state = state.get(pred)
            if pred_state == "visiting":
                cycle_path = stack[positions[pred] :] + [pred]
                return Cycle([str(nodes[i].id) for i in cycle_path])
            if pred_state is None:
                found = dfs(pred)
                if found:
                    return found

        stack.pop()
        positions.pop(idx, None)
        state[idx] = "done"
        return None

    for idx in range(len(nodes)):
        if state.get(idx) is None:
            found = dfs(idx)
            if found:
                return found
    return None
