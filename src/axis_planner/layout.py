from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from .project_models import AXE_LABELS, AXES, PertNode, ScheduleGraph

MARKER_SIZE = 60


@dataclass(frozen=True)
class LayoutConstants:
    """Pixel grid of the PERT canvas, before any zoom is applied."""

    node_width: int = 160
    node_height: int = 100
    h_gap: int = 80
    v_gap: int = 40
    header_width: int = 120
    padding: int = 40


@dataclass(frozen=True)
class NodeBox:
    index: int
    node: PertNode
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class EdgePath:
    """
    Connector between two node boxes.

    `d` is an SVG path string; `points` holds the same geometry as
    (x, y) pairs: two for a straight segment, four for a cubic bezier.
    """

    source: int
    target: int
    d: str
    points: tuple[tuple[float, float], ...]
    is_curve: bool
    is_critical: bool


@dataclass(frozen=True)
class Marker:
    """Cosmetic START/END circle; not part of the node/edge model."""

    label: str
    caption: str
    x: float
    y: float
    size: float = MARKER_SIZE


@dataclass(frozen=True)
class PhaseBand:
    phase_index: int
    axis: str
    label: str
    node_count: int
    x: float
    y: float
    width: float
    height: float


@dataclass
class PertLayout:
    width: float
    height: float
    boxes: list[NodeBox] = field(default_factory=list)
    edges: list[EdgePath] = field(default_factory=list)
    phases: list[PhaseBand] = field(default_factory=list)
    start_marker: Marker | None = None
    end_marker: Marker | None = None
    project_end: int = 0


def node_position(node: PertNode, constants: LayoutConstants) -> tuple[float, float]:
    """Top-left pixel corner of a node from its (phase, column) cell."""
    x = constants.header_width + constants.padding + node.column_index * (constants.node_width + constants.h_gap)
    y = constants.padding + node.phase_index * (constants.node_height + constants.v_gap)
    return x, y


def layout_graph(
    graph: ScheduleGraph,
    constants: LayoutConstants | None = None,
    axes: Sequence[str] = AXES,
) -> PertLayout:
    """
    Place a solved graph on the phase/column grid.

    Coordinates are unscaled; zoom is a rendering-time transform, so the same
    layout can be drawn at any scale.
    """

    c = constants or LayoutConstants()
    nodes = graph.nodes
    by_phase = graph.nodes_by_phase()
    phase_rows = max(by_phase, default=-1) + 1

    width = c.header_width + c.padding * 2 + graph.max_columns * (c.node_width + c.h_gap)
    height = c.padding * 2 + phase_rows * (c.node_height + c.v_gap)

    layout = PertLayout(width=width, height=height, project_end=graph.project_end)

    for idx, node in enumerate(nodes):
        x, y = node_position(node, c)
        layout.boxes.append(NodeBox(index=idx, node=node, x=x, y=y, width=c.node_width, height=c.node_height))

    for source, target in graph.edges():
        layout.edges.append(_edge_path(nodes[source], nodes[target], source, target, c))

    for phase_index, members in by_phase.items():
        axis = axes[phase_index] if phase_index < len(axes) else str(phase_index)
        _, y = node_position(members[0], c)
        layout.phases.append(
            PhaseBand(
                phase_index=phase_index,
                axis=axis,
                label=AXE_LABELS.get(axis, axis),
                node_count=len(members),
                x=c.padding / 2,
                y=y,
                width=c.header_width - c.padding / 2,
                height=c.node_height,
            )
        )

    if nodes:
        marker_y = height / 2 - MARKER_SIZE / 2
        layout.start_marker = Marker(label="START", caption="J0", x=c.padding / 2, y=marker_y)
        layout.end_marker = Marker(label="FIN", caption=f"J{graph.project_end}", x=width - 80, y=marker_y)

    return layout


def _edge_path(
    source: PertNode,
    target: PertNode,
    source_idx: int,
    target_idx: int,
    c: LayoutConstants,
) -> EdgePath:
    fx, fy = node_position(source, c)
    tx, ty = node_position(target, c)
    start = (fx + c.node_width, fy + c.node_height / 2)
    end = (tx, ty + c.node_height / 2)
    is_critical = source.is_critical and target.is_critical

    if source.phase_index != target.phase_index:
        mid_x = (start[0] + end[0]) / 2
        points = (start, (mid_x, start[1]), (mid_x, end[1]), end)
        d = f"M {_num(start[0])} {_num(start[1])} C {_num(mid_x)} {_num(start[1])}, {_num(mid_x)} {_num(end[1])}, {_num(end[0])} {_num(end[1])}"
        return EdgePath(source_idx, target_idx, d, points, True, is_critical)

    d = f"M {_num(start[0])} {_num(start[1])} L {_num(end[0])} {_num(end[1])}"
    return EdgePath(source_idx, target_idx, d, (start, end), False, is_critical)


def _num(value: float) -> str:
    return f"{value:g}"
