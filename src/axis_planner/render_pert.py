from __future__ import annotations

from pathlib import Path

import matplotlib

matplotlib.use("Agg")  # ensure headless, deterministic output
import matplotlib.path as mpath
import matplotlib.pyplot as plt
from matplotlib.patches import Circle, FancyArrowPatch, FancyBboxPatch, Rectangle

from .layout import EdgePath, NodeBox, PertLayout

PX_PER_INCH = 100.0
CRITICAL_COLOR = "#EF4444"
EDGE_COLOR = "#94A3B8"
PHASE_COLORS = ["#DBEAFE", "#D1FAE5", "#FEF3C7", "#EDE9FE", "#FFE4E6", "#CFFAFE"]
NODE_FONT = 7


def render_pert(layout: PertLayout, out_path: str, title: str = "", scale: float = 1.0) -> None:
    """
    Render a laid-out PERT network to an SVG file.

    Layout coordinates are pixels with y growing downwards; `scale` only
    changes the figure size, never the layout itself.
    """

    if not layout.boxes:
        raise ValueError("layout has no nodes to draw")

    fig = plt.figure(figsize=(layout.width * scale / PX_PER_INCH, layout.height * scale / PX_PER_INCH))
    ax = fig.add_axes([0, 0, 1, 1])
    ax.set_xlim(0, layout.width)
    ax.set_ylim(layout.height, 0)
    ax.axis("off")
    if title:
        ax.set_title(title)

    for band in layout.phases:
        color = PHASE_COLORS[band.phase_index % len(PHASE_COLORS)]
        ax.add_patch(Rectangle((band.x, band.y), band.width, band.height, facecolor=color, edgecolor="#94A3B8"))
        ax.text(
            band.x + band.width / 2,
            band.y + band.height / 2,
            f"{band.label}\n{band.node_count}",
            ha="center",
            va="center",
            fontsize=NODE_FONT,
            wrap=True,
        )

    for edge in layout.edges:
        ax.add_patch(_edge_patch(edge))

    for box in layout.boxes:
        _draw_node(ax, box)

    for marker, color in ((layout.start_marker, "#1E293B"), (layout.end_marker, "#16A34A")):
        if marker is None:
            continue
        radius = marker.size / 2
        center = (marker.x + radius, marker.y + radius)
        ax.add_patch(Circle(center, radius, facecolor=color))
        ax.text(*center, f"{marker.label}\n{marker.caption}", ha="center", va="center", color="white", fontsize=NODE_FONT)

    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, format="svg")
    plt.close(fig)


def _edge_patch(edge: EdgePath) -> FancyArrowPatch:
    if edge.is_curve:
        codes = [mpath.Path.MOVETO, mpath.Path.CURVE4, mpath.Path.CURVE4, mpath.Path.CURVE4]
    else:
        codes = [mpath.Path.MOVETO, mpath.Path.LINETO]
    return FancyArrowPatch(
        path=mpath.Path(list(edge.points), codes),
        arrowstyle="-|>",
        mutation_scale=8.0,
        lw=3 if edge.is_critical else 1.5,
        linestyle="-" if edge.is_critical else (0, (4, 2)),
        color=CRITICAL_COLOR if edge.is_critical else EDGE_COLOR,
    )


def _draw_node(ax: plt.Axes, box: NodeBox) -> None:
    node = box.node
    edge_color = CRITICAL_COLOR if node.is_critical else "#475569"
    ax.add_patch(
        FancyBboxPatch(
            (box.x, box.y),
            box.width,
            box.height,
            boxstyle="round,pad=0,rounding_size=6",
            facecolor="white",
            edgecolor=edge_color,
            linewidth=2.5 if node.is_critical else 1.0,
        )
    )
    left, right, mid = box.x + 6, box.x + box.width - 6, box.x + box.width / 2
    top, bottom = box.y + 10, box.y + box.height - 10

    ax.text(left, top, str(node.es), ha="left", va="center", fontsize=NODE_FONT, family="monospace")
    ax.text(mid, top, f"{node.duration}j", ha="center", va="center", fontsize=NODE_FONT, fontweight="bold")
    ax.text(right, top, str(node.ef), ha="right", va="center", fontsize=NODE_FONT, family="monospace")

    ax.text(mid, box.y + box.height / 2, node.entity.title[:40], ha="center", va="center", fontsize=NODE_FONT)

    slack_color = CRITICAL_COLOR if node.slack == 0 else "#16A34A"
    ax.text(left, bottom, str(node.ls), ha="left", va="center", fontsize=NODE_FONT, family="monospace")
    ax.text(mid, bottom, f"{node.slack}j", ha="center", va="center", fontsize=NODE_FONT, color=slack_color)
    ax.text(right, bottom, str(node.lf), ha="right", va="center", fontsize=NODE_FONT, family="monospace")
