from __future__ import annotations

import datetime as dt
from importlib import metadata
from pathlib import Path
from typing import Iterable

import matplotlib

matplotlib.use("Agg")  # ensure headless, deterministic output
import matplotlib.dates as mdates
import matplotlib.pyplot as plt
from matplotlib.patches import Polygon

from .gantt_period import timeline_window
from .project_models import GanttRow

FONT_SCALE = 1.0
TITLE_FONT = 14 * FONT_SCALE
LABEL_FONT = 10 * FONT_SCALE
FOOTER_FONT = 8 * FONT_SCALE
TICK_FONT = 9 * FONT_SCALE
TOP_MARGIN_FRAC = 0.85
TITLE_Y = 0.985
ROW_HEIGHT = 0.6
GUIDE_COLOR = "#CBD5E1"
TODAY_COLOR = "#EF4444"


def render_gantt(
    rows: list[GanttRow],
    out_path: str,
    title: str,
    today: dt.date,
    scale: float = 1.0,
) -> None:
    """
    Render milestone periods as a static SVG timeline at `out_path`.

    - One row per milestone, in the order given (see resolve_timeline).
    - Period bars are shaded up to the milestone progress; the due date is a diamond.
    - Milestones chained to an earlier one of the same axis get a dashed guide line.
    """

    if not rows:
        raise ValueError("rows must not be empty")

    min_date, max_date = timeline_window(
        [d for row in rows for d in (row.period.start_date, row.period.end_date)], today
    )
    axis_colors = _axis_colors(rows)

    span_days = (max_date - min_date).days + 1
    fig_height = max(3.0, ROW_HEIGHT * len(rows) + 2.0) * scale
    fig_width = max(12.0, min(24.0, span_days / 7.0 * 2.0 + 6.0)) * scale
    fig = plt.figure(figsize=(fig_width, fig_height))
    gs = fig.add_gridspec(1, 2, width_ratios=[1.2, 4.0], wspace=0.05, left=0.06, right=0.98, top=TOP_MARGIN_FRAC, bottom=0.1)
    label_ax = fig.add_subplot(gs[0, 0])
    ax = fig.add_subplot(gs[0, 1], sharey=label_ax)

    ax.set_ylim(-1, len(rows))
    ax.invert_yaxis()
    ax.set_xlim(mdates.date2num(min_date), mdates.date2num(max_date + dt.timedelta(days=1)))
    ax.xaxis_date()
    ax.xaxis.tick_top()
    major_locator, major_formatter = _major_tick_strategy(span_days)
    ax.xaxis.set_major_locator(major_locator)
    ax.xaxis.set_major_formatter(major_formatter)
    ax.grid(True, axis="x", which="major", linestyle="--", alpha=0.4)
    ax.tick_params(axis="x", labelrotation=30, labelsize=TICK_FONT, pad=4)
    ax.set_yticks([])

    label_ax.set_ylim(-1, len(rows))
    label_ax.invert_yaxis()
    label_ax.set_xlim(0, 1)
    label_ax.axis("off")

    fig.suptitle(title, x=0.5, fontsize=TITLE_FONT, y=TITLE_Y)
    footer = f"axis_planner v{_tool_version()}"
    fig.text(0.99, 0.01, footer, ha="right", va="bottom", fontsize=FOOTER_FONT, alpha=0.8)

    due_positions: dict[int, tuple[float, int]] = {}

    for y, row in enumerate(rows):
        milestone, period = row.milestone, row.period
        label_ax.text(
            0.98,
            y,
            f"{milestone.title} ({period.progress}%)",
            ha="right",
            va="center",
            fontsize=LABEL_FONT,
            transform=label_ax.transData,
        )

        start_num = mdates.date2num(period.start_date)
        end_num = mdates.date2num(period.end_date)
        width = max(end_num - start_num, 0.5)
        color = axis_colors.get(milestone.axis, "#999999")
        ax.barh(y, width=width, left=start_num, height=ROW_HEIGHT, color=color, alpha=0.35, edgecolor=color, linewidth=0.5)
        if period.progress:
            ax.barh(y, width=width * period.progress / 100, left=start_num, height=ROW_HEIGHT / 3, color=color)

        half_width = 0.45 * max(1.0, span_days / 120)
        half_height = ROW_HEIGHT / 1.5
        diamond = [
            (end_num - half_width, y),
            (end_num, y - half_height),
            (end_num + half_width, y),
            (end_num, y + half_height),
        ]
        ax.add_patch(Polygon(diamond, closed=True, facecolor=color, edgecolor="black", zorder=3))

        if row.previous_id in due_positions:
            prev_num, prev_y = due_positions[row.previous_id]
            ax.plot([prev_num, start_num], [prev_y, y], color=GUIDE_COLOR, linewidth=1, linestyle=(0, (4, 2)), zorder=1)
        if milestone.id is not None:
            due_positions[milestone.id] = (end_num, y)

    if min_date <= today <= max_date:
        ax.axvline(mdates.date2num(today), color=TODAY_COLOR, linewidth=1, zorder=4)

    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, format="svg", bbox_inches="tight")
    plt.close(fig)


def _axis_colors(rows: Iterable[GanttRow]) -> dict[str, str]:
    axes = sorted({row.milestone.axis for row in rows})
    palette = plt.get_cmap("tab20")
    return {axis: matplotlib.colors.to_hex(palette(i % palette.N)) for i, axis in enumerate(axes)}


def _tool_version() -> str:
    try:
        return metadata.version("axis_planner")
    except metadata.PackageNotFoundError:
        return "0.0.0"


def _major_tick_strategy(span_days: int) -> tuple[mdates.DateLocator, mdates.DateFormatter]:
    """Choose a major tick locator/formatter to avoid overlapping labels."""
    if span_days > 180:
        return mdates.MonthLocator(interval=1), mdates.DateFormatter("%b %Y")
    if span_days > 90:
        return mdates.WeekdayLocator(byweekday=mdates.MO, interval=2), mdates.DateFormatter("%b %d")
    if span_days > 45:
        return mdates.WeekdayLocator(byweekday=mdates.MO, interval=1), mdates.DateFormatter("%b %d")
    return mdates.DayLocator(interval=2), mdates.DateFormatter("%b %d")
