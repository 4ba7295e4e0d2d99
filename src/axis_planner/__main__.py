from __future__ import annotations

import argparse
import logging
import sys
import webbrowser
from pathlib import Path

import yaml

from .gantt_period import resolve_timeline
from .layout import layout_graph
from .parse_project import Plan, ProjectValidationError, load_plan
from .render_gantt import render_gantt
from .render_pert import render_pert
from .scheduling import SchedulingError, solve

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="PERT network and milestone timeline generator",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("plan", help="Path to plan YAML")
    parser.add_argument("--view", choices=["pert", "gantt"], default="pert", help="Visualization to produce")
    parser.add_argument(
        "--kind",
        choices=["actions", "milestones"],
        default="milestones",
        help="Entity kind shown in the PERT network (the timeline always shows milestones)",
    )
    parser.add_argument("--out", default="output/schedule.svg", help="Output SVG path")
    parser.add_argument("--scale", type=float, default=1.0, help="Zoom factor applied when drawing")
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument(
        "--open",
        dest="open_output",
        action="store_true",
        default=False,
        help="Best-effort open the output file after rendering",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level, format="%(levelname)s %(name)s: %(message)s")
    plan_path = Path(args.plan)

    try:
        plan = load_plan(str(plan_path))
    except (yaml.YAMLError, ProjectValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError:
        print(f"Error: plan file not found: {plan_path}", file=sys.stderr)
        return 1

    try:
        if args.view == "pert":
            _write_pert(plan, args.kind, args.out, args.scale)
        else:
            _write_gantt(plan, args.out, args.scale)
    except SchedulingError as exc:
        print(f"Error: scheduling unavailable: {exc}", file=sys.stderr)
        return 2
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    if args.open_output and Path(args.out).exists():
        try:
            webbrowser.open(Path(args.out).resolve().as_uri())
        except webbrowser.Error:
            logger.warning("Could not open %s", args.out)

    return 0


def _write_pert(plan: Plan, kind: str, out: str, scale: float) -> None:
    entities = plan.actions if kind == "actions" else plan.milestones
    graph = solve(entities, plan.config)
    if graph.unclassified_ids:
        print(f"{len(graph.unclassified_ids)} {kind} without a known axis were left out", file=sys.stderr)
    if not graph.nodes:
        print(f"Nothing to schedule: no {kind} to draw, {out} not written", file=sys.stderr)
        return
    logger.info(
        "%s: %d nodes, project end J%d, %d critical",
        kind,
        len(graph.nodes),
        graph.project_end,
        graph.critical_count,
    )
    render_pert(layout_graph(graph, axes=plan.config.axes), out, title=plan.name, scale=scale)


def _write_gantt(plan: Plan, out: str, scale: float) -> None:
    rows = resolve_timeline(plan.milestones, plan.actions, plan.config)
    if not rows:
        print(f"Nothing to schedule: no milestones to draw, {out} not written", file=sys.stderr)
        return
    render_gantt(rows, out, title=plan.name, today=plan.config.today, scale=scale)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
