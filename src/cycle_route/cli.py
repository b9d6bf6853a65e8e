from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from cycle_route.core.engine import plan_routes, summarize
from cycle_route.core.errors import CollaboratorUnavailable, NoRouteFound
from cycle_route.core.models import PlanRequest
from cycle_route.providers.factory import build_providers


def _read_plan(path: Path) -> PlanRequest:
    data = json.loads(path.read_text(encoding="utf-8"))
    return PlanRequest(**data)


def _save_json(path: Path, obj) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, indent=2), encoding="utf-8")


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--provider", default="live", help="live, mock, or e.g. mapbox+mock-weather+openmeteo")
    ap.add_argument("--plan", default="plans/sample_plan.json", help="Path to a plan request JSON file")
    ap.add_argument("--debug", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    plan_path = Path(args.plan)
    request = _read_plan(plan_path)
    providers = build_providers(args.provider)

    console = Console()
    try:
        result = plan_routes(request, providers)
    except NoRouteFound as e:
        console.print(f"[red]No route:[/red] {e}")
        sys.exit(1)
    except CollaboratorUnavailable as e:
        console.print(f"[red]{e}[/red] - try again")
        sys.exit(2)

    table = Table(title=f"Cycle routes - wind from {result.wind_bearing_used:.0f}°")
    table.add_column("Rank")
    table.add_column("Score")
    table.add_column("km")
    table.add_column("min")
    table.add_column("Tail%")
    table.add_column("Head%")
    table.add_column("Cycle%")
    table.add_column("A-road%")
    table.add_column("Mway%")
    table.add_column("Scenic%")
    table.add_column("Ascent m")
    table.add_column("kcal")
    table.add_column("Why")

    rows = summarize(result)
    for row in rows:
        table.add_row(
            "★" if row["rank"] == 0 else str(row["rank"] + 1),
            f"{row['score']:.1f}",
            f"{row['distance_km']}",
            f"{row['duration_min']}",
            str(row["wind_tail"]),
            str(row["wind_head"]),
            str(row["cycle_pct"]),
            str(row["a_road_pct"]),
            str(row["motorway_pct"]),
            str(row["scenic_pct"]),
            str(row["ascent_m"]),
            str(row["kcal"]),
            "; ".join(row["reasons"])[:80],
        )

    console.print(table)
    for w in result.warnings:
        console.print(f"[yellow]warning:[/yellow] {w}")

    out_path = plan_path.parent / "last_plan.json"
    if args.debug:
        _save_json(out_path, result.model_dump(mode="json"))
    else:
        _save_json(out_path, rows)
    console.print(f"Saved: {out_path.resolve()}")


if __name__ == "__main__":
    main()
