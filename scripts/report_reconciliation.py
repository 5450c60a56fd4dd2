"""
report_reconciliation.py

Summarize the latest reconciled catalog and the run that produced it.

Reads (under the configured output directory):
  uitf_matrix/latest.json
  reconciliation/latest.json
  runs/<latest run_id>/progress.jsonl

Usage:
    poetry run python scripts/report_reconciliation.py [--config my.yaml] [--limit 20]
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Mapping, Sequence, cast

from rich.console import Console
from rich.table import Table

from uitfkraken.catalog.models import UITF_MATRIX_COLUMNS
from uitfkraken.catalog.persistence import load_table
from uitfkraken.config.config import load_config

console = Console()

MATRIX_PREVIEW_COLUMNS = ("Symbol", "Name", "Bank", "Currency", "NAVPU")


def get_latest_run_dir(runs_root: Path) -> Path | None:
    """Return the most recent run directory, or None if there are none."""
    if not runs_root.exists():
        return None
    run_dirs = [p for p in runs_root.iterdir() if p.is_dir()]
    return max(run_dirs, key=lambda p: p.name) if run_dirs else None


def summarize_progress(run_dir: Path) -> dict[str, dict[str, int]]:
    """Count ok / skip / err per stage from progress.jsonl."""
    counts: dict[str, dict[str, int]] = {}
    progress = run_dir / "progress.jsonl"
    if not progress.exists():
        return counts
    for line in progress.read_text(encoding="utf-8").splitlines():
        if not line.strip():
            continue
        obj = json.loads(line)
        if not isinstance(obj, dict):
            continue
        stage = counts.setdefault(
            str(obj.get("stage", "?")), {"ok": 0, "skip": 0, "err": 0}
        )
        status = str(obj.get("status", ""))
        if status in stage:
            stage[status] += 1
    return counts


def display(
    summary: Mapping[str, Any],
    matrix: Sequence[Mapping[str, Any]],
    stages: Mapping[str, Mapping[str, int]],
    *,
    limit: int,
) -> None:
    console.rule("[bold cyan]UITF Reconciliation Report")

    overview = Table(title="Reconciliation")
    overview.add_column("Metric", style="cyan", justify="right")
    overview.add_column("Value", style="white", justify="right")
    for key in ("catalog_a", "catalog_b", "reconciled", "match_rate", "ambiguous"):
        overview.add_row(key, str(summary.get(key, "")))
    for name, count in cast(Mapping[str, int], summary.get("passes", {})).items():
        overview.add_row(f"pass {name}", str(count))
    console.print(overview)

    if stages:
        runs = Table(title="Latest run")
        runs.add_column("Stage", style="cyan")
        for status in ("ok", "skip", "err"):
            runs.add_column(status.upper(), justify="right")
        for stage, c in stages.items():
            runs.add_row(stage, str(c["ok"]), str(c["skip"]), str(c["err"]))
        console.print(runs)

    shown = min(limit, len(matrix))
    preview = Table(title=f"uitf_matrix (first {shown} of {len(matrix)})")
    for col in MATRIX_PREVIEW_COLUMNS:
        preview.add_column(col)
    for row in matrix[:limit]:
        cells = (row.get(c) for c in MATRIX_PREVIEW_COLUMNS)
        preview.add_row(*("" if v is None else str(v) for v in cells))
    console.print(preview)

    ambiguities = cast(Sequence[Mapping[str, Any]], summary.get("ambiguities", []))
    if ambiguities:
        console.print(
            f"\n[bold yellow]Ambiguous matches:[/bold yellow] ({len(ambiguities)})"
        )
        for m in ambiguities[:10]:
            console.print(
                f"- [yellow]{m.get('pass')}[/yellow]: "
                f"{m.get('fund_names')} -> {m.get('symbols')}"
            )
    console.rule()


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Report on the latest reconciled catalog."
    )
    parser.add_argument("--config", default=None, help="User YAML over defaults.")
    parser.add_argument(
        "--limit", type=int, default=20, help="Rows of uitf_matrix to show."
    )
    args = parser.parse_args(argv)

    cfg = load_config(args.config)
    out_dir = Path(str(cfg.paths.output_dir))

    summary = cast(Mapping[str, Any], load_table(out_dir, "reconciliation"))
    matrix = cast(Sequence[Mapping[str, Any]], load_table(out_dir, "uitf_matrix"))
    missing = [c for c in UITF_MATRIX_COLUMNS if matrix and c not in matrix[0]]
    if missing:
        console.print(f"[red]uitf_matrix is missing columns:[/red] {missing}")
        return 1

    run_dir = get_latest_run_dir(out_dir / "runs")
    stages = summarize_progress(run_dir) if run_dir is not None else {}
    display(summary, matrix, stages, limit=args.limit)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
