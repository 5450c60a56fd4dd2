"""
run_pipeline.py

Run the full uitfkraken pipeline once.

Workflow:
1. Compose configuration (shipped defaults + optional YAML + --set overrides).
2. Build the typed PipelineConfig.
3. Collect, enrich, reconcile, ingest series, persist tables.
4. Print where the outputs went and the reconciliation summary.

Usage:
    poetry run python scripts/run_pipeline.py --config my.yaml \
        --set pipeline.page_size=50 --set http.rate_seconds=1.0
"""

from __future__ import annotations

import argparse
import logging
from typing import Sequence

from rich.console import Console
from rich.table import Table

from uitfkraken.common.logging import configure_logging
from uitfkraken.config.config import PipelineConfig, load_config
from uitfkraken.pipeline.run import run_pipeline

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build the reconciled UITF catalog and its price history."
    )
    parser.add_argument("--config", default=None, help="User YAML over defaults.")
    parser.add_argument(
        "--set",
        dest="overrides",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Dotlist override, e.g. pipeline.page_size=50 (repeatable).",
    )
    parser.add_argument("--run-id", default=None, help="Run log id (default: UTC).")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    cfg = load_config(args.config, overrides=args.overrides)
    config = PipelineConfig.from_omegaconf(cfg)
    result = run_pipeline(config, run_id=args.run_id)

    table = Table(title=f"Run {result.run_id} ({result.as_of.isoformat()})")
    table.add_column("Output", style="cyan")
    table.add_column("Path", style="white")
    for name, path in result.outputs.items():
        table.add_row(name, str(path))
    console.print(table)

    summary = result.report.summary()
    console.print(
        f"Reconciled [bold]{summary['reconciled']}[/bold] of "
        f"min({summary['catalog_a']}, {summary['catalog_b']}) funds "
        f"(match rate {summary['match_rate']:.1%}), "
        f"{len(result.prices)} price rows, {result.errors} skipped records."
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
