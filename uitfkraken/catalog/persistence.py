"""
Persistence helpers for pipeline tables.

Layout (under `out_dir`):
    <name>/
      <name>_YYYY-MM-DD.json    # dated snapshot
      latest.json               # copy of the most recent snapshot

Each table is a JSON list of row objects whose keys are the stable column
names from `uitfkraken.catalog.models`. The reconciliation summary is stored
the same way as a single object.
"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterable, Mapping, Sequence, Tuple, cast

from uitfkraken.catalog.models import ReconciledEntity
from uitfkraken.common.file_io import read_json, write_json
from uitfkraken.common.types import JSONLike


def _iter_snapshot_files(table_dir: Path, name: str) -> Iterable[Tuple[date, Path]]:
    """Yield (snapshot_date, path) for files named '<name>_YYYY-MM-DD.json'."""
    prefix = f"{name}_"
    suffix = ".json"
    for p in table_dir.glob(f"{name}_*.json"):
        dt_str = p.name[len(prefix) : -len(suffix)]
        try:
            yield datetime.strptime(dt_str, "%Y-%m-%d").date(), p
        except ValueError:
            # not a snapshot of this table
            continue


def save_table(
    rows: JSONLike,
    out_dir: Path,
    name: str,
    *,
    as_of: date,
    write_latest: bool = True,
) -> Path:
    """Persist a dated snapshot of `rows` (and latest.json) and return its path."""
    table_dir = out_dir / name
    out = write_json(table_dir / f"{name}_{as_of.isoformat()}.json", rows)
    if write_latest:
        write_json(table_dir / "latest.json", rows)
    return out


def load_table(
    out_dir: Path,
    name: str,
    *,
    as_of: date | None = None,
) -> JSONLike:
    """
    Load a persisted table.

    - as_of is None: prefer 'latest.json', else the newest dated snapshot.
    - as_of given: the most recent snapshot dated on or before as_of.

    Raises FileNotFoundError when nothing suitable exists.
    """
    table_dir = out_dir / name
    if not table_dir.exists():
        raise FileNotFoundError(f"Table directory not found: {table_dir}")

    if as_of is None:
        latest_path = table_dir / "latest.json"
        if latest_path.exists():
            return read_json(latest_path)
        candidates = list(_iter_snapshot_files(table_dir, name))
    else:
        candidates = [
            (d, p) for d, p in _iter_snapshot_files(table_dir, name) if d <= as_of
        ]

    if not candidates:
        when = "" if as_of is None else f" on or before {as_of.isoformat()}"
        raise FileNotFoundError(f"No {name} snapshot found{when}")
    _, best = max(candidates, key=lambda t: t[0])
    return read_json(best)


def load_reconciled(
    out_dir: Path, name: str = "uitf_matrix", *, as_of: date | None = None
) -> list[ReconciledEntity]:
    """Read a saved reconciled catalog back into entities."""
    rows = cast(Sequence[Mapping[str, Any]], load_table(out_dir, name, as_of=as_of))
    return [ReconciledEntity.from_row(row) for row in rows]


__all__ = ["load_reconciled", "load_table", "save_table"]
