"""
Per-record progress log of one pipeline run.

    <output_dir>/runs/<run_id>/
        progress.jsonl                 one JSON object per event, appended
        ok/<stage>/<key>.ok            empty marker per finished record
        err/<stage>/<key>.json         error payload per skipped record

Every event carries ``time`` (UTC, second precision, ``Z`` suffix), ``stage``,
``key`` and ``status`` (``ok``, ``skip`` or ``err``), plus optional ``reason``,
``error`` and caller fields. Keys are queries, symbols or table row keys and
are percent-encoded into file names. Without an explicit ``run_id`` the run
is named after its UTC start time, e.g. ``2026-10-18T07-59-12``.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Literal, Optional
from urllib.parse import quote

from uitfkraken.common.file_io import write_json

Status = Literal["ok", "skip", "err"]

_RUN_ID_FORMAT = "%Y-%m-%dT%H-%M-%S"


def _timestamp(now: datetime) -> str:
    return now.strftime("%Y-%m-%dT%H:%M:%SZ")


def _file_stem(key: str) -> str:
    return quote(key, safe="._-")


class RunLog:
    def __init__(self, base_path: Path, run_id: Optional[str] = None) -> None:
        self.run_id = run_id or datetime.now(timezone.utc).strftime(_RUN_ID_FORMAT)
        self.runs_root = Path(base_path) / "runs"
        self.run_dir = self.runs_root / self.run_id
        self.progress_path = self.run_dir / "progress.jsonl"
        self.ok_dir = self.run_dir / "ok"
        self.err_dir = self.run_dir / "err"

        for directory in (self.ok_dir, self.err_dir):
            directory.mkdir(parents=True, exist_ok=True)
        self.progress_path.touch(exist_ok=True)

    def log(
        self,
        *,
        key: str,
        stage: str,
        status: Status,
        reason: Optional[str] = None,
        error: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Append one event; `extra` fields never replace the standard ones."""
        event: Dict[str, Any] = dict(extra or {})
        event.update(
            time=_timestamp(datetime.now(timezone.utc)),
            stage=stage,
            key=key,
            status=status,
        )
        for name, value in (("reason", reason), ("error", error)):
            if value is not None:
                event[name] = value
        line = json.dumps(event, ensure_ascii=False)
        with self.progress_path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")

    def mark_ok(self, stage: str, key: str) -> Path:
        marker = self.ok_dir / stage / f"{_file_stem(key)}.ok"
        marker.parent.mkdir(parents=True, exist_ok=True)
        marker.touch()
        return marker

    def mark_err(self, stage: str, key: str, payload: Dict[str, Any]) -> Path:
        return write_json(self.err_dir / stage / f"{_file_stem(key)}.json", payload)

    def entries(self) -> list[Dict[str, Any]]:
        """Events written so far, oldest first."""
        with self.progress_path.open(encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]


__all__ = ["RunLog", "Status"]
