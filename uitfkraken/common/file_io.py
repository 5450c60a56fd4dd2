"""
Atomic file writes and JSON helpers shared by the cache, the run log and
table persistence.

Files are UTF-8. JSON is written with a 2-space indent, non-ASCII kept as is
and a trailing newline. Every write lands in a temp file next to the target
and is moved into place with `os.replace`; missing parent directories are
created. I/O and JSON errors propagate.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import cast

from uitfkraken.common.types import JSONLike

__all__ = ["atomic_write_bytes", "write_json", "read_json"]


def atomic_write_bytes(path: Path, data: bytes) -> Path:
    """Write `data` to `path` so readers see the old file or the new one."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return path


def write_json(path: Path, data: JSONLike) -> Path:
    payload = json.dumps(data, ensure_ascii=False, indent=2) + "\n"
    return atomic_write_bytes(path, payload.encode("utf-8"))


def read_json(path: Path) -> JSONLike:
    with path.open(encoding="utf-8") as fh:
        return cast(JSONLike, json.load(fh))
