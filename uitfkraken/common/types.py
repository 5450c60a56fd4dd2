"""
Shared typing utilities for uitfkraken.

`JSONLike` is a recursive alias for any value that round-trips through
Python's `json` module. Dates are not JSON-like; persistence converts them to
ISO strings before writing.
"""

from __future__ import annotations

from typing import TypeAlias

JSONScalar: TypeAlias = str | int | float | bool | None
JSONLike: TypeAlias = JSONScalar | list["JSONLike"] | dict[str, "JSONLike"]

__all__ = ["JSONScalar", "JSONLike"]
