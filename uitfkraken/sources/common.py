"""
Helpers shared by the source adapters.

Every adapter asks for its document through `cached_get`, which combines the
fetch cache with the optional politeness delay. The delay is only paid for
real remote calls; cache hits return immediately.

`parse_date` is the one place that knows the date spellings the sources use.
"""

from __future__ import annotations

import logging
import re
import time
from datetime import date, datetime, timezone
from typing import Any, Mapping, Optional, Protocol

from uitfkraken.common.caching import FetchCache

logger = logging.getLogger(__name__)


class HttpGetter(Protocol):
    """Anything with the `HttpRequestsAdapter.get` signature (tests pass fakes)."""

    def get(
        self,
        url: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> bytes: ...


def cached_get(
    http: HttpGetter,
    cache: FetchCache,
    key: str,
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
    timeout: Optional[float] = None,
    rate_seconds: float = 0.0,
) -> bytes:
    """Return the artifact for `key`, fetching `url` on a cache miss."""

    def fetch() -> bytes:
        if rate_seconds > 0:
            time.sleep(rate_seconds)
        logger.info("fetching %s", key)
        return http.get(url, params=params, headers=headers, timeout=timeout)

    return cache.get_or_fetch(key, fetch)


_DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%d %b %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%B %d, %Y",
)
_EPOCH_MS = re.compile(r"^-?\d{10,}$")


def date_from_epoch_ms(value: int | float) -> date:
    """UTC calendar date of an epoch-millisecond timestamp."""
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc).date()


def parse_date(value: Any) -> date | None:
    """Best-effort date parsing; anything unrecognised gives `None`.

    Accepts ISO dates and datetimes, `MM/DD/YYYY`, `DD Mon YYYY`,
    `Mon DD, YYYY` and epoch milliseconds (as a number or a digit string).
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            return date_from_epoch_ms(value)
        text = str(value).strip()
        if _EPOCH_MS.match(text):
            return date_from_epoch_ms(int(text))
    except (OverflowError, OSError, ValueError):
        return None
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


__all__ = ["HttpGetter", "cached_get", "date_from_epoch_ms", "parse_date"]
