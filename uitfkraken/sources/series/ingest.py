"""
Time-series ingester.

The series endpoint returns, per symbol, either one object or a list of
objects carrying ``data_values``: a flat (or once-nested) array of
interleaved ``[epoch_millis, value, epoch_millis, value, ...]`` numbers.

- values are paired in order; an odd trailing element is dropped
- pairs with a ``null`` timestamp or value are dropped
- timestamps become UTC calendar dates
- an empty or missing ``data_values`` gives an empty series, not an error

`merge_series` combines the per-symbol results into the price table:
de-duplicated on (symbol, date), first observation wins, sorted ascending.

Cache key: ``series/<symbol>_<lookback>.json``.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, Iterable, Iterator

from uitfkraken.catalog.models import PricePoint
from uitfkraken.common.caching import FetchCache, cache_key
from uitfkraken.common.errors import ParseError
from uitfkraken.sources.common import HttpGetter, cached_get, date_from_epoch_ms

logger = logging.getLogger(__name__)


def series_key(symbol: str, lookback: str) -> str:
    return cache_key("series", f"{symbol}_{lookback}.json")


def _flat(values: Iterable[Any]) -> Iterator[Any]:
    for v in values:
        if isinstance(v, list):
            yield from _flat(v)
        else:
            yield v


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def parse_series(symbol: str, doc: Any, key: str = "") -> list[PricePoint]:
    """Pair up the ``data_values`` of a decoded series document."""
    key = key or symbol
    if isinstance(doc, dict):
        items: list[Any] = [doc]
    elif isinstance(doc, list):
        items = doc
    else:
        raise ParseError(key, f"expected an object or list, got {type(doc).__name__}")

    points: list[PricePoint] = []
    for item in items:
        if not isinstance(item, dict):
            raise ParseError(key, "series entries must be objects")
        values = item.get("data_values")
        if values is None:
            continue
        if not isinstance(values, list):
            raise ParseError(key, "data_values is not an array")
        flat = list(_flat(values))
        for ts, value in zip(flat[0::2], flat[1::2]):
            if ts is None or value is None:
                continue
            if not (_is_number(ts) and _is_number(value)):
                raise ParseError(key, f"non-numeric pair {[ts, value]!r}")
            try:
                day = date_from_epoch_ms(ts)
            except (OverflowError, OSError, ValueError) as exc:
                raise ParseError(key, f"bad timestamp {ts!r}") from exc
            points.append(PricePoint(symbol=symbol, date=day, value=float(value)))
    return points


def fetch_series(
    http: HttpGetter,
    cache: FetchCache,
    symbol: str,
    *,
    url_template: str,
    lookback: str = "5_YEAR",
    timeout: float | None = None,
    rate_seconds: float = 0.0,
) -> list[PricePoint]:
    """Fetch (or reuse) and parse the bounded series for one symbol."""
    key = series_key(symbol, lookback)
    body = cached_get(
        http,
        cache,
        key,
        url_template.format(symbol=symbol, lookback=lookback),
        headers={"Accept": "application/json"},
        timeout=timeout,
        rate_seconds=rate_seconds,
    )
    if not body.strip():
        return []
    try:
        doc = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ParseError(key, f"invalid JSON: {exc}") from exc
    return parse_series(symbol, doc, key)


def merge_series(series: Iterable[Iterable[PricePoint]]) -> list[PricePoint]:
    """De-duplicate on (symbol, date), keeping the first, and sort."""
    seen: set[tuple[str, Any]] = set()
    out: list[PricePoint] = []
    for points in series:
        for p in points:
            k = (p.symbol, p.date)
            if k in seen:
                continue
            seen.add(k)
            out.append(p)
    out.sort(key=lambda p: (p.symbol, p.date))
    return out


def ingest_series(
    http: HttpGetter,
    cache: FetchCache,
    symbols: Iterable[str],
    *,
    url_template: str,
    lookback: str = "5_YEAR",
    timeout: float | None = None,
    rate_seconds: float = 0.0,
    on_error: Callable[[str, ParseError], None] | None = None,
) -> list[PricePoint]:
    """Fetch every symbol's series and merge them into one price table."""
    collected: list[list[PricePoint]] = []
    for symbol in symbols:
        try:
            points = fetch_series(
                http,
                cache,
                symbol,
                url_template=url_template,
                lookback=lookback,
                timeout=timeout,
                rate_seconds=rate_seconds,
            )
        except ParseError as exc:
            logger.warning("skipping series %s: %s", symbol, exc)
            if on_error is not None:
                on_error(symbol, exc)
            continue
        if not points:
            logger.info("no price history for %s", symbol)
        collected.append(points)
    return merge_series(collected)


__all__ = [
    "fetch_series",
    "ingest_series",
    "merge_series",
    "parse_series",
    "series_key",
]
