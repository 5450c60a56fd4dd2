"""
Simple period returns over ingested price series.

For each symbol the latest observation is compared to a base observation:

- period_returns: the last point on or before ``latest_date - days``
- ytd_return:     the last point of the previous calendar year

Returns are percentages (``12.5`` means +12.5%). A missing base point or a
zero base value gives ``None``.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Mapping, Sequence

from uitfkraken.catalog.models import PricePoint
from uitfkraken.common.types import JSONLike

DEFAULT_PERIODS: Mapping[str, int] = {
    "1M": 30,
    "3M": 91,
    "6M": 182,
    "1Y": 365,
    "3Y": 1095,
}


def _by_symbol(points: Iterable[PricePoint]) -> dict[str, list[PricePoint]]:
    out: dict[str, list[PricePoint]] = {}
    for p in sorted(points):
        out.setdefault(p.symbol, []).append(p)
    return out


def _last_on_or_before(series: Sequence[PricePoint], cutoff: date) -> PricePoint | None:
    best: PricePoint | None = None
    for p in series:
        if p.date > cutoff:
            break
        best = p
    return best


def _pct(latest: float, base: float) -> float | None:
    if base == 0:
        return None
    return (latest / base - 1.0) * 100.0


def _series_return(series: Sequence[PricePoint], cutoff: date) -> float | None:
    if not series:
        return None
    base = _last_on_or_before(series, cutoff)
    if base is None:
        return None
    return _pct(series[-1].value, base.value)


def period_returns(
    points: Iterable[PricePoint],
    periods: Mapping[str, int] = DEFAULT_PERIODS,
) -> dict[str, dict[str, float | None]]:
    """Map symbol -> {period label -> percent return}."""
    out: dict[str, dict[str, float | None]] = {}
    for symbol, series in _by_symbol(points).items():
        latest = series[-1].date
        out[symbol] = {
            label: _series_return(series, latest - timedelta(days=days))
            for label, days in periods.items()
        }
    return out


def ytd_return(points: Iterable[PricePoint]) -> dict[str, float | None]:
    """Map symbol -> percent return since the last close of the previous year."""
    out: dict[str, float | None] = {}
    for symbol, series in _by_symbol(points).items():
        year_end = date(series[-1].date.year - 1, 12, 31)
        out[symbol] = _series_return(series, year_end)
    return out


def returns_table(
    points: Sequence[PricePoint],
    periods: Mapping[str, int] = DEFAULT_PERIODS,
) -> list[dict[str, JSONLike]]:
    """One row per symbol: Symbol, As Of, one column per period, then YTD."""
    by_period = period_returns(points, periods)
    ytd = ytd_return(points)
    latest = {s: series[-1].date for s, series in _by_symbol(points).items()}
    rows: list[dict[str, JSONLike]] = []
    for symbol in sorted(by_period):
        row: dict[str, JSONLike] = {
            "Symbol": symbol,
            "As Of": latest[symbol].isoformat(),
        }
        row.update(by_period[symbol])
        row["YTD"] = ytd[symbol]
        rows.append(row)
    return rows


__all__ = ["DEFAULT_PERIODS", "period_returns", "returns_table", "ytd_return"]
