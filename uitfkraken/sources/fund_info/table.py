"""
Parser for the bulk fund table (catalog B, "fund_info").

The source publishes one HTML page with a single 17-column table, one fund
per row, columns in `FUND_INFO_COLUMNS` order. Cells are free text:

- numbers may carry thousands separators, a ``%`` suffix or a leading
  currency code (``PHP 10,000``)
- ``-``, ``N/A`` and empty cells are missing values
- dates use the spellings understood by `parse_date`

A row with the wrong number of cells, an empty fund name or an unreadable
number raises `ParseError` for that row; `parse_fund_table` logs and skips it.

Cache key: ``fund_info/table.html``.
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterator, Sequence

from bs4 import BeautifulSoup, Tag

from uitfkraken.catalog.models import FUND_INFO_COLUMNS, CatalogBEntity
from uitfkraken.common.caching import FetchCache, cache_key
from uitfkraken.common.errors import ParseError
from uitfkraken.sources.common import HttpGetter, cached_get, parse_date

logger = logging.getLogger(__name__)

FUND_TABLE_KEY = cache_key("fund_info", "table.html")

_MISSING = {"", "-", "--", "n/a", "na", "none"}
_CURRENCY_PREFIX = re.compile(r"^[A-Za-z]{3}\s+")


def _text(cell: str) -> str | None:
    value = cell.strip()
    return None if value.casefold() in _MISSING else value


def _number(cell: str, key: str, column: str) -> float | None:
    value = _text(cell)
    if value is None:
        return None
    cleaned = _CURRENCY_PREFIX.sub("", value).replace(",", "").rstrip("%").strip()
    try:
        return float(cleaned)
    except ValueError:
        raise ParseError(key, f"{column}: not a number: {cell!r}") from None


def _find_table(soup: BeautifulSoup) -> Tag | None:
    """The first table with a 17-cell header row, else the first table."""
    tables = [t for t in soup.find_all("table") if isinstance(t, Tag)]
    for table in tables:
        if len(table.find_all("th")) == len(FUND_INFO_COLUMNS):
            return table
    return tables[0] if tables else None


def iter_fund_rows(html: str) -> Iterator[tuple[int, list[str]]]:
    """Yield ``(row_number, cell_texts)`` for every data row of the fund table.

    Raises:
        ParseError: If the page has no table at all.
    """
    soup = BeautifulSoup(html, "html.parser")
    table = _find_table(soup)
    if table is None:
        raise ParseError(FUND_TABLE_KEY, "fund table not found")
    n = 0
    for tr in table.find_all("tr"):
        cells = [td.get_text(" ", strip=True) for td in tr.find_all("td")]
        if not cells:
            continue
        n += 1
        yield n, cells


def parse_fund_row(cells: Sequence[str], key: str) -> CatalogBEntity:
    """Turn the 17 cells of one row into a `CatalogBEntity` (names untouched)."""
    if len(cells) != len(FUND_INFO_COLUMNS):
        raise ParseError(
            key, f"expected {len(FUND_INFO_COLUMNS)} cells, got {len(cells)}"
        )
    c = dict(zip(FUND_INFO_COLUMNS, cells))
    fund_name = _text(c["Fund Name"])
    if fund_name is None:
        raise ParseError(key, "empty fund name")

    def num(column: str) -> float | None:
        return _number(c[column], key, column)

    return CatalogBEntity(
        bank=_text(c["Bank"]),
        fund_name=fund_name,
        currency=_text(c["Currency"]),
        fund_classification=_text(c["Fund Classification"]),
        risk_classification=_text(c["Risk Classification"]),
        inception_date=parse_date(_text(c["Inception Date"])),
        last_uploaded_date=parse_date(_text(c["Last Uploaded Date"])),
        navpu=num("NAVPU"),
        previous_navpu=num("Previous NAVPU"),
        return_1d=num("1-Day Return"),
        return_ytd=num("YTD Return"),
        return_1y=num("1-Year Return"),
        return_3y=num("3-Year Return"),
        return_5y=num("5-Year Return"),
        trust_fee=num("Trust Fee"),
        minimum_investment=num("Minimum Investment"),
        total_fund_size=num("Total Fund Size"),
    )


def parse_fund_table(
    html: str,
    *,
    on_error: Callable[[str, ParseError], None] | None = None,
) -> list[CatalogBEntity]:
    """Parse every row, skipping (and reporting) the ones that fail."""
    funds: list[CatalogBEntity] = []
    for n, cells in iter_fund_rows(html):
        try:
            funds.append(parse_fund_row(cells, f"{FUND_TABLE_KEY}#row{n}"))
        except ParseError as exc:
            logger.warning("skipping fund row: %s", exc)
            if on_error is not None:
                on_error(exc.key, exc)
    logger.info("fund table: %d rows parsed", len(funds))
    return funds


def fetch_fund_info(
    http: HttpGetter,
    cache: FetchCache,
    *,
    url: str,
    timeout: float | None = None,
    rate_seconds: float = 0.0,
    on_error: Callable[[str, ParseError], None] | None = None,
) -> list[CatalogBEntity]:
    """Fetch (or reuse) the bulk table and parse it into raw catalog B rows."""
    body = cached_get(
        http,
        cache,
        FUND_TABLE_KEY,
        url,
        headers={"Accept": "text/html"},
        timeout=timeout,
        rate_seconds=rate_seconds,
    )
    return parse_fund_table(body.decode("utf-8", errors="replace"), on_error=on_error)


__all__ = [
    "FUND_TABLE_KEY",
    "fetch_fund_info",
    "iter_fund_rows",
    "parse_fund_row",
    "parse_fund_table",
]
