"""
Paginated collector for the listing (symbol search) source.

For each search query:

1. fetch the query page without a page number and read the total result
   count from it
2. zero results: stop, no result page is fetched
3. otherwise page_count = ceil(result_count / page_size) and pages
   1..page_count are fetched
4. every page is parsed into `RawListingRecord` rows

Queries are independent and their rows are simply concatenated. The same
fund usually appears under several queries; duplicates are removed later by
exact field-tuple equality, not here.

Cache keys: ``listing/<query>/count.html`` and
``listing/<query>/page_<n>.html``.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Callable, Iterable

from bs4 import BeautifulSoup, Tag

from uitfkraken.catalog.models import RawListingRecord
from uitfkraken.common.caching import FetchCache, cache_key
from uitfkraken.common.errors import ParseError
from uitfkraken.sources.common import HttpGetter, cached_get

logger = logging.getLogger(__name__)

LISTING_FIELDS: tuple[str, ...] = ("symbol", "name", "country", "type")

_NUMBER = re.compile(r"\d[\d,]*")
_RESULTS_TEXT = re.compile(r"(\d[\d,]*)\s+results?\b", re.IGNORECASE)


def _to_int(text: str) -> int:
    return int(text.replace(",", ""))


def parse_result_count(html: str, key: str) -> int:
    """Read the total number of results reported on a listing page.

    Looks, in order, at a ``data-result-count`` attribute, the first number
    inside an element whose class contains ``result-count``, and finally
    "N results" anywhere in the page text.

    Raises:
        ParseError: If no count can be found.
    """
    soup = BeautifulSoup(html, "html.parser")

    tagged = soup.find(attrs={"data-result-count": True})
    if isinstance(tagged, Tag):
        raw = str(tagged["data-result-count"]).strip()
        m = _NUMBER.search(raw)
        if m:
            return _to_int(m.group(0))

    counter = soup.find(class_=re.compile("result-count"))
    if isinstance(counter, Tag):
        m = _NUMBER.search(counter.get_text(" ", strip=True))
        if m:
            return _to_int(m.group(0))

    m = _RESULTS_TEXT.search(soup.get_text(" ", strip=True))
    if m:
        return _to_int(m.group(1))

    raise ParseError(key, "no result count on listing page")


def parse_listing_rows(html: str, key: str) -> list[RawListingRecord]:
    """Parse the first table of a listing page.

    Header cells are matched case-insensitively to symbol/name/country/type;
    other columns are ignored. Rows without a symbol are skipped.

    Raises:
        ParseError: If there is no table or a required column is missing.
    """
    soup = BeautifulSoup(html, "html.parser")
    table = soup.find("table")
    if not isinstance(table, Tag):
        raise ParseError(key, "listing page has no table")

    headers = [
        th.get_text(" ", strip=True).casefold() for th in table.find_all("th")
    ]
    try:
        index = {f: headers.index(f) for f in LISTING_FIELDS}
    except ValueError:
        raise ParseError(
            key, f"listing table headers {headers} lack {LISTING_FIELDS}"
        ) from None

    width = max(index.values()) + 1
    rows: list[RawListingRecord] = []
    for tr in table.find_all("tr"):
        cells = [td.get_text(" ", strip=True) for td in tr.find_all("td")]
        if not cells:
            continue
        if len(cells) < width:
            logger.warning("%s: skipping short listing row %s", key, cells)
            continue
        symbol = cells[index["symbol"]]
        if not symbol:
            continue
        rows.append(
            RawListingRecord(
                symbol=symbol,
                name=cells[index["name"]],
                country=cells[index["country"]],
                type=cells[index["type"]],
            )
        )
    return rows


def page_count(result_count: int, page_size: int) -> int:
    if page_size <= 0:
        raise ValueError("page_size must be positive")
    return math.ceil(result_count / page_size) if result_count > 0 else 0


def _decode(body: bytes) -> str:
    return body.decode("utf-8", errors="replace")


def collect_query(
    http: HttpGetter,
    cache: FetchCache,
    query: str,
    *,
    search_url: str,
    page_size: int = 20,
    timeout: float | None = None,
    rate_seconds: float = 0.0,
) -> list[RawListingRecord]:
    """Collect every listing row for one search query."""

    def fetch(name: str, params: dict[str, object]) -> tuple[str, str]:
        key = cache_key("listing", query, name)
        body = cached_get(
            http,
            cache,
            key,
            search_url,
            params=params,
            timeout=timeout,
            rate_seconds=rate_seconds,
        )
        return key, _decode(body)

    count_key, count_html = fetch("count.html", {"query": query})
    total = parse_result_count(count_html, count_key)
    pages = page_count(total, page_size)
    logger.info("query %r: %d results on %d pages", query, total, pages)

    records: list[RawListingRecord] = []
    for n in range(1, pages + 1):
        key, html = fetch(f"page_{n}.html", {"query": query, "page": n})
        records.extend(parse_listing_rows(html, key))
    return records


def collect_listings(
    http: HttpGetter,
    cache: FetchCache,
    queries: Iterable[str],
    *,
    search_url: str,
    page_size: int = 20,
    timeout: float | None = None,
    rate_seconds: float = 0.0,
    on_error: Callable[[str, ParseError], None] | None = None,
) -> list[RawListingRecord]:
    """Union of `collect_query` over all queries, in query order.

    A query whose pages cannot be parsed is logged and skipped; transport
    errors propagate.
    """
    records: list[RawListingRecord] = []
    for query in queries:
        try:
            records.extend(
                collect_query(
                    http,
                    cache,
                    query,
                    search_url=search_url,
                    page_size=page_size,
                    timeout=timeout,
                    rate_seconds=rate_seconds,
                )
            )
        except ParseError as exc:
            logger.warning("skipping query %r: %s", query, exc)
            if on_error is not None:
                on_error(query, exc)
    return records


__all__ = [
    "LISTING_FIELDS",
    "collect_listings",
    "collect_query",
    "page_count",
    "parse_listing_rows",
    "parse_result_count",
]
