"""
Detail enricher for the listing source.

Each symbol has a JSON detail document with arbitrarily nested keys. The
document is flattened into ``(dotted.path, value)`` pairs in document order
and each target field takes the value of the **first** path whose key name
matches its pattern (case-insensitive ``re.search``) and holds a non-empty
scalar. The key name is the last segment that is not a list index, so a
``profile`` pattern picks ``profile`` or ``fund.profile`` but not
``profile.website``.
Fields without a match are ``None``; they are never an error.

When no fund kind was found, a profile text mentioning "trust" marks the fund
as a trust fund (``UITF``). This is a heuristic; consumers must still accept a
missing fund kind.

Cache key: ``detail/<symbol>.json``.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Iterable, Iterator, Mapping

from uitfkraken.catalog.models import EntityDetail
from uitfkraken.common.caching import FetchCache, cache_key
from uitfkraken.common.errors import ParseError
from uitfkraken.sources.common import HttpGetter, cached_get, parse_date

logger = logging.getLogger(__name__)

DETAIL_FIELDS: tuple[str, ...] = (
    "profile_text",
    "website",
    "fund_kind",
    "inception_date",
    "currency",
)

DEFAULT_FIELD_PATTERNS: Mapping[str, str] = {
    "profile_text": "profile|description",
    "website": "website|webpage",
    "fund_kind": "fund_?type|fund_?kind|asset_?class",
    "inception_date": "inception",
    "currency": "currency",
}

TRUST_FUND_KIND = "UITF"
_TRUST = re.compile(r"\btrust\b", re.IGNORECASE)


def flatten(doc: Any, prefix: str = "") -> Iterator[tuple[str, Any]]:
    """Yield ``(dotted_path, scalar)`` pairs in document order.

    >>> list(flatten({"a": {"b": 1}, "c": [2, 3]}))
    [('a.b', 1), ('c.0', 2), ('c.1', 3)]
    """
    if isinstance(doc, Mapping):
        for k, v in doc.items():
            yield from flatten(v, f"{prefix}.{k}" if prefix else str(k))
    elif isinstance(doc, list):
        for i, v in enumerate(doc):
            yield from flatten(v, f"{prefix}.{i}" if prefix else str(i))
    else:
        yield prefix, doc


def _non_empty(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return isinstance(value, (int, float))


def key_name(path: str) -> str:
    """Last non-index segment of a flattened path.

    >>> key_name("profile.website"), key_name("profile.names.0")
    ('website', 'names')
    """
    for part in reversed(path.split(".")):
        if not part.isdigit():
            return part
    return ""


def _first_match(pairs: Iterable[tuple[str, Any]], pattern: re.Pattern[str]) -> Any:
    for path, value in pairs:
        if pattern.search(key_name(path)) and _non_empty(value):
            return value
    return None


def infer_fund_kind(fund_kind: str | None, profile_text: str | None) -> str | None:
    if fund_kind is not None:
        return fund_kind
    if profile_text and _TRUST.search(profile_text):
        return TRUST_FUND_KIND
    return None


def extract_detail(
    symbol: str,
    doc: Any,
    patterns: Mapping[str, str] = DEFAULT_FIELD_PATTERNS,
) -> EntityDetail:
    """Pull the detail fields for `symbol` out of a parsed JSON document."""
    pairs = list(flatten(doc))
    found: dict[str, Any] = {}
    for name in DETAIL_FIELDS:
        pattern = patterns.get(name)
        if pattern:
            found[name] = _first_match(pairs, re.compile(pattern, re.IGNORECASE))

    def text(name: str) -> str | None:
        value = found.get(name)
        return None if value is None else str(value).strip()

    profile_text = text("profile_text")
    return EntityDetail(
        symbol=symbol,
        profile_text=profile_text,
        website=text("website"),
        fund_kind=infer_fund_kind(text("fund_kind"), profile_text),
        inception_date=parse_date(found.get("inception_date")),
        currency=text("currency"),
    )


def parse_detail(
    symbol: str,
    body: bytes,
    patterns: Mapping[str, str] = DEFAULT_FIELD_PATTERNS,
) -> EntityDetail:
    """Decode a cached detail document.

    Raises:
        ParseError: If the body is not a JSON object or array.
    """
    key = detail_key(symbol)
    try:
        doc = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ParseError(key, f"invalid JSON: {exc}") from exc
    if not isinstance(doc, (dict, list)):
        raise ParseError(key, f"expected an object, got {type(doc).__name__}")
    return extract_detail(symbol, doc, patterns)


def detail_key(symbol: str) -> str:
    return cache_key("detail", f"{symbol}.json")


def enrich(
    http: HttpGetter,
    cache: FetchCache,
    symbol: str,
    *,
    detail_url: str,
    patterns: Mapping[str, str] = DEFAULT_FIELD_PATTERNS,
    timeout: float | None = None,
    rate_seconds: float = 0.0,
) -> EntityDetail:
    """Fetch (or reuse) and parse the detail document for one symbol."""
    body = cached_get(
        http,
        cache,
        detail_key(symbol),
        detail_url.format(symbol=symbol),
        headers={"Accept": "application/json"},
        timeout=timeout,
        rate_seconds=rate_seconds,
    )
    return parse_detail(symbol, body, patterns)


def enrich_all(
    http: HttpGetter,
    cache: FetchCache,
    symbols: Iterable[str],
    *,
    detail_url: str,
    patterns: Mapping[str, str] = DEFAULT_FIELD_PATTERNS,
    timeout: float | None = None,
    rate_seconds: float = 0.0,
    on_error: Callable[[str, ParseError], None] | None = None,
) -> dict[str, EntityDetail]:
    """Enrich each distinct symbol once; unparseable documents are skipped."""
    out: dict[str, EntityDetail] = {}
    for symbol in symbols:
        if symbol in out:
            continue
        try:
            out[symbol] = enrich(
                http,
                cache,
                symbol,
                detail_url=detail_url,
                patterns=patterns,
                timeout=timeout,
                rate_seconds=rate_seconds,
            )
        except ParseError as exc:
            logger.warning("skipping detail %s: %s", symbol, exc)
            if on_error is not None:
                on_error(symbol, exc)
    return out


__all__ = [
    "DEFAULT_FIELD_PATTERNS",
    "DETAIL_FIELDS",
    "TRUST_FUND_KIND",
    "detail_key",
    "enrich",
    "enrich_all",
    "extract_detail",
    "flatten",
    "infer_fund_kind",
    "key_name",
    "parse_detail",
]
