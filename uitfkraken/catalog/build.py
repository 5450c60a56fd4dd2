"""
Build the two input catalogs for reconciliation.

- build_catalog_a: raw listing rows + per-symbol details -> "all_uitfs"
- build_catalog_b: parsed fund-table rows -> "fund_info"

Both return new lists and never mutate their inputs.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Collection, Iterable, Mapping, Sequence, TypeVar

from uitfkraken.catalog.mappings import bank_for_website, canonical_bank
from uitfkraken.catalog.models import (
    CatalogAEntity,
    CatalogBEntity,
    EntityDetail,
    RawListingRecord,
)
from uitfkraken.catalog.normalize import normalize

logger = logging.getLogger(__name__)

T = TypeVar("T")


def dedupe_exact(records: Iterable[T]) -> list[T]:
    """Drop exact duplicates, keeping first occurrences in order."""
    seen: set[T] = set()
    out: list[T] = []
    for rec in records:
        if rec in seen:
            continue
        seen.add(rec)
        out.append(rec)
    return out


def filter_listing(
    records: Iterable[RawListingRecord],
    *,
    countries: Collection[str] = (),
    types: Collection[str] = (),
) -> list[RawListingRecord]:
    """Keep rows whose country and type are allowed (empty allowlist = any)."""
    country_set = {c.casefold() for c in countries}
    type_set = {t.casefold() for t in types}
    return [
        r
        for r in records
        if (not country_set or r.country.casefold() in country_set)
        and (not type_set or r.type.casefold() in type_set)
    ]


def build_catalog_a(
    raw_records: Iterable[RawListingRecord],
    details: Mapping[str, EntityDetail],
    *,
    website_to_bank: Mapping[str, str],
    fund_kinds: Collection[str] = ("UITF",),
    normalizer: Callable[[str], str] = normalize,
) -> list[CatalogAEntity]:
    """Combine listing rows with their details into unique-symbol entities.

    Rows without a detail, or whose fund kind is missing or not accepted, are
    left out. An unmapped website leaves `bank` as ``None``; the row is kept.
    """
    kinds = {k.casefold() for k in fund_kinds}
    out: list[CatalogAEntity] = []
    seen: set[str] = set()
    no_detail = wrong_kind = no_bank = 0

    for rec in dedupe_exact(raw_records):
        if rec.symbol in seen:
            continue
        detail = details.get(rec.symbol)
        if detail is None:
            no_detail += 1
            continue
        kind = detail.fund_kind
        if kinds and (kind is None or kind.casefold() not in kinds):
            wrong_kind += 1
            continue
        bank = bank_for_website(detail.website, website_to_bank)
        if bank is None:
            no_bank += 1
        seen.add(rec.symbol)
        out.append(
            CatalogAEntity(
                symbol=rec.symbol,
                name=normalizer(rec.name),
                bank=bank,
                inception_date=detail.inception_date,
                currency=detail.currency,
            )
        )

    logger.info(
        "catalog A: %d funds (skipped %d without detail, %d other kinds); "
        "%d with unresolved bank",
        len(out),
        no_detail,
        wrong_kind,
        no_bank,
    )
    return out


def build_catalog_b(
    rows: Sequence[CatalogBEntity],
    *,
    bank_aliases: Mapping[str, str],
    normalizer: Callable[[str], str] = normalize,
) -> list[CatalogBEntity]:
    """Canonicalize bank and fund name, then de-duplicate on (bank, fund_name).

    The first occurrence of a key wins.
    """
    out: list[CatalogBEntity] = []
    seen: set[tuple[str | None, str]] = set()
    for row in rows:
        fund = replace(
            row,
            bank=canonical_bank(row.bank, bank_aliases),
            fund_name=normalizer(row.fund_name),
        )
        if fund.key in seen:
            logger.debug("dropping duplicate fund %s", fund.key)
            continue
        seen.add(fund.key)
        out.append(fund)
    logger.info(
        "catalog B: %d funds (%d duplicates dropped)", len(out), len(rows) - len(out)
    )
    return out


__all__ = [
    "build_catalog_a",
    "build_catalog_b",
    "dedupe_exact",
    "filter_listing",
]
