from __future__ import annotations

from datetime import date
from typing import Callable

from uitfkraken.catalog.build import (
    build_catalog_a,
    build_catalog_b,
    dedupe_exact,
    filter_listing,
)
from uitfkraken.catalog.mappings import DEFAULT_BANK_ALIASES, DEFAULT_WEBSITE_TO_BANK
from uitfkraken.catalog.models import CatalogBEntity, EntityDetail, RawListingRecord

B = Callable[..., CatalogBEntity]


def _raw(symbol: str, name: str, country: str = "Philippines", type: str = "Fund"):
    return RawListingRecord(symbol=symbol, name=name, country=country, type=type)


def _detail(symbol: str, **kw: object) -> EntityDetail:
    fields: dict[str, object] = {
        "website": "www.bdo.com.ph",
        "fund_kind": "UITF",
        "inception_date": date(2015, 1, 1),
        "currency": "PHP",
    }
    fields.update(kw)
    return EntityDetail(symbol=symbol, **fields)  # type: ignore[arg-type]


def test_dedupe_exact_keeps_first_occurrence_order() -> None:
    rows = [_raw("B:PM", "Beta"), _raw("A:PM", "Alpha"), _raw("B:PM", "Beta")]
    assert dedupe_exact(rows) == [_raw("B:PM", "Beta"), _raw("A:PM", "Alpha")]


def test_dedupe_exact_keeps_rows_differing_in_any_field() -> None:
    rows = [_raw("A:PM", "Alpha"), _raw("A:PM", "Alpha", type="Mutual Fund")]
    assert len(dedupe_exact(rows)) == 2


def test_filter_listing_allowlists() -> None:
    rows = [
        _raw("A:PM", "Alpha"),
        _raw("B:US", "Beta", country="United States"),
        _raw("C:PM", "Gamma", type="Common Stock"),
        _raw("D:PM", "Delta", country="philippines", type="mutual fund"),
    ]
    kept = filter_listing(
        rows, countries=["Philippines"], types=["Fund", "Mutual Fund"]
    )
    assert [r.symbol for r in kept] == ["A:PM", "D:PM"]
    assert filter_listing(rows) == rows


def test_build_catalog_a_resolves_bank_and_normalizes_name() -> None:
    catalog = build_catalog_a(
        [_raw("AAA:PM", "ABC Growth UITF")],
        {"AAA:PM": _detail("AAA:PM")},
        website_to_bank=DEFAULT_WEBSITE_TO_BANK,
    )
    (a,) = catalog
    assert a.symbol == "AAA:PM"
    assert a.name == "Abc Growth Fund"
    assert a.bank == "BDO"
    assert a.inception_date == date(2015, 1, 1)
    assert a.currency == "PHP"


def test_build_catalog_a_keeps_unmapped_website_without_bank() -> None:
    (a,) = build_catalog_a(
        [_raw("AAA:PM", "Alpha")],
        {"AAA:PM": _detail("AAA:PM", website="www.unknown.example")},
        website_to_bank=DEFAULT_WEBSITE_TO_BANK,
    )
    assert a.bank is None


def test_build_catalog_a_filters_kind_and_missing_detail() -> None:
    raw = [
        _raw("AAA:PM", "Alpha"),
        _raw("BBB:PM", "Beta"),
        _raw("CCC:PM", "Gamma"),
        _raw("DDD:PM", "Delta"),
    ]
    details = {
        "AAA:PM": _detail("AAA:PM"),
        "BBB:PM": _detail("BBB:PM", fund_kind="Mutual Fund"),
        "CCC:PM": _detail("CCC:PM", fund_kind=None),
    }
    catalog = build_catalog_a(raw, details, website_to_bank=DEFAULT_WEBSITE_TO_BANK)
    assert [a.symbol for a in catalog] == ["AAA:PM"]


def test_build_catalog_a_unique_symbol_first_wins() -> None:
    catalog = build_catalog_a(
        [_raw("AAA:PM", "Alpha"), _raw("AAA:PM", "Alpha", type="Mutual Fund")],
        {"AAA:PM": _detail("AAA:PM")},
        website_to_bank=DEFAULT_WEBSITE_TO_BANK,
    )
    assert len(catalog) == 1


def test_build_catalog_b_canonicalizes_and_dedupes(b_row: B) -> None:
    rows = [
        b_row("ABC Growth UITF", bank="BDO Unibank, Inc.", navpu=1.0),
        b_row("abc growth fund", bank="BDO", navpu=2.0),
        b_row("ABC Growth Fund", bank="Bank of the Philippine Islands"),
        b_row("Odd Fund", bank="  "),
    ]
    catalog = build_catalog_b(rows, bank_aliases=DEFAULT_BANK_ALIASES)

    assert [b.key for b in catalog] == [
        ("BDO", "Abc Growth Fund"),
        ("BPI", "Abc Growth Fund"),
        (None, "Odd Fund"),
    ]
    assert catalog[0].navpu == 1.0  # first occurrence wins
    assert rows[0].bank == "BDO Unibank, Inc."  # input untouched
    assert len({b.key for b in catalog}) == len(catalog)
