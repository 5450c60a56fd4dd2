from __future__ import annotations

import json
from datetime import date
from typing import Any

import pytest

from uitfkraken.common.caching import FetchCache
from uitfkraken.common.errors import ParseError
from uitfkraken.sources.listing.detail import (
    TRUST_FUND_KIND,
    detail_key,
    enrich,
    enrich_all,
    extract_detail,
    flatten,
    infer_fund_kind,
    key_name,
    parse_detail,
)

DETAIL_URL = "https://listing.test/detail/{symbol}"


def test_flatten_keeps_document_order() -> None:
    doc = {"b": {"x": 1, "y": [2, {"z": 3}]}, "a": None}
    assert list(flatten(doc)) == [
        ("b.x", 1),
        ("b.y.0", 2),
        ("b.y.1.z", 3),
        ("a", None),
    ]


def test_first_non_empty_match_wins() -> None:
    doc = {
        "meta": {"website": ""},
        "info": {"companyWebsite": "https://bank-a.test", "description": "X"},
        "other": {"website": "https://later.test"},
    }
    detail = extract_detail("AAA:PM", doc)
    assert detail.website == "https://bank-a.test"
    assert detail.profile_text == "X"


def test_nested_profile_object_does_not_shadow_its_fields() -> None:
    doc = {
        "profile": {
            "website": "https://bank-a.test",
            "currency": "PHP",
            "description": "Invests in peso bonds",
        }
    }
    detail = extract_detail("AAA:PM", doc)
    assert detail.profile_text == "Invests in peso bonds"
    assert detail.website == "https://bank-a.test"
    assert detail.currency == "PHP"


@pytest.mark.parametrize(
    "path, expected",
    [
        ("profile", "profile"),
        ("fund.profile.website", "website"),
        ("profile.aliases.1", "aliases"),
        ("0", ""),
    ],
)
def test_key_name(path: str, expected: str) -> None:
    assert key_name(path) == expected


def test_missing_fields_are_none() -> None:
    detail = extract_detail("AAA:PM", {"unrelated": 1})
    assert detail.symbol == "AAA:PM"
    assert detail.website is None
    assert detail.fund_kind is None
    assert detail.inception_date is None
    assert detail.currency is None


def test_patterns_are_configurable() -> None:
    doc = {"issuer": {"homepage": "https://bank-b.test"}}
    detail = extract_detail("B:PM", doc, {"website": "homepage"})
    assert detail.website == "https://bank-b.test"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2015-03-01", date(2015, 3, 1)),
        ("03/01/2015", date(2015, 3, 1)),
        ("1 Mar 2015", date(2015, 3, 1)),
        ("Mar 1, 2015", date(2015, 3, 1)),
        (1425168000000, date(2015, 3, 1)),
        ("1425168000000", date(2015, 3, 1)),
        ("sometime in 2015", None),
    ],
)
def test_inception_date_spellings(value: Any, expected: date | None) -> None:
    detail = extract_detail("A:PM", {"fund": {"inceptionDate": value}})
    assert detail.inception_date == expected


@pytest.mark.parametrize(
    "kind, profile, expected",
    [
        ("Mutual Fund", "A unit investment trust fund", "Mutual Fund"),
        (None, "A Unit Investment Trust Fund managed by ...", TRUST_FUND_KIND),
        (None, "Trustworthy returns", None),
        (None, None, None),
    ],
)
def test_infer_fund_kind(
    kind: str | None, profile: str | None, expected: str | None
) -> None:
    assert infer_fund_kind(kind, profile) == expected


def test_parse_detail_rejects_invalid_json() -> None:
    with pytest.raises(ParseError) as info:
        parse_detail("A:PM", b"<html>oops</html>")
    assert info.value.key == detail_key("A:PM")


def test_parse_detail_rejects_scalars() -> None:
    with pytest.raises(ParseError):
        parse_detail("A:PM", b'"just a string"')


def test_detail_key_encodes_symbol() -> None:
    assert detail_key("ABC:PM") == "detail/ABC%3APM.json"


def test_enrich_fetches_once(fake_http: Any, memory_cache: FetchCache) -> None:
    doc = {"profile": {"website": "https://bank-a.test", "currency": "PHP"}}
    fake_http.add(DETAIL_URL.format(symbol="A:PM"), json.dumps(doc))

    first = enrich(fake_http, memory_cache, "A:PM", detail_url=DETAIL_URL)
    second = enrich(fake_http, memory_cache, "A:PM", detail_url=DETAIL_URL)

    assert first == second
    assert first.currency == "PHP"
    assert len(fake_http.calls) == 1


def test_enrich_all_skips_bad_documents(
    fake_http: Any, memory_cache: FetchCache
) -> None:
    fake_http.add(DETAIL_URL.format(symbol="A:PM"), json.dumps({"website": "a"}))
    fake_http.add(DETAIL_URL.format(symbol="B:PM"), "not json")
    failed: list[str] = []

    out = enrich_all(
        fake_http,
        memory_cache,
        ["A:PM", "B:PM", "A:PM"],
        detail_url=DETAIL_URL,
        on_error=lambda key, exc: failed.append(key),
    )

    assert list(out) == ["A:PM"]
    assert failed == ["B:PM"]
