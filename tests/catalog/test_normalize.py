from __future__ import annotations

import pytest

from uitfkraken.catalog.normalize import NameNormalizer, normalize

SAMPLE_NAMES = [
    "ABC Growth UITF",
    "abc growth fund",
    "ABC Growth Fund - Unit Investment Trust Fund",
    "BDO Peso Bond Fund (PHP)",
    "bpi  intl  eq  fund",
    "Metrobank Phil. Equity Index Fd",
    "The PSEi Tracker Fund Fund",
    "ATRAM Global Consumer Trends Feeder Fund",
    "sun life - prosperity   dollar  abundance fund",
    "LANDBANK Govt Securities Fund",
    "Unit Unit Investment Trust Investment Trust",
    "S&P 500 Index Feeder Funds",
    "",
    "   ",
    "---",
]


def test_examples_from_both_catalogs_agree() -> None:
    assert normalize("ABC Growth UITF") == "Abc Growth Fund"
    assert normalize("abc Growth Fund") == "Abc Growth Fund"
    assert normalize("abc growth-fund  UITF") == "Abc Growth Fund"


def test_hyphens_become_separators() -> None:
    assert normalize("peso-bond-fund") == "Peso Bond Fund"


def test_preserved_tokens_keep_canonical_spelling() -> None:
    assert normalize("bdo psei index fund") == "BDO PSEi Index Fund"
    assert normalize("Psbank Money Market Fund") == "PSBank Money Market Fund"


def test_replacements_and_removals() -> None:
    assert normalize("BPI Intl Eq Funds") == "BPI International Equity Fund"
    assert normalize("The Alpha Fund Inc.") == "Alpha Fund"


def test_phrases_removed_as_whole_tokens() -> None:
    assert normalize("ABC Growth Fund - Unit Investment Trust Fund") == (
        "Abc Growth Fund"
    )
    assert normalize("BDO Peso Bond Fund (PHP)") == "BDO Peso Bond Fund"
    # a phrase only counts as whole tokens
    assert normalize("Unity Investment Trusty Fund") == "Unity Investment Trusty Fund"


def test_doubled_trailing_descriptor_collapses() -> None:
    assert normalize("Alpha Fund Fund") == "Alpha Fund"
    assert normalize("Alpha UITF Fund Fund") == "Alpha Fund"
    # only the trailing position collapses
    assert normalize("Fund Fund Alpha") == "Fund Fund Alpha"


def test_empty_and_separator_only_inputs() -> None:
    assert normalize("") == ""
    assert normalize("  - ") == ""


@pytest.mark.parametrize("name", SAMPLE_NAMES)
def test_idempotent(name: str) -> None:
    once = normalize(name)
    assert normalize(once) == once


def test_extended_tables() -> None:
    n = NameNormalizer().extended(
        preserve=["SLAMCI"],
        replacements={"Mm": "Money"},
        removals=["Corp."],
        phrases=["Feeder"],
    )
    assert n("slamci mm fund corp.") == "SLAMCI Money Fund"
    assert n("Global Feeder Fund") == "Global Fund"
    for name in SAMPLE_NAMES:
        assert n(n(name)) == n(name)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"replacements": {"Bal": "balanced"}},  # not canonical form
        {"replacements": {"Bal": "Two Words"}},
        {"replacements": {"Eqty": "Eq"}},  # value rewritten again
        {"replacements": {"Xx": "The"}},  # value is removed again
        {"phrases": ["Money Fund"]},  # contains the trailing descriptor
        {"preserve": ["TWO WORDS"]},
    ],
)
def test_invalid_tables_are_rejected(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        NameNormalizer().extended(**kwargs)
