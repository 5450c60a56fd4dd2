from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any

import pytest

from uitfkraken.catalog.models import FUND_INFO_COLUMNS
from uitfkraken.catalog.persistence import load_table
from uitfkraken.catalog.reconcile import PASS_COMPOSITE_KEY, PASS_EXACT_NAME
from uitfkraken.config.config import PipelineConfig
from uitfkraken.pipeline.run import (
    TABLE_ALL_UITFS,
    TABLE_FUND_INFO,
    TABLE_PRICES,
    TABLE_RECONCILIATION,
    TABLE_RETURNS,
    TABLE_UITF_MATRIX,
    run_pipeline,
)
from uitfkraken.sources.listing.detail import DEFAULT_FIELD_PATTERNS

SEARCH = "https://listing.test/search"
DETAIL = "https://listing.test/detail/{symbol}"
FUNDS = "https://funds.test/navpu"
SERIES = "https://series.test/{symbol}/{lookback}"
AS_OF = date(2026, 10, 18)

# 2026-01-05 and 2026-01-06, 00:00 UTC
D1, D2 = 1767571200000, 1767657600000


def _listing_page(rows: list[tuple[str, str, str, str]]) -> str:
    body = "".join(
        "<tr>" + "".join(f"<td>{c}</td>" for c in row) + "</tr>" for row in rows
    )
    return (
        f'<div data-result-count="{len(rows)}"></div>'
        "<table><tr><th>Symbol</th><th>Name</th><th>Country</th><th>Type</th></tr>"
        f"{body}</table>"
    )


def _fund_row(bank: str, name: str, inception: str) -> str:
    values = dict.fromkeys(FUND_INFO_COLUMNS, "-")
    values.update(
        {
            "Bank": bank,
            "Fund Name": name,
            "Currency": "PHP",
            "Inception Date": inception,
            "NAVPU": "1.2345",
        }
    )
    cells = "".join(f"<td>{values[c]}</td>" for c in FUND_INFO_COLUMNS)
    return f"<tr>{cells}</tr>"


def _fund_table(*rows: str) -> str:
    head = "".join(f"<th>{c}</th>" for c in FUND_INFO_COLUMNS)
    return f"<table><tr>{head}</tr>{''.join(rows)}</table>"


def _serve_sources(http: Any, fund_table: str) -> None:
    bdo = ("BDOEQ:PM", "BDO Equity Index Fund", "Philippines", "Fund")
    listings = {
        "UITF": _listing_page(
            [
                bdo,
                ("BPIBAL:PM", "BPI Balanced Fund", "Philippines", "Fund"),
                ("XMF:PM", "Some Mutual Fund", "Philippines", "Fund"),
                ("FOREIGN:US", "US Fund", "United States", "Fund"),
            ]
        ),
        "Trust Fund": _listing_page([bdo]),
    }
    for query, page in listings.items():
        # one result page, so the count page carries the same markup
        http.add(SEARCH, page, {"query": query})
        http.add(SEARCH, page, {"query": query, "page": 1})

    details = {
        "BDOEQ:PM": {
            "profile": {
                "description": "Tracks the PSEi",
                "companyWebsite": "www.bdo.com.ph",
                "fundType": "UITF",
                "inceptionDate": "2015-01-15",
                "currency": "PHP",
            }
        },
        "BPIBAL:PM": {
            "description": "A unit investment trust fund",
            "website": "www.bpi.com.ph",
            "inception": "05/03/2010",
            "currency": "PHP",
        },
        "XMF:PM": {"fundType": "Mutual Fund", "website": "www.bdo.com.ph"},
    }
    for symbol, doc in details.items():
        http.add(DETAIL.format(symbol=symbol), json.dumps(doc))

    http.add(FUNDS, fund_table)

    http.add(
        SERIES.format(symbol="BDOEQ:PM", lookback="5_YEAR"),
        json.dumps({"data_values": [D1, 100.0, D2, 101.0]}),
    )
    http.add(
        SERIES.format(symbol="BPIBAL:PM", lookback="5_YEAR"),
        json.dumps({"data_values": []}),
    )


FUND_TABLE = _fund_table(
    _fund_row("BDO Unibank, Inc.", "BDO Equity Index Fund", "01/15/2015"),
    _fund_row(
        "Bank of the Philippine Islands", "BPI Philippine Balanced Fund", "May 3, 2010"
    ),
    _fund_row("Some Other Bank", "Money Market Fund", "2001-01-01"),
)


@pytest.fixture
def config(tmp_path: Path) -> PipelineConfig:
    return PipelineConfig(
        output_dir=tmp_path / "out",
        cache_dir=tmp_path / "cache",
        search_url=SEARCH,
        detail_url=DETAIL,
        fund_info_url=FUNDS,
        series_url=SERIES,
        queries=("UITF", "Trust Fund"),
        countries=("Philippines",),
        types=("Fund",),
        field_patterns=DEFAULT_FIELD_PATTERNS,
    )


def test_end_to_end(config: PipelineConfig, fake_http: Any) -> None:
    _serve_sources(fake_http, FUND_TABLE)

    result = run_pipeline(config, fake_http, run_id="first", as_of=AS_OF)

    assert [a.symbol for a in result.catalog_a] == ["BDOEQ:PM", "BPIBAL:PM"]
    assert [a.bank for a in result.catalog_a] == ["BDO", "BPI"]
    assert len(result.catalog_b) == 3

    by_symbol = {e.symbol: e for e in result.entities}
    assert set(by_symbol) == {"BDOEQ:PM", "BPIBAL:PM"}
    assert by_symbol["BPIBAL:PM"].fund.navpu == pytest.approx(1.2345)
    assert result.report.pass_counts()[PASS_EXACT_NAME] == 1
    assert result.report.pass_counts()[PASS_COMPOSITE_KEY] == 1
    assert [b.fund_name for b in result.report.unmatched_b] == ["Money Market Fund"]

    assert [(p.symbol, p.value) for p in result.prices] == [
        ("BDOEQ:PM", 100.0),
        ("BDOEQ:PM", 101.0),
    ]
    assert [r["Symbol"] for r in result.returns] == ["BDOEQ:PM"]
    assert result.errors == 0

    # the filtered foreign row is never enriched
    assert not any("FOREIGN" in call for call in fake_http.calls)


def test_tables_are_persisted(config: PipelineConfig, fake_http: Any) -> None:
    _serve_sources(fake_http, FUND_TABLE)

    result = run_pipeline(config, fake_http, run_id="first", as_of=AS_OF)

    assert set(result.outputs) == {
        TABLE_ALL_UITFS,
        TABLE_FUND_INFO,
        TABLE_UITF_MATRIX,
        TABLE_PRICES,
        TABLE_RETURNS,
        TABLE_RECONCILIATION,
    }
    matrix_path = result.outputs[TABLE_UITF_MATRIX]
    assert matrix_path.name == "uitf_matrix_2026-10-18.json"

    matrix = load_table(config.output_dir, TABLE_UITF_MATRIX)
    assert isinstance(matrix, list)
    assert sorted(row["Symbol"] for row in matrix) == ["BDOEQ:PM", "BPIBAL:PM"]

    summary = load_table(config.output_dir, TABLE_RECONCILIATION, as_of=AS_OF)
    assert isinstance(summary, dict)
    assert summary["reconciled"] == 2
    assert summary["unmatched_funds"] == [
        {"Bank": "Some Other Bank", "Fund Name": "Money Market Fund"}
    ]

    prices = load_table(config.output_dir, TABLE_PRICES)
    assert prices == [
        {"Symbol": "BDOEQ:PM", "Date": "2026-01-05", "Value": 100.0},
        {"Symbol": "BDOEQ:PM", "Date": "2026-01-06", "Value": 101.0},
    ]


def test_run_log_records_each_stage(config: PipelineConfig, fake_http: Any) -> None:
    _serve_sources(fake_http, FUND_TABLE)

    run_pipeline(config, fake_http, run_id="logged", as_of=AS_OF)

    run_dir = config.output_dir / "runs" / "logged"
    lines = (run_dir / "progress.jsonl").read_text(encoding="utf-8").splitlines()
    records = [json.loads(line) for line in lines]
    outcome = {(r["stage"], r["key"]): r["status"] for r in records}

    assert outcome[("listing", "UITF")] == "ok"
    assert outcome[("detail", "BPIBAL:PM")] == "ok"
    assert outcome[("fund_info", "table")] == "ok"
    assert outcome[("series", "BDOEQ:PM")] == "ok"
    assert outcome[("series", "BPIBAL:PM")] == "skip"
    assert (run_dir / "ok" / "series" / "BDOEQ%3APM.ok").exists()


def test_rerun_is_served_from_the_disk_cache(
    config: PipelineConfig, fake_http: Any
) -> None:
    _serve_sources(fake_http, FUND_TABLE)
    first = run_pipeline(config, fake_http, run_id="first", as_of=AS_OF)
    calls = len(fake_http.calls)

    # nothing is served any more: every fetch must come from the cache
    fake_http.responses.clear()
    second = run_pipeline(config, fake_http, run_id="second", as_of=AS_OF)

    assert len(fake_http.calls) == calls
    assert second.entities == first.entities
    assert second.prices == first.prices


def test_unusable_fund_table_is_logged(config: PipelineConfig, fake_http: Any) -> None:
    _serve_sources(fake_http, "<html><p>maintenance</p></html>")

    result = run_pipeline(config, fake_http, run_id="broken", as_of=AS_OF)

    assert result.catalog_b == ()
    assert result.entities == ()
    assert result.prices == ()
    assert result.errors == 1
    err = config.output_dir / "runs" / "broken" / "err" / "fund_info" / "table.json"
    assert json.loads(err.read_text(encoding="utf-8"))["key"] == "table"


def test_unparseable_detail_is_skipped(config: PipelineConfig, fake_http: Any) -> None:
    _serve_sources(fake_http, FUND_TABLE)
    fake_http.add(DETAIL.format(symbol="BPIBAL:PM"), "<html>blocked</html>")

    result = run_pipeline(config, fake_http, run_id="partial", as_of=AS_OF)

    assert [a.symbol for a in result.catalog_a] == ["BDOEQ:PM"]
    assert [e.symbol for e in result.entities] == ["BDOEQ:PM"]
    assert result.errors == 1
