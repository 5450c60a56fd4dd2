"""
End-to-end pipeline.

    collect listings -> de-dup + filter -> enrich details -> build catalog A
    fetch fund table -> build catalog B
    reconcile A and B -> ingest series for reconciled symbols -> returns
    persist every table under the configured output directory

Runs sequentially and deterministically. Every fetch goes through the fetch
cache, so an interrupted run picks up where it stopped. Transport errors
propagate; parse errors skip the offending record and are written to the
run log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Mapping, Optional

from uitfkraken.catalog.build import (
    build_catalog_a,
    build_catalog_b,
    dedupe_exact,
    filter_listing,
)
from uitfkraken.catalog.models import (
    CatalogAEntity,
    CatalogBEntity,
    PricePoint,
    ReconciledEntity,
)
from uitfkraken.catalog.persistence import save_table
from uitfkraken.catalog.reconcile import ReconciliationReport, reconcile_with_report
from uitfkraken.catalog.returns import returns_table
from uitfkraken.common.caching import FetchCache, LocalDiskBackend
from uitfkraken.common.errors import ParseError
from uitfkraken.common.http_adapter import HttpRequestsAdapter
from uitfkraken.common.types import JSONLike
from uitfkraken.config.config import PipelineConfig
from uitfkraken.pipeline.runlog import RunLog
from uitfkraken.sources.common import HttpGetter
from uitfkraken.sources.fund_info.table import fetch_fund_info
from uitfkraken.sources.listing.collector import collect_listings
from uitfkraken.sources.listing.detail import enrich_all
from uitfkraken.sources.series.ingest import ingest_series

logger = logging.getLogger(__name__)

TABLE_ALL_UITFS = "all_uitfs"
TABLE_FUND_INFO = "fund_info"
TABLE_UITF_MATRIX = "uitf_matrix"
TABLE_PRICES = "prices"
TABLE_RETURNS = "returns"
TABLE_RECONCILIATION = "reconciliation"


@dataclass(frozen=True)
class PipelineResult:
    run_id: str
    as_of: date
    catalog_a: tuple[CatalogAEntity, ...]
    catalog_b: tuple[CatalogBEntity, ...]
    report: ReconciliationReport
    prices: tuple[PricePoint, ...]
    returns: tuple[dict[str, JSONLike], ...]
    outputs: Mapping[str, Path] = field(default_factory=dict)
    errors: int = 0

    @property
    def entities(self) -> tuple[ReconciledEntity, ...]:
        return self.report.entities


def reconciliation_summary(report: ReconciliationReport) -> dict[str, JSONLike]:
    """Summary counts plus the ambiguous matches, ready to persist."""
    summary: dict[str, Any] = dict(report.summary())
    summary["ambiguities"] = [
        {
            "pass": m.pass_name,
            "fund_names": list(m.fund_names),
            "symbols": list(m.symbols),
        }
        for m in report.ambiguities
    ]
    summary["unmatched_funds"] = [
        {"Bank": b.bank, "Fund Name": b.fund_name} for b in report.unmatched_b
    ]
    return summary


class _StageLog:
    """Routes per-record outcomes of one stage to the run log."""

    def __init__(self, log: RunLog, stage: str) -> None:
        self.log = log
        self.stage = stage
        self.failed: set[str] = set()

    def err(self, key: str, exc: ParseError) -> None:
        self.failed.add(key)
        self.log.log(key=key, stage=self.stage, status="err", error=str(exc))
        self.log.mark_err(self.stage, key, {"key": key, "error": exc.message})

    def ok(self, key: str, **extra: Any) -> None:
        self.log.log(key=key, stage=self.stage, status="ok", extra=extra or None)
        self.log.mark_ok(self.stage, key)

    def skip(self, key: str, reason: str) -> None:
        self.log.log(key=key, stage=self.stage, status="skip", reason=reason)


def run_pipeline(
    config: PipelineConfig,
    http: Optional[HttpGetter] = None,
    cache: Optional[FetchCache] = None,
    run_id: Optional[str] = None,
    *,
    as_of: Optional[date] = None,
) -> PipelineResult:
    """Run every stage and persist the resulting tables.

    Args:
        config: Resolved settings (see `PipelineConfig.from_omegaconf`).
        http: Transport; defaults to a `HttpRequestsAdapter` built from config
            and closed when the run ends.
        cache: Fetch cache; defaults to a local-disk cache at `config.cache_dir`.
        run_id: Run log directory name; defaults to a UTC timestamp.
        as_of: Snapshot date for persisted tables; defaults to today.
    """
    owned: Optional[HttpRequestsAdapter] = None
    if http is None:
        owned = HttpRequestsAdapter(
            user_agent=config.user_agent, default_timeout=config.timeout
        )
        http = owned
    try:
        return _run(config, http, cache, run_id, as_of or date.today())
    finally:
        if owned is not None:
            owned.close()


def _run(
    config: PipelineConfig,
    http: HttpGetter,
    cache: Optional[FetchCache],
    run_id: Optional[str],
    as_of: date,
) -> PipelineResult:
    if cache is None:
        cache = FetchCache(LocalDiskBackend(config.cache_dir))
    log = RunLog(config.output_dir, run_id=run_id)
    logger.info("run %s starting (as_of=%s)", log.run_id, as_of.isoformat())
    fetch: dict[str, Any] = {
        "timeout": config.timeout,
        "rate_seconds": config.rate_seconds,
    }

    # 1) Catalog A
    listing = _StageLog(log, "listing")
    raw = collect_listings(
        http,
        cache,
        config.queries,
        search_url=config.search_url,
        page_size=config.page_size,
        on_error=listing.err,
        **fetch,
    )
    for query in config.queries:
        if query not in listing.failed:
            listing.ok(query)
    records = filter_listing(
        dedupe_exact(raw), countries=config.countries, types=config.types
    )
    logger.info("listing: %d rows, %d after de-dup and filter", len(raw), len(records))

    detail = _StageLog(log, "detail")
    symbols = list(dict.fromkeys(r.symbol for r in records))
    details = enrich_all(
        http,
        cache,
        symbols,
        detail_url=config.detail_url,
        patterns=config.field_patterns,
        on_error=detail.err,
        **fetch,
    )
    for symbol in details:
        detail.ok(symbol)

    catalog_a = build_catalog_a(
        records,
        details,
        website_to_bank=config.website_to_bank,
        fund_kinds=config.fund_kinds,
        normalizer=config.normalizer,
    )

    # 2) Catalog B
    fund_info = _StageLog(log, "fund_info")
    try:
        raw_b = fetch_fund_info(
            http, cache, url=config.fund_info_url, on_error=fund_info.err, **fetch
        )
        fund_info.ok("table", rows=len(raw_b))
    except ParseError as exc:
        logger.warning("fund table unusable: %s", exc)
        fund_info.err("table", exc)
        raw_b = []
    catalog_b = build_catalog_b(
        raw_b, bank_aliases=config.bank_aliases, normalizer=config.normalizer
    )

    # 3) Reconcile
    report = reconcile_with_report(
        catalog_a,
        catalog_b,
        overrides=config.manual_overrides,
        normalizer=config.normalizer,
    )

    # 4) Series and returns
    series = _StageLog(log, "series")
    reconciled = [e.symbol for e in report.entities]
    prices = ingest_series(
        http,
        cache,
        reconciled,
        url_template=config.series_url,
        lookback=config.lookback,
        on_error=series.err,
        **fetch,
    )
    counts: dict[str, int] = {}
    for p in prices:
        counts[p.symbol] = counts.get(p.symbol, 0) + 1
    for symbol in reconciled:
        if symbol in series.failed:
            continue
        if symbol in counts:
            series.ok(symbol, rows=counts[symbol])
        else:
            series.skip(symbol, "empty")
    returns = returns_table(prices)

    # 5) Persist
    out = config.output_dir
    tables: dict[str, JSONLike] = {
        TABLE_ALL_UITFS: [a.to_row() for a in catalog_a],
        TABLE_FUND_INFO: [b.to_row() for b in catalog_b],
        TABLE_UITF_MATRIX: [e.to_row() for e in report.entities],
        TABLE_PRICES: [p.to_row() for p in prices],
        TABLE_RETURNS: list(returns),
        TABLE_RECONCILIATION: reconciliation_summary(report),
    }
    outputs = {
        name: save_table(rows, out, name, as_of=as_of) for name, rows in tables.items()
    }

    errors = sum(len(s.failed) for s in (listing, detail, fund_info, series))
    logger.info(
        "run %s done: %d reconciled, %d price rows, %d skipped records "
        "(cache hits=%d misses=%d)",
        log.run_id,
        len(report.entities),
        len(prices),
        errors,
        cache.hits,
        cache.misses,
    )
    return PipelineResult(
        run_id=log.run_id,
        as_of=as_of,
        catalog_a=tuple(catalog_a),
        catalog_b=tuple(catalog_b),
        report=report,
        prices=tuple(prices),
        returns=tuple(returns),
        outputs=outputs,
        errors=errors,
    )


__all__ = [
    "PipelineResult",
    "TABLE_ALL_UITFS",
    "TABLE_FUND_INFO",
    "TABLE_PRICES",
    "TABLE_RECONCILIATION",
    "TABLE_RETURNS",
    "TABLE_UITF_MATRIX",
    "reconciliation_summary",
    "run_pipeline",
]
