"""
Reconciliation of the listing catalog (A, symbol-bearing) with the fund
table (B, attribute-rich).

B rows are labelled with A symbols in three ordered passes. Each pass is a
pure function taking the labels so far and returning new ones; a pass only
looks at B rows that are still unlabelled and A symbols that are still free.

1. exact_name     normalized B fund name == normalized A name, for B rows
                  whose bank appears among A's banks. Same-named A rows at
                  the B row's bank win; otherwise any same-named A row not
                  held by a same-bank match is a candidate.
2. composite_key  identical (bank, currency, inception date) with exactly one
                  free A candidate. B rows are visited in table order and
                  every match shrinks the candidate pool for later rows.
3. manual_override  explicit fund name (optionally bank) -> symbol table,
                  applied last. It may move a symbol away from the row an
                  earlier pass gave it to.

Ambiguity is handled by one rule for every pass: the rows involved are left
unlabelled, excluded from later automatic passes, logged, and reported as an
`AmbiguousMatch`. Only a manual override can still place them.

Finally B rows join A on symbol; anything without a counterpart is dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Callable, Iterable, Mapping, Sequence

from uitfkraken.catalog.mappings import ManualOverride, as_overrides
from uitfkraken.catalog.models import CatalogAEntity, CatalogBEntity, ReconciledEntity
from uitfkraken.catalog.normalize import normalize

logger = logging.getLogger(__name__)

PASS_EXACT_NAME = "exact_name"
PASS_COMPOSITE_KEY = "composite_key"
PASS_MANUAL_OVERRIDE = "manual_override"
PASSES: tuple[str, ...] = (PASS_EXACT_NAME, PASS_COMPOSITE_KEY, PASS_MANUAL_OVERRIDE)

Normalizer = Callable[[str], str]


@dataclass(frozen=True)
class Assignment:
    """Symbol given to the B row at `row` (index into catalog B)."""

    row: int
    symbol: str
    pass_name: str


@dataclass(frozen=True)
class AmbiguousMatch:
    pass_name: str
    fund_names: tuple[str, ...]
    symbols: tuple[str, ...]
    rows: tuple[int, ...] = ()


@dataclass(frozen=True)
class PassState:
    """Accumulator threaded through the passes.

    `labels` maps B row index -> Assignment. `flagged` holds B rows that hit
    an ambiguity and must not be labelled by a later automatic pass;
    `contested` holds the A symbols involved in those ambiguities.
    """

    labels: Mapping[int, Assignment] = field(default_factory=dict)
    flagged: frozenset[int] = frozenset()
    contested: frozenset[str] = frozenset()
    ambiguities: tuple[AmbiguousMatch, ...] = ()

    @property
    def used_symbols(self) -> frozenset[str]:
        return frozenset(a.symbol for a in self.labels.values())


@dataclass(frozen=True)
class ReconciliationReport:
    entities: tuple[ReconciledEntity, ...]
    labels: Mapping[int, Assignment]
    ambiguities: tuple[AmbiguousMatch, ...]
    unmatched_a: tuple[CatalogAEntity, ...]
    unmatched_b: tuple[CatalogBEntity, ...]
    size_a: int
    size_b: int

    @property
    def match_rate(self) -> float:
        """Reconciled rows as a share of the best possible, min(|A|, |B|)."""
        ceiling = min(self.size_a, self.size_b)
        return len(self.entities) / ceiling if ceiling else 0.0

    def pass_counts(self) -> dict[str, int]:
        counts = {name: 0 for name in PASSES}
        joined = {e.symbol for e in self.entities}
        for assignment in self.labels.values():
            if assignment.symbol in joined:
                counts[assignment.pass_name] += 1
        return counts

    def summary(self) -> dict[str, object]:
        return {
            "catalog_a": self.size_a,
            "catalog_b": self.size_b,
            "reconciled": len(self.entities),
            "match_rate": round(self.match_rate, 4),
            "passes": self.pass_counts(),
            "ambiguous": len(self.ambiguities),
            "unmatched_a": len(self.unmatched_a),
            "unmatched_b": len(self.unmatched_b),
        }


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------


def _check_unique_symbols(catalog_a: Sequence[CatalogAEntity]) -> None:
    seen: set[str] = set()
    for a in catalog_a:
        if a.symbol in seen:
            raise ValueError(f"catalog A has duplicate symbol {a.symbol!r}")
        seen.add(a.symbol)


def _flag(
    state: PassState,
    pass_name: str,
    catalog_b: Sequence[CatalogBEntity],
    rows: Sequence[int],
    symbols: Iterable[str],
    *,
    contest: bool = True,
) -> PassState:
    syms = tuple(sorted(set(symbols)))
    match = AmbiguousMatch(
        pass_name=pass_name,
        fund_names=tuple(catalog_b[i].fund_name for i in rows),
        symbols=syms,
        rows=tuple(rows),
    )
    logger.warning(
        "ambiguous %s match: funds=%s symbols=%s (left unmatched)",
        pass_name,
        list(match.fund_names),
        list(syms),
    )
    return PassState(
        labels=state.labels,
        flagged=state.flagged | frozenset(rows),
        contested=(state.contested | frozenset(syms)) if contest else state.contested,
        ambiguities=state.ambiguities + (match,),
    )


def _with_label(state: PassState, assignment: Assignment) -> PassState:
    labels = dict(state.labels)
    labels[assignment.row] = assignment
    return PassState(
        labels=labels,
        flagged=state.flagged,
        contested=state.contested,
        ambiguities=state.ambiguities,
    )


def _open_rows(state: PassState, catalog_b: Sequence[CatalogBEntity]) -> list[int]:
    return [
        i
        for i in range(len(catalog_b))
        if i not in state.labels and i not in state.flagged
    ]


def _free_a(
    state: PassState, catalog_a: Sequence[CatalogAEntity]
) -> list[CatalogAEntity]:
    taken = state.used_symbols | state.contested
    return [a for a in catalog_a if a.symbol not in taken]


# ----------------------------------------------------------------------
# Pass 1: exact normalized name
# ----------------------------------------------------------------------


def exact_name_pass(
    catalog_a: Sequence[CatalogAEntity],
    catalog_b: Sequence[CatalogBEntity],
    state: PassState,
    normalizer: Normalizer = normalize,
) -> PassState:
    a_banks = {a.bank for a in catalog_a if a.bank is not None}

    a_by_name: dict[str, list[CatalogAEntity]] = {}
    for a in _free_a(state, catalog_a):
        key = normalizer(a.name)
        if key:
            a_by_name.setdefault(key, []).append(a)

    b_by_name: dict[str, list[int]] = {}
    for i in _open_rows(state, catalog_b):
        b = catalog_b[i]
        if b.bank not in a_banks:
            continue
        key = normalizer(b.fund_name)
        if key and key in a_by_name:
            b_by_name.setdefault(key, []).append(i)

    # dicts keep insertion order, so this follows catalog B's row order
    for key, rows in b_by_name.items():
        claims = _name_claims(catalog_b, rows, a_by_name[key])
        claimants: dict[str, list[int]] = {}
        for i in rows:
            for a in claims[i]:
                claimants.setdefault(a.symbol, []).append(i)
        clashing = [
            i
            for i in rows
            if len(claims[i]) > 1
            or any(len(claimants[a.symbol]) > 1 for a in claims[i])
        ]
        if clashing:
            state = _flag(
                state,
                PASS_EXACT_NAME,
                catalog_b,
                clashing,
                (a.symbol for i in clashing for a in claims[i]),
            )
        for i in rows:
            if i in clashing or not claims[i]:
                continue
            state = _with_label(
                state, Assignment(i, claims[i][0].symbol, PASS_EXACT_NAME)
            )
    return state


def _name_claims(
    catalog_b: Sequence[CatalogBEntity],
    rows: Sequence[int],
    named: Sequence[CatalogAEntity],
) -> dict[int, list[CatalogAEntity]]:
    """A candidates per B row among the A rows sharing its normalized name.

    A row at the B row's own bank is preferred. Without one, the row falls
    back to every same-named A row except those a same-bank row already
    claims, which covers A rows whose bank is unresolved.
    """
    same_bank = {i: [a for a in named if a.bank == catalog_b[i].bank] for i in rows}
    taken = {a.symbol for found in same_bank.values() for a in found}
    return {
        i: same_bank[i] or [a for a in named if a.symbol not in taken] for i in rows
    }


# ----------------------------------------------------------------------
# Pass 2: (bank, currency, inception date)
# ----------------------------------------------------------------------

CompositeKey = tuple[str, str, date]


def _composite_key(
    bank: str | None, currency: str | None, inception: date | None
) -> CompositeKey | None:
    if bank is None or currency is None or inception is None:
        return None
    return (bank, currency.strip().upper(), inception)


def _composite_candidates(
    b: CatalogBEntity, pool: Sequence[CatalogAEntity]
) -> list[CatalogAEntity]:
    key = _composite_key(b.bank, b.currency, b.inception_date)
    if key is None:
        return []
    return [
        a
        for a in pool
        if _composite_key(a.bank, a.currency, a.inception_date) == key
    ]


def composite_key_pass(
    catalog_a: Sequence[CatalogAEntity],
    catalog_b: Sequence[CatalogBEntity],
    state: PassState,
) -> PassState:
    pool: tuple[CatalogAEntity, ...] = tuple(_free_a(state, catalog_a))
    for i in _open_rows(state, catalog_b):
        candidates = _composite_candidates(catalog_b[i], pool)
        if not candidates:
            continue
        if len(candidates) > 1:
            # candidates stay in the pool: a later row may still claim one
            state = _flag(
                state,
                PASS_COMPOSITE_KEY,
                catalog_b,
                [i],
                (a.symbol for a in candidates),
                contest=False,
            )
            continue
        symbol = candidates[0].symbol
        state = _with_label(state, Assignment(i, symbol, PASS_COMPOSITE_KEY))
        pool = tuple(a for a in pool if a.symbol != symbol)
    return state


# ----------------------------------------------------------------------
# Pass 3: manual overrides
# ----------------------------------------------------------------------


def manual_override_pass(
    catalog_a: Sequence[CatalogAEntity],
    catalog_b: Sequence[CatalogBEntity],
    state: PassState,
    overrides: Iterable[ManualOverride],
    normalizer: Normalizer = normalize,
) -> PassState:
    known_symbols = {a.symbol for a in catalog_a}
    b_names = [normalizer(b.fund_name) for b in catalog_b]

    for override in overrides:
        if override.symbol not in known_symbols:
            logger.warning(
                "override %r -> %s ignored: symbol not in catalog A",
                override.fund_name,
                override.symbol,
            )
            continue
        name = normalizer(override.fund_name)
        rows = [
            i
            for i, b in enumerate(catalog_b)
            if b_names[i] == name
            and (override.bank is None or b.bank == override.bank)
        ]
        if not rows:
            logger.debug("override %r matched no fund", override.fund_name)
            continue
        if len(rows) > 1:
            state = _flag(
                state, PASS_MANUAL_OVERRIDE, catalog_b, rows, [override.symbol]
            )
            continue

        row = rows[0]
        labels = {
            i: a for i, a in state.labels.items() if a.symbol != override.symbol
        }
        labels[row] = Assignment(row, override.symbol, PASS_MANUAL_OVERRIDE)
        state = PassState(
            labels=labels,
            flagged=state.flagged,
            contested=state.contested,
            ambiguities=state.ambiguities,
        )
    return state


# ----------------------------------------------------------------------
# Join and entry points
# ----------------------------------------------------------------------


def join_on_symbol(
    catalog_a: Sequence[CatalogAEntity],
    catalog_b: Sequence[CatalogBEntity],
    labels: Mapping[int, Assignment],
) -> list[ReconciledEntity]:
    """Inner join: one entity per labelled B row whose symbol is in A."""
    a_symbols = {a.symbol for a in catalog_a}
    out: list[ReconciledEntity] = []
    seen: set[str] = set()
    for row in sorted(labels):
        symbol = labels[row].symbol
        if symbol not in a_symbols:
            continue
        if symbol in seen:
            raise AssertionError(f"symbol {symbol!r} assigned to more than one fund")
        seen.add(symbol)
        out.append(ReconciledEntity(symbol=symbol, fund=catalog_b[row]))
    return out


def reconcile_with_report(
    catalog_a: Sequence[CatalogAEntity],
    catalog_b: Sequence[CatalogBEntity],
    *,
    overrides: Mapping[str, str] | Iterable[ManualOverride] = (),
    normalizer: Normalizer = normalize,
) -> ReconciliationReport:
    """Run all passes and the final join, keeping the diagnostics."""
    _check_unique_symbols(catalog_a)

    state = PassState()
    state = exact_name_pass(catalog_a, catalog_b, state, normalizer)
    state = composite_key_pass(catalog_a, catalog_b, state)
    state = manual_override_pass(
        catalog_a, catalog_b, state, as_overrides(overrides), normalizer
    )

    entities = join_on_symbol(catalog_a, catalog_b, state.labels)
    joined_symbols = {e.symbol for e in entities}
    joined_rows = {r for r, a in state.labels.items() if a.symbol in joined_symbols}

    report = ReconciliationReport(
        entities=tuple(entities),
        labels=state.labels,
        ambiguities=state.ambiguities,
        unmatched_a=tuple(a for a in catalog_a if a.symbol not in joined_symbols),
        unmatched_b=tuple(
            b for i, b in enumerate(catalog_b) if i not in joined_rows
        ),
        size_a=len(catalog_a),
        size_b=len(catalog_b),
    )
    logger.info(
        "reconciled %d of min(%d, %d) funds; passes=%s; ambiguous=%d",
        len(entities),
        len(catalog_a),
        len(catalog_b),
        report.pass_counts(),
        len(report.ambiguities),
    )
    return report


def reconcile(
    catalog_a: Sequence[CatalogAEntity],
    catalog_b: Sequence[CatalogBEntity],
    *,
    overrides: Mapping[str, str] | Iterable[ManualOverride] = (),
    normalizer: Normalizer = normalize,
) -> list[ReconciledEntity]:
    """Merge the two catalogs into the reconciled catalog ("uitf_matrix")."""
    report = reconcile_with_report(
        catalog_a, catalog_b, overrides=overrides, normalizer=normalizer
    )
    return list(report.entities)


__all__ = [
    "AmbiguousMatch",
    "Assignment",
    "PASSES",
    "PASS_COMPOSITE_KEY",
    "PASS_EXACT_NAME",
    "PASS_MANUAL_OVERRIDE",
    "PassState",
    "ReconciliationReport",
    "composite_key_pass",
    "exact_name_pass",
    "join_on_symbol",
    "manual_override_pass",
    "reconcile",
    "reconcile_with_report",
]
