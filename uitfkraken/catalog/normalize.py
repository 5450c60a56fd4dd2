"""
Fund-name normalization.

Both catalogs spell the same fund differently ("ABC Growth UITF",
"abc growth fund", "ABC Growth Fund - Unit Investment Trust Fund"). Before
names are compared they are put through one deterministic pipeline:

1. hyphens (and en dashes) become spaces
2. split on single whitespace characters (consecutive separators give
   empty tokens)
3. a token on the preserve list (case-insensitive) is emitted in its
   canonical spelling; any other token is title-cased
4. exact-match token replacements (``Uitf`` -> ``Fund``, ``Funds`` -> ``Fund``)
5. tokens on the removal list are dropped, the empty token included
6. tokens are joined with single spaces
7. fixed phrases (``Unit Investment Trust``) are removed wherever they occur
   as whole-token sequences
8. a doubled trailing ``Fund`` collapses into one
9. leading/trailing whitespace is trimmed

The tables are validated on construction so that ``normalize`` is idempotent
for any input: every token it can emit maps to itself on a second pass.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Mapping

DEFAULT_PRESERVE: tuple[str, ...] = (
    "ALFM",
    "ATRAM",
    "AUB",
    "BDO",
    "BPI",
    "DBP",
    "ESG",
    "ETF",
    "EUR",
    "II",
    "III",
    "IV",
    "JPY",
    "LANDBANK",
    "MSCI",
    "PBCOM",
    "PERA",
    "PHP",
    "PNB",
    "PSBank",
    "PSEi",
    "RCBC",
    "S&P",
    "US",
    "USD",
)

DEFAULT_REPLACEMENTS: Mapping[str, str] = {
    "Uitf": "Fund",
    "Uitfs": "Fund",
    "Funds": "Fund",
    "Fd": "Fund",
    "Intl": "International",
    "Int'L": "International",
    "Bal": "Balanced",
    "Eq": "Equity",
    "Govt": "Government",
    "Gov'T": "Government",
    "Inv": "Investment",
    "Corp": "Corporate",
    "Phil": "Philippine",
    "Phils": "Philippine",
}

DEFAULT_REMOVALS: frozenset[str] = frozenset({"", "The", "Inc", "Inc."})

DEFAULT_PHRASES: tuple[str, ...] = (
    "Unit Investment Trust",
    "(Php)",
    "(Usd)",
)

DEFAULT_TRAILING_DESCRIPTOR = "Fund"

_DASHES = re.compile("[-–]")
_WHITESPACE = re.compile(r"\s")


def _preserve_index(preserve: Iterable[str]) -> dict[str, str]:
    return {p.upper(): p for p in preserve}


def _canon(token: str, preserve: Mapping[str, str]) -> str:
    return preserve.get(token.upper(), token.title())


@dataclass(frozen=True)
class _Tables:
    """Tables rewritten into the canonical-token form the pipeline compares."""

    index: Mapping[str, str]
    replacements: Mapping[str, str]
    removals: frozenset[str]
    phrases: tuple[tuple[str, ...], ...]
    descriptor: str


def _compile(
    preserve: Iterable[str],
    replacements: Mapping[str, str],
    removals: Iterable[str],
    phrases: Iterable[str],
    trailing_descriptor: str,
) -> _Tables:
    index = _preserve_index(preserve)
    for canonical in index.values():
        if _DASHES.search(canonical) or _WHITESPACE.search(canonical):
            raise ValueError(f"preserved token must be one word: {canonical!r}")

    # keys and removals are compared against canonical tokens
    canon_replacements = {_canon(k, index): v for k, v in replacements.items()}
    canon_removals = frozenset(_canon(r, index) for r in removals if r) | {""}
    for key, value in canon_replacements.items():
        if not value or _DASHES.search(value) or _WHITESPACE.search(value):
            raise ValueError(f"replacement for {key!r} must be a single word")
        if _canon(value, index) != value:
            raise ValueError(f"replacement value {value!r} is not in canonical form")
        if value in canon_replacements or value in canon_removals:
            raise ValueError(f"replacement value {value!r} would be rewritten again")

    descriptor = _canon(trailing_descriptor, index)
    phrase_tokens: list[tuple[str, ...]] = []
    for phrase in phrases:
        tokens = tuple(
            canon_replacements.get(t, t)
            for t in (_canon(raw, index) for raw in _tokens(phrase))
            if t
        )
        if not tokens:
            raise ValueError("phrases must contain at least one token")
        if descriptor in tokens:
            raise ValueError(f"phrase {phrase!r} must not contain {descriptor!r}")
        phrase_tokens.append(tokens)

    return _Tables(
        index=index,
        replacements=canon_replacements,
        removals=canon_removals,
        phrases=tuple(phrase_tokens),
        descriptor=descriptor,
    )


def _tokens(text: str) -> list[str]:
    """Steps 1-2: dashes to spaces, split on each whitespace character."""
    return _WHITESPACE.split(_DASHES.sub(" ", text))


def _strip_phrases(
    tokens: list[str], phrases: Iterable[tuple[str, ...]]
) -> list[str]:
    """Remove whole-token phrase occurrences until none are left."""
    changed = True
    while changed:
        changed = False
        for phrase in phrases:
            n = len(phrase)
            i = 0
            while i + n <= len(tokens):
                if tuple(tokens[i : i + n]) == phrase:
                    del tokens[i : i + n]
                    changed = True
                else:
                    i += 1
    return tokens


@dataclass(frozen=True)
class NameNormalizer:
    """Normalization tables plus the pipeline that applies them.

    Use the module-level :func:`normalize` for the shipped tables; build an
    instance (or call :meth:`extended`) when configuration adds entries.
    Invalid tables raise ``ValueError`` on construction.
    """

    preserve: tuple[str, ...] = DEFAULT_PRESERVE
    replacements: Mapping[str, str] = field(
        default_factory=lambda: dict(DEFAULT_REPLACEMENTS)
    )
    removals: frozenset[str] = DEFAULT_REMOVALS
    phrases: tuple[str, ...] = DEFAULT_PHRASES
    trailing_descriptor: str = DEFAULT_TRAILING_DESCRIPTOR
    _tables: _Tables = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        tables = _compile(
            self.preserve,
            self.replacements,
            self.removals,
            self.phrases,
            self.trailing_descriptor,
        )
        object.__setattr__(self, "_tables", tables)

    def extended(
        self,
        *,
        preserve: Iterable[str] = (),
        replacements: Mapping[str, str] | None = None,
        removals: Iterable[str] = (),
        phrases: Iterable[str] = (),
        trailing_descriptor: str | None = None,
    ) -> "NameNormalizer":
        """Return a copy with extra table entries (config-supplied)."""
        merged = dict(self.replacements)
        merged.update(replacements or {})
        extra_preserve = tuple(p for p in preserve if p not in self.preserve)
        extra_phrases = tuple(p for p in phrases if p not in self.phrases)
        return NameNormalizer(
            preserve=self.preserve + extra_preserve,
            replacements=merged,
            removals=self.removals | frozenset(removals),
            phrases=self.phrases + extra_phrases,
            trailing_descriptor=trailing_descriptor or self.trailing_descriptor,
        )

    def __call__(self, raw_name: str) -> str:
        return self.normalize(raw_name)

    def normalize(self, raw_name: str) -> str:
        t = self._tables
        tokens: list[str] = []
        for raw in _tokens(raw_name):
            token = _canon(raw, t.index) if raw else raw
            token = t.replacements.get(token, token)
            if token not in t.removals:
                tokens.append(token)

        tokens = _strip_phrases(tokens, t.phrases)

        while len(tokens) >= 2 and tokens[-1] == t.descriptor == tokens[-2]:
            tokens.pop()

        return " ".join(tokens).strip()


_DEFAULT = NameNormalizer()


def normalize(raw_name: str) -> str:
    """Normalize a fund name with the shipped tables.

    >>> normalize("ABC Growth UITF")
    'Abc Growth Fund'
    >>> normalize("abc growth-fund  UITF")
    'Abc Growth Fund'
    """
    return _DEFAULT.normalize(raw_name)


__all__ = [
    "DEFAULT_PHRASES",
    "DEFAULT_PRESERVE",
    "DEFAULT_REMOVALS",
    "DEFAULT_REPLACEMENTS",
    "NameNormalizer",
    "normalize",
]
