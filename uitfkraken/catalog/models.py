"""
Record types flowing through the catalog pipeline.

    RawListingRecord  --(detail)-->  EntityDetail
            \\                          /
             +----> CatalogAEntity <---+        ("all_uitfs")
                                                       \\
    fund table row  ----------------> CatalogBEntity     reconcile --> ReconciledEntity
                                        ("fund_info")                    ("uitf_matrix")

    series document ----------------> PricePoint

All records are frozen dataclasses. Missing values are ``None``; an empty
string is never used as a stand-in for "unknown".

`*_COLUMNS` tuples fix the column names of the persisted tables. They are the
output contract and must stay stable.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping

from uitfkraken.common.types import JSONLike


def _iso(d: date | None) -> str | None:
    return d.isoformat() if d is not None else None


def _parse_iso(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def _float_or_none(value: Any) -> float | None:
    return None if value is None else float(value)


@dataclass(frozen=True)
class RawListingRecord:
    """One row of a listing search result page.

    Not unique per symbol: the same fund turns up under several queries.
    Exact duplicates are removed downstream by field-tuple equality.
    """

    symbol: str
    name: str
    country: str
    type: str


@dataclass(frozen=True)
class EntityDetail:
    symbol: str
    profile_text: str | None = None
    website: str | None = None
    fund_kind: str | None = None
    inception_date: date | None = None
    currency: str | None = None


@dataclass(frozen=True)
class CatalogAEntity:
    """A symbol-bearing fund from the listing source ("all_uitfs")."""

    symbol: str
    name: str
    bank: str | None
    inception_date: date | None
    currency: str | None

    def to_row(self) -> dict[str, JSONLike]:
        return {
            "Symbol": self.symbol,
            "Name": self.name,
            "Bank": self.bank,
            "Inception Date": _iso(self.inception_date),
            "Currency": self.currency,
        }


FUND_INFO_COLUMNS: tuple[str, ...] = (
    "Bank",
    "Fund Name",
    "Fund Classification",
    "Risk Classification",
    "Currency",
    "Inception Date",
    "NAVPU",
    "Previous NAVPU",
    "1-Day Return",
    "YTD Return",
    "1-Year Return",
    "3-Year Return",
    "5-Year Return",
    "Trust Fee",
    "Minimum Investment",
    "Total Fund Size",
    "Last Uploaded Date",
)


@dataclass(frozen=True)
class CatalogBEntity:
    """An attribute-rich fund from the bulk fund table ("fund_info").

    ``(bank, fund_name)`` is unique within a built catalog.
    """

    bank: str | None
    fund_name: str
    currency: str | None = None
    fund_classification: str | None = None
    risk_classification: str | None = None
    inception_date: date | None = None
    last_uploaded_date: date | None = None
    navpu: float | None = None
    previous_navpu: float | None = None
    return_1d: float | None = None
    return_ytd: float | None = None
    return_1y: float | None = None
    return_3y: float | None = None
    return_5y: float | None = None
    trust_fee: float | None = None
    minimum_investment: float | None = None
    total_fund_size: float | None = None

    @property
    def key(self) -> tuple[str | None, str]:
        return (self.bank, self.fund_name)

    def to_row(self) -> dict[str, JSONLike]:
        return {
            "Bank": self.bank,
            "Fund Name": self.fund_name,
            "Fund Classification": self.fund_classification,
            "Risk Classification": self.risk_classification,
            "Currency": self.currency,
            "Inception Date": _iso(self.inception_date),
            "NAVPU": self.navpu,
            "Previous NAVPU": self.previous_navpu,
            "1-Day Return": self.return_1d,
            "YTD Return": self.return_ytd,
            "1-Year Return": self.return_1y,
            "3-Year Return": self.return_3y,
            "5-Year Return": self.return_5y,
            "Trust Fee": self.trust_fee,
            "Minimum Investment": self.minimum_investment,
            "Total Fund Size": self.total_fund_size,
            "Last Uploaded Date": _iso(self.last_uploaded_date),
        }


UITF_MATRIX_COLUMNS: tuple[str, ...] = (
    "Symbol",
    "Name",
    "Bank",
    "Inception Date",
    "Currency",
    "Fund Classification",
    "Risk Classification",
    "NAVPU",
    "Previous NAVPU",
    "1-Day Return",
    "YTD Return",
    "1-Year Return",
    "3-Year Return",
    "5-Year Return",
    "Trust Fee",
    "Minimum Investment",
    "Total Fund Size",
    "Last Uploaded Date",
)


@dataclass(frozen=True)
class ReconciledEntity:
    """A CatalogB fund that recovered its symbol ("uitf_matrix" row)."""

    symbol: str
    fund: CatalogBEntity

    def as_catalog_a(self) -> CatalogAEntity:
        return CatalogAEntity(
            symbol=self.symbol,
            name=self.fund.fund_name,
            bank=self.fund.bank,
            inception_date=self.fund.inception_date,
            currency=self.fund.currency,
        )

    def as_catalog_b(self) -> CatalogBEntity:
        return self.fund

    def to_row(self) -> dict[str, JSONLike]:
        b = self.fund.to_row()
        row: dict[str, JSONLike] = {"Symbol": self.symbol, "Name": b.pop("Fund Name")}
        row.update(b)
        return {col: row[col] for col in UITF_MATRIX_COLUMNS}

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ReconciledEntity":
        fund = CatalogBEntity(
            bank=row.get("Bank"),
            fund_name=str(row["Name"]),
            currency=row.get("Currency"),
            fund_classification=row.get("Fund Classification"),
            risk_classification=row.get("Risk Classification"),
            inception_date=_parse_iso(row.get("Inception Date")),
            last_uploaded_date=_parse_iso(row.get("Last Uploaded Date")),
            navpu=_float_or_none(row.get("NAVPU")),
            previous_navpu=_float_or_none(row.get("Previous NAVPU")),
            return_1d=_float_or_none(row.get("1-Day Return")),
            return_ytd=_float_or_none(row.get("YTD Return")),
            return_1y=_float_or_none(row.get("1-Year Return")),
            return_3y=_float_or_none(row.get("3-Year Return")),
            return_5y=_float_or_none(row.get("5-Year Return")),
            trust_fee=_float_or_none(row.get("Trust Fee")),
            minimum_investment=_float_or_none(row.get("Minimum Investment")),
            total_fund_size=_float_or_none(row.get("Total Fund Size")),
        )
        return cls(symbol=str(row["Symbol"]), fund=fund)


PRICE_COLUMNS: tuple[str, ...] = ("Symbol", "Date", "Value")


@dataclass(frozen=True, order=True)
class PricePoint:
    """One NAV observation. Ordering is (symbol, date, value)."""

    symbol: str
    date: date
    value: float

    def to_row(self) -> dict[str, JSONLike]:
        return {
            "Symbol": self.symbol,
            "Date": self.date.isoformat(),
            "Value": self.value,
        }


__all__ = [
    "CatalogAEntity",
    "CatalogBEntity",
    "EntityDetail",
    "FUND_INFO_COLUMNS",
    "PRICE_COLUMNS",
    "PricePoint",
    "RawListingRecord",
    "ReconciledEntity",
    "UITF_MATRIX_COLUMNS",
]
