"""
Lookup tables used to line up the two catalogs.

These are plain data. Matching code receives them as ``Mapping`` arguments,
so a new bank or override is a config entry, not a code change (see the
``mappings`` section of ``uitfkraken/config/default.yaml``).

- DEFAULT_WEBSITE_TO_BANK: exact website string from a listing detail page
  to the canonical bank name. Unmapped websites leave the bank unresolved.
- DEFAULT_BANK_ALIASES: bank display names used by the fund table to the same
  canonical vocabulary. Unmapped names pass through unchanged.
- DEFAULT_MANUAL_OVERRIDES: fund name (optionally scoped to a bank) to
  symbol, for funds neither automatic pass can pair. Names are normalized
  before comparison.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping

DEFAULT_WEBSITE_TO_BANK: Mapping[str, str] = {
    "www.bdo.com.ph": "BDO",
    "www.bpi.com.ph": "BPI",
    "www.bpiassetmanagement.com": "BPI",
    "www.metrobank.com.ph": "Metrobank",
    "www.landbank.com": "LANDBANK",
    "www.securitybank.com": "Security Bank",
    "www.chinabank.ph": "China Bank",
    "www.rcbc.com": "RCBC",
    "www.pnb.com.ph": "PNB",
    "www.unionbankph.com": "UnionBank",
    "www.eastwestbanker.com": "EastWest",
    "www.atram.com.ph": "ATRAM",
    "www.aub.com.ph": "AUB",
    "www.dbp.ph": "DBP",
    "www.maybank.com.ph": "Maybank",
    "www.sterlingbankasia.com": "Sterling Bank",
    "www.pbcom.com.ph": "PBCOM",
    "www.psbank.com.ph": "PSBank",
    "www.robinsonsbank.com.ph": "Robinsons Bank",
    "www.philtrustbank.com": "Philtrust",
}

DEFAULT_BANK_ALIASES: Mapping[str, str] = {
    "BDO Unibank, Inc.": "BDO",
    "BDO Trust and Investments Group": "BDO",
    "Bank of the Philippine Islands": "BPI",
    "BPI Asset Management and Trust Corporation": "BPI",
    "Metropolitan Bank & Trust Company": "Metrobank",
    "Metropolitan Bank and Trust Company": "Metrobank",
    "Land Bank of the Philippines": "LANDBANK",
    "Security Bank Corporation": "Security Bank",
    "China Banking Corporation": "China Bank",
    "Rizal Commercial Banking Corporation": "RCBC",
    "Philippine National Bank": "PNB",
    "Union Bank of the Philippines": "UnionBank",
    "East West Banking Corporation": "EastWest",
    "ATRAM Trust Corporation": "ATRAM",
    "Asia United Bank Corporation": "AUB",
    "Development Bank of the Philippines": "DBP",
    "Maybank Philippines, Inc.": "Maybank",
    "Sterling Bank of Asia, Inc.": "Sterling Bank",
    "Philippine Bank of Communications": "PBCOM",
    "Philippine Savings Bank": "PSBank",
    "Robinsons Bank Corporation": "Robinsons Bank",
    "Philippine Trust Company": "Philtrust",
}


@dataclass(frozen=True)
class ManualOverride:
    """Pin the fund called `fund_name` (only at `bank`, if given) to `symbol`."""

    fund_name: str
    symbol: str
    bank: str | None = None


DEFAULT_MANUAL_OVERRIDES: tuple[ManualOverride, ...] = ()


def as_overrides(
    entries: Mapping[str, str] | Iterable[ManualOverride],
) -> tuple[ManualOverride, ...]:
    """Accept a plain `{fund_name: symbol}` mapping or override records."""
    if isinstance(entries, Mapping):
        return tuple(ManualOverride(fund_name=k, symbol=v) for k, v in entries.items())
    return tuple(entries)


def canonical_bank(name: str | None, aliases: Mapping[str, str]) -> str | None:
    """Map a bank display name onto the canonical vocabulary."""
    if name is None:
        return None
    stripped = name.strip()
    if not stripped:
        return None
    return aliases.get(stripped, stripped)


def bank_for_website(
    website: str | None, website_to_bank: Mapping[str, str]
) -> str | None:
    """Exact-match lookup; `None` when the website is missing or unmapped."""
    if website is None:
        return None
    return website_to_bank.get(website.strip())


__all__ = [
    "DEFAULT_BANK_ALIASES",
    "DEFAULT_MANUAL_OVERRIDES",
    "DEFAULT_WEBSITE_TO_BANK",
    "ManualOverride",
    "as_overrides",
    "bank_for_website",
    "canonical_bank",
]
