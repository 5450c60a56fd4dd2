"""
uitfkraken: a reconciled catalog of Philippine UITF products.

Two scraped catalogs (a broad symbol-bearing listing and a narrow,
attribute-rich fund table) are reconciled into one record set keyed by
symbol, then enriched with a historical NAV series per symbol.
"""

__version__ = "0.3.0"
