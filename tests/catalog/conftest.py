from __future__ import annotations

from datetime import date
from typing import Callable

import pytest

from uitfkraken.catalog.models import CatalogAEntity, CatalogBEntity

D2015 = date(2015, 1, 1)


def make_a(
    symbol: str,
    name: str,
    bank: str | None = "BDO",
    inception: date | None = D2015,
    currency: str | None = "PHP",
) -> CatalogAEntity:
    return CatalogAEntity(
        symbol=symbol,
        name=name,
        bank=bank,
        inception_date=inception,
        currency=currency,
    )


def make_b(
    fund_name: str,
    bank: str | None = "BDO",
    inception: date | None = D2015,
    currency: str | None = "PHP",
    **attrs: object,
) -> CatalogBEntity:
    return CatalogBEntity(
        bank=bank,
        fund_name=fund_name,
        currency=currency,
        inception_date=inception,
        **attrs,  # type: ignore[arg-type]
    )


@pytest.fixture
def a_row() -> Callable[..., CatalogAEntity]:
    return make_a


@pytest.fixture
def b_row() -> Callable[..., CatalogBEntity]:
    return make_b
