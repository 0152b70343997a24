# tests/conftest.py
import pytest

from fixtures.deals import (
    as_deal,
    cash_rental,
    duplex_rental,
    hvac_business,
    laundromat_hybrid,
    starter_rental,
)


@pytest.fixture
def starter():
    return starter_rental()


@pytest.fixture
def duplex():
    return duplex_rental()


@pytest.fixture
def all_cash():
    return cash_rental()


@pytest.fixture
def business():
    return hvac_business()


@pytest.fixture
def hybrid_deal():
    return laundromat_hybrid()


@pytest.fixture
def rental_deal():
    return as_deal(duplex_rental(), deal_id="re-1", name="Elm St Duplex")


@pytest.fixture
def business_deal():
    return as_deal(hvac_business(), deal_id="biz-1", name="Metro HVAC")


@pytest.fixture
def hybrid_wrapped():
    return as_deal(laundromat_hybrid(), deal_id="hy-1", name="Main St Laundromat")


@pytest.fixture
def three_deals(rental_deal, business_deal, hybrid_wrapped):
    return [rental_deal, business_deal, hybrid_wrapped]
