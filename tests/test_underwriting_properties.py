# tests/test_underwriting_properties.py

from hypothesis import given, settings, strategies as st

from dealengine.analysis import business, hybrid, real_estate
from dealengine.analysis.metrics import calc_metrics
from dealengine.analysis.portfolio import calc_portfolio_metrics
from dealengine.analysis.sensitivity import run_sensitivity

from fixtures.deals import as_deal, cash_rental, duplex_rental, hvac_business, laundromat_hybrid


@settings(deadline=None)
@given(
    rent=st.floats(min_value=12_000.0, max_value=120_000.0),
    delta=st.floats(min_value=500.0, max_value=20_000.0),
)
def test_higher_rent_improves_metrics(rent, delta):
    m1 = calc_metrics(duplex_rental(gross_rental_income=rent))
    m2 = calc_metrics(duplex_rental(gross_rental_income=rent + delta))

    # With everything else fixed, more rent should not hurt DSCR, CoC, or cap rate
    assert m2.noi >= m1.noi
    assert m2.dscr >= m1.dscr
    assert m2.cash_on_cash >= m1.cash_on_cash
    assert m2.cap_rate >= m1.cap_rate


@settings(deadline=None)
@given(
    price=st.floats(min_value=100_000.0, max_value=600_000.0),
    delta=st.floats(min_value=10_000.0, max_value=150_000.0),
)
def test_higher_price_reduces_cap_rate(price, delta):
    """NOI is unaffected by price, so paying more can only lower the yield."""
    m1 = calc_metrics(duplex_rental(purchase_price=price))
    m2 = calc_metrics(duplex_rental(purchase_price=price + delta))

    assert m1.noi == m2.noi
    assert m2.cap_rate <= m1.cap_rate
    assert m2.total_cash_invested >= m1.total_cash_invested


@given(
    revenue=st.floats(min_value=0.0, max_value=5_000_000.0),
    owner_salary=st.floats(min_value=0.0, max_value=300_000.0),
    add_backs=st.floats(min_value=0.0, max_value=100_000.0),
)
def test_sde_is_ebitda_plus_owner_items(revenue, owner_salary, add_backs):
    deal = hvac_business(annual_revenue=revenue, owner_salary=owner_salary, other_add_backs=add_backs)
    assert abs(business.sde(deal) - (business.ebitda(deal) + owner_salary + add_backs)) < 1e-6

    hy = laundromat_hybrid(annual_revenue=revenue, owner_salary=owner_salary, other_add_backs=add_backs)
    assert abs(hybrid.sde(hy) - (hybrid.ebitda(hy) + owner_salary + add_backs)) < 1e-6


@given(rent=st.floats(min_value=0.0, max_value=200_000.0))
def test_zero_loan_cash_flow_equals_noi(rent):
    deal = cash_rental(gross_rental_income=rent)
    assert real_estate.annual_cash_flow(deal) == real_estate.noi(deal)
    assert real_estate.dscr(deal) == float("inf")


@settings(max_examples=25, deadline=None)
@given(vacancy=st.floats(min_value=0.0, max_value=40.0))
def test_sensitivity_base_row_is_the_deal(vacancy):
    deal = duplex_rental(vacancy_rate=vacancy)
    result = run_sensitivity(deal, "vacancy_rate", steps=2)
    base = result.base_row
    assert base is not None
    assert base.metrics["noi"] == calc_metrics(deal).noi


@settings(max_examples=25, deadline=None)
@given(
    price=st.floats(min_value=80_000.0, max_value=600_000.0),
    rent=st.floats(min_value=10_000.0, max_value=100_000.0),
)
def test_single_deal_portfolio_identity(price, rent):
    deal = as_deal(duplex_rental(purchase_price=price, gross_rental_income=rent))
    p = calc_portfolio_metrics([deal])
    m = calc_metrics(deal)
    assert p.total_annual_cash_flow == m.annual_cash_flow
    assert p.weighted_cash_on_cash == m.cash_on_cash
    assert p.weighted_roi == m.roi
