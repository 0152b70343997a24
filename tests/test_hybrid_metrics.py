import math

import pytest

from dealengine.analysis import hybrid
from dealengine.analysis.finance import annuity_payment
from dealengine.analysis.hybrid import calc_hybrid_metrics, project_cash_flows

from fixtures.deals import laundromat_hybrid


def test_laundromat_property_side(hybrid_deal):
    assert hybrid.property_egi(hybrid_deal) == pytest.approx(57_000.0)
    assert hybrid.property_expenses(hybrid_deal) == pytest.approx(27_000.0)
    assert hybrid.property_noi(hybrid_deal) == pytest.approx(30_000.0)
    # cap rate is on the property allocation, not the whole price
    assert hybrid.cap_rate(hybrid_deal) == pytest.approx(5.0)


def test_laundromat_business_side(hybrid_deal):
    assert hybrid.ebitda(hybrid_deal) == pytest.approx(160_000.0)
    assert hybrid.sde(hybrid_deal) == pytest.approx(220_000.0)
    assert hybrid.revenue_multiple(hybrid_deal) == pytest.approx(0.8)
    assert hybrid.sde_multiple(hybrid_deal) == pytest.approx(400_000.0 / 220_000.0)


def test_laundromat_combined(hybrid_deal):
    m = calc_hybrid_metrics(hybrid_deal)
    annual_debt = annuity_payment(0.075 / 12, 300, 750_000.0) * 12

    assert m.total_noi == pytest.approx(190_000.0)
    assert m.total_noi == pytest.approx(m.property_noi + m.ebitda)
    assert m.annual_debt_service == pytest.approx(annual_debt)
    assert m.annual_cash_flow == pytest.approx(190_000.0 - annual_debt)
    assert m.dscr == pytest.approx(190_000.0 / annual_debt)
    assert m.total_cash_invested == pytest.approx(270_000.0)
    assert m.cash_on_cash == pytest.approx(m.annual_cash_flow / 270_000.0 * 100.0)
    assert m.effective_gross_income == pytest.approx(557_000.0)
    assert m.total_operating_expenses == pytest.approx(27_000.0 + 350_000.0)


def test_hybrid_sde_identity(hybrid_deal):
    assert hybrid.sde(hybrid_deal) == pytest.approx(
        hybrid.ebitda(hybrid_deal) + hybrid_deal.owner_salary + hybrid_deal.other_add_backs
    )


def test_hybrid_roi_includes_property_appreciation(hybrid_deal):
    cash_flow = hybrid.annual_cash_flow(hybrid_deal)
    appreciation = 600_000.0 * (1.03 ** 5 - 1)
    expected = (cash_flow * 5 + appreciation) / 270_000.0 * 100.0
    assert hybrid.roi(hybrid_deal, hold_years=5) == pytest.approx(expected)


def test_hybrid_break_even(hybrid_deal):
    annual_debt = hybrid.annual_debt_service(hybrid_deal)
    expected = (200_000.0 + annual_debt - 30_000.0 - 10_000.0) / 0.7
    assert hybrid.break_even_revenue(hybrid_deal) == pytest.approx(expected)


def test_hybrid_break_even_clamps_at_zero_when_property_covers_everything():
    deal = laundromat_hybrid(gross_rental_income=2_000_000.0)
    assert hybrid.break_even_revenue(deal) == 0.0


def test_hybrid_break_even_edges():
    assert math.isinf(hybrid.break_even_revenue(laundromat_hybrid(cost_of_goods=500_000.0)))
    assert hybrid.break_even_revenue(laundromat_hybrid(annual_revenue=0.0)) == 0.0


def test_hybrid_zero_allocations():
    deal = laundromat_hybrid(property_value=0.0, business_value=0.0)
    assert hybrid.cap_rate(deal) == 0.0
    assert hybrid.sde_multiple(deal) == 0.0


def test_hybrid_projection_first_year_matches_snapshot(hybrid_deal):
    years = project_cash_flows(hybrid_deal, years=2).to_list()
    assert years[0].noi == pytest.approx(hybrid.total_noi(hybrid_deal))
    assert years[0].cash_flow == pytest.approx(hybrid.annual_cash_flow(hybrid_deal))
    assert years[1].revenue == pytest.approx(515_000.0)
