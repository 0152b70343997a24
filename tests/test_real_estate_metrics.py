import math

import pytest

from dealengine.adapters.config import config
from dealengine.analysis import real_estate
from dealengine.analysis.amortization import remaining_balance
from dealengine.analysis.finance import annuity_payment, newton_irr
from dealengine.analysis.real_estate import calc_real_estate_metrics, project_cash_flows

from fixtures.deals import cash_rental, duplex_rental, starter_rental


def test_starter_rental_headline_numbers(starter):
    m = calc_real_estate_metrics(starter)

    payment = annuity_payment(0.07 / 12, 360, 187_500.0)
    assert m.noi == pytest.approx(21_600.0)
    assert m.cap_rate == pytest.approx(8.64)
    assert m.monthly_debt_service == pytest.approx(payment)
    assert m.monthly_debt_service == pytest.approx(1247.44, abs=0.01)
    assert m.annual_debt_service == pytest.approx(payment * 12)
    assert m.dscr == pytest.approx(21_600.0 / (payment * 12))
    assert m.annual_cash_flow == pytest.approx(21_600.0 - payment * 12)
    assert m.total_cash_invested == pytest.approx(62_500.0)
    assert m.cash_on_cash == pytest.approx((21_600.0 - payment * 12) / 62_500.0 * 100.0)


def test_duplex_income_and_expenses(duplex):
    # 36,000 gross, 5% vacancy, 8% management on gross
    assert real_estate.gross_income(duplex) == 36_000.0
    assert real_estate.effective_gross_income(duplex) == pytest.approx(34_200.0)
    assert real_estate.operating_expenses(duplex) == pytest.approx(3_600 + 1_500 + 2_400 + 2_880 + 600)
    assert real_estate.noi(duplex) == pytest.approx(23_220.0)
    assert real_estate.total_cash_invested(duplex) == pytest.approx(75_000 + 6_000 + 10_000)


def test_zero_loan_degenerates_cleanly(all_cash):
    m = calc_real_estate_metrics(all_cash)

    assert m.monthly_debt_service == 0.0
    assert m.annual_debt_service == 0.0
    assert math.isinf(m.dscr)
    assert m.annual_cash_flow == pytest.approx(m.noi)
    assert m.cash_on_cash == pytest.approx(m.noi / m.total_cash_invested * 100.0)


def test_roi_and_irr_for_all_cash_hold():
    deal = cash_rental(vacancy_rate=0.0)
    noi = 21_600.0
    exit_value = 250_000.0 * (1 - config.SELLING_COST_PCT / 100.0)

    expected_roi = (noi * 5 + exit_value - 250_000.0) / 250_000.0 * 100.0
    assert real_estate.roi(deal, hold_years=5) == pytest.approx(expected_roi)

    flows = [-250_000.0] + [noi] * 4 + [noi + exit_value]
    assert real_estate.irr(deal, hold_years=5) == pytest.approx(newton_irr(flows))


def test_roi_follows_selling_cost_override(monkeypatch):
    monkeypatch.setattr(config, "SELLING_COST_PCT", 0.0)
    deal = cash_rental(vacancy_rate=0.0)
    # no appreciation and no selling costs: the exit returns the price
    assert real_estate.roi(deal, hold_years=5) == pytest.approx(21_600.0 * 5 / 250_000.0 * 100.0)


def test_exit_pays_off_the_remaining_balance(starter):
    # a leveraged exit is worth less than an unleveraged one by the payoff
    levered = real_estate._exit_proceeds(starter, 5)
    unlevered = real_estate._exit_proceeds(cash_rental(), 5)
    assert levered < unlevered
    assert unlevered - levered == pytest.approx(
        remaining_balance(starter.financing, 60), rel=1e-9
    )


def test_returns_are_zero_without_cash_invested():
    deal = starter_rental(purchase_price=0.0)
    assert real_estate.cap_rate(deal) == 0.0
    assert real_estate.cash_on_cash(deal) == 0.0
    assert real_estate.roi(deal) == 0.0


def test_projection_grows_income_and_expenses(duplex):
    years = project_cash_flows(duplex, years=3).to_list()

    egi = real_estate.effective_gross_income(duplex)
    opex = real_estate.operating_expenses(duplex)
    debt = real_estate.annual_debt_service(duplex)

    assert [y.year for y in years] == [1, 2, 3]
    assert years[0].noi == pytest.approx(egi - opex)
    assert years[1].noi == pytest.approx(egi * 1.03 - opex * 1.02)
    assert years[1].cash_flow == pytest.approx(years[1].noi - debt)
    assert years[2].cumulative_cash_flow == pytest.approx(sum(y.cash_flow for y in years))
    assert years[0].revenue is None


def test_projection_defaults_to_configured_years(duplex):
    from dealengine.adapters.config import config

    assert len(project_cash_flows(duplex)) == config.PROJECTION_YEARS


def test_metrics_to_dict_has_every_field():
    d = calc_real_estate_metrics(duplex_rental()).to_dict()
    assert set(d) >= {"noi", "cap_rate", "cash_on_cash", "roi", "dscr", "irr", "annual_cash_flow"}
