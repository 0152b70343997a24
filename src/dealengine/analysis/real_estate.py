# src/dealengine/analysis/real_estate.py
from __future__ import annotations

from typing import Iterator

from dealengine.adapters.config import config
from dealengine.analysis.amortization import remaining_balance
from dealengine.analysis.finance import (
    CashFlowProjection,
    coverage_ratio,
    monthly_debt_service,
    newton_irr,
    safe_ratio,
    sale_proceeds,
)
from dealengine.domain.deal import RealEstateDeal
from dealengine.domain.metrics import CashFlowYear, RealEstateMetrics


def gross_income(deal: RealEstateDeal) -> float:
    return deal.gross_rental_income + deal.other_income


def effective_gross_income(deal: RealEstateDeal) -> float:
    """EGI = (gross rent + other income) * (1 - vacancy)."""
    return gross_income(deal) * (1 - deal.vacancy_rate / 100.0)


def operating_expenses(deal: RealEstateDeal) -> float:
    """
    Annual operating expenses. Does NOT include the mortgage (financing, not
    operations). Management is charged on gross, not effective, income.
    """
    management_fee = gross_income(deal) * deal.property_management_pct / 100.0
    return (
        deal.property_tax
        + deal.insurance
        + deal.maintenance
        + management_fee
        + deal.utilities
        + deal.other_expenses
    )


def noi(deal: RealEstateDeal) -> float:
    # NOI is income after vacancy + operating expenses, BEFORE debt.
    return effective_gross_income(deal) - operating_expenses(deal)


def cap_rate(deal: RealEstateDeal) -> float:
    return safe_ratio(noi(deal), deal.purchase_price) * 100.0


def total_cash_invested(deal: RealEstateDeal) -> float:
    down_payment = deal.purchase_price * deal.financing.down_payment_pct / 100.0
    return down_payment + deal.closing_costs + deal.rehab_costs


def annual_debt_service(deal: RealEstateDeal) -> float:
    return monthly_debt_service(deal.financing) * 12.0


def annual_cash_flow(deal: RealEstateDeal) -> float:
    return noi(deal) - annual_debt_service(deal)


def cash_on_cash(deal: RealEstateDeal) -> float:
    return safe_ratio(annual_cash_flow(deal), total_cash_invested(deal)) * 100.0


def dscr(deal: RealEstateDeal) -> float:
    return coverage_ratio(noi(deal), annual_debt_service(deal))


def _years(deal: RealEstateDeal, years: int) -> Iterator[CashFlowYear]:
    debt = annual_debt_service(deal)
    income = effective_gross_income(deal)
    expenses = operating_expenses(deal)
    cumulative = 0.0

    for year in range(1, years + 1):
        year_noi = income - expenses
        cash_flow = year_noi - debt
        cumulative += cash_flow
        yield CashFlowYear(year=year, cash_flow=cash_flow, noi=year_noi, cumulative_cash_flow=cumulative)

        income *= 1 + deal.annual_rent_growth / 100.0
        expenses *= 1 + deal.annual_expense_growth / 100.0


def project_cash_flows(deal: RealEstateDeal, years: int | None = None) -> CashFlowProjection:
    years = config.PROJECTION_YEARS if years is None else years
    return CashFlowProjection(lambda: _years(deal, years), years)


def _exit_proceeds(deal: RealEstateDeal, hold_years: int) -> float:
    balance = remaining_balance(deal.financing, hold_years * 12)
    return sale_proceeds(deal.purchase_price, deal.annual_appreciation, hold_years, balance)


def roi(deal: RealEstateDeal, hold_years: int | None = None) -> float:
    """
    Total return over the hold period as a percent of cash invested:
    cumulative cash flow + net sale proceeds - cash invested.
    """
    hold_years = config.HOLD_YEARS if hold_years is None else hold_years
    invested = total_cash_invested(deal)
    if invested == 0:
        return 0.0

    total_cash_flow = sum(y.cash_flow for y in _years(deal, hold_years))
    total_return = total_cash_flow + _exit_proceeds(deal, hold_years) - invested
    return total_return / invested * 100.0


def irr(deal: RealEstateDeal, hold_years: int | None = None) -> float:
    """
    IRR of [-cash invested, cf_1, ..., cf_N + net sale proceeds].
    """
    hold_years = config.HOLD_YEARS if hold_years is None else hold_years
    flows = [-total_cash_invested(deal)]
    flows.extend(y.cash_flow for y in _years(deal, hold_years))
    if hold_years > 0:
        flows[-1] += _exit_proceeds(deal, hold_years)
    return newton_irr(flows)


def calc_real_estate_metrics(deal: RealEstateDeal, hold_years: int | None = None) -> RealEstateMetrics:
    monthly = monthly_debt_service(deal.financing)
    return RealEstateMetrics(
        noi=noi(deal),
        cap_rate=cap_rate(deal),
        cash_on_cash=cash_on_cash(deal),
        roi=roi(deal, hold_years),
        dscr=dscr(deal),
        irr=irr(deal, hold_years),
        monthly_debt_service=monthly,
        annual_debt_service=monthly * 12.0,
        annual_cash_flow=annual_cash_flow(deal),
        total_cash_invested=total_cash_invested(deal),
        effective_gross_income=effective_gross_income(deal),
        operating_expenses=operating_expenses(deal),
    )
