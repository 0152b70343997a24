# src/dealengine/analysis/business.py
from __future__ import annotations

import math
from typing import Iterator

from dealengine.adapters.config import config
from dealengine.analysis.finance import (
    CashFlowProjection,
    coverage_ratio,
    monthly_debt_service,
    safe_ratio,
)
from dealengine.domain.deal import BusinessDeal
from dealengine.domain.metrics import BusinessMetrics, CashFlowYear


def add_backs(deal: BusinessDeal) -> float:
    """Non-cash and financing items added back to reach EBITDA."""
    return deal.depreciation + deal.amortization + deal.interest + deal.taxes


def ebitda(deal: BusinessDeal) -> float:
    return deal.annual_revenue - deal.cost_of_goods - deal.operating_expenses + add_backs(deal)


def sde(deal: BusinessDeal) -> float:
    """Seller's Discretionary Earnings = EBITDA + owner salary + other add-backs."""
    return ebitda(deal) + deal.owner_salary + deal.other_add_backs


def sde_margin(deal: BusinessDeal) -> float:
    if deal.annual_revenue <= 0:
        return 0.0
    return sde(deal) / deal.annual_revenue * 100.0


def total_cash_invested(deal: BusinessDeal) -> float:
    down_payment = deal.asking_price * deal.financing.down_payment_pct / 100.0
    return down_payment + deal.closing_costs


def annual_debt_service(deal: BusinessDeal) -> float:
    return monthly_debt_service(deal.financing) * 12.0


def earnings_before_debt(deal: BusinessDeal) -> float:
    # the buyer replaces the owner at the stated salary
    return sde(deal) - deal.owner_salary


def annual_cash_flow(deal: BusinessDeal) -> float:
    return earnings_before_debt(deal) - annual_debt_service(deal)


def roi(deal: BusinessDeal) -> float:
    return safe_ratio(annual_cash_flow(deal), total_cash_invested(deal)) * 100.0


def dscr(deal: BusinessDeal) -> float:
    return coverage_ratio(earnings_before_debt(deal), annual_debt_service(deal))


def break_even_revenue(deal: BusinessDeal) -> float:
    """
    Revenue at which cash flow hits zero: fixed costs / gross margin.
    +inf when gross margin is not positive (no revenue level breaks even).
    """
    if deal.annual_revenue == 0:
        return 0.0

    gross_margin = (deal.annual_revenue - deal.cost_of_goods) / deal.annual_revenue
    if gross_margin <= 0:
        return math.inf

    fixed_costs = deal.operating_expenses + deal.owner_salary + annual_debt_service(deal)
    return fixed_costs / gross_margin


def revenue_multiple(deal: BusinessDeal) -> float:
    if deal.annual_revenue <= 0:
        return 0.0
    return deal.asking_price / deal.annual_revenue


def sde_multiple(deal: BusinessDeal) -> float:
    earnings = sde(deal)
    if earnings <= 0:
        return 0.0
    return deal.asking_price / earnings


def calc_business_metrics(deal: BusinessDeal) -> BusinessMetrics:
    monthly = monthly_debt_service(deal.financing)
    return BusinessMetrics(
        ebitda=ebitda(deal),
        sde=sde(deal),
        sde_margin=sde_margin(deal),
        roi=roi(deal),
        dscr=dscr(deal),
        annual_cash_flow=annual_cash_flow(deal),
        break_even_revenue=break_even_revenue(deal),
        monthly_debt_service=monthly,
        annual_debt_service=monthly * 12.0,
        total_cash_invested=total_cash_invested(deal),
        revenue_multiple=revenue_multiple(deal),
        sde_multiple=sde_multiple(deal),
    )


def _years(deal: BusinessDeal, years: int) -> Iterator[CashFlowYear]:
    debt = annual_debt_service(deal)
    revenue = deal.annual_revenue
    expenses = deal.cost_of_goods + deal.operating_expenses
    fixed_add_backs = add_backs(deal) + deal.other_add_backs
    cumulative = 0.0

    for year in range(1, years + 1):
        year_sde = revenue - expenses + fixed_add_backs + deal.owner_salary
        before_debt = year_sde - deal.owner_salary
        cash_flow = before_debt - debt
        cumulative += cash_flow
        yield CashFlowYear(
            year=year,
            cash_flow=cash_flow,
            noi=before_debt,
            cumulative_cash_flow=cumulative,
            revenue=revenue,
        )

        revenue *= 1 + deal.annual_revenue_growth / 100.0
        expenses *= 1 + deal.annual_expense_growth / 100.0


def project_cash_flows(deal: BusinessDeal, years: int | None = None) -> CashFlowProjection:
    years = config.PROJECTION_YEARS if years is None else years
    return CashFlowProjection(lambda: _years(deal, years), years)
