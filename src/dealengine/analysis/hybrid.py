# src/dealengine/analysis/hybrid.py
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
from dealengine.domain.deal import HybridDeal
from dealengine.domain.metrics import CashFlowYear, HybridMetrics


# --- Property side ---

def property_gross_income(deal: HybridDeal) -> float:
    return deal.gross_rental_income + deal.other_property_income


def property_egi(deal: HybridDeal) -> float:
    return property_gross_income(deal) * (1 - deal.vacancy_rate / 100.0)


def property_expenses(deal: HybridDeal) -> float:
    management_fee = property_gross_income(deal) * deal.property_management_pct / 100.0
    return (
        deal.property_tax
        + deal.insurance
        + deal.maintenance
        + management_fee
        + deal.utilities
        + deal.other_property_expenses
    )


def property_noi(deal: HybridDeal) -> float:
    return property_egi(deal) - property_expenses(deal)


def cap_rate(deal: HybridDeal) -> float:
    # valued on the property allocation, not the whole price
    if deal.property_value <= 0:
        return 0.0
    return property_noi(deal) / deal.property_value * 100.0


# --- Business side ---

def add_backs(deal: HybridDeal) -> float:
    return deal.depreciation + deal.amortization + deal.interest + deal.taxes


def ebitda(deal: HybridDeal) -> float:
    """Same definition as a stand-alone business: operating profit plus D, A, I and T."""
    return deal.annual_revenue - deal.cost_of_goods - deal.business_operating_expenses + add_backs(deal)


def sde(deal: HybridDeal) -> float:
    return ebitda(deal) + deal.owner_salary + deal.other_add_backs


def revenue_multiple(deal: HybridDeal) -> float:
    if deal.annual_revenue <= 0:
        return 0.0
    return deal.business_value / deal.annual_revenue


def sde_multiple(deal: HybridDeal) -> float:
    earnings = sde(deal)
    if earnings <= 0:
        return 0.0
    return deal.business_value / earnings


# --- Combined ---

def total_noi(deal: HybridDeal) -> float:
    return property_noi(deal) + ebitda(deal)


def total_cash_invested(deal: HybridDeal) -> float:
    down_payment = deal.purchase_price * deal.financing.down_payment_pct / 100.0
    return down_payment + deal.closing_costs + deal.rehab_costs


def annual_debt_service(deal: HybridDeal) -> float:
    return monthly_debt_service(deal.financing) * 12.0


def annual_cash_flow(deal: HybridDeal) -> float:
    return total_noi(deal) - annual_debt_service(deal)


def cash_on_cash(deal: HybridDeal) -> float:
    return safe_ratio(annual_cash_flow(deal), total_cash_invested(deal)) * 100.0


def dscr(deal: HybridDeal) -> float:
    return coverage_ratio(total_noi(deal), annual_debt_service(deal))


def roi(deal: HybridDeal, hold_years: int | None = None) -> float:
    """
    Hold-period return on cash invested: flat cash flow for every year held
    plus the appreciation of the property allocation.
    """
    hold_years = config.HOLD_YEARS if hold_years is None else hold_years
    invested = total_cash_invested(deal)
    if invested <= 0:
        return 0.0

    cash_flow_total = annual_cash_flow(deal) * hold_years
    appreciation = deal.property_value * ((1 + deal.annual_appreciation / 100.0) ** hold_years - 1)
    return (cash_flow_total + appreciation) / invested * 100.0


def break_even_revenue(deal: HybridDeal) -> float:
    """
    Business revenue at which combined cash flow is zero, net of what the
    property already earns. +inf when gross margin is not positive.
    """
    if deal.annual_revenue == 0:
        return 0.0

    gross_margin = (deal.annual_revenue - deal.cost_of_goods) / deal.annual_revenue
    if gross_margin <= 0:
        return math.inf

    uncovered = (
        deal.business_operating_expenses
        + annual_debt_service(deal)
        - property_noi(deal)
        - add_backs(deal)
    )
    return max(0.0, uncovered / gross_margin)


def effective_gross_income(deal: HybridDeal) -> float:
    return property_egi(deal) + deal.annual_revenue


def total_operating_expenses(deal: HybridDeal) -> float:
    return property_expenses(deal) + deal.cost_of_goods + deal.business_operating_expenses


def calc_hybrid_metrics(deal: HybridDeal, hold_years: int | None = None) -> HybridMetrics:
    monthly = monthly_debt_service(deal.financing)
    return HybridMetrics(
        property_noi=property_noi(deal),
        cap_rate=cap_rate(deal),
        ebitda=ebitda(deal),
        sde=sde(deal),
        revenue_multiple=revenue_multiple(deal),
        sde_multiple=sde_multiple(deal),
        total_noi=total_noi(deal),
        annual_cash_flow=annual_cash_flow(deal),
        cash_on_cash=cash_on_cash(deal),
        roi=roi(deal, hold_years),
        dscr=dscr(deal),
        monthly_debt_service=monthly,
        annual_debt_service=monthly * 12.0,
        total_cash_invested=total_cash_invested(deal),
        break_even_revenue=break_even_revenue(deal),
        effective_gross_income=effective_gross_income(deal),
        total_operating_expenses=total_operating_expenses(deal),
    )


def _years(deal: HybridDeal, years: int) -> Iterator[CashFlowYear]:
    debt = annual_debt_service(deal)
    property_income = property_egi(deal)
    property_costs = property_expenses(deal)
    revenue = deal.annual_revenue
    business_costs = deal.cost_of_goods + deal.business_operating_expenses
    fixed_add_backs = add_backs(deal)
    cumulative = 0.0

    for year in range(1, years + 1):
        year_noi = (property_income - property_costs) + (revenue - business_costs + fixed_add_backs)
        cash_flow = year_noi - debt
        cumulative += cash_flow
        yield CashFlowYear(
            year=year,
            cash_flow=cash_flow,
            noi=year_noi,
            cumulative_cash_flow=cumulative,
            revenue=revenue,
        )

        property_income *= 1 + deal.annual_rent_growth / 100.0
        property_costs *= 1 + deal.annual_expense_growth / 100.0
        revenue *= 1 + deal.annual_revenue_growth / 100.0
        business_costs *= 1 + deal.annual_expense_growth / 100.0


def project_cash_flows(deal: HybridDeal, years: int | None = None) -> CashFlowProjection:
    years = config.PROJECTION_YEARS if years is None else years
    return CashFlowProjection(lambda: _years(deal, years), years)
