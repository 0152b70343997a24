# src/dealengine/analysis/finance.py
from __future__ import annotations

import math
from typing import Callable, Iterator, Sequence

import numpy as np

from dealengine.adapters.config import config
from dealengine.adapters.logging_utils import get_logger
from dealengine.domain.deal import FinancingTerms
from dealengine.domain.metrics import CashFlowYear

logger = get_logger(__name__)


def annuity_payment(rate_monthly: float, n_months: int, principal: float) -> float:
    """
    Standard fixed-rate amortization formula:
    M = P * [ r(1+r)^n / ((1+r)^n - 1) ]
    P = loan principal
    r = monthly interest rate
    n = number of payments (months)
    """
    if principal <= 0 or n_months <= 0:
        return 0.0
    r = rate_monthly
    if r == 0:
        return principal / n_months
    growth = (1 + r) ** n_months
    return principal * (r * growth) / (growth - 1)


def annuity_principal(rate_monthly: float, n_months: int, payment: float) -> float:
    """
    Inverse of annuity_payment: the principal a fixed `payment` retires over
    `n_months`. Closed-form present value of an annuity, no iteration.
    """
    if payment <= 0 or n_months <= 0:
        return 0.0
    r = rate_monthly
    if r == 0:
        return payment * n_months
    growth = (1 + r) ** n_months
    return payment * (growth - 1) / (r * growth)


def monthly_debt_service(financing: FinancingTerms) -> float:
    """Monthly P&I for the financing terms. Zero without a loan or amortization period."""
    return annuity_payment(
        rate_monthly=financing.interest_rate_pct / 100.0 / 12.0,
        n_months=financing.amortization_years * 12,
        principal=financing.loan_amount,
    )


def safe_ratio(numerator: float, denominator: float, default: float = 0.0) -> float:
    if denominator == 0:
        return default
    return numerator / denominator


def coverage_ratio(income: float, annual_debt_service: float) -> float:
    # No debt means coverage can't be exceeded: +inf, not 0.
    if annual_debt_service <= 0:
        return math.inf
    return income / annual_debt_service


def sale_proceeds(
    value: float,
    appreciation_pct: float,
    years: int,
    loan_balance: float,
    selling_cost_pct: float | None = None,
) -> float:
    """
    Appreciated value net of selling costs and the loan payoff. Selling costs
    default to the configured SELLING_COST_PCT at call time.
    """
    if selling_cost_pct is None:
        selling_cost_pct = config.SELLING_COST_PCT
    future_value = value * (1 + appreciation_pct / 100.0) ** years
    selling_costs = future_value * selling_cost_pct / 100.0
    return future_value - selling_costs - loan_balance


def newton_irr(
    cash_flows: Sequence[float],
    guess: float = 0.1,
    max_iter: int = 100,
    tol: float = 1e-6,
) -> float:
    """
    IRR (percent) of a periodic cash-flow vector via Newton's method on NPV.

    NPV(r)  = sum(cf_t / (1+r)^t)
    NPV'(r) = -sum(t * cf_t / (1+r)^(t+1))

    Never raises: a flat derivative or a non-converging run returns the last
    rate. A vector without a sign change has no IRR and returns 0.0.
    """
    cfs = np.asarray(cash_flows, dtype=float)
    if cfs.size < 2 or not ((cfs < 0).any() and (cfs > 0).any()):
        return 0.0

    t = np.arange(cfs.size, dtype=float)
    rate = guess

    with np.errstate(all="ignore"):
        for _ in range(max_iter):
            base = 1.0 + rate
            npv = float(np.sum(cfs / base**t))
            dnpv = float(np.sum(-t * cfs / base ** (t + 1)))

            if not (math.isfinite(npv) and math.isfinite(dnpv)):
                break
            if abs(dnpv) < 1e-10:
                break

            new_rate = rate - npv / dnpv
            if abs(new_rate - rate) < tol:
                return new_rate * 100.0
            rate = new_rate

    logger.debug("irr_not_converged", extra={"context": {"rate": rate, "periods": int(cfs.size)}})
    return rate * 100.0


class CashFlowProjection:
    """
    Lazy, finite year-by-year projection.

    Iterating twice replays the projection from the starting snapshot; nothing
    is cached between iterations.
    """

    def __init__(self, step: Callable[[], Iterator[CashFlowYear]], years: int):
        self._step = step
        self.years = years

    def __iter__(self) -> Iterator[CashFlowYear]:
        return self._step()

    def __len__(self) -> int:
        return max(0, self.years)

    def to_list(self) -> list[CashFlowYear]:
        return list(self)
