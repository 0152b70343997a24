from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Union


@dataclass(frozen=True)
class RealEstateMetrics:
    """
    Derived metrics for one rental property snapshot.

    Percent-valued: cap_rate, cash_on_cash, roi, irr.
    dscr is +inf when there is no debt service.
    """
    noi: float
    cap_rate: float
    cash_on_cash: float
    roi: float
    dscr: float
    irr: float
    monthly_debt_service: float
    annual_debt_service: float
    annual_cash_flow: float
    total_cash_invested: float
    effective_gross_income: float
    operating_expenses: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BusinessMetrics:
    """
    Derived metrics for a small-business acquisition.

    break_even_revenue is +inf when gross margin is not positive.
    """
    ebitda: float
    sde: float
    sde_margin: float
    roi: float
    dscr: float
    annual_cash_flow: float
    break_even_revenue: float
    monthly_debt_service: float
    annual_debt_service: float
    total_cash_invested: float
    revenue_multiple: float
    sde_multiple: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class HybridMetrics:
    # Property side
    property_noi: float
    cap_rate: float

    # Business side
    ebitda: float
    sde: float
    revenue_multiple: float
    sde_multiple: float

    # Combined
    total_noi: float
    annual_cash_flow: float
    cash_on_cash: float
    roi: float
    dscr: float
    monthly_debt_service: float
    annual_debt_service: float
    total_cash_invested: float
    break_even_revenue: float
    effective_gross_income: float
    total_operating_expenses: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


MetricsRecord = Union[RealEstateMetrics, BusinessMetrics, HybridMetrics]


@dataclass(frozen=True)
class CashFlowYear:
    year: int
    cash_flow: float
    noi: float               # pre-debt operating income for the year
    cumulative_cash_flow: float
    revenue: float | None = None  # business / hybrid top line
