# src/dealengine/analysis/valuation.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from dealengine.adapters.config import config
from dealengine.analysis import business, hybrid, real_estate
from dealengine.analysis.amortization import max_supportable_loan
from dealengine.analysis.formatting import fmt_currency, fmt_pct
from dealengine.analysis.metrics import calc_metrics
from dealengine.domain.deal import (
    BusinessDeal,
    Deal,
    DealPayload,
    HybridDeal,
    RealEstateDeal,
)
from dealengine.domain.errors import UnsupportedDealKind


@dataclass(frozen=True)
class CapRateBand:
    low: float   # percent
    high: float
    label: str


@dataclass(frozen=True)
class MultipleBand:
    low: float
    high: float
    reason: str


@dataclass(frozen=True)
class ValuationRange:
    low: float
    high: float
    method: str
    details: list[str] = field(default_factory=list)

    @property
    def mid(self) -> float:
        return (self.low + self.high) / 2

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class DSCRConstraint:
    max_supportable_price: float
    dscr: float
    min_dscr: float
    noi: float
    annual_debt_service: float
    explanation: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _payload(deal: Deal | DealPayload) -> DealPayload:
    return deal.data if isinstance(deal, Deal) else deal


# ---------------------------------------------------------------------
# Market bands
# ---------------------------------------------------------------------


def cap_rate_range(deal: RealEstateDeal | HybridDeal) -> CapRateBand:
    """Market cap-rate band by asset size. Hybrids are sized by the property allocation."""
    price = deal.property_value if isinstance(deal, HybridDeal) else deal.purchase_price
    if price < 500_000:
        return CapRateBand(6.0, 10.0, "small residential/commercial")
    if price < 2_000_000:
        return CapRateBand(5.0, 8.0, "mid-market commercial")
    return CapRateBand(4.0, 7.0, "institutional-grade")


def multiple_range(deal: BusinessDeal | HybridDeal) -> MultipleBand:
    """SDE-multiple band adjusted for margin, revenue tier and real-property backing."""
    revenue = deal.annual_revenue
    earnings = hybrid.sde(deal) if isinstance(deal, HybridDeal) else business.sde(deal)
    margin = earnings / (revenue or 1)

    reasons: list[str] = []
    low, high = 2.0, 3.5

    if margin < 0.15:
        low, high = 1.5, 2.5
        reasons.append("thin margins compress multiples")
    elif margin > 0.35:
        low, high = 2.5, 4.0
        reasons.append("strong margins command premium multiples")

    if revenue < 250_000:
        low, high = max(1.0, low - 0.5), max(2.0, high - 0.5)
        reasons.append("micro-business trades at lower multiples")
    elif revenue > 2_000_000:
        low, high = low + 0.5, high + 0.5
        reasons.append("established revenue supports higher multiples")

    if isinstance(deal, HybridDeal):
        low, high = low + 0.5, high + 0.5
        reasons.append("real property backing adds value")

    return MultipleBand(round(low, 1), round(high, 1), "; ".join(reasons) or "standard range")


# ---------------------------------------------------------------------
# Fair value
# ---------------------------------------------------------------------


def _cap_value(noi: float, cap_pct: float) -> float:
    return noi / (cap_pct / 100.0)


def fair_value_range(deal: Deal | DealPayload) -> ValuationRange:
    payload = _payload(deal)

    if isinstance(payload, RealEstateDeal):
        noi = real_estate.noi(payload)
        band = cap_rate_range(payload)
        low, high = _cap_value(noi, band.high), _cap_value(noi, band.low)
        return ValuationRange(
            low=low,
            high=high,
            method="Cap Rate",
            details=[
                f"NOI: {fmt_currency(noi)}/yr",
                f"Market cap rate range: {fmt_pct(band.low)}-{fmt_pct(band.high)} ({band.label})",
                f"At {fmt_pct(band.high)} cap: {fmt_currency(low)}",
                f"At {fmt_pct(band.low)} cap: {fmt_currency(high)}",
                f"Current implied cap: {fmt_pct(real_estate.cap_rate(payload))}",
            ],
        )

    if isinstance(payload, BusinessDeal):
        earnings = business.sde(payload)
        band = multiple_range(payload)
        low, high = earnings * band.low, earnings * band.high
        return ValuationRange(
            low=low,
            high=high,
            method="SDE Multiple",
            details=[
                f"SDE: {fmt_currency(earnings)}/yr",
                f"Market multiple range: {band.low}x-{band.high}x ({band.reason})",
                f"At {band.low}x: {fmt_currency(low)}",
                f"At {band.high}x: {fmt_currency(high)}",
                f"Current implied multiple: {business.sde_multiple(payload):.1f}x",
            ],
        )

    if isinstance(payload, HybridDeal):
        earnings = hybrid.sde(payload)
        prop_noi = hybrid.property_noi(payload)
        b_band = multiple_range(payload)
        p_band = cap_rate_range(payload)

        biz_low, biz_high = earnings * b_band.low, earnings * b_band.high
        # a money-losing building adds nothing to the range
        prop_low = _cap_value(prop_noi, p_band.high) if prop_noi > 0 else 0.0
        prop_high = _cap_value(prop_noi, p_band.low) if prop_noi > 0 else 0.0

        return ValuationRange(
            low=biz_low + prop_low,
            high=biz_high + prop_high,
            method="Dual (Property + Business)",
            details=[
                f"Business SDE: {fmt_currency(earnings)} x {b_band.low}-{b_band.high}x = "
                f"{fmt_currency(biz_low)}-{fmt_currency(biz_high)}",
                f"Property NOI: {fmt_currency(prop_noi)} at {fmt_pct(p_band.low)}-{fmt_pct(p_band.high)} cap = "
                f"{fmt_currency(prop_low)}-{fmt_currency(prop_high)}",
                f"Combined range: {fmt_currency(biz_low + prop_low)}-{fmt_currency(biz_high + prop_high)}",
            ],
        )

    raise UnsupportedDealKind(getattr(payload, "kind", type(payload).__name__))


# ---------------------------------------------------------------------
# Lender coverage ceiling
# ---------------------------------------------------------------------


def coverage_income(payload: DealPayload) -> float:
    """Income a lender sizes debt against: NOI, combined NOI, or SDE less a replacement salary."""
    if isinstance(payload, RealEstateDeal):
        return real_estate.noi(payload)
    if isinstance(payload, HybridDeal):
        return hybrid.total_noi(payload)
    if isinstance(payload, BusinessDeal):
        return business.earnings_before_debt(payload)
    raise UnsupportedDealKind(getattr(payload, "kind", type(payload).__name__))


def max_supportable_price(deal: Deal | DealPayload, min_dscr: float | None = None) -> DSCRConstraint:
    """
    Highest price whose loan keeps coverage >= min_dscr at the current rate,
    amortization and down payment: reverse-solve the loan, then
    price = loan / (1 - down%).
    """
    payload = _payload(deal)
    min_dscr = config.TARGET_DSCR if min_dscr is None else min_dscr
    fin = payload.financing

    income = coverage_income(payload)
    metrics = calc_metrics(payload)

    max_loan = max_supportable_loan(income, min_dscr, fin.interest_rate_pct, fin.amortization_years)
    down = fin.down_payment_pct / 100.0
    max_price = max(0.0, max_loan / (1 - down) if down < 1 else max_loan)

    if income <= 0:
        explanation = (
            f"The property/business produces no positive cash flow, so no price is "
            f"supportable at a {min_dscr}x DSCR."
        )
    else:
        explanation = (
            f"With {fmt_currency(income)}/yr NOI and a {min_dscr}x DSCR requirement, the maximum "
            f"annual debt service is {fmt_currency(income / min_dscr)}. At {fmt_pct(fin.interest_rate_pct)} "
            f"over {fin.amortization_years} years with {fmt_pct(fin.down_payment_pct)} down, the highest "
            f"price the income supports is {fmt_currency(max_price)}."
        )

    return DSCRConstraint(
        max_supportable_price=max_price,
        dscr=metrics.dscr,
        min_dscr=min_dscr,
        noi=income,
        annual_debt_service=metrics.annual_debt_service,
        explanation=explanation,
    )
