# src/dealengine/analysis/negotiation.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

from dealengine.adapters.logging_utils import get_logger
from dealengine.analysis import business, hybrid, real_estate
from dealengine.analysis.finance import annuity_payment, coverage_ratio
from dealengine.analysis.formatting import fmt_currency, fmt_pct
from dealengine.analysis.metrics import calc_metrics
from dealengine.analysis.recession import (
    DEFAULT_RECESSION,
    RecessionOverrides,
    apply_recession_overrides,
)
from dealengine.analysis.scoring import score_from_metrics
from dealengine.analysis.valuation import (
    DSCRConstraint,
    ValuationRange,
    cap_rate_range,
    coverage_income,
    fair_value_range,
    max_supportable_price,
    multiple_range,
)
from dealengine.domain.deal import (
    BusinessDeal,
    Deal,
    DealPayload,
    HybridDeal,
    RealEstateDeal,
)
from dealengine.domain.errors import UnsupportedDealKind

logger = get_logger(__name__)

Category = Literal["risk", "valuation", "market", "financial"]
Impact = Literal["high", "medium", "low"]

_IMPACT_RANK = {"high": 0, "medium": 1, "low": 2}

PRICE_LADDER_STEPS: tuple[int, ...] = (-20, -15, -10, -5, 0, 5, 10)

KIND_LABELS = {
    "real-estate": "Real Estate",
    "business": "Business Acquisition",
    "hybrid": "Hybrid (RE + Business)",
}


@dataclass(frozen=True)
class PriceGap:
    asking_price: float
    fair_value_mid: float
    max_supportable: float
    suggested_offer_low: float
    suggested_offer_high: float
    overpay_amount: float  # negative means the ask is below fair value
    overpay_pct: float


@dataclass(frozen=True)
class NegotiationPoint:
    category: Category
    title: str
    detail: str
    impact: Impact


@dataclass(frozen=True)
class StressTestResult:
    base_score: int
    base_label: str
    stressed_score: int
    stressed_label: str
    base_cash_flow: float
    stressed_cash_flow: float


@dataclass(frozen=True)
class PricePoint:
    price: float
    cash_flow: float
    dscr: float
    return_metric: float
    return_label: str


@dataclass(frozen=True)
class NegotiationAnalysis:
    deal_name: str
    deal_kind: str
    asking_price: float
    valuation: ValuationRange
    dscr_constraint: DSCRConstraint
    price_gap: PriceGap
    negotiation_points: list[NegotiationPoint] = field(default_factory=list)
    stress_test: StressTestResult | None = None
    price_ladder: list[PricePoint] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _payload(deal: Deal | DealPayload) -> DealPayload:
    return deal.data if isinstance(deal, Deal) else deal


# ---------------------------------------------------------------------
# Price gap
# ---------------------------------------------------------------------


def price_gap(asking_price: float, valuation: ValuationRange, constraint: DSCRConstraint) -> PriceGap:
    """Offer band runs from the fair low to halfway between fair low and fair mid."""
    fair_mid = valuation.mid
    overpay = asking_price - fair_mid
    return PriceGap(
        asking_price=asking_price,
        fair_value_mid=round(fair_mid),
        max_supportable=round(constraint.max_supportable_price),
        suggested_offer_low=round(valuation.low),
        suggested_offer_high=round((valuation.low + fair_mid) / 2),
        overpay_amount=round(overpay),
        overpay_pct=round(overpay / fair_mid * 100.0, 1) if fair_mid > 0 else 0.0,
    )


# ---------------------------------------------------------------------
# Negotiation points
# ---------------------------------------------------------------------


def _real_estate_points(data: RealEstateDeal) -> list[NegotiationPoint]:
    points: list[NegotiationPoint] = []
    cap = real_estate.cap_rate(data)
    band = cap_rate_range(data)
    egi = real_estate.effective_gross_income(data)
    opex = real_estate.operating_expenses(data)
    dscr = real_estate.dscr(data)
    coc = real_estate.cash_on_cash(data)

    if cap < band.low:
        points.append(NegotiationPoint(
            "valuation",
            "Cap Rate Below Market Range",
            f"The implied cap rate of {fmt_pct(cap)} is below the {fmt_pct(band.low)}-{fmt_pct(band.high)} "
            f"range for {band.label} properties. Comparable properties trade at higher yields.",
            "high",
        ))

    if data.vacancy_rate < 5:
        lost = real_estate.gross_income(data) * (5 - data.vacancy_rate) / 100.0
        points.append(NegotiationPoint(
            "risk",
            "Optimistic Vacancy Assumption",
            f"The {fmt_pct(data.vacancy_rate)} vacancy rate used is below the industry-standard 5-8% "
            f"for residential rentals. Realistic vacancy would reduce NOI by {fmt_currency(lost)}/yr.",
            "medium",
        ))

    expense_ratio = opex / (egi or 1)
    if expense_ratio > 0.55:
        points.append(NegotiationPoint(
            "financial",
            "High Operating Expense Ratio",
            f"Operating expenses consume {fmt_pct(expense_ratio * 100)} of effective gross income, "
            f"above the 40-50% benchmark.",
            "medium",
        ))

    if 0 < dscr < 1.25:
        points.append(NegotiationPoint(
            "financial",
            "Insufficient Debt Service Coverage",
            f"DSCR of {dscr:.2f}x is below the lender-standard 1.25x minimum. The asking price is "
            f"above what the income supports.",
            "high",
        ))

    if coc < 8:
        points.append(NegotiationPoint(
            "financial",
            "Below-Target Cash-on-Cash Return",
            f"Cash-on-cash return of {fmt_pct(coc)} is below the typical 8-12% target for "
            f"investment properties.",
            "high" if coc < 5 else "medium",
        ))

    if data.rehab_costs > data.purchase_price * 0.15:
        share = data.rehab_costs / data.purchase_price * 100 if data.purchase_price else 100.0
        points.append(NegotiationPoint(
            "risk",
            "Significant Rehabilitation Required",
            f"Rehab costs of {fmt_currency(data.rehab_costs)} represent {fmt_pct(share)} of the "
            f"purchase price. Execution risk and carrying costs belong in a lower price.",
            "medium",
        ))

    return points


def _business_points(data: BusinessDeal) -> list[NegotiationPoint]:
    points: list[NegotiationPoint] = []
    earnings = business.sde(data)
    multiple = business.sde_multiple(data)
    band = multiple_range(data)

    if multiple > band.high:
        points.append(NegotiationPoint(
            "valuation",
            "Asking Multiple Above Market Range",
            f"The asking price implies a {multiple:.1f}x SDE multiple, above the {band.low}x-{band.high}x "
            f"range for comparable businesses ({band.reason}). A rational price is "
            f"{fmt_currency(earnings * band.low)}-{fmt_currency(earnings * band.high)}.",
            "high",
        ))

    margin = earnings / (data.annual_revenue or 1)
    if margin < 0.15:
        points.append(NegotiationPoint(
            "risk",
            "Thin SDE Margin",
            f"SDE margin of {fmt_pct(margin * 100)} is below 15%. A small revenue decline or cost "
            f"increase could eliminate earnings entirely.",
            "high",
        ))

    if data.owner_salary < 40_000 and data.annual_revenue > 300_000:
        points.append(NegotiationPoint(
            "risk",
            "Understated Owner Compensation",
            f"Owner salary of {fmt_currency(data.owner_salary)} appears below market for a "
            f"{fmt_currency(data.annual_revenue)}-revenue business. A replacement manager costs more, "
            f"so true SDE is lower than stated.",
            "medium",
        ))

    if data.annual_revenue < 250_000:
        points.append(NegotiationPoint(
            "risk",
            "Small Revenue Base",
            f"Revenue of {fmt_currency(data.annual_revenue)} indicates a micro-business with likely "
            f"owner-dependency and customer concentration risk.",
            "medium",
        ))

    gross_margin = (data.annual_revenue - data.cost_of_goods) / (data.annual_revenue or 1)
    if gross_margin < 0.30:
        points.append(NegotiationPoint(
            "financial",
            "Low Gross Margin",
            f"Gross margin of {fmt_pct(gross_margin * 100)} leaves little room for operating expenses.",
            "medium",
        ))

    return points


def _hybrid_points(data: HybridDeal) -> list[NegotiationPoint]:
    points: list[NegotiationPoint] = []
    multiple = hybrid.sde_multiple(data)
    cap = hybrid.cap_rate(data)
    dscr = hybrid.dscr(data)
    b_band = multiple_range(data)
    p_band = cap_rate_range(data)

    if multiple > b_band.high:
        points.append(NegotiationPoint(
            "valuation",
            "Business Portion Overvalued",
            f"The business allocation implies a {multiple:.1f}x SDE multiple, above the "
            f"{b_band.low}x-{b_band.high}x range.",
            "high",
        ))

    if cap < p_band.low and hybrid.property_noi(data) > 0:
        points.append(NegotiationPoint(
            "valuation",
            "Property Cap Rate Below Market",
            f"The property portion cap rate of {fmt_pct(cap)} is below the "
            f"{fmt_pct(p_band.low)}-{fmt_pct(p_band.high)} market range.",
            "high",
        ))

    if 0 < dscr < 1.25:
        points.append(NegotiationPoint(
            "financial",
            "Thin Debt Coverage",
            f"Combined DSCR of {dscr:.2f}x is below the 1.25x standard.",
            "high",
        ))

    return points


def negotiation_points(deal: Deal | DealPayload) -> list[NegotiationPoint]:
    """Leverage points for the buyer, highest impact first."""
    payload = _payload(deal)
    if isinstance(payload, RealEstateDeal):
        points = _real_estate_points(payload)
    elif isinstance(payload, BusinessDeal):
        points = _business_points(payload)
    elif isinstance(payload, HybridDeal):
        points = _hybrid_points(payload)
    else:
        raise UnsupportedDealKind(getattr(payload, "kind", type(payload).__name__))

    rate = payload.financing.interest_rate_pct
    if rate > 8:
        points.append(NegotiationPoint(
            "market",
            "Elevated Interest Rate Environment",
            f"The {fmt_pct(rate)} financing rate increases carrying costs. Higher rates mean buyers "
            f"can pay less for the same cash flow.",
            "medium",
        ))

    # stable sort keeps the check order within an impact tier
    return sorted(points, key=lambda p: _IMPACT_RANK[p.impact])


# ---------------------------------------------------------------------
# Stress test
# ---------------------------------------------------------------------


def stress_test(
    deal: Deal | DealPayload,
    overrides: RecessionOverrides = DEFAULT_RECESSION,
) -> StressTestResult:
    """
    Base vs recession score and cash flow. The stressed score keeps every
    risk flag the base deal raised, so stress never lifts the score.
    """
    payload = _payload(deal)
    stressed = apply_recession_overrides(payload, overrides)

    base_m = calc_metrics(payload)
    stressed_m = calc_metrics(stressed)
    base = score_from_metrics(payload.kind, payload, base_m)
    worse = score_from_metrics(stressed.kind, stressed, stressed_m, carried_flags=base.risk_flags)

    return StressTestResult(
        base_score=base.total,
        base_label=base.label,
        stressed_score=worse.total,
        stressed_label=worse.label,
        base_cash_flow=base_m.annual_cash_flow,
        stressed_cash_flow=stressed_m.annual_cash_flow,
    )


# ---------------------------------------------------------------------
# Price ladder
# ---------------------------------------------------------------------


def _cash_invested_at(payload: DealPayload, price: float) -> float:
    down = price * payload.financing.down_payment_pct / 100.0
    if isinstance(payload, BusinessDeal):
        return down + payload.closing_costs
    return down + payload.closing_costs + payload.rehab_costs


def price_ladder(
    deal: Deal | DealPayload,
    steps: tuple[int, ...] = PRICE_LADDER_STEPS,
) -> list[PricePoint]:
    """
    Re-price the deal at each percent step of the ask. The loan follows the
    price at the deal's down payment; operating income is unchanged. An
    all-cash deal stays all-cash at every step.
    """
    payload = _payload(deal)
    fin = payload.financing
    income = coverage_income(payload)
    label = "ROI" if isinstance(payload, BusinessDeal) else "Cash-on-Cash"

    ladder: list[PricePoint] = []
    for step_pct in steps:
        price = round(payload.price * (1 + step_pct / 100.0))
        loan = price * (1 - fin.down_payment_pct / 100.0) if fin.loan_amount > 0 else 0.0
        annual_debt = annuity_payment(fin.interest_rate_pct / 100.0 / 12.0, fin.amortization_years * 12, loan) * 12
        cash_flow = income - annual_debt
        dscr = coverage_ratio(income, annual_debt)
        invested = _cash_invested_at(payload, price)
        ret = cash_flow / invested * 100.0 if invested > 0 else 0.0

        ladder.append(
            PricePoint(
                price=price,
                cash_flow=round(cash_flow),
                dscr=round(dscr, 2),
                return_metric=round(ret, 2),
                return_label=label,
            )
        )
    return ladder


# ---------------------------------------------------------------------
# Bundle
# ---------------------------------------------------------------------


def build_negotiation_analysis(
    deal: Deal,
    min_dscr: float | None = None,
    overrides: RecessionOverrides = DEFAULT_RECESSION,
) -> NegotiationAnalysis:
    payload = deal.data
    valuation = fair_value_range(payload)
    constraint = max_supportable_price(payload, min_dscr)
    gap = price_gap(payload.price, valuation, constraint)

    analysis = NegotiationAnalysis(
        deal_name=deal.name,
        deal_kind=KIND_LABELS[payload.kind],
        asking_price=payload.price,
        valuation=valuation,
        dscr_constraint=constraint,
        price_gap=gap,
        negotiation_points=negotiation_points(payload),
        stress_test=stress_test(payload, overrides),
        price_ladder=price_ladder(payload),
    )

    logger.info(
        "negotiation_analysis",
        extra={
            "context": {
                "deal_id": deal.id,
                "kind": payload.kind,
                "asking_price": payload.price,
                "fair_value_mid": gap.fair_value_mid,
                "points": len(analysis.negotiation_points),
            }
        },
    )
    return analysis
