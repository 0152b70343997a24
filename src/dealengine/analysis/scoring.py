# src/dealengine/analysis/scoring.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Iterable

from dealengine.adapters.logging_utils import get_logger
from dealengine.analysis.metrics import calc_metrics
from dealengine.domain.deal import (
    BusinessDeal,
    Deal,
    DealPayload,
    HybridDeal,
    RealEstateDeal,
)
from dealengine.domain.errors import UnsupportedDealKind
from dealengine.domain.metrics import (
    BusinessMetrics,
    HybridMetrics,
    MetricsRecord,
    RealEstateMetrics,
)

logger = get_logger(__name__)

PENALTY_PER_FLAG = 5.0
MAX_PENALTY = 25.0

# Risk flag codes
DSCR_BELOW_1 = "dscr_below_1"
DSCR_BELOW_TARGET = "dscr_below_1_25"
NEGATIVE_CASH_FLOW = "negative_cash_flow"
LOW_VACANCY_ASSUMPTION = "low_vacancy_assumption"
LOW_CAP_RATE = "low_cap_rate"
LOW_CASH_ON_CASH = "low_cash_on_cash"
HEAVY_REHAB = "heavy_rehab"
THIN_SDE_MARGIN = "thin_sde_margin"
HIGH_SDE_MULTIPLE = "high_sde_multiple"
SMALL_REVENUE = "small_revenue"
ALLOCATION_MISMATCH = "allocation_mismatch"


@dataclass(frozen=True)
class ScoreComponent:
    name: str
    raw_score: float  # 0-100 before weighting
    weight: float
    weighted_contribution: float


@dataclass(frozen=True)
class InvestmentScore:
    total: int
    label: str
    color: str
    breakdown: list[ScoreComponent]
    risk_flags: list[str] = field(default_factory=list)
    penalty: float = 0.0
    summary: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ---------------------------------------------------------------------
# Interpolation helpers
# ---------------------------------------------------------------------


def _clamp(v: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, v))


def linear_score(value: float, low: float, high: float) -> float:
    """0 at `low`, 100 at `high`, clamped outside the range."""
    if high == low:
        return 100.0 if value >= high else 0.0
    return _clamp((value - low) / (high - low) * 100.0)


def inverse_linear_score(value: float, low: float, high: float) -> float:
    """Lower is better: 100 at `low`, 0 at `high`."""
    return 100.0 - linear_score(value, low, high)


def _component(name: str, score: float, weight: float) -> ScoreComponent:
    return ScoreComponent(name=name, raw_score=score, weight=weight, weighted_contribution=score * weight)


def _multiple_score(multiple: float, low: float, high: float) -> float:
    # a 0 multiple means the earnings/revenue base was non-positive, not a bargain
    if multiple <= 0:
        return 0.0
    return inverse_linear_score(multiple, low, high)


def sde_margin_pct(sde: float, revenue: float) -> float:
    return sde / revenue * 100.0 if revenue > 0 else 0.0


def allocation_gap(deal: HybridDeal) -> float:
    return abs(deal.property_value + deal.business_value - deal.purchase_price)


# ---------------------------------------------------------------------
# Components per kind
# ---------------------------------------------------------------------


def _real_estate_components(m: RealEstateMetrics) -> list[ScoreComponent]:
    egi = m.effective_gross_income or 1.0
    expense_ratio = m.operating_expenses / egi * 100.0
    return [
        _component("Cap Rate", linear_score(m.cap_rate, 3, 10), 0.25),
        _component("Cash-on-Cash", linear_score(m.cash_on_cash, 0, 15), 0.20),
        _component("DSCR", linear_score(m.dscr, 0.8, 1.75), 0.20),
        _component("IRR", linear_score(m.irr, 0, 20), 0.15),
        _component("Cash Flow", linear_score(m.annual_cash_flow, 0, 50_000), 0.10),
        _component("Expense Ratio", inverse_linear_score(expense_ratio, 30, 65), 0.10),
    ]


def _business_components(m: BusinessMetrics) -> list[ScoreComponent]:
    return [
        _component("SDE Multiple", _multiple_score(m.sde_multiple, 1.5, 5), 0.25),
        _component("ROI", linear_score(m.roi, 0, 40), 0.20),
        _component("SDE Margin", linear_score(m.sde_margin, 10, 40), 0.20),
        _component("Cash Flow", linear_score(m.annual_cash_flow, 0, 100_000), 0.20),
        _component("Revenue Multiple", _multiple_score(m.revenue_multiple, 0.3, 2), 0.15),
    ]


def _hybrid_components(data: HybridDeal, m: HybridMetrics) -> list[ScoreComponent]:
    gap = allocation_gap(data)
    alloc = 100.0 if gap < 1000 else inverse_linear_score(gap, 0, data.purchase_price * 0.1)
    return [
        _component("Cap Rate", linear_score(m.cap_rate, 3, 10), 0.15),
        _component("Cash-on-Cash", linear_score(m.cash_on_cash, 0, 15), 0.15),
        _component("DSCR", linear_score(m.dscr, 0.8, 1.75), 0.20),
        _component("SDE Multiple", _multiple_score(m.sde_multiple, 1.5, 5), 0.15),
        _component("Cash Flow", linear_score(m.annual_cash_flow, 0, 75_000), 0.15),
        _component("ROI", linear_score(m.roi, 0, 30), 0.10),
        _component("Allocation", alloc, 0.10),
    ]


# ---------------------------------------------------------------------
# Risk flags
# ---------------------------------------------------------------------


def risk_flags(payload: DealPayload, m: MetricsRecord) -> list[str]:
    """Threshold checks that each cost PENALTY_PER_FLAG points."""
    flags: list[str] = []

    # Universal
    if m.dscr < 1.0:
        flags.append(DSCR_BELOW_1)
    elif m.dscr < 1.25:
        flags.append(DSCR_BELOW_TARGET)
    if m.annual_cash_flow < 0:
        flags.append(NEGATIVE_CASH_FLOW)

    if isinstance(payload, RealEstateDeal) and isinstance(m, RealEstateMetrics):
        if payload.vacancy_rate < 3:
            flags.append(LOW_VACANCY_ASSUMPTION)
        if m.cap_rate < 4:
            flags.append(LOW_CAP_RATE)
        if m.cash_on_cash < 5:
            flags.append(LOW_CASH_ON_CASH)
        if payload.rehab_costs > payload.purchase_price * 0.25:
            flags.append(HEAVY_REHAB)

    elif isinstance(payload, BusinessDeal) and isinstance(m, BusinessMetrics):
        if m.sde_margin < 15:
            flags.append(THIN_SDE_MARGIN)
        if m.sde_multiple > 4:
            flags.append(HIGH_SDE_MULTIPLE)
        if payload.annual_revenue < 200_000:
            flags.append(SMALL_REVENUE)

    elif isinstance(payload, HybridDeal) and isinstance(m, HybridMetrics):
        if m.sde_multiple > 4:
            flags.append(HIGH_SDE_MULTIPLE)
        if allocation_gap(payload) > payload.purchase_price * 0.1:
            flags.append(ALLOCATION_MISMATCH)

    return flags


def risk_penalty(flag_count: int, max_penalty: float = MAX_PENALTY) -> float:
    return min(flag_count * PENALTY_PER_FLAG, max_penalty)


# ---------------------------------------------------------------------
# Labels & summary
# ---------------------------------------------------------------------


def label_from_score(score: float) -> tuple[str, str]:
    if score >= 80:
        return "Strong Buy", "text-green-600"
    if score >= 65:
        return "Good Deal", "text-emerald-600"
    if score >= 50:
        return "Fair", "text-yellow-600"
    if score >= 35:
        return "Below Average", "text-orange-600"
    return "Weak", "text-red-600"


def build_summary(total: int, components: list[ScoreComponent]) -> str:
    ranked = sorted(components, key=lambda c: c.raw_score, reverse=True)
    best = ranked[0]
    worst = ranked[-1]

    if total >= 80:
        return f"Strong yield and safe coverage. {best.name} is excellent."
    if total >= 65:
        return f"Solid fundamentals, {worst.name} could be stronger."
    if total >= 50:
        return f"Acceptable deal but {worst.name} is a concern. Negotiate terms."
    if total >= 35:
        second = ranked[-2] if len(ranked) > 1 else best
        return f"Multiple weaknesses: {worst.name} and {second.name} need improvement."
    return f"Significant risk. {worst.name} is critically weak. Consider walking away."


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------


def _components(payload: DealPayload, metrics: MetricsRecord) -> list[ScoreComponent]:
    if isinstance(payload, RealEstateDeal) and isinstance(metrics, RealEstateMetrics):
        return _real_estate_components(metrics)
    if isinstance(payload, BusinessDeal) and isinstance(metrics, BusinessMetrics):
        return _business_components(metrics)
    if isinstance(payload, HybridDeal) and isinstance(metrics, HybridMetrics):
        return _hybrid_components(payload, metrics)
    kind = getattr(payload, "kind", type(payload).__name__)
    logger.error(
        "score_kind_mismatch",
        extra={"context": {"kind": kind, "metrics": type(metrics).__name__}},
    )
    raise UnsupportedDealKind(kind)


def score_from_metrics(
    kind: str,
    payload: DealPayload,
    metrics: MetricsRecord,
    carried_flags: Iterable[str] = (),
) -> InvestmentScore:
    """
    Score pre-computed metrics. Same output as score_deal for the same payload.

    `carried_flags` are risk flags inherited from another evaluation of the
    same deal (the stress test keeps the base deal's flags); they are merged
    with the flags raised here.
    """
    if kind != payload.kind:
        raise UnsupportedDealKind(kind)

    components = _components(payload, metrics)
    raw = sum(c.weighted_contribution for c in components)

    flags = risk_flags(payload, metrics)
    for code in carried_flags:
        if code not in flags:
            flags.append(code)

    penalty = risk_penalty(len(flags))
    total = int(round(_clamp(raw - penalty)))
    label, color = label_from_score(total)

    return InvestmentScore(
        total=total,
        label=label,
        color=color,
        breakdown=components,
        risk_flags=flags,
        penalty=penalty,
        summary=build_summary(total, components),
    )


def score_deal(deal: Deal | DealPayload) -> InvestmentScore:
    payload = deal.data if isinstance(deal, Deal) else deal
    metrics = calc_metrics(payload)
    return score_from_metrics(payload.kind, payload, metrics)
