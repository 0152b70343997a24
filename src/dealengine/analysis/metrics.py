# src/dealengine/analysis/metrics.py
from __future__ import annotations

from dealengine.adapters.logging_utils import get_logger
from dealengine.analysis import business, hybrid, real_estate
from dealengine.analysis.finance import CashFlowProjection
from dealengine.domain.deal import (
    BusinessDeal,
    Deal,
    DealPayload,
    HybridDeal,
    RealEstateDeal,
)
from dealengine.domain.errors import UnsupportedDealKind
from dealengine.domain.metrics import MetricsRecord

logger = get_logger(__name__)


def _payload(deal: Deal | DealPayload) -> DealPayload:
    return deal.data if isinstance(deal, Deal) else deal


def _unsupported(payload: object) -> UnsupportedDealKind:
    kind = getattr(payload, "kind", type(payload).__name__)
    logger.error("unsupported_deal_kind", extra={"context": {"kind": kind}})
    return UnsupportedDealKind(kind)


def calc_metrics(deal: Deal | DealPayload, hold_years: int | None = None) -> MetricsRecord:
    """Metrics record for any deal kind. Accepts a Deal or its bare payload."""
    payload = _payload(deal)
    if isinstance(payload, RealEstateDeal):
        return real_estate.calc_real_estate_metrics(payload, hold_years)
    if isinstance(payload, BusinessDeal):
        return business.calc_business_metrics(payload)
    if isinstance(payload, HybridDeal):
        return hybrid.calc_hybrid_metrics(payload, hold_years)
    raise _unsupported(payload)


def project_cash_flows(deal: Deal | DealPayload, years: int | None = None) -> CashFlowProjection:
    payload = _payload(deal)
    if isinstance(payload, RealEstateDeal):
        return real_estate.project_cash_flows(payload, years)
    if isinstance(payload, BusinessDeal):
        return business.project_cash_flows(payload, years)
    if isinstance(payload, HybridDeal):
        return hybrid.project_cash_flows(payload, years)
    raise _unsupported(payload)

