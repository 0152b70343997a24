# src/dealengine/services/guardrails.py
from __future__ import annotations

from typing import Any, Dict, List

from dealengine.adapters.logging_utils import deal_context, get_logger
from dealengine.domain.deal import Deal, HybridDeal, RealEstateDeal

logger = get_logger(__name__)

ALLOCATION_TOLERANCE_PCT = 10.0


def _flag(code: str, severity: str, message: str, **context: Any) -> Dict[str, Any]:
    return {"code": code, "severity": severity, "message": message, "context": context}


def collect_guardrail_flags(deal: Deal) -> List[Dict[str, Any]]:
    """
    Sanity checks on the inputs themselves. These do *not* block anything;
    they flag records the caller should double-check before trusting the
    numbers.
    """
    flags: List[Dict[str, Any]] = []
    data = deal.data
    fin = data.financing
    price = data.price

    # ------------------------------------------------------------------
    # 1) Basic data sanity
    # ------------------------------------------------------------------
    if price <= 0:
        flags.append(_flag("PRICE_MISSING", "warning", "Purchase/asking price is missing or zero.", price=price))

    # ------------------------------------------------------------------
    # 2) Financing sanity
    # ------------------------------------------------------------------
    if fin.loan_amount > 0 and fin.amortization_years <= 0:
        flags.append(
            _flag(
                "NO_AMORTIZATION_PERIOD",
                "error",
                "Loan amount is set but amortization is 0 years; debt service is treated as zero.",
                loan_amount=fin.loan_amount,
                amortization_years=fin.amortization_years,
            )
        )

    if price > 0 and fin.loan_amount > price:
        flags.append(
            _flag(
                "LOAN_EXCEEDS_PRICE",
                "warning",
                "Loan amount exceeds the price.",
                loan_amount=fin.loan_amount,
                price=price,
            )
        )

    if price > 0 and fin.loan_amount > 0:
        implied_down = (1 - fin.loan_amount / price) * 100.0
        if abs(implied_down - fin.down_payment_pct) > 5.0:
            flags.append(
                _flag(
                    "DOWN_PAYMENT_MISMATCH",
                    "warning",
                    "Down payment % does not match price minus loan amount.",
                    down_payment_pct=fin.down_payment_pct,
                    implied_down_payment_pct=round(implied_down, 2),
                )
            )

    # ------------------------------------------------------------------
    # 3) Property-side sanity
    # ------------------------------------------------------------------
    if isinstance(data, (RealEstateDeal, HybridDeal)) and data.vacancy_rate >= 50:
        flags.append(
            _flag("VACANCY_EXTREME", "warning", "Vacancy at or above 50%.", vacancy_rate=data.vacancy_rate)
        )

    # ------------------------------------------------------------------
    # 4) Hybrid allocation (advisory only)
    # ------------------------------------------------------------------
    if isinstance(data, HybridDeal):
        allocated = data.property_value + data.business_value
        gap = abs(allocated - data.purchase_price)
        if gap > data.purchase_price * ALLOCATION_TOLERANCE_PCT / 100.0:
            flags.append(
                _flag(
                    "ALLOCATION_MISMATCH",
                    "warning",
                    "Property + business allocation is more than 10% away from the purchase price.",
                    property_value=data.property_value,
                    business_value=data.business_value,
                    purchase_price=data.purchase_price,
                    gap=gap,
                )
            )

    return flags


def apply_guardrails(deal: Deal, result: Dict[str, Any]) -> Dict[str, Any]:
    """
    Attach guardrail flags to an analysis result dict:

        result["guardrails"] = {"has_flags": bool, "flags": [...]}
    """
    flags = collect_guardrail_flags(deal)

    result.setdefault("guardrails", {})
    result["guardrails"]["flags"] = flags
    result["guardrails"]["has_flags"] = bool(flags)

    if flags:
        logger.info(
            "deal_guardrails_flags",
            extra={"context": deal_context(deal, codes=[f["code"] for f in flags])},
        )

    return result
