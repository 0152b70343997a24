# src/dealengine/analysis/breakdowns.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable

from dealengine.domain.breakdowns import (
    Asset,
    Breakdowns,
    Employee,
    InterestItem,
    LeaseItem,
    PayrollBreakdown,
    UtilityItem,
)
from dealengine.domain.deal import Deal

_MACRS_LIVES = {"macrs-5": 5, "macrs-7": 7, "macrs-15": 15, "macrs-39": 39}


@dataclass(frozen=True)
class BreakdownTotals:
    payroll: float
    depreciation: float
    interest: float
    leases: float
    utilities: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def employee_wages(e: Employee) -> float:
    if e.wage_type == "hourly":
        return e.count * e.wage_rate * e.hours_per_week * e.weeks_per_year
    return e.count * e.wage_rate


def payroll_total(payroll: PayrollBreakdown | None) -> float:
    """Base wages plus employer FICA, FUTA, SUI and workers' comp, whole dollars."""
    if payroll is None or not payroll.employees:
        return 0.0
    wages = sum(employee_wages(e) for e in payroll.employees)
    tax_rate = (payroll.fica_rate + payroll.futa_rate + payroll.sui_rate + payroll.wc_rate) / 100.0
    return float(round(wages * (1 + tax_rate)))


def asset_depreciation(asset: Asset) -> float:
    """
    Annual depreciation for one asset. Leased assets and assets with no
    depreciable basis contribute nothing. MACRS is approximated straight-line
    over the class life.
    """
    if asset.ownership == "leased":
        return 0.0
    basis = asset.cost_basis - asset.salvage_value
    if basis <= 0:
        return 0.0

    if asset.depreciation_method == "straight-line":
        life = asset.useful_life_years
    else:
        life = _MACRS_LIVES[asset.depreciation_method]
    if life <= 0:
        return 0.0
    return float(round(basis / life))


def total_depreciation(assets: Iterable[Asset]) -> float:
    return sum((asset_depreciation(a) for a in assets), 0.0)


def total_interest(items: Iterable[InterestItem]) -> float:
    return sum((i.annual_interest_paid for i in items), 0.0)


def lease_cost(lease: LeaseItem) -> float:
    return lease.monthly_rent * 12 + lease.cam_charges


def total_lease_cost(leases: Iterable[LeaseItem]) -> float:
    return sum((lease_cost(l) for l in leases), 0.0)


def utility_cost(u: UtilityItem) -> float:
    return (u.electric + u.gas + u.water + u.trash + u.internet + u.other) * 12


def total_utilities(items: Iterable[UtilityItem]) -> float:
    return sum((utility_cost(u) for u in items), 0.0)


def breakdown_totals(b: Breakdowns) -> BreakdownTotals:
    return BreakdownTotals(
        payroll=payroll_total(b.payroll),
        depreciation=total_depreciation(b.assets),
        interest=total_interest(b.interest),
        leases=total_lease_cost(b.leases),
        utilities=total_utilities(b.utilities),
    )


def apply_breakdowns(deal: Deal) -> Deal:
    """
    Copy of `deal` whose depreciation, interest and utilities fields carry
    the itemised totals. Only non-empty breakdowns overwrite, and only fields
    the payload actually has (a business has no utilities line).
    """
    b = deal.breakdowns
    if b is None:
        return deal.model_copy(deep=True)

    fields = type(deal.data).model_fields
    update: dict[str, float] = {}
    if b.assets and "depreciation" in fields:
        update["depreciation"] = total_depreciation(b.assets)
    if b.interest and "interest" in fields:
        update["interest"] = total_interest(b.interest)
    if b.utilities and "utilities" in fields:
        update["utilities"] = total_utilities(b.utilities)

    data = deal.data.model_copy(update=update, deep=True)
    return deal.model_copy(update={"data": data}, deep=True)
