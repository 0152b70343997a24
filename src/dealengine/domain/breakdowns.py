# src/dealengine/domain/breakdowns.py
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

WageType = Literal["hourly", "salary"]
Ownership = Literal["owned", "leased"]
DepreciationMethod = Literal["straight-line", "macrs-5", "macrs-7", "macrs-15", "macrs-39"]


class _Item(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Employee(_Item):
    title: str = ""
    count: int = 1
    wage_rate: float = Field(0.0, description="Hourly rate or annual salary, depending on wage_type")
    wage_type: WageType = "salary"
    hours_per_week: float = 40.0
    weeks_per_year: float = 52.0


class PayrollBreakdown(_Item):
    employees: list[Employee] = Field(default_factory=list)

    # employer-side tax rates, percent of wages
    fica_rate: float = 7.65
    futa_rate: float = 0.6
    sui_rate: float = 2.7
    wc_rate: float = 1.5


class Asset(_Item):
    name: str = ""
    ownership: Ownership = "owned"
    cost_basis: float = 0.0
    useful_life_years: float = 7.0
    depreciation_method: DepreciationMethod = "straight-line"
    year_acquired: int | None = None
    salvage_value: float = 0.0


class InterestItem(_Item):
    lender: str = ""
    original_balance: float = 0.0
    current_balance: float = 0.0
    interest_rate_pct: float = 0.0
    annual_interest_paid: float = 0.0
    purpose: str = ""


class LeaseItem(_Item):
    location: str = ""
    landlord: str = ""
    monthly_rent: float = 0.0
    annual_escalation: float = 3.0
    triple_net: bool = False
    cam_charges: float = Field(0.0, description="Annual common-area maintenance charges")


class UtilityItem(_Item):
    """Monthly utility costs for one location."""

    location: str = ""
    electric: float = 0.0
    gas: float = 0.0
    water: float = 0.0
    trash: float = 0.0
    internet: float = 0.0
    other: float = 0.0


class Breakdowns(_Item):
    payroll: PayrollBreakdown | None = None
    assets: list[Asset] = Field(default_factory=list)
    interest: list[InterestItem] = Field(default_factory=list)
    leases: list[LeaseItem] = Field(default_factory=list)
    utilities: list[UtilityItem] = Field(default_factory=list)
