"""Domain models shared across services."""

from __future__ import annotations

from datetime import datetime
from enum import Enum, IntEnum
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class FuelType(str, Enum):
    """The two fuel categories the outlet prices independently."""

    petrol = "PETROL"
    diesel = "DIESEL"


class ShiftLabel(str, Enum):
    day = "DAY"
    night = "NIGHT"


class NozzleReading(BaseModel):
    """One dispensing point and its meter readings for the current shift."""

    model_config = ConfigDict(validate_assignment=True)

    id: int
    name: str
    fuel_type: FuelType
    opening: float = Field(default=0.0, ge=0)
    closing: float = Field(default=0.0, ge=0)


def default_nozzles() -> List[NozzleReading]:
    """Forecourt layout: two petrol and two diesel nozzles, all zeroed."""

    return [
        NozzleReading(id=1, name="Nozzle 1", fuel_type=FuelType.petrol),
        NozzleReading(id=2, name="Nozzle 2", fuel_type=FuelType.petrol),
        NozzleReading(id=3, name="Nozzle 3", fuel_type=FuelType.diesel),
        NozzleReading(id=4, name="Nozzle 4", fuel_type=FuelType.diesel),
    ]


# Face value of each counted note; ``coins`` is already an amount.
DENOMINATIONS: Dict[str, int] = {
    "n5000": 5000,
    "n1000": 1000,
    "n500": 500,
    "n100": 100,
    "n50": 50,
    "n20": 20,
    "n10": 10,
}


class CashBreakdown(BaseModel):
    """Counted notes in the drawer."""

    model_config = ConfigDict(validate_assignment=True)

    n5000: int = Field(default=0, ge=0)
    n1000: int = Field(default=0, ge=0)
    n500: int = Field(default=0, ge=0)
    n100: int = Field(default=0, ge=0)
    n50: int = Field(default=0, ge=0)
    n20: int = Field(default=0, ge=0)
    n10: int = Field(default=0, ge=0)
    coins: float = Field(default=0.0, ge=0)

    @property
    def total(self) -> float:
        notes = sum(getattr(self, key) * value for key, value in DENOMINATIONS.items())
        return notes + self.coins


class CreditEntry(BaseModel):
    """A named debtor in the itemized credit ledger."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    name: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)
    vehicle_no: Optional[str] = None


class FinancialInputs(BaseModel):
    """Cash-side inputs collected during the financial entry stage.

    ``physical_cash`` mirrors the denomination tally whenever the tally is
    edited but stays writable on its own as a manual override. The itemized
    ``credit_list`` is informational; ``credits`` is the figure that counts.
    """

    model_config = ConfigDict(validate_assignment=True)

    opening_balance: float = Field(default=0.0, ge=0)
    expenses: float = Field(default=0.0, ge=0)
    credits: float = Field(default=0.0, ge=0)
    credit_list: List[CreditEntry] = Field(default_factory=list)
    recoveries: float = Field(default=0.0, ge=0)
    lube_sales: float = Field(default=0.0, ge=0)
    physical_cash: float = Field(default=0.0, ge=0)
    cash_breakdown: CashBreakdown = Field(default_factory=CashBreakdown)
    bank_deposit: float = Field(default=0.0, ge=0)
    digital_payments: float = Field(default=0.0, ge=0)
    test_liters_petrol: float = Field(default=0.0, ge=0)
    test_liters_diesel: float = Field(default=0.0, ge=0)

    def apply_cash_breakdown(self, breakdown: CashBreakdown) -> None:
        self.cash_breakdown = breakdown
        self.physical_cash = breakdown.total


# Scalar fields editable through the inflow/outflow views.
FINANCIAL_SCALAR_FIELDS = (
    "opening_balance",
    "expenses",
    "credits",
    "recoveries",
    "lube_sales",
    "physical_cash",
    "bank_deposit",
    "digital_payments",
)


class FuelPrices(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    petrol: float = Field(default=280.0, ge=0)
    diesel: float = Field(default=290.0, ge=0)


class HistoryEntry(BaseModel):
    """Immutable record of a closed shift."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid4().hex)
    date: str
    timestamp: datetime
    operator_name: str
    shift: ShiftLabel
    total_petrol_liters: float
    total_diesel_liters: float
    total_revenue: float
    target_cash: float
    shortage_excess: float
    notes: str = ""
    credit_details: List[CreditEntry] = Field(default_factory=list)
    ai_analysis: Optional[str] = None


class ShiftStage(IntEnum):
    """Wizard stages in the order an operator walks through them."""

    idle = 0
    petrol_entry = 1
    diesel_entry = 2
    test_liters = 3
    financial_entry = 4
    summary = 5


class ShiftSession(BaseModel):
    """Everything entered for the shift in progress."""

    model_config = ConfigDict(validate_assignment=True)

    shift_id: Optional[str] = None
    stage: ShiftStage = ShiftStage.idle
    operator_name: str = ""
    shift: ShiftLabel = ShiftLabel.day
    nozzles: List[NozzleReading] = Field(default_factory=default_nozzles)
    financials: FinancialInputs = Field(default_factory=FinancialInputs)
    notes: str = ""
    ai_analysis: Optional[str] = None

    def nozzle(self, nozzle_id: int) -> NozzleReading:
        for nozzle in self.nozzles:
            if nozzle.id == nozzle_id:
                return nozzle
        raise KeyError(f"Nozzle {nozzle_id!r} is not configured.")
