"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from models.records import (
    FinancialInputs,
    FuelType,
    NozzleReading,
    ShiftLabel,
    ShiftSession,
)
from services.calculator import ReconciliationResult


class StartShiftRequest(BaseModel):
    """Operator details required to open a shift."""

    operator_name: str = Field(..., description="Name or ID of the operator on duty.")
    shift: ShiftLabel = ShiftLabel.day


class NozzleUpdate(BaseModel):
    opening: Optional[float] = Field(default=None, ge=0)
    closing: Optional[float] = Field(default=None, ge=0)


class DispenserTestUpdate(BaseModel):
    petrol: Optional[float] = Field(default=None, ge=0)
    diesel: Optional[float] = Field(default=None, ge=0)


class FinancialUpdate(BaseModel):
    """Any subset of the scalar financial fields."""

    opening_balance: Optional[float] = Field(default=None, ge=0)
    expenses: Optional[float] = Field(default=None, ge=0)
    credits: Optional[float] = Field(default=None, ge=0)
    recoveries: Optional[float] = Field(default=None, ge=0)
    lube_sales: Optional[float] = Field(default=None, ge=0)
    physical_cash: Optional[float] = Field(default=None, ge=0)
    bank_deposit: Optional[float] = Field(default=None, ge=0)
    digital_payments: Optional[float] = Field(default=None, ge=0)

    def changed(self) -> Dict[str, float]:
        return self.model_dump(exclude_none=True)


class CashCountUpdate(BaseModel):
    """Any subset of the denomination counts; the others keep their values."""

    n5000: Optional[int] = Field(default=None, ge=0)
    n1000: Optional[int] = Field(default=None, ge=0)
    n500: Optional[int] = Field(default=None, ge=0)
    n100: Optional[int] = Field(default=None, ge=0)
    n50: Optional[int] = Field(default=None, ge=0)
    n20: Optional[int] = Field(default=None, ge=0)
    n10: Optional[int] = Field(default=None, ge=0)
    coins: Optional[float] = Field(default=None, ge=0)

    def changed(self) -> Dict[str, float]:
        return self.model_dump(exclude_none=True)


class CreditCreate(BaseModel):
    name: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)
    vehicle_no: Optional[str] = None


class NotesUpdate(BaseModel):
    notes: str = ""


class CalibrationUpdate(BaseModel):
    value: float = Field(..., ge=0, description="Reference reading used as the next opening.")


class PricesUpdate(BaseModel):
    petrol: Optional[float] = Field(default=None, ge=0)
    diesel: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _require_one(self) -> "PricesUpdate":
        if self.petrol is None and self.diesel is None:
            raise ValueError("Provide at least one price.")
        return self


class NozzleSaleView(BaseModel):
    nozzle_id: int
    fuel_type: FuelType
    sold: float
    rolled_over: bool


class ReconciliationView(BaseModel):
    """Derived totals for the shift in progress."""

    petrol_sold: float
    diesel_sold: float
    net_petrol_sold: float
    net_diesel_sold: float
    fuel_revenue: float
    total_liability: float
    total_deductions: float
    target_cash: float
    actual_cash: float
    total_collected: float
    difference: float
    is_shortage: bool
    nozzle_sales: List[NozzleSaleView] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ReconciliationResult) -> "ReconciliationView":
        return cls(
            petrol_sold=result.petrol_sold,
            diesel_sold=result.diesel_sold,
            net_petrol_sold=result.net_petrol_sold,
            net_diesel_sold=result.net_diesel_sold,
            fuel_revenue=result.fuel_revenue,
            total_liability=result.total_liability,
            total_deductions=result.total_deductions,
            target_cash=result.target_cash,
            actual_cash=result.actual_cash,
            total_collected=result.total_collected,
            difference=result.difference,
            is_shortage=result.is_shortage,
            nozzle_sales=[
                NozzleSaleView(
                    nozzle_id=sale.nozzle_id,
                    fuel_type=sale.fuel_type,
                    sold=sale.sold,
                    rolled_over=sale.rolled_over,
                )
                for sale in result.nozzle_sales
            ],
        )


class ShiftStateResponse(BaseModel):
    """Current session plus its live reconciliation."""

    stage: str
    shift_id: Optional[str] = None
    operator_name: str
    shift: ShiftLabel
    nozzles: List[NozzleReading]
    financials: FinancialInputs
    notes: str
    ai_analysis: Optional[str] = None
    narrative_pending: bool = False
    reconciliation: ReconciliationView

    @classmethod
    def build(
        cls, session: ShiftSession, result: ReconciliationResult, narrative_pending: bool
    ) -> "ShiftStateResponse":
        return cls(
            stage=session.stage.name,
            shift_id=session.shift_id,
            operator_name=session.operator_name,
            shift=session.shift,
            nozzles=session.nozzles,
            financials=session.financials,
            notes=session.notes,
            ai_analysis=session.ai_analysis,
            narrative_pending=narrative_pending,
            reconciliation=ReconciliationView.from_result(result),
        )


class CashTallyResponse(BaseModel):
    physical_cash: float


class NarrativeRequestResponse(BaseModel):
    queued: bool


class CalibrationResponse(BaseModel):
    references: Dict[int, float]

