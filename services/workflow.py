"""Stage-gated shift workflow."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Iterable, Optional
from uuid import uuid4

from datastore.calibration import CalibrationStore
from models.records import (
    DENOMINATIONS,
    FINANCIAL_SCALAR_FIELDS,
    CashBreakdown,
    CreditEntry,
    FinancialInputs,
    FuelPrices,
    FuelType,
    HistoryEntry,
    NozzleReading,
    ShiftLabel,
    ShiftSession,
    ShiftStage,
    default_nozzles,
)
from services.calculator import ReconciliationCalculator, ReconciliationResult

logger = logging.getLogger(__name__)


class ShiftError(Exception):
    """Base class for rejected workflow operations."""


class ValidationRejected(ShiftError):
    """A required input is missing; nothing was changed."""


class StageError(ShiftError):
    """The operation is not available in the current stage."""


class ShiftAction(str, Enum):
    start = "start"
    next = "next"
    back = "back"
    close = "close"


def transition(stage: ShiftStage, action: ShiftAction) -> ShiftStage:
    """Next stage for ``action``; actions that do not apply leave the stage as is."""

    if action is ShiftAction.start:
        return ShiftStage.petrol_entry if stage is ShiftStage.idle else stage
    if action is ShiftAction.next:
        if stage in (ShiftStage.idle, ShiftStage.summary):
            return stage
        return ShiftStage(stage + 1)
    if action is ShiftAction.back:
        if stage is ShiftStage.idle:
            return stage
        return ShiftStage(stage - 1)
    if action is ShiftAction.close:
        return ShiftStage.idle if stage is ShiftStage.summary else stage
    raise ValueError(f"Unknown action {action!r}")


_NOZZLE_STAGES = {
    FuelType.petrol: ShiftStage.petrol_entry,
    FuelType.diesel: ShiftStage.diesel_entry,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ShiftWorkflow:
    """Drives one shift from start to close over an explicit session."""

    def __init__(
        self,
        calibration: CalibrationStore,
        calculator: ReconciliationCalculator,
        prices: Optional[FuelPrices] = None,
        session: Optional[ShiftSession] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.calibration = calibration
        self.calculator = calculator
        self.prices = prices or FuelPrices()
        self.session = session or ShiftSession()
        self._clock = clock

    @property
    def stage(self) -> ShiftStage:
        return self.session.stage

    def reconcile(self) -> ReconciliationResult:
        return self.calculator.calculate(
            self.session.nozzles, self.session.financials, self.prices
        )

    # Navigation

    def start(self, operator_name: str, shift: ShiftLabel) -> ShiftSession:
        name = (operator_name or "").strip()
        if not name:
            raise ValidationRejected("Operator name is required to start a shift.")
        self.require_stage(ShiftStage.idle)

        nozzles = default_nozzles()
        openings = self.calibration.seed_openings(nozzle.id for nozzle in nozzles)
        for nozzle in nozzles:
            nozzle.opening = openings[nozzle.id]

        self.session = ShiftSession(
            shift_id=uuid4().hex,
            stage=transition(ShiftStage.idle, ShiftAction.start),
            operator_name=name,
            shift=ShiftLabel(shift),
            nozzles=nozzles,
            financials=FinancialInputs(),
        )
        logger.info(
            "Shift started",
            extra={"operator": name, "shift": self.session.shift.value},
        )
        return self.session

    def advance(self) -> ShiftStage:
        self.session.stage = transition(self.session.stage, ShiftAction.next)
        return self.session.stage

    def back(self) -> ShiftStage:
        self.session.stage = transition(self.session.stage, ShiftAction.back)
        return self.session.stage

    def close(self) -> HistoryEntry:
        """Record the shift, carry closings forward and return to idle."""
        self.require_stage(ShiftStage.summary)
        result = self.reconcile()
        session = self.session
        now = self._clock()

        entry = HistoryEntry(
            date=now.astimezone().date().isoformat(),
            timestamp=now,
            operator_name=session.operator_name or "Unknown",
            shift=session.shift,
            total_petrol_liters=result.net_petrol_sold,
            total_diesel_liters=result.net_diesel_sold,
            total_revenue=result.total_liability,
            target_cash=result.target_cash,
            shortage_excess=result.difference,
            notes=session.notes,
            credit_details=[credit.model_copy() for credit in session.financials.credit_list],
            ai_analysis=session.ai_analysis or None,
        )
        self.calibration.commit_closings(session.nozzles)
        self.session = ShiftSession(
            stage=transition(session.stage, ShiftAction.close)
        )
        logger.info(
            "Shift closed",
            extra={
                "operator": entry.operator_name,
                "shift": entry.shift.value,
                "history_id": entry.id,
                "difference": round(entry.shortage_excess, 2),
            },
        )
        return entry

    # Meter entry

    def set_nozzle(
        self,
        nozzle_id: int,
        opening: Optional[float] = None,
        closing: Optional[float] = None,
    ) -> NozzleReading:
        nozzle = self.session.nozzle(nozzle_id)
        self.require_stage(_NOZZLE_STAGES[nozzle.fuel_type])
        if opening is not None:
            nozzle.opening = opening
        if closing is not None:
            nozzle.closing = closing
        return nozzle

    def set_test_liters(
        self, petrol: Optional[float] = None, diesel: Optional[float] = None
    ) -> FinancialInputs:
        self.require_stage(ShiftStage.test_liters)
        financials = self.session.financials
        if petrol is not None:
            financials.test_liters_petrol = petrol
        if diesel is not None:
            financials.test_liters_diesel = diesel
        return financials

    # Financial entry

    def set_financial(self, field: str, value: float) -> FinancialInputs:
        if field not in FINANCIAL_SCALAR_FIELDS:
            raise KeyError(f"Unknown financial field {field!r}.")
        self.require_stage(ShiftStage.financial_entry)
        setattr(self.session.financials, field, value)
        return self.session.financials

    def set_cash_breakdown(self, breakdown: CashBreakdown) -> FinancialInputs:
        self.require_stage(ShiftStage.financial_entry)
        self.session.financials.apply_cash_breakdown(breakdown.model_copy())
        return self.session.financials

    def set_denomination(self, denomination: str, count: float) -> FinancialInputs:
        if denomination not in DENOMINATIONS and denomination != "coins":
            raise KeyError(f"Unknown denomination {denomination!r}.")
        breakdown = self.session.financials.cash_breakdown.model_copy()
        setattr(breakdown, denomination, count)
        return self.set_cash_breakdown(breakdown)

    def add_credit(
        self, name: str, amount: float, vehicle_no: Optional[str] = None
    ) -> CreditEntry:
        self.require_stage(ShiftStage.financial_entry)
        entry = CreditEntry(name=name, amount=amount, vehicle_no=vehicle_no or None)
        # The ledger is a record only; the ``credits`` total stays as entered.
        self.session.financials.credit_list.append(entry)
        return entry

    def remove_credit(self, credit_id: str) -> bool:
        self.require_stage(ShiftStage.financial_entry)
        ledger = self.session.financials.credit_list
        remaining = [entry for entry in ledger if entry.id != credit_id]
        if len(remaining) == len(ledger):
            return False
        self.session.financials.credit_list = remaining
        return True

    # Summary

    def set_notes(self, notes: str) -> None:
        self.require_stage(ShiftStage.summary)
        self.session.notes = notes

    def attach_narrative(self, shift_id: Optional[str], text: str) -> bool:
        """Store a narrative if it still belongs to the shift in progress."""
        if shift_id is None or shift_id != self.session.shift_id:
            return False
        self.session.ai_analysis = text
        return True

    # Available at any stage

    def calibrate(self, nozzle_id: int, value: float) -> bool:
        in_progress: Iterable[NozzleReading] = (
            self.session.nozzles if self.session.stage is not ShiftStage.idle else ()
        )
        return self.calibration.manual_override(nozzle_id, value, in_progress)

    def require_stage(self, *stages: ShiftStage) -> None:
        if self.session.stage not in stages:
            expected = ", ".join(stage.name for stage in stages)
            raise StageError(
                f"Not available during {self.session.stage.name}; expected {expected}."
            )
