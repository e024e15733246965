"""Operator-facing shift service: workflow, persistence and narrative dispatch."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from functools import lru_cache
from threading import RLock
from typing import Callable, Dict, List, Optional, Tuple

from datastore.calibration import CalibrationStore
from datastore.state_repository import StateRepository, build_default_repository
from models.records import (
    CashBreakdown,
    CreditEntry,
    FuelPrices,
    HistoryEntry,
    NozzleReading,
    ShiftLabel,
    ShiftSession,
    ShiftStage,
    default_nozzles,
)
from services.calculator import ReconciliationCalculator, ReconciliationResult
from services.history import HistoryPeriod, filter_history
from services.narrative import NarrativeGenerator, NarrativeResult, NarrativeTotals
from services.workflow import ShiftWorkflow, utcnow
from settings import get_settings

logger = logging.getLogger(__name__)


class ShiftService:
    """Coordinates the workflow with snapshot persistence and background narratives.

    Every mutating call persists the affected snapshots before returning. A
    failed write is logged by the store and does not fail the call.
    """

    def __init__(
        self,
        repository: StateRepository,
        narrator: NarrativeGenerator,
        calculator: Optional[ReconciliationCalculator] = None,
        workers: int = 1,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.repository = repository
        self.narrator = narrator
        nozzle_ids = [nozzle.id for nozzle in default_nozzles()]
        self.calibration = CalibrationStore(
            nozzle_ids, repository.load_calibration(nozzle_ids)
        )
        self.workflow = ShiftWorkflow(
            calibration=self.calibration,
            calculator=calculator or ReconciliationCalculator(),
            prices=repository.load_prices(),
            session=repository.load_session(),
            clock=clock,
        )
        self.executor = ThreadPoolExecutor(max_workers=workers)
        self._futures: Dict[str, Future[NarrativeResult]] = {}
        self._lock = RLock()

    # Reads

    def snapshot(self) -> Tuple[ShiftSession, ReconciliationResult]:
        with self._lock:
            return self.workflow.session.model_copy(deep=True), self.workflow.reconcile()

    def narrative_pending(self) -> bool:
        with self._lock:
            return self.workflow.session.shift_id in self._futures

    def prices(self) -> FuelPrices:
        with self._lock:
            return self.workflow.prices.model_copy()

    def calibration_values(self) -> Dict[int, float]:
        return self.calibration.snapshot()

    def history(
        self, search: Optional[str] = None, period: HistoryPeriod = HistoryPeriod.all
    ) -> List[HistoryEntry]:
        return filter_history(self.repository.load_history(), search=search, period=period)

    # Workflow

    def start(self, operator_name: str, shift: ShiftLabel) -> ShiftSession:
        with self._lock:
            session = self.workflow.start(operator_name, shift)
            self._persist_session()
            return session.model_copy(deep=True)

    def advance(self) -> ShiftStage:
        with self._lock:
            stage = self.workflow.advance()
            self._persist_session()
            return stage

    def back(self) -> ShiftStage:
        with self._lock:
            stage = self.workflow.back()
            self._persist_session()
            return stage

    def set_nozzle(
        self, nozzle_id: int, opening: Optional[float] = None, closing: Optional[float] = None
    ) -> NozzleReading:
        with self._lock:
            nozzle = self.workflow.set_nozzle(nozzle_id, opening=opening, closing=closing)
            self._persist_session()
            return nozzle.model_copy()

    def set_test_liters(self, petrol: Optional[float] = None, diesel: Optional[float] = None) -> None:
        with self._lock:
            self.workflow.set_test_liters(petrol=petrol, diesel=diesel)
            self._persist_session()

    def set_financials(self, values: Dict[str, float]) -> None:
        with self._lock:
            for field, value in values.items():
                self.workflow.set_financial(field, value)
            self._persist_session()

    def set_cash_breakdown(self, breakdown: CashBreakdown) -> float:
        with self._lock:
            financials = self.workflow.set_cash_breakdown(breakdown)
            self._persist_session()
            return financials.physical_cash

    def set_denominations(self, counts: Dict[str, float]) -> float:
        """Change only the given tally counts; cash on hand follows the new total."""
        with self._lock:
            self.workflow.require_stage(ShiftStage.financial_entry)
            for denomination, count in counts.items():
                self.workflow.set_denomination(denomination, count)
            self._persist_session()
            return self.workflow.session.financials.physical_cash

    def add_credit(self, name: str, amount: float, vehicle_no: Optional[str] = None) -> CreditEntry:
        with self._lock:
            entry = self.workflow.add_credit(name, amount, vehicle_no)
            self._persist_session()
            return entry.model_copy()

    def remove_credit(self, credit_id: str) -> None:
        with self._lock:
            if not self.workflow.remove_credit(credit_id):
                raise KeyError(f"Credit entry {credit_id!r} not found.")
            self._persist_session()

    def set_notes(self, notes: str) -> None:
        with self._lock:
            self.workflow.set_notes(notes)
            self._persist_session()

    def close(self) -> HistoryEntry:
        with self._lock:
            entry = self.workflow.close()
            self.repository.append_history(entry)
            self.repository.save_calibration(self.calibration.snapshot())
            self._persist_session()
            return entry

    # Available at any stage

    def calibrate(self, nozzle_id: int, value: float) -> None:
        with self._lock:
            if not self.workflow.calibrate(nozzle_id, value):
                raise KeyError(f"Nozzle {nozzle_id!r} is not configured.")
            self.repository.save_calibration(self.calibration.snapshot())
            self._persist_session()

    def update_prices(self, petrol: Optional[float] = None, diesel: Optional[float] = None) -> FuelPrices:
        with self._lock:
            prices = self.workflow.prices
            if petrol is not None:
                prices.petrol = petrol
            if diesel is not None:
                prices.diesel = diesel
            self.repository.save_prices(prices)
            return prices.model_copy()

    # Narrative

    def request_narrative(self) -> bool:
        """Queue a narrative for the current shift; ``False`` if one is already pending."""
        with self._lock:
            self.workflow.require_stage(ShiftStage.summary)
            session = self.workflow.session
            shift_id = session.shift_id
            if shift_id is None or shift_id in self._futures:
                return False
            result = self.workflow.reconcile()
            totals = NarrativeTotals(
                net_petrol_liters=result.net_petrol_sold,
                net_diesel_liters=result.net_diesel_sold,
                revenue=result.total_liability,
                target_cash=result.target_cash,
            )
            future = self.executor.submit(
                self.narrator.generate,
                [nozzle.model_copy() for nozzle in session.nozzles],
                session.financials.model_copy(deep=True),
                self.workflow.prices.model_copy(),
                totals,
            )
            self._futures[shift_id] = future
        future.add_done_callback(lambda f, sid=shift_id: self._apply_narrative(sid, f))
        return True

    def _apply_narrative(self, shift_id: str, future: Future[NarrativeResult]) -> None:
        if future.cancelled() or future.exception() is not None:
            outcome = NarrativeResult.unavailable()
        else:
            outcome = future.result()
        with self._lock:
            self._futures.pop(shift_id, None)
            if self.workflow.attach_narrative(shift_id, outcome.text):
                self._persist_session()
            else:
                logger.info("Narrative arrived after shift closed", extra={"reason": shift_id})

    def shutdown(self) -> None:
        """Clean up executor resources during application shutdown."""
        self.executor.shutdown(wait=False, cancel_futures=True)

    def _persist_session(self) -> None:
        self.repository.save_session(self.workflow.session)


@lru_cache
def build_default_service(workers: Optional[int] = None) -> ShiftService:
    """Factory that wires the service with configured persistence and Gemini."""
    settings = get_settings()
    narrator = NarrativeGenerator(
        api_key=settings.gemini_api_key, model_name=settings.gemini_model_name
    )
    return ShiftService(
        repository=build_default_repository(),
        narrator=narrator,
        workers=workers or settings.narrative_workers,
    )
