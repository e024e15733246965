"""HTTP route definitions for the service."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import (
    CalibrationResponse,
    CalibrationUpdate,
    CashCountUpdate,
    CashTallyResponse,
    CreditCreate,
    DispenserTestUpdate,
    FinancialUpdate,
    NarrativeRequestResponse,
    NotesUpdate,
    NozzleUpdate,
    PricesUpdate,
    ShiftStateResponse,
    StartShiftRequest,
)
from models.records import CashBreakdown, CreditEntry, FuelPrices, HistoryEntry, NozzleReading
from services.engine import ShiftService, build_default_service
from services.history import HistoryPeriod
from services.workflow import StageError, ValidationRejected

router = APIRouter()


def get_service() -> ShiftService:
    return build_default_service()


def _state(service: ShiftService) -> ShiftStateResponse:
    session, result = service.snapshot()
    return ShiftStateResponse.build(session, result, service.narrative_pending())


def _conflict(exc: StageError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


def _not_found(exc: KeyError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc.args[0]))


@router.get(
    "/shift",
    response_model=ShiftStateResponse,
    summary="Current shift inputs and live reconciliation.",
)
async def get_shift(service: ShiftService = Depends(get_service)) -> ShiftStateResponse:
    return _state(service)


@router.post(
    "/shift/start",
    response_model=ShiftStateResponse,
    summary="Open a shift with openings seeded from calibration.",
)
async def start_shift(
    payload: StartShiftRequest,
    service: ShiftService = Depends(get_service),
) -> ShiftStateResponse:
    try:
        service.start(payload.operator_name, payload.shift)
    except ValidationRejected as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StageError as exc:
        raise _conflict(exc) from exc
    return _state(service)


@router.post("/shift/next", response_model=ShiftStateResponse, summary="Move one stage forward.")
async def next_stage(service: ShiftService = Depends(get_service)) -> ShiftStateResponse:
    service.advance()
    return _state(service)


@router.post("/shift/back", response_model=ShiftStateResponse, summary="Move one stage back.")
async def previous_stage(service: ShiftService = Depends(get_service)) -> ShiftStateResponse:
    service.back()
    return _state(service)


@router.put(
    "/shift/nozzles/{nozzle_id}",
    response_model=NozzleReading,
    summary="Enter opening and/or closing readings for a nozzle.",
)
async def update_nozzle(
    nozzle_id: int,
    payload: NozzleUpdate,
    service: ShiftService = Depends(get_service),
) -> NozzleReading:
    try:
        return service.set_nozzle(nozzle_id, opening=payload.opening, closing=payload.closing)
    except KeyError as exc:
        raise _not_found(exc) from exc
    except StageError as exc:
        raise _conflict(exc) from exc


@router.put(
    "/shift/test-liters",
    response_model=ShiftStateResponse,
    summary="Enter liters dispensed for pump testing.",
)
async def update_test_liters(
    payload: DispenserTestUpdate,
    service: ShiftService = Depends(get_service),
) -> ShiftStateResponse:
    try:
        service.set_test_liters(petrol=payload.petrol, diesel=payload.diesel)
    except StageError as exc:
        raise _conflict(exc) from exc
    return _state(service)


@router.patch(
    "/shift/financials",
    response_model=ShiftStateResponse,
    summary="Update any inflow or outflow figures.",
)
async def update_financials(
    payload: FinancialUpdate,
    service: ShiftService = Depends(get_service),
) -> ShiftStateResponse:
    try:
        service.set_financials(payload.changed())
    except StageError as exc:
        raise _conflict(exc) from exc
    return _state(service)


@router.put(
    "/shift/cash-breakdown",
    response_model=CashTallyResponse,
    summary="Replace the denomination tally; cash on hand follows its total.",
)
async def update_cash_breakdown(
    payload: CashBreakdown,
    service: ShiftService = Depends(get_service),
) -> CashTallyResponse:
    try:
        physical_cash = service.set_cash_breakdown(payload)
    except StageError as exc:
        raise _conflict(exc) from exc
    return CashTallyResponse(physical_cash=physical_cash)


@router.patch(
    "/shift/cash-breakdown",
    response_model=CashTallyResponse,
    summary="Change individual denomination counts; the rest of the tally is kept.",
)
async def update_cash_counts(
    payload: CashCountUpdate,
    service: ShiftService = Depends(get_service),
) -> CashTallyResponse:
    try:
        physical_cash = service.set_denominations(payload.changed())
    except StageError as exc:
        raise _conflict(exc) from exc
    return CashTallyResponse(physical_cash=physical_cash)


@router.post(
    "/shift/credits",
    response_model=CreditEntry,
    status_code=status.HTTP_201_CREATED,
    summary="Add a debtor to the itemized credit ledger.",
)
async def add_credit(
    payload: CreditCreate,
    service: ShiftService = Depends(get_service),
) -> CreditEntry:
    try:
        return service.add_credit(payload.name, payload.amount, payload.vehicle_no)
    except StageError as exc:
        raise _conflict(exc) from exc


@router.delete(
    "/shift/credits/{credit_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a debtor from the credit ledger.",
)
async def remove_credit(
    credit_id: str,
    service: ShiftService = Depends(get_service),
) -> None:
    try:
        service.remove_credit(credit_id)
    except KeyError as exc:
        raise _not_found(exc) from exc
    except StageError as exc:
        raise _conflict(exc) from exc


@router.put("/shift/notes", response_model=ShiftStateResponse, summary="Free-text shift notes.")
async def update_notes(
    payload: NotesUpdate,
    service: ShiftService = Depends(get_service),
) -> ShiftStateResponse:
    try:
        service.set_notes(payload.notes)
    except StageError as exc:
        raise _conflict(exc) from exc
    return _state(service)


@router.post(
    "/shift/narrative",
    response_model=NarrativeRequestResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Request an AI narrative for the shift summary.",
)
async def request_narrative(
    service: ShiftService = Depends(get_service),
) -> NarrativeRequestResponse:
    try:
        queued = service.request_narrative()
    except StageError as exc:
        raise _conflict(exc) from exc
    return NarrativeRequestResponse(queued=queued)


@router.post(
    "/shift/close",
    response_model=HistoryEntry,
    summary="Close the shift, record it and carry closings forward.",
)
async def close_shift(service: ShiftService = Depends(get_service)) -> HistoryEntry:
    try:
        return service.close()
    except StageError as exc:
        raise _conflict(exc) from exc


@router.get(
    "/calibration",
    response_model=CalibrationResponse,
    summary="Reference readings used as the next openings.",
)
async def get_calibration(service: ShiftService = Depends(get_service)) -> CalibrationResponse:
    return CalibrationResponse(references=service.calibration_values())


@router.put(
    "/calibration/{nozzle_id}",
    response_model=CalibrationResponse,
    summary="Manually override a nozzle's reference reading.",
)
async def update_calibration(
    nozzle_id: int,
    payload: CalibrationUpdate,
    service: ShiftService = Depends(get_service),
) -> CalibrationResponse:
    try:
        service.calibrate(nozzle_id, payload.value)
    except KeyError as exc:
        raise _not_found(exc) from exc
    return CalibrationResponse(references=service.calibration_values())


@router.get("/prices", response_model=FuelPrices, summary="Current fuel prices.")
async def get_prices(service: ShiftService = Depends(get_service)) -> FuelPrices:
    return service.prices()


@router.put("/prices", response_model=FuelPrices, summary="Edit fuel prices.")
async def update_prices(
    payload: PricesUpdate,
    service: ShiftService = Depends(get_service),
) -> FuelPrices:
    return service.update_prices(petrol=payload.petrol, diesel=payload.diesel)


@router.get(
    "/history",
    response_model=List[HistoryEntry],
    summary="Closed shifts, most recent first.",
)
async def list_history(
    search: Optional[str] = Query(default=None, description="Operator name or date fragment."),
    period: HistoryPeriod = Query(default=HistoryPeriod.all),
    service: ShiftService = Depends(get_service),
) -> List[HistoryEntry]:
    return service.history(search=search, period=period)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
