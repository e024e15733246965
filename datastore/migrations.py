"""Load-time upgrades for persisted snapshots.

Every function here is pure and total: any input, including ``None``, a wrong
type, or a half-written legacy document, yields a fully valid model. Invalid
fields fall back to their defaults one at a time so a single bad value never
discards the rest of a snapshot.
"""

from __future__ import annotations

import math
from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from models.records import (
    CashBreakdown,
    CreditEntry,
    FinancialInputs,
    FuelPrices,
    HistoryEntry,
    NozzleReading,
    ShiftLabel,
    ShiftSession,
    ShiftStage,
    default_nozzles,
)

SCHEMA_VERSION = 2

# Version 1 documents were written with camelCase keys.
_V1_FINANCIAL_KEYS = {
    "openingBalance": "opening_balance",
    "creditList": "credit_list",
    "lubeSales": "lube_sales",
    "physicalCash": "physical_cash",
    "cashBreakdown": "cash_breakdown",
    "bankDeposit": "bank_deposit",
    "digitalPayments": "digital_payments",
    "testLitersPetrol": "test_liters_petrol",
    "testLitersDiesel": "test_liters_diesel",
}

_V1_HISTORY_KEYS = {
    "salesmanName": "operator_name",
    "totalPetrolLiters": "total_petrol_liters",
    "totalDieselLiters": "total_diesel_liters",
    "totalRevenue": "total_revenue",
    "netAmount": "target_cash",
    "shortageExcess": "shortage_excess",
    "creditDetails": "credit_details",
    "aiAnalysis": "ai_analysis",
}


def _rename(raw: Mapping[str, Any], mapping: Mapping[str, str]) -> Dict[str, Any]:
    upgraded: Dict[str, Any] = {}
    for key, value in raw.items():
        target = mapping.get(key, key)
        # A modern key wins over its legacy spelling.
        if target in upgraded and key != target:
            continue
        upgraded[target] = value
    return upgraded


def _non_negative(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    if math.isnan(number) or math.isinf(number) or number < 0:
        return None
    return number


def _version_of(raw: Mapping[str, Any]) -> int:
    version = raw.get("schema_version")
    return version if isinstance(version, int) else 1


def upgrade_cash_breakdown(raw: Any) -> CashBreakdown:
    breakdown = CashBreakdown()
    if not isinstance(raw, Mapping):
        return breakdown
    for key in CashBreakdown.model_fields:
        number = _non_negative(raw.get(key))
        if number is None:
            continue
        setattr(breakdown, key, number if key == "coins" else int(number))
    return breakdown


def upgrade_credit_list(raw: Any) -> List[CreditEntry]:
    if not isinstance(raw, list):
        return []
    entries: List[CreditEntry] = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        payload = _rename(item, {"vehicleNo": "vehicle_no"})
        if payload.get("vehicle_no") == "":
            payload["vehicle_no"] = None
        if "id" in payload:
            payload["id"] = str(payload["id"])
        try:
            entries.append(CreditEntry.model_validate(payload))
        except ValidationError:
            continue
    return entries


def upgrade_financials(raw: Any) -> FinancialInputs:
    """Upgrade a stored financial snapshot to the current shape."""

    financials = FinancialInputs()
    if not isinstance(raw, Mapping):
        return financials

    data: Dict[str, Any] = dict(raw)
    if _version_of(data) < 2:
        data = _rename(data, _V1_FINANCIAL_KEYS)
        legacy_cash = data.get("bank_cash", data.get("bankCash"))
        if legacy_cash and "physical_cash" not in data:
            data["physical_cash"] = legacy_cash

    for key in FinancialInputs.model_fields:
        if key in ("credit_list", "cash_breakdown"):
            continue
        number = _non_negative(data.get(key))
        if number is not None:
            setattr(financials, key, number)

    financials.cash_breakdown = upgrade_cash_breakdown(data.get("cash_breakdown"))
    financials.credit_list = upgrade_credit_list(data.get("credit_list"))
    return financials


def dump_financials(financials: FinancialInputs) -> Dict[str, Any]:
    payload = financials.model_dump(mode="json")
    payload["schema_version"] = SCHEMA_VERSION
    return payload


def upgrade_prices(raw: Any) -> FuelPrices:
    prices = FuelPrices()
    if not isinstance(raw, Mapping):
        return prices
    for key in FuelPrices.model_fields:
        number = _non_negative(raw.get(key))
        if number is not None:
            setattr(prices, key, number)
    return prices


def _index_by_id(raw: Iterable[Any]) -> Dict[int, Mapping[str, Any]]:
    indexed: Dict[int, Mapping[str, Any]] = {}
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        try:
            indexed[int(item.get("id"))] = item
        except (TypeError, ValueError):
            continue
    return indexed


def upgrade_nozzles(raw: Any) -> List[NozzleReading]:
    """Overlay stored readings onto the forecourt layout.

    The result always has exactly the configured nozzles; unknown ids in the
    snapshot are dropped and missing ones stay at zero.
    """

    nozzles = default_nozzles()
    if isinstance(raw, Mapping):
        raw = raw.get("nozzles")
    if not isinstance(raw, list):
        return nozzles
    stored = _index_by_id(raw)
    for nozzle in nozzles:
        item = stored.get(nozzle.id)
        if item is None:
            continue
        name = item.get("name")
        if isinstance(name, str) and name.strip():
            nozzle.name = name
        for key in ("opening", "closing"):
            number = _non_negative(item.get(key))
            if number is not None:
                setattr(nozzle, key, number)
    return nozzles


def upgrade_calibration(raw: Any, nozzle_ids: Iterable[int]) -> Dict[int, float]:
    """Return one reference value per known nozzle id.

    Accepts the current ``{"<id>": value}`` mapping and the older list of
    nozzle records whose ``closing`` held the reference value.
    """

    calibration = {nozzle_id: 0.0 for nozzle_id in nozzle_ids}
    if isinstance(raw, list):
        values = {nozzle_id: item.get("closing") for nozzle_id, item in _index_by_id(raw).items()}
    elif isinstance(raw, Mapping):
        values = {}
        for key, value in raw.items():
            try:
                values[int(key)] = value
            except (TypeError, ValueError):
                continue
    else:
        return calibration

    for nozzle_id in calibration:
        number = _non_negative(values.get(nozzle_id))
        if number is not None:
            calibration[nozzle_id] = number
    return calibration


def upgrade_history(raw: Any) -> List[HistoryEntry]:
    """Validate stored history entries, skipping any that cannot be read."""

    if not isinstance(raw, list):
        return []
    entries: List[HistoryEntry] = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        payload = _rename(item, _V1_HISTORY_KEYS)
        if "id" in payload:
            payload["id"] = str(payload["id"])
        payload["credit_details"] = upgrade_credit_list(payload.get("credit_details"))
        payload.setdefault("target_cash", 0.0)
        if payload.get("notes") is None:
            payload["notes"] = ""
        try:
            entries.append(HistoryEntry.model_validate(payload))
        except ValidationError:
            continue
    return entries


def upgrade_session(raw_nozzles: Any, raw_financials: Any) -> ShiftSession:
    """Rebuild the in-progress shift from the nozzle and financial snapshots.

    The nozzle snapshot carries the session envelope (stage, operator, shift
    label, notes). A bare list of nozzles, as older versions wrote it, restores
    the readings with the session at ``idle``.
    """

    session = ShiftSession(
        nozzles=upgrade_nozzles(raw_nozzles),
        financials=upgrade_financials(raw_financials),
    )
    meta = raw_nozzles.get("session") if isinstance(raw_nozzles, Mapping) else None
    if not isinstance(meta, Mapping):
        return session

    stage = meta.get("stage")
    if isinstance(stage, int) and not isinstance(stage, bool):
        try:
            session.stage = ShiftStage(stage)
        except ValueError:
            pass
    for key in ("shift_id", "operator_name", "notes", "ai_analysis"):
        value = meta.get(key)
        if isinstance(value, str):
            setattr(session, key, value)
    try:
        session.shift = ShiftLabel(meta.get("shift"))
    except ValueError:
        pass

    if session.stage is not ShiftStage.idle and not session.operator_name.strip():
        session.stage = ShiftStage.idle
    return session


def dump_session_nozzles(session: ShiftSession) -> Dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "session": session.model_dump(
            mode="json", include={"shift_id", "stage", "operator_name", "shift", "notes", "ai_analysis"}
        ),
        "nozzles": [nozzle.model_dump(mode="json") for nozzle in session.nozzles],
    }
