import time
from typing import Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.state_repository import StateRepository, build_default_repository
from services.engine import ShiftService, build_default_service
from services.narrative import NarrativeResult
from settings import get_settings
from storage.snapshot_store import SnapshotStore, build_default_store


class StubNarrator:
    def generate(self, nozzles, financials, prices, totals) -> NarrativeResult:
        return NarrativeResult(text="Cash handling was accurate.", available=True)


@pytest.fixture
def api_client(tmp_path, monkeypatch) -> Iterator[TestClient]:
    services: Dict[int, ShiftService] = {}

    def build_test_service(workers: int | None = None) -> ShiftService:
        worker_count = workers or 1
        service = services.get(worker_count)
        if service is None:
            service = ShiftService(
                repository=StateRepository(SnapshotStore(root_path=tmp_path / "state")),
                narrator=StubNarrator(),
                workers=worker_count,
            )
            services[worker_count] = service
        return service

    def cache_clear() -> None:
        while services:
            _, service = services.popitem()
            service.shutdown()

    build_test_service.cache_clear = cache_clear  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_service", build_test_service)
    monkeypatch.setattr("app.api.build_default_service", build_test_service)
    monkeypatch.setattr("services.engine.build_default_service", build_test_service)

    app = create_app()
    with TestClient(app) as client:
        yield client

    cache_clear()


def test_lifespan_shuts_down_service_and_clears_cache(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("FUEL_STATE_PATH", str(tmp_path / "state"))
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    for cache in (get_settings, build_default_store, build_default_repository, build_default_service):
        cache.cache_clear()

    app = create_app()
    try:
        with TestClient(app):
            service_during = build_default_service()
            assert service_during.executor._shutdown is False

        service_after = build_default_service()
        try:
            assert service_after is not service_during
            assert service_during.executor._shutdown is True
        finally:
            service_after.shutdown()
    finally:
        for cache in (build_default_service, build_default_repository, build_default_store, get_settings):
            cache.cache_clear()


def _poll_for_narrative(client: TestClient, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    last_payload: dict | None = None
    while time.monotonic() < deadline:
        response = client.get("/shift")
        assert response.status_code == 200
        payload = response.json()
        last_payload = payload
        if not payload["narrative_pending"] and payload["ai_analysis"]:
            return payload
        time.sleep(0.05)
    pytest.fail(f"Narrative did not arrive: {last_payload}")


def _advance(client: TestClient, times: int = 1) -> dict:
    payload: dict = {}
    for _ in range(times):
        response = client.post("/shift/next")
        assert response.status_code == 200
        payload = response.json()
    return payload


def test_idle_state(api_client: TestClient) -> None:
    response = api_client.get("/shift")

    assert response.status_code == 200
    payload = response.json()
    assert payload["stage"] == "idle"
    assert [nozzle["id"] for nozzle in payload["nozzles"]] == [1, 2, 3, 4]
    assert payload["reconciliation"]["difference"] == 0


def test_start_requires_operator_name(api_client: TestClient) -> None:
    response = api_client.post("/shift/start", json={"operator_name": "  ", "shift": "DAY"})

    assert response.status_code == 400
    assert "Operator name" in response.json()["detail"]
    assert api_client.get("/shift").json()["stage"] == "idle"


def test_start_twice_conflicts(api_client: TestClient) -> None:
    assert api_client.post("/shift/start", json={"operator_name": "Akram"}).status_code == 200

    response = api_client.post("/shift/start", json={"operator_name": "Bilal"})

    assert response.status_code == 409


def test_nozzle_edits_are_stage_gated(api_client: TestClient) -> None:
    api_client.post("/shift/start", json={"operator_name": "Akram"})

    diesel = api_client.put("/shift/nozzles/3", json={"closing": 10})
    missing = api_client.put("/shift/nozzles/9", json={"closing": 10})
    negative = api_client.put("/shift/nozzles/1", json={"closing": -1})

    assert diesel.status_code == 409
    assert missing.status_code == 404
    assert negative.status_code == 422


def test_full_shift_round_trip(api_client: TestClient) -> None:
    started = api_client.post("/shift/start", json={"operator_name": "Akram", "shift": "NIGHT"})
    assert started.status_code == 200
    assert started.json()["stage"] == "petrol_entry"

    nozzle = api_client.put("/shift/nozzles/1", json={"opening": 1000, "closing": 1150})
    assert nozzle.status_code == 200
    assert nozzle.json()["closing"] == 1150
    _advance(api_client)
    api_client.put("/shift/nozzles/3", json={"opening": 2000, "closing": 2100})
    _advance(api_client)

    tests = api_client.put("/shift/test-liters", json={"petrol": 5})
    assert tests.json()["reconciliation"]["net_petrol_sold"] == 145
    _advance(api_client)

    financials = api_client.patch(
        "/shift/financials",
        json={"expenses": 2000, "credits": 2500, "bank_deposit": 10000, "lube_sales": 0},
    )
    assert financials.status_code == 200
    tally = api_client.put("/shift/cash-breakdown", json={"n5000": 6})
    assert tally.json() == {"physical_cash": 30000}

    credit = api_client.post(
        "/shift/credits", json={"name": "Haji Saab", "amount": 2000, "vehicle_no": "LEA-1234"}
    )
    assert credit.status_code == 201
    credit_id = credit.json()["id"]
    assert api_client.delete("/shift/credits/unknown").status_code == 404
    assert api_client.delete(f"/shift/credits/{credit_id}").status_code == 204
    api_client.post("/shift/credits", json={"name": "Rashid", "amount": 500})

    summary = _advance(api_client)
    assert summary["stage"] == "summary"
    totals = summary["reconciliation"]
    assert totals["total_liability"] == 145 * 280 + 100 * 290
    assert totals["total_deductions"] == 14500
    assert totals["target_cash"] == 55100
    assert totals["difference"] == -25100
    assert totals["is_shortage"] is True
    assert summary["financials"]["credits"] == 2500

    assert api_client.put("/shift/notes", json={"notes": "Pump 2 slow"}).status_code == 200
    narrative = api_client.post("/shift/narrative")
    assert narrative.status_code == 202
    assert _poll_for_narrative(api_client)["ai_analysis"] == "Cash handling was accurate."

    closed = api_client.post("/shift/close")
    assert closed.status_code == 200
    entry = closed.json()
    assert entry["operator_name"] == "Akram"
    assert entry["shift"] == "NIGHT"
    assert entry["notes"] == "Pump 2 slow"
    assert entry["ai_analysis"] == "Cash handling was accurate."
    assert [credit["name"] for credit in entry["credit_details"]] == ["Rashid"]

    assert api_client.get("/shift").json()["stage"] == "idle"
    assert api_client.get("/calibration").json()["references"] == {
        "1": 1150.0,
        "2": 0.0,
        "3": 2100.0,
        "4": 0.0,
    }
    history = api_client.get("/history", params={"search": "akram"}).json()
    assert [item["id"] for item in history] == [entry["id"]]
    assert api_client.get("/history", params={"search": "nobody"}).json() == []


def test_close_outside_summary_conflicts(api_client: TestClient) -> None:
    assert api_client.post("/shift/close").status_code == 409
    assert api_client.post("/shift/narrative").status_code == 409


def test_calibration_override(api_client: TestClient) -> None:
    api_client.post("/shift/start", json={"operator_name": "Akram"})

    response = api_client.put("/calibration/2", json={"value": 640})

    assert response.status_code == 200
    assert response.json()["references"]["2"] == 640
    nozzles = api_client.get("/shift").json()["nozzles"]
    assert nozzles[1]["opening"] == 640
    assert api_client.put("/calibration/9", json={"value": 1}).status_code == 404


def test_prices(api_client: TestClient) -> None:
    assert api_client.get("/prices").json() == {"petrol": 280.0, "diesel": 290.0}

    updated = api_client.put("/prices", json={"diesel": 295})

    assert updated.status_code == 200
    assert updated.json() == {"petrol": 280.0, "diesel": 295.0}
    assert api_client.put("/prices", json={}).status_code == 422


def test_history_rejects_unknown_period(api_client: TestClient) -> None:
    assert api_client.get("/history", params={"period": "YEAR"}).status_code == 422


def test_cash_count_edit_keeps_other_denominations(api_client: TestClient) -> None:
    api_client.post("/shift/start", json={"operator_name": "Akram"})
    assert api_client.patch("/shift/cash-breakdown", json={"n500": 1}).status_code == 409
    _advance(api_client, 3)

    assert api_client.put("/shift/cash-breakdown", json={"n1000": 6}).json() == {"physical_cash": 6000}
    response = api_client.patch("/shift/cash-breakdown", json={"n500": 1})

    assert response.status_code == 200
    assert response.json() == {"physical_cash": 6500}
    state = api_client.get("/shift").json()
    assert state["financials"]["cash_breakdown"]["n1000"] == 6
    assert state["financials"]["cash_breakdown"]["n500"] == 1
    assert state["financials"]["physical_cash"] == 6500
    assert api_client.patch("/shift/cash-breakdown", json={"n100": -1}).status_code == 422
