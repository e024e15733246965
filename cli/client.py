from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the shift reconciliation service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def get_state(self) -> Dict[str, Any]:
        return self._request("GET", "/shift")

    def start_shift(self, operator_name: str, shift: str) -> Dict[str, Any]:
        return self._request(
            "POST", "/shift/start", json={"operator_name": operator_name, "shift": shift}
        )

    def next_stage(self) -> Dict[str, Any]:
        return self._request("POST", "/shift/next")

    def previous_stage(self) -> Dict[str, Any]:
        return self._request("POST", "/shift/back")

    def set_nozzle(
        self, nozzle_id: int, opening: Optional[float], closing: Optional[float]
    ) -> Dict[str, Any]:
        return self._request(
            "PUT",
            f"/shift/nozzles/{nozzle_id}",
            json={"opening": opening, "closing": closing},
        )

    def set_test_liters(self, petrol: Optional[float], diesel: Optional[float]) -> Dict[str, Any]:
        return self._request(
            "PUT", "/shift/test-liters", json={"petrol": petrol, "diesel": diesel}
        )

    def set_financials(self, values: Dict[str, float]) -> Dict[str, Any]:
        return self._request("PATCH", "/shift/financials", json=values)

    def update_cash_counts(self, counts: Dict[str, float]) -> Dict[str, Any]:
        return self._request("PATCH", "/shift/cash-breakdown", json=counts)

    def add_credit(self, name: str, amount: float, vehicle_no: Optional[str]) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/shift/credits",
            json={"name": name, "amount": amount, "vehicle_no": vehicle_no},
        )

    def remove_credit(self, credit_id: str) -> None:
        self._request("DELETE", f"/shift/credits/{credit_id}")

    def set_notes(self, notes: str) -> Dict[str, Any]:
        return self._request("PUT", "/shift/notes", json={"notes": notes})

    def request_narrative(self) -> Dict[str, Any]:
        return self._request("POST", "/shift/narrative")

    def close_shift(self) -> Dict[str, Any]:
        return self._request("POST", "/shift/close")

    def calibrate(self, nozzle_id: int, value: float) -> Dict[str, Any]:
        return self._request("PUT", f"/calibration/{nozzle_id}", json={"value": value})

    def get_calibration(self) -> Dict[str, Any]:
        return self._request("GET", "/calibration")

    def get_prices(self) -> Dict[str, Any]:
        return self._request("GET", "/prices")

    def update_prices(self, petrol: Optional[float], diesel: Optional[float]) -> Dict[str, Any]:
        return self._request("PUT", "/prices", json={"petrol": petrol, "diesel": diesel})

    def get_history(self, search: Optional[str], period: str) -> List[Dict[str, Any]]:
        params: Dict[str, str] = {"period": period}
        if search:
            params["search"] = search
        return self._request("GET", "/history", params=params)

    def poll_narrative(self, interval: float, timeout: float) -> Dict[str, Any]:
        deadline = time.monotonic() + timeout
        last_payload: Dict[str, Any] | None = None
        while time.monotonic() <= deadline:
            last_payload = self.get_state()
            if not last_payload.get("narrative_pending"):
                return last_payload
            time.sleep(interval)
        typer.secho(
            "Timed out waiting for the shift narrative.",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.RequestError as exc:
            typer.secho(f"Could not reach {self._config.base_url}: {exc}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1) from exc
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: Any = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
