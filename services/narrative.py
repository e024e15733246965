"""Shift narrative written by Gemini."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from google import genai
from google.genai import types

from models.records import FinancialInputs, FuelPrices, NozzleReading

logger = logging.getLogger(__name__)

FALLBACK_NARRATIVE = "AI Analysis currently unavailable."
EMPTY_RESPONSE_NARRATIVE = "Shift analysis complete."


@dataclass(frozen=True)
class NarrativeTotals:
    net_petrol_liters: float
    net_diesel_liters: float
    revenue: float
    target_cash: float


@dataclass(frozen=True)
class NarrativeResult:
    text: str
    available: bool

    @classmethod
    def unavailable(cls) -> "NarrativeResult":
        return cls(text=FALLBACK_NARRATIVE, available=False)


def build_prompt(
    nozzles: Iterable[NozzleReading],
    financials: FinancialInputs,
    prices: FuelPrices,
    totals: NarrativeTotals,
) -> str:
    nozzle_lines = "\n".join(
        f"      - {nozzle.name} ({nozzle.fuel_type.value}): {nozzle.opening:.2f} -> {nozzle.closing:.2f}"
        for nozzle in nozzles
    )
    return f"""
      You are a professional financial auditor for a fuel station. Analyze this shift data. Currency is PKR (Rs).
      Provide a very concise, professional observation (max 80 words). Focus on efficiency and cash handling.

      Meters:
{nozzle_lines}

      Data:
      - Petrol: {totals.net_petrol_liters:.2f} L @ Rs.{prices.petrol}
      - Diesel: {totals.net_diesel_liters:.2f} L @ Rs.{prices.diesel}
      - Revenue: Rs.{totals.revenue:.2f}
      - Expenses: Rs.{financials.expenses}
      - Credits: Rs.{financials.credits}
      - Recoveries: Rs.{financials.recoveries}
      - Net Expected: Rs.{totals.target_cash:.2f}
      - Cash in Drawer: Rs.{financials.physical_cash}
      - Bank Deposit: Rs.{financials.bank_deposit}
      - Digital Payments: Rs.{financials.digital_payments}
    """


class NarrativeGenerator:
    """Best-effort Gemini client; every failure becomes the fallback text."""

    def __init__(self, api_key: Optional[str], model_name: str = "gemini-1.5-flash") -> None:
        self._api_key = api_key
        self._model_name = model_name
        self._client = None

    def _get_client(self) -> genai.Client:
        if self._client is None:
            if not self._api_key:
                raise RuntimeError("Gemini API key is missing")
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    def generate(
        self,
        nozzles: Iterable[NozzleReading],
        financials: FinancialInputs,
        prices: FuelPrices,
        totals: NarrativeTotals,
    ) -> NarrativeResult:
        try:
            response = self._get_client().models.generate_content(
                model=self._model_name,
                contents=build_prompt(nozzles, financials, prices, totals),
                config=types.GenerateContentConfig(temperature=0.2, max_output_tokens=256),
            )
            text = (response.text or "").strip()
        except Exception as exc:  # noqa: BLE001 - any failure falls back
            logger.warning("Narrative generation failed", extra={"reason": str(exc)})
            return NarrativeResult.unavailable()
        return NarrativeResult(text=text or EMPTY_RESPONSE_NARRATIVE, available=True)
