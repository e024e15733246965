"""Shift reconciliation arithmetic."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List

from models.records import FinancialInputs, FuelPrices, FuelType, NozzleReading
from services.meter import liters_sold


@dataclass(frozen=True)
class NozzleSale:
    nozzle_id: int
    fuel_type: FuelType
    sold: float
    rolled_over: bool


@dataclass
class ReconciliationResult:
    """Derived totals for the current shift. Recomputed, never stored."""

    petrol_sold: float = 0.0
    diesel_sold: float = 0.0
    net_petrol_sold: float = 0.0
    net_diesel_sold: float = 0.0
    fuel_revenue: float = 0.0
    total_liability: float = 0.0
    total_deductions: float = 0.0
    target_cash: float = 0.0
    actual_cash: float = 0.0
    total_collected: float = 0.0
    difference: float = 0.0
    nozzle_sales: List[NozzleSale] = field(default_factory=list)

    @property
    def is_shortage(self) -> bool:
        return self.difference < 0


class ReconciliationCalculator:
    """Pure reconciliation component that can be unit tested in isolation."""

    def calculate(
        self,
        nozzles: Iterable[NozzleReading],
        financials: FinancialInputs,
        prices: FuelPrices,
    ) -> ReconciliationResult:
        result = ReconciliationResult()

        for nozzle in nozzles:
            outcome = liters_sold(nozzle.opening, nozzle.closing)
            result.nozzle_sales.append(
                NozzleSale(
                    nozzle_id=nozzle.id,
                    fuel_type=nozzle.fuel_type,
                    sold=outcome.sold,
                    rolled_over=outcome.rolled_over,
                )
            )
            if nozzle.fuel_type is FuelType.petrol:
                result.petrol_sold += outcome.sold
            else:
                result.diesel_sold += outcome.sold

        # Test liters go back into the tank; a surplus is a data-entry slip.
        result.net_petrol_sold = max(0.0, result.petrol_sold - financials.test_liters_petrol)
        result.net_diesel_sold = max(0.0, result.diesel_sold - financials.test_liters_diesel)

        result.fuel_revenue = (
            result.net_petrol_sold * prices.petrol
            + result.net_diesel_sold * prices.diesel
        )

        # Lube proceeds belong to a separate owner: not a liability, paid out as a deduction.
        result.total_liability = (
            result.fuel_revenue + financials.recoveries + financials.opening_balance
        )
        result.total_deductions = (
            financials.expenses
            + financials.credits
            + financials.bank_deposit
            + financials.digital_payments
            + financials.lube_sales
        )
        result.target_cash = result.total_liability - result.total_deductions

        result.actual_cash = financials.physical_cash
        result.total_collected = (
            financials.physical_cash + financials.bank_deposit + financials.digital_payments
        )
        result.difference = result.actual_cash - result.target_cash
        return result
