"""Tests for the stage-gated shift workflow."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from datastore.calibration import CalibrationStore
from models.records import CashBreakdown, FuelPrices, ShiftLabel, ShiftStage
from services.calculator import ReconciliationCalculator
from services.workflow import (
    ShiftAction,
    ShiftWorkflow,
    StageError,
    ValidationRejected,
    transition,
)

FIXED_NOW = datetime(2024, 3, 1, 18, 30, tzinfo=timezone.utc)


@pytest.fixture()
def workflow() -> ShiftWorkflow:
    return ShiftWorkflow(
        calibration=CalibrationStore([1, 2, 3, 4]),
        calculator=ReconciliationCalculator(),
        prices=FuelPrices(petrol=280, diesel=290),
        clock=lambda: FIXED_NOW,
    )


def _walk_to(workflow: ShiftWorkflow, stage: ShiftStage) -> None:
    while workflow.stage < stage:
        workflow.advance()


def test_transition_is_linear() -> None:
    stage = ShiftStage.idle
    visited = []
    stage = transition(stage, ShiftAction.start)
    while True:
        visited.append(stage)
        following = transition(stage, ShiftAction.next)
        if following is stage:
            break
        stage = following

    assert visited == [
        ShiftStage.petrol_entry,
        ShiftStage.diesel_entry,
        ShiftStage.test_liters,
        ShiftStage.financial_entry,
        ShiftStage.summary,
    ]
    assert transition(ShiftStage.summary, ShiftAction.close) is ShiftStage.idle


def test_transition_ignores_actions_that_do_not_apply() -> None:
    assert transition(ShiftStage.idle, ShiftAction.next) is ShiftStage.idle
    assert transition(ShiftStage.idle, ShiftAction.back) is ShiftStage.idle
    assert transition(ShiftStage.idle, ShiftAction.close) is ShiftStage.idle
    assert transition(ShiftStage.diesel_entry, ShiftAction.start) is ShiftStage.diesel_entry
    assert transition(ShiftStage.financial_entry, ShiftAction.close) is ShiftStage.financial_entry
    assert transition(ShiftStage.petrol_entry, ShiftAction.back) is ShiftStage.idle


def test_start_requires_operator_name(workflow: ShiftWorkflow) -> None:
    before = workflow.session.model_copy(deep=True)

    with pytest.raises(ValidationRejected):
        workflow.start("   ", ShiftLabel.day)

    assert workflow.session == before
    assert workflow.stage is ShiftStage.idle


def test_start_seeds_openings_from_calibration(workflow: ShiftWorkflow) -> None:
    workflow.calibration.manual_override(1, 12345.0)

    session = workflow.start("Akram", ShiftLabel.night)

    assert session.stage is ShiftStage.petrol_entry
    assert session.operator_name == "Akram"
    assert session.shift is ShiftLabel.night
    assert session.shift_id
    assert session.nozzle(1).opening == 12345.0
    assert all(nozzle.closing == 0 for nozzle in session.nozzles)


def test_start_during_shift_is_rejected(workflow: ShiftWorkflow) -> None:
    workflow.start("Akram", ShiftLabel.day)

    with pytest.raises(StageError):
        workflow.start("Bilal", ShiftLabel.day)

    assert workflow.session.operator_name == "Akram"


def test_nozzle_edits_are_gated_by_fuel_stage(workflow: ShiftWorkflow) -> None:
    workflow.start("Akram", ShiftLabel.day)

    workflow.set_nozzle(1, closing=150)
    with pytest.raises(StageError):
        workflow.set_nozzle(3, closing=100)

    workflow.advance()
    workflow.set_nozzle(3, opening=2000, closing=2100)
    with pytest.raises(StageError):
        workflow.set_nozzle(1, closing=175)

    assert workflow.session.nozzle(1).closing == 150
    assert workflow.session.nozzle(3).closing == 2100


def test_unknown_nozzle_raises_key_error(workflow: ShiftWorkflow) -> None:
    workflow.start("Akram", ShiftLabel.day)

    with pytest.raises(KeyError):
        workflow.set_nozzle(99, closing=1)


def test_back_keeps_entered_data(workflow: ShiftWorkflow) -> None:
    workflow.start("Akram", ShiftLabel.day)
    workflow.set_nozzle(1, opening=1000, closing=1150)
    _walk_to(workflow, ShiftStage.test_liters)
    workflow.set_test_liters(petrol=5)

    workflow.back()
    workflow.back()

    assert workflow.stage is ShiftStage.petrol_entry
    assert workflow.session.nozzle(1).closing == 1150
    assert workflow.session.financials.test_liters_petrol == 5


def test_back_from_idle_is_noop(workflow: ShiftWorkflow) -> None:
    assert workflow.back() is ShiftStage.idle


def test_advance_never_blocks_on_empty_input(workflow: ShiftWorkflow) -> None:
    workflow.start("Akram", ShiftLabel.day)

    _walk_to(workflow, ShiftStage.summary)

    assert workflow.stage is ShiftStage.summary
    assert workflow.advance() is ShiftStage.summary


def test_denomination_tally_overwrites_cash_on_hand(workflow: ShiftWorkflow) -> None:
    workflow.start("Akram", ShiftLabel.day)
    _walk_to(workflow, ShiftStage.financial_entry)
    workflow.set_financial("physical_cash", 777)

    workflow.set_cash_breakdown(CashBreakdown(n5000=2, n1000=3, n10=4, coins=7))
    assert workflow.session.financials.physical_cash == 13047

    workflow.set_denomination("n500", 1)
    assert workflow.session.financials.physical_cash == 13547
    assert workflow.session.financials.cash_breakdown.total == 13547

    workflow.set_financial("physical_cash", 13000)
    assert workflow.session.financials.physical_cash == 13000
    assert workflow.session.financials.cash_breakdown.total == 13547


def test_credit_ledger_is_decoupled_from_credit_total(workflow: ShiftWorkflow) -> None:
    workflow.start("Akram", ShiftLabel.day)
    _walk_to(workflow, ShiftStage.financial_entry)
    workflow.set_financial("credits", 2000)

    first = workflow.add_credit("Rashid Transport", 1500, vehicle_no="LEA-123")
    workflow.add_credit("Rashid Transport", 1500)

    assert workflow.session.financials.credits == 2000
    assert len(workflow.session.financials.credit_list) == 2

    assert workflow.remove_credit(first.id) is True
    assert workflow.remove_credit(first.id) is False
    assert [entry.vehicle_no for entry in workflow.session.financials.credit_list] == [None]


def test_financial_edits_outside_stage_are_rejected(workflow: ShiftWorkflow) -> None:
    workflow.start("Akram", ShiftLabel.day)

    with pytest.raises(StageError):
        workflow.set_financial("expenses", 10)
    with pytest.raises(StageError):
        workflow.set_test_liters(petrol=1)
    with pytest.raises(StageError):
        workflow.set_notes("too early")


def test_unknown_financial_field_is_rejected(workflow: ShiftWorkflow) -> None:
    workflow.start("Akram", ShiftLabel.day)
    _walk_to(workflow, ShiftStage.financial_entry)

    with pytest.raises(KeyError):
        workflow.set_financial("test_liters_petrol", 3)


def test_close_only_from_summary(workflow: ShiftWorkflow) -> None:
    workflow.start("Akram", ShiftLabel.day)

    with pytest.raises(StageError):
        workflow.close()


def test_close_emits_history_and_carries_forward(workflow: ShiftWorkflow) -> None:
    workflow.calibration.manual_override(2, 640.0)
    workflow.start("Akram", ShiftLabel.day)
    workflow.set_nozzle(1, opening=1000, closing=1150)
    workflow.advance()
    workflow.set_nozzle(3, opening=2000, closing=2100)
    workflow.advance()
    workflow.set_test_liters(petrol=5, diesel=0)
    workflow.advance()
    for field, value in {
        "expenses": 1000,
        "credits": 2000,
        "recoveries": 500,
        "opening_balance": 3000,
        "bank_deposit": 1000,
        "digital_payments": 500,
        "physical_cash": 30000,
    }.items():
        workflow.set_financial(field, value)
    workflow.add_credit("Haji Sahib", 2000)
    workflow.advance()
    workflow.set_notes("Generator ran for two hours.")
    workflow.attach_narrative(workflow.session.shift_id, "Large shortage.")

    entry = workflow.close()

    assert entry.operator_name == "Akram"
    assert entry.shift is ShiftLabel.day
    assert entry.timestamp == FIXED_NOW
    assert entry.total_petrol_liters == 145
    assert entry.total_diesel_liters == 100
    assert entry.total_revenue == 73100
    assert entry.target_cash == 68600
    assert entry.shortage_excess == -38600
    assert entry.notes == "Generator ran for two hours."
    assert [credit.name for credit in entry.credit_details] == ["Haji Sahib"]
    assert entry.ai_analysis == "Large shortage."

    assert workflow.stage is ShiftStage.idle
    assert workflow.session.shift_id is None
    assert all(nozzle.opening == 0 and nozzle.closing == 0 for nozzle in workflow.session.nozzles)
    assert workflow.session.financials.credit_list == []

    assert workflow.calibration.snapshot() == {1: 1150, 2: 640.0, 3: 2100, 4: 0.0}

    next_session = workflow.start("Bilal", ShiftLabel.night)
    assert next_session.nozzle(1).opening == 1150
    assert next_session.nozzle(2).opening == 640.0


def test_manual_calibration_updates_active_shift(workflow: ShiftWorkflow) -> None:
    workflow.start("Akram", ShiftLabel.day)
    _walk_to(workflow, ShiftStage.test_liters)

    assert workflow.calibrate(4, 3210.0) is True

    assert workflow.session.nozzle(4).opening == 3210.0
    assert workflow.calibration.snapshot()[4] == 3210.0


def test_narrative_for_previous_shift_is_discarded(workflow: ShiftWorkflow) -> None:
    workflow.start("Akram", ShiftLabel.day)

    assert workflow.attach_narrative("some-other-shift", "stale") is False
    assert workflow.session.ai_analysis is None
