from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import echo_key_values, render_difference, render_history, render_history_entry, render_state


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


class ShiftChoice(str, Enum):
    day = "day"
    night = "night"


class PeriodChoice(str, Enum):
    all = "all"
    week = "week"
    month = "month"


class FinancialField(str, Enum):
    opening_balance = "opening_balance"
    expenses = "expenses"
    credits = "credits"
    recoveries = "recoveries"
    lube_sales = "lube_sales"
    physical_cash = "physical_cash"
    bank_deposit = "bank_deposit"
    digital_payments = "digital_payments"


app = typer.Typer(
    help="Operator console for the fuel shift reconciliation service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Request timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show the shift in progress and its live reconciliation."""
    state = _get_state(ctx)
    render_state(state.client.get_state())


@app.command("start")
def start_command(
    ctx: typer.Context,
    operator_name: str = typer.Argument(..., help="Operator name or ID."),
    shift: ShiftChoice = typer.Option(ShiftChoice.day, "--shift", "-s", help="Shift label."),
) -> None:
    """Start a shift; openings are filled from the last closings."""
    state = _get_state(ctx)
    payload = state.client.start_shift(operator_name, shift.value.upper())
    typer.secho(f"Shift started for {payload.get('operator_name')}.", fg=typer.colors.GREEN)
    render_state(payload)


@app.command("next")
def next_command(ctx: typer.Context) -> None:
    """Move to the next stage."""
    state = _get_state(ctx)
    payload = state.client.next_stage()
    typer.echo(f"stage: {payload.get('stage')}")


@app.command("back")
def back_command(ctx: typer.Context) -> None:
    """Return to the previous stage; entered data is kept."""
    state = _get_state(ctx)
    payload = state.client.previous_stage()
    typer.echo(f"stage: {payload.get('stage')}")


@app.command("nozzle")
def nozzle_command(
    ctx: typer.Context,
    nozzle_id: int = typer.Argument(..., help="Nozzle identifier."),
    opening: Optional[float] = typer.Option(None, "--opening", min=0, help="Opening meter reading."),
    closing: Optional[float] = typer.Option(None, "--closing", min=0, help="Closing meter reading."),
) -> None:
    """Enter meter readings for a nozzle."""
    if opening is None and closing is None:
        raise typer.BadParameter("Provide --opening and/or --closing.")
    state = _get_state(ctx)
    nozzle = state.client.set_nozzle(nozzle_id, opening, closing)
    echo_key_values(
        [
            ("nozzle", nozzle.get("name")),
            ("opening", nozzle.get("opening")),
            ("closing", nozzle.get("closing")),
        ]
    )


@app.command("tests")
def tests_command(
    ctx: typer.Context,
    petrol: Optional[float] = typer.Option(None, "--petrol", min=0, help="Petrol test liters."),
    diesel: Optional[float] = typer.Option(None, "--diesel", min=0, help="Diesel test liters."),
) -> None:
    """Enter liters drawn for pump tests."""
    state = _get_state(ctx)
    payload = state.client.set_test_liters(petrol, diesel)
    totals = payload.get("reconciliation") or {}
    echo_key_values(
        [
            ("net_petrol_liters", totals.get("net_petrol_sold")),
            ("net_diesel_liters", totals.get("net_diesel_sold")),
        ]
    )


@app.command("finance")
def finance_command(
    ctx: typer.Context,
    field: FinancialField = typer.Argument(..., help="Financial field to set."),
    value: float = typer.Argument(..., min=0, help="Amount."),
) -> None:
    """Set an inflow or outflow figure."""
    state = _get_state(ctx)
    payload = state.client.set_financials({field.value: value})
    render_difference(float((payload.get("reconciliation") or {}).get("difference") or 0.0))


@app.command("cash")
def cash_command(
    ctx: typer.Context,
    n5000: Optional[int] = typer.Option(None, "--n5000", min=0),
    n1000: Optional[int] = typer.Option(None, "--n1000", min=0),
    n500: Optional[int] = typer.Option(None, "--n500", min=0),
    n100: Optional[int] = typer.Option(None, "--n100", min=0),
    n50: Optional[int] = typer.Option(None, "--n50", min=0),
    n20: Optional[int] = typer.Option(None, "--n20", min=0),
    n10: Optional[int] = typer.Option(None, "--n10", min=0),
    coins: Optional[float] = typer.Option(None, "--coins", min=0, help="Total value of coins."),
) -> None:
    """Set drawer counts by denomination; counts not given keep their value."""
    counts = {
        key: value
        for key, value in (
            ("n5000", n5000),
            ("n1000", n1000),
            ("n500", n500),
            ("n100", n100),
            ("n50", n50),
            ("n20", n20),
            ("n10", n10),
            ("coins", coins),
        )
        if value is not None
    }
    if not counts:
        raise typer.BadParameter("Provide at least one denomination count.")
    state = _get_state(ctx)
    payload = state.client.update_cash_counts(counts)
    typer.echo(f"physical_cash: {payload.get('physical_cash')}")


@app.command("credit-add")
def credit_add_command(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Debtor name."),
    amount: float = typer.Argument(..., min=0, help="Amount on credit."),
    vehicle_no: Optional[str] = typer.Option(None, "--vehicle", help="Vehicle number."),
) -> None:
    """Add a debtor to the credit ledger (does not change the credit total)."""
    state = _get_state(ctx)
    entry = state.client.add_credit(name, amount, vehicle_no)
    typer.secho(f"Credit recorded. id={entry.get('id')}", fg=typer.colors.GREEN)


@app.command("credit-remove")
def credit_remove_command(
    ctx: typer.Context,
    credit_id: str = typer.Argument(..., help="Ledger entry id."),
) -> None:
    """Remove a debtor from the credit ledger."""
    state = _get_state(ctx)
    state.client.remove_credit(credit_id)
    typer.echo(f"Removed {credit_id}.")


@app.command("notes")
def notes_command(
    ctx: typer.Context,
    text: str = typer.Argument(..., help="Notes for this shift."),
) -> None:
    """Attach free-text notes on the summary stage."""
    state = _get_state(ctx)
    state.client.set_notes(text)
    typer.echo("Notes saved.")


@app.command("narrative")
def narrative_command(
    ctx: typer.Context,
    wait: bool = typer.Option(
        False,
        "--wait/--no-wait",
        help="Wait for the narrative and display it.",
    ),
    poll_interval: Optional[float] = typer.Option(
        None,
        "--poll-interval",
        help="Seconds between status checks while waiting.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--wait-timeout",
        help="Maximum seconds to wait.",
    ),
) -> None:
    """Request an AI narrative of the shift summary."""
    state = _get_state(ctx)
    payload = state.client.request_narrative()
    if payload.get("queued"):
        typer.echo("Narrative requested.")
    else:
        typer.echo("A narrative is already pending.")

    if not wait:
        return

    interval = poll_interval if poll_interval is not None else state.config.poll_interval
    wait_timeout = timeout if timeout is not None else state.config.narrative_wait
    result = state.client.poll_narrative(interval=interval, timeout=wait_timeout)
    typer.echo()
    typer.echo(result.get("ai_analysis") or "No narrative available.")


@app.command("close")
def close_command(ctx: typer.Context) -> None:
    """Close the shift and carry closing readings forward."""
    state = _get_state(ctx)
    entry = state.client.close_shift()
    typer.secho("Shift closed. Meters updated for next shift.", fg=typer.colors.GREEN)
    render_history_entry(entry)


@app.command("calibrate")
def calibrate_command(
    ctx: typer.Context,
    nozzle_id: Optional[int] = typer.Argument(None, help="Nozzle identifier."),
    value: Optional[float] = typer.Argument(None, min=0, help="New reference reading."),
) -> None:
    """Show reference readings, or override one."""
    state = _get_state(ctx)
    if nozzle_id is None:
        payload = state.client.get_calibration()
    elif value is None:
        raise typer.BadParameter("Provide a value to override the reference reading.")
    else:
        payload = state.client.calibrate(nozzle_id, value)
    echo_key_values(
        (f"nozzle {key}", reference) for key, reference in (payload.get("references") or {}).items()
    )


@app.command("prices")
def prices_command(
    ctx: typer.Context,
    petrol: Optional[float] = typer.Option(None, "--petrol", min=0, help="New petrol price."),
    diesel: Optional[float] = typer.Option(None, "--diesel", min=0, help="New diesel price."),
) -> None:
    """Show or edit fuel prices."""
    state = _get_state(ctx)
    if petrol is None and diesel is None:
        payload = state.client.get_prices()
    else:
        payload = state.client.update_prices(petrol, diesel)
    echo_key_values([("petrol", payload.get("petrol")), ("diesel", payload.get("diesel"))])


@app.command("history")
def history_command(
    ctx: typer.Context,
    search: Optional[str] = typer.Option(None, "--search", help="Operator name or date fragment."),
    period: PeriodChoice = typer.Option(PeriodChoice.all, "--period", help="Time window."),
) -> None:
    """Browse closed shifts, most recent first."""
    state = _get_state(ctx)
    render_history(state.client.get_history(search, period.value.upper()))
