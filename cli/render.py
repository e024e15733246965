from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _money(value: Any) -> str:
    try:
        return f"{float(value):,.2f}"
    except (TypeError, ValueError):
        return "-"


def render_difference(difference: float) -> None:
    label = "Excess Cash" if difference >= 0 else "Shortage"
    sign = "+" if difference >= 0 else "-"
    colour = typer.colors.GREEN if difference >= 0 else typer.colors.RED
    typer.secho(f"{label}: {sign} {_money(abs(difference))}", fg=colour, bold=True)


def render_state(payload: Dict[str, Any]) -> None:
    echo_heading("Shift")
    echo_key_values(
        [
            ("stage", payload.get("stage")),
            ("operator", payload.get("operator_name") or "-"),
            ("shift", payload.get("shift")),
        ]
    )

    typer.echo()
    echo_heading("Meters")
    sales = {
        sale.get("nozzle_id"): sale
        for sale in (payload.get("reconciliation") or {}).get("nozzle_sales") or []
    }
    for nozzle in payload.get("nozzles") or []:
        sale = sales.get(nozzle.get("id")) or {}
        marker = " (rollover)" if sale.get("rolled_over") else ""
        typer.echo(
            f"  - {nozzle.get('name')} [{nozzle.get('fuel_type')}]: "
            f"{nozzle.get('opening')} -> {nozzle.get('closing')} = {sale.get('sold', 0)} L{marker}"
        )

    totals = payload.get("reconciliation") or {}
    typer.echo()
    echo_heading("Reconciliation")
    echo_key_values(
        [
            ("net_petrol_liters", totals.get("net_petrol_sold")),
            ("net_diesel_liters", totals.get("net_diesel_sold")),
            ("fuel_revenue", _money(totals.get("fuel_revenue"))),
            ("total_liability", _money(totals.get("total_liability"))),
            ("total_deductions", _money(totals.get("total_deductions"))),
            ("target_cash", _money(totals.get("target_cash"))),
            ("actual_cash", _money(totals.get("actual_cash"))),
        ]
    )
    if totals:
        render_difference(float(totals.get("difference") or 0.0))

    credits = (payload.get("financials") or {}).get("credit_list") or []
    if credits:
        typer.echo()
        echo_heading("Credit Ledger")
        for credit in credits:
            vehicle = f" ({credit['vehicle_no']})" if credit.get("vehicle_no") else ""
            typer.echo(f"  - [{credit.get('id')}] {credit.get('name')}{vehicle}: {_money(credit.get('amount'))}")

    if payload.get("notes"):
        typer.echo()
        echo_heading("Notes")
        typer.echo(payload["notes"])

    if payload.get("ai_analysis"):
        typer.echo()
        echo_heading("AI Analysis")
        typer.echo(payload["ai_analysis"])
    elif payload.get("narrative_pending"):
        typer.echo()
        typer.echo("AI analysis pending...")


def render_history_entry(entry: Dict[str, Any]) -> None:
    typer.echo(
        f"{entry.get('date')} {entry.get('shift')} | {entry.get('operator_name')} | "
        f"P {entry.get('total_petrol_liters')} L, D {entry.get('total_diesel_liters')} L | "
        f"revenue {_money(entry.get('total_revenue'))} | "
        f"diff {_money(entry.get('shortage_excess'))}"
    )


def render_history(entries: List[Dict[str, Any]]) -> None:
    echo_heading("History")
    if not entries:
        typer.echo("No shifts recorded.")
        return
    for entry in entries:
        render_history_entry(entry)
