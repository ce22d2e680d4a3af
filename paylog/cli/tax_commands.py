"""Tax command group: estimates and schedules."""

import json
from typing import Optional

import click

from paylog.cli.params import AMOUNT
from paylog.sdk.taxes import (
    TaxCalculationResult,
    TaxScheduleError,
    estimate,
    list_schedules,
    load_schedule,
    resolve_schedule,
)

SCHEDULE_HELP = (
    "Tax schedule name or path to a schedule .yaml "
    "(default: 'tax_schedule' setting). See 'paylog tax schedules'."
)


def load_schedule_or_fail(name: Optional[str]):
    """Resolve a schedule for a command, as a click error on failure."""
    try:
        return resolve_schedule(name)
    except TaxScheduleError as e:
        raise click.ClickException(str(e))


def format_estimate_text(result: TaxCalculationResult, currency: str = "NOK") -> str:
    """Format an estimate as an ASCII table for terminal display."""
    details = result.details
    lines = []

    lines.append(f"{'Gross income':<28} {details.gross_income:>14,.2f} {currency}")
    if details.general_taxable_income:
        lines.append(f"{'General taxable income':<28} {details.general_taxable_income:>14,} {currency}")
    lines.append("-" * 48)

    for label, amount in result.components():
        lines.append(f"  {label:<26} {amount:>14,}")

    if details.bracket_breakdown:
        lines.append("")
        lines.append("  Brackets:")
        for bracket in details.bracket_breakdown:
            lines.append(
                f"    {bracket.label:<20} {bracket.taxable_amount:>12,} -> {bracket.tax:>10,}"
            )

    lines.append("-" * 48)
    lines.append(f"{'Estimated tax':<28} {result.total_tax:>14,} {currency}")
    if details.gross_income > 0:
        rate = result.total_tax / details.gross_income
        lines.append(f"{'Average rate':<28} {rate:>14.1%}")

    return "\n".join(lines)


@click.group()
def tax():
    """Approximate income tax estimates.

    Estimates are informational only: one year's brackets applied to a
    gross income, no credits or special cases.
    """
    pass


# ignore_unknown_options lets a negative GROSS through instead of being read as a flag
@tax.command("estimate", context_settings={"ignore_unknown_options": True})
@click.argument("gross", type=AMOUNT)
@click.option("--schedule", "schedule_name", help=SCHEDULE_HELP)
@click.option("--format", "output_format", type=click.Choice(["text", "json"]),
              default="text", help="Output format.")
def tax_estimate(gross: float, schedule_name: Optional[str], output_format: str):
    """Estimate tax on GROSS income for the schedule's year.

    \b
    Examples:
      paylog tax estimate 650000 --schedule no-2024-trinnskatt
      paylog tax estimate 650000 --schedule no-2024-flat --format json
      paylog tax estimate -5000 --schedule no-2024-flat
    """
    schedule = load_schedule_or_fail(schedule_name)
    result = estimate(gross, schedule)

    if output_format == "json":
        click.echo(json.dumps(result.model_dump(), indent=2))
        return

    click.echo(f"TAX ESTIMATE ({schedule.name}, {schedule.year})")
    click.echo("=" * 48)
    click.echo(format_estimate_text(result, schedule.currency))


@tax.command("schedules")
def tax_schedules():
    """List the bundled tax schedules."""
    names = list_schedules()
    if not names:
        click.echo("No tax schedules found.")
        return

    for name in names:
        try:
            schedule = load_schedule(name)
        except TaxScheduleError as e:
            click.echo(click.style(f"{name:<24} INVALID: {e}", fg="red"))
            continue
        click.echo(f"{name:<24} {schedule.year}  {schedule.description}")
        for band in schedule.bands:
            upper = "∞" if band.upper == float("inf") else f"{band.upper:,.0f}"
            click.echo(f"    {band.lower:>12,.0f} - {upper:>12}  {band.rate:>6.1%}")
