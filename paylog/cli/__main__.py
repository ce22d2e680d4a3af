"""paylog CLI - Command-line interface for salary entries and tax estimates."""

import json
from typing import Optional

import click

from paylog import __version__
from paylog.sdk import entries
from paylog.sdk.history import YearSummary, available_years, monthly_totals, summarize_year

from .entries_commands import entries_cli as entries_group
from .settings_commands import settings as settings_group
from .tax_commands import SCHEDULE_HELP, format_estimate_text, load_schedule_or_fail, tax as tax_group


@click.group()
@click.version_option(version=__version__, prog_name="paylog")
def cli():
    """paylog - Personal payslip log with an approximate tax estimate.

    Record one entry per payslip (by hand, from XML, or by scanning the
    payslip), then compare the tax withheld over a year with an estimate
    from that year's tax brackets.

    Data and settings are stored in (in order):

    \b
    1. PAYLOG_CONFIG_PATH environment variable (settings.json location)
    2. settings.json 'data_dir' key (if set via CLI)
    3. ~/.local/share/paylog (XDG default)

    Run 'paylog settings show' to see the effective paths.
    """
    pass


# Add subcommand groups
cli.add_command(entries_group, name="entries")
cli.add_command(tax_group)
cli.add_command(settings_group)


def _format_history_text(summary: YearSummary, months: dict, currency: str) -> str:
    totals = summary.totals
    lines = []

    lines.append(f"{'MONTH':<10} {'ENTRIES':>7} {'GROSS':>14} {'TAX':>14} {'NET':>14}")
    lines.append("-" * 63)
    for month, month_totals in months.items():
        lines.append(
            f"{month:<10} {month_totals.entry_count:>7} {month_totals.gross:>14,.2f} "
            f"{month_totals.tax_withheld:>14,.2f} {month_totals.net:>14,.2f}"
        )
    lines.append("-" * 63)
    lines.append(
        f"{'Total':<10} {totals.entry_count:>7} {totals.gross:>14,.2f} "
        f"{totals.tax_withheld:>14,.2f} {totals.net:>14,.2f}"
    )

    if summary.estimate is None:
        lines.append("")
        lines.append("No gross income recorded; nothing to estimate.")
        return "\n".join(lines)

    lines.append("")
    lines.append(format_estimate_text(summary.estimate, currency))
    lines.append("")
    lines.append(f"{'Tax withheld':<28} {totals.tax_withheld:>14,.2f} {currency}")

    diff = summary.difference
    if summary.status == "overpaid":
        line = f"{'Overpaid (refund expected)':<28} {diff:>14,} {currency}"
        lines.append(click.style(line, fg="green"))
    elif summary.status == "underpaid":
        line = f"{'Underpaid (amount owed)':<28} {-diff:>14,} {currency}"
        lines.append(click.style(line, fg="red"))
    else:
        lines.append("Withholding matches the estimate.")

    return "\n".join(lines)


@cli.command("history")
@click.argument("year", required=False)
@click.option("--schedule", "schedule_name", help=SCHEDULE_HELP)
@click.option("--format", "output_format", type=click.Choice(["text", "json"]),
              default="text", help="Output format.")
def history(year: Optional[str], schedule_name: Optional[str], output_format: str):
    """Show a year's totals and withheld vs. estimated tax.

    YEAR defaults to the most recent year with entries. The estimate is
    approximate and informational only.

    \b
    Examples:
      paylog history
      paylog history 2024 --schedule no-2024-trinnskatt
    """
    if year and (not year.isdigit() or len(year) != 4):
        raise click.BadParameter(f"Invalid year '{year}'. Must be 4 digits.")

    all_entries = entries.list_entries()
    if not all_entries:
        raise click.ClickException(
            "No entries recorded. Run 'paylog entries add' or 'paylog entries import-xml' first."
        )

    years = available_years(all_entries)
    year_int = int(year) if year else years[0]
    year_entries = [e for e in all_entries if e.year == year_int]
    if not year_entries:
        available = ", ".join(str(y) for y in years)
        raise click.ClickException(f"No entries for {year_int}. Years with entries: {available}")

    schedule = load_schedule_or_fail(schedule_name)
    if schedule.year != year_int:
        click.echo(
            click.style(
                f"Note: schedule '{schedule.name}' is for {schedule.year}, entries are from {year_int}.",
                fg="yellow",
            ),
            err=True,
        )

    summary = summarize_year(year_entries, year_int, schedule)
    months = monthly_totals(year_entries)

    if output_format == "json":
        data = summary.to_dict()
        data["schedule"] = schedule.name
        data["months"] = {
            month: {
                "entry_count": t.entry_count,
                "gross": round(t.gross, 2),
                "net": round(t.net, 2),
                "tax_withheld": round(t.tax_withheld, 2),
            }
            for month, t in months.items()
        }
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"HISTORY {year_int} ({schedule.name})")
    click.echo("=" * 63)
    click.echo(_format_history_text(summary, months, schedule.currency))


def main():
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
