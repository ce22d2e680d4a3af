"""Entries command group for salary entry management."""

import json
from typing import Optional

import click

from paylog.cli.params import AMOUNT
from paylog.sdk import entries
from paylog.sdk.payslip_ocr import PayslipScanError, scan_payslips
from paylog.sdk.schemas import SalaryEntry
from paylog.sdk.xml_io import XmlImportError, read_entries_xml, write_entries_xml


def format_entry_row(entry: SalaryEntry) -> str:
    """Format an entry as a table row."""
    company = (entry.company_name or "")[:21]
    return (
        f"{entry.id or '':<10} {entry.date:<12} {company:<21} "
        f"{entry.gross_salary:>12,.2f} {entry.tax_withheld:>12,.2f} {entry.net_salary:>12,.2f}"
    )


TABLE_HEADER = f"{'ID':<10} {'DATE':<12} {'COMPANY':<21} {'GROSS':>12} {'TAX':>12} {'NET':>12}"
TABLE_WIDTH = len(TABLE_HEADER)


def _echo_warnings(warnings: list) -> None:
    for warning in warnings:
        click.echo(click.style(f"  ⚠ {warning}", fg="yellow"))


def _parse_year(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    if not value.isdigit() or len(value) != 4:
        raise click.BadParameter(f"Invalid year '{value}'. Must be 4 digits.")
    return int(value)


@click.group()
def entries_cli():
    """Manage salary entries (one per payslip).

    Entries are stored in ~/.local/share/paylog/entries/<year>/.

    \b
    Examples:
      paylog entries list                 # All entries
      paylog entries list 2024            # 2024 only
      paylog entries add --date 2024-01-25 --gross 52000 --net 38000 --tax 14000
      paylog entries scan ./lonnsslipp.pdf --save
      paylog entries import-xml ./backup.xml
      paylog entries remove abc12345
    """
    pass


@entries_cli.command("list")
@click.argument("year", required=False)
@click.option("--company", help="Filter by company (case-insensitive substring match).")
@click.option("--format", "output_format", type=click.Choice(["text", "json"]),
              default="text", help="Output format.")
@click.option("--count", is_flag=True, help="Only print the number of matching entries.")
def entries_list(year: Optional[str], company: Optional[str], output_format: str, count: bool):
    """List salary entries, oldest first.

    \b
    Examples:
      paylog entries list
      paylog entries list 2024 --company "Acme"
      paylog entries list --format json
    """
    year_int = _parse_year(year)
    found = entries.list_entries(year=year_int, company=company)

    if count:
        click.echo(str(len(found)))
        return

    if output_format == "json":
        click.echo(json.dumps([e.model_dump() for e in found], indent=2))
        return

    if not found:
        desc = "/".join(filter(None, [year, f"company={company}" if company else None])) or "any filters"
        click.echo(f"No entries found for {desc}")
        click.echo("\nRun 'paylog entries add' or 'paylog entries import-xml' to add entries.")
        return

    click.echo(TABLE_HEADER)
    click.echo("-" * TABLE_WIDTH)
    for entry in found:
        click.echo(format_entry_row(entry))
    click.echo("-" * TABLE_WIDTH)
    click.echo(f"Total: {len(found)} entr{'y' if len(found) == 1 else 'ies'}")


@entries_cli.command("show")
@click.argument("entry_id")
@click.option("--format", "output_format", type=click.Choice(["text", "json"]),
              default="text", help="Output format.")
def entries_show(entry_id: str, output_format: str):
    """Show one entry with its metadata."""
    record = entries.get_entry_record(entry_id)
    if record is None:
        raise click.ClickException(f"Entry not found: {entry_id}")

    if output_format == "json":
        click.echo(json.dumps({"id": record["id"], "meta": record.get("meta"), "data": record.get("data")}, indent=2))
        return

    data = record.get("data") or {}
    meta = record.get("meta") or {}
    click.echo(f"Entry {record['id']}")
    click.echo(f"  Date:          {data.get('date')}")
    click.echo(f"  Company:       {data.get('company_name') or '-'}")
    click.echo(f"  Gross salary:  {data.get('gross_salary', 0):,.2f}")
    click.echo(f"  Tax withheld:  {data.get('tax_withheld', 0):,.2f}")
    click.echo(f"  Net salary:    {data.get('net_salary', 0):,.2f}")
    if data.get("source_file_name"):
        click.echo(f"  Source file:   {data['source_file_name']}")
    click.echo(f"  Source:        {meta.get('source', 'unknown')}")
    click.echo(f"  Imported at:   {meta.get('imported_at', 'unknown')}")
    if meta.get("updated_at"):
        click.echo(f"  Updated at:    {meta['updated_at']}")
    _echo_warnings(meta.get("warnings", []))


@entries_cli.command("add")
@click.option("--date", "entry_date", required=True, help="Pay date (YYYY-MM-DD).")
@click.option("--gross", type=AMOUNT, required=True, help="Gross salary.")
@click.option("--net", type=AMOUNT, required=True, help="Net salary paid out.")
@click.option("--tax", type=AMOUNT, required=True, help="Tax withheld.")
@click.option("--company", help="Company name.")
@click.option("--source-file", help="Name of the payslip file.")
def entries_add(entry_date, gross, net, tax, company, source_file):
    """Add a salary entry."""
    try:
        entry = entries.add_entry({
            "date": entry_date,
            "gross_salary": gross,
            "net_salary": net,
            "tax_withheld": tax,
            "company_name": company,
            "source_file_name": source_file,
        })
    except entries.ValidationError as e:
        raise click.ClickException("Invalid entry:\n  " + "\n  ".join(e.errors))

    click.echo(f"Added entry {entry.id} ({entry.date})")
    _echo_warnings(entries.entry_warnings(entry))


@entries_cli.command("update")
@click.argument("entry_id")
@click.option("--date", "entry_date", help="Pay date (YYYY-MM-DD).")
@click.option("--gross", type=AMOUNT, help="Gross salary.")
@click.option("--net", type=AMOUNT, help="Net salary paid out.")
@click.option("--tax", type=AMOUNT, help="Tax withheld.")
@click.option("--company", help="Company name (empty string clears it).")
@click.option("--source-file", help="Name of the payslip file (empty string clears it).")
def entries_update(entry_id, entry_date, gross, net, tax, company, source_file):
    """Change fields of an existing entry."""
    changes = {
        "date": entry_date,
        "gross_salary": gross,
        "net_salary": net,
        "tax_withheld": tax,
        "company_name": company,
        "source_file_name": source_file,
    }
    changes = {k: v for k, v in changes.items() if v is not None}
    if not changes:
        raise click.UsageError("Nothing to update. Pass at least one field option.")

    try:
        entry = entries.update_entry(entry_id, changes)
    except entries.EntryNotFoundError as e:
        raise click.ClickException(str(e))
    except entries.ValidationError as e:
        raise click.ClickException("Invalid entry:\n  " + "\n  ".join(e.errors))

    click.echo(f"Updated entry {entry.id} ({entry.date})")
    _echo_warnings(entries.entry_warnings(entry))


@entries_cli.command("remove")
@click.argument("entry_id")
def entries_remove(entry_id: str):
    """Delete an entry by ID."""
    if not entries.remove_entry(entry_id):
        raise click.ClickException(f"Entry not found: {entry_id}")
    click.echo(f"Removed entry {entry_id}")


@entries_cli.command("clear")
@click.option("--force", is_flag=True, help="Skip confirmation prompt.")
def entries_clear(force: bool):
    """Delete ALL entries."""
    total = len(entries.list_entries())
    if total == 0:
        click.echo("No entries to delete.")
        return

    if not force:
        click.confirm(f"Delete all {total} entries? This cannot be undone.", abort=True)

    count = entries.clear_entries()
    click.echo(f"Deleted {count} entries.")


@entries_cli.command("import-xml")
@click.argument("xml_file", type=click.Path(exists=True, dir_okay=False))
def entries_import_xml(xml_file: str):
    """Import entries from an XML file.

    Entries whose pay date is already recorded are skipped.
    """
    try:
        parsed = read_entries_xml(xml_file)
    except XmlImportError as e:
        raise click.ClickException(str(e))

    result = entries.import_entries(parsed, source="xml")

    click.echo(f"Imported {result.added_count} new entr{'y' if result.added_count == 1 else 'ies'} from {xml_file}")
    if result.skipped_count:
        click.echo(f"Skipped {result.skipped_count} already recorded date(s).")
    for error in result.errors:
        click.echo(click.style(f"  ✗ {error}", fg="red"))


@entries_cli.command("export-xml")
@click.argument("output", required=False, type=click.Path())
@click.option("--year", help="Only export entries from this year.")
def entries_export_xml(output: Optional[str], year: Optional[str]):
    """Export entries to an XML file.

    OUTPUT is a file or directory (default: salary-entries-<today>.xml in
    the current directory).
    """
    found = entries.list_entries(year=_parse_year(year))
    if not found:
        raise click.ClickException("No entries to export.")

    path = write_entries_xml(found, output)
    click.echo(f"Exported {len(found)} entries to {path}")


@entries_cli.command("scan")
@click.argument("document", type=click.Path(exists=True, dir_okay=False))
@click.option("--save", is_flag=True, help="Store the scanned payslips as entries.")
@click.option("--format", "output_format", type=click.Choice(["text", "json"]),
              default="text", help="Output format.")
def entries_scan(document: str, save: bool, output_format: str):
    """Read a payslip PDF or image with Gemini OCR.

    Multi-page PDFs are scanned one page at a time. Without --save the
    extracted values are only printed, for review.
    """
    try:
        payslips = scan_payslips(document)
    except PayslipScanError as e:
        raise click.ClickException(str(e))

    if output_format == "json":
        click.echo(json.dumps([p.model_dump() for p in payslips], indent=2))
    else:
        for i, payslip in enumerate(payslips, start=1):
            click.echo(f"Payslip {i}:")
            click.echo(f"  Date:          {payslip.date or '(not found)'}")
            click.echo(f"  Company:       {payslip.company_name or '(not found)'}")
            click.echo(f"  Gross salary:  {payslip.gross_salary:,.2f}")
            click.echo(f"  Tax withheld:  {payslip.tax_withheld:,.2f}")
            click.echo(f"  Net salary:    {payslip.net_salary:,.2f}")

    if not save:
        return

    source_name = click.format_filename(document, shorten=True)
    to_import = []
    for i, payslip in enumerate(payslips, start=1):
        if not payslip.date:
            click.echo(click.style(f"  ✗ Payslip {i}: no pay date found, not saved", fg="red"))
            continue
        to_import.append(payslip.to_entry_data(source_file_name=source_name))

    result = entries.import_entries(to_import, source="ocr")
    for entry in result.added:
        click.echo(f"Saved entry {entry.id} ({entry.date})")
    for entry in result.skipped:
        click.echo(f"  - {entry.date} already recorded, not saved")
    for error in result.errors:
        click.echo(click.style(f"  ✗ {error}", fg="red"))
