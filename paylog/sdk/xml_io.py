"""XML import/export of salary entries.

Format:

    <?xml version="1.0" encoding="UTF-8"?>
    <SalaryEntries>
      <Entry>
        <Date>2024-01-25</Date>
        <CompanyName>Acme AS</CompanyName>        (optional)
        <GrossSalary>52000</GrossSalary>
        <NetSalary>38000</NetSalary>
        <TaxWithheld>14000</TaxWithheld>
        <SourceFileName>jan.pdf</SourceFileName>  (optional)
      </Entry>
    </SalaryEntries>
"""

import logging
import math
from datetime import date
from pathlib import Path
from typing import Iterable, Optional, Union
from xml.dom import minidom
from xml.etree.ElementTree import Element, ParseError, SubElement, fromstring, tostring

from pydantic import ValidationError as PydanticValidationError

from .schemas import DATE_PATTERN, SalaryEntry

logger = logging.getLogger(__name__)

ROOT_TAG = "SalaryEntries"
ENTRY_TAG = "Entry"
REQUIRED_TAGS = ("Date", "GrossSalary", "NetSalary", "TaxWithheld")

# Only this many per-entry errors are quoted when nothing could be imported
MAX_REPORTED_ERRORS = 5


class XmlImportError(Exception):
    """Raised when an XML file can't be imported."""
    def __init__(self, message: str, errors: Optional[list[str]] = None):
        self.errors = errors or []
        super().__init__(message)


def _format_amount(value: float) -> str:
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return text if text not in ("", "-0") else "0"


def _prettify(element: Element) -> str:
    rough = tostring(element, encoding="utf-8")
    parsed = minidom.parseString(rough)
    return parsed.toprettyxml(indent="  ", encoding="UTF-8").decode("utf-8")


def _build_entry_element(parent: Element, entry: SalaryEntry) -> Element:
    node = SubElement(parent, ENTRY_TAG)
    SubElement(node, "Date").text = entry.date
    if entry.company_name:
        SubElement(node, "CompanyName").text = entry.company_name
    SubElement(node, "GrossSalary").text = _format_amount(entry.gross_salary)
    SubElement(node, "NetSalary").text = _format_amount(entry.net_salary)
    SubElement(node, "TaxWithheld").text = _format_amount(entry.tax_withheld)
    if entry.source_file_name:
        SubElement(node, "SourceFileName").text = entry.source_file_name
    return node


def export_entries_xml(entries: Iterable[SalaryEntry]) -> str:
    """Serialize entries to an XML document, oldest first."""
    root = Element(ROOT_TAG)
    for entry in sorted(entries, key=lambda e: e.date):
        _build_entry_element(root, entry)
    return _prettify(root)


def default_export_filename(today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"salary-entries-{today.isoformat()}.xml"


def write_entries_xml(
    entries: Iterable[SalaryEntry],
    path: Optional[Union[str, Path]] = None,
) -> Path:
    """Write entries to an XML file.

    Args:
        entries: Entries to export
        path: Output file or directory (default: dated file in cwd)

    Returns:
        Path to the written file
    """
    target = Path(path) if path else Path.cwd()
    if target.is_dir():
        target = target / default_export_filename()

    entries = list(entries)
    target.write_text(export_entries_xml(entries), encoding="utf-8")
    logger.info(f"Exported {len(entries)} entries to {target}")
    return target


def _child_text(node: Element, tag: str) -> Optional[str]:
    child = node.find(tag)
    if child is None or child.text is None:
        return None
    text = child.text.strip()
    return text or None


def _parse_number(text: str) -> Optional[float]:
    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def parse_entries_xml(xml_text: Union[str, bytes]) -> list[SalaryEntry]:
    """Parse an XML document into entries (without ids).

    Entries with missing fields, a bad date or non-numeric amounts are
    skipped and logged.

    Raises:
        XmlImportError: If the document is malformed, has the wrong root,
            or contains entries but none of them are valid
    """
    try:
        root = fromstring(xml_text)
    except ParseError as e:
        raise XmlImportError(f"Error parsing XML file: {e}") from e

    if root.tag != ROOT_TAG:
        raise XmlImportError(
            f"Wrong file format: expected root tag <{ROOT_TAG}>, got <{root.tag}>."
        )

    imported = []
    errors = []

    for i, node in enumerate(root.iter(ENTRY_TAG), start=1):
        values = {tag: _child_text(node, tag) for tag in REQUIRED_TAGS}
        if any(value is None for value in values.values()):
            errors.append(
                f"Entry #{i}: missing one of the required fields "
                f"({', '.join(REQUIRED_TAGS)})."
            )
            continue

        entry_date = values["Date"]
        if not DATE_PATTERN.match(entry_date):
            errors.append(f"Entry #{i}: invalid date '{entry_date}'. Required format: YYYY-MM-DD.")
            continue

        gross = _parse_number(values["GrossSalary"])
        net = _parse_number(values["NetSalary"])
        tax = _parse_number(values["TaxWithheld"])
        if gross is None or net is None or tax is None:
            errors.append(
                f"Entry #{i}: one of the values (GrossSalary, NetSalary, TaxWithheld) "
                f"is not a valid number."
            )
            continue

        try:
            entry = SalaryEntry(
                date=entry_date,
                gross_salary=gross,
                net_salary=net,
                tax_withheld=tax,
                company_name=_child_text(node, "CompanyName"),
                source_file_name=_child_text(node, "SourceFileName"),
            )
        except PydanticValidationError as e:
            # Well-formed but impossible dates like 2024-02-30
            errors.append(f"Entry #{i}: {e.errors()[0]['msg']}")
            continue

        imported.append(entry)

    for error in errors:
        logger.warning(error)

    if not imported and errors:
        quoted = "\n- ".join(errors[:MAX_REPORTED_ERRORS])
        more = "\n..." if len(errors) > MAX_REPORTED_ERRORS else ""
        raise XmlImportError(
            f"The file was read, but no entries were imported because of data errors:\n- {quoted}{more}",
            errors=errors,
        )

    return imported


def read_entries_xml(path: Union[str, Path]) -> list[SalaryEntry]:
    """Read and parse an XML file of entries.

    Raises:
        XmlImportError: If the file can't be read or parsed
    """
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise XmlImportError(f"Cannot read file {path}: {e}") from e
    return parse_entries_xml(data)
