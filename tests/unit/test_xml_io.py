"""Tests for XML import/export of salary entries."""

from datetime import date

import pytest

from paylog.sdk.schemas import SalaryEntry
from paylog.sdk.xml_io import (
    MAX_REPORTED_ERRORS,
    XmlImportError,
    default_export_filename,
    export_entries_xml,
    parse_entries_xml,
    read_entries_xml,
    write_entries_xml,
)


def make_entry(entry_date="2024-01-25", company="Acme AS", source=None, gross=52000.0):
    return SalaryEntry(
        id="abcd1234",
        date=entry_date,
        gross_salary=gross,
        net_salary=38000.0,
        tax_withheld=14000.0,
        company_name=company,
        source_file_name=source,
    )


def xml_doc(*entries: str, root: str = "SalaryEntries") -> str:
    return f"<?xml version='1.0'?><{root}>{''.join(entries)}</{root}>"


def xml_entry(entry_date="2024-01-25", gross="52000", net="38000", tax="14000", extra=""):
    parts = []
    if entry_date is not None:
        parts.append(f"<Date>{entry_date}</Date>")
    if gross is not None:
        parts.append(f"<GrossSalary>{gross}</GrossSalary>")
    parts.append(f"<NetSalary>{net}</NetSalary>")
    parts.append(f"<TaxWithheld>{tax}</TaxWithheld>")
    return f"<Entry>{''.join(parts)}{extra}</Entry>"


class TestExport:

    def test_sorted_oldest_first(self):
        xml = export_entries_xml([
            make_entry("2024-03-25"),
            make_entry("2024-01-25"),
            make_entry("2024-02-25"),
        ])

        positions = [xml.index(d) for d in ("2024-01-25", "2024-02-25", "2024-03-25")]
        assert positions == sorted(positions)

    def test_document_shape(self):
        xml = export_entries_xml([make_entry(source="jan.pdf")])

        assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
        assert "<SalaryEntries>" in xml
        assert "<GrossSalary>52000</GrossSalary>" in xml
        assert "<CompanyName>Acme AS</CompanyName>" in xml
        assert "<SourceFileName>jan.pdf</SourceFileName>" in xml
        assert "abcd1234" not in xml

    def test_optional_tags_omitted(self):
        xml = export_entries_xml([make_entry(company=None)])

        assert "CompanyName" not in xml
        assert "SourceFileName" not in xml

    def test_fractional_amounts_kept(self):
        xml = export_entries_xml([make_entry(gross=52000.5)])

        assert "<GrossSalary>52000.5</GrossSalary>" in xml

    def test_text_escaped(self):
        xml = export_entries_xml([make_entry(company="Berg & Sønn <AS>")])

        assert "Berg &amp; Sønn &lt;AS&gt;" in xml
        parsed = parse_entries_xml(xml.encode("utf-8"))
        assert parsed[0].company_name == "Berg & Sønn <AS>"

    def test_export_then_parse(self):
        original = [make_entry("2024-01-25", source="jan.pdf"), make_entry("2024-02-25", company=None)]

        parsed = parse_entries_xml(export_entries_xml(original).encode("utf-8"))

        assert [e.model_dump(exclude={"id"}) for e in parsed] == [e.model_dump(exclude={"id"}) for e in original]
        assert all(e.id is None for e in parsed)

    def test_default_filename(self):
        assert default_export_filename(date(2024, 5, 17)) == "salary-entries-2024-05-17.xml"

    def test_write_to_directory(self, tmp_path):
        path = write_entries_xml([make_entry()], tmp_path)

        assert path.parent == tmp_path
        assert path.name.startswith("salary-entries-")
        assert path.suffix == ".xml"
        assert len(read_entries_xml(path)) == 1

    def test_write_to_file(self, tmp_path):
        target = tmp_path / "backup.xml"

        path = write_entries_xml([make_entry()], target)

        assert path == target
        assert target.exists()


class TestParse:

    def test_valid_entries(self):
        parsed = parse_entries_xml(xml_doc(
            xml_entry("2024-01-25", extra="<CompanyName> Acme AS </CompanyName>"),
            xml_entry("2024-02-25", gross="52000.75"),
        ))

        assert len(parsed) == 2
        assert parsed[0].company_name == "Acme AS"
        assert parsed[0].source_file_name is None
        assert parsed[1].gross_salary == 52000.75

    def test_malformed_xml(self):
        with pytest.raises(XmlImportError, match="Error parsing XML"):
            parse_entries_xml("<SalaryEntries><Entry>")

    def test_wrong_root(self):
        with pytest.raises(XmlImportError, match="Wrong file format"):
            parse_entries_xml(xml_doc(xml_entry(), root="Payslips"))

    def test_empty_document(self):
        assert parse_entries_xml(xml_doc()) == []

    def test_bad_entries_skipped(self):
        parsed = parse_entries_xml(xml_doc(
            xml_entry("2024-01-25"),
            xml_entry(gross=None),
            xml_entry("25.01.2024"),
            xml_entry("2024-03-25", tax="a lot"),
        ))

        assert [e.date for e in parsed] == ["2024-01-25"]

    def test_impossible_date_skipped(self):
        parsed = parse_entries_xml(xml_doc(xml_entry("2024-02-30"), xml_entry("2024-02-29")))

        assert [e.date for e in parsed] == ["2024-02-29"]

    def test_nothing_valid_raises_with_errors(self):
        with pytest.raises(XmlImportError) as exc:
            parse_entries_xml(xml_doc(xml_entry(entry_date=None), xml_entry("2024/01/25")))

        message = str(exc.value)
        assert "no entries were imported" in message
        assert "Entry #1: missing one of the required fields" in message
        assert "Entry #2: invalid date '2024/01/25'" in message
        assert len(exc.value.errors) == 2

    def test_error_list_truncated(self):
        bad = [xml_entry(gross="x") for _ in range(MAX_REPORTED_ERRORS + 2)]

        with pytest.raises(XmlImportError) as exc:
            parse_entries_xml(xml_doc(*bad))

        message = str(exc.value)
        assert message.count("- Entry #") == MAX_REPORTED_ERRORS
        assert message.endswith("\n...")
        assert len(exc.value.errors) == MAX_REPORTED_ERRORS + 2

    def test_read_missing_file(self, tmp_path):
        with pytest.raises(XmlImportError, match="Cannot read file"):
            read_entries_xml(tmp_path / "missing.xml")
