"""Tests for the entries CLI commands."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from paylog.cli.entries_commands import entries_cli
from paylog.sdk import entries
from paylog.sdk.schemas import ParsedPayslip


@pytest.fixture
def isolated_data(tmp_path, monkeypatch):
    """Set up isolated config and data directories."""
    config_dir = tmp_path / "config"
    data_dir = tmp_path / "data"
    config_dir.mkdir()
    data_dir.mkdir()

    monkeypatch.setenv("PAYLOG_CONFIG_PATH", str(config_dir))
    (config_dir / "settings.json").write_text(json.dumps({"data_dir": str(data_dir)}))

    return {"config_dir": config_dir, "data_dir": data_dir, "tmp_path": tmp_path}


def add(entry_date="2024-01-25", gross=52000.0, net=38000.0, tax=14000.0, company="Acme AS"):
    return entries.add_entry({
        "date": entry_date,
        "gross_salary": gross,
        "net_salary": net,
        "tax_withheld": tax,
        "company_name": company,
    })


SAMPLE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<SalaryEntries>
  <Entry>
    <Date>2024-01-25</Date>
    <CompanyName>Acme AS</CompanyName>
    <GrossSalary>52000</GrossSalary>
    <NetSalary>38000</NetSalary>
    <TaxWithheld>14000</TaxWithheld>
  </Entry>
  <Entry>
    <Date>2024-02-25</Date>
    <GrossSalary>52000</GrossSalary>
    <NetSalary>38000</NetSalary>
    <TaxWithheld>14000</TaxWithheld>
  </Entry>
</SalaryEntries>
"""


class TestEntriesAdd:

    def test_add(self, isolated_data):
        runner = CliRunner()

        result = runner.invoke(entries_cli, [
            "add", "--date", "2024-01-25", "--gross", "52000", "--net", "38000",
            "--tax", "14000", "--company", "Acme AS",
        ])

        assert result.exit_code == 0, result.output
        assert "Added entry" in result.output
        assert len(entries.list_entries()) == 1

    def test_add_invalid_date(self, isolated_data):
        runner = CliRunner()

        result = runner.invoke(entries_cli, [
            "add", "--date", "25.01.2024", "--gross", "52000", "--net", "38000", "--tax", "14000",
        ])

        assert result.exit_code == 1
        assert "Invalid entry" in result.output
        assert entries.list_entries() == []

    def test_add_shows_warning(self, isolated_data):
        runner = CliRunner()

        result = runner.invoke(entries_cli, [
            "add", "--date", "2024-01-25", "--gross", "30000", "--net", "38000", "--tax", "0",
        ])

        assert result.exit_code == 0
        assert "net_salary" in result.output

    @pytest.mark.parametrize("option", ["--gross", "--net", "--tax"])
    def test_add_non_finite_amount_rejected(self, isolated_data, option):
        args = {"--gross": "52000", "--net": "38000", "--tax": "14000"}
        args[option] = "nan"
        cmd = ["add", "--date", "2024-01-25"]
        for name, value in args.items():
            cmd += [name, value]

        result = CliRunner().invoke(entries_cli, cmd)

        assert result.exit_code == 2
        assert "not a finite number" in result.output
        assert entries.list_entries() == []


class TestEntriesList:

    def test_empty(self, isolated_data):
        result = CliRunner().invoke(entries_cli, ["list"])

        assert result.exit_code == 0
        assert "No entries found" in result.output

    def test_table(self, isolated_data):
        entry = add()

        result = CliRunner().invoke(entries_cli, ["list"])

        assert result.exit_code == 0
        assert entry.id in result.output
        assert "52,000.00" in result.output
        assert "Total: 1 entry" in result.output

    def test_count_with_year(self, isolated_data):
        add("2023-12-25")
        add("2024-01-25")
        add("2024-02-25")

        result = CliRunner().invoke(entries_cli, ["list", "2024", "--count"])

        assert result.output.strip() == "2"

    def test_company_filter(self, isolated_data):
        add("2024-01-25", company="Acme AS")
        add("2024-02-25", company="Fjord Consulting")

        result = CliRunner().invoke(entries_cli, ["list", "--company", "fjord", "--count"])

        assert result.output.strip() == "1"

    def test_json(self, isolated_data):
        entry = add()

        result = CliRunner().invoke(entries_cli, ["list", "--format", "json"])

        data = json.loads(result.output)
        assert data[0]["id"] == entry.id
        assert data[0]["gross_salary"] == 52000.0

    def test_invalid_year(self, isolated_data):
        result = CliRunner().invoke(entries_cli, ["list", "24"])

        assert result.exit_code == 2
        assert "Must be 4 digits" in result.output


class TestEntriesShowUpdateRemove:

    def test_show(self, isolated_data):
        entry = add()

        result = CliRunner().invoke(entries_cli, ["show", entry.id])

        assert result.exit_code == 0
        assert "Acme AS" in result.output
        assert "manual" in result.output

    def test_show_missing(self, isolated_data):
        result = CliRunner().invoke(entries_cli, ["show", "deadbeef"])

        assert result.exit_code == 1
        assert "Entry not found" in result.output

    def test_update(self, isolated_data):
        entry = add()

        result = CliRunner().invoke(entries_cli, ["update", entry.id, "--gross", "55000"])

        assert result.exit_code == 0
        assert entries.get_entry(entry.id).gross_salary == 55000.0

    def test_update_infinite_amount_rejected(self, isolated_data):
        entry = add()

        result = CliRunner().invoke(entries_cli, ["update", entry.id, "--tax", "inf"])

        assert result.exit_code == 2
        assert "not a finite number" in result.output
        assert entries.get_entry(entry.id).tax_withheld == 14000.0

    def test_update_without_fields(self, isolated_data):
        entry = add()

        result = CliRunner().invoke(entries_cli, ["update", entry.id])

        assert result.exit_code == 2
        assert "Nothing to update" in result.output

    def test_update_missing(self, isolated_data):
        result = CliRunner().invoke(entries_cli, ["update", "deadbeef", "--gross", "1"])

        assert result.exit_code == 1

    def test_remove(self, isolated_data):
        entry = add()

        result = CliRunner().invoke(entries_cli, ["remove", entry.id])

        assert result.exit_code == 0
        assert entries.list_entries() == []

    def test_remove_missing(self, isolated_data):
        result = CliRunner().invoke(entries_cli, ["remove", "deadbeef"])

        assert result.exit_code == 1


class TestEntriesClear:

    def test_clear_force(self, isolated_data):
        add("2024-01-25")
        add("2024-02-25")

        result = CliRunner().invoke(entries_cli, ["clear", "--force"])

        assert result.exit_code == 0
        assert "Deleted 2 entries" in result.output
        assert entries.list_entries() == []

    def test_clear_declined(self, isolated_data):
        add()

        result = CliRunner().invoke(entries_cli, ["clear"], input="n\n")

        assert result.exit_code == 1
        assert len(entries.list_entries()) == 1

    def test_clear_nothing(self, isolated_data):
        result = CliRunner().invoke(entries_cli, ["clear", "--force"])

        assert "No entries to delete" in result.output


class TestEntriesXml:

    def test_import_then_reimport(self, isolated_data):
        xml_file = isolated_data["tmp_path"] / "backup.xml"
        xml_file.write_text(SAMPLE_XML, encoding="utf-8")
        runner = CliRunner()

        first = runner.invoke(entries_cli, ["import-xml", str(xml_file)])
        second = runner.invoke(entries_cli, ["import-xml", str(xml_file)])

        assert first.exit_code == 0
        assert "Imported 2 new entries" in first.output
        assert "Imported 0 new entries" in second.output
        assert "Skipped 2" in second.output
        assert len(entries.list_entries()) == 2

    def test_import_wrong_root(self, isolated_data):
        xml_file = isolated_data["tmp_path"] / "other.xml"
        xml_file.write_text("<Payslips></Payslips>")

        result = CliRunner().invoke(entries_cli, ["import-xml", str(xml_file)])

        assert result.exit_code == 1
        assert "Wrong file format" in result.output

    def test_export(self, isolated_data):
        add("2023-12-25")
        add("2024-01-25")
        target = isolated_data["tmp_path"] / "out.xml"

        result = CliRunner().invoke(entries_cli, ["export-xml", str(target), "--year", "2024"])

        assert result.exit_code == 0
        assert "Exported 1 entries" in result.output
        content = target.read_text(encoding="utf-8")
        assert "2024-01-25" in content
        assert "2023-12-25" not in content

    def test_export_nothing(self, isolated_data):
        result = CliRunner().invoke(entries_cli, ["export-xml", str(isolated_data["tmp_path"])])

        assert result.exit_code == 1
        assert "No entries to export" in result.output


class TestEntriesScan:

    @pytest.fixture
    def document(self, isolated_data):
        path = isolated_data["tmp_path"] / "jan.pdf"
        path.write_bytes(b"%PDF-1.4 fake")
        return path

    def test_scan_prints_without_saving(self, isolated_data, document):
        payslip = ParsedPayslip(date="2024-01-25", gross_salary=52000, net_salary=38000,
                                tax_withheld=14000, company_name="Acme AS")

        with patch("paylog.cli.entries_commands.scan_payslips", return_value=[payslip]):
            result = CliRunner().invoke(entries_cli, ["scan", str(document)])

        assert result.exit_code == 0
        assert "Acme AS" in result.output
        assert entries.list_entries() == []

    def test_scan_save(self, isolated_data, document):
        payslips = [
            ParsedPayslip(date="2024-01-25", gross_salary=52000, net_salary=38000, tax_withheld=14000),
            ParsedPayslip(date="", gross_salary=1000),
        ]

        with patch("paylog.cli.entries_commands.scan_payslips", return_value=payslips):
            result = CliRunner().invoke(entries_cli, ["scan", str(document), "--save"])

        assert result.exit_code == 0
        assert "Saved entry" in result.output
        assert "no pay date found" in result.output

        stored = entries.list_entries()
        assert len(stored) == 1
        assert stored[0].source_file_name == "jan.pdf"
        assert entries.get_entry_record(stored[0].id)["meta"]["source"] == "ocr"

    def test_scan_failure(self, isolated_data, document):
        from paylog.sdk.payslip_ocr import PayslipScanError

        with patch("paylog.cli.entries_commands.scan_payslips", side_effect=PayslipScanError("unreadable")):
            result = CliRunner().invoke(entries_cli, ["scan", str(document)])

        assert result.exit_code == 1
        assert "unreadable" in result.output
