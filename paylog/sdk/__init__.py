"""paylog SDK - Core functionality for salary entries and tax estimates."""

from .config import (
    get_config_dir,
    get_settings_path,
    load_settings,
    save_settings,
    get_setting,
    set_setting,
    unset_setting,
    get_data_path,
    KNOWN_SETTINGS,
)

from .schemas import (
    SalaryEntry,
    ParsedPayslip,
    clean_amount,
)

from .taxes import (
    TaxCalculationResult,
    TaxEstimator,
    TaxSchedule,
    TaxScheduleError,
    TaxScheduleNotFoundError,
    estimate,
    list_schedules,
    load_schedule,
    resolve_schedule,
)

from .history import (
    PeriodTotals,
    YearSummary,
    summarize_year,
    monthly_totals,
)

from .xml_io import (
    XmlImportError,
    export_entries_xml,
    parse_entries_xml,
    read_entries_xml,
    write_entries_xml,
)

from .payslip_ocr import (
    PayslipScanError,
    scan_payslip,
    scan_payslips,
)

from . import entries

__all__ = [
    # Config
    "get_config_dir",
    "get_settings_path",
    "load_settings",
    "save_settings",
    "get_setting",
    "set_setting",
    "unset_setting",
    "get_data_path",
    "KNOWN_SETTINGS",
    # Schemas
    "SalaryEntry",
    "ParsedPayslip",
    "clean_amount",
    # Tax
    "TaxCalculationResult",
    "TaxEstimator",
    "TaxSchedule",
    "TaxScheduleError",
    "TaxScheduleNotFoundError",
    "estimate",
    "list_schedules",
    "load_schedule",
    "resolve_schedule",
    # History
    "PeriodTotals",
    "YearSummary",
    "summarize_year",
    "monthly_totals",
    # XML
    "XmlImportError",
    "export_entries_xml",
    "parse_entries_xml",
    "read_entries_xml",
    "write_entries_xml",
    # OCR
    "PayslipScanError",
    "scan_payslip",
    "scan_payslips",
    # Entries module
    "entries",
]
