"""Pydantic schemas for salary entries and scanned payslips.

SalaryEntry uses extra='forbid' so a misspelled field in a stored record or
an import causes a clear error rather than silent ignoring.
"""

import math
import re
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DATE_FORMAT = "%Y-%m-%d"
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_CURRENCY_TOKENS = re.compile(r"(?i)(nok|kr)\.?|[\s\u00a0]")


def clean_amount(value: Any) -> Any:
    """Turn a payslip amount like "45 000,50 kr" into 45000.5.

    Numbers pass through unchanged; anything that isn't a string is left
    for the model to reject.
    """
    if not isinstance(value, str):
        return value

    text = _CURRENCY_TOKENS.sub("", value)
    if not text:
        return 0.0

    if "," in text and "." in text:
        # The rightmost separator is the decimal one
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        head, _, tail = text.rpartition(",")
        if len(tail) in (1, 2) and text.count(",") == 1:
            text = f"{head}.{tail}"
        else:
            text = text.replace(",", "")
    elif text.count(".") > 1 or re.search(r"\.\d{3}$", text):
        # "45.000" and "1.250.000" use '.' for thousands
        text = text.replace(".", "")

    return float(text)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class SalaryEntry(BaseModel):
    """One payslip: what was earned, paid out and withheld."""

    model_config = ConfigDict(extra="forbid")

    id: Optional[str] = Field(default=None, description="Content ID, assigned when stored")
    date: str = Field(..., description="Pay date (YYYY-MM-DD)")
    gross_salary: float = Field(..., description="Gross salary (brutto lønn)")
    net_salary: float = Field(..., description="Net salary paid out (netto utbetalt)")
    tax_withheld: float = Field(..., description="Tax withheld (forskuddstrekk)")
    company_name: Optional[str] = Field(default=None, description="Employer (arbeidsgiver)")
    source_file_name: Optional[str] = Field(default=None, description="Payslip file name")

    @field_validator("date", mode="before")
    @classmethod
    def check_date(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip()
            if not DATE_PATTERN.match(value):
                raise ValueError(f"not in YYYY-MM-DD format: {value!r}")
            datetime.strptime(value, DATE_FORMAT)
        return value

    @field_validator("gross_salary", "net_salary", "tax_withheld")
    @classmethod
    def check_finite(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("must be a finite number")
        return value

    @field_validator("company_name", "source_file_name", mode="before")
    @classmethod
    def strip_optional(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @property
    def year(self) -> int:
        return int(self.date[:4])

    @property
    def month(self) -> str:
        """YYYY-MM of the pay date."""
        return self.date[:7]


class ParsedPayslip(BaseModel):
    """Fields read off a payslip document by OCR.

    Missing values come back as 0 / empty string, as the prompt instructs;
    the date may be empty when the document shows none.
    """

    model_config = ConfigDict(extra="ignore")

    date: str = ""
    gross_salary: float = 0
    net_salary: float = 0
    tax_withheld: float = 0
    company_name: str = ""

    @field_validator("date", mode="before")
    @classmethod
    def check_date(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, str):
            value = value.strip()
            if value and not DATE_PATTERN.match(value):
                raise ValueError(f"not in YYYY-MM-DD format: {value!r}")
        return value

    @field_validator("gross_salary", "net_salary", "tax_withheld", mode="before")
    @classmethod
    def clean_numbers(cls, value: Any) -> Any:
        if value is None:
            return 0.0
        return clean_amount(value)

    @field_validator("company_name", mode="before")
    @classmethod
    def clean_company(cls, value: Any) -> Any:
        return (value or "").strip() if isinstance(value, (str, type(None))) else value

    def to_entry_data(self, source_file_name: Optional[str] = None) -> dict:
        """Entry fields for entries.add_entry / import_entries (validated there)."""
        return {
            "date": self.date,
            "gross_salary": self.gross_salary,
            "net_salary": self.net_salary,
            "tax_withheld": self.tax_withheld,
            "company_name": self.company_name or None,
            "source_file_name": source_file_name,
        }
