"""Per-year history: totals and withheld-vs-estimated tax comparison.

Shared logic behind the `history` command.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from .schemas import SalaryEntry
from .taxes import TaxCalculationResult, TaxSchedule, estimate, round_to_unit


@dataclass
class PeriodTotals:
    """Summed amounts for a set of entries."""

    gross: float = 0.0
    net: float = 0.0
    tax_withheld: float = 0.0
    entry_count: int = 0

    def add(self, entry: SalaryEntry) -> None:
        self.gross += entry.gross_salary
        self.net += entry.net_salary
        self.tax_withheld += entry.tax_withheld
        self.entry_count += 1


@dataclass
class YearSummary:
    """Totals for one year and how withholding compares to the estimate."""

    year: int
    totals: PeriodTotals
    estimate: Optional[TaxCalculationResult]

    @property
    def difference(self) -> Optional[int]:
        """Withheld minus estimated; positive means overpaid."""
        if self.estimate is None:
            return None
        return round_to_unit(self.totals.tax_withheld) - self.estimate.total_tax

    @property
    def status(self) -> str:
        diff = self.difference
        if diff is None:
            return "no income"
        if diff > 0:
            return "overpaid"
        if diff < 0:
            return "underpaid"
        return "even"

    def to_dict(self) -> dict:
        return {
            "year": self.year,
            "entry_count": self.totals.entry_count,
            "gross": round(self.totals.gross, 2),
            "net": round(self.totals.net, 2),
            "tax_withheld": round(self.totals.tax_withheld, 2),
            "estimate": self.estimate.model_dump() if self.estimate else None,
            "difference": self.difference,
            "status": self.status,
        }


def year_totals(entries: Iterable[SalaryEntry], year: int) -> PeriodTotals:
    totals = PeriodTotals()
    for entry in entries:
        if entry.year == year:
            totals.add(entry)
    return totals


def summarize_year(
    entries: Iterable[SalaryEntry],
    year: int,
    schedule: TaxSchedule,
) -> YearSummary:
    """Sum a year's entries and estimate tax on the summed gross.

    No estimate is made when the year has no gross income.
    """
    totals = year_totals(entries, year)
    result = estimate(totals.gross, schedule) if totals.gross else None
    return YearSummary(year=year, totals=totals, estimate=result)


def monthly_totals(entries: Iterable[SalaryEntry]) -> Dict[str, PeriodTotals]:
    """Totals per YYYY-MM, in date order."""
    months: Dict[str, PeriodTotals] = OrderedDict()
    for entry in sorted(entries, key=lambda e: e.date):
        months.setdefault(entry.month, PeriodTotals()).add(entry)
    return months


def available_years(entries: Iterable[SalaryEntry]) -> List[int]:
    """Distinct years, newest first."""
    return sorted({entry.year for entry in entries}, reverse=True)
