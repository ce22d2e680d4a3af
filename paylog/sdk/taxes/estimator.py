"""Approximate income tax estimate for a year-to-date gross income.

The estimate is informational only. It applies one TaxSchedule (a fixed
year's brackets plus optional flat components) to a single gross figure;
there are no credits, municipalities or special cases.
"""

from .schemas import BracketTax, TaxCalculationResult, TaxDetails, TaxSchedule


def round_to_unit(amount: float) -> int:
    """Round to the nearest whole currency unit (0.50 rounds up)."""
    return int(amount + 0.5) if amount >= 0 else int(amount - 0.5)


def calculate_bracket_tax(income: float, schedule: TaxSchedule) -> tuple[float, list[tuple]]:
    """Apply the marginal bands to income.

    Returns:
        Tuple of (unrounded total, [(band, taxable_in_band, tax_in_band), ...])
        where only bands with a non-zero contribution are listed.
    """
    total = 0.0
    contributions = []

    for band in schedule.bands:
        if income <= band.lower:
            break
        taxable = min(income, band.upper) - band.lower
        tax = taxable * band.rate
        if tax > 0:
            total += tax
            contributions.append((band, taxable, tax))

    return total, contributions


def estimate(gross_income: float, schedule: TaxSchedule) -> TaxCalculationResult:
    """Estimate the tax liability for gross_income under schedule.

    Non-positive income yields a zero result. Each output field is rounded
    once, after its own sum.
    """
    if gross_income <= 0:
        return TaxCalculationResult(schedule=schedule.name, total_tax=0, details=TaxDetails())

    social_security = gross_income * schedule.social_security_rate

    standard_deduction = min(
        gross_income * schedule.standard_deduction_rate,
        schedule.standard_deduction_max,
    )
    general_taxable = 0.0
    if schedule.general_tax_rate > 0:
        general_taxable = max(0.0, gross_income - standard_deduction - schedule.personal_allowance)
    general_tax = general_taxable * schedule.general_tax_rate

    progressive_tax, contributions = calculate_bracket_tax(gross_income, schedule)

    breakdown = tuple(
        BracketTax(
            label=band.label,
            rate=band.rate,
            taxable_amount=round_to_unit(taxable),
            tax=round_to_unit(tax),
        )
        for band, taxable, tax in contributions
    )

    total = social_security + general_tax + progressive_tax

    return TaxCalculationResult(
        schedule=schedule.name,
        total_tax=round_to_unit(total),
        details=TaxDetails(
            gross_income=gross_income,
            social_security=round_to_unit(social_security),
            general_taxable_income=round_to_unit(general_taxable),
            general_tax=round_to_unit(general_tax),
            progressive_tax=round_to_unit(progressive_tax),
            bracket_breakdown=breakdown,
        ),
    )


class TaxEstimator:
    """Estimator bound to one schedule."""

    def __init__(self, schedule: TaxSchedule):
        self.schedule = schedule

    def estimate(self, gross_income: float) -> TaxCalculationResult:
        return estimate(gross_income, self.schedule)

    def __repr__(self) -> str:
        return f"TaxEstimator({self.schedule.name!r})"
