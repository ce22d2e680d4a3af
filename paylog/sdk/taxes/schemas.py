"""Pydantic schemas for tax schedules and estimate results.

These schemas validate the tax_rules/*.yaml files and carry the output of
the estimator. All models are frozen: a schedule is loaded once and then
only read.
"""

import math
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


# Tolerance for a cumulative 'base' that doesn't match the bands below it
BASE_TOLERANCE = 1.0


class TaxBracket(BaseModel):
    """Single bracket rule.

    Two forms are accepted:
    - up_to + rate: rate applies between the previous threshold and up_to
    - over + base + rate: base is the tax owed at 'over', rate applies above it

    A rule without up_to (or the last 'over' rule) is unbounded.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    up_to: Optional[float] = Field(default=None, gt=0, description="Upper bound of this slice")
    over: Optional[float] = Field(default=None, ge=0, description="Lower bound (cumulative-base form)")
    base: Optional[float] = Field(default=None, ge=0, description="Tax owed at 'over'")
    rate: float = Field(..., ge=0, le=1, description="Marginal rate as decimal")
    label: Optional[str] = Field(default=None, description="Display label override")

    @model_validator(mode="after")
    def check_form(self) -> "TaxBracket":
        if self.up_to is not None and self.over is not None:
            raise ValueError("bracket cannot set both 'up_to' and 'over'")
        if self.base is not None and self.over is None:
            raise ValueError("'base' is only valid together with 'over'")
        return self


class Band(BaseModel):
    """Normalized bracket: rate applies to income in (lower, upper]."""
    model_config = ConfigDict(frozen=True)

    index: int
    lower: float
    upper: float  # math.inf for the top band
    rate: float
    label: str


class TaxSchedule(BaseModel):
    """Complete schedule for one tax year.

    The flat components (social security, general tax with allowances) are
    optional; a schedule that leaves them at zero is a pure bracket table.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., min_length=1)
    year: int = Field(..., ge=2000, le=2100)
    description: str = ""
    currency: str = "NOK"
    social_security_rate: float = Field(default=0, ge=0, le=1)
    general_tax_rate: float = Field(default=0, ge=0, le=1)
    personal_allowance: float = Field(default=0, ge=0)
    standard_deduction_rate: float = Field(default=0, ge=0, le=1)
    standard_deduction_max: float = Field(default=0, ge=0)
    brackets: tuple[TaxBracket, ...] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_brackets(self) -> "TaxSchedule":
        # Builds the bands once so a bad table fails at load time
        _normalize(self.brackets)
        return self

    @property
    def bands(self) -> tuple[Band, ...]:
        return _normalize(self.brackets)

    @property
    def has_components(self) -> bool:
        """True when the schedule adds social security or general tax."""
        return self.social_security_rate > 0 or self.general_tax_rate > 0


def _default_label(index: int, rate: float) -> str:
    return f"Step {index} ({rate * 100:.1f}%)"


def _normalize(brackets: tuple[TaxBracket, ...]) -> tuple[Band, ...]:
    """Convert either bracket form into ordered (lower, upper, rate) bands."""
    cumulative_form = any(b.over is not None for b in brackets)
    if cumulative_form and any(b.up_to is not None for b in brackets):
        raise ValueError("brackets mix 'up_to' and 'over' forms")

    bands = []
    if cumulative_form:
        lowers = [b.over for b in brackets]
        if any(lower is None for lower in lowers):
            raise ValueError("every bracket in the cumulative-base form needs 'over'")
        if lowers[0] != 0:
            raise ValueError(f"first bracket must start at 0, got over={lowers[0]}")
        for i, bracket in enumerate(brackets):
            upper = lowers[i + 1] if i + 1 < len(brackets) else math.inf
            bands.append((bracket.over, upper, bracket))
    else:
        lower = 0.0
        for i, bracket in enumerate(brackets):
            upper = bracket.up_to if bracket.up_to is not None else math.inf
            if upper == math.inf and i != len(brackets) - 1:
                raise ValueError("only the last bracket may be unbounded")
            bands.append((lower, upper, bracket))
            lower = upper

    if bands[-1][1] != math.inf:
        raise ValueError("last bracket must be unbounded")

    result = []
    owed = 0.0
    for i, (lower, upper, bracket) in enumerate(bands):
        if upper <= lower:
            raise ValueError(f"bracket {i} bounds not increasing: {lower} -> {upper}")
        if bracket.base is not None and abs(bracket.base - owed) > BASE_TOLERANCE:
            raise ValueError(
                f"bracket {i} base {bracket.base} does not match "
                f"the tax owed at {lower} ({owed:.2f})"
            )
        result.append(Band(
            index=i,
            lower=lower,
            upper=upper,
            rate=bracket.rate,
            label=bracket.label or _default_label(i, bracket.rate),
        ))
        if upper != math.inf:
            owed += (upper - lower) * bracket.rate

    return tuple(result)


class BracketTax(BaseModel):
    """Tax attributed to one bracket."""
    model_config = ConfigDict(frozen=True)

    label: str
    rate: float
    taxable_amount: int
    tax: int


class TaxDetails(BaseModel):
    """Breakdown of an estimate, for display."""
    model_config = ConfigDict(frozen=True)

    gross_income: float = 0
    social_security: int = 0
    general_taxable_income: int = 0
    general_tax: int = 0
    progressive_tax: int = 0
    bracket_breakdown: tuple[BracketTax, ...] = ()


class TaxCalculationResult(BaseModel):
    """Estimated liability and its breakdown."""
    model_config = ConfigDict(frozen=True)

    schedule: str
    total_tax: int
    details: TaxDetails

    def components(self) -> list[tuple[str, int]]:
        """Non-zero top-level components; they add up to total_tax (±1)."""
        parts = [
            ("Social security", self.details.social_security),
            ("General income tax", self.details.general_tax),
            ("Bracket tax", self.details.progressive_tax),
        ]
        return [(label, amount) for label, amount in parts if amount]
