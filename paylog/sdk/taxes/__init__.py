"""taxes - Approximate income tax estimate.

Scope:
- Tax schedules (brackets + optional flat components) for one fixed year
- Estimate of the liability for a year-to-date gross income

Constraints:
- Pure calculation - estimate() does no I/O and keeps no state
- No entry access - receives a gross figure, returns a result
- Schedules are loaded from tax_rules/{name}.yaml and never mutated

Usage:
    from paylog.sdk.taxes import estimate, load_schedule

    schedule = load_schedule("no-2024-trinnskatt")
    result = estimate(500000, schedule)
    result.total_tax
"""

from .estimator import (
    TaxEstimator,
    calculate_bracket_tax,
    estimate,
    round_to_unit,
)

from .schemas import (
    Band,
    BracketTax,
    TaxBracket,
    TaxCalculationResult,
    TaxDetails,
    TaxSchedule,
)

from .rules import (
    TaxScheduleError,
    TaxScheduleNotFoundError,
    list_schedules,
    load_schedule,
    load_schedule_file,
    resolve_schedule,
)

__all__ = [
    # Estimator
    "TaxEstimator",
    "calculate_bracket_tax",
    "estimate",
    "round_to_unit",
    # Schemas
    "Band",
    "BracketTax",
    "TaxBracket",
    "TaxCalculationResult",
    "TaxDetails",
    "TaxSchedule",
    # Rules
    "TaxScheduleError",
    "TaxScheduleNotFoundError",
    "list_schedules",
    "load_schedule",
    "load_schedule_file",
    "resolve_schedule",
]
