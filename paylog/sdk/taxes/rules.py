"""Tax schedule loading from tax_rules/*.yaml."""

import logging
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError as PydanticValidationError

from ..config import get_setting
from .schemas import TaxSchedule

logger = logging.getLogger(__name__)


class TaxScheduleError(Exception):
    """Raised when a tax schedule file is malformed."""
    pass


class TaxScheduleNotFoundError(TaxScheduleError):
    """Raised when no schedule exists with the requested name."""
    pass


def _get_tax_rules_dir() -> Path:
    """Get the bundled tax_rules directory path."""
    package_root = Path(__file__).parent.parent.parent  # taxes -> sdk -> paylog
    return package_root / "tax_rules"


def list_schedules() -> list[str]:
    """Names of the bundled schedules, sorted."""
    return sorted(p.stem for p in _get_tax_rules_dir().glob("*.yaml"))


def load_schedule_file(path: Union[str, Path]) -> TaxSchedule:
    """Load and validate a schedule from a YAML file.

    Raises:
        TaxScheduleNotFoundError: If the file doesn't exist
        TaxScheduleError: If the YAML or the schedule itself is invalid
    """
    path = Path(path)
    if not path.exists():
        raise TaxScheduleNotFoundError(f"Tax schedule file not found: {path}")

    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise TaxScheduleError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw, dict):
        raise TaxScheduleError(f"Tax schedule {path} must be a mapping")

    try:
        schedule = TaxSchedule.model_validate(raw)
    except PydanticValidationError as e:
        raise TaxScheduleError(f"Invalid tax schedule {path}:\n{e}") from e

    logger.debug(f"Loaded tax schedule {schedule.name} ({len(schedule.brackets)} brackets)")
    return schedule


def load_schedule(name: str) -> TaxSchedule:
    """Load a bundled schedule by name (e.g., "no-2024-trinnskatt").

    Raises:
        TaxScheduleNotFoundError: If no bundled schedule has that name
    """
    config_file = _get_tax_rules_dir() / f"{name}.yaml"
    if not config_file.exists():
        available = ", ".join(list_schedules()) or "none"
        raise TaxScheduleNotFoundError(
            f"Unknown tax schedule '{name}'. Available: {available}"
        )
    return load_schedule_file(config_file)


def resolve_schedule(name: Optional[str] = None) -> TaxSchedule:
    """Load the named schedule, or the one configured in settings.json.

    A path to a .yaml file is accepted in place of a name.

    Raises:
        TaxScheduleNotFoundError: If no name is given and none is configured
    """
    name = name or get_setting("tax_schedule")
    if not name:
        raise TaxScheduleNotFoundError(
            "No tax schedule selected. The bundled schedules are different "
            "approximations; pick one explicitly.\n"
            f"Available: {', '.join(list_schedules())}\n\n"
            "Pass --schedule NAME or run: paylog settings set tax_schedule NAME"
        )
    if name.endswith((".yaml", ".yml")):
        return load_schedule_file(name)
    return load_schedule(name)
