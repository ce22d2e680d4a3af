"""
Salary entry storage and validation.

This module contains all business logic for entry storage. The CLI should be
a thin wrapper that calls these functions.

Storage layout
--------------

Entries are stored one JSON file per entry:

    <data_dir>/entries/<year>/<id>.json

    {"meta": {"imported_at": ..., "source": "manual", "warnings": [...]},
     "data": {"date": "2024-01-25", "gross_salary": 52000.0, ...}}

The id is a short content hash computed when the entry is first stored. An
update keeps the id even though the content changes, so the id is stable for
as long as the entry exists. Adding content identical to a stored entry
returns that entry instead of writing a duplicate. If the hash is already
taken by an entry whose content differs (typically one edited since it was
added), a counter is mixed into the hash until a free id is found.

Why import dedups by date:
    A payslip is issued once per pay date. Imports (XML files, OCR batches)
    routinely overlap with entries already recorded, so any imported entry
    whose date is already present is skipped. Manual adds are not deduped
    by date; a second payslip on the same date is legitimate (bonus run).
"""

import hashlib
import json
import logging
import os
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from .config import get_data_path
from .schemas import SalaryEntry

# Configure logging based on LOG_LEVEL environment variable
_log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, _log_level, logging.INFO),
    format="%(asctime)s.%(msecs)03d %(levelname)s: %(message)s",
    datefmt="%H:%M:%S"
)
logger = logging.getLogger(__name__)

EntrySource = Literal["manual", "xml", "ocr"]

# Fields a caller may change with update_entry
UPDATABLE_FIELDS = (
    "date",
    "gross_salary",
    "net_salary",
    "tax_withheld",
    "company_name",
    "source_file_name",
)


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationError(Exception):
    """Raised when an entry fails validation."""
    def __init__(self, errors: List[str]):
        self.errors = errors
        super().__init__(f"Validation failed: {'; '.join(errors)}")


class EntryNotFoundError(Exception):
    """Raised when no entry has the requested id."""
    pass


def _format_pydantic_errors(exc: PydanticValidationError) -> List[str]:
    errors = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err["loc"]) or "entry"
        errors.append(f"{loc}: {err['msg']}")
    return errors


def entry_warnings(entry: SalaryEntry) -> List[str]:
    """Sanity checks that don't block storing the entry.

    Net pay below gross minus tax is normal (pension, union dues, etc.),
    so only amounts that cannot be right are flagged.
    """
    warnings = []
    if entry.net_salary > entry.gross_salary:
        warnings.append(
            f"net_salary({entry.net_salary:.2f}) exceeds gross_salary({entry.gross_salary:.2f})"
        )
    if entry.tax_withheld > entry.gross_salary:
        warnings.append(
            f"tax_withheld({entry.tax_withheld:.2f}) exceeds gross_salary({entry.gross_salary:.2f})"
        )
    for name in ("gross_salary", "net_salary", "tax_withheld"):
        if getattr(entry, name) < 0:
            warnings.append(f"{name} is negative")
    return warnings


def validate_entry(data: Union[SalaryEntry, Dict[str, Any]]) -> tuple:
    """Validate raw entry data.

    Args:
        data: A SalaryEntry or a dict with entry fields

    Returns:
        Tuple of (entry, warnings)

    Raises:
        ValidationError: If required fields are missing or malformed
    """
    if isinstance(data, SalaryEntry):
        entry = data
    else:
        try:
            entry = SalaryEntry.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(_format_pydantic_errors(e)) from e

    return entry, entry_warnings(entry)


# =============================================================================
# STORAGE FUNCTIONS
# =============================================================================

def get_entries_dir() -> Path:
    """Get the entries base directory (<data_dir>/entries/)."""
    entries_dir = get_data_path() / "entries"
    entries_dir.mkdir(parents=True, exist_ok=True)
    return entries_dir


def _generate_entry_id(entry: SalaryEntry, salt: int = 0) -> str:
    """Generate an 8-char id from entry content.

    Hash of "date|company|gross|net|tax", with "|salt" appended when salt > 0.
    """
    parts = [
        entry.date,
        entry.company_name or "",
        f"{entry.gross_salary:.2f}",
        f"{entry.net_salary:.2f}",
        f"{entry.tax_withheld:.2f}",
    ]
    if salt:
        parts.append(str(salt))
    content = "|".join(parts)
    return hashlib.sha256(content.encode()).hexdigest()[:8]


def _entry_data(entry: SalaryEntry) -> Dict[str, Any]:
    return entry.model_dump(exclude={"id"})


def _load_record(json_file: Path) -> Optional[Dict[str, Any]]:
    """Read a stored record, adding 'id' and '_path'. None if unreadable."""
    try:
        with open(json_file) as f:
            record = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Skipping unreadable entry file {json_file}: {e}")
        return None

    record["id"] = json_file.stem
    record["_path"] = str(json_file)
    return record


def _record_to_entry(record: Dict[str, Any]) -> Optional[SalaryEntry]:
    data = dict(record.get("data") or {})
    data["id"] = record["id"]
    try:
        return SalaryEntry.model_validate(data)
    except PydanticValidationError as e:
        logger.warning(f"Skipping invalid entry {record['id']}: {e.error_count()} error(s)")
        return None


def _write_record(entry_id: str, year: int, meta: Dict[str, Any], data: Dict[str, Any]) -> Path:
    target_dir = get_entries_dir() / str(year)
    target_dir.mkdir(parents=True, exist_ok=True)

    record_path = target_dir / f"{entry_id}.json"
    with open(record_path, "w") as f:
        json.dump({"meta": meta, "data": data}, f, indent=2)

    return record_path


def _find_entry_file(entry_id: str) -> Optional[Path]:
    for json_file in get_entries_dir().rglob(f"{entry_id}.json"):
        return json_file
    return None


def _assign_entry_id(entry: SalaryEntry) -> Tuple[str, bool]:
    """Find the id for new entry content.

    Returns:
        Tuple of (entry_id, already_stored). already_stored is True when an
        entry with identical data already holds the id.
    """
    data = _entry_data(entry)
    salt = 0
    while True:
        entry_id = _generate_entry_id(entry, salt)
        existing = _find_entry_file(entry_id)
        if existing is None:
            return entry_id, False

        record = _load_record(existing)
        if record is not None and record.get("data") == data:
            return entry_id, True

        logger.debug(f"Entry id {entry_id} is taken by different content, rehashing")
        salt += 1


def add_entry(
    data: Union[SalaryEntry, Dict[str, Any]],
    source: EntrySource = "manual",
) -> SalaryEntry:
    """Validate and store a new entry.

    Args:
        data: Entry fields (any 'id' is ignored and replaced)
        source: Where the entry came from, kept in meta

    Returns:
        The stored entry with its id set

    Raises:
        ValidationError: If the entry is invalid
    """
    entry, warnings = validate_entry(data)
    entry = entry.model_copy(update={"id": None})
    entry_id, already_stored = _assign_entry_id(entry)
    if already_stored:
        logger.debug(f"Entry {entry_id} already stored with identical data")
        return entry.model_copy(update={"id": entry_id})

    meta = {
        "imported_at": datetime.now().isoformat(),
        "source": source,
    }
    if warnings:
        meta["warnings"] = warnings
        for warning in warnings:
            logger.warning(f"Entry {entry.date}: {warning}")

    path = _write_record(entry_id, entry.year, meta, _entry_data(entry))
    logger.debug(f"Stored entry {entry_id} at {path}")
    return entry.model_copy(update={"id": entry_id})


def get_entry_record(entry_id: str) -> Optional[Dict[str, Any]]:
    """Get the raw stored record (meta + data) for an entry id."""
    json_file = _find_entry_file(entry_id)
    if json_file is None:
        return None
    return _load_record(json_file)


def get_entry(entry_id: str) -> Optional[SalaryEntry]:
    """Get a single entry by id, or None if not found."""
    record = get_entry_record(entry_id)
    if record is None:
        return None
    return _record_to_entry(record)


def update_entry(entry_id: str, changes: Dict[str, Any]) -> SalaryEntry:
    """Apply field changes to a stored entry, keeping its id.

    If the date moves the entry to another year, the file moves with it.

    Raises:
        EntryNotFoundError: If no entry has this id
        ValidationError: If the changes are unknown or make the entry invalid
    """
    record = get_entry_record(entry_id)
    if record is None:
        raise EntryNotFoundError(f"Entry not found: {entry_id}")

    unknown = sorted(set(changes) - set(UPDATABLE_FIELDS))
    if unknown:
        raise ValidationError([f"unknown field: {name}" for name in unknown])

    merged = dict(record.get("data") or {})
    merged.update(changes)
    entry, warnings = validate_entry(merged)

    meta = dict(record.get("meta") or {})
    meta["updated_at"] = datetime.now().isoformat()
    if warnings:
        meta["warnings"] = warnings
    else:
        meta.pop("warnings", None)

    old_path = Path(record["_path"])
    new_path = _write_record(entry_id, entry.year, meta, _entry_data(entry))
    if new_path != old_path:
        old_path.unlink()
        logger.info(f"Moved entry {entry_id} to {entry.year}")

    return entry.model_copy(update={"id": entry_id})


def remove_entry(entry_id: str) -> bool:
    """Delete an entry by id.

    Returns:
        True if the entry was found and deleted, False if not found
    """
    json_file = _find_entry_file(entry_id)
    if json_file is None:
        return False
    json_file.unlink()
    return True


def clear_entries() -> int:
    """Delete all entries.

    Returns:
        Number of entries deleted
    """
    entries_dir = get_entries_dir()
    count = sum(1 for _ in entries_dir.rglob("*.json"))
    shutil.rmtree(entries_dir)
    logger.info(f"Deleted {count} entries")
    return count


def list_entries(
    year: Optional[int] = None,
    company: Optional[str] = None,
) -> List[SalaryEntry]:
    """List entries, oldest first.

    Args:
        year: Only entries with a pay date in this year
        company: Case-insensitive substring match on company name

    Returns:
        List of entries sorted by date
    """
    entries_dir = get_entries_dir()

    if year is not None:
        scan_dirs = [entries_dir / str(year)]
    else:
        scan_dirs = [d for d in entries_dir.iterdir() if d.is_dir()]

    results = []
    for scan_dir in scan_dirs:
        if not scan_dir.exists():
            continue
        for json_file in scan_dir.glob("*.json"):
            record = _load_record(json_file)
            if record is None:
                continue
            entry = _record_to_entry(record)
            if entry is None:
                continue
            if company and company.lower() not in (entry.company_name or "").lower():
                continue
            results.append(entry)

    results.sort(key=lambda e: (e.date, e.id))
    return results


def list_years() -> List[int]:
    """Years that have at least one entry, newest first."""
    return sorted({entry.year for entry in list_entries()}, reverse=True)


# =============================================================================
# BULK IMPORT
# =============================================================================

@dataclass
class ImportResult:
    """Outcome of importing a batch of entries."""

    added: List[SalaryEntry] = field(default_factory=list)
    skipped: List[SalaryEntry] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def added_count(self) -> int:
        return len(self.added)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)


def import_entries(
    items: List[Union[SalaryEntry, Dict[str, Any]]],
    source: EntrySource = "xml",
) -> ImportResult:
    """Store a batch of entries, skipping dates that are already recorded.

    Dates are compared against the store and against earlier items in the
    same batch. Invalid items are reported in 'errors' and don't stop the
    rest of the batch.
    """
    result = ImportResult()
    existing_dates = {entry.date for entry in list_entries()}

    for i, item in enumerate(items, start=1):
        try:
            entry, _ = validate_entry(item)
        except ValidationError as e:
            result.errors.append(f"Entry #{i}: {'; '.join(e.errors)}")
            continue

        if entry.date in existing_dates:
            logger.debug(f"Skipping entry #{i}: date {entry.date} already recorded")
            result.skipped.append(entry)
            continue

        result.added.append(add_entry(entry, source=source))
        existing_dates.add(entry.date)

    logger.info(
        f"Import: {result.added_count} added, {result.skipped_count} skipped, "
        f"{len(result.errors)} invalid"
    )
    return result
