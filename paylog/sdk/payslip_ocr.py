"""Payslip (lønnsslipp) scanning via Gemini OCR.

A scanned document becomes a ParsedPayslip: the values a person would type
into the entry form. Nothing is stored here; the caller decides whether to
keep the result.
"""

import logging
import tempfile
from pathlib import Path
from typing import List, Union

from pydantic import ValidationError as PydanticValidationError

from . import gemini_client
from .schemas import ParsedPayslip

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".pdf", ".png", ".jpg", ".jpeg", ".webp", ".heic")

# Payslip extraction prompt (JSON boilerplate handled by gemini_client)
PAYSLIP_OCR_PROMPT = """You are an expert OCR system for Norwegian financial documents (lønnsslipp).
Analyze the provided payslip image or PDF and extract these fields:

{
  "date": "YYYY-MM-DD",
  "gross_salary": 0.00,
  "net_salary": 0.00,
  "tax_withheld": 0.00,
  "company_name": "employer name"
}

Where to find them:
- date: date of payment ("Utbetalingsdato", "Dato")
- gross_salary: "Brutto lønn"
- net_salary: "Netto utbetalt"
- tax_withheld: "Forskuddstrekk"
- company_name: "Arbeidsgiver" / "Firma", the full legal name of the employer

Rules:
- If the exact day is not present, use the last day of the month found. If no date is found, return "".
- If a numeric value is not found, return 0.
- If the company name is not found, return "".
- Clean the numbers: remove currency symbols (like 'kr'), spaces and thousand separators. Use '.' as the decimal separator.
- Prioritize values from a summary or main section if multiple are present.
"""


class PayslipScanError(Exception):
    """Raised when a payslip can't be scanned into entry fields."""
    pass


def scan_payslip(path: Union[str, Path], timeout: int = 120) -> ParsedPayslip:
    """Scan one payslip document.

    Args:
        path: PDF or image of a single payslip
        timeout: Gemini CLI timeout in seconds

    Returns:
        The extracted fields

    Raises:
        PayslipScanError: If the file is unsupported, Gemini fails, or the
            response doesn't describe a payslip
    """
    path = Path(path)
    if path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise PayslipScanError(
            f"Unsupported file type '{path.suffix}'. "
            f"Expected one of: {', '.join(SUPPORTED_SUFFIXES)}"
        )

    logger.info(f"Scanning payslip {path.name}")
    try:
        data = gemini_client.process_file(PAYSLIP_OCR_PROMPT, str(path), timeout=timeout)
    except RuntimeError as e:
        raise PayslipScanError(
            f"Failed to analyze the payslip {path.name}. "
            f"Please check the document or try again.\n{e}"
        ) from e

    if not isinstance(data, dict):
        raise PayslipScanError(f"Unexpected response for {path.name}: {data!r}")

    if data.get("error"):
        message = data.get("message") or "unknown error"
        raise PayslipScanError(f"Could not read payslip {path.name}: {message}")

    try:
        parsed = ParsedPayslip.model_validate(data)
    except PydanticValidationError as e:
        raise PayslipScanError(f"Unusable values in payslip {path.name}:\n{e}") from e

    logger.debug(f"Scanned {path.name}: {parsed.model_dump()}")
    return parsed


def _get_pdf_page_count(pdf_path: Path) -> int:
    """Number of pages in a PDF, or 0 if the file can't be read."""
    import PyPDF2

    try:
        reader = PyPDF2.PdfReader(str(pdf_path))
        return len(reader.pages)
    except (OSError, PyPDF2.errors.PyPdfError) as e:
        logger.debug(f"Could not read PDF {pdf_path}: {e}")
        return 0


def _split_pdf_pages(pdf_path: Path, output_dir: Path) -> List[Path]:
    """Split a multi-page PDF into individual page files.

    Returns:
        List of paths to individual page PDFs
    """
    import PyPDF2

    reader = PyPDF2.PdfReader(str(pdf_path))
    page_files = []
    base_name = pdf_path.stem

    for i, page in enumerate(reader.pages):
        writer = PyPDF2.PdfWriter()
        writer.add_page(page)

        page_file = output_dir / f"{base_name}_page_{i+1:02d}.pdf"
        with open(page_file, "wb") as f:
            writer.write(f)
        page_files.append(page_file)

    return page_files


def scan_payslips(path: Union[str, Path], timeout: int = 120) -> List[ParsedPayslip]:
    """Scan a document that may hold several payslips, one per page.

    Images and single-page PDFs go through scan_payslip directly. Pages of a
    multi-page PDF are scanned one at a time; a page that fails is logged
    and skipped.

    Raises:
        PayslipScanError: If nothing could be scanned
    """
    path = Path(path)
    if path.suffix.lower() != ".pdf" or _get_pdf_page_count(path) <= 1:
        return [scan_payslip(path, timeout=timeout)]

    results = []
    failures = []
    with tempfile.TemporaryDirectory(prefix="paylog_pages_") as temp_dir:
        for page_file in _split_pdf_pages(path, Path(temp_dir)):
            try:
                results.append(scan_payslip(page_file, timeout=timeout))
            except PayslipScanError as e:
                logger.warning(f"Skipping {page_file.name}: {e}")
                failures.append(page_file.name)

    if not results:
        raise PayslipScanError(f"No payslips could be read from {path.name} ({len(failures)} pages failed)")

    return results
