"""
CSV ingestion for repository exports.

Turns the text of one or more CSV exports into immutable ``Record``
objects. Rows with the wrong number of fields are skipped, numeric
columns default to 0 when they do not parse, and boolean columns are
true only for a case-insensitive ``"true"``.
"""

import io
import math
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .errors import CSVFormatError
from .logger import get_logger
from .records import (
    ACTIVITY_COUNT_COLUMNS,
    BOOLEAN_COLUMNS,
    NUMERICAL_COLUMNS,
    REQUIRED_COLUMNS,
    Record,
)

logger = get_logger(__name__)

# Longest numeric prefix of a cell, e.g. "12" in "12abc"
NUMBER_PREFIX = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass
class FileProgress:
    """Ingestion outcome for a single uploaded file."""

    name: str
    status: str = "pending"  # "pending", "completed", "error"
    record_count: int = 0
    skipped_rows: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "record_count": self.record_count,
            "skipped_rows": self.skipped_rows,
            "error": self.error,
        }


@dataclass
class IngestReport:
    """Combined result of ingesting several CSV files."""

    records: List[Record] = field(default_factory=list)
    files: List[FileProgress] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(f.status == "error" for f in self.files)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_records": len(self.records),
            "has_errors": self.has_errors,
            "files": [f.to_dict() for f in self.files],
        }


def parse_number(value: str) -> float:
    """Parse a numeric cell from its leading number.

    Trailing text is ignored (``"12abc"`` is 12). Cells without a leading
    number, and values that overflow to infinity, become 0.
    """
    match = NUMBER_PREFIX.match(value or "")
    if match is None:
        return 0.0
    number = float(match.group())
    if not math.isfinite(number):
        return 0.0
    return number or 0.0


def parse_bool(value: str) -> bool:
    return value.strip().lower() == "true"


def _coerce_row(headers: List[str], values: List[str]) -> Dict[str, Any]:
    row: Dict[str, Any] = {}
    for header, raw in zip(headers, values):
        value = raw.strip()
        if header in NUMERICAL_COLUMNS:
            row[header] = parse_number(value)
        elif header in BOOLEAN_COLUMNS:
            row[header] = parse_bool(value)
        else:
            row[header] = value

    if not row.get("Record_Count"):
        row["Record_Count"] = float(sum(row.get(c, 0.0) for c in ACTIVITY_COUNT_COLUMNS))
    return row


def parse_csv(text: str) -> List[Record]:
    """Parse one CSV export into records.

    Args:
        text: Full CSV text including the header row.

    Returns:
        Records in file order.

    Raises:
        CSVFormatError: if there is no data row or required columns are missing.
    """
    records, _ = _parse_with_stats(text)
    return records


def _read_frame(text: str) -> pd.DataFrame:
    try:
        return pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            on_bad_lines="skip",
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise CSVFormatError(f"Could not parse CSV: {e}") from e


def _parse_with_stats(text: str) -> Tuple[List[Record], int]:
    lines = [line for line in text.strip().splitlines() if line.strip()]
    if len(lines) < 2:
        raise CSVFormatError("CSV must contain at least a header row and one data row")

    df = _read_frame("\n".join(lines))
    df.columns = [str(c).strip() for c in df.columns]
    headers = list(df.columns)

    missing = [col for col in REQUIRED_COLUMNS if col not in headers]
    if missing:
        raise CSVFormatError(f"Missing required columns: {', '.join(missing)}")

    # Rows with too many fields are dropped by the reader; short rows come
    # back padded with NaN
    df = df[~df.isna().any(axis=1)]
    skipped = max(len(lines) - 1 - len(df), 0)

    records = [
        Record.from_columns(_coerce_row(headers, list(values)))
        for values in df.itertuples(index=False, name=None)
    ]

    if skipped:
        logger.debug("Skipped %d malformed rows", skipped)
    return records, skipped


def parse_csv_files(files: Iterable[Tuple[str, str]]) -> IngestReport:
    """Ingest several CSV exports and combine their records.

    Args:
        files: ``(filename, text)`` pairs.

    Returns:
        IngestReport with the combined records and a progress entry per file.

    Raises:
        CSVFormatError: if no file is a CSV, or every file failed.
    """
    report = IngestReport()
    csv_files = [(name, text) for name, text in files if name.lower().endswith(".csv")]
    if not csv_files:
        raise CSVFormatError("Please upload at least one CSV file")

    for name, text in csv_files:
        progress = FileProgress(name=name, status="pending")
        report.files.append(progress)
        try:
            records, skipped = _parse_with_stats(text)
        except CSVFormatError as e:
            progress.status = "error"
            progress.error = str(e)
            logger.debug("Failed to ingest %s: %s", name, e)
            continue

        report.records.extend(records)
        progress.status = "completed"
        progress.record_count = len(records)
        progress.skipped_rows = skipped
        logger.debug("Ingested %d repositories from %s", len(records), name)

    if report.has_errors and not report.records:
        errors = "; ".join(f"{f.name}: {f.error}" for f in report.files if f.error)
        raise CSVFormatError(f"No data could be loaded ({errors})")

    return report
