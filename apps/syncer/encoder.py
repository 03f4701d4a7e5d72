"""
Export Encoder - Deterministic CSV

Serializes the full as-fetched record set to RFC-4180 CSV: a header row of
the archive column names, one per AccountRecord attribute, followed by one
row per record in fetch order. Encoding the same records in the same order always yields the same
bytes.
"""

import csv
import io
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

from utils.errors import EncodingError
from utils.schemas import AccountRecord, ensure_utc

logger = logging.getLogger(__name__)

# record attribute -> archive column name, in column order
EXPORT_COLUMNS: dict[str, str] = {
    "id": "Id",
    "name": "Name",
    "telephone": "Telephone",
    "fax": "Fax",
    "website": "Website",
    "address": "Address",
    "revenue": "Revenue",
    "number_of_employees": "NumberOfEmployees",
    "preferred_contact_method": "PreferredContactMethod",
    "industry": "Industry",
    "sic": "SIC",
    "longitude": "Longitude",
    "latitude": "Latitude",
    "relationship_type": "RelationshipType",
    "due_date": "DueDate",
    "processed": "Processed",
}


def format_value(value: Any) -> str:
    """Render one field; absent values become an empty field."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat().replace("+00:00", "Z")
    return str(value)


def encode_records(records: Sequence[AccountRecord]) -> bytes:
    """
    Encode records as UTF-8 CSV.

    Args:
        records: Records in fetch order

    Returns:
        CSV bytes with CRLF line endings and minimal quoting
    """
    buffer = io.StringIO(newline="")
    writer = csv.writer(buffer, delimiter=",", quotechar='"', quoting=csv.QUOTE_MINIMAL, lineterminator="\r\n")
    writer.writerow(EXPORT_COLUMNS.values())
    for record in records:
        writer.writerow([format_value(getattr(record, column)) for column in EXPORT_COLUMNS])
    return buffer.getvalue().encode("utf-8")


def write_export(payload: bytes, directory: str | Path, filename: str) -> Path:
    """
    Keep a local copy of an encoded export.

    Args:
        payload: Encoded CSV bytes
        directory: Target directory (created if needed)
        filename: File name inside the directory

    Returns:
        Path of the written file

    Raises:
        EncodingError: If the file cannot be written
    """
    path = Path(directory) / filename
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(payload)
    except OSError as e:
        raise EncodingError(f"Failed to write export {path}: {e}", details={"path": str(path)}) from e

    logger.info("CSV export written: %s (%d bytes)", path, len(payload))
    return path
