"""Eligibility rule: which accounts need their processed flag set."""

from datetime import datetime
from typing import Iterable

from utils.schemas import UNPROCESSED, AccountRecord


def is_eligible(record: AccountRecord, now: datetime) -> bool:
    """True iff the record is due at `now` and not yet processed."""
    if record.due_date is None:
        return False
    return record.due_date <= now and record.processed == UNPROCESSED


def select_eligible(records: Iterable[AccountRecord], now: datetime) -> list[AccountRecord]:
    """Eligible subset in input order, evaluated against a single cutoff."""
    return [record for record in records if is_eligible(record, now)]
