"""
Pagination Fetcher

Drives page requests against the record source until no continuation
cursor remains. Any page failure aborts the whole fetch; no partial record
set is ever returned.
"""

import logging

from utils.dynamics import RecordSource
from utils.schemas import AccountRecord

logger = logging.getLogger(__name__)


async def fetch_all_records(source: RecordSource) -> list[AccountRecord]:
    """
    Fetch every record, following continuation cursors.

    Args:
        source: Authenticated record source

    Returns:
        Records in page order, then within-page order

    Raises:
        SourceUnavailable: If any page request fails (SchemaError for bad payloads)
    """
    records: list[AccountRecord] = []
    cursor: str | None = None
    page_index = 0

    while True:
        page_index += 1
        page = await source.fetch_page(cursor, page_index)
        records.extend(page.value)

        logger.info(
            "Fetched page %d: records=%d, total=%d, more=%s",
            page_index,
            len(page.value),
            len(records),
            bool(page.next_link),
        )

        cursor = page.next_link
        if not cursor:
            break

    logger.info("Fetched %d accounts in %d page(s)", len(records), page_index)
    return records
