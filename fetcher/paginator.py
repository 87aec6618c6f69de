"""Walks a paginated record source."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Set

from fetcher.notion_api import RecordSource
from processor.errors import PaginationError, RemoteQueryError
from processor.models import RawRecord

logger = logging.getLogger(__name__)


def build_filter(
    date_property: str,
    from_date: Optional[datetime] = None,
    until_date: Optional[datetime] = None,
    edited_since: Optional[datetime] = None
) -> Optional[Dict[str, Any]]:
    """
    Build a conjunctive Notion filter for the given bounds.

    Returns:
        Filter object, or None when no bound applies
    """
    conditions: List[Dict[str, Any]] = []
    if from_date:
        conditions.append({
            'property': date_property,
            'date': {'on_or_after': from_date.isoformat()}
        })
    if until_date:
        conditions.append({
            'property': date_property,
            'date': {'on_or_before': until_date.isoformat()}
        })
    if edited_since:
        conditions.append({
            'timestamp': 'last_edited_time',
            'last_edited_time': {'on_or_after': edited_since.isoformat()}
        })
    return {'and': conditions} if conditions else None


def fetch_all_records(
    source: RecordSource,
    database_id: str,
    date_property: str,
    page_size: int,
    from_date: Optional[datetime] = None,
    until_date: Optional[datetime] = None,
    edited_since: Optional[datetime] = None
) -> List[RawRecord]:
    """
    Fetch every matching record across all pages.

    Args:
        source: Record source to query
        database_id: Database to query
        date_property: Date property the bounds apply to
        page_size: Records requested per page
        from_date: Lower bound on the date property
        until_date: Upper bound on the date property
        edited_since: Lower bound on last modification time

    Returns:
        Records in arrival order

    Raises:
        PaginationError: If the source hands back a cursor twice
        RemoteQueryError: If a query fails
    """
    query_filter = build_filter(date_property, from_date, until_date, edited_since)
    records: List[RawRecord] = []
    seen_cursors: Set[Optional[str]] = set()
    cursor: Optional[str] = None

    while True:
        if cursor in seen_cursors:
            raise PaginationError(f"Cursor {cursor} repeated")
        seen_cursors.add(cursor)

        try:
            page = source.query_database(
                database_id,
                page_size,
                start_cursor=cursor,
                filter=query_filter
            )
        except Exception as e:
            raise RemoteQueryError(e) from e

        records.extend(page.records)
        logger.debug(
            f"Fetched page {len(seen_cursors)} with {len(page.records)} records"
        )

        cursor = page.next_cursor
        if not cursor:
            break

    logger.info(f"Fetched {len(records)} records from database {database_id}")
    return records
