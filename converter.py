"""Incremental conversion of a Notion database into an iCalendar feed."""
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from exporter.calendar_builder import build_calendar
from fetcher.notion_api import RecordSource
from fetcher.paginator import fetch_all_records
from processor.dates import ensure_utc
from processor.errors import (
    ConversionAbortedError,
    DuplicateEventError,
    InvalidArgumentError,
    RecordError,
    RecordParseError,
    StorageError,
)
from processor.event_processor import EventProcessor
from processor.models import SKIP, Abort, ErrorAction, EventMap, IncrementalState, RawRecord
from storage.state_codec import STATE_SCHEMA_VERSION, IncrementalStateRepository

logger = logging.getLogger(__name__)

RecordErrorHook = Callable[[RecordError, RawRecord], Optional[ErrorAction]]


def log_and_skip(error: RecordError, record: RawRecord) -> ErrorAction:
    """Default error hook."""
    logger.warning(
        f"Record processing failed: {error}",
        extra={'record_id': record.id, 'error_type': type(error).__name__}
    )
    return SKIP


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_cache_key(
    database_id: str,
    title_property: str,
    date_property: str,
    description_property: Optional[str],
    calendar_name: str,
    default_duration: timedelta,
    from_date: Optional[datetime] = None,
    until_date: Optional[datetime] = None
) -> str:
    """
    Derive the state partition key from the conversion parameters.

    The key only partitions local state, so MD5 is used as a plain hash.
    """
    parts = [
        database_id,
        title_property,
        date_property,
        description_property or '',
        calendar_name,
        str(default_duration // timedelta(milliseconds=1)),
        from_date.isoformat() if from_date else '',
        until_date.isoformat() if until_date else ''
    ]
    # Unit separator keeps ("a-b", "c") and ("a", "b-c") apart
    composite = '\x1f'.join(parts)
    return hashlib.md5(composite.encode('utf-8'), usedforsecurity=False).hexdigest()


class NotionCalendarConverter:
    """
    Converts database records into an iCalendar document.

    With a state repository, each run only re-fetches records edited since
    the previous run and merges them into the stored event map. Concurrent
    runs sharing a cache key are not serialized: the last write wins.
    """

    DEFAULT_PAGE_SIZE = 100

    def __init__(
        self,
        record_source: RecordSource,
        page_size: int = DEFAULT_PAGE_SIZE,
        on_record_error: Optional[RecordErrorHook] = None,
        state_repository: Optional[IncrementalStateRepository] = None,
        fail_on_storage_error: bool = False
    ):
        """
        Initialize the converter.

        Args:
            record_source: Paginated source of records
            page_size: Records requested per page
            on_record_error: Called with (error, record) for each rejected
                record; return SKIP to continue or Abort(reason) to stop the
                run. Exceptions raised by the hook also stop the run.
                Defaults to log_and_skip.
            state_repository: Storage for incremental state; without it
                every run is a full sync
            fail_on_storage_error: Raise StorageError when saving state
                fails instead of logging it and returning the calendar
        """
        if record_source is None:
            raise InvalidArgumentError('record_source', 'is required')
        if page_size <= 0:
            raise InvalidArgumentError('page_size', 'must be a positive integer')

        self.record_source = record_source
        self.page_size = page_size
        self.on_record_error = on_record_error or log_and_skip
        self.state_repository = state_repository
        self.fail_on_storage_error = fail_on_storage_error

    def convert(
        self,
        database_id: str,
        title_property: str,
        date_property: str,
        description_property: Optional[str],
        calendar_name: str,
        default_duration: timedelta,
        from_date: Optional[datetime] = None,
        until_date: Optional[datetime] = None
    ) -> str:
        """
        Run one conversion and return the calendar document.

        Args:
            database_id: Database to convert
            title_property: Name of the title property
            date_property: Name of the date property
            description_property: Name of the description property, or None
            calendar_name: Calendar display name
            default_duration: Length of timed events without an end
            from_date: Only include records dated on or after this instant
            until_date: Only include records dated on or before this instant

        Returns:
            iCalendar text

        Raises:
            InvalidArgumentError: If from_date is after until_date
            PaginationError: If the source repeats a cursor
            RemoteQueryError: If querying the source fails
            ConversionAbortedError: If the error hook returns Abort
            StorageError: If saving state fails and fail_on_storage_error is set
            CalendarBuildError: If the events cannot be encoded
        """
        from_date = ensure_utc(from_date) if from_date else None
        until_date = ensure_utc(until_date) if until_date else None
        if from_date and until_date and from_date > until_date:
            raise InvalidArgumentError(
                'from_date',
                f"must not be after until_date "
                f"({from_date.isoformat()} > {until_date.isoformat()})"
            )

        logger.debug(
            f"Starting conversion of database {database_id}",
            extra={'from_date': str(from_date), 'until_date': str(until_date)}
        )

        synced_at = _utcnow()
        cache_key = compute_cache_key(
            database_id,
            title_property,
            date_property,
            description_property,
            calendar_name,
            default_duration,
            from_date,
            until_date
        )
        previous_state = self._load_state(cache_key)
        if previous_state is not None:
            last_full_sync = previous_state.last_full_sync
            events = dict(previous_state.events)
            edited_since = previous_state.last_synced
        else:
            last_full_sync = synced_at
            events = {}
            edited_since = None

        records = fetch_all_records(
            self.record_source,
            database_id,
            date_property,
            self.page_size,
            from_date=from_date,
            until_date=until_date,
            edited_since=edited_since
        )

        processor = EventProcessor(
            title_property, date_property, description_property, default_duration
        )
        self.accumulate_events(records, processor, events)

        self._save_state(
            cache_key,
            IncrementalState(
                schema_version=STATE_SCHEMA_VERSION,
                last_full_sync=last_full_sync,
                last_synced=synced_at,
                events=events
            )
        )

        return build_calendar(events, calendar_name)

    def accumulate_events(
        self,
        records: List[RawRecord],
        processor: EventProcessor,
        events: EventMap
    ) -> None:
        """
        Merge extracted events into ``events`` in arrival order.

        A record whose event was already added in this run is rejected as a
        duplicate and never overwrites it. A fetched record replaces the
        entry carried over from the previous run, or removes it when it no
        longer yields a valid event.
        """
        added_ids = set()
        for record in records:
            if record.id in added_ids:
                self._handle_record_error(DuplicateEventError(record.id), record)
                continue

            try:
                event = processor.extract_event(record)
            except RecordParseError as e:
                if events.pop(record.id, None) is not None:
                    logger.debug(f"Dropped previously synced event: {record.id}")
                self._handle_record_error(e, record)
                continue

            if event.id in events:
                logger.info(f"Event updated: {event.id}")
            else:
                logger.info(f"Event added: {event.id}")
            events[event.id] = event
            added_ids.add(event.id)

    def _handle_record_error(self, error: RecordError, record: RawRecord) -> None:
        action = self.on_record_error(error, record)
        if isinstance(action, Abort):
            logger.error(f"Conversion aborted on record {record.id}: {action.reason}")
            raise ConversionAbortedError(action.reason, error) from error

    def _load_state(self, cache_key: str) -> Optional[IncrementalState]:
        if self.state_repository is None:
            return None

        try:
            state = self.state_repository.get(cache_key)
        except Exception as e:
            logger.warning(
                f"Ignoring unreadable cached state {cache_key}: {e}",
                exc_info=True
            )
            return None

        if state is None:
            logger.debug(f"No cached state found for {cache_key}")
            return None
        if state.schema_version != STATE_SCHEMA_VERSION:
            logger.info(
                f"Ignoring cached state {cache_key} with schema version "
                f"{state.schema_version}"
            )
            return None

        logger.debug(
            f"Incremental state loaded for {cache_key} "
            f"({len(state.events)} events, last synced {state.last_synced.isoformat()})"
        )
        return state

    def _save_state(self, cache_key: str, state: IncrementalState) -> None:
        if self.state_repository is None:
            return

        try:
            self._write_state(cache_key, state)
        except StorageError as e:
            logger.error(f"Saving incremental state failed: {e}", exc_info=True)
            if self.fail_on_storage_error:
                raise
            return

        logger.debug(f"Incremental state saved for {cache_key}")

    def _write_state(self, cache_key: str, state: IncrementalState) -> None:
        try:
            self.state_repository.set(cache_key, state)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(e) from e
