"""Date normalization for record date properties."""
import re
from datetime import date, datetime, timedelta, timezone
from typing import NamedTuple, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from processor.errors import DateValueError

DATE_ONLY_PATTERN = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
ONE_DAY = timedelta(days=1)


class DateRange(NamedTuple):
    """Normalized interval; all-day ranges have an exclusive end date."""
    start: Union[date, datetime]
    end: Union[date, datetime]
    all_day: bool


def has_time_component(value: Optional[str]) -> bool:
    return isinstance(value, str) and "T" in value


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_date_only(
    value: str,
    record_id: str,
    property_name: str,
    position: str = "start"
) -> date:
    """
    Parse a strict YYYY-MM-DD string.

    Raises:
        DateValueError: If the value has any other shape or is not a real
            calendar date
    """
    match = DATE_ONLY_PATTERN.match(value)
    if not match:
        raise DateValueError(
            record_id,
            property_name,
            f'Unparseable {position} date for property "{property_name}": '
            f'{value}'
        )
    try:
        return date(int(match[1]), int(match[2]), int(match[3]))
    except ValueError:
        raise DateValueError(
            record_id,
            property_name,
            f'Unparseable {position} date for property "{property_name}": '
            f'{value}'
        ) from None


def parse_instant(
    value: str,
    record_id: str,
    property_name: str,
    position: str = "start",
    time_zone: Optional[str] = None
) -> datetime:
    """
    Parse an ISO-8601 timestamp into an aware UTC datetime.

    Values without an offset are read in ``time_zone`` when given,
    otherwise in UTC.
    """
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise DateValueError(
            record_id,
            property_name,
            f"Unparseable {position} date: {value}"
        ) from None

    if parsed.tzinfo is None:
        if time_zone:
            try:
                parsed = parsed.replace(tzinfo=ZoneInfo(time_zone))
            except (ZoneInfoNotFoundError, ValueError):
                raise DateValueError(
                    record_id,
                    property_name,
                    f"Unknown time zone for {position} date: {time_zone}"
                ) from None
        else:
            parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed.astimezone(timezone.utc)


def exclusive_all_day_end(
    start: date,
    inclusive_end: Optional[str],
    record_id: str,
    property_name: str
) -> date:
    """Day after the last included day of an all-day span."""
    if not inclusive_end:
        return start + ONE_DAY

    end = parse_date_only(inclusive_end, record_id, property_name, "end")
    if end < start:
        raise DateValueError(
            record_id,
            property_name,
            f'End date precedes start date for property "{property_name}": '
            f'{inclusive_end}'
        )
    return end + ONE_DAY


def normalize_date_range(
    start: str,
    end: Optional[str],
    record_id: str,
    property_name: str,
    default_duration: timedelta,
    time_zone: Optional[str] = None
) -> DateRange:
    """
    Turn a raw start/end pair into a timed or all-day range.

    The pair is all-day only when neither value carries a time component.
    Timed ranges without an end last ``default_duration``.

    Raises:
        DateValueError: If either value cannot be parsed, or an all-day
            end precedes its start
    """
    if not has_time_component(start) and not has_time_component(end):
        start_day = parse_date_only(start, record_id, property_name, "start")
        end_day = exclusive_all_day_end(
            start_day, end, record_id, property_name
        )
        return DateRange(start_day, end_day, all_day=True)

    start_at = parse_instant(
        start, record_id, property_name, "start", time_zone
    )
    if end is None:
        end_at = start_at + default_duration
    else:
        end_at = parse_instant(end, record_id, property_name, "end", time_zone)
    return DateRange(start_at, end_at, all_day=False)
