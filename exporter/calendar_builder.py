"""iCalendar encoding of extracted events."""
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Sequence, Union

from icalendar import Calendar
from icalendar import Event as CalendarEvent

from processor.errors import CalendarBuildError
from processor.models import AllDayEvent, Event, EventMap

logger = logging.getLogger(__name__)

PRODUCT_ID = "-//notion-ical-sync//Notion2ICal//EN"

# Epoch milliseconds for timed values, (year, month, day) for all-day values
DateAttribute = Union[int, Sequence[int]]


def event_to_attributes(event: Event) -> Dict[str, Any]:
    """Map an event onto encoder attributes."""
    if isinstance(event, AllDayEvent):
        start: DateAttribute = (event.start.year, event.start.month, event.start.day)
        end: DateAttribute = (event.end.year, event.end.month, event.end.day)
    else:
        start = _epoch_millis(event.start)
        end = _epoch_millis(event.end)

    return {
        'uid': event.id,
        'title': event.title,
        'description': event.description,
        'start': start,
        'end': end,
        'created': _epoch_millis(event.created_at),
        'last_modified': _epoch_millis(event.updated_at)
    }


def encode_calendar(
    event_attributes: List[Dict[str, Any]],
    headers: Dict[str, str]
) -> str:
    """
    Encode event attributes as an iCalendar document.

    Args:
        event_attributes: Attribute dicts as built by event_to_attributes
        headers: ``calendar_name`` and ``product_id``

    Returns:
        iCalendar text

    Raises:
        ValueError: If an attribute value cannot be represented
        TypeError: If an attribute has an unsupported type
        KeyError: If a required attribute is missing
    """
    calendar = Calendar()
    calendar.add('prodid', headers['product_id'])
    calendar.add('version', '2.0')
    calendar.add('calscale', 'GREGORIAN')
    calendar.add('method', 'PUBLISH')
    calendar.add('x-wr-calname', headers['calendar_name'])

    stamp = datetime.now(timezone.utc)
    for attributes in event_attributes:
        component = CalendarEvent()
        component.add('uid', attributes['uid'])
        component.add('summary', attributes['title'])
        if attributes.get('description'):
            component.add('description', attributes['description'])
        component.add('dtstamp', stamp)
        component.add('dtstart', _decode_date(attributes['start']))
        component.add('dtend', _decode_date(attributes['end']))
        component.add('created', _decode_instant(attributes['created']))
        component.add('last-modified', _decode_instant(attributes['last_modified']))
        calendar.add_component(component)

    return calendar.to_ical().decode('utf-8')


def build_calendar(events: EventMap, calendar_name: str) -> str:
    """
    Render the event map as an iCalendar document.

    Raises:
        CalendarBuildError: If the encoder rejects the events
    """
    event_attributes = [event_to_attributes(event) for event in events.values()]
    headers = {'calendar_name': calendar_name, 'product_id': PRODUCT_ID}
    try:
        document = encode_calendar(event_attributes, headers)
    except (KeyError, TypeError, ValueError, OverflowError) as e:
        raise CalendarBuildError(e) from e

    logger.info(f"Calendar built with {len(event_attributes)} events")
    return document


def _epoch_millis(value: datetime) -> int:
    return round(value.timestamp() * 1000)


def _decode_instant(value: Any) -> datetime:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"Expected epoch milliseconds, got {value!r}")
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def _decode_date(value: Any) -> Union[date, datetime]:
    if isinstance(value, (tuple, list)):
        if len(value) != 3:
            raise ValueError(f"Expected (year, month, day), got {value!r}")
        return date(*value)
    return _decode_instant(value)
