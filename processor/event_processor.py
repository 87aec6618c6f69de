"""Event processor for validating records and extracting events."""
from datetime import timedelta
from typing import Optional

from processor.dates import normalize_date_range
from processor.errors import (
    EmptyDateError,
    InvalidPropertyTypeError,
    MissingPropertyError,
)
from processor.models import AllDayEvent, Event, PropertyValue, RawRecord, TimedEvent


class EventProcessor:
    """Validates raw records and turns them into calendar events."""

    UNTITLED = "Untitled"
    TITLE_TYPE = "title"
    DATE_TYPE = "date"
    RICH_TEXT_TYPE = "rich_text"

    def __init__(
        self,
        title_property: str,
        date_property: str,
        description_property: Optional[str] = None,
        default_duration: timedelta = timedelta(hours=1)
    ):
        """
        Initialize the event processor.

        Args:
            title_property: Name of the title property
            date_property: Name of the date property
            description_property: Name of the rich text description
                property, or None to leave descriptions empty
            default_duration: Length of timed events that have no end
        """
        self.title_property = title_property
        self.date_property = date_property
        self.description_property = description_property
        self.default_duration = default_duration

    def extract_event(self, record: RawRecord) -> Event:
        """
        Validate a single record and extract its event.

        Checks run in order (title, date, description, date values) and
        the first failure is raised.

        Args:
            record: Raw record from the remote source

        Returns:
            TimedEvent or AllDayEvent

        Raises:
            RecordParseError: If the record fails validation
        """
        title_value = self._require_property(
            record, self.title_property, self.TITLE_TYPE
        )

        date_value = self._require_property(
            record, self.date_property, self.DATE_TYPE
        )
        if date_value.date is None or not date_value.date.start:
            raise EmptyDateError(record.id, self.date_property)

        description = ""
        if self.description_property:
            description_value = self._require_property(
                record, self.description_property, self.RICH_TEXT_TYPE
            )
            description = self._plain_text(description_value, "")

        date_range = normalize_date_range(
            date_value.date.start,
            date_value.date.end,
            record.id,
            self.date_property,
            self.default_duration,
            date_value.date.time_zone
        )

        title = self._plain_text(title_value, self.UNTITLED)
        event_class = AllDayEvent if date_range.all_day else TimedEvent
        return event_class(
            id=record.id,
            title=title,
            description=description,
            start=date_range.start,
            end=date_range.end,
            created_at=record.created_time,
            updated_at=record.last_edited_time
        )

    def _require_property(
        self,
        record: RawRecord,
        property_name: str,
        expected_type: str
    ) -> PropertyValue:
        value = record.properties.get(property_name)
        if value is None:
            raise MissingPropertyError(record.id, property_name)
        if value.type != expected_type:
            raise InvalidPropertyTypeError(
                record.id, property_name, value.type, expected_type
            )
        return value

    @staticmethod
    def _plain_text(value: PropertyValue, default: str) -> str:
        # Runs split on formatting changes, so join them back together
        if not value.text:
            return default
        return "".join(value.text)
