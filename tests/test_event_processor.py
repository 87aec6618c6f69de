"""Unit tests for EventProcessor."""
from datetime import date, datetime, timedelta, timezone

import pytest

from processor.errors import (
    DateValueError,
    EmptyDateError,
    InvalidPropertyTypeError,
    MissingPropertyError,
)
from processor.event_processor import EventProcessor
from processor.models import AllDayEvent, DateValue, PropertyValue, TimedEvent


@pytest.fixture
def processor():
    return EventProcessor('Name', 'Date', 'Description', timedelta(hours=1))


class TestEventProcessor:
    """Test cases for EventProcessor class."""

    def test_extract_timed_event(self, processor, record_factory):
        record = record_factory(end='2025-07-29T11:30:00.000Z')

        event = processor.extract_event(record)

        assert isinstance(event, TimedEvent)
        assert event.id == 'page-1'
        assert event.title == 'Team Sync'
        assert event.description == 'Weekly catch-up'
        assert event.start == datetime(2025, 7, 29, 10, 0, tzinfo=timezone.utc)
        assert event.end == datetime(2025, 7, 29, 11, 30, tzinfo=timezone.utc)
        assert event.created_at == record.created_time
        assert event.updated_at == record.last_edited_time

    def test_extract_timed_event_default_duration(self, processor, record_factory):
        event = processor.extract_event(record_factory())

        assert event.end - event.start == timedelta(hours=1)

    def test_extract_all_day_event(self, processor, record_factory):
        record = record_factory(start='2025-08-01', end='2025-08-03')

        event = processor.extract_event(record)

        assert isinstance(event, AllDayEvent)
        assert event.start == date(2025, 8, 1)
        assert event.end == date(2025, 8, 4)

    def test_title_runs_are_joined(self, processor, record_factory):
        record = record_factory(
            Name=PropertyValue(type='title', text=['Quarterly ', 'Review'])
        )

        assert processor.extract_event(record).title == 'Quarterly Review'

    def test_empty_title_defaults_to_untitled(self, processor, record_factory):
        record = record_factory(title='')

        assert processor.extract_event(record).title == 'Untitled'

    def test_empty_description_defaults_to_blank(self, processor, record_factory):
        record = record_factory(description='')

        assert processor.extract_event(record).description == ''

    def test_description_not_requested(self, record_factory):
        processor = EventProcessor('Name', 'Date')
        record = record_factory()
        del record.properties['Description']

        assert processor.extract_event(record).description == ''

    def test_missing_title_property(self, record_factory):
        processor = EventProcessor('Missing', 'Date')

        with pytest.raises(MissingPropertyError) as exc_info:
            processor.extract_event(record_factory())

        assert exc_info.value.property_name == 'Missing'
        assert exc_info.value.record_id == 'page-1'
        assert 'Missing property "Missing"' in str(exc_info.value)

    def test_title_wrong_type(self, processor, record_factory):
        record = record_factory(Name=PropertyValue(type='rich_text', text=['x']))

        with pytest.raises(InvalidPropertyTypeError) as exc_info:
            processor.extract_event(record)

        assert exc_info.value.expected_type == 'title'
        assert exc_info.value.actual_type == 'rich_text'

    def test_date_wrong_type(self, processor, record_factory):
        record = record_factory(Date=PropertyValue(type='checkbox'))

        with pytest.raises(InvalidPropertyTypeError) as exc_info:
            processor.extract_event(record)

        assert exc_info.value.property_name == 'Date'
        assert exc_info.value.expected_type == 'date'

    def test_missing_date_property(self, record_factory):
        processor = EventProcessor('Name', 'When')

        with pytest.raises(MissingPropertyError) as exc_info:
            processor.extract_event(record_factory())

        assert exc_info.value.property_name == 'When'

    def test_empty_date(self, processor, record_factory):
        record = record_factory(Date=PropertyValue(type='date', date=None))

        with pytest.raises(EmptyDateError):
            processor.extract_event(record)

    def test_date_without_start(self, processor, record_factory):
        record = record_factory(
            Date=PropertyValue(type='date', date=DateValue(start=None))
        )

        with pytest.raises(EmptyDateError):
            processor.extract_event(record)

    def test_missing_description_property(self, record_factory):
        processor = EventProcessor('Name', 'Date', 'Notes')

        with pytest.raises(MissingPropertyError) as exc_info:
            processor.extract_event(record_factory())

        assert exc_info.value.property_name == 'Notes'

    def test_description_wrong_type(self, processor, record_factory):
        record = record_factory(Description=PropertyValue(type='title', text=['x']))

        with pytest.raises(InvalidPropertyTypeError) as exc_info:
            processor.extract_event(record)

        assert exc_info.value.expected_type == 'rich_text'

    def test_title_checked_before_date(self, record_factory):
        processor = EventProcessor('Missing', 'Date')
        record = record_factory(Date=PropertyValue(type='checkbox'))

        with pytest.raises(MissingPropertyError):
            processor.extract_event(record)

    def test_description_checked_before_date_values(self, record_factory):
        processor = EventProcessor('Name', 'Date', 'Notes')
        record = record_factory(start='not-a-date')

        with pytest.raises(MissingPropertyError):
            processor.extract_event(record)

    def test_date_value_error_propagates(self, processor, record_factory):
        record = record_factory(start='2025-08-03', end='2025-08-01')

        with pytest.raises(DateValueError):
            processor.extract_event(record)

    def test_extraction_is_deterministic(self, processor, record_factory):
        record = record_factory()

        assert processor.extract_event(record) == processor.extract_event(record)
