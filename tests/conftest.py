"""Shared fixtures for record and event tests."""
from datetime import datetime, timezone

import pytest

from processor.models import DateValue, PropertyValue, RawRecord

CREATED = datetime(2025, 7, 1, 9, 0, tzinfo=timezone.utc)
EDITED = datetime(2025, 7, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def record_factory():
    """Build RawRecords with Name/Date/Description properties."""
    def make_record(
        record_id='page-1',
        title='Team Sync',
        start='2025-07-29T10:00:00.000Z',
        end=None,
        description='Weekly catch-up',
        time_zone=None,
        last_edited_time=EDITED,
        **extra_properties
    ):
        properties = {
            'Name': PropertyValue(type='title', text=[title] if title else []),
            'Date': PropertyValue(
                type='date',
                date=DateValue(start=start, end=end, time_zone=time_zone)
            ),
            'Description': PropertyValue(
                type='rich_text', text=[description] if description else []
            )
        }
        properties.update(extra_properties)
        return RawRecord(
            id=record_id,
            created_time=CREATED,
            last_edited_time=last_edited_time,
            properties=properties
        )

    return make_record
