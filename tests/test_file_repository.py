"""Unit tests for the file-based state repository."""
import json
from datetime import date, datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from processor.errors import InvalidArgumentError, StorageError
from processor.models import AllDayEvent, IncrementalState, TimedEvent
from storage.file_repository import IncrementalStateFileRepository
from storage.state_codec import STATE_SCHEMA_VERSION, serialize_state


@pytest.fixture
def state():
    """State holding one event of each kind."""
    return IncrementalState(
        schema_version=STATE_SCHEMA_VERSION,
        last_full_sync=datetime(2023, 1, 1, 0, 0, tzinfo=timezone.utc),
        last_synced=datetime(2023, 1, 1, 1, 0, tzinfo=timezone.utc),
        events={
            'event1': TimedEvent(
                id='event1',
                title='Test Event 1',
                description='some description',
                start=datetime(2023, 1, 1, 10, 0, tzinfo=timezone.utc),
                end=datetime(2023, 1, 1, 11, 0, tzinfo=timezone.utc),
                created_at=datetime(2023, 1, 1, 9, 0, tzinfo=timezone.utc),
                updated_at=datetime(2023, 1, 1, 9, 30, tzinfo=timezone.utc)
            ),
            'event2': AllDayEvent(
                id='event2',
                title='Test Event 2',
                description='',
                start=date(2024, 2, 28),
                end=date(2024, 3, 1),
                created_at=datetime(2023, 1, 2, 9, 0, tzinfo=timezone.utc),
                updated_at=datetime(2023, 1, 2, 9, 30, tzinfo=timezone.utc)
            )
        }
    )


@pytest.fixture
def repo(tmp_path):
    return IncrementalStateFileRepository(str(tmp_path))


class TestIncrementalStateFileRepository:
    """Test cases for IncrementalStateFileRepository class."""

    def test_constructor_rejects_negative_max_age(self, tmp_path):
        with pytest.raises(InvalidArgumentError) as exc_info:
            IncrementalStateFileRepository(str(tmp_path), timedelta(milliseconds=-1))

        assert exc_info.value.argument_name == 'max_cache_age'

    def test_constructor_rejects_missing_directory(self, tmp_path):
        with pytest.raises(InvalidArgumentError):
            IncrementalStateFileRepository(str(tmp_path / 'does-not-exist'))

    def test_constructor_rejects_file_path(self, tmp_path):
        file_path = tmp_path / 'file.txt'
        file_path.write_text('x')

        with pytest.raises(InvalidArgumentError):
            IncrementalStateFileRepository(str(file_path))

    def test_set_and_get_roundtrip(self, repo, state):
        repo.set('foo', state)

        assert repo.get('foo') == state

    def test_roundtrip_keeps_event_kinds(self, repo, state):
        repo.set('foo', state)

        loaded = repo.get('foo')

        assert isinstance(loaded.events['event1'], TimedEvent)
        assert isinstance(loaded.events['event2'], AllDayEvent)
        assert loaded.events['event2'].end == date(2024, 3, 1)

    def test_all_day_dates_stored_as_triples(self, repo, state, tmp_path):
        repo.set('foo', state)

        data = json.loads((tmp_path / 'foo.json').read_text())

        assert data['schema_version'] == STATE_SCHEMA_VERSION
        assert data['events']['event2']['start'] == [2024, 2, 28]
        assert data['events']['event1']['start'] == '2023-01-01T10:00:00+00:00'

    def test_get_returns_none_if_file_does_not_exist(self, repo):
        assert repo.get('nope') is None

    def test_get_invalidates_stale_cache(self, tmp_path, state):
        state.last_full_sync = datetime.now(timezone.utc) - timedelta(seconds=100)
        fresh_repo = IncrementalStateFileRepository(str(tmp_path), timedelta(hours=1))
        fresh_repo.set('baz', state)
        assert fresh_repo.get('baz') is not None

        short_repo = IncrementalStateFileRepository(str(tmp_path), timedelta(milliseconds=1))

        assert short_repo.get('baz') is None
        assert not (tmp_path / 'baz.json').exists()

    def test_zero_max_age_never_expires(self, repo, state, tmp_path):
        state.last_full_sync = datetime(2000, 1, 1, tzinfo=timezone.utc)
        repo.set('old', state)

        assert repo.get('old') == state

    def test_get_discards_unparsable_json(self, repo, tmp_path):
        (tmp_path / 'badjson.json').write_text('not-json', encoding='utf-8')

        assert repo.get('badjson') is None
        assert not (tmp_path / 'badjson.json').exists()

    def test_get_discards_schema_mismatch(self, repo, state, tmp_path):
        state.schema_version = STATE_SCHEMA_VERSION + 1
        (tmp_path / 'future.json').write_text(serialize_state(state), encoding='utf-8')

        assert repo.get('future') is None
        assert not (tmp_path / 'future.json').exists()

    def test_get_discards_unknown_event_kind(self, repo, state, tmp_path):
        data = json.loads(serialize_state(state))
        data['events']['event1']['kind'] = 'recurring'
        (tmp_path / 'odd.json').write_text(json.dumps(data), encoding='utf-8')

        assert repo.get('odd') is None

    def test_set_wraps_write_failure(self, repo, state):
        with patch('pathlib.Path.write_text', side_effect=PermissionError('read-only')):
            with pytest.raises(StorageError) as exc_info:
                repo.set('foo', state)

        assert isinstance(exc_info.value.cause, PermissionError)

    def test_get_cache_file_path(self, repo, tmp_path):
        assert repo.get_cache_file_path('abc') == tmp_path.resolve() / 'abc.json'
