"""Incremental state repository protocol and JSON snapshot codec."""
import json
from datetime import date, datetime
from typing import Any, Dict, Optional, Protocol

from processor.models import AllDayEvent, Event, IncrementalState, TimedEvent

STATE_SCHEMA_VERSION = 1


class IncrementalStateRepository(Protocol):
    """Key-value store for incremental state snapshots."""

    def get(self, cache_key: str) -> Optional[IncrementalState]:
        ...

    def set(self, cache_key: str, state: IncrementalState) -> None:
        ...


class StateSchemaMismatch(ValueError):
    """Stored snapshot was written by a different schema version."""


def serialize_state(state: IncrementalState) -> str:
    """Serialize state to a JSON document."""
    return json.dumps({
        'schema_version': state.schema_version,
        'last_full_sync': state.last_full_sync.isoformat(),
        'last_synced': state.last_synced.isoformat(),
        'events': {
            event_id: _event_to_dict(event)
            for event_id, event in state.events.items()
        }
    })


def deserialize_state(document: str) -> IncrementalState:
    """
    Parse a JSON document into state.

    Raises:
        StateSchemaMismatch: If the schema version is not the current one
        ValueError: If the document is malformed
    """
    try:
        data = json.loads(document)
        version = data.get('schema_version')
        if version != STATE_SCHEMA_VERSION:
            raise StateSchemaMismatch(
                f"Expected schema version {STATE_SCHEMA_VERSION}, got {version}"
            )
        return IncrementalState(
            schema_version=version,
            last_full_sync=datetime.fromisoformat(data['last_full_sync']),
            last_synced=datetime.fromisoformat(data['last_synced']),
            events={
                event_id: _event_from_dict(item)
                for event_id, item in data['events'].items()
            }
        )
    except (KeyError, TypeError, AttributeError) as e:
        raise ValueError(f"Malformed state document: {e!r}") from e


def _event_to_dict(event: Event) -> Dict[str, Any]:
    if isinstance(event, AllDayEvent):
        start = [event.start.year, event.start.month, event.start.day]
        end = [event.end.year, event.end.month, event.end.day]
    else:
        start = event.start.isoformat()
        end = event.end.isoformat()
    return {
        'kind': event.kind,
        'id': event.id,
        'title': event.title,
        'description': event.description,
        'start': start,
        'end': end,
        'created_at': event.created_at.isoformat(),
        'updated_at': event.updated_at.isoformat()
    }


def _event_from_dict(item: Dict[str, Any]) -> Event:
    kind = item['kind']
    if kind == AllDayEvent.kind:
        event_class = AllDayEvent
        start = date(*item['start'])
        end = date(*item['end'])
    elif kind == TimedEvent.kind:
        event_class = TimedEvent
        start = datetime.fromisoformat(item['start'])
        end = datetime.fromisoformat(item['end'])
    else:
        raise ValueError(f"Unknown event kind: {kind}")

    return event_class(
        id=item['id'],
        title=item['title'],
        description=item['description'],
        start=start,
        end=end,
        created_at=datetime.fromisoformat(item['created_at']),
        updated_at=datetime.fromisoformat(item['updated_at'])
    )
