"""Data models for record extraction and incremental sync."""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional, Union


@dataclass(frozen=True)
class DateValue:
    """Raw date property value: ISO date or timestamp strings."""
    start: Optional[str]
    end: Optional[str] = None
    time_zone: Optional[str] = None


@dataclass(frozen=True)
class PropertyValue:
    """Typed property of a raw record."""
    type: str
    text: List[str] = field(default_factory=list)
    date: Optional[DateValue] = None


@dataclass(frozen=True)
class RawRecord:
    """Raw record (database page) from the remote source."""
    id: str
    created_time: datetime
    last_edited_time: datetime
    properties: Dict[str, PropertyValue]


@dataclass(frozen=True)
class QueryPage:
    """One page of query results."""
    records: List[RawRecord]
    next_cursor: Optional[str] = None


@dataclass(frozen=True)
class TimedEvent:
    """Event with absolute start and end instants (aware, UTC)."""
    id: str
    title: str
    description: str
    start: datetime
    end: datetime
    created_at: datetime
    updated_at: datetime

    kind = "timed"


@dataclass(frozen=True)
class AllDayEvent:
    """Event spanning whole days; ``end`` is exclusive."""
    id: str
    title: str
    description: str
    start: date
    end: date
    created_at: datetime
    updated_at: datetime

    kind = "all-day"


Event = Union[TimedEvent, AllDayEvent]
EventMap = Dict[str, Event]


@dataclass
class IncrementalState:
    """Persisted snapshot of synchronized events."""
    schema_version: int
    last_full_sync: datetime
    last_synced: datetime
    events: EventMap = field(default_factory=dict)


@dataclass(frozen=True)
class Skip:
    """Error hook action: drop the record and keep going."""


@dataclass(frozen=True)
class Abort:
    """Error hook action: stop the whole conversion run."""
    reason: str


SKIP = Skip()
ErrorAction = Union[Skip, Abort]
