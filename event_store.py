"""Event catalog store. Events live only off-chain; tickets reference them by id."""
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol

from supabase import Client

from errors import StoreError
from models import Event, EventCreate
from ticket_store import run_query


class EventStore(Protocol):
    def create(self, event: EventCreate) -> Event: ...

    def find_by_id(self, event_id: int) -> Optional[Event]: ...

    def list_all(self) -> List[Event]: ...


class SupabaseEventStore:
    """Events in a Supabase table whose ``event_id`` column is an identity."""

    def __init__(self, db: Client, table: str = "events"):
        self.db = db
        self.table = table

    def create(self, event: EventCreate) -> Event:
        row = event.model_dump(exclude_none=True)
        row["created_at"] = datetime.now(timezone.utc).isoformat()
        response = run_query("create_event", self.db.table(self.table).insert(row))
        if not response.data:
            raise StoreError("Event insert returned no row")
        return Event.from_row(response.data[0])

    def find_by_id(self, event_id: int) -> Optional[Event]:
        response = run_query(
            "find_event",
            self.db.table(self.table).select("*").eq("event_id", event_id).limit(1),
        )
        if not response.data:
            return None
        return Event.from_row(response.data[0])

    def list_all(self) -> List[Event]:
        response = run_query(
            "list_events",
            self.db.table(self.table).select("*").order("event_id"),
        )
        return [Event.from_row(row) for row in response.data or []]


class InMemoryEventStore:
    def __init__(self):
        self._events: Dict[int, Event] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def create(self, event: EventCreate) -> Event:
        with self._lock:
            record = Event(
                event_id=self._next_id,
                created_at=datetime.now(timezone.utc),
                **event.model_dump(),
            )
            self._events[record.event_id] = record
            self._next_id += 1
        return record

    def find_by_id(self, event_id: int) -> Optional[Event]:
        with self._lock:
            return self._events.get(event_id)

    def list_all(self) -> List[Event]:
        with self._lock:
            return sorted(self._events.values(), key=lambda e: e.event_id)
