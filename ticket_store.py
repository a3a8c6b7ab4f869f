"""Ticket record store: CRUD over the off-chain mirror, keyed by ticket id."""
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Protocol

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from errors import DuplicateTicket, NotFound, StoreError
from models import Ticket
from monitoring import store_operations_total

logger = logging.getLogger(__name__)

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"

MUTABLE_FIELDS = frozenset({"owner", "sale_price", "validated"})


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _check_fields(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")


def run_query(operation: str, query):
    """Execute a PostgREST query, mapping driver failures to store errors."""
    try:
        response = query.execute()
    except APIError as e:
        store_operations_total.labels(operation=operation, outcome="error").inc()
        logger.warning(f"Store {operation} failed: code={e.code} message={e.message}")
        if getattr(e, "code", None) == UNIQUE_VIOLATION:
            raise DuplicateTicket(f"Record already exists: {e.message}")
        raise StoreError(f"Store {operation} failed: {e.message}")
    except httpx.HTTPError as e:
        store_operations_total.labels(operation=operation, outcome="error").inc()
        logger.error(f"Store unreachable during {operation}: {e}")
        raise StoreError(f"Store unreachable during {operation}: {e}")
    store_operations_total.labels(operation=operation, outcome="ok").inc()
    return response


class TicketStore(Protocol):
    def create(self, ticket: Ticket) -> Ticket: ...

    def find_by_id(self, ticket_id: int) -> Optional[Ticket]: ...

    def update(self, ticket_id: int, fields: Dict[str, Any]) -> Ticket: ...

    def list_all(self) -> Iterator[Ticket]: ...

    def list_by_event(self, event_id: int) -> List[Ticket]: ...


class SupabaseTicketStore:
    """Ticket records in a Supabase (PostgREST) table."""

    def __init__(self, db: Client, table: str = "tickets", page_size: int = 500):
        self.db = db
        self.table = table
        self.page_size = page_size

    def create(self, ticket: Ticket) -> Ticket:
        now = _now()
        record = ticket.model_copy(update={"created_at": now, "updated_at": now})
        response = run_query("create", self.db.table(self.table).insert(record.to_row()))
        if response.data:
            return Ticket.from_row(response.data[0])
        return record

    def find_by_id(self, ticket_id: int) -> Optional[Ticket]:
        response = run_query(
            "find",
            self.db.table(self.table).select("*").eq("ticket_id", ticket_id).limit(1),
        )
        if not response.data:
            return None
        return Ticket.from_row(response.data[0])

    def update(self, ticket_id: int, fields: Dict[str, Any]) -> Ticket:
        _check_fields(fields)
        changes = dict(fields)
        changes["updated_at"] = _now().isoformat()
        response = run_query(
            "update",
            self.db.table(self.table).update(changes).eq("ticket_id", ticket_id),
        )
        if not response.data:
            raise NotFound(f"Ticket {ticket_id} not found")
        return Ticket.from_row(response.data[0])

    def list_all(self) -> Iterator[Ticket]:
        """Yield every record once, paging by ticket id. Each call starts a fresh pass."""
        last_id = -1
        while True:
            response = run_query(
                "list",
                self.db.table(self.table)
                .select("*")
                .gt("ticket_id", last_id)
                .order("ticket_id")
                .limit(self.page_size),
            )
            rows = response.data or []
            for row in rows:
                ticket = Ticket.from_row(row)
                last_id = ticket.ticket_id
                yield ticket
            if len(rows) < self.page_size:
                return

    def list_by_event(self, event_id: int) -> List[Ticket]:
        response = run_query(
            "list",
            self.db.table(self.table).select("*").eq("event_id", event_id).order("ticket_id"),
        )
        return [Ticket.from_row(row) for row in response.data or []]


class InMemoryTicketStore:
    """Process-local store with the same contract, for development and tests."""

    def __init__(self):
        self._records: Dict[int, Ticket] = {}
        self._lock = threading.Lock()

    def create(self, ticket: Ticket) -> Ticket:
        now = _now()
        record = ticket.model_copy(update={"created_at": now, "updated_at": now})
        with self._lock:
            if record.ticket_id in self._records:
                raise DuplicateTicket(f"Ticket already exists: {record.ticket_id}")
            self._records[record.ticket_id] = record
        return record

    def find_by_id(self, ticket_id: int) -> Optional[Ticket]:
        with self._lock:
            return self._records.get(ticket_id)

    def update(self, ticket_id: int, fields: Dict[str, Any]) -> Ticket:
        _check_fields(fields)
        with self._lock:
            current = self._records.get(ticket_id)
            if current is None:
                raise NotFound(f"Ticket {ticket_id} not found")
            updated = current.model_copy(update={**fields, "updated_at": _now()})
            self._records[ticket_id] = updated
        return updated

    def list_all(self) -> Iterator[Ticket]:
        with self._lock:
            snapshot = sorted(self._records.values(), key=lambda t: t.ticket_id)
        yield from snapshot

    def list_by_event(self, event_id: int) -> List[Ticket]:
        return [ticket for ticket in self.list_all() if ticket.event_id == event_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
