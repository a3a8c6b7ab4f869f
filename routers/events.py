"""Event catalog router. Events are off-chain records that minted tickets can reference."""
import logging

from fastapi import APIRouter, Depends, Request

from errors import NotFound
from event_store import EventStore
from models import Event, EventCreate, EventListResponse, TicketListResponse
from reconciliation import TicketReconciler
from routers.tickets import get_reconciler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["Events"])


def get_event_store(request: Request) -> EventStore:
    return request.app.state.event_store


@router.post("/create", response_model=Event)
def create_event(event: EventCreate, events: EventStore = Depends(get_event_store)):
    """Create a catalog event."""
    created = events.create(event)
    logger.info(f"Event {created.event_id} created: {created.name} ({created.date})")
    return created


@router.get("", response_model=EventListResponse)
def list_events(events: EventStore = Depends(get_event_store)):
    """Get all catalog events."""
    return {"events": events.list_all()}


@router.get("/{event_id}", response_model=Event)
def get_event(event_id: int, events: EventStore = Depends(get_event_store)):
    event = events.find_by_id(event_id)
    if event is None:
        raise NotFound(f"Event {event_id} not found")
    return event


@router.get("/{event_id}/tickets", response_model=TicketListResponse)
def list_event_tickets(event_id: int, reconciler: TicketReconciler = Depends(get_reconciler)):
    """Get the mirrored tickets minted for an event."""
    return {"tickets": reconciler.list_event_tickets(event_id)}
