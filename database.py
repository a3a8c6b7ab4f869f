"""Supabase client setup and store construction."""
import logging
from typing import Optional, Tuple

from supabase import Client, create_client

from config import Settings
from event_store import EventStore, InMemoryEventStore, SupabaseEventStore
from ticket_store import InMemoryTicketStore, SupabaseTicketStore, TicketStore

logger = logging.getLogger(__name__)


def create_supabase_client(settings: Settings) -> Client:
    """Create a Supabase client with the service key (server-side writes)."""
    if not settings.supabase_url:
        raise ValueError("SUPABASE_URL is not set")
    if not settings.supabase_service_key:
        raise ValueError("SUPABASE_SERVICE_KEY is not set")
    return create_client(settings.supabase_url, settings.supabase_service_key)


def build_stores(settings: Settings) -> Tuple[TicketStore, EventStore, Optional[Client]]:
    """Return the configured ticket and event stores and the Supabase client behind them, if any."""
    if settings.store_backend == "memory":
        logger.warning("Using in-memory stores; records are lost on restart")
        return InMemoryTicketStore(), InMemoryEventStore(), None

    if settings.store_backend != "supabase":
        raise ValueError(f"Unknown TICKET_STORE_BACKEND: {settings.store_backend}")

    client = create_supabase_client(settings)
    return (
        SupabaseTicketStore(client, table=settings.tickets_table),
        SupabaseEventStore(client, table=settings.events_table),
        client,
    )
