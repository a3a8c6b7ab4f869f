"""
Pytest configuration and fixtures for backend tests.
"""
import pytest
import os
from fastapi.testclient import TestClient
from unittest.mock import Mock

# Set test environment variables
os.environ["ENVIRONMENT"] = "test"
os.environ["TICKET_STORE_BACKEND"] = "memory"
os.environ.pop("SENTRY_DSN", None)

from event_store import InMemoryEventStore
from logging_system import AuditLog
from reconciliation import TicketReconciler
from ticket_store import InMemoryTicketStore
from web3_client import MINT_EVENT, ChainResult, TxReceipt

ADMIN = "0x1111111111111111111111111111111111111111"
OWNER = "0x2222222222222222222222222222222222222222"
BUYER = "0x3333333333333333333333333333333333333333"


class FakeChainClient:
    """Stands in for TicketChainClient: records calls and confirms them.

    Set ``failure`` to make the next call raise, ``emit_mint_event`` to drop
    the TicketMinted event from mint/buy receipts.
    """

    def __init__(self):
        self.calls = []
        self.next_token_id = 0
        self.emit_mint_event = True
        self.failure = None
        self._block = 100

    def _confirm(self, events=None):
        self._block += 1
        receipt = TxReceipt(
            tx_hash="0x%064x" % self._block,
            status=1,
            gas_used=84000,
            block_number=self._block,
        )
        return ChainResult(receipt=receipt, events=events or {})

    def _record(self, *call):
        self.calls.append(call)
        if self.failure is not None:
            exc, self.failure = self.failure, None
            raise exc

    def _confirm_mint(self):
        if not self.emit_mint_event:
            return self._confirm({"Transfer": [{"tokenId": self.next_token_id}]})
        token_id = self.next_token_id
        self.next_token_id += 1
        return self._confirm({MINT_EVENT: [{"tokenId": token_id}]})

    def mint(self, to, price_wei, token_uri):
        self._record("mint", to, price_wei, token_uri)
        return self._confirm_mint()

    def buy(self, buyer, token_uri, value_wei):
        self._record("buy", buyer, token_uri, value_wei)
        return self._confirm_mint()

    def list_for_sale(self, owner, ticket_id, price_wei):
        self._record("list", owner, ticket_id, price_wei)
        return self._confirm()

    def cancel_sale(self, owner, ticket_id):
        self._record("cancel", owner, ticket_id)
        return self._confirm()

    def purchase(self, buyer, ticket_id, value_wei):
        self._record("purchase", buyer, ticket_id, value_wei)
        return self._confirm()

    def validate(self, owner, ticket_id):
        self._record("validate", owner, ticket_id)
        return self._confirm()


class MockResponse:
    """Shape of a Supabase query response."""

    def __init__(self, data=None, count=0):
        self.data = data if data is not None else []
        self.count = count

    def execute(self):
        return self


@pytest.fixture
def fake_chain():
    return FakeChainClient()


@pytest.fixture
def ticket_store():
    return InMemoryTicketStore()


@pytest.fixture
def event_store():
    return InMemoryEventStore()


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client; every query chain resolves to an empty response."""
    mock_client = Mock()
    mock_client.table.return_value.insert.return_value.execute.return_value = MockResponse()
    return mock_client


@pytest.fixture
def audit(mock_supabase_client):
    return AuditLog(mock_supabase_client)


@pytest.fixture
def reconciler(fake_chain, ticket_store, audit, event_store):
    return TicketReconciler(fake_chain, ticket_store, audit, events=event_store)


@pytest.fixture
def minted_ticket(reconciler):
    """A ticket minted to OWNER at 0.1 ETH."""
    return reconciler.mint(OWNER, "0.1", "ipfs://ticket-metadata-0").ticket


@pytest.fixture
def client(reconciler, event_store):
    """Create a test client wired to the fake chain and in-memory stores."""
    from main import app
    from routers.events import get_event_store
    from routers.tickets import get_reconciler

    app.dependency_overrides[get_reconciler] = lambda: reconciler
    app.dependency_overrides[get_event_store] = lambda: event_store
    yield TestClient(app)
    app.dependency_overrides.clear()
