"""Ticket lifecycle reconciliation.

Each operation validates its input, submits one contract transaction and,
only once the receipt confirms it, mirrors the result into the ticket store.
Chain failures leave the store untouched. A confirmed transaction that cannot
be mirrored is raised as ``ReconciliationGap`` and queued for repair; it is
never retried here because a retry would submit a second transaction.

The reconciler keeps no state between calls; concurrent requests share only
the chain client and the store.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from web3 import Web3

from errors import InvalidAmount, InvalidRequest, NotFound, ReconciliationGap
from event_store import EventStore
from logging_system import AuditLog, LogType
from models import Ticket
from monitoring import reconciliation_gaps_total, tickets_minted_total
from ticket_store import TicketStore
from units import from_base_units, to_base_units
from web3_client import MINT_EVENT, ChainResult, TicketChainClient, TxReceipt


@dataclass
class ReconciliationResult:
    transaction: TxReceipt
    ticket: Optional[Ticket] = None


def _require_text(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequest(f"Missing '{name}'")
    return value


def _require_address(value: Any, name: str) -> str:
    value = _require_text(value, name)
    if not Web3.is_address(value):
        raise InvalidRequest(f"'{name}' is not a valid address: {value!r}")
    return value


def _require_id(value: Any, name: str = "ticketId") -> int:
    if isinstance(value, bool):
        raise InvalidRequest(f"'{name}' must be a non-negative integer")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value)
    if not isinstance(value, int) or value < 0:
        raise InvalidRequest(f"'{name}' must be a non-negative integer")
    return value


def _require_wei(value: Any, name: str) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidRequest(f"Missing '{name}'")
    return to_base_units(value)


class TicketReconciler:
    """Mirrors confirmed ticket contract transactions into the ticket store."""

    def __init__(
        self,
        chain: TicketChainClient,
        store: TicketStore,
        audit: Optional[AuditLog] = None,
        events: Optional[EventStore] = None,
    ):
        self.chain = chain
        self.store = store
        self.audit = audit or AuditLog()
        self.events = events

    # --- Actions that create a ticket ---

    def mint(self, to: str, price: Any, token_uri: str, event_id: Any = None) -> ReconciliationResult:
        to = _require_address(to, "to")
        token_uri = _require_text(token_uri, "tokenURI")
        price_wei = _require_wei(price, "price")
        event_id = self._require_event(event_id)

        result = self.chain.mint(to, price_wei, token_uri)

        ticket = self._create_from_event(
            "mint",
            result,
            lambda token_id: Ticket(
                ticket_id=token_id,
                owner=to,
                base_price=str(price_wei),
                sale_price="0",
                token_uri=token_uri,
                event_id=event_id,
                validated=False,
            ),
            payload={"to": to, "basePrice": str(price_wei), "tokenURI": token_uri, "eventId": event_id},
        )
        self.audit.log_event(
            LogType.TICKET_MINTED,
            f"Ticket {ticket.ticket_id} minted for {to}",
            metadata={"ticket_id": ticket.ticket_id, "tx_hash": result.receipt.tx_hash},
        )
        return ReconciliationResult(transaction=result.receipt, ticket=ticket)

    def buy(self, token_uri: str, buyer: str, value: Any, event_id: Any = None) -> ReconciliationResult:
        token_uri = _require_text(token_uri, "tokenURI")
        buyer = _require_address(buyer, "buyer")
        value_wei = _require_wei(value, "value")
        event_id = self._require_event(event_id)

        result = self.chain.buy(buyer, token_uri, value_wei)

        ticket = self._create_from_event(
            "buy",
            result,
            lambda token_id: Ticket(
                ticket_id=token_id,
                owner=buyer,
                base_price=str(value_wei),
                sale_price="0",
                token_uri=token_uri,
                event_id=event_id,
                validated=False,
            ),
            payload={"buyer": buyer, "basePrice": str(value_wei), "tokenURI": token_uri, "eventId": event_id},
        )
        self.audit.log_event(
            LogType.TICKET_BOUGHT,
            f"Ticket {ticket.ticket_id} bought by {buyer}",
            metadata={"ticket_id": ticket.ticket_id, "tx_hash": result.receipt.tx_hash},
        )
        return ReconciliationResult(transaction=result.receipt, ticket=ticket)

    # --- Actions on an existing ticket ---

    def list_for_sale(self, ticket_id: Any, sale_price: Any, owner: str) -> ReconciliationResult:
        ticket_id = _require_id(ticket_id)
        owner = _require_address(owner, "owner")
        price_wei = _require_wei(sale_price, "salePrice")
        if price_wei == 0:
            raise InvalidAmount("'salePrice' must be greater than zero")
        self._require_ticket(ticket_id)

        result = self.chain.list_for_sale(owner, ticket_id, price_wei)

        ticket = self._apply("list", ticket_id, {"sale_price": str(price_wei)}, result)
        self.audit.log_event(
            LogType.TICKET_LISTED,
            f"Ticket {ticket_id} listed at {from_base_units(price_wei)} ETH",
            metadata={"ticket_id": ticket_id, "tx_hash": result.receipt.tx_hash},
        )
        return ReconciliationResult(transaction=result.receipt, ticket=ticket)

    def cancel_sale(self, ticket_id: Any, owner: str) -> ReconciliationResult:
        ticket_id = _require_id(ticket_id)
        owner = _require_address(owner, "owner")
        self._require_ticket(ticket_id)

        result = self.chain.cancel_sale(owner, ticket_id)

        ticket = self._apply("cancel", ticket_id, {"sale_price": "0"}, result)
        self.audit.log_event(
            LogType.SALE_CANCELLED,
            f"Sale of ticket {ticket_id} cancelled",
            metadata={"ticket_id": ticket_id, "tx_hash": result.receipt.tx_hash},
        )
        return ReconciliationResult(transaction=result.receipt, ticket=ticket)

    def purchase(self, ticket_id: Any, buyer: str) -> ReconciliationResult:
        ticket_id = _require_id(ticket_id)
        buyer = _require_address(buyer, "buyer")
        current = self._require_ticket(ticket_id)

        # Pay the asking price as last mirrored; the contract has the final say.
        result = self.chain.purchase(buyer, ticket_id, int(current.sale_price))

        ticket = self._apply("purchase", ticket_id, {"owner": buyer, "sale_price": "0"}, result)
        self.audit.log_event(
            LogType.TICKET_PURCHASED,
            f"Ticket {ticket_id} purchased by {buyer}",
            metadata={"ticket_id": ticket_id, "tx_hash": result.receipt.tx_hash},
        )
        return ReconciliationResult(transaction=result.receipt, ticket=ticket)

    def validate(self, ticket_id: Any, owner: str) -> ReconciliationResult:
        ticket_id = _require_id(ticket_id)
        owner = _require_address(owner, "owner")
        # No short-circuit on an already validated record: the contract decides.
        self._require_ticket(ticket_id)

        result = self.chain.validate(owner, ticket_id)

        ticket = self._apply("validate", ticket_id, {"validated": True}, result)
        self.audit.log_event(
            LogType.TICKET_VALIDATED,
            f"Ticket {ticket_id} validated",
            metadata={"ticket_id": ticket_id, "tx_hash": result.receipt.tx_hash},
        )
        return ReconciliationResult(transaction=result.receipt, ticket=ticket)

    # --- Reads ---

    def list_tickets(self) -> List[Ticket]:
        return list(self.store.list_all())

    def list_event_tickets(self, event_id: Any) -> List[Ticket]:
        event_id = self._require_event(_require_id(event_id, "eventId"))
        return self.store.list_by_event(event_id)

    def get_ticket(self, ticket_id: Any) -> Ticket:
        return self._require_ticket(_require_id(ticket_id))

    # --- Helpers ---

    def _require_ticket(self, ticket_id: int) -> Ticket:
        ticket = self.store.find_by_id(ticket_id)
        if ticket is None:
            raise NotFound(f"Ticket {ticket_id} not found")
        return ticket

    def _require_event(self, event_id: Any) -> Optional[int]:
        if event_id is None:
            return None
        event_id = _require_id(event_id, "eventId")
        if self.events is None or self.events.find_by_id(event_id) is None:
            raise NotFound(f"Event {event_id} not found")
        return event_id

    def _create_from_event(
        self,
        action: str,
        result: ChainResult,
        make_ticket: Callable[[int], Ticket],
        payload: Dict[str, Any],
    ) -> Ticket:
        minted = result.minted_ticket()
        if minted is None:
            reason = f"{MINT_EVENT} event missing from confirmed transaction"
            if result.undecoded:
                reason += f" (undecodable logs: {', '.join(result.undecoded)})"
            raise self._gap(action, reason, result, payload)

        try:
            ticket = self.store.create(make_ticket(minted.token_id))
        except Exception as e:
            payload = {**payload, "ticketId": minted.token_id}
            raise self._gap(action, f"Store create failed for ticket {minted.token_id}: {e}", result, payload, e)

        tickets_minted_total.labels(action=action).inc()
        return ticket

    def _apply(self, action: str, ticket_id: int, fields: Dict[str, Any], result: ChainResult) -> Ticket:
        try:
            return self.store.update(ticket_id, fields)
        except Exception as e:
            payload = {"ticketId": ticket_id, "fields": fields}
            raise self._gap(action, f"Store update failed for ticket {ticket_id}: {e}", result, payload, e)

    def _gap(
        self,
        action: str,
        reason: str,
        result: ChainResult,
        payload: Dict[str, Any],
        cause: Optional[Exception] = None,
    ) -> ReconciliationGap:
        reconciliation_gaps_total.labels(action=action).inc()
        self.audit.record_gap(action, reason, transaction=result.receipt.to_dict(), payload=payload)
        return ReconciliationGap(action, reason, transaction=result.receipt, cause=cause)
