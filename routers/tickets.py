"""Tickets router: one endpoint per lifecycle action plus reads.

Handlers are plain functions, so FastAPI runs them in its thread pool and a
request waiting on a receipt only holds its own worker.
"""
from fastapi import APIRouter, Depends, Request

from models import (
    BuyRequest,
    CancelRequest,
    ListRequest,
    MintRequest,
    PurchaseRequest,
    Ticket,
    TicketActionResponse,
    TicketListResponse,
    TransactionActionResponse,
    ValidateRequest,
)
from reconciliation import ReconciliationResult, TicketReconciler

router = APIRouter(prefix="/tickets", tags=["Tickets"])


def get_reconciler(request: Request) -> TicketReconciler:
    """Reconciler built at startup and kept on the application state."""
    return request.app.state.reconciler


def _ticket_response(message: str, result: ReconciliationResult) -> dict:
    return {
        "message": message,
        "ticket": result.ticket,
        "transaction": result.transaction.to_dict(),
    }


def _transaction_response(message: str, result: ReconciliationResult) -> dict:
    return {"message": message, "transaction": result.transaction.to_dict()}


@router.get("", response_model=TicketListResponse)
def list_tickets(reconciler: TicketReconciler = Depends(get_reconciler)):
    """Get all mirrored ticket records."""
    return {"tickets": reconciler.list_tickets()}


@router.post("/mint", response_model=TicketActionResponse)
def mint_ticket(req: MintRequest, reconciler: TicketReconciler = Depends(get_reconciler)):
    """Mint a ticket to an address (contract owner only)."""
    result = reconciler.mint(req.to, req.price, req.token_uri, req.event_id)
    return _ticket_response("Ticket minted successfully", result)


@router.post("/buy", response_model=TicketActionResponse)
def buy_ticket(req: BuyRequest, reconciler: TicketReconciler = Depends(get_reconciler)):
    """Buy a newly minted ticket directly from the contract."""
    result = reconciler.buy(req.token_uri, req.buyer, req.value, req.event_id)
    return _ticket_response("Ticket purchased successfully", result)


@router.post("/list", response_model=TransactionActionResponse)
def list_ticket(req: ListRequest, reconciler: TicketReconciler = Depends(get_reconciler)):
    """List an owned ticket for resale."""
    result = reconciler.list_for_sale(req.ticket_id, req.sale_price, req.owner)
    return _transaction_response("Ticket listed for sale", result)


@router.post("/cancel", response_model=TransactionActionResponse)
def cancel_sale(req: CancelRequest, reconciler: TicketReconciler = Depends(get_reconciler)):
    """Withdraw a ticket from resale."""
    result = reconciler.cancel_sale(req.ticket_id, req.owner)
    return _transaction_response("Ticket sale cancelled", result)


@router.post("/purchase", response_model=TransactionActionResponse)
def purchase_ticket(req: PurchaseRequest, reconciler: TicketReconciler = Depends(get_reconciler)):
    """Purchase a ticket listed for resale at its asking price."""
    result = reconciler.purchase(req.ticket_id, req.buyer)
    return _transaction_response("Ticket purchased from resale", result)


@router.post("/validate", response_model=TransactionActionResponse)
def validate_ticket(req: ValidateRequest, reconciler: TicketReconciler = Depends(get_reconciler)):
    """Mark a ticket as used at the venue."""
    result = reconciler.validate(req.ticket_id, req.owner)
    return _transaction_response("Ticket validated", result)


@router.get("/{ticket_id}", response_model=Ticket)
def get_ticket(ticket_id: int, reconciler: TicketReconciler = Depends(get_reconciler)):
    """Get a specific ticket by its on-chain id."""
    return reconciler.get_ticket(ticket_id)
