"""Typed failures for the ticket lifecycle.

Each error knows the HTTP status it maps to and what it says about the
on-chain effect, so the API can tell the caller whether the transaction
did not happen, was rejected, is uncertain or is already final.
"""
from typing import Any, Dict, Optional


class TicketingError(Exception):
    """Base class for all lifecycle failures."""

    kind = "TicketingError"
    status_code = 500
    chain_outcome = "not_submitted"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.kind,
            "detail": self.detail,
            "chainOutcome": self.chain_outcome,
        }


class InvalidRequest(TicketingError):
    kind = "InvalidRequest"
    status_code = 400


class InvalidAmount(InvalidRequest):
    kind = "InvalidAmount"


class NotFound(TicketingError):
    kind = "NotFound"
    status_code = 404


class DuplicateTicket(TicketingError):
    kind = "DuplicateTicket"
    status_code = 409


class StoreError(TicketingError):
    """The document store could not be reached or refused the operation."""

    kind = "StoreError"
    status_code = 503


class ChainError(TicketingError):
    status_code = 502

    def __init__(self, detail: str, tx_hash: Optional[str] = None):
        super().__init__(detail)
        self.tx_hash = tx_hash

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.tx_hash:
            data["transactionHash"] = self.tx_hash
        return data


class ChainRejected(ChainError):
    """The contract reverted or the node refused the transaction."""

    kind = "ChainRejected"
    chain_outcome = "rejected"


class ChainUnavailable(ChainError):
    """The RPC endpoint failed or timed out; the transaction may still land."""

    kind = "ChainUnavailable"
    chain_outcome = "uncertain"


class ReconciliationGap(TicketingError):
    """The chain confirmed the action but the store could not mirror it."""

    kind = "ReconciliationGap"
    status_code = 207
    chain_outcome = "confirmed"

    def __init__(self, action: str, detail: str, transaction=None, cause: Optional[Exception] = None):
        super().__init__(detail)
        self.action = action
        self.transaction = transaction
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["action"] = self.action
        if self.transaction is not None:
            data["transaction"] = self.transaction.to_dict()
        return data
