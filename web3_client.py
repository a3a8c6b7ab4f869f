"""Chain client for the ticket NFT contract.

Wraps a Web3 contract instance and exposes one call per lifecycle action.
Every call submits a transaction, waits for its receipt and decodes the
events the contract emitted. Reverts surface as ``ChainRejected``,
transport failures and receipt timeouts as ``ChainUnavailable``. Nothing is
retried here.
"""
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import requests
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception
from web3.logs import DISCARD

from config import Settings
from errors import ChainRejected, ChainUnavailable, InvalidRequest
from monitoring import chain_transaction_duration_seconds, chain_transactions_total

logger = logging.getLogger(__name__)

MINT_EVENT = "TicketMinted"

_TRANSPORT_ERRORS = (requests.exceptions.RequestException, ConnectionError, TimeoutError)


@dataclass(frozen=True)
class TxReceipt:
    tx_hash: str
    status: int
    gas_used: int
    block_number: int

    def to_dict(self) -> Dict[str, Any]:
        # Integers travel as strings so clients never lose precision.
        return {
            "transactionHash": self.tx_hash,
            "status": self.status,
            "gasUsed": str(self.gas_used),
            "blockNumber": str(self.block_number),
        }


@dataclass(frozen=True)
class MintedTicket:
    token_id: int


@dataclass
class ChainResult:
    receipt: TxReceipt
    events: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    undecoded: List[str] = field(default_factory=list)

    def minted_ticket(self) -> Optional[MintedTicket]:
        """Return the ticket created by this transaction, or None if no mint event was emitted."""
        for args in self.events.get(MINT_EVENT, []):
            token_id = args.get("tokenId")
            if token_id is not None:
                return MintedTicket(token_id=int(token_id))
        return None


class TicketChainClient:
    """Typed access to the ticket contract. Safe to share between worker threads."""

    def __init__(
        self,
        w3: Web3,
        contract,
        gas_limit: int = 5_000_000,
        gas_price: Optional[int] = None,
        receipt_timeout: float = 120.0,
        signer=None,
        admin_address: Optional[str] = None,
    ):
        self.w3 = w3
        self.contract = contract
        self.gas_limit = gas_limit
        self.gas_price = gas_price
        self.receipt_timeout = receipt_timeout
        self.signer = signer
        # Contract owner account used for minting
        self.admin_address = admin_address or (signer.address if signer is not None else None)
        if not self.admin_address:
            raise ValueError("No minting account: set PRIVATE_KEY or ADMIN_ADDRESS")
        self._nonce_lock = threading.Lock()
        self._event_names = [
            item["name"] for item in (contract.abi or []) if item.get("type") == "event"
        ]

    # --- Lifecycle calls ---

    def mint(self, to: str, price_wei: int, token_uri: str) -> ChainResult:
        func = self.contract.functions.mintTicket(self._checksum(to), price_wei, token_uri)
        return self._submit("mint", func, self.admin_address)

    def buy(self, buyer: str, token_uri: str, value_wei: int) -> ChainResult:
        func = self.contract.functions.buyTicket(token_uri)
        return self._submit("buy", func, buyer, value=value_wei)

    def list_for_sale(self, owner: str, ticket_id: int, price_wei: int) -> ChainResult:
        func = self.contract.functions.listForSale(ticket_id, price_wei)
        return self._submit("list", func, owner)

    def cancel_sale(self, owner: str, ticket_id: int) -> ChainResult:
        func = self.contract.functions.cancelSale(ticket_id)
        return self._submit("cancel", func, owner)

    def purchase(self, buyer: str, ticket_id: int, value_wei: int) -> ChainResult:
        func = self.contract.functions.purchase(ticket_id)
        return self._submit("purchase", func, buyer, value=value_wei)

    def validate(self, owner: str, ticket_id: int) -> ChainResult:
        func = self.contract.functions.validateTicket(ticket_id)
        return self._submit("validate", func, owner)

    # --- Submission ---

    def _submit(self, action: str, func, sender: str, value: int = 0) -> ChainResult:
        start_time = time.time()
        outcome = "error"
        try:
            result = self._transact(action, func, self._checksum(sender), value)
            outcome = "confirmed"
        except ChainRejected:
            outcome = "rejected"
            raise
        except ChainUnavailable:
            outcome = "unavailable"
            raise
        finally:
            chain_transactions_total.labels(action=action, outcome=outcome).inc()
            chain_transaction_duration_seconds.labels(action=action).observe(time.time() - start_time)

        logger.info(
            f"{action} confirmed: tx={result.receipt.tx_hash} block={result.receipt.block_number} "
            f"events={sorted(result.events)}"
        )
        return result

    def _transact(self, action: str, func, sender: str, value: int) -> ChainResult:
        try:
            tx_hash = self._send(func, sender, value)
        except ContractLogicError as e:
            raise ChainRejected(f"{action} reverted: {e}")
        except _TRANSPORT_ERRORS as e:
            raise ChainUnavailable(f"{action} could not reach the chain: {e}")
        except (ValueError, Web3Exception) as e:
            raise ChainRejected(f"{action} refused by node: {e}")

        tx_hex = Web3.to_hex(tx_hash)
        try:
            raw_receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except TimeExhausted:
            raise ChainUnavailable(
                f"{action} submitted but no receipt within {self.receipt_timeout}s", tx_hash=tx_hex
            )
        except _TRANSPORT_ERRORS as e:
            raise ChainUnavailable(f"{action} submitted but receipt lookup failed: {e}", tx_hash=tx_hex)
        except (ValueError, Web3Exception) as e:
            # The transaction was accepted by the node, so it may still be mined
            raise ChainUnavailable(f"{action} submitted but receipt lookup failed: {e}", tx_hash=tx_hex)

        receipt = TxReceipt(
            tx_hash=tx_hex,
            status=int(raw_receipt["status"]),
            gas_used=int(raw_receipt["gasUsed"]),
            block_number=int(raw_receipt["blockNumber"]),
        )
        if receipt.status != 1:
            raise ChainRejected(f"{action} reverted in block {receipt.block_number}", tx_hash=tx_hex)

        events, undecoded = self._decode_events(raw_receipt, tx_hex)
        return ChainResult(receipt=receipt, events=events, undecoded=undecoded)

    def _send(self, func, sender: str, value: int):
        params: Dict[str, Any] = {"from": sender, "gas": self.gas_limit, "value": value}
        if self.gas_price is not None:
            params["gasPrice"] = self.gas_price

        if self.signer is None or sender != self.signer.address:
            # Node-managed account (e.g. a Ganache unlocked account).
            return func.transact(params)

        with self._nonce_lock:
            params["nonce"] = self.w3.eth.get_transaction_count(sender, "pending")
            params["chainId"] = self.w3.eth.chain_id
            tx = func.build_transaction(params)
            signed_tx = self.signer.sign_transaction(tx)
            raw = getattr(signed_tx, "raw_transaction", None) or signed_tx.rawTransaction
            return self.w3.eth.send_raw_transaction(raw)

    def _decode_events(self, raw_receipt, tx_hex: str) -> Tuple[Dict[str, List[Dict[str, Any]]], List[str]]:
        """Decode every ABI event in the receipt. Returns the decoded events and the names that failed."""
        events: Dict[str, List[Dict[str, Any]]] = {}
        undecoded: List[str] = []
        for name in self._event_names:
            event = getattr(self.contract.events, name)()
            try:
                logs = event.process_receipt(raw_receipt, errors=DISCARD)
            except (ValueError, KeyError, TypeError, Web3Exception) as e:
                # The receipt is already final; a decode failure must not hide it
                logger.error(f"Could not decode {name} logs in {tx_hex}: {e}")
                undecoded.append(name)
                continue
            if logs:
                events[name] = [dict(log["args"]) for log in logs]
        return events, undecoded

    @staticmethod
    def _checksum(address: str) -> str:
        try:
            return Web3.to_checksum_address(address)
        except (ValueError, TypeError):
            raise InvalidRequest(f"Invalid address: {address!r}")


def load_contract_abi(path: str) -> List[Dict[str, Any]]:
    """Read an ABI from a compiled artifact (``{"abi": [...]}``) or a bare ABI list."""
    with open(Path(path), "r") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("abi")
    if not isinstance(data, list):
        raise ValueError(f"No contract ABI found in {path}")
    return data


def build_chain_client(settings: Settings) -> TicketChainClient:
    """Connect to the configured RPC endpoint and bind the ticket contract."""
    if not settings.contract_address:
        raise ValueError("CONTRACT_ADDRESS is not set")

    w3 = Web3(Web3.HTTPProvider(settings.rpc_url, request_kwargs={"timeout": settings.receipt_timeout}))
    contract = w3.eth.contract(
        address=Web3.to_checksum_address(settings.contract_address),
        abi=load_contract_abi(settings.contract_abi_path),
    )

    signer = None
    if settings.private_key:
        signer = w3.eth.account.from_key(settings.private_key)
        logger.info(f"Local signer configured for {signer.address}")
    else:
        logger.warning("PRIVATE_KEY not set; only node-managed accounts can transact")

    admin_address = settings.admin_address or (signer.address if signer is not None else None)
    if not admin_address:
        # Fall back to the node's first unlocked account (the deployer on Ganache)
        try:
            accounts = w3.eth.accounts
        except _TRANSPORT_ERRORS as e:
            raise ValueError(f"No minting account configured and node accounts unavailable: {e}")
        if not accounts:
            raise ValueError("No minting account: set PRIVATE_KEY or ADMIN_ADDRESS")
        admin_address = accounts[0]
    logger.info(f"Minting account: {admin_address}")

    logger.info(f"Ticket contract bound at {contract.address} via {settings.rpc_url}")
    return TicketChainClient(
        w3,
        contract,
        gas_limit=settings.gas_limit,
        gas_price=settings.gas_price_wei,
        receipt_timeout=settings.receipt_timeout,
        signer=signer,
        admin_address=admin_address,
    )
