"""
Tests for the ticket contract client.
"""
import json

import pytest
import requests
from unittest.mock import Mock
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception
from web3.logs import DISCARD

from errors import ChainRejected, ChainUnavailable, InvalidRequest
from web3_client import TicketChainClient, load_contract_abi
from tests.conftest import ADMIN, BUYER, OWNER

TX_HASH = b"\x01" * 32
TX_HEX = "0x" + "01" * 32

ABI = [
    {"type": "function", "name": "mintTicket", "inputs": []},
    {"type": "event", "name": "TicketMinted", "inputs": []},
    {"type": "event", "name": "Transfer", "inputs": []},
]


@pytest.fixture
def contract():
    contract = Mock()
    contract.abi = ABI
    contract.events.TicketMinted.return_value.process_receipt.return_value = [
        {"args": {"tokenId": 7, "owner": OWNER}}
    ]
    contract.events.Transfer.return_value.process_receipt.return_value = []
    for name in ("mintTicket", "buyTicket", "listForSale", "cancelSale", "purchase", "validateTicket"):
        getattr(contract.functions, name).return_value.transact.return_value = TX_HASH
    return contract


@pytest.fixture
def w3():
    w3 = Mock()
    w3.eth.wait_for_transaction_receipt.return_value = {
        "status": 1,
        "gasUsed": 84000,
        "blockNumber": 12,
        "transactionHash": TX_HASH,
    }
    return w3


@pytest.fixture
def chain(w3, contract):
    return TicketChainClient(w3, contract, gas_limit=500000, admin_address=ADMIN)


class TestTicketChainClient:
    """Test suite for transaction submission and receipt decoding."""

    def test_mint_returns_receipt_and_decoded_events(self, chain, contract):
        result = chain.mint(OWNER, 10**17, "ipfs://a")

        assert result.receipt.tx_hash == TX_HEX
        assert result.receipt.gas_used == 84000
        assert result.receipt.block_number == 12
        assert result.minted_ticket().token_id == 7
        assert "Transfer" not in result.events
        contract.functions.mintTicket.assert_called_once_with(OWNER, 10**17, "ipfs://a")
        contract.functions.mintTicket.return_value.transact.assert_called_once_with(
            {"from": ADMIN, "gas": 500000, "value": 0}
        )
        contract.events.TicketMinted.return_value.process_receipt.assert_called_once()
        assert contract.events.TicketMinted.return_value.process_receipt.call_args.kwargs["errors"] == DISCARD

    def test_receipt_to_dict_encodes_integers_as_strings(self, chain):
        data = chain.validate(OWNER, 3).receipt.to_dict()
        assert data == {"transactionHash": TX_HEX, "status": 1, "gasUsed": "84000", "blockNumber": "12"}

    def test_missing_mint_event(self, chain, contract):
        contract.events.TicketMinted.return_value.process_receipt.return_value = []
        assert chain.mint(OWNER, 1, "ipfs://a").minted_ticket() is None

    def test_payable_calls_send_value_from_caller(self, chain, contract):
        chain.purchase(BUYER, 4, 3 * 10**17)
        contract.functions.purchase.assert_called_once_with(4)
        contract.functions.purchase.return_value.transact.assert_called_once_with(
            {"from": BUYER, "gas": 500000, "value": 3 * 10**17}
        )

        chain.buy(BUYER, "ipfs://b", 2 * 10**17)
        contract.functions.buyTicket.assert_called_once_with("ipfs://b")

    def test_gas_price_is_passed_when_configured(self, w3, contract):
        chain = TicketChainClient(w3, contract, gas_limit=500000, gas_price=20_000_000_000, admin_address=ADMIN)
        chain.cancel_sale(OWNER, 1)
        params = contract.functions.cancelSale.return_value.transact.call_args.args[0]
        assert params["gasPrice"] == 20_000_000_000

    def test_revert_is_rejected(self, chain, contract):
        contract.functions.listForSale.return_value.transact.side_effect = ContractLogicError(
            "execution reverted: not ticket owner"
        )
        with pytest.raises(ChainRejected):
            chain.list_for_sale(BUYER, 1, 10**17)

    def test_node_error_is_rejected(self, chain, contract):
        contract.functions.buyTicket.return_value.transact.side_effect = ValueError(
            {"message": "insufficient funds for gas * price + value"}
        )
        with pytest.raises(ChainRejected):
            chain.buy(BUYER, "ipfs://b", 10**30)

    def test_failed_receipt_is_rejected(self, chain, w3):
        w3.eth.wait_for_transaction_receipt.return_value = {"status": 0, "gasUsed": 21000, "blockNumber": 13}
        with pytest.raises(ChainRejected) as exc_info:
            chain.validate(OWNER, 1)
        assert exc_info.value.tx_hash == TX_HEX

    def test_connection_error_is_unavailable(self, chain, contract):
        contract.functions.validateTicket.return_value.transact.side_effect = requests.exceptions.ConnectionError(
            "connection refused"
        )
        with pytest.raises(ChainUnavailable) as exc_info:
            chain.validate(OWNER, 1)
        assert exc_info.value.tx_hash is None

    def test_receipt_timeout_is_unavailable_with_hash(self, chain, w3):
        w3.eth.wait_for_transaction_receipt.side_effect = TimeExhausted("not mined")
        with pytest.raises(ChainUnavailable) as exc_info:
            chain.cancel_sale(OWNER, 1)
        assert exc_info.value.tx_hash == TX_HEX
        assert exc_info.value.chain_outcome == "uncertain"

    def test_client_requires_minting_account(self, w3, contract):
        with pytest.raises(ValueError):
            TicketChainClient(w3, contract)
        contract.functions.mintTicket.assert_not_called()

    def test_node_error_while_waiting_is_unavailable_with_hash(self, chain, w3):
        w3.eth.wait_for_transaction_receipt.side_effect = ValueError(
            {"code": -32000, "message": "header not found"}
        )
        with pytest.raises(ChainUnavailable) as exc_info:
            chain.validate(OWNER, 1)
        assert exc_info.value.tx_hash == TX_HEX
        assert exc_info.value.chain_outcome == "uncertain"

    def test_rpc_error_while_waiting_is_unavailable(self, chain, w3):
        w3.eth.wait_for_transaction_receipt.side_effect = Web3Exception("rpc failure")
        with pytest.raises(ChainUnavailable) as exc_info:
            chain.purchase(BUYER, 2, 10**17)
        assert exc_info.value.tx_hash == TX_HEX

    def test_undecodable_event_keeps_confirmed_receipt(self, chain, contract):
        contract.events.TicketMinted.return_value.process_receipt.side_effect = ValueError("bad log data")

        result = chain.mint(OWNER, 1, "ipfs://a")

        assert result.receipt.status == 1
        assert result.minted_ticket() is None
        assert result.undecoded == ["TicketMinted"]

    def test_invalid_sender(self, chain):
        with pytest.raises(InvalidRequest):
            chain.validate("0x123", 1)

    def test_local_signer_signs_and_sends_raw(self, w3, contract):
        signer = Mock()
        signer.address = ADMIN
        signer.sign_transaction.return_value = Mock(raw_transaction=b"signed")
        w3.eth.get_transaction_count.return_value = 9
        w3.eth.chain_id = 1337
        w3.eth.send_raw_transaction.return_value = TX_HASH
        func = contract.functions.mintTicket.return_value
        func.build_transaction.return_value = {"to": "0xcontract"}
        chain = TicketChainClient(w3, contract, gas_limit=500000, signer=signer)

        result = chain.mint(OWNER, 1, "ipfs://a")

        assert chain.admin_address == ADMIN
        assert result.receipt.tx_hash == TX_HEX
        params = func.build_transaction.call_args.args[0]
        assert params["nonce"] == 9
        assert params["chainId"] == 1337
        assert params["from"] == ADMIN
        w3.eth.send_raw_transaction.assert_called_once_with(b"signed")
        func.transact.assert_not_called()


class TestLoadContractAbi:
    """Test suite for ABI loading."""

    def test_reads_compiled_artifact(self, tmp_path):
        path = tmp_path / "TicketNFT.json"
        path.write_text(json.dumps({"abi": ABI, "bytecode": "0x00"}))
        assert load_contract_abi(str(path)) == ABI

    def test_reads_bare_abi(self, tmp_path):
        path = tmp_path / "abi.json"
        path.write_text(json.dumps(ABI))
        assert load_contract_abi(str(path)) == ABI

    def test_rejects_file_without_abi(self, tmp_path):
        path = tmp_path / "deploy.json"
        path.write_text(json.dumps({"address": "0x0"}))
        with pytest.raises(ValueError):
            load_contract_abi(str(path))
