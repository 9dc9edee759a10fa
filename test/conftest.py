"""Shared fixtures for the bridge driver tests."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import base58
import pytest
import rlp
from trie import HexaryTrie

from bridge_driver.clients import BridgeClients
from bridge_driver.config import BridgeSettings
from bridge_driver.models import EvmBlockHeader, EvmReceipt
from bridge_driver.proof_manager import ProofManager

DATA_DIR = Path(__file__).parent / "data"

ZERO_BLOOM = "0x" + "00" * 256
EMPTY_TRIE_ROOT = "0x56e81f171bcc55a6ff8345e692c0f86e5b48e01b996cadc001622fb5e363b421"

CUSTODIAN = "0x" + "c1" * 20
FACTORY = "0x" + "f1" * 20
FAST_BRIDGE = "0x" + "fb" * 20
LIGHT_CLIENT = "0x" + "1c" * 20


def b58(raw: bytes) -> str:
    return base58.b58encode(raw).decode()


def near_secret_key() -> str:
    return "ed25519:" + b58(bytes(range(32)))


def load_light_client_vectors() -> list[bytes]:
    lines = (DATA_DIR / "light_client_proofs.txt").read_text().split()
    return [bytes.fromhex(line) for line in lines]


def load_reference_blocks() -> dict[str, dict]:
    """Blocks with every receipt, whose receipts root and hash were computed outside this package."""
    blocks = json.loads((DATA_DIR / "reference_blocks.json").read_text())
    return {block["name"]: block for block in blocks}


def make_log(address: str = "0x" + "aa" * 20, topics=(), data: str = "0x", log_index: int = 0) -> dict:
    return {
        "address": address,
        "topics": list(topics),
        "data": data,
        "logIndex": hex(log_index),
        "removed": False,
    }


def make_receipt(
    index: int,
    tx_type: str | None = "0x2",
    logs=(),
    cumulative: str = "0x5208",
    status: str = "0x1",
    block_number: int = 0x10,
) -> dict:
    receipt = {
        "transactionHash": "0x" + f"{index + 1:064x}",
        "blockHash": "0x" + "bb" * 32,
        "blockNumber": hex(block_number),
        "transactionIndex": hex(index),
        "status": status,
        "cumulativeGasUsed": cumulative,
        "logsBloom": ZERO_BLOOM,
        "logs": list(logs),
        # Fields the proof never reads
        "from": "0x" + "01" * 20,
        "to": "0x" + "02" * 20,
        "gasUsed": "0x5208",
        "effectiveGasPrice": "0x3b9aca00",
        "contractAddress": None,
        "blobGasUsed": "0x0",
    }
    if tx_type is not None:
        receipt["type"] = tx_type
    return receipt


def reference_receipt_rlp(receipt: dict) -> bytes:
    """Typed receipt encoding computed straight from the JSON, with integer quantities."""
    logs = [
        [bytes.fromhex(log["address"][2:]),
         [bytes.fromhex(t[2:]) for t in log["topics"]],
         bytes.fromhex(log["data"][2:])]
        for log in receipt["logs"]
    ]
    payload = rlp.encode([
        int(receipt["status"], 16),
        int(receipt["cumulativeGasUsed"], 16),
        bytes.fromhex(receipt["logsBloom"][2:]),
        logs,
    ])
    tx_type = int(receipt.get("type", "0x0"), 16)
    return payload if tx_type == 0 else bytes([tx_type]) + payload


def reference_receipts_root(receipts: list[dict]) -> bytes:
    trie = HexaryTrie({})
    for receipt in receipts:
        trie[rlp.encode(int(receipt["transactionIndex"], 16))] = reference_receipt_rlp(receipt)
    return trie.root_hash


def make_header(receipts_root: bytes, number: int = 0x10, **extra) -> dict:
    header = {
        "hash": "0x" + "ab" * 32,
        "parentHash": "0x" + "01" * 32,
        "sha3Uncles": "0x1dcc4de8dec75d7aab85b567b6ccd41ad312451b948a7413f0a142fd40d49347",
        "miner": "0x" + "03" * 20,
        "stateRoot": "0x" + "04" * 32,
        "transactionsRoot": "0x" + "05" * 32,
        "receiptsRoot": "0x" + receipts_root.hex(),
        "logsBloom": ZERO_BLOOM,
        "difficulty": "0x0",
        "number": hex(number),
        "gasLimit": "0x1c9c380",
        "gasUsed": "0xa410",
        "timestamp": "0x65f1b2c3",
        "extraData": "0x6265617665726275696c642e6f7267",
        "mixHash": "0x" + "06" * 32,
        "nonce": "0x0000000000000000",
        "baseFeePerGas": "0x7",
        "withdrawalsRoot": "0x" + "07" * 32,
        "blobGasUsed": "0x0",
        "excessBlobGas": "0x0",
        "parentBeaconBlockRoot": "0x" + "08" * 32,
        "size": "0x220",
        "totalDifficulty": "0xc70d815d562d3cfa955",
        "transactions": [],
        "uncles": [],
    }
    header.update(extra)
    return header


class FakeChain:
    """One block of receipts served through a mocked EthRpcClient."""

    def __init__(self, receipts: list[dict], header: dict | None = None):
        self.receipts_json = receipts
        self.header_json = header or make_header(reference_receipts_root(receipts))
        self.eth_rpc = MagicMock()
        self.eth_rpc.get_transaction_receipt = AsyncMock(side_effect=self._receipt)
        self.eth_rpc.get_block_by_number = AsyncMock(
            return_value=EvmBlockHeader.from_rpc(self.header_json)
        )
        self.eth_rpc.get_block_receipts = AsyncMock(
            return_value=[EvmReceipt.from_rpc(r) for r in receipts]
        )
        self.eth_rpc.get_proof = AsyncMock()

    async def _receipt(self, tx_hash: str):
        for receipt in self.receipts_json:
            if receipt["transactionHash"] == tx_hash:
                return EvmReceipt.from_rpc(receipt)
        return None

    def tx_hash(self, index: int) -> str:
        return self.receipts_json[index]["transactionHash"]


def make_near_proof_json(height: int = 9_999, status=None) -> dict:
    """A ``light_client_proof`` RPC result, including the fields the verifier rejects."""
    def h(n: int) -> str:
        return b58(bytes([n]) * 32)

    return {
        "outcome_proof": {
            "proof": [{"hash": h(1), "direction": "Right"}, {"hash": h(2), "direction": "Left"}],
            "block_hash": h(3),
            "id": h(4),
            "outcome": {
                "logs": ["Transfer 100 from alice.testnet"],
                "receipt_ids": [h(5)],
                "gas_burnt": 2428395018008,
                "tokens_burnt": "242839501800800000000",
                "executor_id": "locker.testnet",
                "status": status if status is not None else {"SuccessValue": "eyJvayI6dHJ1ZX0="},
                "metadata": {"version": 3, "gas_profile": []},
            },
        },
        "outcome_root_proof": [{"hash": h(6), "direction": "Left"}],
        "block_header_lite": {
            "prev_block_hash": h(7),
            "inner_rest_hash": h(8),
            "inner_lite": {
                "height": height,
                "epoch_id": h(9),
                "next_epoch_id": h(10),
                "prev_state_root": h(11),
                "outcome_root": h(12),
                "timestamp": 1700000000123456789,
                "timestamp_nanosec": "1700000000123456789",
                "next_bp_hash": h(13),
                "block_merkle_root": h(14),
            },
        },
        "block_proof": [{"hash": h(15), "direction": "Right"}],
    }


@pytest.fixture
def settings() -> BridgeSettings:
    return BridgeSettings(
        eth_endpoint="https://eth.example.org",
        eth_chain_id=11155111,
        eth_private_key="0x" + "11" * 32,
        eth_custodian_address=CUSTODIAN,
        bridge_token_factory_address=FACTORY,
        fast_bridge_address=FAST_BRIDGE,
        near_light_client_address=LIGHT_CLIENT,
        near_endpoint="https://rpc.testnet.near.org",
        near_signer="relayer.testnet",
        near_private_key=near_secret_key(),
        eth_connector_account_id="aurora.testnet",
        token_locker_id="locker.testnet",
        fast_bridge_account_id="fast.testnet",
    )


@pytest.fixture
def near_rpc() -> MagicMock:
    near = MagicMock()
    near.change = AsyncMock(return_value="NearTxHash111")
    near.view = AsyncMock()
    near.tx_status = AsyncMock(return_value=None)
    near.get_light_client_proof = AsyncMock()
    near.sleep = AsyncMock()
    near.clock = MagicMock(return_value=0.0)
    return near


@pytest.fixture
def evm() -> MagicMock:
    evm = MagicMock()
    evm.address = "0x" + "ee" * 20
    evm.send = AsyncMock(return_value="0x" + "99" * 32)
    evm.send_and_wait = AsyncMock(return_value={"status": 1, "blockNumber": 1})
    evm.call = AsyncMock()
    return evm


@pytest.fixture
def light_client() -> MagicMock:
    client = MagicMock()
    client.get_head = AsyncMock(return_value=(10_000, b"\x42" * 32))
    return client


@pytest.fixture
def make_clients(settings, near_rpc, evm, light_client):
    """Build BridgeClients over mocks, optionally with a fake EVM chain for proofs."""
    def factory(chain: FakeChain | None = None, **overrides) -> BridgeClients:
        eth_rpc = chain.eth_rpc if chain is not None else MagicMock()
        return BridgeClients(
            overrides.pop("settings", settings),
            eth_rpc=eth_rpc,
            near_rpc=near_rpc,
            evm=evm,
            light_client=light_client,
            proofs=ProofManager(eth_rpc),
            **overrides,
        )
    return factory
