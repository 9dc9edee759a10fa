"""
Shared data models for the bridge driver.

EVM records are parsed straight from JSON-RPC objects. Quantities that end
up in an RLP encoding are kept as the bytes they had on the wire, so that
re-encoding reproduces the hashes the chain committed to.
"""

from dataclasses import dataclass
from typing import Any

import rlp

from .errors import ProofBuildError
from .utils.borsh import (
    BorshReader,
    decode_all,
    encode_bytes,
    encode_fixed,
    encode_u64,
    encode_vec,
)
from .utils.parsing import data_bytes, quantity_bytes, quantity_int


def _optional(obj: dict, key: str, parse, *args):
    value = obj.get(key)
    if value is None:
        return None
    return parse(value, *args)


@dataclass(frozen=True, slots=True)
class EvmLog:
    """A log entry emitted by a transaction.

    Attributes:
        address: Emitting contract, 20 bytes
        topics: Indexed topics, each 32 bytes
        data: Non-indexed payload
        log_index: Position of the log in its block
    """
    address: bytes
    topics: tuple[bytes, ...]
    data: bytes
    log_index: int | None = None

    @classmethod
    def from_rpc(cls, obj: dict[str, Any]) -> "EvmLog":
        return cls(
            address=data_bytes(obj["address"], 20),
            topics=tuple(data_bytes(t, 32) for t in obj["topics"]),
            data=data_bytes(obj["data"]),
            log_index=_optional(obj, "logIndex", quantity_int),
        )

    def rlp_fields(self) -> list:
        return [self.address, list(self.topics), self.data]


@dataclass(frozen=True, slots=True)
class EvmReceipt:
    """A transaction receipt.

    ``status`` holds the post-Byzantium status quantity, or the 32-byte
    intermediate state root for pre-Byzantium receipts.
    """
    transaction_hash: bytes
    block_hash: bytes
    block_number: int
    transaction_index: int
    receipt_type: int
    status: bytes
    cumulative_gas_used: bytes
    logs_bloom: bytes
    logs: tuple[EvmLog, ...]

    @classmethod
    def from_rpc(cls, obj: dict[str, Any]) -> "EvmReceipt":
        if obj.get("status") is not None:
            status = quantity_bytes(obj["status"])
        else:
            status = data_bytes(obj["root"], 32)
        return cls(
            transaction_hash=data_bytes(obj["transactionHash"], 32),
            block_hash=data_bytes(obj["blockHash"], 32),
            block_number=quantity_int(obj["blockNumber"]),
            transaction_index=quantity_int(obj["transactionIndex"]),
            receipt_type=_optional(obj, "type", quantity_int) or 0,
            status=status,
            cumulative_gas_used=quantity_bytes(obj["cumulativeGasUsed"]),
            logs_bloom=data_bytes(obj["logsBloom"], 256),
            logs=tuple(EvmLog.from_rpc(log) for log in obj["logs"]),
        )


@dataclass(frozen=True, slots=True)
class EvmBlockHeader:
    """A block header with every field that takes part in its RLP encoding.

    Post-Merge fields are ``None`` on chains or blocks that predate them.
    """
    hash: bytes
    parent_hash: bytes
    uncles_hash: bytes
    miner: bytes
    state_root: bytes
    transactions_root: bytes
    receipts_root: bytes
    logs_bloom: bytes
    difficulty: bytes
    number: bytes
    gas_limit: bytes
    gas_used: bytes
    timestamp: bytes
    extra_data: bytes
    mix_hash: bytes
    nonce: bytes
    base_fee_per_gas: bytes | None = None
    withdrawals_root: bytes | None = None
    blob_gas_used: bytes | None = None
    excess_blob_gas: bytes | None = None
    parent_beacon_block_root: bytes | None = None
    requests_hash: bytes | None = None

    @property
    def height(self) -> int:
        return int.from_bytes(self.number, "big")

    @classmethod
    def from_rpc(cls, obj: dict[str, Any]) -> "EvmBlockHeader":
        return cls(
            hash=data_bytes(obj["hash"], 32),
            parent_hash=data_bytes(obj["parentHash"], 32),
            uncles_hash=data_bytes(obj["sha3Uncles"], 32),
            miner=data_bytes(obj["miner"], 20),
            state_root=data_bytes(obj["stateRoot"], 32),
            transactions_root=data_bytes(obj["transactionsRoot"], 32),
            receipts_root=data_bytes(obj["receiptsRoot"], 32),
            logs_bloom=data_bytes(obj["logsBloom"], 256),
            difficulty=quantity_bytes(obj["difficulty"]),
            number=quantity_bytes(obj["number"]),
            gas_limit=quantity_bytes(obj["gasLimit"]),
            gas_used=quantity_bytes(obj["gasUsed"]),
            timestamp=quantity_bytes(obj["timestamp"]),
            extra_data=data_bytes(obj["extraData"]),
            mix_hash=data_bytes(obj["mixHash"], 32),
            nonce=data_bytes(obj["nonce"], 8),
            base_fee_per_gas=_optional(obj, "baseFeePerGas", quantity_bytes),
            withdrawals_root=_optional(obj, "withdrawalsRoot", data_bytes, 32),
            blob_gas_used=_optional(obj, "blobGasUsed", quantity_bytes),
            excess_blob_gas=_optional(obj, "excessBlobGas", quantity_bytes),
            parent_beacon_block_root=_optional(obj, "parentBeaconBlockRoot", data_bytes, 32),
            requests_hash=_optional(obj, "requestsHash", data_bytes, 32),
        )


@dataclass(frozen=True, slots=True)
class StorageEntryProof:
    """One entry of ``storageProof`` in an ``eth_getProof`` response."""
    key: bytes
    value: bytes
    proof: tuple[bytes, ...]

    @classmethod
    def from_rpc(cls, obj: dict[str, Any]) -> "StorageEntryProof":
        # Some clients echo the key without leading zeros
        key = data_bytes(obj["key"])
        return cls(
            key=key.rjust(32, b"\x00"),
            value=quantity_bytes(obj["value"]),
            proof=tuple(data_bytes(node) for node in obj["proof"]),
        )


@dataclass(frozen=True, slots=True)
class StorageProof:
    """Account and storage proof of one contract slot at one block.

    Attributes:
        address: Contract address, 20 bytes
        nonce: Account nonce as on the wire
        balance: Account balance as on the wire
        storage_hash: Root of the account storage trie
        code_hash: Hash of the account code
        account_proof: State trie nodes from the state root to the account
        storage_proofs: Storage trie proofs, one per requested key
    """
    address: bytes
    nonce: bytes
    balance: bytes
    storage_hash: bytes
    code_hash: bytes
    account_proof: tuple[bytes, ...]
    storage_proofs: tuple[StorageEntryProof, ...]

    @classmethod
    def from_rpc(cls, obj: dict[str, Any]) -> "StorageProof":
        return cls(
            address=data_bytes(obj["address"], 20),
            nonce=quantity_bytes(obj["nonce"]),
            balance=quantity_bytes(obj["balance"]),
            storage_hash=data_bytes(obj["storageHash"], 32),
            code_hash=data_bytes(obj["codeHash"], 32),
            account_proof=tuple(data_bytes(node) for node in obj["accountProof"]),
            storage_proofs=tuple(StorageEntryProof.from_rpc(e) for e in obj["storageProof"]),
        )

    @property
    def account_data(self) -> bytes:
        """RLP of the account leaf ``[nonce, balance, storageHash, codeHash]``."""
        return rlp.encode([self.nonce, self.balance, self.storage_hash, self.code_hash])

    @property
    def entry(self) -> StorageEntryProof:
        if not self.storage_proofs:
            raise ProofBuildError("Storage proof has no storageProof entries")
        return self.storage_proofs[0]

    def to_borsh(self) -> bytes:
        entry = self.entry
        return b"".join([
            encode_fixed(self.address, 20),
            encode_fixed(entry.key, 32),
            encode_bytes(self.account_data),
            encode_vec(self.account_proof, encode_bytes),
            encode_vec(entry.proof, encode_bytes),
            encode_bytes(entry.value),
        ])

    @classmethod
    def from_borsh(cls, data: bytes) -> "StorageProof":
        def read(r: BorshReader) -> "StorageProof":
            address = r.read_fixed(20)
            key = r.read_fixed(32)
            nonce, balance, storage_hash, code_hash = rlp.decode(r.read_bytes())
            account_proof = tuple(r.read_vec(BorshReader.read_bytes))
            storage_proof = tuple(r.read_vec(BorshReader.read_bytes))
            value = r.read_bytes()
            return cls(
                address=address,
                nonce=nonce,
                balance=balance,
                storage_hash=storage_hash,
                code_hash=code_hash,
                account_proof=account_proof,
                storage_proofs=(StorageEntryProof(key=key, value=value, proof=storage_proof),),
            )
        return decode_all(data, read)


@dataclass(frozen=True, slots=True)
class ReceiptProof:
    """Merkle-Patricia proof that a receipt and one of its logs are in a block.

    Attributes:
        header_data: RLP encoded block header
        receipt_index: Index of the transaction in the block
        receipt_data: Typed receipt encoding, the value stored in the trie
        proof: RLP encoded trie nodes from the root down to the leaf
        log_index: Index of the selected log within the receipt
        log_entry_data: RLP encoding of the selected log
    """
    header_data: bytes
    receipt_index: int
    receipt_data: bytes
    proof: tuple[bytes, ...]
    log_index: int
    log_entry_data: bytes

    def to_borsh(self) -> bytes:
        return b"".join([
            encode_bytes(self.header_data),
            encode_u64(self.receipt_index),
            encode_bytes(self.receipt_data),
            encode_vec(self.proof, encode_bytes),
            encode_u64(self.log_index),
            encode_bytes(self.log_entry_data),
        ])

    @classmethod
    def from_borsh(cls, data: bytes) -> "ReceiptProof":
        def read(r: BorshReader) -> "ReceiptProof":
            return cls(
                header_data=r.read_bytes(),
                receipt_index=r.read_u64(),
                receipt_data=r.read_bytes(),
                proof=tuple(r.read_vec(BorshReader.read_bytes)),
                log_index=r.read_u64(),
                log_entry_data=r.read_bytes(),
            )
        return decode_all(data, read)

    def to_json(self) -> dict[str, Any]:
        """JSON form accepted by NEAR contracts, byte vectors as integer arrays."""
        return {
            "header_data": list(self.header_data),
            "receipt_index": self.receipt_index,
            "receipt_data": list(self.receipt_data),
            "proof": [list(node) for node in self.proof],
            "log_index": self.log_index,
            "log_entry_data": list(self.log_entry_data),
        }
