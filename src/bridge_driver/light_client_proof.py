"""
NEAR light-client execution proofs in the form the EVM-side verifier accepts.

The RPC response carries two fields the verifier's Borsh schema does not
have: ``outcome_proof.outcome.metadata`` and ``inner_lite.timestamp``. They
are dropped while parsing; every other field keeps its name, order and
encoding.
"""

import base64
import binascii
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

import base58

from .errors import ProofSerializeError
from .utils.borsh import (
    BorshReader,
    decode_all,
    encode_bytes,
    encode_fixed,
    encode_string,
    encode_u8,
    encode_u64,
    encode_u128,
    encode_vec,
)
from .utils.parsing import decode_near_hash


class Direction(IntEnum):
    LEFT = 0
    RIGHT = 1


class ExecutionStatusKind(IntEnum):
    UNKNOWN = 0
    FAILURE = 1
    SUCCESS_VALUE = 2
    SUCCESS_RECEIPT_ID = 3


def _hash(value) -> bytes:
    try:
        return decode_near_hash(value)
    except ValueError as e:
        raise ProofSerializeError(f"Invalid hash in light client proof: {value!r}") from e


def _read_hash(r: BorshReader) -> bytes:
    return r.read_fixed(32)


def _encode_hash(value: bytes) -> bytes:
    return encode_fixed(value, 32)


@dataclass(frozen=True, slots=True)
class MerklePathItem:
    hash: bytes
    direction: Direction

    @classmethod
    def from_rpc(cls, obj: dict[str, Any]) -> "MerklePathItem":
        try:
            direction = Direction[obj["direction"].upper()]
        except KeyError:
            raise ProofSerializeError(f"Unknown merkle direction: {obj['direction']!r}") from None
        return cls(hash=_hash(obj["hash"]), direction=direction)

    def encode(self) -> bytes:
        return _encode_hash(self.hash) + encode_u8(self.direction)

    @classmethod
    def read(cls, r: BorshReader) -> "MerklePathItem":
        item_hash = r.read_fixed(32)
        tag = r.read_u8()
        try:
            direction = Direction(tag)
        except ValueError:
            raise ProofSerializeError(f"Invalid merkle direction tag {tag}") from None
        return cls(hash=item_hash, direction=direction)


MerklePath = tuple[MerklePathItem, ...]


def _merkle_path_from_rpc(items: list) -> MerklePath:
    return tuple(MerklePathItem.from_rpc(item) for item in items)


def _encode_merkle_path(path: MerklePath) -> bytes:
    return encode_vec(path, MerklePathItem.encode)


def _read_merkle_path(r: BorshReader) -> MerklePath:
    return tuple(r.read_vec(MerklePathItem.read))


@dataclass(frozen=True, slots=True)
class ExecutionStatus:
    """Outcome status. ``value`` is the return value or the receipt id."""
    kind: ExecutionStatusKind
    value: bytes | None = None

    @classmethod
    def from_rpc(cls, obj) -> "ExecutionStatus":
        if obj == "Unknown":
            return cls(ExecutionStatusKind.UNKNOWN)
        if not isinstance(obj, dict) or len(obj) != 1:
            raise ProofSerializeError(f"Unrecognized execution status: {obj!r}")
        (name, payload), = obj.items()
        if name == "SuccessValue":
            try:
                return cls(ExecutionStatusKind.SUCCESS_VALUE, base64.b64decode(payload, validate=True))
            except binascii.Error as e:
                raise ProofSerializeError("SuccessValue is not valid base64") from e
        if name == "SuccessReceiptId":
            return cls(ExecutionStatusKind.SUCCESS_RECEIPT_ID, _hash(payload))
        if name == "Failure":
            raise ProofSerializeError(f"Failed execution outcomes cannot be proven: {payload!r}")
        raise ProofSerializeError(f"Unrecognized execution status: {name}")

    def encode(self) -> bytes:
        if self.kind == ExecutionStatusKind.UNKNOWN:
            return encode_u8(self.kind)
        if self.kind == ExecutionStatusKind.SUCCESS_VALUE:
            return encode_u8(self.kind) + encode_bytes(self.value)
        if self.kind == ExecutionStatusKind.SUCCESS_RECEIPT_ID:
            return encode_u8(self.kind) + _encode_hash(self.value)
        raise ProofSerializeError("Failed execution outcomes cannot be encoded")

    @classmethod
    def read(cls, r: BorshReader) -> "ExecutionStatus":
        tag = r.read_u8()
        if tag == ExecutionStatusKind.UNKNOWN:
            return cls(ExecutionStatusKind.UNKNOWN)
        if tag == ExecutionStatusKind.SUCCESS_VALUE:
            return cls(ExecutionStatusKind.SUCCESS_VALUE, r.read_bytes())
        if tag == ExecutionStatusKind.SUCCESS_RECEIPT_ID:
            return cls(ExecutionStatusKind.SUCCESS_RECEIPT_ID, r.read_fixed(32))
        raise ProofSerializeError(f"Unsupported execution status tag {tag}")


@dataclass(frozen=True, slots=True)
class ExecutionOutcome:
    logs: tuple[str, ...]
    receipt_ids: tuple[bytes, ...]
    gas_burnt: int
    tokens_burnt: int
    executor_id: str
    status: ExecutionStatus

    @classmethod
    def from_rpc(cls, obj: dict[str, Any]) -> "ExecutionOutcome":
        return cls(
            logs=tuple(obj["logs"]),
            receipt_ids=tuple(_hash(h) for h in obj["receipt_ids"]),
            gas_burnt=int(obj["gas_burnt"]),
            tokens_burnt=int(obj["tokens_burnt"]),
            executor_id=obj["executor_id"],
            status=ExecutionStatus.from_rpc(obj["status"]),
        )

    def encode(self) -> bytes:
        return b"".join([
            encode_vec(self.logs, encode_string),
            encode_vec(self.receipt_ids, _encode_hash),
            encode_u64(self.gas_burnt),
            encode_u128(self.tokens_burnt),
            encode_string(self.executor_id),
            self.status.encode(),
        ])

    @classmethod
    def read(cls, r: BorshReader) -> "ExecutionOutcome":
        return cls(
            logs=tuple(r.read_vec(BorshReader.read_string)),
            receipt_ids=tuple(r.read_vec(_read_hash)),
            gas_burnt=r.read_u64(),
            tokens_burnt=r.read_u128(),
            executor_id=r.read_string(),
            status=ExecutionStatus.read(r),
        )


@dataclass(frozen=True, slots=True)
class ExecutionOutcomeWithId:
    proof: MerklePath
    block_hash: bytes
    id: bytes
    outcome: ExecutionOutcome

    @classmethod
    def from_rpc(cls, obj: dict[str, Any]) -> "ExecutionOutcomeWithId":
        return cls(
            proof=_merkle_path_from_rpc(obj["proof"]),
            block_hash=_hash(obj["block_hash"]),
            id=_hash(obj["id"]),
            outcome=ExecutionOutcome.from_rpc(obj["outcome"]),
        )

    def encode(self) -> bytes:
        return b"".join([
            _encode_merkle_path(self.proof),
            _encode_hash(self.block_hash),
            _encode_hash(self.id),
            self.outcome.encode(),
        ])

    @classmethod
    def read(cls, r: BorshReader) -> "ExecutionOutcomeWithId":
        return cls(
            proof=_read_merkle_path(r),
            block_hash=r.read_fixed(32),
            id=r.read_fixed(32),
            outcome=ExecutionOutcome.read(r),
        )


@dataclass(frozen=True, slots=True)
class BlockHeaderInnerLite:
    height: int
    epoch_id: bytes
    next_epoch_id: bytes
    prev_state_root: bytes
    outcome_root: bytes
    timestamp_nanosec: int
    next_bp_hash: bytes
    block_merkle_root: bytes

    @classmethod
    def from_rpc(cls, obj: dict[str, Any]) -> "BlockHeaderInnerLite":
        return cls(
            height=int(obj["height"]),
            epoch_id=_hash(obj["epoch_id"]),
            next_epoch_id=_hash(obj["next_epoch_id"]),
            prev_state_root=_hash(obj["prev_state_root"]),
            outcome_root=_hash(obj["outcome_root"]),
            timestamp_nanosec=int(obj["timestamp_nanosec"]),
            next_bp_hash=_hash(obj["next_bp_hash"]),
            block_merkle_root=_hash(obj["block_merkle_root"]),
        )

    def encode(self) -> bytes:
        return b"".join([
            encode_u64(self.height),
            _encode_hash(self.epoch_id),
            _encode_hash(self.next_epoch_id),
            _encode_hash(self.prev_state_root),
            _encode_hash(self.outcome_root),
            encode_u64(self.timestamp_nanosec),
            _encode_hash(self.next_bp_hash),
            _encode_hash(self.block_merkle_root),
        ])

    @classmethod
    def read(cls, r: BorshReader) -> "BlockHeaderInnerLite":
        return cls(
            height=r.read_u64(),
            epoch_id=r.read_fixed(32),
            next_epoch_id=r.read_fixed(32),
            prev_state_root=r.read_fixed(32),
            outcome_root=r.read_fixed(32),
            timestamp_nanosec=r.read_u64(),
            next_bp_hash=r.read_fixed(32),
            block_merkle_root=r.read_fixed(32),
        )


@dataclass(frozen=True, slots=True)
class LightClientBlockLite:
    prev_block_hash: bytes
    inner_rest_hash: bytes
    inner_lite: BlockHeaderInnerLite

    @classmethod
    def from_rpc(cls, obj: dict[str, Any]) -> "LightClientBlockLite":
        return cls(
            prev_block_hash=_hash(obj["prev_block_hash"]),
            inner_rest_hash=_hash(obj["inner_rest_hash"]),
            inner_lite=BlockHeaderInnerLite.from_rpc(obj["inner_lite"]),
        )

    def encode(self) -> bytes:
        return (
            _encode_hash(self.prev_block_hash)
            + _encode_hash(self.inner_rest_hash)
            + self.inner_lite.encode()
        )

    @classmethod
    def read(cls, r: BorshReader) -> "LightClientBlockLite":
        return cls(
            prev_block_hash=r.read_fixed(32),
            inner_rest_hash=r.read_fixed(32),
            inner_lite=BlockHeaderInnerLite.read(r),
        )


@dataclass(frozen=True, slots=True)
class LightClientExecutionProof:
    """Execution proof of one receipt, rooted at a light client head.

    Attributes:
        outcome_proof: The outcome, its id and its path to the chunk outcome root
        outcome_root_proof: Path from the chunk outcome root to the block outcome root
        block_header_lite: Header of the block that contains the outcome
        block_proof: Path from that block to the light client head's block merkle root
    """
    outcome_proof: ExecutionOutcomeWithId
    outcome_root_proof: MerklePath
    block_header_lite: LightClientBlockLite
    block_proof: MerklePath

    @property
    def height(self) -> int:
        """Height of the block that includes the proven outcome."""
        return self.block_header_lite.inner_lite.height

    @classmethod
    def from_rpc(cls, obj: dict[str, Any]) -> "LightClientExecutionProof":
        """Normalize a ``light_client_proof`` RPC result."""
        try:
            return cls(
                outcome_proof=ExecutionOutcomeWithId.from_rpc(obj["outcome_proof"]),
                outcome_root_proof=_merkle_path_from_rpc(obj["outcome_root_proof"]),
                block_header_lite=LightClientBlockLite.from_rpc(obj["block_header_lite"]),
                block_proof=_merkle_path_from_rpc(obj["block_proof"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ProofSerializeError("Malformed light client proof response") from e

    def to_bytes(self) -> bytes:
        return b"".join([
            self.outcome_proof.encode(),
            _encode_merkle_path(self.outcome_root_proof),
            self.block_header_lite.encode(),
            _encode_merkle_path(self.block_proof),
        ])

    @classmethod
    def from_bytes(cls, data: bytes) -> "LightClientExecutionProof":
        def read(r: BorshReader) -> "LightClientExecutionProof":
            return cls(
                outcome_proof=ExecutionOutcomeWithId.read(r),
                outcome_root_proof=_read_merkle_path(r),
                block_header_lite=LightClientBlockLite.read(r),
                block_proof=_read_merkle_path(r),
            )
        return decode_all(data, read)


def block_hash_to_base58(block_hash: bytes) -> str:
    """Render a 32-byte block hash the way NEAR RPC expects it."""
    return base58.b58encode(block_hash).decode("ascii")
