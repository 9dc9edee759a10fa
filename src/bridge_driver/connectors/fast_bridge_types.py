"""Fast bridge transfer records and the EVM storage slot of a transfer."""

import json
from dataclasses import dataclass
from typing import Any

from web3 import Web3

from ..constants import SLOT_INDEX
from ..errors import InvalidInputError, NearRpcError
from ..utils.borsh import (
    BorshReader,
    decode_all,
    encode_fixed,
    encode_option,
    encode_string,
    encode_u64,
    encode_u128,
)


def eth_address_bytes(value: str) -> bytes:
    """20 raw bytes of a hex address given with or without ``0x``."""
    digits = value[2:] if value.startswith(("0x", "0X")) else value
    try:
        raw = bytes.fromhex(digits)
    except ValueError:
        raise InvalidInputError(f"Invalid EVM address: {value!r}") from None
    if len(raw) != 20:
        raise InvalidInputError(f"EVM address must be 20 bytes, got {len(raw)}: {value!r}")
    return raw


def _encode_address(value: bytes) -> bytes:
    return encode_fixed(value, 20)


def _read_address(r: BorshReader) -> bytes:
    return r.read_fixed(20)


@dataclass(frozen=True, slots=True)
class TransferMessage:
    """
    Payload of a fast bridge transfer, Borsh-encoded into ``ft_transfer_call``.

    Attributes:
        valid_till: Deadline of the transfer, nanoseconds since epoch
        token_near: Token account on NEAR
        token_eth: ERC-20 address on EVM, 20 bytes
        amount: Amount to pay out on EVM
        fee_token: Token the fee is paid in
        fee_amount: Fee for the liquidity provider
        recipient: EVM recipient, 20 bytes
        valid_till_block_height: Last EVM block at which the claim may be made
        aurora_sender: Aurora sender, if the transfer came from Aurora
    """
    valid_till: int
    token_near: str
    token_eth: bytes
    amount: int
    fee_token: str
    fee_amount: int
    recipient: bytes
    valid_till_block_height: int | None = None
    aurora_sender: bytes | None = None

    def to_borsh(self) -> bytes:
        return b"".join([
            encode_u64(self.valid_till),
            encode_string(self.token_near),
            _encode_address(self.token_eth),
            encode_u128(self.amount),
            encode_string(self.fee_token),
            encode_u128(self.fee_amount),
            _encode_address(self.recipient),
            encode_option(self.valid_till_block_height, encode_u64),
            encode_option(self.aurora_sender, _encode_address),
        ])

    @classmethod
    def from_borsh(cls, data: bytes) -> "TransferMessage":
        def read(r: BorshReader) -> "TransferMessage":
            return cls(
                valid_till=r.read_u64(),
                token_near=r.read_string(),
                token_eth=r.read_fixed(20),
                amount=r.read_u128(),
                fee_token=r.read_string(),
                fee_amount=r.read_u128(),
                recipient=r.read_fixed(20),
                valid_till_block_height=r.read_option(BorshReader.read_u64),
                aurora_sender=r.read_option(_read_address),
            )
        return decode_all(data, read)

    @classmethod
    def from_json(cls, obj: dict[str, Any]) -> "TransferMessage":
        aurora_sender = obj.get("aurora_sender")
        height = obj.get("valid_till_block_height")
        return cls(
            valid_till=int(obj["valid_till"]),
            token_near=obj["transfer"]["token_near"],
            token_eth=eth_address_bytes(obj["transfer"]["token_eth"]),
            amount=int(obj["transfer"]["amount"]),
            fee_token=obj["fee"]["token"],
            fee_amount=int(obj["fee"]["amount"]),
            recipient=eth_address_bytes(obj["recipient"]),
            valid_till_block_height=int(height) if height is not None else None,
            aurora_sender=eth_address_bytes(aurora_sender) if aurora_sender is not None else None,
        )


@dataclass(frozen=True, slots=True)
class PendingTransfer:
    """A transfer the fast bridge on NEAR still holds, keyed by nonce."""
    initiator: str
    message: TransferMessage

    @classmethod
    def from_view(cls, raw: bytes) -> "PendingTransfer":
        """Parse the ``[initiator, message]`` result of ``get_pending_transfer``."""
        try:
            initiator, message = json.loads(raw)
            return cls(initiator=initiator, message=TransferMessage.from_json(message))
        except (KeyError, TypeError, ValueError, InvalidInputError) as e:
            raise NearRpcError("Malformed pending transfer") from e

    def require_valid_till_block_height(self) -> int:
        if self.message.valid_till_block_height is None:
            raise InvalidInputError("Pending transfer has no valid_till_block_height")
        return self.message.valid_till_block_height


def transfer_storage_key(token: bytes, recipient: bytes, nonce: int, amount: int) -> bytes:
    """
    Storage key of the ``processedHashes`` entry for a fast bridge transfer.

    ``keccak256(keccak256(token ++ recipient ++ be256(nonce) ++ be256(amount)) ++ be256(SLOT_INDEX))``
    """
    transfer_hash = Web3.keccak(
        token + recipient + nonce.to_bytes(32, "big") + amount.to_bytes(32, "big")
    )
    return bytes(Web3.keccak(bytes(transfer_hash) + SLOT_INDEX.to_bytes(32, "big")))
