"""
Types of the sign-then-claim transfer path.

The NEAR locker emits a ``SignTransferEvent`` log carrying the transfer
payload and an MPC signature over it; the EVM factory accepts both through
``deposit_omni``.
"""

import json
from dataclasses import dataclass
from typing import Any

from web3 import Web3

from ..constants import SIGN_TRANSFER_EVENT
from ..errors import InvalidInputError
from ..utils.parsing import parse_evm_address

EVENT_JSON_PREFIX = "EVENT_JSON:"


@dataclass(frozen=True, slots=True)
class OmniAddress:
    """A chain-qualified address such as ``eth:0x...`` or ``near:alice.near``."""
    chain: str
    address: str

    CHAINS = ("eth", "near", "sol")

    @classmethod
    def parse(cls, value: str) -> "OmniAddress":
        chain, sep, address = value.partition(":")
        if not sep or chain not in cls.CHAINS or not address:
            raise InvalidInputError(f"Invalid chain-qualified address: {value!r}")
        if chain == "eth":
            address = parse_evm_address(address)
        return cls(chain, address)

    def __str__(self) -> str:
        if self.chain == "eth":
            return f"eth:{self.address.lower()}"
        return f"{self.chain}:{self.address}"


@dataclass(frozen=True, slots=True)
class MpcSignature:
    big_r: bytes
    s: bytes
    recovery_id: int

    @classmethod
    def from_json(cls, obj: dict[str, Any]) -> "MpcSignature":
        return cls(
            big_r=bytes.fromhex(obj["big_r"]["affine_point"]),
            s=bytes.fromhex(obj["s"]["scalar"]),
            recovery_id=int(obj["recovery_id"]),
        )

    def to_bytes(self) -> bytes:
        """65-byte ``r || s || v`` signature as ``ecrecover`` expects it."""
        if len(self.big_r) != 33 or len(self.s) != 32:
            raise InvalidInputError("Malformed MPC signature")
        return self.big_r[1:] + self.s + bytes([27 + self.recovery_id])


@dataclass(frozen=True, slots=True)
class TransferMessagePayload:
    nonce: int
    token: str
    amount: int
    recipient: OmniAddress
    fee_recipient: str | None

    @classmethod
    def from_json(cls, obj: dict[str, Any]) -> "TransferMessagePayload":
        return cls(
            nonce=int(obj["nonce"]),
            token=obj["token"],
            amount=int(obj["amount"]),
            recipient=OmniAddress.parse(obj["recipient"]),
            fee_recipient=obj.get("fee_recipient"),
        )

    def to_bridge_deposit(self) -> tuple:
        """ABI tuple of the factory's ``BridgeDeposit`` struct."""
        if self.recipient.chain != "eth":
            raise InvalidInputError(f"Recipient {self.recipient} is not an EVM address")
        return (
            self.nonce,
            self.token,
            self.amount,
            Web3.to_checksum_address(self.recipient.address),
            self.fee_recipient or "",
        )


@dataclass(frozen=True, slots=True)
class SignTransferEvent:
    message_payload: TransferMessagePayload
    signature: MpcSignature

    @classmethod
    def from_log(cls, log: str) -> "SignTransferEvent | None":
        """Parse a receipt log; ``None`` if it is not a ``SignTransferEvent``."""
        text = log[len(EVENT_JSON_PREFIX):] if log.startswith(EVENT_JSON_PREFIX) else log
        try:
            obj = json.loads(text)
        except ValueError:
            return None
        if not isinstance(obj, dict) or SIGN_TRANSFER_EVENT not in obj:
            return None
        event = obj[SIGN_TRANSFER_EVENT]
        try:
            return cls(
                message_payload=TransferMessagePayload.from_json(event["message_payload"]),
                signature=MpcSignature.from_json(event["signature"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidInputError("Malformed SignTransferEvent log") from e


def find_sign_transfer_event(outcome: dict[str, Any]) -> SignTransferEvent | None:
    """Search every receipt outcome of a transaction for a ``SignTransferEvent``."""
    for receipt in outcome.get("receipts_outcome", []):
        for log in receipt.get("outcome", {}).get("logs", []):
            event = SignTransferEvent.from_log(log)
            if event is not None:
                return event
    return None
