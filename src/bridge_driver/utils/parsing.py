"""
Parsing helpers for values coming off the wire or from callers.

The low-level helpers raise ``ValueError``; gateways wrap that into their RPC
error kind, while the ``parse_*`` helpers used on caller input raise
``InvalidInputError`` directly.
"""

import base58
from web3 import Web3

from ..errors import InvalidInputError


def _hex_digits(value) -> str:
    if not isinstance(value, str) or not value.startswith(("0x", "0X")):
        raise ValueError(f"expected 0x-prefixed hex string, got {value!r}")
    return value[2:]


def quantity_bytes(value) -> bytes:
    """Decode a hex quantity keeping the byte length it had on the wire.

    A zero quantity becomes ``b""`` (RLP zero); an odd number of digits is
    padded on the left to a full byte. Leading zero bytes are kept.
    """
    digits = _hex_digits(value)
    if not digits:
        raise ValueError("empty hex quantity")
    if set(digits) == {"0"}:
        return b""
    if len(digits) % 2:
        digits = "0" + digits
    return bytes.fromhex(digits)


def quantity_int(value) -> int:
    digits = _hex_digits(value)
    if not digits:
        raise ValueError("empty hex quantity")
    return int(digits, 16)


def data_bytes(value, length: int | None = None) -> bytes:
    """Decode hex DATA, optionally requiring an exact byte length."""
    digits = _hex_digits(value)
    if len(digits) % 2:
        raise ValueError(f"odd-length hex data: {value!r}")
    raw = bytes.fromhex(digits)
    if length is not None and len(raw) != length:
        raise ValueError(f"expected {length} bytes, got {len(raw)} in {value!r}")
    return raw


def decode_near_hash(value) -> bytes:
    """Decode a base58 NEAR ``CryptoHash`` into its 32 raw bytes."""
    if not isinstance(value, str):
        raise ValueError(f"expected base58 string, got {value!r}")
    raw = base58.b58decode(value)
    if len(raw) != 32:
        raise ValueError(f"expected 32-byte hash, got {len(raw)} bytes in {value!r}")
    return raw


def parse_tx_hash(value: str) -> str:
    """Validate a caller-supplied EVM transaction hash and return it lowercased."""
    try:
        data_bytes(value, 32)
    except ValueError as e:
        raise InvalidInputError(f"Invalid EVM transaction hash: {value!r}") from e
    return "0x" + value[2:].lower()


def parse_near_id(value: str) -> str:
    """Validate a caller-supplied NEAR receipt id or transaction hash."""
    try:
        decode_near_hash(value)
    except ValueError as e:
        raise InvalidInputError(f"Invalid NEAR hash: {value!r}") from e
    return value


def parse_evm_address(value: str) -> str:
    """Validate a caller-supplied EVM address and return it checksummed."""
    if not isinstance(value, str):
        raise InvalidInputError(f"Invalid EVM address: {value!r}")
    candidate = value if value.startswith(("0x", "0X")) else "0x" + value
    if not Web3.is_address(candidate):
        raise InvalidInputError(f"Invalid EVM address: {value!r}")
    return Web3.to_checksum_address(candidate)
