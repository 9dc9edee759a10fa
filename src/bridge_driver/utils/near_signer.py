"""
NEAR transaction signing.

Builds Borsh ``SignedTransaction`` bytes for a single ``FunctionCall``
action and signs them with an ed25519 key.
"""

import hashlib
import logging

import base58
from nacl.signing import SigningKey

from ..errors import ConfigurationError
from .borsh import (
    encode_bytes,
    encode_fixed,
    encode_string,
    encode_u8,
    encode_u32,
    encode_u64,
    encode_u128,
)

logger = logging.getLogger(__name__)

ED25519_KEY_TYPE = 0
FUNCTION_CALL_ACTION = 2


def encode_function_call(method_name: str, args: bytes, gas: int, deposit: int) -> bytes:
    """Borsh encoding of ``Action::FunctionCall``."""
    return b"".join([
        encode_u8(FUNCTION_CALL_ACTION),
        encode_string(method_name),
        encode_bytes(args),
        encode_u64(gas),
        encode_u128(deposit),
    ])


class NearSigner:
    """Signs transactions on behalf of one NEAR account."""

    def __init__(self, account_id: str, secret_key: str):
        """
        Args:
            account_id: Signer account
            secret_key: ``ed25519:<base58>`` secret key, 32-byte seed or 64-byte keypair
        """
        prefix, _, encoded = secret_key.partition(":")
        if prefix != "ed25519" or not encoded:
            raise ConfigurationError("NEAR secret key must look like ed25519:<base58>")
        try:
            raw = base58.b58decode(encoded)
        except ValueError as e:
            raise ConfigurationError("NEAR secret key is not valid base58") from e
        if len(raw) not in (32, 64):
            raise ConfigurationError(f"NEAR secret key must be 32 or 64 bytes, got {len(raw)}")

        self.account_id = account_id
        self._signing_key = SigningKey(raw[:32])
        self.public_key_bytes = bytes(self._signing_key.verify_key)
        if len(raw) == 64 and raw[32:] != self.public_key_bytes:
            raise ConfigurationError("NEAR secret key does not match its public half")

    @property
    def public_key(self) -> str:
        return "ed25519:" + base58.b58encode(self.public_key_bytes).decode("ascii")

    def build_transaction(
        self,
        receiver_id: str,
        nonce: int,
        block_hash: bytes,
        method_name: str,
        args: bytes,
        gas: int,
        deposit: int,
    ) -> bytes:
        """Borsh encoding of a ``Transaction`` with one function call action."""
        return b"".join([
            encode_string(self.account_id),
            encode_u8(ED25519_KEY_TYPE),
            encode_fixed(self.public_key_bytes, 32),
            encode_u64(nonce),
            encode_string(receiver_id),
            encode_fixed(block_hash, 32),
            encode_u32(1),
            encode_function_call(method_name, args, gas, deposit),
        ])

    def sign_transaction(self, transaction: bytes) -> tuple[bytes, bytes]:
        """Sign a Borsh transaction.

        Returns:
            Tuple of (signed transaction bytes, transaction hash)
        """
        tx_hash = hashlib.sha256(transaction).digest()
        signature = self._signing_key.sign(tx_hash).signature
        signed = transaction + encode_u8(ED25519_KEY_TYPE) + encode_fixed(signature, 64)
        return signed, tx_hash
