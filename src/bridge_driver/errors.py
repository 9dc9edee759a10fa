"""
Error taxonomy for the bridge driver.

Every failure surfaced by the driver is a ``BridgeError`` carrying an
``ErrorKind``. Causes are chained with ``raise ... from`` so the original
transport or decoding error stays attached. Nothing in the driver retries.
"""

from enum import Enum
from typing import Any, ClassVar


class ErrorKind(str, Enum):
    """Kinds of failures reported to callers."""
    CONFIGURATION = "configuration"
    EVM_RPC = "evm_rpc"
    NEAR_RPC = "near_rpc"
    PROOF_BUILD = "proof_build"
    PROOF_SERIALIZE = "proof_serialize"
    LIGHT_CLIENT_LAG = "light_client_lag"
    FINALIZATION_TIMEOUT = "finalization_timeout"
    INVALID_INPUT = "invalid_input"


class BridgeError(Exception):
    """Base class for all driver errors."""

    kind: ClassVar[ErrorKind]

    def __str__(self) -> str:
        message = super().__str__()
        if self.__cause__ is not None:
            return f"{message}: {self.__cause__}"
        return message


class ConfigurationError(BridgeError):
    """A required setting is missing or malformed."""
    kind = ErrorKind.CONFIGURATION


class EvmRpcError(BridgeError):
    """Transport or deserialization failure against the EVM chain."""
    kind = ErrorKind.EVM_RPC


class NearRpcError(BridgeError):
    """Transport or deserialization failure against the NEAR chain.

    Attributes:
        name: JSON-RPC error name (e.g. ``HANDLER_ERROR``), if any
        cause: JSON-RPC error cause object, if any
    """
    kind = ErrorKind.NEAR_RPC

    def __init__(self, message: str, name: str | None = None, cause: Any = None):
        super().__init__(message)
        self.name = name
        self.cause = cause

    @property
    def is_handler_error(self) -> bool:
        return self.name == "HANDLER_ERROR"

    @property
    def cause_name(self) -> str | None:
        if isinstance(self.cause, dict):
            return self.cause.get("name")
        return None


class ProofBuildError(BridgeError):
    """Trie root mismatch, missing receipt or log, absent storage proof."""
    kind = ErrorKind.PROOF_BUILD


class ProofSerializeError(BridgeError):
    """Canonical encoding or decoding of a proof failed."""
    kind = ErrorKind.PROOF_SERIALIZE


class LightClientLagError(BridgeError):
    """The destination light client has not synced the required height yet.

    ``required_height`` is ``None`` when the NEAR node refused to build the
    proof without reporting the receipt's height.
    """
    kind = ErrorKind.LIGHT_CLIENT_LAG

    def __init__(self, required_height: int | None, sync_height: int):
        if required_height is None:
            message = f"Light client at height {sync_height} has not reached the receipt's block"
        else:
            message = f"Light client is at height {sync_height}, proof requires height {required_height}"
        super().__init__(message)
        self.required_height = required_height
        self.sync_height = sync_height


class FinalizationTimeoutError(BridgeError):
    """A polling window was exceeded."""
    kind = ErrorKind.FINALIZATION_TIMEOUT


class InvalidInputError(BridgeError):
    """A caller-supplied hash, id or index is unusable."""
    kind = ErrorKind.INVALID_INPUT
