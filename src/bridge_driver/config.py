"""Configuration for the bridge driver.

Settings are resolved once per driver invocation by an external provider
(CLI, environment, presets) and handed to the connectors as an immutable
record. Every field is optional; the fields an operation needs are checked
when that operation starts, using the ``REQUIRED_SETTINGS`` table.
"""

import logging
import os
import re
from dataclasses import dataclass, fields
from typing import ClassVar
from urllib.parse import urlparse

import base58
from web3 import Web3

from .errors import ConfigurationError

# Get logger for this module
logger = logging.getLogger(__name__)

_NEAR_ACCOUNT_RE = re.compile(r"^(([a-z\d]+[-_])*[a-z\d]+\.)*([a-z\d]+[-_])*[a-z\d]+$")

_ETH_WRITE = ("eth_endpoint", "eth_chain_id", "eth_private_key")
_NEAR_WRITE = ("near_endpoint", "near_signer", "near_private_key")

# Operation -> settings that must be present before the operation starts.
REQUIRED_SETTINGS: dict[str, tuple[str, ...]] = {
    # EVM-coin connector
    "eth_connector.deposit_to_near": _ETH_WRITE + ("eth_custodian_address",),
    "eth_connector.deposit_to_evm": _ETH_WRITE + ("eth_custodian_address",),
    "eth_connector.finalize_deposit": ("eth_endpoint",) + _NEAR_WRITE + ("eth_connector_account_id",),
    "eth_connector.withdraw": _NEAR_WRITE + ("eth_connector_account_id",),
    "eth_connector.finalize_withdraw": _ETH_WRITE + (
        "eth_custodian_address", "near_endpoint", "eth_connector_account_id",
        "near_light_client_address",
    ),
    # NEP-141 connector
    "nep141_connector.log_token_metadata": _NEAR_WRITE + ("token_locker_id",),
    "nep141_connector.storage_deposit_for_token": _NEAR_WRITE + ("token_locker_id",),
    "nep141_connector.deploy_token": _ETH_WRITE + (
        "bridge_token_factory_address", "near_endpoint", "token_locker_id",
        "near_light_client_address",
    ),
    "nep141_connector.deposit": _NEAR_WRITE + ("token_locker_id",),
    "nep141_connector.finalize_deposit": _ETH_WRITE + (
        "bridge_token_factory_address", "near_endpoint", "token_locker_id",
        "near_light_client_address",
    ),
    "nep141_connector.withdraw": _ETH_WRITE + ("bridge_token_factory_address",),
    "nep141_connector.finalize_withdraw": ("eth_endpoint",) + _NEAR_WRITE + ("token_locker_id",),
    "nep141_connector.sign_transfer": _NEAR_WRITE + ("token_locker_id",),
    "nep141_connector.finalize_deposit_signed": _ETH_WRITE + (
        "bridge_token_factory_address", "near_endpoint",
    ),
    "nep141_connector.claim_fee": ("eth_endpoint",) + _NEAR_WRITE + ("token_locker_id",),
    # Fast bridge
    "fast_bridge.transfer": _NEAR_WRITE + ("fast_bridge_account_id",),
    "fast_bridge.complete_transfer_on_eth": _ETH_WRITE + (
        "fast_bridge_address", "near_endpoint", "fast_bridge_account_id",
    ),
    "fast_bridge.lp_unlock": ("eth_endpoint",) + _NEAR_WRITE + ("fast_bridge_account_id",),
    "fast_bridge.unlock": ("eth_endpoint", "fast_bridge_address") + _NEAR_WRITE + (
        "fast_bridge_account_id",
    ),
    "fast_bridge.withdraw": _NEAR_WRITE + ("fast_bridge_account_id",),
}


@dataclass(frozen=True, slots=True)
class BridgeSettings:
    """Resolved driver settings.

    Attributes:
        eth_endpoint: EVM JSON-RPC URL
        eth_chain_id: EVM chain id used when signing
        eth_private_key: 32-byte hex EVM private key
        eth_custodian_address: EthCustodian contract
        bridge_token_factory_address: BridgeTokenFactory contract
        fast_bridge_address: Fast bridge contract on EVM
        near_light_client_address: NEAR light client contract on EVM
        near_endpoint: NEAR JSON-RPC URL
        near_signer: NEAR account id that signs transactions
        near_private_key: ``ed25519:<base58>`` secret key of ``near_signer``
        eth_connector_account_id: EVM-coin connector (locker) on NEAR
        token_locker_id: NEP-141 token locker on NEAR
        fast_bridge_account_id: Fast bridge contract on NEAR
        request_timeout: HTTP timeout for both RPC gateways, seconds
    """

    eth_endpoint: str | None = None
    eth_chain_id: int | None = None
    eth_private_key: str | None = None
    eth_custodian_address: str | None = None
    bridge_token_factory_address: str | None = None
    fast_bridge_address: str | None = None
    near_light_client_address: str | None = None
    near_endpoint: str | None = None
    near_signer: str | None = None
    near_private_key: str | None = None
    eth_connector_account_id: str | None = None
    token_locker_id: str | None = None
    fast_bridge_account_id: str | None = None
    request_timeout: float = 30.0

    ENV_PREFIX: ClassVar[str] = "BRIDGE_"
    ADDRESS_FIELDS: ClassVar[frozenset[str]] = frozenset({
        "eth_custodian_address",
        "bridge_token_factory_address",
        "fast_bridge_address",
        "near_light_client_address",
    })
    URL_FIELDS: ClassVar[frozenset[str]] = frozenset({"eth_endpoint", "near_endpoint"})
    ACCOUNT_FIELDS: ClassVar[frozenset[str]] = frozenset({
        "near_signer",
        "eth_connector_account_id",
        "token_locker_id",
        "fast_bridge_account_id",
    })
    SECRET_FIELDS: ClassVar[frozenset[str]] = frozenset({"eth_private_key", "near_private_key"})

    def __post_init__(self) -> None:
        """Validate the fields that are cheap to check eagerly."""
        if self.request_timeout <= 0:
            raise ConfigurationError(
                f"Request timeout must be positive, got {self.request_timeout}"
            )

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "BridgeSettings":
        """Load settings from ``BRIDGE_*`` environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``

        Returns:
            BridgeSettings with every variable that was set

        Raises:
            ConfigurationError: If a numeric variable is not a number
        """
        environ = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for f in fields(cls):
            raw = environ.get(cls.ENV_PREFIX + f.name.upper())
            if raw is None or raw == "":
                continue
            if f.name == "eth_chain_id":
                try:
                    values[f.name] = int(raw, 0)
                except ValueError:
                    raise ConfigurationError(
                        f"{cls.ENV_PREFIX}ETH_CHAIN_ID must be an integer, got {raw!r}"
                    ) from None
            elif f.name == "request_timeout":
                try:
                    values[f.name] = float(raw)
                except ValueError:
                    raise ConfigurationError(
                        f"{cls.ENV_PREFIX}REQUEST_TIMEOUT must be a number, got {raw!r}"
                    ) from None
            else:
                values[f.name] = raw
        return cls(**values)

    def require(self, operation: str) -> None:
        """Check that every setting ``operation`` needs is present and well formed.

        Raises:
            ConfigurationError: Listing all missing fields, or the first malformed one
        """
        try:
            required = REQUIRED_SETTINGS[operation]
        except KeyError:
            raise ConfigurationError(f"Unknown operation: {operation}") from None

        missing = [name for name in required if getattr(self, name) is None]
        if missing:
            raise ConfigurationError(
                f"{operation} requires settings that are not set: {', '.join(missing)}"
            )
        for name in required:
            self.get(name)

    def get(self, name: str):
        """Return a validated setting value, normalized where applicable.

        Addresses come back checksummed, private keys without ``0x``.

        Raises:
            ConfigurationError: If the setting is missing or malformed
        """
        value = getattr(self, name)
        if value is None:
            raise ConfigurationError(f"{name} is not set")

        if name in self.URL_FIELDS:
            parsed = urlparse(value)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ConfigurationError(f"{name} is not a valid http(s) URL: {value}")
        elif name in self.ADDRESS_FIELDS:
            if not Web3.is_address(value):
                raise ConfigurationError(f"{name} is not a valid EVM address: {value}")
            return Web3.to_checksum_address(value)
        elif name in self.ACCOUNT_FIELDS:
            if not 2 <= len(value) <= 64 or not _NEAR_ACCOUNT_RE.match(value):
                raise ConfigurationError(f"{name} is not a valid NEAR account id: {value}")
        elif name == "eth_private_key":
            key = value[2:] if value.startswith("0x") else value
            if len(key) != 64:
                raise ConfigurationError(
                    f"Invalid EVM private key length. Expected 64 hex characters, got {len(key)}"
                )
            try:
                bytes.fromhex(key)
            except ValueError:
                raise ConfigurationError("EVM private key is not a valid hex string") from None
            return key
        elif name == "near_private_key":
            prefix, _, encoded = value.partition(":")
            if prefix != "ed25519" or not encoded:
                raise ConfigurationError("NEAR private key must look like ed25519:<base58>")
            try:
                raw = base58.b58decode(encoded)
            except ValueError:
                raise ConfigurationError("NEAR private key is not valid base58") from None
            if len(raw) not in (32, 64):
                raise ConfigurationError(
                    f"NEAR private key must decode to 32 or 64 bytes, got {len(raw)}"
                )
        elif name == "eth_chain_id":
            if not isinstance(value, int) or value <= 0:
                raise ConfigurationError(f"eth_chain_id must be a positive integer, got {value!r}")
        return value

    def log_config(self) -> None:
        """Log the configuration in a readable format (hiding secrets)."""
        logger.info("=" * 60)
        logger.info("Bridge Driver Configuration")
        logger.info("=" * 60)
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in self.SECRET_FIELDS:
                shown = "[SET]" if value else "[NOT SET]"
            else:
                shown = value if value is not None else "[NOT SET]"
            logger.info(f"  {f.name}: {shown}")
        logger.info("=" * 60)
