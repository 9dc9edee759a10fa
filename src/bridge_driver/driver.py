"""
Bridge driver facade.

This module wires the three connectors over one shared set of chain
clients and owns their lifetime.
"""

import logging

from .clients import BridgeClients
from .config import BridgeSettings
from .connectors.eth_connector import EthConnector
from .connectors.fast_bridge import FastBridge
from .connectors.nep141_connector import Nep141Connector

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: int = logging.INFO) -> None:
    """Configure root logging for applications embedding the driver."""
    logging.basicConfig(level=level, format=LOG_FORMAT)


class BridgeDriver:
    """
    Entry point for all bridge flows.

    Use as an async context manager so the RPC clients are closed:

        async with BridgeDriver(BridgeSettings.from_env()) as driver:
            await driver.eth_connector.finalize_deposit(tx_hash, 0)
    """

    def __init__(self, settings: BridgeSettings, clients: BridgeClients | None = None):
        """
        Initialize the driver.

        Args:
            settings: Resolved settings
            clients: Pre-built clients, built lazily from ``settings`` if omitted
        """
        self.settings = settings
        self.clients = clients if clients is not None else BridgeClients(settings)

        self.eth_connector = EthConnector(self.clients)
        self.nep141_connector = Nep141Connector(self.clients)
        self.fast_bridge = FastBridge(self.clients)

    async def __aenter__(self) -> "BridgeDriver":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.clients.aclose()
