"""
Lazily built chain clients shared by the connectors of one driver.

Each gateway owns its own HTTP client; nothing is process-wide, so several
drivers with different endpoints can run side by side.
"""

import logging

from .config import BridgeSettings
from .evm_rpc import EthRpcClient
from .light_client import NearOnEthClient
from .near_rpc import NearRpcClient
from .proof_manager import ProofManager
from .utils.contract_utility import ContractUtility
from .utils.near_signer import NearSigner

logger = logging.getLogger(__name__)


class BridgeClients:
    """Builds each client on first use from the settings.

    Any client can be passed in explicitly instead, e.g. a mock in tests.
    """

    def __init__(
        self,
        settings: BridgeSettings,
        eth_rpc: EthRpcClient | None = None,
        near_rpc: NearRpcClient | None = None,
        evm: ContractUtility | None = None,
        light_client: NearOnEthClient | None = None,
        proofs: ProofManager | None = None,
    ):
        self.settings = settings
        self._eth_rpc = eth_rpc
        self._near_rpc = near_rpc
        self._evm = evm
        self._light_client = light_client
        self._proofs = proofs

    @property
    def eth_rpc(self) -> EthRpcClient:
        if self._eth_rpc is None:
            self._eth_rpc = EthRpcClient(
                self.settings.get("eth_endpoint"),
                timeout=self.settings.request_timeout,
            )
        return self._eth_rpc

    @property
    def near_rpc(self) -> NearRpcClient:
        if self._near_rpc is None:
            signer = None
            if self.settings.near_signer is not None and self.settings.near_private_key is not None:
                signer = NearSigner(
                    self.settings.get("near_signer"),
                    self.settings.get("near_private_key"),
                )
            self._near_rpc = NearRpcClient(
                self.settings.get("near_endpoint"),
                signer=signer,
                timeout=self.settings.request_timeout,
            )
        return self._near_rpc

    @property
    def evm(self) -> ContractUtility:
        if self._evm is None:
            secret = ""
            if self.settings.eth_private_key is not None:
                secret = self.settings.get("eth_private_key")
            chain_id = None
            if self.settings.eth_chain_id is not None:
                chain_id = self.settings.get("eth_chain_id")
            self._evm = ContractUtility(
                self.settings.get("eth_endpoint"),
                secret=secret,
                chain_id=chain_id,
            )
        return self._evm

    @property
    def light_client(self) -> NearOnEthClient:
        if self._light_client is None:
            self._light_client = NearOnEthClient(
                self.evm, self.settings.get("near_light_client_address")
            )
        return self._light_client

    @property
    def proofs(self) -> ProofManager:
        if self._proofs is None:
            self._proofs = ProofManager(self.eth_rpc)
        return self._proofs

    async def aclose(self) -> None:
        """Close the HTTP clients that were opened."""
        if self._eth_rpc is not None:
            await self._eth_rpc.aclose()
        if self._near_rpc is not None:
            await self._near_rpc.aclose()
        if self._evm is not None:
            await self._evm.aclose()
        logger.debug("Closed RPC clients")
