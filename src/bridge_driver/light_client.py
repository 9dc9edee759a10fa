"""Queries against the NEAR light client deployed on the EVM chain."""

import logging

from .utils.contract_utility import ContractUtility

logger = logging.getLogger(__name__)


class NearOnEthClient:
    """Reads the sync height and block hashes of the on-EVM NEAR light client."""

    def __init__(self, contract_util: ContractUtility, address: str):
        self.contract_util = contract_util
        self.contract = contract_util.contract("NearLightClient", address)

    async def get_sync_height(self) -> int:
        """Height of the latest NEAR block the light client has accepted."""
        state = await self.contract_util.call(self.contract.functions.bridgeState())
        return int(state[0])

    async def get_block_hash(self, height: int) -> bytes:
        block_hash = await self.contract_util.call(self.contract.functions.blockHashes(height))
        return bytes(block_hash)

    async def get_head(self) -> tuple[int, bytes]:
        """Return the sync height and the block hash stored for it."""
        height = await self.get_sync_height()
        block_hash = await self.get_block_hash(height)
        logger.debug(f"Light client synced to height {height}")
        return height, block_hash
