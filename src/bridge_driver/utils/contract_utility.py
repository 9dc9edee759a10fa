import asyncio
import logging
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.contract import AsyncContract
from web3.exceptions import Web3Exception

from ..abis import ABIS
from ..errors import ConfigurationError, EvmRpcError

logger = logging.getLogger(__name__)

_WEB3_ERRORS = (Web3Exception, ValueError, OSError, asyncio.TimeoutError)


class ContractUtility:
    """
    Utility for EVM contract interaction.

    Can be used in two modes:
    1. Full mode: Initialize with RPC URL, chain id and secret for signing transactions
    2. Read-only mode: Initialize with RPC URL only for view calls
    """

    def __init__(
        self,
        rpc_url: str,
        secret: str = "",
        chain_id: int | None = None,
        w3: AsyncWeb3 | None = None,
    ) -> None:
        """
        Args:
            rpc_url: RPC URL for the network (required)
            secret: Private key for signing transactions (optional)
            chain_id: Chain id used when signing
            w3: Pre-built AsyncWeb3 instance, replaces the one built from ``rpc_url``
        """
        if not rpc_url and w3 is None:
            raise ConfigurationError("RPC URL is required")

        self.rpc_url = rpc_url
        self.w3 = w3 if w3 is not None else AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self.chain_id = chain_id
        self.account: LocalAccount | None = Account.from_key(secret) if secret else None

    @property
    def address(self) -> str:
        """Checksummed address of the signing account."""
        return self._require_account().address

    def _require_account(self) -> LocalAccount:
        if self.account is None:
            raise ConfigurationError("An EVM private key is required to send transactions")
        return self.account

    def contract(self, contract_name: str, address: str) -> AsyncContract:
        """Bind one of the known ABIs to ``address``."""
        return self.w3.eth.contract(
            address=AsyncWeb3.to_checksum_address(address),
            abi=ABIS[contract_name],
        )

    async def call(self, contract_fn: Any) -> Any:
        """Run a view function at the latest block."""
        try:
            return await contract_fn.call()
        except _WEB3_ERRORS as e:
            raise EvmRpcError(f"Call to {contract_fn.fn_name} failed") from e

    async def send(self, contract_fn: Any, value: int = 0) -> str:
        """Build, sign and broadcast a contract call.

        Returns:
            Transaction hash, 0x-prefixed hex
        """
        account = self._require_account()
        if self.chain_id is None:
            raise ConfigurationError("EVM chain id is required to send transactions")
        try:
            nonce = await self.w3.eth.get_transaction_count(account.address, "pending")
            tx = await contract_fn.build_transaction({
                "from": account.address,
                "nonce": nonce,
                "chainId": self.chain_id,
                "value": value,
            })
            signed = account.sign_transaction(tx)
            tx_hash = await self.w3.eth.send_raw_transaction(signed.raw_transaction)
        except _WEB3_ERRORS as e:
            raise EvmRpcError(f"Sending {contract_fn.fn_name} failed") from e

        hex_hash = AsyncWeb3.to_hex(tx_hash)
        logger.info(f"Submitted {contract_fn.fn_name}: {hex_hash}")
        return hex_hash

    async def send_and_wait(self, contract_fn: Any, value: int = 0) -> dict[str, Any]:
        """Send a contract call and wait for its receipt.

        Raises:
            EvmRpcError: If the transaction fails or reverts
        """
        tx_hash = await self.send(contract_fn, value)
        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(tx_hash)
        except _WEB3_ERRORS as e:
            raise EvmRpcError(f"Waiting for {tx_hash} failed") from e
        if receipt["status"] == 0:
            raise EvmRpcError(f"Transaction {tx_hash} reverted")
        logger.info(f"Transaction {tx_hash} confirmed in block {receipt['blockNumber']}")
        return receipt

    async def aclose(self) -> None:
        """Close the provider's HTTP session."""
        await self.w3.provider.disconnect()
