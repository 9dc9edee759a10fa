"""
Native EVM coin bridge through the EthCustodian contract.

EVM -> NEAR: ``deposit_to_near`` / ``deposit_to_evm`` then ``finalize_deposit``
with a receipt proof. NEAR -> EVM: ``withdraw`` then ``finalize_withdraw``
with a NEAR execution proof checked by the on-EVM light client.
"""

import logging

from ..clients import BridgeClients
from ..constants import DEFAULT_GAS, NO_DEPOSIT, ONE_YOCTO
from ..utils.borsh import encode_fixed, encode_u128
from ..utils.parsing import parse_evm_address
from .common import build_near_execution_proof

logger = logging.getLogger(__name__)


def encode_withdraw_args(recipient: str, amount: int) -> bytes:
    """Borsh ``{recipient_address: [u8; 20], amount: u128}``."""
    recipient_bytes = bytes.fromhex(parse_evm_address(recipient)[2:])
    return encode_fixed(recipient_bytes, 20) + encode_u128(amount)


class EthConnector:
    """Bridges the native EVM coin in both directions."""

    def __init__(self, clients: BridgeClients):
        self.clients = clients
        self.settings = clients.settings

    def _custodian(self):
        return self.clients.evm.contract(
            "EthCustodian", self.settings.get("eth_custodian_address")
        )

    async def deposit_to_near(self, amount: int, recipient_account_id: str) -> str:
        """Lock ``amount`` wei in the custodian for a NEAR account.

        Returns:
            EVM transaction hash
        """
        self.settings.require("eth_connector.deposit_to_near")
        fn = self._custodian().functions.depositToNear(recipient_account_id, 0)
        tx_hash = await self.clients.evm.send(fn, value=amount)
        logger.info(f"Sent deposit transaction: {tx_hash}")
        return tx_hash

    async def deposit_to_evm(self, amount: int, recipient_address: str) -> str:
        """Lock ``amount`` wei in the custodian for an EVM-on-NEAR (Aurora) account."""
        self.settings.require("eth_connector.deposit_to_evm")
        fn = self._custodian().functions.depositToEVM(recipient_address, 0)
        tx_hash = await self.clients.evm.send(fn, value=amount)
        logger.info(f"Sent deposit transaction: {tx_hash}")
        return tx_hash

    async def finalize_deposit(self, tx_hash: str, log_index: int) -> str:
        """Prove a deposit to the connector on NEAR.

        Returns:
            NEAR transaction hash
        """
        self.settings.require("eth_connector.finalize_deposit")
        proof = await self.clients.proofs.get_event_proof(tx_hash, log_index)
        logger.debug("Retrieved Ethereum proof")

        near_tx_hash = await self.clients.near_rpc.change(
            self.settings.get("eth_connector_account_id"),
            "deposit",
            proof.to_borsh(),
            DEFAULT_GAS,
            NO_DEPOSIT,
        )
        logger.info(f"Sent finalize deposit transaction: {near_tx_hash}")
        return near_tx_hash

    async def withdraw(self, amount: int, recipient_address: str) -> str:
        """Burn the bridged coin on NEAR in favour of an EVM address."""
        self.settings.require("eth_connector.withdraw")
        near_tx_hash = await self.clients.near_rpc.change(
            self.settings.get("eth_connector_account_id"),
            "withdraw",
            encode_withdraw_args(recipient_address, amount),
            DEFAULT_GAS,
            ONE_YOCTO,
        )
        logger.info(f"Sent withdraw transaction: {near_tx_hash}")
        return near_tx_hash

    async def finalize_withdraw(self, receipt_id: str) -> str:
        """Prove a withdraw receipt to the custodian and release the coin.

        Raises:
            LightClientLagError: If the light client has not reached the receipt's block
        """
        self.settings.require("eth_connector.finalize_withdraw")
        proof, height = await build_near_execution_proof(
            self.clients.light_client,
            self.clients.near_rpc,
            receipt_id,
            self.settings.get("eth_connector_account_id"),
        )
        fn = self._custodian().functions.withdraw(proof, height)
        tx_hash = await self.clients.evm.send(fn)
        logger.info(f"Sent finalize withdraw transaction: {tx_hash}")
        return tx_hash
