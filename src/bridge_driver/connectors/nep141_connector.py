"""
Bridge for NEP-141 tokens that originate on NEAR.

Token lifecycle: ``log_token_metadata`` -> ``storage_deposit_for_token`` ->
``deploy_token`` (NEAR proof on EVM). Transfers: ``deposit`` ->
``finalize_deposit`` (NEAR proof on EVM) and back with ``withdraw`` ->
``finalize_withdraw`` (EVM proof on NEAR). The sign-then-claim path replaces
the NEAR proof by an MPC signature: ``sign_transfer`` ->
``finalize_deposit_signed`` -> ``claim_fee``.
"""

import json
import logging

from ..clients import BridgeClients
from ..constants import (
    DEFAULT_GAS,
    FINAL_OUTCOME_POLL_INTERVAL,
    FINAL_OUTCOME_TIMEOUT,
    LOCKER_WITHDRAW_DEPOSIT,
    LOG_METADATA_DEPOSIT,
    NO_DEPOSIT,
    ONE_YOCTO,
    SIGN_TRANSFER_DEPOSIT,
)
from ..errors import FinalizationTimeoutError
from ..utils.parsing import parse_near_id
from .common import build_near_execution_proof
from .omni_types import SignTransferEvent, find_sign_transfer_event

logger = logging.getLogger(__name__)


class Nep141Connector:
    """Bridges NEP-141 tokens between NEAR and their ERC-20 mirrors."""

    def __init__(self, clients: BridgeClients):
        self.clients = clients
        self.settings = clients.settings

    def _factory(self):
        return self.clients.evm.contract(
            "BridgeTokenFactory", self.settings.get("bridge_token_factory_address")
        )

    async def log_token_metadata(self, near_token_id: str) -> str:
        """Have the locker log the token metadata; its receipt feeds ``deploy_token``."""
        self.settings.require("nep141_connector.log_token_metadata")
        tx_hash = await self.clients.near_rpc.change(
            self.settings.get("token_locker_id"),
            "log_metadata",
            json.dumps({"token_id": near_token_id}).encode(),
            DEFAULT_GAS,
            LOG_METADATA_DEPOSIT,
        )
        logger.info(f"Sent log metadata transaction: {tx_hash}")
        return tx_hash

    async def storage_deposit_for_token(self, near_token_id: str, amount: int) -> str:
        """Pay storage for the locker on the token contract."""
        self.settings.require("nep141_connector.storage_deposit_for_token")
        tx_hash = await self.clients.near_rpc.change(
            near_token_id,
            "storage_deposit",
            json.dumps({"account_id": self.settings.get("token_locker_id")}).encode(),
            DEFAULT_GAS,
            amount,
        )
        logger.info(f"Sent storage deposit transaction: {tx_hash}")
        return tx_hash

    async def deploy_token(self, receipt_id: str) -> str:
        """Deploy the ERC-20 mirror from a ``log_metadata`` receipt proof."""
        self.settings.require("nep141_connector.deploy_token")
        proof, height = await build_near_execution_proof(
            self.clients.light_client,
            self.clients.near_rpc,
            receipt_id,
            self.settings.get("token_locker_id"),
        )
        tx_hash = await self.clients.evm.send(self._factory().functions.newBridgeToken(proof, height))
        logger.info(f"Sent new bridge token transaction: {tx_hash}")
        return tx_hash

    async def deposit(self, near_token_id: str, amount: int, eth_receiver: str) -> str:
        """Lock tokens in the locker for an EVM receiver."""
        self.settings.require("nep141_connector.deposit")
        args = {
            "receiver_id": self.settings.get("token_locker_id"),
            "amount": str(amount),
            "msg": eth_receiver,
        }
        tx_hash = await self.clients.near_rpc.change(
            near_token_id,
            "ft_transfer_call",
            json.dumps(args).encode(),
            DEFAULT_GAS,
            ONE_YOCTO,
        )
        logger.info(f"Sent deposit transaction: {tx_hash}")
        return tx_hash

    async def finalize_deposit(self, receipt_id: str) -> str:
        """Mint on EVM from a proof of the locker's deposit receipt."""
        self.settings.require("nep141_connector.finalize_deposit")
        proof, height = await build_near_execution_proof(
            self.clients.light_client,
            self.clients.near_rpc,
            receipt_id,
            self.settings.get("token_locker_id"),
        )
        tx_hash = await self.clients.evm.send(self._factory().functions.deposit(proof, height))
        logger.info(f"Sent finalize deposit transaction: {tx_hash}")
        return tx_hash

    async def withdraw(self, near_token_id: str, amount: int, receiver: str) -> str:
        """
        Burn the ERC-20 mirror in favour of a NEAR account.

        The factory pulls the tokens with ``transferFrom``, so a missing
        allowance is approved first and the approval is awaited to its receipt.
        """
        self.settings.require("nep141_connector.withdraw")
        evm = self.clients.evm
        factory = self._factory()
        factory_address = self.settings.get("bridge_token_factory_address")

        erc20_address = await evm.call(factory.functions.nearToEthToken(near_token_id))
        token = evm.contract("ERC20", erc20_address)
        allowance = await evm.call(token.functions.allowance(evm.address, factory_address))

        if allowance < amount:
            logger.info(f"Approving {amount - allowance} of {near_token_id} for the factory")
            await evm.send_and_wait(token.functions.approve(factory_address, amount - allowance))

        tx_hash = await evm.send(factory.functions.withdraw(near_token_id, amount, receiver))
        logger.info(f"Sent withdraw transaction: {tx_hash}")
        return tx_hash

    async def finalize_withdraw(self, tx_hash: str, log_index: int) -> str:
        """Unlock tokens on NEAR from a proof of the EVM burn."""
        self.settings.require("nep141_connector.finalize_withdraw")
        proof = await self.clients.proofs.get_event_proof(tx_hash, log_index)
        logger.debug("Retrieved Ethereum proof")
        near_tx_hash = await self.clients.near_rpc.change(
            self.settings.get("token_locker_id"),
            "withdraw",
            proof.to_borsh(),
            DEFAULT_GAS,
            LOCKER_WITHDRAW_DEPOSIT,
        )
        logger.info(f"Sent finalize withdraw transaction: {near_tx_hash}")
        return near_tx_hash

    async def sign_transfer(self, nonce: int, fee_recipient: str | None = None, fee: int | None = None) -> str:
        """Ask the locker to produce an MPC-signed payload for transfer ``nonce``."""
        self.settings.require("nep141_connector.sign_transfer")
        args = {"nonce": str(nonce), "fee_recipient": fee_recipient}
        if fee is not None:
            args["fee"] = str(fee)
        tx_hash = await self.clients.near_rpc.change(
            self.settings.get("token_locker_id"),
            "sign_transfer",
            json.dumps(args).encode(),
            DEFAULT_GAS,
            SIGN_TRANSFER_DEPOSIT,
        )
        logger.info(f"Sent sign transfer transaction: {tx_hash}")
        return tx_hash

    async def wait_for_sign_transfer_event(
        self,
        tx_hash: str,
        sender_id: str,
        timeout: float = FINAL_OUTCOME_TIMEOUT,
        poll_interval: float = FINAL_OUTCOME_POLL_INTERVAL,
    ) -> SignTransferEvent:
        """
        Poll the transaction outcome until a receipt logs a ``SignTransferEvent``.

        Raises:
            FinalizationTimeoutError: If no event appears within ``timeout`` seconds
        """
        near_rpc = self.clients.near_rpc
        tx_hash = parse_near_id(tx_hash)
        started_at = near_rpc.clock()
        while True:
            outcome = await near_rpc.tx_status(tx_hash, sender_id)
            if outcome is not None:
                event = find_sign_transfer_event(outcome)
                if event is not None:
                    return event
            if near_rpc.clock() - started_at >= timeout:
                raise FinalizationTimeoutError(
                    f"No SignTransferEvent for {tx_hash} after {timeout:.0f}s"
                )
            await near_rpc.sleep(poll_interval)

    async def finalize_deposit_signed(self, tx_hash: str, sender_id: str) -> str:
        """Mint on EVM with the signed payload of a ``sign_transfer`` transaction."""
        self.settings.require("nep141_connector.finalize_deposit_signed")
        event = await self.wait_for_sign_transfer_event(tx_hash, sender_id)
        payload = event.message_payload
        logger.debug(f"Found signed transfer {payload.nonce} of {payload.amount} {payload.token}")

        fn = self._factory().functions.deposit_omni(
            event.signature.to_bytes(), payload.to_bridge_deposit()
        )
        evm_tx_hash = await self.clients.evm.send(fn)
        logger.info(f"Sent signed deposit transaction: {evm_tx_hash}")
        return evm_tx_hash

    async def claim_fee(self, tx_hash: str, log_index: int) -> str:
        """Claim the relayer fee on NEAR with a proof of the EVM ``deposit_omni``."""
        self.settings.require("nep141_connector.claim_fee")
        proof = await self.clients.proofs.get_event_proof(tx_hash, log_index)
        near_tx_hash = await self.clients.near_rpc.change(
            self.settings.get("token_locker_id"),
            "claim_fee",
            proof.to_borsh(),
            DEFAULT_GAS,
            NO_DEPOSIT,
        )
        logger.info(f"Sent claim fee transaction: {near_tx_hash}")
        return near_tx_hash
