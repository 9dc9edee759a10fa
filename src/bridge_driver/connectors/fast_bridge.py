"""
Fast bridge: liquidity providers pay out on EVM ahead of the NEAR unlock.

``transfer`` locks tokens on NEAR, ``complete_transfer_on_eth`` is the LP's
payout, and ``lp_unlock`` reimburses the LP with a proof of that payout.
``unlock`` refunds the initiator with a storage proof that the payout slot
was never set.
"""

import base64
import json
import logging

from web3 import Web3

from ..clients import BridgeClients
from ..constants import (
    DEFAULT_GAS,
    FAST_BRIDGE_WITHDRAW_GAS,
    FT_TRANSFER_CALL_GAS,
    LP_UNLOCK_GAS,
    NO_DEPOSIT,
    ONE_YOCTO,
    TRANSFER_TOKENS_TOPIC,
)
from .fast_bridge_types import (
    PendingTransfer,
    TransferMessage,
    eth_address_bytes,
    transfer_storage_key,
)

logger = logging.getLogger(__name__)


class FastBridge:
    """Drives fast bridge transfers between NEAR and EVM."""

    def __init__(self, clients: BridgeClients):
        self.clients = clients
        self.settings = clients.settings

    async def get_pending_transfer(self, nonce: int) -> PendingTransfer:
        raw = await self.clients.near_rpc.view(
            self.settings.get("fast_bridge_account_id"),
            "get_pending_transfer",
            {"id": str(nonce)},
        )
        return PendingTransfer.from_view(raw)

    async def transfer(
        self,
        token_id: str,
        amount: int,
        fee_amount: int,
        eth_token_address: str,
        recipient: str,
        valid_till: int,
    ) -> str:
        """Send tokens to the fast bridge on NEAR with a ``TransferMessage``.

        Args:
            valid_till: Deadline in nanoseconds, forwarded as given
        """
        self.settings.require("fast_bridge.transfer")
        message = TransferMessage(
            valid_till=valid_till,
            token_near=token_id,
            token_eth=eth_address_bytes(eth_token_address),
            amount=amount,
            fee_token=token_id,
            fee_amount=fee_amount,
            recipient=eth_address_bytes(recipient),
        )
        args = {
            "receiver_id": self.settings.get("fast_bridge_account_id"),
            "amount": str(amount),
            "msg": base64.b64encode(message.to_borsh()).decode(),
        }
        tx_hash = await self.clients.near_rpc.change(
            token_id,
            "ft_transfer_call",
            json.dumps(args).encode(),
            FT_TRANSFER_CALL_GAS,
            ONE_YOCTO,
        )
        logger.info(f"Sent tokens to the fast bridge contract: {tx_hash}")
        return tx_hash

    async def complete_transfer_on_eth(self, nonce: int, unlock_recipient: str) -> str:
        """Pay the recipient on EVM as liquidity provider.

        The proof of this transaction later unlocks the tokens on NEAR for
        ``unlock_recipient``.
        """
        self.settings.require("fast_bridge.complete_transfer_on_eth")
        pending = await self.get_pending_transfer(nonce)
        message = pending.message
        valid_till_block_height = pending.require_valid_till_block_height()

        contract = self.clients.evm.contract("FastBridge", self.settings.get("fast_bridge_address"))
        fn = contract.functions.transferTokens(
            Web3.to_checksum_address(message.token_eth),
            Web3.to_checksum_address(message.recipient),
            nonce,
            message.amount,
            unlock_recipient,
            valid_till_block_height,
        )
        tx_hash = await self.clients.evm.send(fn, value=message.amount)
        logger.info(f"Completed fast bridge transfer: {tx_hash}")
        return tx_hash

    async def lp_unlock(self, tx_hash: str) -> str:
        """Reimburse the LP on NEAR with a proof of its ``TransferTokens`` event."""
        self.settings.require("fast_bridge.lp_unlock")
        proofs = self.clients.proofs
        receipt = await proofs.get_receipt(tx_hash)
        log_index = proofs.find_log_index(receipt, TRANSFER_TOKENS_TOPIC)

        proof = await proofs.get_event_proof(tx_hash, log_index)
        logger.debug("Retrieved Ethereum proof")

        near_tx_hash = await self.clients.near_rpc.change(
            self.settings.get("fast_bridge_account_id"),
            "lp_unlock",
            json.dumps({"proof": proof.to_json()}).encode(),
            LP_UNLOCK_GAS,
            NO_DEPOSIT,
        )
        logger.info(f"Sent lp unlock transaction: {near_tx_hash}")
        return near_tx_hash

    async def unlock(self, nonce: int) -> str:
        """Refund an unclaimed transfer with a storage proof of its payout slot."""
        self.settings.require("fast_bridge.unlock")
        pending = await self.get_pending_transfer(nonce)
        message = pending.message
        block_height = pending.require_valid_till_block_height()

        slot_key = transfer_storage_key(message.token_eth, message.recipient, nonce, message.amount)
        proof = await self.clients.proofs.get_storage_proof(
            self.settings.get("fast_bridge_address"), slot_key, block_height
        )

        args = {
            "nonce": str(nonce),
            "proof": base64.b64encode(proof.to_borsh()).decode(),
        }
        near_tx_hash = await self.clients.near_rpc.change(
            self.settings.get("fast_bridge_account_id"),
            "unlock",
            json.dumps(args).encode(),
            DEFAULT_GAS,
            NO_DEPOSIT,
        )
        logger.info(f"Sent unlock transaction: {near_tx_hash}")
        return near_tx_hash

    async def withdraw(
        self,
        token_id: str,
        amount: int | None = None,
        recipient_id: str | None = None,
        msg: str | None = None,
    ) -> str:
        """Withdraw tokens from the fast bridge contract on NEAR."""
        self.settings.require("fast_bridge.withdraw")
        args = {"token_id": token_id}
        if recipient_id is not None:
            args["recipient_id"] = recipient_id
        if amount is not None:
            args["amount"] = str(amount)
        if msg is not None:
            args["msg"] = msg

        near_tx_hash = await self.clients.near_rpc.change(
            self.settings.get("fast_bridge_account_id"),
            "withdraw",
            json.dumps(args).encode(),
            FAST_BRIDGE_WITHDRAW_GAS,
            NO_DEPOSIT,
        )
        logger.info(f"Sent withdraw transaction: {near_tx_hash}")
        return near_tx_hash
