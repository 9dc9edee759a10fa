"""
Proof generation for EVM chain events and storage.

Receipt proofs are Merkle-Patricia proofs of a receipt in its block's
receipts trie; storage proofs come from ``eth_getProof`` and are passed on
as returned.
"""

import logging

import rlp
from trie import HexaryTrie
from web3 import Web3

from .errors import InvalidInputError, ProofBuildError
from .evm_rpc import EthRpcClient
from .models import EvmReceipt, ReceiptProof, StorageProof
from .utils.blockchain_encoder import BlockchainEncoder
from .utils.parsing import parse_tx_hash

logger = logging.getLogger(__name__)


class ProofManager:
    """Builds receipt and storage proofs from one EVM RPC endpoint."""

    def __init__(self, eth_rpc: EthRpcClient):
        self.eth_rpc = eth_rpc

    @staticmethod
    def find_log_index(receipt: EvmReceipt, topic: bytes) -> int:
        """
        Find the transaction-local index of the first log whose topic-0 is ``topic``.

        Raises:
            ProofBuildError: If no log in the receipt matches
        """
        for i, log in enumerate(receipt.logs):
            if log.topics and log.topics[0] == topic:
                logger.info(f"Found event at transaction-local index {i}")
                return i
        raise ProofBuildError(
            f"No log with topic {Web3.to_hex(topic)} in transaction "
            f"{Web3.to_hex(receipt.transaction_hash)}"
        )

    @staticmethod
    def build_receipts_trie(receipts: list[EvmReceipt]) -> HexaryTrie:
        trie = HexaryTrie({})
        for rec in receipts:
            key = BlockchainEncoder.encode_transaction_index(rec.transaction_index)
            trie[key] = BlockchainEncoder.encode_receipt(rec)
        return trie

    async def get_receipt(self, tx_hash: str) -> EvmReceipt:
        receipt = await self.eth_rpc.get_transaction_receipt(parse_tx_hash(tx_hash))
        if receipt is None:
            raise ProofBuildError(f"Transaction receipt not found for {tx_hash}")
        return receipt

    async def get_event_proof(self, tx_hash: str, log_index: int) -> ReceiptProof:
        """
        Generate a receipt proof for one log of a transaction.

        Args:
            tx_hash: Transaction hash, 0x-prefixed
            log_index: Index of the log within the transaction's receipt

        Raises:
            InvalidInputError: If the hash is malformed or the log index is out of range
            ProofBuildError: If the receipt or block is missing, or the trie root mismatches
        """
        receipt = await self.get_receipt(tx_hash)
        if not 0 <= log_index < len(receipt.logs):
            raise InvalidInputError(
                f"Log index {log_index} out of range, transaction {tx_hash} "
                f"has {len(receipt.logs)} logs"
            )

        block_number = receipt.block_number
        header = await self.eth_rpc.get_block_by_number(block_number)
        if header is None:
            raise ProofBuildError(f"Block not found for block number {block_number}")

        logger.info(f"Processing block {block_number}, tx index {receipt.transaction_index}")
        receipts = await self.eth_rpc.get_block_receipts(block_number)

        trie = self.build_receipts_trie(receipts)

        if trie.root_hash != header.receipts_root:
            raise ProofBuildError(
                f"Trie root mismatch! Calculated: {Web3.to_hex(trie.root_hash)}, "
                f"Block: {Web3.to_hex(header.receipts_root)}"
            )

        receipt_key = BlockchainEncoder.encode_transaction_index(receipt.transaction_index)
        proof_nodes = [rlp.encode(node) for node in trie.get_proof(receipt_key)]

        block_receipt = next(
            (r for r in receipts if r.transaction_index == receipt.transaction_index),
            None,
        )
        if block_receipt is None:
            raise ProofBuildError(
                f"Receipt {receipt.transaction_index} missing from block {block_number}"
            )

        proof = ReceiptProof(
            header_data=BlockchainEncoder.encode_block_header(header),
            receipt_index=receipt.transaction_index,
            receipt_data=BlockchainEncoder.encode_receipt(block_receipt),
            proof=tuple(proof_nodes),
            log_index=log_index,
            log_entry_data=BlockchainEncoder.encode_log(block_receipt.logs[log_index]),
        )
        logger.info(f"Proof generated successfully with {len(proof_nodes)} merkle nodes")
        return proof

    async def get_storage_proof(self, address: str, slot_key: bytes, block_height: int) -> StorageProof:
        """
        Fetch the storage proof of one slot of ``address`` at ``block_height``.

        Raises:
            ProofBuildError: If the response has no storage entry or proves a different key
        """
        proof = await self.eth_rpc.get_proof(address, slot_key, block_height)
        if not proof.storage_proofs:
            raise ProofBuildError(f"Storage proof missing for {address} at block {block_height}")
        if proof.storage_proofs[0].key != slot_key:
            raise ProofBuildError(
                f"Storage proof is for key {Web3.to_hex(proof.storage_proofs[0].key)}, "
                f"expected {Web3.to_hex(slot_key)}"
            )
        logger.debug(f"Fetched storage proof for {address} at block {block_height}")
        return proof
