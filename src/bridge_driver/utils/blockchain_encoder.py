"""
Blockchain encoding utilities for the bridge driver.

This module provides RLP encoding for Ethereum block headers, receipts and
logs, supporting every hardfork up to Prague. The encodings are bit-exact:
on-chain verifiers hash the same bytes.
"""

import logging

import rlp
from web3 import Web3

from ..models import EvmBlockHeader, EvmLog, EvmReceipt

logger = logging.getLogger(__name__)


class BlockchainEncoder:
    """Utilities for encoding blockchain data structures."""

    @staticmethod
    def encode_transaction_index(tx_index: int) -> bytes:
        """
        Encode a transaction index as a receipts trie key.

        Index 0 encodes to the RLP empty string (0x80).
        """
        if tx_index == 0:
            return rlp.encode(b'')
        else:
            return rlp.encode(tx_index)

    @staticmethod
    def encode_log(log: EvmLog) -> bytes:
        """RLP encode a log as ``[address, topics, data]``."""
        return rlp.encode(log.rlp_fields())

    @staticmethod
    def encode_receipt(receipt: EvmReceipt) -> bytes:
        """
        RLP encode a transaction receipt with proper type handling.

        Legacy (type 0) receipts are the plain RLP of
        ``[status, cumulativeGasUsed, logsBloom, logs]``; typed receipts
        (EIP-2718) prepend the type byte.

        Args:
            receipt: Transaction receipt to encode

        Returns:
            RLP encoded receipt with type prefix if needed
        """
        receipt_data = [
            receipt.status,
            receipt.cumulative_gas_used,
            receipt.logs_bloom,
            [log.rlp_fields() for log in receipt.logs],
        ]
        encoded = rlp.encode(receipt_data)

        if receipt.receipt_type == 0:
            return encoded
        else:
            return bytes([receipt.receipt_type]) + encoded

    @staticmethod
    def encode_block_header_legacy(header: EvmBlockHeader) -> list:
        """
        Encode legacy block header fields (pre-London).

        Returns:
            List of header fields (0-14)
        """
        return [
            header.parent_hash,        # 0
            header.uncles_hash,        # 1
            header.miner,              # 2
            header.state_root,         # 3
            header.transactions_root,  # 4
            header.receipts_root,      # 5
            header.logs_bloom,         # 6
            header.difficulty,         # 7
            header.number,             # 8
            header.gas_limit,          # 9
            header.gas_used,           # 10
            header.timestamp,          # 11
            header.extra_data,         # 12
            header.mix_hash,           # 13
            header.nonce,              # 14
        ]

    @staticmethod
    def add_london_fields(header_fields: list, header: EvmBlockHeader) -> None:
        # Field 15: baseFeePerGas (London, EIP-1559)
        if header.base_fee_per_gas is not None:
            header_fields.append(header.base_fee_per_gas)

    @staticmethod
    def add_shanghai_fields(header_fields: list, header: EvmBlockHeader) -> None:
        # Field 16: withdrawalsRoot (Shanghai, EIP-4895)
        if header.withdrawals_root is not None:
            header_fields.append(header.withdrawals_root)

    @staticmethod
    def add_cancun_fields(header_fields: list, header: EvmBlockHeader) -> None:
        # Fields 17-18: blobGasUsed, excessBlobGas (EIP-4844)
        if header.blob_gas_used is not None:
            header_fields.append(header.blob_gas_used)
        if header.excess_blob_gas is not None:
            header_fields.append(header.excess_blob_gas)
        # Field 19: parentBeaconBlockRoot (EIP-4788)
        if header.parent_beacon_block_root is not None:
            header_fields.append(header.parent_beacon_block_root)

    @staticmethod
    def add_prague_fields(header_fields: list, header: EvmBlockHeader) -> None:
        # Field 20: requestsHash (Prague, EIP-7685)
        if header.requests_hash is not None:
            header_fields.append(header.requests_hash)

    @staticmethod
    def encode_block_header(header: EvmBlockHeader) -> bytes:
        """
        Serialize a block header the way the chain hashes it.

        Fields are added conditionally based on their presence in the header.

        Returns:
            RLP encoded block header
        """
        header_fields = BlockchainEncoder.encode_block_header_legacy(header)

        BlockchainEncoder.add_london_fields(header_fields, header)
        BlockchainEncoder.add_shanghai_fields(header_fields, header)
        BlockchainEncoder.add_cancun_fields(header_fields, header)
        BlockchainEncoder.add_prague_fields(header_fields, header)

        encoded = rlp.encode(header_fields)

        if logger.isEnabledFor(logging.DEBUG):
            BlockchainEncoder._verify_block_hash(encoded, header, header_fields)

        return encoded

    @staticmethod
    def _verify_block_hash(encoded: bytes, header: EvmBlockHeader, header_fields: list) -> None:
        """Log a warning when the encoded header does not hash to the block hash."""
        calculated_hash = bytes(Web3.keccak(encoded))

        if calculated_hash != header.hash:
            logger.warning(f"Header hash mismatch. Calculated: {Web3.to_hex(calculated_hash)}, "
                           f"Expected: {Web3.to_hex(header.hash)}")
            logger.debug(f"Header has {len(header_fields)} fields")
            logger.debug(f"Hardfork fields - baseFeePerGas: {header.base_fee_per_gas!r}, "
                         f"withdrawalsRoot: {header.withdrawals_root!r}, "
                         f"blobGasUsed: {header.blob_gas_used!r}, "
                         f"excessBlobGas: {header.excess_blob_gas!r}, "
                         f"parentBeaconBlockRoot: {header.parent_beacon_block_root!r}, "
                         f"requestsHash: {header.requests_hash!r}")
