"""
EVM JSON-RPC gateway.

Typed wrapper returning block headers, receipts and storage proofs. No
retry and no caching: transport errors fail the call, and malformed
objects fail deserialization. Unknown fields are ignored.
"""

import logging
from typing import Any, Callable, TypeVar

from .errors import EvmRpcError
from .models import EvmBlockHeader, EvmReceipt, StorageProof
from .utils.parsing import parse_evm_address
from .utils.rpc_utility import JsonRpcUtility

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _parse(what: str, parse: Callable[[Any], T], obj: Any) -> T:
    try:
        return parse(obj)
    except (KeyError, TypeError, ValueError) as e:
        raise EvmRpcError(f"Malformed {what} in RPC response") from e


class EthRpcClient(JsonRpcUtility):
    """Client for one EVM JSON-RPC endpoint."""

    error_class = EvmRpcError

    async def get_block_by_number(self, block_number: int) -> EvmBlockHeader | None:
        result = await self._post("eth_getBlockByNumber", [hex(block_number), False])
        if result is None:
            return None
        return _parse("block", EvmBlockHeader.from_rpc, result)

    async def get_transaction_receipt(self, tx_hash: str) -> EvmReceipt | None:
        """Fetch a receipt; ``None`` when the node does not know the transaction."""
        result = await self._post("eth_getTransactionReceipt", [tx_hash])
        if result is None:
            return None
        return _parse("receipt", EvmReceipt.from_rpc, result)

    async def get_block_receipts(self, block_number: int) -> list[EvmReceipt]:
        result = await self._post("eth_getBlockReceipts", [hex(block_number)])
        if result is None:
            raise EvmRpcError(f"Block {block_number} not found")
        receipts = [_parse("receipt", EvmReceipt.from_rpc, r) for r in result]
        logger.info(f"Fetched {len(receipts)} receipts from block {block_number}")
        return receipts

    async def get_proof(self, address: str, slot_key: bytes, block_number: int) -> StorageProof:
        """Call ``eth_getProof`` for one storage key of ``address``."""
        params = [parse_evm_address(address), ["0x" + slot_key.hex()], hex(block_number)]
        result = await self._post("eth_getProof", params)
        if result is None:
            raise EvmRpcError(f"No proof returned for {address} at block {block_number}")
        return _parse("storage proof", StorageProof.from_rpc, result)
