"""
NEAR JSON-RPC gateway.

View calls, signed function calls, light client proofs and transaction
outcome polling against one NEAR RPC endpoint.
"""

import asyncio
import base64
import json
import logging
import time
from typing import Any

import httpx

from .constants import (
    DEFAULT_REQUEST_TIMEOUT,
    FINAL_OUTCOME_POLL_INTERVAL,
    FINAL_OUTCOME_TIMEOUT,
)
from .errors import ConfigurationError, FinalizationTimeoutError, NearRpcError
from .light_client_proof import LightClientExecutionProof, block_hash_to_base58
from .utils.near_signer import NearSigner
from .utils.parsing import decode_near_hash
from .utils.rpc_utility import JsonRpcUtility

logger = logging.getLogger(__name__)


class NearRpcClient(JsonRpcUtility):
    """Client for one NEAR JSON-RPC endpoint.

    ``clock`` and ``sleep`` drive outcome polling and can be replaced, e.g.
    by a fake clock in tests.
    """

    error_class = NearRpcError

    def __init__(
        self,
        endpoint: str,
        signer: NearSigner | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(endpoint, timeout=timeout, transport=transport)
        self.signer = signer
        self.clock = time.monotonic
        self.sleep = asyncio.sleep

    def _rpc_error(self, message: str, error: dict[str, Any] | None = None) -> NearRpcError:
        if not isinstance(error, dict):
            return NearRpcError(message)
        return NearRpcError(message, name=error.get("name"), cause=error.get("cause"))

    def _require_signer(self) -> NearSigner:
        if self.signer is None:
            raise ConfigurationError("A NEAR signer is required to send transactions")
        return self.signer

    async def _query(self, params: dict[str, Any]) -> dict[str, Any]:
        result = await self._post("query", params)
        # Older nodes report query failures inside the result
        if isinstance(result, dict) and result.get("error"):
            raise NearRpcError(f"query failed: {result['error']}")
        return result

    async def view(self, contract_id: str, method_name: str, args: Any) -> bytes:
        """Call a view method at final finality and return its raw result."""
        result = await self._query({
            "request_type": "call_function",
            "finality": "final",
            "account_id": contract_id,
            "method_name": method_name,
            "args_base64": base64.b64encode(json.dumps(args).encode()).decode(),
        })
        try:
            return bytes(result["result"])
        except (KeyError, TypeError, ValueError) as e:
            raise NearRpcError(f"Malformed view result for {contract_id}.{method_name}") from e

    async def view_json(self, contract_id: str, method_name: str, args: Any) -> Any:
        raw = await self.view(contract_id, method_name, args)
        try:
            return json.loads(raw)
        except ValueError as e:
            raise NearRpcError(f"{contract_id}.{method_name} returned non-JSON data") from e

    async def view_access_key(self, account_id: str, public_key: str) -> tuple[int, bytes]:
        """Return the current access key nonce and the block hash it was read at."""
        result = await self._query({
            "request_type": "view_access_key",
            "finality": "final",
            "account_id": account_id,
            "public_key": public_key,
        })
        try:
            return int(result["nonce"]), decode_near_hash(result["block_hash"])
        except (KeyError, TypeError, ValueError) as e:
            raise NearRpcError(f"Malformed access key for {account_id}") from e

    async def change(
        self,
        receiver_id: str,
        method_name: str,
        args: bytes,
        gas: int,
        deposit: int,
    ) -> str:
        """Sign and broadcast a function call without waiting for it.

        Returns:
            Transaction hash, base58
        """
        signer = self._require_signer()
        nonce, block_hash = await self.view_access_key(signer.account_id, signer.public_key)
        transaction = signer.build_transaction(
            receiver_id=receiver_id,
            nonce=nonce + 1,
            block_hash=block_hash,
            method_name=method_name,
            args=args,
            gas=gas,
            deposit=deposit,
        )
        signed, _ = signer.sign_transaction(transaction)
        tx_hash = await self._post("broadcast_tx_async", [base64.b64encode(signed).decode()])
        logger.info(f"Submitted {receiver_id}.{method_name}: {tx_hash}")
        return tx_hash

    async def change_and_wait_for_outcome(
        self,
        receiver_id: str,
        method_name: str,
        args: Any,
        gas: int,
        deposit: int,
    ) -> dict[str, Any]:
        """Send a function call with JSON ``args`` and wait for its final outcome."""
        signer = self._require_signer()
        tx_hash = await self.change(receiver_id, method_name, json.dumps(args).encode(), gas, deposit)
        return await self.wait_for_tx_final_outcome(tx_hash, signer.account_id)

    async def tx_status(self, tx_hash: str, sender_id: str) -> dict[str, Any] | None:
        """Fetch the execution outcome of a transaction.

        Returns:
            The outcome, or ``None`` while the node does not have it yet
        """
        try:
            result = await self._post("tx", {
                "tx_hash": tx_hash,
                "sender_account_id": sender_id,
                "wait_until": "EXECUTED",
            })
        except NearRpcError as e:
            if e.is_handler_error:
                logger.debug(f"Transaction {tx_hash} not available yet: {e.cause}")
                return None
            raise
        if not isinstance(result, dict) or "status" not in result or "receipts_outcome" not in result:
            return None
        return result

    async def wait_for_tx_final_outcome(
        self,
        tx_hash: str,
        sender_id: str,
        timeout: float = FINAL_OUTCOME_TIMEOUT,
        poll_interval: float = FINAL_OUTCOME_POLL_INTERVAL,
    ) -> dict[str, Any]:
        """Poll ``tx`` until the outcome is available.

        Raises:
            FinalizationTimeoutError: If ``timeout`` seconds pass first
        """
        sent_at = self.clock()
        while True:
            outcome = await self.tx_status(tx_hash, sender_id)
            if outcome is not None:
                return outcome
            if self.clock() - sent_at >= timeout:
                raise FinalizationTimeoutError(
                    f"Transaction {tx_hash} has no final outcome after {timeout:.0f}s"
                )
            await self.sleep(poll_interval)

    async def get_light_client_proof(
        self,
        receipt_id: str,
        receiver_id: str,
        light_client_head: bytes,
    ) -> LightClientExecutionProof:
        """Fetch the execution proof of a receipt rooted at ``light_client_head``."""
        result = await self._post("light_client_proof", {
            "type": "receipt",
            "receipt_id": receipt_id,
            "receiver_id": receiver_id,
            "light_client_head": block_hash_to_base58(light_client_head),
        })
        logger.debug(f"Fetched light client proof for receipt {receipt_id}")
        return LightClientExecutionProof.from_rpc(result)

    async def get_block(self, block_reference: dict[str, Any]) -> dict[str, Any]:
        """Fetch a block, e.g. ``{"finality": "final"}`` or ``{"block_id": 123}``."""
        return await self._post("block", block_reference)

    async def get_final_block_timestamp(self) -> int:
        block = await self.get_block({"finality": "final"})
        try:
            return int(block["header"]["timestamp"])
        except (KeyError, TypeError, ValueError) as e:
            raise NearRpcError("Malformed block header") from e

    async def get_last_block_height(self) -> int:
        block = await self.get_block({"finality": "optimistic"})
        try:
            return int(block["header"]["height"])
        except (KeyError, TypeError, ValueError) as e:
            raise NearRpcError("Malformed block header") from e
