"""Steps shared by the connectors that finalize NEAR actions on the EVM chain."""

import logging

from ..constants import NOT_CONFIRMED
from ..errors import LightClientLagError, NearRpcError
from ..light_client import NearOnEthClient
from ..near_rpc import NearRpcClient
from ..utils.parsing import parse_near_id

logger = logging.getLogger(__name__)


async def build_near_execution_proof(
    light_client: NearOnEthClient,
    near_rpc: NearRpcClient,
    receipt_id: str,
    receiver_id: str,
) -> tuple[bytes, int]:
    """
    Prove a NEAR receipt against the block the EVM light client last synced.

    Returns:
        Tuple of (Borsh encoded proof, light client height to submit it with)

    Raises:
        LightClientLagError: If the receipt's block is above the synced height
    """
    receipt_id = parse_near_id(receipt_id)
    height, block_hash = await light_client.get_head()
    try:
        proof = await near_rpc.get_light_client_proof(receipt_id, receiver_id, block_hash)
    except NearRpcError as e:
        if e.cause_name == NOT_CONFIRMED:
            raise LightClientLagError(required_height=None, sync_height=height) from e
        raise

    if proof.height > height:
        raise LightClientLagError(required_height=proof.height, sync_height=height)

    logger.debug(f"Retrieved NEAR proof for receipt {receipt_id} at light client height {height}")
    return proof.to_bytes(), height
