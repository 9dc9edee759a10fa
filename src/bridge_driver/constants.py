"""Protocol constants shared by the connectors."""

from web3 import Web3

TGAS = 10**12

# NEAR gas budgets
DEFAULT_GAS = 300 * TGAS
FT_TRANSFER_CALL_GAS = 200 * TGAS
LP_UNLOCK_GAS = 120 * TGAS
FAST_BRIDGE_WITHDRAW_GAS = 20 * TGAS

# NEAR attached deposits, yoctoNEAR
ONE_YOCTO = 1
NO_DEPOSIT = 0
LOG_METADATA_DEPOSIT = 200 * 10**21
LOCKER_WITHDRAW_DEPOSIT = 60 * 10**21
SIGN_TRANSFER_DEPOSIT = 500 * 10**21

# Position of the pending transfers mapping in the EVM fast bridge storage
# layout. Must follow the deployed contract build.
SLOT_INDEX = 302

TRANSFER_TOKENS_SIGNATURE = "TransferTokens(uint256,address,address,address,uint256,string,bytes32)"
TRANSFER_TOKENS_TOPIC = bytes(Web3.keccak(text=TRANSFER_TOKENS_SIGNATURE))

SIGN_TRANSFER_EVENT = "SignTransferEvent"

# Final outcome polling
FINAL_OUTCOME_TIMEOUT = 500.0
FINAL_OUTCOME_POLL_INTERVAL = 2.0

DEFAULT_REQUEST_TIMEOUT = 30.0

# light_client_proof error cause when the receipt is not final under the given head
NOT_CONFIRMED = "NOT_CONFIRMED"
