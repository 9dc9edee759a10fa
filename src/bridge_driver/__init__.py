"""
NEAR <-> EVM bridge driver.

Client-side orchestration of proof-driven bridge flows: native coin through
the EthCustodian, NEP-141 tokens through the token locker and ERC-20
factory, and the fast bridge.
"""

from .config import BridgeSettings
from .driver import BridgeDriver, setup_logging
from .errors import BridgeError, ErrorKind

__all__ = ["BridgeSettings", "BridgeDriver", "BridgeError", "ErrorKind", "setup_logging"]
__version__ = "0.1.0"
