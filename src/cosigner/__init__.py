"""
Cosigner - client trust layer for shared-custody (m-of-n) wallets

Copayers coordinate through a remote service that stores wallet metadata,
invitations and spend proposals. The service is never trusted: every copayer
proof, address and proposal it returns is re-derived locally and rejected on
mismatch.

Main Components:
- Credentials: identity, request and wallet-level keys plus the public key ring
- Verifier: pure checks of server-supplied artifacts
- WalletClient: asynchronous wallet and proposal lifecycle

Example:
    >>> from cosigner import WalletClient
    >>> async with WalletClient() as client:
    ...     secret = await client.create_wallet("family", "alice", 2, 3, "testnet")
"""

from .client.api import ClientState, WalletClient
from .client.events import WalletEvent, WalletNotification
from .client.options import (
    AddressQuery,
    AirGappedBundle,
    ExportOptions,
    ImportOptions,
    TxProposalQuery,
    TxProposalRequest,
)
from .core.config import ClientConfig
from .core.credentials import Credentials
from .core.exceptions import (
    CosignerError,
    DecryptionError,
    ServerError,
    TrustViolationError,
    ValidationError,
)

__version__ = "0.1.0"
__author__ = "Cosigner Development Team"

__all__ = [
    "WalletClient",
    "ClientState",
    "ClientConfig",
    "Credentials",
    "WalletEvent",
    "WalletNotification",
    "AddressQuery",
    "AirGappedBundle",
    "ExportOptions",
    "ImportOptions",
    "TxProposalQuery",
    "TxProposalRequest",
    "CosignerError",
    "ValidationError",
    "ServerError",
    "TrustViolationError",
    "DecryptionError",
]
