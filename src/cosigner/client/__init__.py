"""Wallet protocol orchestration."""

from .api import ClientState, WalletClient
from .events import EventDispatcher, WalletEvent, WalletNotification

__all__ = [
    "WalletClient",
    "ClientState",
    "EventDispatcher",
    "WalletEvent",
    "WalletNotification",
]
