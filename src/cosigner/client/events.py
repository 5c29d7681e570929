"""
Typed wallet notifications.

The client reports state transitions to listeners registered on its
EventDispatcher. Listeners run synchronously, in registration order, after the
transition has been applied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

logger = logging.getLogger(__name__)


class WalletEvent(Enum):
    """Notifications emitted by WalletClient."""

    WALLET_CREATED = "wallet_created"
    WALLET_JOINED = "wallet_joined"
    WALLET_COMPLETED = "wallet_completed"
    WALLET_RECREATED = "wallet_recreated"
    TX_PROPOSAL_CREATED = "tx_proposal_created"
    TX_PROPOSAL_SIGNED = "tx_proposal_signed"
    TX_PROPOSAL_REJECTED = "tx_proposal_rejected"
    TX_PROPOSAL_BROADCAST = "tx_proposal_broadcast"
    TX_PROPOSAL_REMOVED = "tx_proposal_removed"
    TRUST_VIOLATION = "trust_violation"


@dataclass(frozen=True)
class WalletNotification:
    event: WalletEvent
    wallet_id: Optional[str]
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Listener = Callable[[WalletNotification], None]


class EventDispatcher:
    """Explicit observer registry owned by one client."""

    def __init__(self) -> None:
        self._listeners: List[Tuple[Listener, Optional[FrozenSet[WalletEvent]]]] = []

    def subscribe(self, listener: Listener, events: Optional[List[WalletEvent]] = None) -> Callable[[], None]:
        """
        Register a listener.

        Args:
            listener: Called with each matching WalletNotification
            events: Only deliver these events (default: all)

        Returns:
            A function that removes the registration
        """
        entry = (listener, frozenset(events) if events else None)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def emit(self, notification: WalletNotification) -> None:
        for listener, events in list(self._listeners):
            if events is not None and notification.event not in events:
                continue
            try:
                listener(notification)
            except Exception as e:
                logger.error(
                    "Wallet listener failed: %s - %s",
                    type(e).__name__,
                    str(e),
                    exc_info=True,
                    extra={
                        "event": "events.listener_error",
                        "notification": notification.event.value,
                        "error_type": type(e).__name__,
                    },
                )
