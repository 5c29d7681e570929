"""Shared builders for wallet client tests."""

from typing import List, Optional

from cosigner import ClientConfig, Credentials, WalletClient, WalletNotification


def make_client(service, credentials: Optional[Credentials] = None, network: str = "testnet") -> WalletClient:
    return WalletClient(ClientConfig(network=network), transport=service, credentials=credentials)


async def create_complete_wallet(service, m: int = 2, n: int = 3, network: str = "testnet") -> List[WalletClient]:
    """Create an m-of-n wallet, join every copayer and open it on each client."""
    creator = make_client(service, network=network)
    secret = await creator.create_wallet("family", "alice", m, n, network)
    clients = [creator]
    for index in range(1, n):
        joiner = make_client(service, network=network)
        await joiner.join_wallet(secret, f"copayer-{index}")
        clients.append(joiner)
    for client in clients:
        if not client.is_complete():
            await client.open_wallet()
    return clients


class Recorder:
    """Listener that keeps every notification it receives."""

    def __init__(self) -> None:
        self.notifications: List[WalletNotification] = []

    def __call__(self, notification: WalletNotification) -> None:
        self.notifications.append(notification)

    @property
    def events(self):
        return [notification.event for notification in self.notifications]
