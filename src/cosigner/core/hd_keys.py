"""
HD key helpers - BIP-32 derivation for copayer keys

Path layout used by the wallet:
- m/45'            copayer extended key (its xpub is the public key ring entry)
- m/45'/1/0        request key, signs API calls and proposals
- m/45'/<path>     input keys, addressed by the server-supplied input path

Every non-hardened step below m/45' can be derived from the xpub alone, which
is what lets copayers check each other's proposal signatures and addresses.
"""

import logging
import secrets
from typing import List, Union

from bip_utils import Base58ChecksumError, Bip32KeyError, Bip32KeyIndex, Bip32KeyNetVersions, Bip32Slip10Secp256k1

logger = logging.getLogger(__name__)

COPAYER_PATH = "m/45'"
REQUEST_KEY_PATH = "m/1/0"

_MAIN_NET_VERSIONS = Bip32KeyNetVersions(bytes.fromhex("0488b21e"), bytes.fromhex("0488ade4"))
_TEST_NET_VERSIONS = Bip32KeyNetVersions(bytes.fromhex("043587cf"), bytes.fromhex("04358394"))

_PREFIX_NETWORKS = {
    "xprv": "livenet",
    "xpub": "livenet",
    "tprv": "testnet",
    "tpub": "testnet",
}


def _net_versions(network: str) -> Bip32KeyNetVersions:
    if network == "livenet":
        return _MAIN_NET_VERSIONS
    if network == "testnet":
        return _TEST_NET_VERSIONS
    raise ValueError(f"Unknown network: {network}")


def network_from_extended_key(extended_key: str) -> str:
    """Return ``livenet`` or ``testnet`` from the key's Base58 prefix."""
    network = _PREFIX_NETWORKS.get(extended_key[:4]) if extended_key else None
    if network is None:
        raise ValueError("Unrecognized extended key prefix")
    return network


def parse_path(path: str) -> List[Union[int, Bip32KeyIndex]]:
    """
    Parse ``m/45'/1/0`` (or ``1/0``) into child indexes.

    Raises:
        ValueError: If an element is not a non-negative integer
    """
    elements = [element for element in path.strip().split("/") if element]
    if elements and elements[0] == "m":
        elements = elements[1:]

    indexes: List[Union[int, Bip32KeyIndex]] = []
    for element in elements:
        hardened = element.endswith("'") or element.endswith("h")
        raw = element[:-1] if hardened else element
        if not raw.isdigit():
            raise ValueError(f"Invalid derivation path element: {element!r}")
        index = int(raw)
        indexes.append(Bip32KeyIndex.HardenIndex(index) if hardened else index)
    return indexes


def load_extended_key(extended_key: str) -> Bip32Slip10Secp256k1:
    """
    Load an xprv/xpub/tprv/tpub string.

    Raises:
        ValueError: If the key cannot be parsed
    """
    network = network_from_extended_key(extended_key)
    try:
        return Bip32Slip10Secp256k1.FromExtendedKey(extended_key, _net_versions(network))
    except (Bip32KeyError, Base58ChecksumError, ValueError) as exc:
        raise ValueError(f"Invalid extended key: {exc}") from exc


def derive(extended_key: str, path: str) -> Bip32Slip10Secp256k1:
    node = load_extended_key(extended_key)
    try:
        for index in parse_path(path):
            node = node.ChildKey(index)
    except Bip32KeyError as exc:
        raise ValueError(f"Unable to derive {path}: {exc}") from exc
    return node


def generate_master_xpriv(network: str) -> str:
    """Generate a new extended master private key from 256 bits of entropy."""
    seed = secrets.token_bytes(32)
    master = Bip32Slip10Secp256k1.FromSeed(seed, _net_versions(network))
    logger.debug("Generated master key", extra={"event": "hd_keys.master_generated", "network": network})
    return master.PrivateKey().ToExtended()


def extended_public_key(extended_key: str, path: str) -> str:
    return derive(extended_key, path).PublicKey().ToExtended()


def extended_private_key(extended_key: str, path: str) -> str:
    return derive(extended_key, path).PrivateKey().ToExtended()


def public_key_hex(extended_key: str, path: str) -> str:
    """Compressed public key hex at ``path`` below ``extended_key``."""
    return derive(extended_key, path).PublicKey().RawCompressed().ToHex()


def private_key_hex(extended_key: str, path: str) -> str:
    return derive(extended_key, path).PrivateKey().Raw().ToHex()
