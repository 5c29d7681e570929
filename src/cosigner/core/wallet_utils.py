"""
Wallet cryptography shared by every copayer.

Message signing, symmetric encryption of proposal content, proposal hashing,
invite secrets, multisig address derivation and per-input proposal signing.
Every function is deterministic given its inputs, which is what the verifier
relies on to recompute server-supplied artifacts.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
from typing import Any

import base58
from bip_utils.utils.crypto import Hash160
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from cosigner.core import hd_keys
from cosigner.core.crypto_utils import derive_public_key_hex, sign_message_hex, verify_signature_hex
from cosigner.core.exceptions import DecryptionError, InvalidSecretError

NETWORKS = ("livenet", "testnet")

_SECRET_NETWORK_BYTES = {"livenet": 0x4C, "testnet": 0x54}
_SECRET_NETWORKS = {value: key for key, value in _SECRET_NETWORK_BYTES.items()}
_PRIVATE_KEY_BYTES = 32

_P2SH_VERSION = {"livenet": b"\x05", "testnet": b"\xc4"}
_OP_CHECKMULTISIG = 0xAE
_NONCE_BYTES = 12


# ==================== Signing ====================


def sign_message(text: str, private_key_hex: str) -> str:
    return sign_message_hex(private_key_hex, text.encode("utf-8"))


def verify_message(text: str, signature_hex: str, public_key_hex: str) -> bool:
    if not signature_hex or not public_key_hex:
        return False
    return verify_signature_hex(public_key_hex, text.encode("utf-8"), signature_hex)


# ==================== Encryption ====================


def private_key_to_aes_key(private_key_hex: str) -> str:
    """Derive a 128-bit AES key (Base64) from a private key."""
    digest = hashlib.sha256(bytes.fromhex(private_key_hex)).digest()
    return base64.b64encode(digest[:16]).decode("ascii")


def encrypt_message(plaintext: str, encrypting_key: str) -> str:
    """
    Encrypt ``plaintext`` with AES-GCM.

    The nonce is an HMAC of the plaintext under the key, so equal messages
    under one key encrypt (and therefore sign) identically.

    Returns:
        Compact JSON ``{"iv": ..., "ct": ...}`` with Base64 fields
    """
    key = base64.b64decode(encrypting_key)
    data = plaintext.encode("utf-8")
    nonce = hmac.new(key, data, hashlib.sha256).digest()[:_NONCE_BYTES]
    ciphertext = AESGCM(key).encrypt(nonce, data, None)
    return json.dumps(
        {
            "iv": base64.b64encode(nonce).decode("ascii"),
            "ct": base64.b64encode(ciphertext).decode("ascii"),
        },
        separators=(",", ":"),
        sort_keys=True,
    )


def decrypt_message(ciphertext: str, encrypting_key: str) -> str:
    """
    Decrypt a payload produced by :func:`encrypt_message`.

    Raises:
        DecryptionError: On malformed payload, wrong key or tampered ciphertext
    """
    try:
        payload = json.loads(ciphertext)
        nonce = base64.b64decode(payload["iv"], validate=True)
        data = base64.b64decode(payload["ct"], validate=True)
        key = base64.b64decode(encrypting_key, validate=True)
        plaintext = AESGCM(key).decrypt(nonce, data, None)
        return plaintext.decode("utf-8")
    except (InvalidTag, ValueError, KeyError, TypeError, binascii.Error) as exc:
        raise DecryptionError(f"Could not decrypt message: {type(exc).__name__}") from exc


# ==================== Identity ====================


def xpub_to_copayer_id(xpub: str) -> str:
    return hashlib.sha256(xpub.encode("utf-8")).hexdigest()


def request_public_key(xpub: str) -> str:
    """Public half of a copayer's request key, derived from its ring entry."""
    return hd_keys.public_key_hex(xpub, hd_keys.REQUEST_KEY_PATH)


def get_proposal_hash(to_address: str, amount: int, message: str | None) -> str:
    """Digest binding a proposal's destination, amount and (encrypted) message."""
    canonical = f"{to_address}|{amount}|{message or ''}"
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


# ==================== Invite secrets ====================


def to_secret(wallet_id: str, wallet_private_key_hex: str, network: str) -> str:
    """Encode ``(walletId, walletPrivKey, network)`` as a Base58Check token."""
    if network not in _SECRET_NETWORK_BYTES:
        raise ValueError(f"Unknown network: {network}")
    private_key = bytes.fromhex(wallet_private_key_hex)
    if len(private_key) != _PRIVATE_KEY_BYTES:
        raise ValueError("Wallet private key must be 32 bytes")
    payload = bytes([_SECRET_NETWORK_BYTES[network]]) + private_key + wallet_id.encode("utf-8")
    return base58.b58encode_check(payload).decode("ascii")


def from_secret(secret: str) -> dict[str, str]:
    """
    Decode an invite token.

    Returns:
        ``{"walletId", "walletPrivKey", "network"}``

    Raises:
        InvalidSecretError: If the token is malformed
    """
    if not isinstance(secret, str) or not secret:
        raise InvalidSecretError("Invalid secret")
    try:
        payload = base58.b58decode_check(secret)
    except ValueError as exc:
        raise InvalidSecretError("Invalid secret") from exc

    if len(payload) <= 1 + _PRIVATE_KEY_BYTES:
        raise InvalidSecretError("Invalid secret")
    network = _SECRET_NETWORKS.get(payload[0])
    if network is None:
        raise InvalidSecretError("Invalid secret network")
    try:
        wallet_id = payload[1 + _PRIVATE_KEY_BYTES:].decode("utf-8")
    except UnicodeDecodeError as exc:
        raise InvalidSecretError("Invalid secret wallet id") from exc

    return {
        "walletId": wallet_id,
        "walletPrivKey": payload[1:1 + _PRIVATE_KEY_BYTES].hex(),
        "network": network,
    }


# ==================== Addresses ====================


def _push_data(data: bytes) -> bytes:
    if len(data) >= 0x4C:
        raise ValueError("Push data too long for a direct push")
    return bytes([len(data)]) + data


def _small_int_opcode(value: int) -> int:
    if not 1 <= value <= 16:
        raise ValueError("Multisig parameters must be between 1 and 16")
    return 0x50 + value


def _hash160(data: bytes) -> bytes:
    return Hash160.QuickDigest(data)


def derive_address(public_key_ring: list[str], path: str, m: int, network: str) -> dict[str, Any]:
    """
    Derive the m-of-n P2SH address for ``path``.

    Each ring entry is derived at ``path`` (non-hardened), the resulting
    compressed keys are sorted, and the address is the hash of the standard
    multisig redeem script.

    Returns:
        ``{"address", "path", "publicKeys"}``
    """
    if network not in _P2SH_VERSION:
        raise ValueError(f"Unknown network: {network}")
    public_keys = sorted(hd_keys.public_key_hex(xpub, path) for xpub in public_key_ring)

    script = bytearray([_small_int_opcode(m)])
    for public_key in public_keys:
        script += _push_data(bytes.fromhex(public_key))
    script += bytes([_small_int_opcode(len(public_keys)), _OP_CHECKMULTISIG])

    payload = _P2SH_VERSION[network] + _hash160(bytes(script))
    return {
        "address": base58.b58encode_check(payload).decode("ascii"),
        "path": path,
        "publicKeys": public_keys,
    }


# ==================== Proposal signing ====================


def get_input_sighash(txp: dict[str, Any], index: int) -> str:
    """
    Canonical per-input signing digest.

    Binds the proposal's destination, amount, change address and the full
    input set so a signature cannot be moved to another input or proposal.
    """
    inputs = [
        {
            "txid": item.get("txid"),
            "vout": item.get("vout"),
            "satoshis": item.get("satoshis"),
            "path": item.get("path"),
        }
        for item in txp.get("inputs") or []
    ]
    envelope = {
        "toAddress": txp.get("toAddress"),
        "amount": txp.get("amount"),
        "changeAddress": txp.get("changeAddress"),
        "inputs": inputs,
        "index": index,
    }
    serialized = json.dumps(envelope, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def sign_txp(txp: dict[str, Any], copayer_xpriv: str) -> list[str]:
    """
    Sign every input of a proposal.

    Args:
        txp: Proposal with ``inputs[].path`` relative to the copayer key
        copayer_xpriv: Extended private key at the copayer path (m/45')

    Returns:
        One DER hex signature per input, in input order
    """
    signatures = []
    for index, item in enumerate(txp.get("inputs") or []):
        private_key = hd_keys.private_key_hex(copayer_xpriv, item.get("path") or "m/0/0")
        signatures.append(sign_message(get_input_sighash(txp, index), private_key))
    return signatures


def verify_txp_signatures(txp: dict[str, Any], xpub: str, signatures: list[str]) -> bool:
    """Check ``signatures`` against the input keys derived from ``xpub``."""
    inputs = txp.get("inputs") or []
    if len(signatures) != len(inputs):
        return False
    for index, item in enumerate(inputs):
        public_key = hd_keys.public_key_hex(xpub, item.get("path") or "m/0/0")
        if not verify_message(get_input_sighash(txp, index), signatures[index], public_key):
            return False
    return True


def wallet_public_key(wallet_private_key_hex: str) -> str:
    return derive_public_key_hex(wallet_private_key_hex)
