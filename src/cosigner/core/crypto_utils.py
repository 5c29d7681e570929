"""Utility helpers for secp256k1 key management and signatures."""

from __future__ import annotations

import hashlib

from ecdsa import BadSignatureError, SECP256k1, SigningKey, VerifyingKey
from ecdsa import util as ecdsa_util
from ecdsa.der import UnexpectedDER
from ecdsa.errors import MalformedPointError

_CURVE_ORDER = SECP256k1.order


def _load_signing_key(private_hex: str) -> SigningKey:
    return SigningKey.from_string(bytes.fromhex(private_hex), curve=SECP256k1)


def load_public_key_from_hex(public_hex: str) -> VerifyingKey:
    raw = bytes.fromhex(public_hex)
    if len(raw) not in (33, 65):
        raise ValueError("Public key hex must be 33 (compressed) or 65 (uncompressed) bytes.")
    return VerifyingKey.from_string(raw, curve=SECP256k1)


def generate_private_key_hex() -> str:
    return SigningKey.generate(curve=SECP256k1).to_string().hex()


def derive_public_key_hex(private_hex: str) -> str:
    """Return the compressed SEC1 public key for a private key."""
    verifying_key = _load_signing_key(private_hex).get_verifying_key()
    return verifying_key.to_string("compressed").hex()


def _validate_signature_range(r: int, s: int) -> None:
    """
    Ensure signature components fall within the curve order.

    Raises:
        ValueError: If either component is out of range.
    """
    if not (1 <= r < _CURVE_ORDER):
        raise ValueError("Signature r component out of range.")
    if not (1 <= s < _CURVE_ORDER):
        raise ValueError("Signature s component out of range.")


def is_canonical_signature(r: int, s: int) -> bool:
    """
    Check whether signature components are already canonical.

    Args:
        r: Signature r component
        s: Signature s component

    Returns:
        True if components fall within range and have low-S form.
    """
    try:
        _validate_signature_range(r, s)
    except ValueError:
        return False
    return s <= _CURVE_ORDER // 2


def sign_message_hex(private_hex: str, message: bytes) -> str:
    """
    Sign ``sha256(message)`` and return a DER signature as hex.

    Nonces follow RFC 6979, so the same key and message always produce the
    same signature. S is normalized to the low half of the curve order.
    """
    signing_key = _load_signing_key(private_hex)
    der_signature = signing_key.sign_deterministic(
        message,
        hashfunc=hashlib.sha256,
        sigencode=ecdsa_util.sigencode_der_canonize,
    )
    return der_signature.hex()


def verify_signature_hex(public_hex: str, message: bytes, signature_hex: str) -> bool:
    try:
        public_key = load_public_key_from_hex(public_hex)
        der_signature = bytes.fromhex(signature_hex)
        r, s = ecdsa_util.sigdecode_der(der_signature, _CURVE_ORDER)
        if not is_canonical_signature(r, s):
            return False
        return public_key.verify(
            der_signature,
            message,
            hashfunc=hashlib.sha256,
            sigdecode=ecdsa_util.sigdecode_der,
        )
    except (BadSignatureError, UnexpectedDER, MalformedPointError, ValueError, TypeError):
        return False
