"""
Copayer credentials.

A Credentials object holds everything a copayer keeps locally: the master
extended private key (when the device can sign), the identity and request
keys derived from it, the personal and shared encrypting keys, the wallet
binding and the public key ring.

Credentials are a single-writer record: the wallet client mutates them only
after a successful, verified round trip with the coordination service.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import os
from typing import Any, Dict, List, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from cosigner.core import hd_keys, wallet_utils
from cosigner.core.exceptions import (
    CredentialImportError,
    IncorrectPasswordError,
    InvalidPublicKeyRingError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Fixed key-stretching parameters for password-protected exports
EXPORT_KDF_ITERATIONS = 100000
EXPORT_SALT_BYTES = 16
EXPORT_NONCE_BYTES = 12
_MAX_KDF_ITERATIONS = 10_000_000
_ENVELOPE_VERSION = 1
_COMPRESSED_VERSION = 1

# Export names, in the order used by the compressed (positional) form
EXPORT_FIELDS = [
    "network",
    "xPrivKey",
    "xPubKey",
    "requestPrivKey",
    "copayerId",
    "personalEncryptingKey",
    "walletId",
    "walletName",
    "m",
    "n",
    "walletPrivKey",
    "sharedEncryptingKey",
    "copayerName",
    "publicKeyRing",
]

_ATTRIBUTES = {
    "network": "network",
    "xPrivKey": "xpriv_key",
    "xPubKey": "xpub_key",
    "requestPrivKey": "request_priv_key",
    "copayerId": "copayer_id",
    "personalEncryptingKey": "personal_encrypting_key",
    "walletId": "wallet_id",
    "walletName": "wallet_name",
    "m": "m",
    "n": "n",
    "walletPrivKey": "wallet_priv_key",
    "sharedEncryptingKey": "shared_encrypting_key",
    "copayerName": "copayer_name",
    "publicKeyRing": "public_key_ring",
}


def _derive_export_key(password: str, salt: bytes, iterations: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8"))


def encrypt_with_password(data: str, password: str) -> str:
    """Wrap ``data`` in an AES-GCM envelope keyed by PBKDF2(password)."""
    salt = os.urandom(EXPORT_SALT_BYTES)
    nonce = os.urandom(EXPORT_NONCE_BYTES)
    key = _derive_export_key(password, salt, EXPORT_KDF_ITERATIONS)
    ciphertext = AESGCM(key).encrypt(nonce, data.encode("utf-8"), None)
    return json.dumps(
        {
            "v": _ENVELOPE_VERSION,
            "iter": EXPORT_KDF_ITERATIONS,
            "salt": base64.b64encode(salt).decode("utf-8"),
            "nonce": base64.b64encode(nonce).decode("utf-8"),
            "ciphertext": base64.b64encode(ciphertext).decode("utf-8"),
        },
        separators=(",", ":"),
    )


def decrypt_with_password(envelope: str, password: str) -> str:
    """
    Open an envelope created by :func:`encrypt_with_password`.

    Raises:
        CredentialImportError: If the envelope is malformed
        IncorrectPasswordError: If the password does not open it
    """
    try:
        payload = json.loads(envelope)
        if payload["v"] != _ENVELOPE_VERSION:
            raise ValueError(f"unsupported envelope version {payload['v']}")
        iterations = payload["iter"]
        if not isinstance(iterations, int) or not 0 < iterations <= _MAX_KDF_ITERATIONS:
            raise ValueError("invalid iteration count")
        salt = base64.b64decode(payload["salt"], validate=True)
        nonce = base64.b64decode(payload["nonce"], validate=True)
        ciphertext = base64.b64decode(payload["ciphertext"], validate=True)
    except (ValueError, KeyError, TypeError, binascii.Error) as exc:
        raise CredentialImportError("Error importing from source") from exc

    key = _derive_export_key(password, salt, iterations)
    try:
        plaintext = AESGCM(key).decrypt(nonce, ciphertext, None)
    except (InvalidTag, ValueError) as exc:
        raise IncorrectPasswordError("Incorrect password") from exc
    return plaintext.decode("utf-8")


class Credentials:
    """Key material and wallet binding of one copayer."""

    def __init__(self) -> None:
        self.network: Optional[str] = None
        self.xpriv_key: Optional[str] = None
        self.xpub_key: Optional[str] = None
        self.request_priv_key: Optional[str] = None
        self.copayer_id: Optional[str] = None
        self.personal_encrypting_key: Optional[str] = None
        self.wallet_id: Optional[str] = None
        self.wallet_name: Optional[str] = None
        self.m: Optional[int] = None
        self.n: Optional[int] = None
        self.wallet_priv_key: Optional[str] = None
        self.shared_encrypting_key: Optional[str] = None
        self.copayer_name: Optional[str] = None
        self.public_key_ring: List[str] = []
        self._complete = False

    # ===== Construction =====

    @classmethod
    def create(cls, network: str) -> "Credentials":
        if network not in wallet_utils.NETWORKS:
            raise ValidationError(f"Invalid network: {network}")
        credentials = cls()
        credentials.network = network
        credentials.xpriv_key = hd_keys.generate_master_xpriv(network)
        credentials._expand()
        logger.info(
            "Generated new copayer keys",
            extra={"event": "credentials.created", "network": network, "copayer_id": credentials.copayer_id[:12]},
        )
        return credentials

    @classmethod
    def from_extended_private_key(cls, xpriv: str) -> "Credentials":
        try:
            network = hd_keys.network_from_extended_key(xpriv)
            if not xpriv.startswith(("xprv", "tprv")):
                raise ValueError("an extended public key cannot sign")
            credentials = cls()
            credentials.network = network
            credentials.xpriv_key = xpriv
            credentials._expand()
        except ValueError as exc:
            raise ValidationError(f"Invalid extended private key: {exc}") from exc
        return credentials

    def _expand(self) -> None:
        """Recompute every field derivable from the master private key."""
        copayer_xpriv = hd_keys.extended_private_key(self.xpriv_key, hd_keys.COPAYER_PATH)
        self.xpub_key = hd_keys.extended_public_key(self.xpriv_key, hd_keys.COPAYER_PATH)
        self.request_priv_key = hd_keys.private_key_hex(copayer_xpriv, hd_keys.REQUEST_KEY_PATH)
        self.personal_encrypting_key = wallet_utils.private_key_to_aes_key(self.request_priv_key)
        self.copayer_id = wallet_utils.xpub_to_copayer_id(self.xpub_key)

    # ===== State predicates =====

    def can_sign(self) -> bool:
        return bool(self.xpriv_key)

    def has_wallet_info(self) -> bool:
        return bool(self.wallet_id) and self.m is not None and self.n is not None

    def is_complete(self) -> bool:
        if not self._complete and self.has_wallet_info() and len(self.public_key_ring) == self.n:
            self._complete = True
        return self._complete

    def copayer_xpriv(self) -> str:
        """Extended private key at the copayer path, used to sign proposal inputs."""
        if not self.can_sign():
            raise ValidationError("Credentials have no signing key")
        return hd_keys.extended_private_key(self.xpriv_key, hd_keys.COPAYER_PATH)

    def wallet_public_key(self) -> Optional[str]:
        if not self.wallet_priv_key:
            return None
        return wallet_utils.wallet_public_key(self.wallet_priv_key)

    # ===== Mutation =====

    def add_wallet_info(
        self,
        wallet_id: str,
        wallet_name: Optional[str],
        m: int,
        n: int,
        wallet_priv_key: Optional[str],
        copayer_name: Optional[str],
    ) -> None:
        """
        Bind these credentials to a wallet.

        Raises:
            ValidationError: If already bound to a different wallet or m/n are invalid
        """
        if self.wallet_id and self.wallet_id != wallet_id:
            raise ValidationError(
                "Credentials are already bound to another wallet",
                details={"wallet_id": self.wallet_id},
            )
        if not isinstance(m, int) or not isinstance(n, int) or not 1 <= m <= n:
            raise ValidationError(f"Invalid wallet parameters m={m} n={n}")

        self.wallet_id = wallet_id
        self.wallet_name = wallet_name
        self.m = m
        self.n = n
        self.copayer_name = copayer_name
        if wallet_priv_key:
            self.wallet_priv_key = wallet_priv_key
            self.shared_encrypting_key = wallet_utils.private_key_to_aes_key(wallet_priv_key)

        logger.debug(
            "Wallet info stored",
            extra={"event": "credentials.wallet_info", "wallet_id": wallet_id, "m": m, "n": n},
        )

    def add_public_key_ring(self, xpubs: List[str]) -> None:
        """
        Extend the public key ring, ignoring keys already present.

        Raises:
            InvalidPublicKeyRingError: If the ring would hold more than n keys
        """
        ring = list(self.public_key_ring)
        for xpub in xpubs:
            if not isinstance(xpub, str) or not xpub:
                raise InvalidPublicKeyRingError("Public key ring entries must be non-empty strings")
            if xpub not in ring:
                ring.append(xpub)

        if self.n is not None and len(ring) > self.n:
            raise InvalidPublicKeyRingError(
                f"Public key ring would hold {len(ring)} keys for a {self.n}-copayer wallet"
            )
        self.public_key_ring = ring
        self.is_complete()

    def install_public_key_ring(self, public_key_ring: List[str], m: int, n: int) -> None:
        """
        Replace the ring and m/n with those received from an online copayer.

        Used for air-gapped signing; any ring held before is discarded.
        """
        if not isinstance(public_key_ring, list) or len(public_key_ring) != n:
            raise InvalidPublicKeyRingError("Invalid public key ring")
        if len(set(public_key_ring)) != len(public_key_ring):
            raise InvalidPublicKeyRingError("Public key ring contains duplicates")

        self.m = m
        self.n = n
        self.public_key_ring = list(public_key_ring)

    # ===== Serialization =====

    def to_obj(self) -> Dict[str, Any]:
        obj = {name: getattr(self, attribute) for name, attribute in _ATTRIBUTES.items()}
        obj["publicKeyRing"] = list(self.public_key_ring)
        return obj

    @classmethod
    def from_obj(cls, obj: Dict[str, Any]) -> "Credentials":
        """
        Build credentials from :meth:`to_obj` output.

        Raises:
            ValueError: If required fields are missing or have the wrong type
        """
        if not isinstance(obj, dict):
            raise ValueError("Credentials must be a JSON object")

        credentials = cls()
        for name, attribute in _ATTRIBUTES.items():
            setattr(credentials, attribute, obj.get(name))

        if credentials.network not in wallet_utils.NETWORKS:
            raise ValueError(f"Invalid network: {credentials.network!r}")
        ring = obj.get("publicKeyRing") or []
        if not isinstance(ring, list) or not all(isinstance(xpub, str) for xpub in ring):
            raise ValueError("publicKeyRing must be a list of strings")
        credentials.public_key_ring = list(ring)
        for field_name in ("m", "n"):
            value = obj.get(field_name)
            if value is not None and (not isinstance(value, int) or isinstance(value, bool)):
                raise ValueError(f"{field_name} must be an integer")

        if credentials.xpriv_key:
            credentials._expand()
        elif not credentials.xpub_key or not credentials.request_priv_key:
            raise ValueError("Credentials without xPrivKey need xPubKey and requestPrivKey")
        else:
            credentials.copayer_id = wallet_utils.xpub_to_copayer_id(credentials.xpub_key)
            if not credentials.personal_encrypting_key:
                credentials.personal_encrypting_key = wallet_utils.private_key_to_aes_key(
                    credentials.request_priv_key
                )

        if credentials.wallet_priv_key:
            credentials.shared_encrypting_key = wallet_utils.private_key_to_aes_key(credentials.wallet_priv_key)

        credentials.is_complete()
        return credentials

    def export_compressed(self) -> str:
        """Positional JSON array; fields derivable on import are left null."""
        obj = self.to_obj()
        obj["copayerId"] = None
        if self.xpriv_key:
            obj["xPubKey"] = None
            obj["requestPrivKey"] = None
            obj["personalEncryptingKey"] = None
        if self.wallet_priv_key:
            obj["sharedEncryptingKey"] = None
        return json.dumps([_COMPRESSED_VERSION] + [obj[name] for name in EXPORT_FIELDS], separators=(",", ":"))

    @classmethod
    def import_compressed(cls, data: str) -> "Credentials":
        values = json.loads(data)
        if not isinstance(values, list) or len(values) != len(EXPORT_FIELDS) + 1:
            raise ValueError("Compressed credentials have the wrong length")
        if values[0] != _COMPRESSED_VERSION:
            raise ValueError(f"Unsupported compressed version {values[0]!r}")
        return cls.from_obj(dict(zip(EXPORT_FIELDS, values[1:])))

    def export(self, compressed: bool = False, password: Optional[str] = None, no_sign: bool = False) -> str:
        """
        Serialize the credentials.

        Args:
            compressed: Emit the positional form without derivable fields
            password: Encrypt the output with a password
            no_sign: Strip the signing key (read-only / air-gapped copy)
        """
        source = Credentials.from_obj(self.to_obj())
        if no_sign:
            source.xpriv_key = None

        if compressed:
            output = source.export_compressed()
        else:
            output = json.dumps(source.to_obj())

        if password:
            output = encrypt_with_password(output, password)

        logger.info(
            "Credentials exported",
            extra={
                "event": "credentials.exported",
                "compressed": compressed,
                "encrypted": bool(password),
                "no_sign": no_sign,
            },
        )
        return output

    @classmethod
    def import_from(cls, data: str, compressed: bool = False, password: Optional[str] = None) -> "Credentials":
        """
        Inverse of :meth:`export`. Always returns a new object.

        Raises:
            IncorrectPasswordError: If ``password`` does not open the payload
            CredentialImportError: If the payload is malformed
        """
        if not isinstance(data, str) or not data:
            raise CredentialImportError("Error importing from source")

        payload = decrypt_with_password(data, password) if password else data
        try:
            if compressed:
                return cls.import_compressed(payload)
            return cls.from_obj(json.loads(payload))
        except (ValueError, TypeError, KeyError) as exc:
            raise CredentialImportError("Error importing from source") from exc
