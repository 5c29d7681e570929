"""
Verification of data returned by the coordination service.

Every predicate recomputes the expected artifact from local key material and
compares it with what the server sent. They are pure: no network access, no
mutation of the credentials. A False result is a trust violation and is
reported by the caller as such.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from cosigner.core import hd_keys, wallet_utils
from cosigner.core.credentials import Credentials
from cosigner.core.exceptions import ValidationError

logger = logging.getLogger(__name__)


def check_copayers(credentials: Credentials, copayers: List[Dict[str, Any]]) -> bool:
    """
    Check that every listed copayer proved knowledge of the wallet secret.

    Requires the wallet private key; callers without it must treat the
    copayer list as unverifiable instead of calling this.
    """
    wallet_pub_key = credentials.wallet_public_key()
    if wallet_pub_key is None:
        raise ValidationError("Copayers cannot be verified without the wallet private key")

    if not isinstance(copayers, list) or len(copayers) != credentials.n:
        logger.error(
            "Missing public keys in server response",
            extra={"event": "verifier.copayers_count_mismatch", "expected": credentials.n},
        )
        return False

    seen = set()
    for copayer in copayers:
        xpub = copayer.get("xPubKey") if isinstance(copayer, dict) else None
        if not xpub or xpub in seen:
            logger.error(
                "Repeated or missing public key in server response",
                extra={"event": "verifier.copayers_repeated_key"},
            )
            return False
        seen.add(xpub)

        if not wallet_utils.verify_message(xpub, copayer.get("xPubKeySignature"), wallet_pub_key):
            logger.error(
                "Invalid signatures in server response",
                extra={"event": "verifier.copayers_bad_signature", "copayer_id": str(copayer.get("id"))[:12]},
            )
            return False

    if credentials.xpub_key not in seen:
        logger.error(
            "Server response does not contain our public key",
            extra={"event": "verifier.copayers_missing_self"},
        )
        return False
    return True


def check_address(credentials: Credentials, address: Dict[str, Any]) -> bool:
    """Recompute an address from the public key ring and the server's path."""
    if not isinstance(address, dict) or not address.get("path") or not address.get("address"):
        return False
    try:
        local = wallet_utils.derive_address(
            credentials.public_key_ring,
            address["path"],
            credentials.m,
            credentials.network,
        )
    except ValueError as exc:
        logger.warning(
            "Could not derive address for server-supplied path",
            extra={"event": "verifier.address_underivable", "error_type": type(exc).__name__},
        )
        return False

    server_keys = address.get("publicKeys") or []
    matches = local["address"] == address["address"] and sorted(server_keys) == local["publicKeys"]
    if not matches:
        logger.error(
            "Address does not derive from the public key ring",
            extra={"event": "verifier.address_mismatch", "path": address.get("path")},
        )
    return matches


def _creator_xpub(credentials: Credentials, creator_id: Optional[str]) -> Optional[str]:
    for xpub in credentials.public_key_ring:
        if wallet_utils.xpub_to_copayer_id(xpub) == creator_id:
            return xpub
    return None


def check_tx_proposal(credentials: Credentials, txp: Dict[str, Any]) -> bool:
    """
    Check a proposal's signature against its creator's ring entry.

    The proposal hash covers the destination, the amount and the message as
    it travelled on the wire (encrypted).
    """
    if not isinstance(txp, dict):
        return False

    creator_xpub = _creator_xpub(credentials, txp.get("creatorId"))
    if creator_xpub is None:
        logger.error(
            "Proposal creator is not in the public key ring",
            extra={"event": "verifier.txp_unknown_creator", "txp_id": txp.get("id")},
        )
        return False

    try:
        creator_signing_key = hd_keys.public_key_hex(creator_xpub, hd_keys.REQUEST_KEY_PATH)
    except ValueError:
        return False

    wire_message = txp["encryptedMessage"] if "encryptedMessage" in txp else txp.get("message")
    proposal_hash = wallet_utils.get_proposal_hash(txp.get("toAddress"), txp.get("amount"), wire_message)
    valid = wallet_utils.verify_message(proposal_hash, txp.get("proposalSignature"), creator_signing_key)
    if not valid:
        logger.error(
            "Proposal signature does not match its creator",
            extra={"event": "verifier.txp_bad_signature", "txp_id": txp.get("id")},
        )
    return valid
