"""
Request authentication for the coordination service.

Each request is signed with the copayer's request key over

    lowercase(method) + "|" + url + "|" + canonical_json(body)

The service recomputes the same string from what it received, so the body
must be serialized exactly as the transport sends it: ``canonical_json`` is
the only serializer used for request bodies.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from cosigner.core import wallet_utils
from cosigner.core.credentials import Credentials

logger = logging.getLogger(__name__)

IDENTITY_HEADER = "x-identity"
SIGNATURE_HEADER = "x-signature"


def canonical_json(body: Optional[Dict[str, Any]]) -> str:
    """Compact, key-sorted JSON; ``None`` serializes as ``{}``."""
    return json.dumps(body if body is not None else {}, sort_keys=True, separators=(",", ":"))


def signing_string(method: str, url: str, body: Optional[Dict[str, Any]]) -> str:
    return f"{method.lower()}|{url}|{canonical_json(body)}"


def sign_request(method: str, url: str, body: Optional[Dict[str, Any]], private_key_hex: str) -> str:
    return wallet_utils.sign_message(signing_string(method, url, body), private_key_hex)


def verify_request(
    method: str,
    url: str,
    body: Optional[Dict[str, Any]],
    signature_hex: str,
    public_key_hex: str,
) -> bool:
    return wallet_utils.verify_message(signing_string(method, url, body), signature_hex, public_key_hex)


class RequestAuthenticator:
    """Builds the identity and signature headers for outbound requests."""

    def __init__(self, credentials: Optional[Credentials]) -> None:
        self.credentials = credentials

    def headers(self, method: str, url: str, body: Optional[Dict[str, Any]]) -> Dict[str, str]:
        """
        Return authentication headers for a request.

        Before a request key exists (bootstrap) the request goes out unsigned.
        """
        credentials = self.credentials
        if credentials is None or not credentials.request_priv_key:
            logger.debug(
                "Sending unsigned request",
                extra={"event": "request_signer.unsigned", "method": method.upper(), "url": url},
            )
            return {}

        headers = {
            IDENTITY_HEADER: credentials.copayer_id,
            SIGNATURE_HEADER: sign_request(method, url, body, credentials.request_priv_key),
        }
        return headers
