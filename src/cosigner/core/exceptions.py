"""
Exception hierarchy for the cosigner client.

Three families matter to callers:
- ValidationError: a local precondition failed (missing credentials, bad
  secret, unreadable export, wrong password ...). Nothing was sent.
- ServerError: the coordination service answered with an error.
- TrustViolationError: a server-supplied artifact failed local verification.
  This is evidence of a compromised service and must be surfaced to the user,
  never retried as if it were a network fault.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class CosignerError(Exception):
    """Base exception for all cosigner errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Validation Errors ====================


class ValidationError(CosignerError):
    """Raised when a local precondition or input check fails."""
    pass


class MissingCredentialsError(ValidationError):
    """Raised when an operation needs credentials and none are loaded."""
    pass


class IncompleteCredentialsError(ValidationError):
    """Raised when an operation needs the full public key ring and wallet info."""
    pass


class NetworkMismatchError(ValidationError):
    """Raised when existing keys were created for a different network."""
    pass


class InvalidSecretError(ValidationError):
    """Raised when an invite secret cannot be decoded."""
    pass


class CredentialImportError(ValidationError):
    """Raised when an exported credential payload is malformed."""
    pass


class IncorrectPasswordError(ValidationError):
    """Raised when a password-protected export cannot be opened."""
    pass


class InvalidPublicKeyRingError(ValidationError):
    """Raised when a public key ring has the wrong shape or size."""
    pass


class SigningCapabilityError(ValidationError):
    """Raised when signing is requested from read-only credentials."""
    pass


class WalletIncompleteError(ValidationError):
    """Raised when the server reports that not every copayer has joined yet."""
    pass


# ==================== Server Errors ====================


class ServerError(CosignerError):
    """Raised when the coordination service rejects a request.

    Structured responses keep the service's error code; anything else is
    wrapped with the generic code ``ERROR``.
    """

    GENERIC_CODE = "ERROR"

    def __init__(
        self,
        code: str,
        message: str,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(
            message,
            details={"code": code, "status": status},
            recoverable=False,
        )
        self.code = code
        self.status = status

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


# ==================== Trust Errors ====================


class TrustViolationError(CosignerError):
    """Raised when server data fails local cryptographic verification.

    Examples: a copayer that never knew the wallet secret, an address that does
    not derive from the public key ring, a proposal not signed by its creator.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details=details, recoverable=False)


# ==================== Crypto Errors ====================


class DecryptionError(CosignerError):
    """Raised when ciphertext cannot be decrypted with the given key."""
    pass
