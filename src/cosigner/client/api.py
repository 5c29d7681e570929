"""
Wallet client

Orchestrates one copayer's side of a shared multisig wallet: credential
lifecycle, wallet creation and joining, addresses and transaction proposals.

The coordination service stores and relays wallet data but is not trusted.
Everything it returns that can be recomputed locally (copayer list, addresses,
proposal signatures) is verified before the client acts on it, and a failed
check raises TrustViolationError instead of returning data.
"""

from __future__ import annotations

import copy
import json
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from cosigner.client.events import EventDispatcher, Listener, WalletEvent, WalletNotification
from cosigner.client.options import (
    AddressQuery,
    AirGappedBundle,
    ExportOptions,
    ImportOptions,
    TxProposalQuery,
    TxProposalRequest,
)
from cosigner.core import verifier, wallet_utils
from cosigner.core.config import ClientConfig
from cosigner.core.credentials import Credentials
from cosigner.core.crypto_utils import derive_public_key_hex, generate_private_key_hex
from cosigner.core.exceptions import (
    DecryptionError,
    IncompleteCredentialsError,
    InvalidPublicKeyRingError,
    MissingCredentialsError,
    NetworkMismatchError,
    ServerError,
    SigningCapabilityError,
    TrustViolationError,
    ValidationError,
    WalletIncompleteError,
)
from cosigner.core.request_signer import RequestAuthenticator
from cosigner.network.http_client import HTTPTransport, Transport

logger = logging.getLogger(__name__)

MAX_COPAYERS = 15
UNDECRYPTABLE_PLACEHOLDER = "<ECANNOTDECRYPT>"
UNKNOWN_ERROR_MESSAGE = "There was an unknown error processing the request"


class ClientState(Enum):
    """Client-observed lifecycle; only ever moves forward."""

    NO_CREDENTIALS = "no_credentials"
    SEEDED = "seeded"
    WALLET_INFO_KNOWN = "wallet_info_known"
    COMPLETE = "complete"


class WalletClient:
    """
    Client for a shared multisig wallet.

    Features:
    - Signed requests (x-identity / x-signature) on every call
    - Local verification of copayers, addresses and proposals
    - Encrypted proposal messages under the wallet's shared key
    - Air-gapped signing from an exported bundle
    - Typed notifications for state transitions
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[Transport] = None,
        credentials: Optional[Credentials] = None,
    ) -> None:
        """
        Initialize wallet client.

        Args:
            config: Client configuration (default ClientConfig())
            transport: Request executor (default aiohttp transport on config.base_url)
            credentials: Previously loaded credentials
        """
        self.config = config or ClientConfig()
        self.transport = transport or HTTPTransport(
            self.config.base_url,
            timeout=self.config.request_timeout,
        )
        self.credentials = credentials
        self.events = EventDispatcher()
        if self.config.verbose:
            logging.getLogger("cosigner").setLevel(logging.DEBUG)

    # ==================== Lifecycle ====================

    async def close(self) -> None:
        close = getattr(self.transport, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "WalletClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def state(self) -> ClientState:
        if self.credentials is None:
            return ClientState.NO_CREDENTIALS
        if self.credentials.is_complete():
            return ClientState.COMPLETE
        if self.credentials.has_wallet_info():
            return ClientState.WALLET_INFO_KNOWN
        return ClientState.SEEDED

    def subscribe(self, listener: Listener, events: Optional[List[WalletEvent]] = None) -> Callable[[], None]:
        return self.events.subscribe(listener, events)

    # ==================== Internals ====================

    def _emit(self, event: WalletEvent, **data: Any) -> None:
        wallet_id = self.credentials.wallet_id if self.credentials else None
        self.events.emit(WalletNotification(event=event, wallet_id=data.pop("wallet_id", wallet_id), data=data))

    def _trust_violation(self, message: str, **details: Any) -> TrustViolationError:
        logger.error(
            "Trust violation: %s",
            message,
            extra={"event": "client.trust_violation", **details},
        )
        self._emit(WalletEvent.TRUST_VIOLATION, reason=message, **details)
        return TrustViolationError(message, details=details)

    def _require_credentials(self) -> Credentials:
        if self.credentials is None:
            raise MissingCredentialsError("No credentials loaded")
        return self.credentials

    def _require_complete(self) -> Credentials:
        credentials = self._require_credentials()
        if not credentials.is_complete():
            raise IncompleteCredentialsError("Wallet is not complete")
        return credentials

    def _require_signing(self) -> Credentials:
        credentials = self._require_credentials()
        if not credentials.can_sign():
            raise SigningCapabilityError("You do not have the required keys to sign transactions")
        return credentials

    @staticmethod
    def _parse_error(status: int, body: Any) -> ServerError:
        """Map a non-200 response body to a ServerError."""
        if isinstance(body, dict):
            if body.get("code"):
                return ServerError(body["code"], body.get("message") or "", status=status)
            message = body.get("error") or body.get("message") or UNKNOWN_ERROR_MESSAGE
            return ServerError(ServerError.GENERIC_CODE, message, status=status)
        if isinstance(body, str) and body:
            return ServerError(ServerError.GENERIC_CODE, body, status=status)
        return ServerError(ServerError.GENERIC_CODE, UNKNOWN_ERROR_MESSAGE, status=status)

    async def _do_request(self, method: str, url: str, body: Optional[Dict[str, Any]] = None) -> Any:
        headers = RequestAuthenticator(self.credentials).headers(method, url, body)
        status, response = await self.transport.execute(method.upper(), url, headers, body)
        if status != 200:
            error = self._parse_error(status, response)
            logger.warning(
                "Request failed: %s %s - %s",
                method.upper(),
                url,
                error,
                extra={"event": "client.request_failed", "status": status, "code": error.code},
            )
            raise error
        return response

    async def _do_get(self, url: str) -> Any:
        return await self._do_request("GET", url)

    async def _do_post(self, url: str, body: Dict[str, Any]) -> Any:
        return await self._do_request("POST", url, body)

    async def _do_delete(self, url: str) -> Any:
        return await self._do_request("DELETE", url)

    async def _do_join_wallet(
        self,
        wallet_id: str,
        wallet_priv_key: str,
        xpub: str,
        copayer_name: str,
    ) -> Dict[str, Any]:
        """Register ``xpub`` as a copayer, proving knowledge of the wallet key."""
        body = {
            "walletId": wallet_id,
            "name": copayer_name,
            "xPubKey": xpub,
            "xPubKeySignature": wallet_utils.sign_message(xpub, wallet_priv_key),
        }
        response = await self._do_post(f"/v1/wallets/{wallet_id}/copayers", body)
        return response.get("wallet") if isinstance(response, dict) else None

    @staticmethod
    def _encrypt(text: Optional[str], key: Optional[str]) -> Optional[str]:
        if not text:
            return None
        return wallet_utils.encrypt_message(text, key)

    @staticmethod
    def _decrypt(ciphertext: Optional[str], key: Optional[str]) -> str:
        if not ciphertext:
            return ""
        try:
            return wallet_utils.decrypt_message(ciphertext, key)
        except DecryptionError:
            logger.debug("Could not decrypt message", extra={"event": "client.decrypt_failed"})
            return UNDECRYPTABLE_PLACEHOLDER

    @staticmethod
    def _strip_local_fields(txps: List[Any]) -> None:
        """Drop fields only the client may set; the server's copy is never trusted."""
        for txp in txps:
            if isinstance(txp, dict):
                txp.pop("encryptedMessage", None)

    def _verify_txps(self, credentials: Credentials, txps: List[Any], message: str) -> None:
        for txp in txps:
            if not verifier.check_tx_proposal(credentials, txp):
                raise self._trust_violation(
                    message,
                    txp_id=txp.get("id") if isinstance(txp, dict) else None,
                )

    def _process_txps(self, txps: Optional[List[Dict[str, Any]]]) -> None:
        """Decrypt proposal messages and action comments in place."""
        key = self.credentials.shared_encrypting_key if self.credentials else None
        for txp in txps or []:
            txp["encryptedMessage"] = txp.get("message")
            txp["message"] = self._decrypt(txp.get("message"), key)
            for action in txp.get("actions") or []:
                action["comment"] = self._decrypt(action.get("comment"), key)

    @staticmethod
    def _txp_id(txp: Dict[str, Any]) -> str:
        txp_id = txp.get("id") if isinstance(txp, dict) else None
        if not txp_id:
            raise ValidationError("Transaction proposal has no id")
        return txp_id

    # ==================== Credentials ====================

    def seed_from_random(self, network: str = "livenet") -> Credentials:
        self.credentials = Credentials.create(network)
        return self.credentials

    def seed_from_extended_private_key(self, xpriv: str) -> Credentials:
        self.credentials = Credentials.from_extended_private_key(xpriv)
        return self.credentials

    def export(self, options: Optional[ExportOptions] = None) -> str:
        options = options or ExportOptions()
        credentials = self._require_credentials()
        return credentials.export(
            compressed=options.compressed,
            password=options.password,
            no_sign=options.no_sign,
        )

    def import_credentials(self, data: str, options: Optional[ImportOptions] = None) -> Credentials:
        """
        Replace the loaded credentials with an exported payload.

        Raises:
            IncorrectPasswordError: Wrong password for an encrypted payload
            CredentialImportError: Malformed payload; current credentials kept
        """
        options = options or ImportOptions()
        credentials = Credentials.import_from(data, compressed=options.compressed, password=options.password)
        self.credentials = credentials
        logger.info(
            "Credentials imported",
            extra={"event": "client.credentials_imported", "copayer_id": credentials.copayer_id[:12]},
        )
        return credentials

    def to_obj(self) -> Dict[str, Any]:
        return self._require_credentials().to_obj()

    def from_obj(self, obj: Dict[str, Any]) -> Credentials:
        try:
            self.credentials = Credentials.from_obj(obj)
        except (ValueError, TypeError) as exc:
            raise ValidationError(f"Invalid credentials object: {exc}") from exc
        return self.credentials

    def is_complete(self) -> bool:
        return self.credentials is not None and self.credentials.is_complete()

    def can_sign(self) -> bool:
        return self.credentials is not None and self.credentials.can_sign()

    # ==================== Wallet lifecycle ====================

    async def create_wallet(
        self,
        wallet_name: str,
        copayer_name: str,
        m: int,
        n: int,
        network: Optional[str] = None,
    ) -> Optional[str]:
        """
        Register a new m-of-n wallet and join it as its first copayer.

        Args:
            wallet_name: Display name of the wallet
            copayer_name: Our display name
            m: Required signatures
            n: Total copayers
            network: livenet or testnet (default config.network)

        Returns:
            Invite secret for the other copayers, or None for a 1-of-1 wallet

        Raises:
            ValidationError: Invalid parameters or credentials already bound
            NetworkMismatchError: Loaded credentials are for another network
            ServerError: The service rejected the wallet or the join
        """
        network = network or self.config.network
        if network not in wallet_utils.NETWORKS:
            raise ValidationError(f"Invalid network: {network}")
        for value in (m, n):
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValidationError(f"Invalid wallet parameters m={m} n={n}")
        if not 1 <= m <= n <= MAX_COPAYERS:
            raise ValidationError(f"Invalid wallet parameters m={m} n={n}")

        if self.credentials is None:
            logger.info("Generating new keys", extra={"event": "client.seed", "network": network})
            self.seed_from_random(network)
        elif self.credentials.network != network:
            raise NetworkMismatchError(
                "Existing keys were created for a different network",
                details={"expected": network, "actual": self.credentials.network},
            )
        elif self.credentials.has_wallet_info():
            raise ValidationError("Credentials are already bound to a wallet")
        credentials = self.credentials

        wallet_priv_key = generate_private_key_hex()
        body = {
            "name": wallet_name,
            "m": m,
            "n": n,
            "pubKey": derive_public_key_hex(wallet_priv_key),
            "network": network,
        }
        response = await self._do_post("/v1/wallets/", body)
        wallet_id = response.get("walletId") if isinstance(response, dict) else None
        if not wallet_id:
            raise ServerError(ServerError.GENERIC_CODE, "Wallet registration returned no wallet id")

        await self._do_join_wallet(wallet_id, wallet_priv_key, credentials.xpub_key, copayer_name)
        credentials.add_wallet_info(wallet_id, wallet_name, m, n, wallet_priv_key, copayer_name)
        credentials.add_public_key_ring([credentials.xpub_key])

        logger.info(
            "Wallet created",
            extra={"event": "client.wallet_created", "wallet_id": wallet_id, "m": m, "n": n, "network": network},
        )
        self._emit(WalletEvent.WALLET_CREATED, m=m, n=n, network=network)
        if credentials.is_complete():
            self._emit(WalletEvent.WALLET_COMPLETED)

        if n > 1:
            return wallet_utils.to_secret(wallet_id, wallet_priv_key, network)
        return None

    async def join_wallet(self, secret: str, copayer_name: str) -> Dict[str, Any]:
        """
        Join an existing wallet using an invite secret.

        Returns:
            The wallet as reported by the service

        Raises:
            InvalidSecretError: Malformed secret
            NetworkMismatchError: Loaded credentials are for another network
            TrustViolationError: The service answered for a different wallet
        """
        secret_data = wallet_utils.from_secret(secret)
        network = secret_data["network"]
        wallet_id = secret_data["walletId"]

        if self.credentials is None:
            logger.info("Generating new keys", extra={"event": "client.seed", "network": network})
            self.seed_from_random(network)
        elif self.credentials.network != network:
            raise NetworkMismatchError(
                "Existing keys were created for a different network",
                details={"expected": network, "actual": self.credentials.network},
            )
        elif self.credentials.wallet_id and self.credentials.wallet_id != wallet_id:
            raise ValidationError("Credentials are already bound to another wallet")
        credentials = self.credentials

        wallet = await self._do_join_wallet(
            wallet_id,
            secret_data["walletPrivKey"],
            credentials.xpub_key,
            copayer_name,
        )
        if not isinstance(wallet, dict) or wallet.get("id") != wallet_id:
            raise self._trust_violation("Joined wallet does not match the invite secret", wallet_id=wallet_id)

        credentials.add_wallet_info(
            wallet_id,
            wallet.get("name"),
            wallet.get("m"),
            wallet.get("n"),
            secret_data["walletPrivKey"],
            copayer_name,
        )
        credentials.add_public_key_ring([credentials.xpub_key])

        logger.info("Joined wallet", extra={"event": "client.wallet_joined", "wallet_id": wallet_id})
        self._emit(WalletEvent.WALLET_JOINED, copayer_name=copayer_name)
        if credentials.is_complete():
            self._emit(WalletEvent.WALLET_COMPLETED)
        return wallet

    async def recreate_wallet(self) -> Dict[str, Any]:
        """
        Re-register the wallet on a service that lost it.

        Joins every ring entry in ring order, stopping at the first failure.
        Local credentials are left as they are.

        Returns:
            The wallet as reported after the last join
        """
        credentials = self._require_complete()
        if not credentials.wallet_priv_key:
            raise ValidationError("Recreating a wallet requires the wallet private key")

        body = {
            "name": credentials.wallet_name or "recovered wallet",
            "m": credentials.m,
            "n": credentials.n,
            "pubKey": credentials.wallet_public_key(),
            "network": credentials.network,
        }
        response = await self._do_post("/v1/wallets/", body)
        wallet_id = response.get("walletId") if isinstance(response, dict) else None
        if not wallet_id:
            raise ServerError(ServerError.GENERIC_CODE, "Wallet registration returned no wallet id")

        logger.info(
            "Recreating wallet",
            extra={"event": "client.wallet_recreating", "wallet_id": wallet_id, "copayers": credentials.n},
        )

        wallet = None
        recovered = 0
        for xpub in credentials.public_key_ring:
            if xpub == credentials.xpub_key:
                name = credentials.copayer_name
            else:
                recovered += 1
                name = f"recovered copayer #{recovered}"
            wallet = await self._do_join_wallet(wallet_id, credentials.wallet_priv_key, xpub, name)

        self._emit(WalletEvent.WALLET_RECREATED, wallet_id=wallet_id)
        return wallet

    async def open_wallet(self) -> bool:
        """
        Complete local state from the service once every copayer has joined.

        Returns:
            True if the credentials were just completed (callers should persist
            them), False if they already were

        Raises:
            WalletIncompleteError: Copayers are still missing
            TrustViolationError: The copayer list fails verification
        """
        credentials = self._require_credentials()
        if credentials.is_complete():
            return False

        response = await self._do_get("/v1/wallets/")
        wallet = response.get("wallet") if isinstance(response, dict) else None
        if not isinstance(wallet, dict):
            raise ServerError(ServerError.GENERIC_CODE, "Wallet status response has no wallet")
        if wallet.get("status") != "complete":
            raise WalletIncompleteError(
                "Wallet is incomplete",
                details={"status": wallet.get("status")},
                recoverable=True,
            )

        if credentials.wallet_id and wallet.get("id") != credentials.wallet_id:
            raise self._trust_violation("Server answered for a different wallet", wallet_id=wallet.get("id"))

        copayers = wallet.get("copayers") or []
        if not isinstance(copayers, list) or not all(isinstance(c, dict) for c in copayers):
            raise self._trust_violation("Wallet copayer list is malformed", wallet_id=wallet.get("id"))
        if credentials.wallet_priv_key:
            if not verifier.check_copayers(credentials, copayers):
                raise self._trust_violation("Copayers in the wallet could not be verified")
        else:
            logger.warning(
                "Could not verify copayers without the wallet private key",
                extra={"event": "client.copayers_unverified", "wallet_id": wallet.get("id")},
            )

        me = next((c for c in copayers if c.get("id") == credentials.copayer_id), None)
        if me is None or me.get("xPubKey") != credentials.xpub_key:
            raise self._trust_violation("Wallet does not list this copayer")

        # Nothing is stored unless the whole ring fits the wallet
        n = credentials.n if credentials.has_wallet_info() else wallet.get("n")
        xpubs = [copayer.get("xPubKey") for copayer in copayers]
        merged = list(credentials.public_key_ring)
        merged.extend(xpub for xpub in xpubs if xpub not in merged)
        if (
            not all(isinstance(xpub, str) and xpub for xpub in xpubs)
            or len(set(xpubs)) != len(xpubs)
            or len(xpubs) != n
            or len(merged) != n
        ):
            raise self._trust_violation(
                "Wallet copayers do not form a valid public key ring",
                wallet_id=wallet.get("id"),
                copayers=len(xpubs),
            )

        if not credentials.has_wallet_info():
            credentials.add_wallet_info(
                wallet.get("id"),
                wallet.get("name"),
                wallet.get("m"),
                wallet.get("n"),
                None,
                me.get("name"),
            )
        credentials.add_public_key_ring(xpubs)

        completed = credentials.is_complete()
        if completed:
            logger.info("Wallet complete", extra={"event": "client.wallet_completed", "wallet_id": credentials.wallet_id})
            self._emit(WalletEvent.WALLET_COMPLETED)
        return completed

    async def get_status(self) -> Dict[str, Any]:
        """
        Fetch wallet status.

        Pending proposals are verified like those from get_tx_proposals and
        come back decrypted.

        Raises:
            TrustViolationError: A pending proposal fails verification
        """
        credentials = self._require_credentials()
        result = await self._do_get("/v1/wallets/")
        wallet = result.get("wallet") if isinstance(result, dict) else None
        if (
            isinstance(wallet, dict)
            and wallet.get("status") == "pending"
            and credentials.wallet_priv_key
            and credentials.wallet_id
        ):
            wallet["secret"] = wallet_utils.to_secret(
                credentials.wallet_id,
                credentials.wallet_priv_key,
                credentials.network,
            )
        if isinstance(result, dict):
            pending = result.get("pendingTxps") or []
            self._strip_local_fields(pending)
            self._verify_txps(credentials, pending, "Server returned a forged pending transaction proposal")
            self._process_txps(pending)
        return result

    # ==================== Addresses ====================

    async def create_address(self) -> Dict[str, Any]:
        credentials = self._require_complete()
        address = await self._do_post("/v1/addresses/", {})
        if not verifier.check_address(credentials, address):
            raise self._trust_violation(
                "Server returned an address that does not derive from the public key ring",
                path=address.get("path") if isinstance(address, dict) else None,
            )
        return address

    async def get_main_addresses(self, query: Optional[AddressQuery] = None) -> List[Dict[str, Any]]:
        """
        List the wallet's addresses.

        Any address that does not re-derive fails the whole call unless
        ``query.do_not_verify`` is set.
        """
        query = query or AddressQuery()
        credentials = self._require_complete()
        addresses = await self._do_get("/v1/addresses/")
        if not query.do_not_verify:
            for address in addresses or []:
                if not verifier.check_address(credentials, address):
                    raise self._trust_violation(
                        "Server returned an address that does not derive from the public key ring",
                        path=address.get("path") if isinstance(address, dict) else None,
                    )
        return addresses

    async def get_balance(self) -> Dict[str, Any]:
        self._require_complete()
        return await self._do_get("/v1/balance/")

    # ==================== Proposals ====================

    async def send_tx_proposal(self, request: TxProposalRequest) -> Dict[str, Any]:
        """
        Propose a spend.

        The message is encrypted under the shared key before it is hashed and
        signed, so the service only ever sees ciphertext.
        """
        credentials = self._require_complete()
        if not request.to_address:
            raise ValidationError("Destination address is required")
        if not isinstance(request.amount, int) or isinstance(request.amount, bool) or request.amount <= 0:
            raise ValidationError(f"Invalid amount: {request.amount!r}")

        message = self._encrypt(request.message, credentials.shared_encrypting_key)
        proposal_hash = wallet_utils.get_proposal_hash(request.to_address, request.amount, message)
        body = {
            "toAddress": request.to_address,
            "amount": request.amount,
            "message": message,
            "proposalSignature": wallet_utils.sign_message(proposal_hash, credentials.request_priv_key),
        }
        txp = await self._do_post("/v1/txproposals/", body)

        logger.info(
            "Transaction proposal sent",
            extra={"event": "client.txp_created", "txp_id": txp.get("id"), "amount": request.amount},
        )
        self._emit(WalletEvent.TX_PROPOSAL_CREATED, txp_id=txp.get("id"))
        return txp

    async def get_tx_proposals(self, query: Optional[TxProposalQuery] = None):
        """
        Fetch pending proposals.

        Every proposal is verified against its creator before any is returned.
        In air-gapped mode the proposals stay encrypted and are bundled with the
        public key ring for an offline signer.

        Returns:
            List of proposals, or an AirGappedBundle when ``for_air_gapped`` is set

        Raises:
            TrustViolationError: Any proposal fails verification
        """
        query = query or TxProposalQuery()
        credentials = self._require_complete()
        txps = await self._do_get("/v1/txproposals/") or []
        self._strip_local_fields(txps)

        if not query.do_not_verify:
            self._verify_txps(credentials, txps, "Server returned a forged transaction proposal")

        if query.for_air_gapped:
            ring = json.dumps(credentials.public_key_ring)
            return AirGappedBundle(
                txps=copy.deepcopy(txps),
                encrypted_pkr=wallet_utils.encrypt_message(ring, credentials.personal_encrypting_key),
                m=credentials.m,
                n=credentials.n,
            )

        self._process_txps(txps)
        return txps

    def _verify_txp(self, credentials: Credentials, txp: Dict[str, Any]) -> None:
        if not verifier.check_tx_proposal(credentials, txp):
            raise self._trust_violation(
                "Transaction proposal could not be verified",
                txp_id=txp.get("id") if isinstance(txp, dict) else None,
            )

    async def get_signatures(self, txp: Dict[str, Any]) -> List[str]:
        self._require_complete()
        credentials = self._require_signing()
        self._verify_txp(credentials, txp)
        return wallet_utils.sign_txp(txp, credentials.copayer_xpriv())

    async def sign_tx_proposal(self, txp: Dict[str, Any], signatures: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Sign a proposal and upload the signatures.

        Args:
            txp: Proposal as returned by get_tx_proposals
            signatures: Signatures produced elsewhere (e.g. air-gapped); when
                omitted the proposal is signed with the local key
        """
        credentials = self._require_complete()
        if signatures is None:
            self._require_signing()
        self._verify_txp(credentials, txp)
        if signatures is None:
            signatures = wallet_utils.sign_txp(txp, credentials.copayer_xpriv())

        txp_id = self._txp_id(txp)
        updated = await self._do_post(f"/v1/txproposals/{txp_id}/signatures/", {"signatures": signatures})
        logger.info("Transaction proposal signed", extra={"event": "client.txp_signed", "txp_id": txp_id})
        self._emit(WalletEvent.TX_PROPOSAL_SIGNED, txp_id=txp_id)
        return updated

    def sign_tx_proposal_from_air_gapped(
        self,
        txp: Dict[str, Any],
        encrypted_pkr: str,
        m: int,
        n: int,
    ) -> List[str]:
        """
        Sign on a device that never talks to the service.

        Args:
            txp: Proposal from an AirGappedBundle
            encrypted_pkr: The bundle's encrypted public key ring
            m: Required signatures
            n: Total copayers

        Raises:
            DecryptionError: The ring was not encrypted for this copayer
            InvalidPublicKeyRingError: The ring does not hold n keys
            TrustViolationError: The proposal fails verification
        """
        credentials = self._require_signing()
        try:
            ring = json.loads(wallet_utils.decrypt_message(encrypted_pkr, credentials.personal_encrypting_key))
        except ValueError as exc:
            raise DecryptionError("Could not decrypt public key ring") from exc
        if not isinstance(ring, list) or len(ring) != n:
            raise InvalidPublicKeyRingError("Invalid public key ring")

        credentials.install_public_key_ring(ring, m, n)
        self._verify_txp(credentials, txp)
        return wallet_utils.sign_txp(txp, credentials.copayer_xpriv())

    async def reject_tx_proposal(self, txp: Dict[str, Any], reason: Optional[str] = None) -> Dict[str, Any]:
        credentials = self._require_complete()
        txp_id = self._txp_id(txp)
        body = {"reason": self._encrypt(reason, credentials.shared_encrypting_key) or ""}
        updated = await self._do_post(f"/v1/txproposals/{txp_id}/rejections/", body)
        self._emit(WalletEvent.TX_PROPOSAL_REJECTED, txp_id=txp_id)
        return updated

    async def broadcast_tx_proposal(self, txp: Dict[str, Any]) -> Dict[str, Any]:
        self._require_complete()
        txp_id = self._txp_id(txp)
        updated = await self._do_post(f"/v1/txproposals/{txp_id}/broadcast/", {})
        logger.info("Transaction proposal broadcast", extra={"event": "client.txp_broadcast", "txp_id": txp_id})
        self._emit(WalletEvent.TX_PROPOSAL_BROADCAST, txp_id=txp_id)
        return updated

    async def remove_tx_proposal(self, txp: Dict[str, Any]) -> None:
        self._require_complete()
        txp_id = self._txp_id(txp)
        await self._do_delete(f"/v1/txproposals/{txp_id}")
        self._emit(WalletEvent.TX_PROPOSAL_REMOVED, txp_id=txp_id)

    async def get_tx_history(self) -> List[Dict[str, Any]]:
        self._require_complete()
        txs = await self._do_get("/v1/txhistory/") or []
        self._process_txps(txs)
        return txs
