"""
Tests for verification of server-supplied data.

Every check must reject a single flipped character in the artifact it
verifies.
"""

import pytest

from cosigner.core import verifier, wallet_utils
from cosigner.core.credentials import Credentials
from cosigner.core.crypto_utils import generate_private_key_hex
from cosigner.core.exceptions import ValidationError


def _flip(text, index=-3):
    """Change one hex character of ``text``."""
    index = index % len(text)
    replacement = "0" if text[index] != "0" else "1"
    return text[:index] + replacement + text[index + 1:]


@pytest.fixture
def wallet():
    wallet_key = generate_private_key_hex()
    members = [Credentials.create("testnet") for _ in range(3)]
    ring = [member.xpub_key for member in members]
    for member in members:
        member.add_wallet_info("wallet-1", "family", 2, 3, wallet_key, "member")
        member.add_public_key_ring(ring)
    copayers = [
        {
            "id": member.copayer_id,
            "name": f"copayer-{index}",
            "xPubKey": member.xpub_key,
            "xPubKeySignature": wallet_utils.sign_message(member.xpub_key, wallet_key),
        }
        for index, member in enumerate(members)
    ]
    return members, copayers, wallet_key


def _signed_txp(creator, to_address="2N8hwP1WmJrFF5QWABn38y63uYLhnJYJYTF", amount=12000, message="rent"):
    encrypted = wallet_utils.encrypt_message(message, creator.shared_encrypting_key) if message else None
    proposal_hash = wallet_utils.get_proposal_hash(to_address, amount, encrypted)
    return {
        "id": "txp-1",
        "creatorId": creator.copayer_id,
        "toAddress": to_address,
        "amount": amount,
        "message": encrypted,
        "proposalSignature": wallet_utils.sign_message(proposal_hash, creator.request_priv_key),
    }


class TestCheckCopayers:
    def test_valid_copayers(self, wallet):
        members, copayers, _ = wallet
        assert verifier.check_copayers(members[0], copayers)

    def test_missing_copayer(self, wallet):
        members, copayers, _ = wallet
        assert not verifier.check_copayers(members[0], copayers[:2])

    def test_repeated_copayer(self, wallet):
        members, copayers, _ = wallet
        assert not verifier.check_copayers(members[0], [copayers[0], copayers[1], copayers[1]])

    def test_flipped_signature(self, wallet):
        members, copayers, _ = wallet
        copayers[2]["xPubKeySignature"] = _flip(copayers[2]["xPubKeySignature"])
        assert not verifier.check_copayers(members[0], copayers)

    def test_copayer_without_wallet_secret(self, wallet, foreign_xpub):
        members, copayers, _ = wallet
        copayers[1] = {
            "id": wallet_utils.xpub_to_copayer_id(foreign_xpub),
            "xPubKey": foreign_xpub,
            "xPubKeySignature": wallet_utils.sign_message(foreign_xpub, generate_private_key_hex()),
        }
        assert not verifier.check_copayers(members[0], copayers)

    def test_own_key_missing(self, wallet, foreign_xpub):
        members, copayers, wallet_key = wallet
        copayers[0] = {
            "id": wallet_utils.xpub_to_copayer_id(foreign_xpub),
            "xPubKey": foreign_xpub,
            "xPubKeySignature": wallet_utils.sign_message(foreign_xpub, wallet_key),
        }
        assert not verifier.check_copayers(members[0], copayers)

    def test_requires_wallet_key(self, wallet):
        members, copayers, _ = wallet
        members[0].wallet_priv_key = None
        with pytest.raises(ValidationError):
            verifier.check_copayers(members[0], copayers)


class TestCheckAddress:
    def test_valid_address(self, wallet):
        members, _, _ = wallet
        address = wallet_utils.derive_address(members[1].public_key_ring, "m/0/4", 2, "testnet")
        assert verifier.check_address(members[0], address)

    def test_flipped_address(self, wallet):
        members, _, _ = wallet
        address = wallet_utils.derive_address(members[0].public_key_ring, "m/0/0", 2, "testnet")
        address["address"] = _flip(address["address"], 5)
        assert not verifier.check_address(members[0], address)

    def test_address_from_foreign_ring(self, wallet, foreign_xpub):
        members, _, _ = wallet
        ring = members[0].public_key_ring[:2] + [foreign_xpub]
        assert not verifier.check_address(members[0], wallet_utils.derive_address(ring, "m/0/0", 2, "testnet"))

    def test_substituted_public_key(self, wallet, foreign_xpub):
        members, _, _ = wallet
        address = wallet_utils.derive_address(members[0].public_key_ring, "m/0/0", 2, "testnet")
        address["publicKeys"][0] = wallet_utils.request_public_key(foreign_xpub)
        assert not verifier.check_address(members[0], address)

    @pytest.mark.parametrize(
        "address",
        [None, {}, {"address": "2N1"}, {"address": "2N1", "path": "m/0'/1", "publicKeys": []}],
    )
    def test_malformed_address(self, wallet, address):
        members, _, _ = wallet
        assert not verifier.check_address(members[0], address)


class TestCheckTxProposal:
    def test_valid_proposal(self, wallet):
        members, _, _ = wallet
        assert verifier.check_tx_proposal(members[0], _signed_txp(members[1]))

    def test_proposal_without_message(self, wallet):
        members, _, _ = wallet
        assert verifier.check_tx_proposal(members[2], _signed_txp(members[1], message=None))

    @pytest.mark.parametrize(
        "field, value",
        [
            ("amount", 12001),
            ("toAddress", "2N8hwP1WmJrFF5QWABn38y63uYLhnJYJYTG"),
            ("message", None),
        ],
    )
    def test_tampered_field(self, wallet, field, value):
        members, _, _ = wallet
        txp = _signed_txp(members[1])
        txp[field] = value
        assert not verifier.check_tx_proposal(members[0], txp)

    def test_flipped_signature(self, wallet):
        members, _, _ = wallet
        txp = _signed_txp(members[1])
        txp["proposalSignature"] = _flip(txp["proposalSignature"])
        assert not verifier.check_tx_proposal(members[0], txp)

    def test_creator_swapped(self, wallet):
        members, _, _ = wallet
        txp = _signed_txp(members[1])
        txp["creatorId"] = members[2].copayer_id
        assert not verifier.check_tx_proposal(members[0], txp)

    def test_unknown_creator(self, wallet, foreign_xpub):
        members, _, _ = wallet
        txp = _signed_txp(members[1])
        txp["creatorId"] = wallet_utils.xpub_to_copayer_id(foreign_xpub)
        assert not verifier.check_tx_proposal(members[0], txp)

    def test_client_processed_proposal_uses_wire_message(self, wallet):
        members, _, _ = wallet
        txp = _signed_txp(members[1])
        txp["encryptedMessage"] = txp["message"]
        txp["message"] = "rent"
        assert verifier.check_tx_proposal(members[0], txp)
