"""
Tests for wallet cryptography and HD derivation.

Tests cover:
- Message signing and shared-key encryption
- Invite secret encoding and rejection of malformed secrets
- Proposal hashing
- Multisig address derivation
- Per-input proposal signatures
"""

import base64

import base58
import pytest

from cosigner.core import hd_keys, wallet_utils
from cosigner.core.credentials import Credentials
from cosigner.core.crypto_utils import derive_public_key_hex, generate_private_key_hex
from cosigner.core.exceptions import DecryptionError, InvalidSecretError


@pytest.fixture
def wallet_key():
    return generate_private_key_hex()


@pytest.fixture
def ring():
    return [Credentials.create("testnet").xpub_key for _ in range(3)]


class TestHDKeys:
    def test_network_from_prefix(self, ring):
        assert hd_keys.network_from_extended_key(ring[0]) == "testnet"
        assert hd_keys.network_from_extended_key(hd_keys.generate_master_xpriv("livenet")) == "livenet"

    def test_unknown_prefix_rejected(self):
        with pytest.raises(ValueError):
            hd_keys.network_from_extended_key("ypub123")

    def test_parse_path(self):
        indexes = hd_keys.parse_path("m/1/0")
        assert indexes == [1, 0]
        assert len(hd_keys.parse_path("m/45'")) == 1

    def test_parse_path_rejects_garbage(self):
        with pytest.raises(ValueError):
            hd_keys.parse_path("m/one/0")

    def test_public_derivation_matches_private(self):
        xpriv = hd_keys.generate_master_xpriv("testnet")
        copayer_xpriv = hd_keys.extended_private_key(xpriv, hd_keys.COPAYER_PATH)
        xpub = hd_keys.extended_public_key(xpriv, hd_keys.COPAYER_PATH)
        private_key = hd_keys.private_key_hex(copayer_xpriv, "m/0/7")
        assert derive_public_key_hex(private_key) == hd_keys.public_key_hex(xpub, "m/0/7")

    def test_hardened_derivation_from_xpub_fails(self, ring):
        with pytest.raises(ValueError):
            hd_keys.public_key_hex(ring[0], "m/0'")


class TestMessages:
    def test_sign_and_verify(self, wallet_key):
        signature = wallet_utils.sign_message("hello", wallet_key)
        assert wallet_utils.verify_message("hello", signature, derive_public_key_hex(wallet_key))

    def test_verify_with_missing_inputs(self, wallet_key):
        public_key = derive_public_key_hex(wallet_key)
        assert not wallet_utils.verify_message("hello", "", public_key)
        assert not wallet_utils.verify_message("hello", None, public_key)

    def test_encrypt_decrypt(self, wallet_key):
        key = wallet_utils.private_key_to_aes_key(wallet_key)
        ciphertext = wallet_utils.encrypt_message("pay rent", key)
        assert "pay rent" not in ciphertext
        assert wallet_utils.decrypt_message(ciphertext, key) == "pay rent"

    def test_encryption_is_deterministic_per_key(self, wallet_key):
        key = wallet_utils.private_key_to_aes_key(wallet_key)
        other = wallet_utils.private_key_to_aes_key(generate_private_key_hex())
        assert wallet_utils.encrypt_message("x", key) == wallet_utils.encrypt_message("x", key)
        assert wallet_utils.encrypt_message("x", key) != wallet_utils.encrypt_message("x", other)

    def test_aes_key_is_128_bits(self, wallet_key):
        assert len(base64.b64decode(wallet_utils.private_key_to_aes_key(wallet_key))) == 16

    def test_decrypt_with_wrong_key(self, wallet_key):
        key = wallet_utils.private_key_to_aes_key(wallet_key)
        other = wallet_utils.private_key_to_aes_key(generate_private_key_hex())
        with pytest.raises(DecryptionError):
            wallet_utils.decrypt_message(wallet_utils.encrypt_message("secret", key), other)

    @pytest.mark.parametrize("payload", ["not json", "{}", '{"iv": "!!", "ct": "AA=="}', "[]"])
    def test_decrypt_malformed(self, wallet_key, payload):
        key = wallet_utils.private_key_to_aes_key(wallet_key)
        with pytest.raises(DecryptionError):
            wallet_utils.decrypt_message(payload, key)


class TestSecrets:
    def test_round_trip(self, wallet_key):
        secret = wallet_utils.to_secret("8d1f-wallet", wallet_key, "testnet")
        assert wallet_utils.from_secret(secret) == {
            "walletId": "8d1f-wallet",
            "walletPrivKey": wallet_key,
            "network": "testnet",
        }

    def test_livenet_secret(self, wallet_key):
        secret = wallet_utils.to_secret("w", wallet_key, "livenet")
        assert wallet_utils.from_secret(secret)["network"] == "livenet"

    @pytest.mark.parametrize("secret", ["", "not-a-secret", "1111111111", None])
    def test_malformed_secret(self, secret):
        with pytest.raises(InvalidSecretError):
            wallet_utils.from_secret(secret)

    def test_bad_checksum(self, wallet_key):
        secret = wallet_utils.to_secret("wallet", wallet_key, "testnet")
        last = "2" if secret[-1] != "2" else "3"
        with pytest.raises(InvalidSecretError):
            wallet_utils.from_secret(secret[:-1] + last)

    def test_unknown_network_byte(self, wallet_key):
        payload = b"\x00" + bytes.fromhex(wallet_key) + b"wallet"
        with pytest.raises(InvalidSecretError):
            wallet_utils.from_secret(base58.b58encode_check(payload).decode("ascii"))

    def test_missing_wallet_id(self, wallet_key):
        payload = b"T" + bytes.fromhex(wallet_key)
        with pytest.raises(InvalidSecretError):
            wallet_utils.from_secret(base58.b58encode_check(payload).decode("ascii"))


class TestProposalHash:
    def test_hash_binds_every_field(self):
        base = wallet_utils.get_proposal_hash("2N1addr", 1000, "msg")
        assert base != wallet_utils.get_proposal_hash("2N1adds", 1000, "msg")
        assert base != wallet_utils.get_proposal_hash("2N1addr", 1001, "msg")
        assert base != wallet_utils.get_proposal_hash("2N1addr", 1000, "msh")

    def test_missing_message_is_empty(self):
        assert wallet_utils.get_proposal_hash("a", 1, None) == wallet_utils.get_proposal_hash("a", 1, "")


class TestAddresses:
    def test_derivation_is_order_independent(self, ring):
        first = wallet_utils.derive_address(ring, "m/0/0", 2, "testnet")
        second = wallet_utils.derive_address(list(reversed(ring)), "m/0/0", 2, "testnet")
        assert first == second
        assert first["publicKeys"] == sorted(first["publicKeys"])
        assert first["path"] == "m/0/0"

    def test_testnet_and_livenet_prefixes(self, ring):
        assert wallet_utils.derive_address(ring, "m/0/0", 2, "testnet")["address"].startswith("2")
        assert wallet_utils.derive_address(ring, "m/0/0", 2, "livenet")["address"].startswith("3")

    def test_path_and_threshold_change_the_address(self, ring):
        base = wallet_utils.derive_address(ring, "m/0/0", 2, "testnet")["address"]
        assert base != wallet_utils.derive_address(ring, "m/0/1", 2, "testnet")["address"]
        assert base != wallet_utils.derive_address(ring, "m/0/0", 1, "testnet")["address"]

    def test_unknown_network(self, ring):
        with pytest.raises(ValueError):
            wallet_utils.derive_address(ring, "m/0/0", 2, "regtest")


class TestProposalSigning:
    @pytest.fixture
    def txp(self):
        return {
            "toAddress": "2N1addr",
            "amount": 5000,
            "changeAddress": "2Nchange",
            "inputs": [
                {"txid": "aa" * 32, "vout": 0, "satoshis": 7000, "path": "m/0/0"},
                {"txid": "bb" * 32, "vout": 1, "satoshis": 3000, "path": "m/1/2"},
            ],
        }

    def test_one_signature_per_input(self, txp, testnet_credentials):
        signatures = wallet_utils.sign_txp(txp, testnet_credentials.copayer_xpriv())
        assert len(signatures) == 2
        assert wallet_utils.verify_txp_signatures(txp, testnet_credentials.xpub_key, signatures)

    def test_swapped_signatures_fail(self, txp, testnet_credentials):
        signatures = wallet_utils.sign_txp(txp, testnet_credentials.copayer_xpriv())
        assert not wallet_utils.verify_txp_signatures(txp, testnet_credentials.xpub_key, signatures[::-1])

    def test_changed_amount_fails(self, txp, testnet_credentials):
        signatures = wallet_utils.sign_txp(txp, testnet_credentials.copayer_xpriv())
        txp["amount"] += 1
        assert not wallet_utils.verify_txp_signatures(txp, testnet_credentials.xpub_key, signatures)

    def test_wrong_signature_count_fails(self, txp, testnet_credentials):
        signatures = wallet_utils.sign_txp(txp, testnet_credentials.copayer_xpriv())
        assert not wallet_utils.verify_txp_signatures(txp, testnet_credentials.xpub_key, signatures[:1])
