import json

import base58
import pytest
from solders.keypair import Keypair

from errors import ConfigurationError, ValidationError
from wallet import ServiceWallet, keypair_from_secret, parse_address


def test_keypair_from_base58_secret():
    keypair = Keypair()

    assert keypair_from_secret(base58.b58encode(bytes(keypair)).decode()).pubkey() == keypair.pubkey()


def test_keypair_from_json_array_secret():
    keypair = Keypair()

    assert keypair_from_secret(json.dumps(list(bytes(keypair)))).pubkey() == keypair.pubkey()


def test_service_wallet_prefers_env_secret(tmp_path):
    env_keypair, file_keypair = Keypair(), Keypair()
    path = tmp_path / "service_wallet.json"
    path.write_text(json.dumps(list(bytes(file_keypair))))

    wallet = ServiceWallet(base58.b58encode(bytes(env_keypair)).decode(), str(path))

    assert wallet.pubkey == env_keypair.pubkey()


def test_service_wallet_falls_back_to_file(tmp_path):
    keypair = Keypair()
    path = tmp_path / "service_wallet.json"
    path.write_text(json.dumps(list(bytes(keypair))))

    wallet = ServiceWallet("not a key!", str(path))

    assert wallet.pubkey == keypair.pubkey()
    assert wallet.keypair is wallet.keypair


def test_service_wallet_without_key_is_a_configuration_error(tmp_path):
    wallet = ServiceWallet(None, str(tmp_path / "missing.json"))

    with pytest.raises(ConfigurationError, match="Failed to load service wallet"):
        wallet.keypair


def test_corrupt_wallet_file_is_a_configuration_error(tmp_path):
    path = tmp_path / "service_wallet.json"
    path.write_text("[1, 2, 3]")

    with pytest.raises(ConfigurationError, match="not a valid keypair"):
        ServiceWallet(None, str(path)).pubkey


def test_parse_address():
    keypair = Keypair()

    assert parse_address(f" {keypair.pubkey()} ") == keypair.pubkey()
    with pytest.raises(ValidationError, match="Missing required field: mintAddress"):
        parse_address("", "mintAddress")
    with pytest.raises(ValidationError, match="Invalid mintAddress format"):
        parse_address("not-an-address", "mintAddress")
