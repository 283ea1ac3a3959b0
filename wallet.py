# wallet.py

import json
import logging
import os
import threading
from typing import Optional

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from errors import ConfigurationError, ValidationError

logger = logging.getLogger("wallet")


def parse_address(value, field: str = "address") -> Pubkey:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Missing required field: {field}")
    try:
        return Pubkey.from_string(value.strip())
    except ValueError:
        raise ValidationError(f"Invalid {field} format: {value}")


def keypair_from_secret(secret: str) -> Keypair:
    """Accepts a base58 secret key or a JSON byte array (solana-keygen format)."""
    secret = secret.strip()
    if secret.startswith("["):
        return Keypair.from_bytes(bytes(json.loads(secret)))
    return Keypair.from_bytes(base58.b58decode(secret))


class ServiceWallet:
    """The one signing identity of the service.

    The keypair is built on first use and then shared by every request.
    """

    def __init__(self, secret: Optional[str] = None, path: Optional[str] = None):
        self._secret = secret
        self._path = path
        self._keypair = None
        self._lock = threading.Lock()

    @classmethod
    def from_keypair(cls, keypair: Keypair) -> "ServiceWallet":
        wallet = cls()
        wallet._keypair = keypair
        return wallet

    @property
    def keypair(self) -> Keypair:
        if self._keypair is None:
            with self._lock:
                if self._keypair is None:
                    self._keypair = self._load()
        return self._keypair

    @property
    def pubkey(self) -> Pubkey:
        return self.keypair.pubkey()

    def _load(self) -> Keypair:
        if self._secret:
            try:
                keypair = keypair_from_secret(self._secret)
                logger.info(f"Service wallet loaded from SERVICE_SECRET_KEY: {keypair.pubkey()}")
                return keypair
            except (ValueError, TypeError):
                logger.warning("SERVICE_SECRET_KEY could not be decoded, trying the wallet file...")

        if self._path and os.path.exists(self._path):
            try:
                with open(self._path, "r") as f:
                    keypair = Keypair.from_bytes(bytes(json.load(f)))
                logger.info(f"Service wallet loaded from {self._path}: {keypair.pubkey()}")
                return keypair
            except (ValueError, TypeError) as e:
                raise ConfigurationError(f"Service wallet file {self._path} is not a valid keypair: {e}")

        raise ConfigurationError(
            "Failed to load service wallet. Check SERVICE_SECRET_KEY in .env or the service_wallet.json file."
        )
