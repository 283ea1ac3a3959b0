# config.py

import os
from dataclasses import dataclass, field
from typing import Optional, Tuple

from dotenv import load_dotenv

from errors import ConfigurationError

MINT_MODES = ("atomic", "sequential")

SUPPORTED_IMAGE_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
)


@dataclass(frozen=True)
class Settings:
    cluster_url: str = "https://api.devnet.solana.com"
    cluster: str = "devnet"
    service_secret_key: Optional[str] = None
    service_wallet_path: str = "service_wallet.json"
    pinata_api_key: Optional[str] = None
    pinata_secret_api_key: Optional[str] = None
    pinata_api_url: str = "https://api.pinata.cloud"
    pinata_gateway_url: str = "https://gateway.pinata.cloud/ipfs"
    pinata_timeout_seconds: float = 60.0
    max_upload_bytes: int = 10 * 1024 * 1024
    allowed_image_types: Tuple[str, ...] = SUPPORTED_IMAGE_TYPES
    mint_mode: str = "atomic"
    min_payer_balance_sol: float = 0.01
    validate_metadata_uri: bool = False
    api_prefix: str = ""
    cors_origins: Tuple[str, ...] = field(default=("*",))
    log_level: str = "INFO"
    port: int = 3000

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()

        mint_mode = os.getenv("MINT_MODE", cls.mint_mode).strip().lower()
        if mint_mode not in MINT_MODES:
            raise ConfigurationError(f"MINT_MODE must be one of {', '.join(MINT_MODES)}, got '{mint_mode}'")

        origins = tuple(o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip())

        return cls(
            cluster_url=os.getenv("SOLANA_CLUSTER_URL", cls.cluster_url),
            cluster=os.getenv("SOLANA_CLUSTER", cls.cluster),
            service_secret_key=os.getenv("SERVICE_SECRET_KEY") or None,
            service_wallet_path=os.getenv("SERVICE_WALLET_PATH", cls.service_wallet_path),
            pinata_api_key=os.getenv("PINATA_API_KEY") or None,
            pinata_secret_api_key=os.getenv("PINATA_SECRET_API_KEY") or None,
            pinata_api_url=os.getenv("PINATA_API_URL", cls.pinata_api_url).rstrip("/"),
            pinata_gateway_url=os.getenv("PINATA_GATEWAY_URL", cls.pinata_gateway_url).rstrip("/"),
            pinata_timeout_seconds=_number("PINATA_TIMEOUT_SECONDS", cls.pinata_timeout_seconds, float),
            max_upload_bytes=_number("MAX_UPLOAD_BYTES", cls.max_upload_bytes, int),
            mint_mode=mint_mode,
            min_payer_balance_sol=_number("MIN_PAYER_BALANCE_SOL", cls.min_payer_balance_sol, float),
            validate_metadata_uri=_flag("VALIDATE_METADATA_URI", cls.validate_metadata_uri),
            api_prefix=os.getenv("API_PREFIX", cls.api_prefix).rstrip("/"),
            cors_origins=origins or ("*",),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            port=_number("PORT", cls.port, int),
        )


def _number(name, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'")
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative")
    return value


def _flag(name, default):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")
