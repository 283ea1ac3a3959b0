import pytest

from config import SUPPORTED_IMAGE_TYPES, Settings
from errors import ConfigurationError

ENV_NAMES = (
    "SOLANA_CLUSTER_URL",
    "SOLANA_CLUSTER",
    "SERVICE_SECRET_KEY",
    "SERVICE_WALLET_PATH",
    "PINATA_API_KEY",
    "PINATA_SECRET_API_KEY",
    "PINATA_API_URL",
    "PINATA_GATEWAY_URL",
    "PINATA_TIMEOUT_SECONDS",
    "MAX_UPLOAD_BYTES",
    "MINT_MODE",
    "MIN_PAYER_BALANCE_SOL",
    "VALIDATE_METADATA_URI",
    "API_PREFIX",
    "CORS_ORIGINS",
    "LOG_LEVEL",
    "PORT",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr("config.load_dotenv", lambda *args, **kwargs: False)
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = Settings.from_env()

    assert settings.cluster_url == "https://api.devnet.solana.com"
    assert settings.mint_mode == "atomic"
    assert settings.pinata_timeout_seconds == 60.0
    assert settings.max_upload_bytes == 10 * 1024 * 1024
    assert settings.allowed_image_types == SUPPORTED_IMAGE_TYPES
    assert settings.api_prefix == ""
    assert settings.cors_origins == ("*",)
    assert settings.port == 3000
    assert settings.validate_metadata_uri is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SOLANA_CLUSTER_URL", "http://localhost:8899")
    monkeypatch.setenv("MINT_MODE", "Sequential")
    monkeypatch.setenv("PINATA_TIMEOUT_SECONDS", "15")
    monkeypatch.setenv("API_PREFIX", "/api/")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.setenv("VALIDATE_METADATA_URI", "on")
    monkeypatch.setenv("PINATA_API_URL", "https://pinata.example/")

    settings = Settings.from_env()

    assert settings.cluster_url == "http://localhost:8899"
    assert settings.mint_mode == "sequential"
    assert settings.pinata_timeout_seconds == 15.0
    assert settings.api_prefix == "/api"
    assert settings.cors_origins == ("https://a.example", "https://b.example")
    assert settings.validate_metadata_uri is True
    assert settings.pinata_api_url == "https://pinata.example"


@pytest.mark.parametrize(
    "name, value",
    [("MINT_MODE", "parallel"), ("PORT", "http"), ("MAX_UPLOAD_BYTES", "-1"), ("MIN_PAYER_BALANCE_SOL", "lots")],
)
def test_invalid_values_are_configuration_errors(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError, match=name):
        Settings.from_env()
