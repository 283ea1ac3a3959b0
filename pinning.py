# pinning.py

import json
import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, Union

import requests

from config import SUPPORTED_IMAGE_TYPES
from errors import ConfigurationError, UploadRejectedError, UpstreamError
from flow import ERROR, FlowTracker
from metadata import build_metadata_document, validate_metadata_document

logger = logging.getLogger("pinning")

# CIDv0 (base58, "Qm...") or CIDv1 (base32, "baf...").
IPFS_HASH = re.compile(r"^Qm[1-9A-HJ-NP-Za-km-z]{44}$|^baf[a-z2-7]{20,}$")

METADATA_FILENAME = "metadata.json"


@dataclass(frozen=True)
class PinResult:
    ipfs_hash: str
    gateway_uri: str


class PinataClient:
    """Minimal client for Pinata's pinFileToIPFS endpoint."""

    def __init__(
        self,
        api_key: Optional[str],
        secret_api_key: Optional[str],
        api_url: str = "https://api.pinata.cloud",
        gateway_url: str = "https://gateway.pinata.cloud/ipfs",
        timeout: Optional[float] = 60.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.secret_api_key = secret_api_key
        self.api_url = api_url.rstrip("/")
        self.gateway_url = gateway_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def gateway_uri(self, ipfs_hash: str) -> str:
        return f"{self.gateway_url}/{ipfs_hash}"

    def pin_file(self, data: bytes, filename: str, content_type: str) -> PinResult:
        if not self.api_key or not self.secret_api_key:
            raise ConfigurationError(
                "Pinata API keys not configured. Please set PINATA_API_KEY and PINATA_SECRET_API_KEY environment variables."
            )

        try:
            response = self.session.post(
                f"{self.api_url}/pinning/pinFileToIPFS",
                files={"file": (filename, data, content_type)},
                headers={
                    "pinata_api_key": self.api_key,
                    "pinata_secret_api_key": self.secret_api_key,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise UpstreamError(f"Pinata upload failed (HTTP {status}): {_provider_message(e.response) or e}")
        except requests.exceptions.RequestException as e:
            raise UpstreamError(f"Pinata upload failed: {e}")

        try:
            ipfs_hash = response.json().get("IpfsHash")
        except (ValueError, AttributeError):
            ipfs_hash = None
        if not isinstance(ipfs_hash, str):
            raise UpstreamError(f"Pinata did not return IpfsHash. Status: {response.status_code}, Response: {response.text[:500]}")
        if not IPFS_HASH.match(ipfs_hash):
            raise UpstreamError(f"Pinata returned a malformed IpfsHash: {ipfs_hash}")

        return PinResult(ipfs_hash=ipfs_hash, gateway_uri=self.gateway_uri(ipfs_hash))


def _provider_message(response) -> Optional[str]:
    if response is None:
        return None
    try:
        error = response.json().get("error")
    except (ValueError, AttributeError):
        return response.text[:500] or None
    if isinstance(error, dict):
        return error.get("details") or error.get("reason") or json.dumps(error)
    return error


class MetadataPinner:
    """Pins logo images and the metadata documents that point at them."""

    def __init__(
        self,
        client: PinataClient,
        flow: Optional[FlowTracker] = None,
        max_bytes: int = 10 * 1024 * 1024,
        allowed_types: Iterable[str] = SUPPORTED_IMAGE_TYPES,
    ):
        self.client = client
        self.flow = flow or FlowTracker()
        self.max_bytes = max_bytes
        self.allowed_types = tuple(allowed_types)

    def check_asset(self, data: bytes, filename: str, mime_type: str) -> None:
        if not data:
            raise UploadRejectedError("No logo file provided. Please upload an image file.")
        if len(data) > self.max_bytes:
            raise UploadRejectedError(
                f"File {filename} is {len(data)} bytes; the maximum upload size is {self.max_bytes} bytes."
            )
        if mime_type not in self.allowed_types:
            raise UploadRejectedError(
                f"Invalid image type: {mime_type}. Allowed types: {', '.join(self.allowed_types)}"
            )

    def upload_asset(self, data: bytes, filename: str, mime_type: str) -> PinResult:
        self.check_asset(data, filename, mime_type)
        logger.info(f"Uploading logo ({filename}, {len(data)} bytes, {mime_type}) to IPFS...")
        result = self.client.pin_file(data, filename, mime_type)
        logger.info(f"Logo uploaded: {result.gateway_uri}")
        return result

    def build_and_upload_metadata(
        self,
        name: str,
        symbol: str,
        description: str,
        image: Union[PinResult, str],
        image_mime_type: str = "image/png",
    ) -> PinResult:
        image_uri = image.gateway_uri if isinstance(image, PinResult) else image
        document = build_metadata_document(name, symbol, description, image_uri, image_mime_type)
        validate_metadata_document(document)

        payload = json.dumps(document).encode("utf-8")
        if len(payload) > self.max_bytes:
            raise UploadRejectedError(f"Metadata document is {len(payload)} bytes; the maximum is {self.max_bytes}.")

        logger.info("Uploading metadata JSON to IPFS...")
        result = self.client.pin_file(payload, METADATA_FILENAME, "application/json")
        logger.info(f"Metadata uploaded: {result.gateway_uri}")
        return result

    def upload_logo_only(self, data: bytes, filename: str, mime_type: str) -> Tuple[PinResult, str]:
        self.check_asset(data, filename, mime_type)
        session_id = self.flow.start()
        try:
            result = self.upload_asset(data, filename, mime_type)
        except Exception as e:
            self.flow.step(session_id, "image_upload_failed", ERROR, error=str(e))
            raise
        self.flow.step(session_id, "image_uploaded", ipfs_hash=result.ipfs_hash, image_uri=result.gateway_uri)
        return result, session_id

    def generate_metadata_only(
        self,
        image_uri: str,
        name: str,
        symbol: str,
        description: str = "",
        session_id: Optional[str] = None,
        image_mime_type: Optional[str] = None,
    ) -> Tuple[PinResult, str]:
        session_id = self.flow.resume(session_id)
        self.flow.step(session_id, "metadata_created", name=name, symbol=symbol, image=image_uri)
        try:
            result = self.build_and_upload_metadata(name, symbol, description, image_uri, image_mime_type or "image/png")
        except Exception as e:
            self.flow.step(session_id, "metadata_upload_failed", ERROR, error=str(e))
            raise
        self.flow.step(session_id, "metadata_uploaded", ipfs_hash=result.ipfs_hash, metadata_uri=result.gateway_uri)
        return result, session_id

    def generate_metadata(
        self, data: bytes, filename: str, mime_type: str, name: str, symbol: str, description: str = ""
    ) -> Tuple[PinResult, PinResult, str]:
        image, session_id = self.upload_logo_only(data, filename, mime_type)
        metadata, session_id = self.generate_metadata_only(
            image.gateway_uri, name, symbol, description, session_id, mime_type
        )
        return image, metadata, session_id
