# metadata.py
#
# Off-chain token metadata JSON: assembly, schema check before upload, and a
# best-effort check of an already published document.

import ipaddress
import logging
import socket
from typing import Any, Callable, Dict, Iterable, List, Optional
from urllib.parse import urlsplit

import requests
from jsonschema import Draft202012Validator

from errors import ValidationError

logger = logging.getLogger("metadata")

# Explorers display a document with this category as a fungible token, not an NFT.
FUNGIBLE_CATEGORY = "fungible"

METADATA_SCHEMA_VERSION = "1.0"

_NON_EMPTY = {"type": "string", "minLength": 1, "pattern": r"\S"}

METADATA_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": f"urn:token-launch:metadata:{METADATA_SCHEMA_VERSION}",
    "title": "Fungible token off-chain metadata",
    "type": "object",
    "required": ["name", "symbol", "description", "image", "attributes", "properties"],
    "properties": {
        "name": _NON_EMPTY,
        "symbol": _NON_EMPTY,
        "description": {"type": "string"},
        "image": _NON_EMPTY,
        "attributes": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["trait_type", "value"],
                "properties": {
                    "trait_type": {"type": "string"},
                    "value": {"type": ["string", "number"]},
                },
            },
        },
        "properties": {
            "type": "object",
            "required": ["files", "category"],
            "properties": {
                "files": {
                    "type": "array",
                    "minItems": 1,
                    "items": {
                        "type": "object",
                        "required": ["uri", "type"],
                        "properties": {"uri": _NON_EMPTY, "type": _NON_EMPTY},
                    },
                },
                "category": {"const": FUNGIBLE_CATEGORY},
            },
        },
    },
}

_validator = Draft202012Validator(METADATA_SCHEMA)


def schema_violations(document: Any, quote_values: bool = True) -> List[str]:
    """With quote_values off, only schema-side text appears (for documents from untrusted hosts)."""
    problems = []
    for error in sorted(_validator.iter_errors(document), key=lambda e: [str(p) for p in e.absolute_path]):
        location = ".".join(str(p) for p in error.absolute_path) or "<document>"
        if quote_values or error.validator == "required":
            problems.append(f"{location}: {error.message}")
        else:
            problems.append(f"{location}: fails the '{error.validator}' rule")
    return problems


def validate_metadata_document(document: Dict[str, Any]) -> None:
    problems = schema_violations(document)
    if problems:
        raise ValidationError("Metadata document does not match the metadata schema.", details="; ".join(problems))


def build_metadata_document(
    name: str,
    symbol: str,
    description: str,
    image_uri: str,
    image_mime_type: str = "image/png",
    attributes: Iterable[Dict[str, Any]] = (),
) -> Dict[str, Any]:
    return {
        "name": name,
        "symbol": symbol,
        "description": description or "",
        "image": image_uri,
        "attributes": [{"trait_type": a["trait_type"], "value": a["value"]} for a in attributes],
        "properties": {
            "files": [{"uri": image_uri, "type": image_mime_type or "image/png"}],
            "category": FUNGIBLE_CATEGORY,
        },
    }


def _resolve(host: str) -> List[str]:
    return [info[4][0] for info in socket.getaddrinfo(host, None, proto=socket.IPPROTO_TCP)]


class MetadataUriValidator:
    """Fetches a published metadata document and reports what explorers will trip over.

    Only https URIs whose host resolves to public addresses are fetched, redirects are
    not followed, and warnings never quote values read from the remote document.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        resolver: Callable[[str], List[str]] = _resolve,
    ):
        self.session = session or requests.Session()
        self.timeout = timeout
        self.resolver = resolver

    def refusal(self, uri: str) -> Optional[str]:
        parsed = urlsplit(uri)
        if parsed.scheme != "https" or not parsed.hostname:
            return f"Metadata URI is not an https URL and was not checked: {uri}"
        try:
            addresses = [ipaddress.ip_address(a.split("%", 1)[0]) for a in self.resolver(parsed.hostname)]
        except (OSError, ValueError):
            return f"Metadata URI host could not be resolved: {parsed.hostname}"
        if not addresses or not all(a.is_global for a in addresses):
            return f"Metadata URI host is not a public address and was not checked: {parsed.hostname}"
        return None

    def check(self, uri: str, expected_name: Optional[str] = None, expected_symbol: Optional[str] = None) -> List[str]:
        refused = self.refusal(uri)
        if refused:
            logger.warning(refused)
            return [refused]

        try:
            response = self.session.get(
                uri, timeout=self.timeout, headers={"Accept": "application/json"}, allow_redirects=False
            )
        except requests.exceptions.Timeout:
            return [f"Metadata URI is not accessible (timeout): {uri}"]
        except requests.exceptions.RequestException as e:
            logger.warning(f"Failed to fetch metadata from {uri}: {e}")
            return [f"Failed to fetch metadata from URI: {uri}"]

        if 300 <= response.status_code < 400:
            return [f"Metadata URI redirects (HTTP {response.status_code}); point the token at the final URL: {uri}"]
        if response.status_code == 404:
            return [f"Metadata not found at URI: {uri}"]
        if response.status_code >= 400:
            return [f"Metadata URI returned error {response.status_code}: {uri}"]

        try:
            document = response.json()
        except ValueError:
            return [f"Metadata URI did not return JSON: {uri}"]

        warnings = schema_violations(document, quote_values=False)
        if isinstance(document, dict):
            if expected_name and document.get("name") != expected_name:
                warnings.append(f"Metadata name does not match token name '{expected_name}'")
            if expected_symbol and document.get("symbol") != expected_symbol:
                warnings.append(f"Metadata symbol does not match token symbol '{expected_symbol}'")
        if warnings:
            logger.warning(f"Metadata at {uri} has {len(warnings)} issue(s)")
        return warnings
