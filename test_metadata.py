import pytest
import requests

from conftest import FakeResponse, FakeSession
from errors import ValidationError
from metadata import (
    FUNGIBLE_CATEGORY,
    MetadataUriValidator,
    build_metadata_document,
    schema_violations,
    validate_metadata_document,
)

IMAGE_URI = "https://gateway.pinata.cloud/ipfs/QmYwAPJzv5CZsnA625s3Xf2nemtYgPpHdWEz79ojWnPbdG"


def public_validator(session, addresses=("93.184.216.34",)):
    return MetadataUriValidator(session=session, resolver=lambda host: list(addresses))


def test_document_is_marked_fungible():
    doc = build_metadata_document("Test Token", "TEST", "A token for tests", IMAGE_URI, "image/webp")

    assert doc["properties"]["category"] == FUNGIBLE_CATEGORY == "fungible"
    assert doc["properties"]["files"] == [{"uri": IMAGE_URI, "type": "image/webp"}]
    assert doc["image"] == IMAGE_URI
    assert doc["attributes"] == []
    assert list(doc) == ["name", "symbol", "description", "image", "attributes", "properties"]
    validate_metadata_document(doc)


def test_document_defaults():
    doc = build_metadata_document("Test Token", "TEST", None, IMAGE_URI, None, [{"trait_type": "tier", "value": 1}])

    assert doc["description"] == ""
    assert doc["properties"]["files"][0]["type"] == "image/png"
    assert doc["attributes"] == [{"trait_type": "tier", "value": 1}]


def test_schema_rejects_nft_category():
    doc = build_metadata_document("Test Token", "TEST", "", IMAGE_URI)
    doc["properties"]["category"] = "image"

    with pytest.raises(ValidationError) as excinfo:
        validate_metadata_document(doc)
    assert "properties.category" in excinfo.value.details


def test_schema_reports_missing_fields():
    problems = schema_violations({"name": "Test Token", "symbol": " "})

    assert any("symbol" in p for p in problems)
    assert any("'image' is a required property" in p for p in problems)
    assert any("'properties' is a required property" in p for p in problems)


def test_uri_validator_accepts_conforming_document():
    doc = build_metadata_document("Test Token", "TEST", "desc", IMAGE_URI)
    session = FakeSession([FakeResponse(200, doc)])

    warnings = public_validator(session).check("https://example.com/m.json", "Test Token", "TEST")

    assert warnings == []
    method, url, kwargs = session.calls[0]
    assert (method, url, kwargs["timeout"]) == ("GET", "https://example.com/m.json", 10.0)
    assert kwargs["allow_redirects"] is False


def test_uri_validator_warns_on_mismatch_and_gaps():
    session = FakeSession([FakeResponse(200, {"name": "Other", "symbol": "TEST", "image": IMAGE_URI})])

    warnings = public_validator(session).check("https://example.com/m.json", "Test Token", "TEST")

    assert any("does not match token name 'Test Token'" in w for w in warnings)
    assert any("properties" in w for w in warnings)


@pytest.mark.parametrize(
    "session, expected",
    [
        (FakeSession([FakeResponse(404)]), "Metadata not found"),
        (FakeSession([FakeResponse(302)]), "redirects"),
        (FakeSession([FakeResponse(502)]), "returned error 502"),
        (FakeSession([FakeResponse(200, None, text="<html>")]), "did not return JSON"),
        (FakeSession(error=requests.exceptions.Timeout("slow")), "timeout"),
        (FakeSession(error=requests.exceptions.ConnectionError("refused")), "Failed to fetch"),
    ],
)
def test_uri_validator_never_raises(session, expected):
    warnings = public_validator(session).check("https://example.com/m.json")

    assert len(warnings) == 1
    assert expected in warnings[0]


def test_uri_validator_does_not_quote_remote_values():
    document = {"name": "root:x:0:0", "symbol": "internal-secret", "image": 12345}
    session = FakeSession([FakeResponse(200, document)])

    warnings = public_validator(session).check("https://example.com/m.json", "Test Token", "TEST")

    assert warnings
    assert not any("root:x" in w or "internal-secret" in w or "12345" in w for w in warnings)
    assert any(w.startswith("image: fails the 'type' rule") for w in warnings)


@pytest.mark.parametrize(
    "uri, addresses",
    [
        ("https://metadata.internal/m.json", ["10.0.0.7"]),
        ("https://localhost:8899/m.json", ["127.0.0.1"]),
        ("https://169.254.169.254/latest/meta-data", ["169.254.169.254"]),
        ("https://v6.example/m.json", ["::1"]),
        ("https://mixed.example/m.json", ["93.184.216.34", "192.168.1.20"]),
        ("http://example.com/m.json", ["93.184.216.34"]),
        ("file:///etc/passwd", []),
    ],
)
def test_uri_validator_refuses_non_public_targets(uri, addresses):
    session = FakeSession([FakeResponse(200, {})])

    warnings = public_validator(session, addresses).check(uri, "Test Token", "TEST")

    assert session.calls == []
    assert len(warnings) == 1
    assert "was not checked" in warnings[0]


def test_uri_validator_reports_unresolvable_host():
    def unresolvable(host):
        raise OSError("Name or service not known")

    session = FakeSession()

    warnings = MetadataUriValidator(session=session, resolver=unresolvable).check("https://nowhere.invalid/m.json")

    assert session.calls == []
    assert warnings == ["Metadata URI host could not be resolved: nowhere.invalid"]
