# app.py
#
# HTTP surface and composition root. Run with `python app.py`, or under a WSGI
# server: gunicorn "app:create_app()"

import logging
from dataclasses import dataclass
from typing import Optional

from flask import Blueprint, Flask, current_app, jsonify, request
from flask_cors import CORS
from solana.rpc.api import Client
from solana.rpc.commitment import Confirmed
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge
from werkzeug.middleware.proxy_fix import ProxyFix

from authority import AuthorityRevoker
from balance import BalanceReporter
from config import Settings
from create_token import LAMPORTS_PER_SOL, MintOrchestrator, TokenCreationRequest
from errors import TokenServiceError, ValidationError
from explorer import solana_tx_url, solscan_token_url, solscan_tx_url
from flow import ERROR, WARNING, FlowTracker
from ledger import Ledger
from metadata import MetadataUriValidator
from pinning import MetadataPinner, PinataClient
from wallet import ServiceWallet

logger = logging.getLogger("app")

# Multipart framing on top of the file itself.
MULTIPART_OVERHEAD_BYTES = 1024 * 1024


@dataclass
class Services:
    settings: Settings
    wallet: ServiceWallet
    ledger: Ledger
    flow: FlowTracker
    pinner: MetadataPinner
    orchestrator: MintOrchestrator
    revoker: AuthorityRevoker
    reporter: BalanceReporter
    uri_validator: Optional[MetadataUriValidator] = None


def build_services(settings: Settings) -> Services:
    client = Client(settings.cluster_url, commitment=Confirmed)
    wallet = ServiceWallet(settings.service_secret_key, settings.service_wallet_path)
    ledger = Ledger(client, wallet, settings.cluster_url)
    flow = FlowTracker()
    pinata = PinataClient(
        settings.pinata_api_key,
        settings.pinata_secret_api_key,
        api_url=settings.pinata_api_url,
        gateway_url=settings.pinata_gateway_url,
        timeout=settings.pinata_timeout_seconds or None,
    )
    return Services(
        settings=settings,
        wallet=wallet,
        ledger=ledger,
        flow=flow,
        pinner=MetadataPinner(pinata, flow, settings.max_upload_bytes, settings.allowed_image_types),
        orchestrator=MintOrchestrator(
            ledger, settings.mint_mode, int(round(settings.min_payer_balance_sol * LAMPORTS_PER_SOL))
        ),
        revoker=AuthorityRevoker(ledger),
        reporter=BalanceReporter(ledger, wallet),
        uri_validator=MetadataUriValidator() if settings.validate_metadata_uri else None,
    )


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> Flask:
    if settings is None:
        settings = services.settings if services is not None else Settings.from_env()
    if services is None:
        services = build_services(settings)

    app = Flask(__name__)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_bytes + MULTIPART_OVERHEAD_BYTES
    app.extensions["token_services"] = services
    CORS(app, origins=list(settings.cors_origins))

    app.register_blueprint(api, url_prefix=settings.api_prefix or None)
    app.register_error_handler(TokenServiceError, _handle_service_error)
    app.register_error_handler(RequestEntityTooLarge, _handle_too_large)
    app.register_error_handler(Exception, _handle_unexpected)
    return app


def _services() -> Services:
    return current_app.extensions["token_services"]


def _cluster() -> str:
    return _services().settings.cluster


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data


def _required_text(data, field: str, label: Optional[str] = None) -> str:
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{label or field} is required and must be a non-empty string.")
    return value.strip()


def _optional_text(data, field: str) -> str:
    value = data.get(field)
    return value.strip() if isinstance(value, str) else ""


def _uploaded_file():
    file = request.files.get("file")
    if file is None:
        raise ValidationError("No logo file provided. Please upload an image file.")
    return file.read(), file.filename or "logo", file.mimetype


# --- Error handlers ---
def _handle_service_error(error: TokenServiceError):
    if error.status_code >= 500:
        logger.error(f"❌ {error.code}: {error.message}")
        if not error.details:
            error.details = "An error occurred while processing the request."
    else:
        logger.info(f"Rejected request to {request.path}: {error.message}")
    return jsonify(error.to_dict()), error.status_code


def _handle_too_large(error: RequestEntityTooLarge):
    limit = _services().settings.max_upload_bytes
    return jsonify({"error": f"Upload exceeds the maximum size of {limit} bytes.", "code": "UPLOAD_REJECTED"}), 413


def _handle_unexpected(error: Exception):
    if isinstance(error, HTTPException):
        return jsonify({"error": error.description}), error.code
    logger.exception(f"Unhandled error on {request.path}")
    return jsonify({"error": "An unknown error occurred.", "details": "Internal server error."}), 500


api = Blueprint("api", __name__)


# --- Connection check ---
@api.route("/ping", methods=["GET"])
def ping():
    services = _services()
    try:
        version = services.ledger.version()
        service_address = str(services.wallet.pubkey)
    except TokenServiceError as e:
        logger.error(f"Ping failed: {e.message}")
        return jsonify({"ok": False, "error": e.message}), 500
    return jsonify(
        {"ok": True, "cluster": services.settings.cluster_url, "solana": version, "serviceAddress": service_address}
    )


# --- Service wallet balance + tokens ---
@api.route("/balance", methods=["GET"])
def balance():
    return jsonify(_services().reporter.get_balance().to_dict())


# --- Token creation (mint + associated account + supply + metadata) ---
@api.route("/create-token", methods=["POST"])
def create_token():
    services = _services()
    data = _json_body()
    token_request = TokenCreationRequest.from_payload(data)

    session_id = services.flow.resume(data.get("sessionId"))
    services.flow.step(
        session_id,
        "token_requested",
        name=token_request.name,
        symbol=token_request.symbol,
        uri=token_request.uri,
        supply=token_request.supply,
        decimals=token_request.decimals,
    )

    warnings = []
    if services.uri_validator is not None:
        warnings = services.uri_validator.check(token_request.uri, token_request.name, token_request.symbol)
        for warning in warnings:
            services.flow.step(session_id, "metadata_uri_warning", WARNING, warning=warning)

    try:
        result = services.orchestrator.create_token(token_request)
    except TokenServiceError as e:
        services.flow.step(session_id, "token_creation_failed", ERROR, error=e.message)
        raise
    services.flow.step(
        session_id, "token_created", mint=result.mint_address, signatures=list(result.signatures)
    )

    cluster = _cluster()
    signature = result.transaction_signature
    return jsonify(
        {
            "message": "Token and metadata successfully created.",
            "mintAddress": result.mint_address,
            "ataAddress": result.associated_account_address,
            "metadataAddress": result.metadata_address,
            "transactionSignature": signature,
            "signatures": list(result.signatures),
            "explorerLinkCreate": solana_tx_url(signature, cluster),
            "solscanTokenLink": solscan_token_url(result.mint_address, cluster),
            "solscanTxLink": solscan_tx_url(signature, cluster),
            "mode": services.orchestrator.mode,
            "sessionId": session_id,
            "metadataWarnings": warnings,
        }
    )


# --- Metadata for an existing mint ---
@api.route("/add-metadata", methods=["POST"])
def add_metadata():
    data = _json_body()
    mint_address = _required_text(data, "mintAddress")
    metadata_address, signature = _services().orchestrator.attach_metadata(
        mint_address,
        _required_text(data, "name", "Token name"),
        _required_text(data, "symbol", "Token symbol"),
        _required_text(data, "uri"),
    )
    return jsonify(
        {
            "message": "Metadata successfully added.",
            "mintAddress": mint_address,
            "metadataAddress": metadata_address,
            "transactionSignature": signature,
            "explorerLink": solana_tx_url(signature, _cluster()),
        }
    )


# --- Logo + metadata pinning ---
@api.route("/upload-logo-only", methods=["POST"])
def upload_logo_only():
    data, filename, mime_type = _uploaded_file()
    image, session_id = _services().pinner.upload_logo_only(data, filename, mime_type)
    return jsonify(
        {
            "success": True,
            "message": "Logo uploaded to IPFS successfully",
            "imageUri": image.gateway_uri,
            "ipfsHash": image.ipfs_hash,
            "sessionId": session_id,
        }
    )


@api.route("/generate-metadata-only", methods=["POST"])
def generate_metadata_only():
    data = _json_body()
    metadata, session_id = _services().pinner.generate_metadata_only(
        image_uri=_required_text(data, "imageUri"),
        name=_required_text(data, "name", "Token name"),
        symbol=_required_text(data, "symbol", "Token symbol"),
        description=_optional_text(data, "description"),
        session_id=data.get("sessionId"),
        image_mime_type=_optional_text(data, "imageMimeType") or None,
    )
    return jsonify(
        {
            "success": True,
            "message": "Metadata JSON generated and uploaded successfully",
            "metadataUri": metadata.gateway_uri,
            "metadataHash": metadata.ipfs_hash,
            "sessionId": session_id,
        }
    )


@api.route("/generate-metadata", methods=["POST"])
def generate_metadata():
    name = _required_text(request.form, "name", "Token name")
    symbol = _required_text(request.form, "symbol", "Token symbol")
    description = _optional_text(request.form, "description")
    data, filename, mime_type = _uploaded_file()

    image, metadata, session_id = _services().pinner.generate_metadata(
        data, filename, mime_type, name, symbol, description
    )
    return jsonify(
        {
            "success": True,
            "message": "Metadata generated and uploaded successfully",
            "metadataUri": metadata.gateway_uri,
            "metadataHash": metadata.ipfs_hash,
            "imageUri": image.gateway_uri,
            "imageHash": image.ipfs_hash,
            "sessionId": session_id,
        }
    )


# --- Authority revocation ---
def _revoked(message: str, mint_address: str, signature: str):
    cluster = _cluster()
    return jsonify(
        {
            "message": message,
            "mintAddress": mint_address,
            "transactionSignature": signature,
            "explorerLink": solana_tx_url(signature, cluster),
            "solscanTxLink": solscan_tx_url(signature, cluster),
        }
    )


@api.route("/revoke-freeze-authority", methods=["POST"])
def revoke_freeze_authority():
    mint_address = _required_text(_json_body(), "mintAddress")
    signature = _services().revoker.revoke_freeze_authority(mint_address)
    return _revoked("Freeze authority successfully revoked.", mint_address, signature)


@api.route("/revoke-mint-authority", methods=["POST"])
def revoke_mint_authority():
    mint_address = _required_text(_json_body(), "mintAddress")
    signature = _services().revoker.revoke_mint_authority(mint_address)
    return _revoked("Mint authority successfully revoked. Token supply is now fixed.", mint_address, signature)


# --- Main Server Run ---
if __name__ == "__main__":
    settings = Settings.from_env()
    logging.basicConfig(
        level=settings.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    create_app(settings).run(host="0.0.0.0", port=settings.port)
