# errors.py

from typing import Any, Dict, Optional


class TokenServiceError(Exception):
    """Base error. Carries the HTTP status the API answers with."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(TokenServiceError):
    status_code = 400
    code = "VALIDATION_FAILED"


class UploadRejectedError(ValidationError):
    code = "UPLOAD_REJECTED"


class ConfigurationError(TokenServiceError):
    code = "CONFIGURATION_ERROR"


class UpstreamError(TokenServiceError):
    code = "UPSTREAM_ERROR"


class ConfirmationUnknownError(UpstreamError):
    """The transaction was sent but its confirmation timed out; it may still land."""

    code = "CONFIRMATION_UNKNOWN"

    def __init__(self, message: str, signature: str):
        super().__init__(message)
        self.signature = signature


class InsufficientFundsError(TokenServiceError):
    status_code = 503
    code = "INSUFFICIENT_FUNDS"


class AuthorityAlreadyRevokedError(TokenServiceError):
    status_code = 409
    code = "AUTHORITY_ALREADY_REVOKED"


class AuthorityMismatchError(TokenServiceError):
    status_code = 409
    code = "AUTHORITY_MISMATCH"


class MintSequenceError(TokenServiceError):
    """A step of the mint sequence failed.

    Steps that were already confirmed stay on-chain, so the partial result
    travels with the error.
    """

    code = "MINT_SEQUENCE_FAILED"

    def __init__(self, step: str, partial, cause: Exception):
        super().__init__(
            f"Token creation failed at step '{step}': {cause}",
            details="An error occurred during token creation or metadata addition.",
        )
        self.step = step
        self.partial = partial
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["failedStep"] = self.step
        body["partial"] = self.partial.to_dict()
        return body
