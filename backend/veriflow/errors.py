# backend/veriflow/errors.py
"""
Error taxonomy for the verification pipeline.

Every class carries the HTTP status it maps to and a message that is safe
to show to the end user. Upstream bodies, API keys and tracebacks stay in
`detail` / the server log and never reach the response.
"""
from typing import Optional


class VerificationError(Exception):
    status_code = 500
    public_message = "Internal server error"

    def __init__(self, detail: Optional[str] = None, public_message: Optional[str] = None):
        super().__init__(detail or self.public_message)
        self.detail = detail or self.public_message
        if public_message:
            self.public_message = public_message


class InvalidInput(VerificationError):
    status_code = 400
    public_message = "Invalid input"


class RateLimited(VerificationError):
    status_code = 429
    public_message = "Please wait before requesting another verification"


class ExternalServiceError(VerificationError):
    status_code = 502
    public_message = "Failed to validate with external service"


class ExternalClientError(ExternalServiceError):
    """Definitive 4xx (not 429) from the validator, or a missing API key."""

    def __init__(self, detail: Optional[str] = None, status: Optional[int] = None, **kwargs):
        super().__init__(detail, **kwargs)
        self.status = status


class ExternalTransientError(ExternalServiceError):
    """Retryable condition: network failure, timeout, 5xx, 429 or malformed body."""


class ServiceUnavailable(ExternalServiceError):
    """Attempt budget exhausted. `cause` is the last transient error observed."""

    def __init__(self, detail: Optional[str] = None, cause: Optional[ExternalTransientError] = None, **kwargs):
        super().__init__(detail, **kwargs)
        self.cause = cause


class PersistenceError(VerificationError):
    status_code = 500


class UnexpectedError(VerificationError):
    status_code = 500


class RecordNotFound(VerificationError):
    status_code = 404
    public_message = "Verification request not found"
