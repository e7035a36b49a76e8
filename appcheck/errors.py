"""
Error taxonomy for App Check token verification.

Every rejection surfaces as a subclass of ``AppCheckError`` with a stable
``code`` so callers and dashboards can tell failure kinds apart. Callers are
expected to reject the request on any of them.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Serializable view of a verification failure."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class AppCheckError(Exception):
    """Base exception for App Check verification failures."""

    code = "APP_CHECK_ERROR"
    default_message = "App Check token verification failed"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(code=self.code, message=self.message, details=self.details)


class MalformedToken(AppCheckError):
    """The token is not a well-formed three-segment JWS."""

    code = "MALFORMED_TOKEN"
    default_message = "The provided App Check token is malformed"


class IncorrectAlgorithm(AppCheckError):
    """The token header names an algorithm other than RS256."""

    code = "INCORRECT_ALGORITHM"
    default_message = "The provided App Check token has an incorrect alg header"


class IncorrectTokenType(AppCheckError):
    """The token header carries a wrong (or missing) type."""

    code = "INCORRECT_TOKEN_TYPE"
    default_message = "The provided App Check token has an incorrect type header"


class UnknownKey(AppCheckError):
    """The key id is absent from the key set, even after a refresh."""

    code = "UNKNOWN_KEY"
    default_message = "The provided App Check token was signed by an unknown key"


class InvalidSignature(AppCheckError):
    code = "INVALID_SIGNATURE"
    default_message = "The provided App Check token has an invalid signature"


class TokenExpired(AppCheckError):
    code = "TOKEN_EXPIRED"
    default_message = "The provided App Check token has expired"


class InvalidClaims(AppCheckError):
    """Required claims are missing or have the wrong type."""

    code = "INVALID_CLAIMS"
    default_message = "The provided App Check token has invalid claims"


class IncorrectAudience(AppCheckError):
    code = "INCORRECT_AUDIENCE"
    default_message = 'The provided App Check token has an incorrect "aud" (audience) claim'


class IncorrectIssuer(AppCheckError):
    code = "INCORRECT_ISSUER"
    default_message = 'The provided App Check token has an incorrect "iss" (issuer) claim'


class EmptySubject(AppCheckError):
    code = "EMPTY_SUBJECT"
    default_message = 'The provided App Check token has an empty or missing "sub" (subject) claim'


class KeySourceUnavailable(AppCheckError):
    """The signing key set could not be fetched or parsed."""

    code = "KEY_SOURCE_UNAVAILABLE"
    default_message = "App Check signing keys are unavailable"
