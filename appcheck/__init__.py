"""
Verification of Firebase App Check tokens.

Modules:

- client: ``AppCheckClient``, the long-lived entry point
- jwks: signing key retrieval and caching
- validation: the token verification pipeline and result model
- errors: the typed rejection reasons
- config: settings via pydantic-settings
- logging: structured logging via structlog
- metrics: Prometheus counters for verifications and key refreshes
"""

from .client import AppCheckClient
from .config import DEFAULT_JWKS_URL, AppCheckSettings, get_settings
from .errors import (
    AppCheckError,
    EmptySubject,
    IncorrectAlgorithm,
    IncorrectAudience,
    IncorrectIssuer,
    IncorrectTokenType,
    InvalidClaims,
    InvalidSignature,
    KeySourceUnavailable,
    MalformedToken,
    TokenExpired,
    UnknownKey,
)
from .jwks import JWKSKeySource, KeySource, StaticKeySource
from .validation import APP_CHECK_ISSUER, TokenValidator, VerifiedToken, parse_bearer

__all__ = [
    "APP_CHECK_ISSUER",
    "DEFAULT_JWKS_URL",
    "AppCheckClient",
    "AppCheckError",
    "AppCheckSettings",
    "EmptySubject",
    "IncorrectAlgorithm",
    "IncorrectAudience",
    "IncorrectIssuer",
    "IncorrectTokenType",
    "InvalidClaims",
    "InvalidSignature",
    "JWKSKeySource",
    "KeySource",
    "KeySourceUnavailable",
    "MalformedToken",
    "StaticKeySource",
    "TokenExpired",
    "TokenValidator",
    "UnknownKey",
    "VerifiedToken",
    "get_settings",
    "parse_bearer",
]
