"""
Token validation package.

``TokenValidator`` runs the App Check verification pipeline: structural
parse, header checks, key resolution, signature, lifetime, typed claim
decode, then audience, issuer and subject checks.
"""

from .models import AppCheckClaims, TokenSegments, VerifiedToken
from .token_validator import (
    APP_CHECK_ISSUER,
    TOKEN_TYPE,
    TokenValidator,
    decode_claims,
    parse_bearer,
    parse_token,
)

__all__ = [
    "APP_CHECK_ISSUER",
    "TOKEN_TYPE",
    "AppCheckClaims",
    "TokenSegments",
    "TokenValidator",
    "VerifiedToken",
    "decode_claims",
    "parse_bearer",
    "parse_token",
]
