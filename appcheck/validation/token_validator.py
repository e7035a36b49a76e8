"""
Token validation for App Check tokens.

References for checks:
https://firebase.googleblog.com/2021/10/protecting-backends-with-app-check.html
https://github.com/firebase/firebase-admin-node/blob/master/src/app-check/token-verifier.ts
"""

import json
import math
import time
from typing import Any, Callable, Dict, Optional

from jose import jws
from jose.backends.base import Key
from jose.exceptions import JWSError
from pydantic import ValidationError

from ..errors import (
    AppCheckError,
    EmptySubject,
    IncorrectAlgorithm,
    IncorrectAudience,
    IncorrectIssuer,
    IncorrectTokenType,
    InvalidClaims,
    InvalidSignature,
    MalformedToken,
    TokenExpired,
    UnknownKey,
)
from ..jwks.client import SIGNING_ALGORITHM, KeySource
from ..logging import get_logger
from ..metrics import AppCheckMetrics, get_metrics
from .models import AppCheckClaims, TokenSegments, VerifiedToken

APP_CHECK_ISSUER = "https://firebaseappcheck.googleapis.com/"
TOKEN_TYPE = "JWT"


def parse_bearer(authorization_header: Optional[str]) -> Optional[str]:
    """Extract the token from an ``Authorization: Bearer <token>`` value."""
    if not authorization_header:
        return None

    parts = authorization_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    return parts[1]


def parse_token(token: Any) -> TokenSegments:
    """Split a compact JWS into its unverified header and payload."""
    if not isinstance(token, str) or not token:
        raise MalformedToken("The provided App Check token must be a non-empty string")
    if token.count(".") != 2:
        raise MalformedToken("The provided App Check token must have three segments")

    try:
        header = jws.get_unverified_header(token)
        payload = json.loads(jws.get_unverified_claims(token))
    except (JWSError, ValueError, RecursionError) as e:
        raise MalformedToken(details={"error": str(e)}) from e

    if not isinstance(payload, dict):
        raise MalformedToken("The provided App Check token payload must be a JSON object")

    return TokenSegments(header=header, payload=payload)


def decode_claims(payload: Dict[str, Any]) -> AppCheckClaims:
    """Decode the payload into typed claims, raising ``InvalidClaims`` on any mismatch."""
    try:
        return AppCheckClaims.model_validate(payload)
    except ValidationError as e:
        fields = sorted({".".join(str(part) for part in error["loc"]) for error in e.errors()})
        raise InvalidClaims(
            "The provided App Check token has missing or mistyped claims",
            details={"fields": fields},
        ) from e


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and math.isfinite(value)


class TokenValidator:
    """Verifies App Check tokens for one project.

    The validator holds no mutable state; one instance may serve any number
    of concurrent ``verify_token`` calls.
    """

    def __init__(
        self,
        project_id: str,
        key_source: KeySource,
        *,
        leeway_seconds: int = 0,
        allow_missing_token_type: bool = False,
        metrics: Optional[AppCheckMetrics] = None,
        clock: Callable[[], float] = time.time,
    ):
        if not project_id:
            raise ValueError("A project ID must be specified to verify App Check tokens")

        self.project_id = project_id
        self.scoped_project_id = "projects/" + project_id
        self.key_source = key_source
        self.leeway_seconds = leeway_seconds
        self.allow_missing_token_type = allow_missing_token_type
        self.metrics = metrics or get_metrics()
        self.logger = get_logger("appcheck.validator")
        self._clock = clock

    async def verify_token(self, token: str) -> VerifiedToken:
        """Verify ``token`` and return its claims.

        Raises a subclass of ``AppCheckError`` describing the first failed check.
        """
        try:
            verified = await self._verify(token)
        except AppCheckError as e:
            self.metrics.record_verification(e.code)
            self.logger.warning("App Check token rejected", code=e.code, reason=e.message)
            raise

        self.metrics.record_verification("valid")
        self.logger.debug("App Check token verified", app_id=verified.app_id)
        return verified

    async def _verify(self, token: str) -> VerifiedToken:
        segments = parse_token(token)
        self._check_header(segments.header)

        key = await self.key_source.get_key(segments.header["kid"])
        self._check_signature(token, key)
        self._check_lifetime(segments.payload)

        claims = decode_claims(segments.payload)
        self._check_audience(claims)
        self._check_issuer(claims)
        self._check_subject(claims)

        return VerifiedToken.from_claims(claims)

    def _check_header(self, header: Dict[str, Any]) -> None:
        # RS256 only, whatever the key set or token advertises.
        algorithm = header.get("alg")
        if algorithm != SIGNING_ALGORITHM:
            raise IncorrectAlgorithm(
                "The provided App Check token has an incorrect alg header. "
                f"Expected {SIGNING_ALGORITHM} but got {algorithm!r}."
            )

        if "typ" in header or not self.allow_missing_token_type:
            if header.get("typ") != TOKEN_TYPE:
                raise IncorrectTokenType(details={"typ": str(header.get("typ"))})

        kid = header.get("kid")
        if not isinstance(kid, str) or not kid:
            raise UnknownKey("The provided App Check token has no kid header")

    def _check_signature(self, token: str, key: Key) -> None:
        try:
            jws.verify(token, key, algorithms=[SIGNING_ALGORITHM])
        except JWSError as e:
            raise InvalidSignature() from e

    def _check_lifetime(self, payload: Dict[str, Any]) -> None:
        now = self._clock()

        expires_at = payload.get("exp")
        if not _is_number(expires_at):
            raise InvalidClaims('The provided App Check token has a missing or non-numeric "exp" claim')
        if now >= expires_at + self.leeway_seconds:
            raise TokenExpired(details={"exp": expires_at})

        issued_at = payload.get("iat")
        if _is_number(issued_at) and issued_at > now + self.leeway_seconds:
            raise InvalidClaims("The provided App Check token was used before it was issued")

        not_before = payload.get("nbf")
        if _is_number(not_before) and now < not_before - self.leeway_seconds:
            raise InvalidClaims("The provided App Check token is not yet valid")

    def _check_audience(self, claims: AppCheckClaims) -> None:
        if self.scoped_project_id not in claims.aud:
            raise IncorrectAudience(
                'The provided App Check token has an incorrect "aud" (audience) claim. '
                f"Expected payload to include {self.scoped_project_id}."
            )

    def _check_issuer(self, claims: AppCheckClaims) -> None:
        # Only the prefix is checked. The project number suffix is not known
        # here, since the validator is configured with a project id.
        if not claims.iss.startswith(APP_CHECK_ISSUER):
            raise IncorrectIssuer(
                'The provided App Check token has an incorrect "iss" (issuer) claim. '
                f"Expected claim to start with {APP_CHECK_ISSUER}."
            )

    def _check_subject(self, claims: AppCheckClaims) -> None:
        if claims.sub is None or not claims.sub.strip():
            raise EmptySubject()
