"""
Data models for App Check token validation.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, field_validator

# 9999-12-31T23:59:59Z, the last second datetime can represent.
MAX_EPOCH_SECONDS = 253402300799


@dataclass(frozen=True)
class TokenSegments:
    """Unverified header and payload of a compact JWS."""

    header: Dict[str, Any]
    payload: Dict[str, Any]


class AppCheckClaims(BaseModel):
    """Typed claim set of an App Check token.

    Decoding is strict: no coercion between JSON types, so ``"123"`` is not
    accepted where a number is expected. ``sub`` may be absent here; the
    validator reports a missing subject separately.
    """

    model_config = ConfigDict(strict=True, frozen=True, extra="ignore", allow_inf_nan=False)

    iss: str
    sub: Optional[str] = None
    aud: List[str]
    exp: Union[int, float]
    iat: Union[int, float]

    @field_validator("exp", "iat", mode="before")
    @classmethod
    def _not_bool(cls, value: Any) -> Any:
        if isinstance(value, bool):
            raise ValueError("must be a number of seconds since the epoch")
        return value

    @field_validator("exp", "iat")
    @classmethod
    def _in_datetime_range(cls, value: Union[int, float]) -> Union[int, float]:
        if not 0 <= value <= MAX_EPOCH_SECONDS:
            raise ValueError("timestamp out of range")
        return value


def _to_datetime(seconds: Union[int, float]) -> datetime:
    return datetime.fromtimestamp(int(seconds), tz=timezone.utc)


@dataclass(frozen=True)
class VerifiedToken:
    """A successfully verified App Check token."""

    issuer: str
    subject: str
    audiences: Tuple[str, ...]
    expires_at: datetime
    issued_at: datetime
    app_id: str

    @classmethod
    def from_claims(cls, claims: AppCheckClaims) -> "VerifiedToken":
        # The App Check service encodes the app id as the subject.
        return cls(
            issuer=claims.iss,
            subject=claims.sub,
            audiences=tuple(claims.aud),
            expires_at=_to_datetime(claims.exp),
            issued_at=_to_datetime(claims.iat),
            app_id=claims.sub,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the field names shared by the Firebase Admin SDKs."""
        return {
            "iss": self.issuer,
            "sub": self.subject,
            "aud": list(self.audiences),
            "exp": int(self.expires_at.timestamp()),
            "iat": int(self.issued_at.timestamp()),
            "app_id": self.app_id,
        }
