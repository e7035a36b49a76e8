"""
Configuration for the App Check verifier.
"""

import httpx
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWKS_URL = "https://firebaseappcheck.googleapis.com/v1/jwks"


class AppCheckSettings(BaseSettings):
    """Settings consumed by ``AppCheckClient``.

    Values come from keyword arguments first, then ``APPCHECK_*`` environment
    variables, then a local ``.env`` file.
    """

    model_config = SettingsConfigDict(
        env_prefix="APPCHECK_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    project_id: str
    jwks_url: str = DEFAULT_JWKS_URL

    # Firebase recommends caching the public keys for up to 6 hours.
    jwks_refresh_interval: float = Field(default=21600.0, gt=0)
    jwks_refresh_rate_limit: float = Field(default=60.0, ge=0)
    http_timeout: float = Field(default=10.0, gt=0)
    init_timeout: float = Field(default=30.0, gt=0)

    leeway_seconds: int = Field(default=0, ge=0)
    allow_missing_token_type: bool = False

    @field_validator("project_id")
    @classmethod
    def _project_id_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError(
                "A project ID must be specified to verify App Check tokens"
            )
        return value

    @field_validator("jwks_url")
    @classmethod
    def _jwks_url_is_http(cls, value: str) -> str:
        return validate_jwks_url(value)


def validate_jwks_url(value: str) -> str:
    """Return ``value`` if it is an absolute http(s) URL with a usable host and port."""
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL as e:
        raise ValueError(f"jwks_url is not a valid URL: {e}") from e

    if url.scheme not in ("http", "https") or not url.host:
        raise ValueError("jwks_url must be an absolute http(s) URL")
    if url.port is not None and not 0 < url.port <= 65535:
        raise ValueError("jwks_url port must be between 1 and 65535")
    return value


def get_settings(**overrides) -> AppCheckSettings:
    """Build settings from the environment plus explicit overrides."""
    return AppCheckSettings(**overrides)
