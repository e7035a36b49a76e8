"""
App Check client: one key source and one validator per project.
"""

import time
from typing import Any, Callable, Optional

import httpx

from .config import AppCheckSettings, get_settings
from .jwks.client import JWKSKeySource, KeySource
from .logging import get_logger
from .metrics import AppCheckMetrics, get_metrics
from .validation.models import VerifiedToken
from .validation.token_validator import TokenValidator


class AppCheckClient:
    """Verifies App Check tokens for a configured project.

    Build it with ``await AppCheckClient.create(...)`` so the signing keys are
    loaded before the first token arrives::

        async with await AppCheckClient.create(project_id="my-project") as client:
            verified = await client.verify_token(token)
    """

    def __init__(
        self,
        settings: AppCheckSettings,
        key_source: KeySource,
        *,
        metrics: Optional[AppCheckMetrics] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.key_source = key_source
        self.logger = get_logger("appcheck.client")
        self.validator = TokenValidator(
            settings.project_id,
            key_source,
            leeway_seconds=settings.leeway_seconds,
            allow_missing_token_type=settings.allow_missing_token_type,
            metrics=metrics,
            clock=clock,
        )

    @classmethod
    async def create(
        cls,
        settings: Optional[AppCheckSettings] = None,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[AppCheckMetrics] = None,
        **overrides: Any,
    ) -> "AppCheckClient":
        """Load the signing keys and return a ready client.

        Keyword overrides are applied on top of ``settings`` (or the
        environment) and validated again. Raises ``KeySourceUnavailable`` if
        the key set cannot be fetched within ``settings.init_timeout``.
        """
        if settings is None:
            settings = get_settings(**overrides)
        elif overrides:
            settings = get_settings(**{**settings.model_dump(), **overrides})
        metrics = metrics or get_metrics()

        key_source = await JWKSKeySource.create(
            settings.jwks_url,
            init_timeout=settings.init_timeout,
            refresh_interval=settings.jwks_refresh_interval,
            refresh_rate_limit=settings.jwks_refresh_rate_limit,
            http_timeout=settings.http_timeout,
            http_client=http_client,
            metrics=metrics,
        )
        client = cls(settings, key_source, metrics=metrics)
        client.logger.info(
            "App Check client ready",
            project_id=settings.project_id,
            keys_count=len(key_source.key_ids),
        )
        return client

    async def verify_token(self, token: str) -> VerifiedToken:
        """Verify an App Check token. See ``TokenValidator.verify_token``."""
        return await self.validator.verify_token(token)

    async def check_health(self) -> str:
        """Return 'ok' when signing keys are available, otherwise 'error'."""
        return await self.key_source.check_health()

    async def close(self) -> None:
        await self.key_source.close()

    async def __aenter__(self) -> "AppCheckClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
