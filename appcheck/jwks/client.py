"""
JWKS client for the App Check public signing keys.
"""

import asyncio
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, Tuple

import httpx
from jose import jwk
from jose.backends.base import Key
from jose.exceptions import JWKError

from ..config import validate_jwks_url
from ..errors import KeySourceUnavailable, UnknownKey
from ..logging import get_logger
from ..metrics import AppCheckMetrics, get_metrics

SIGNING_ALGORITHM = "RS256"

logger = get_logger("appcheck.jwks")


class KeySource(Protocol):
    """Resolves a key id to public key material."""

    async def get_key(self, kid: str) -> Key:
        ...

    async def close(self) -> None:
        ...

    async def check_health(self) -> str:
        ...


@dataclass(frozen=True)
class KeySnapshot:
    """Immutable view of one fetched key set."""

    keys: Mapping[str, Key]
    fetched_at: float


def keys_from_jwks(document: Any) -> Dict[str, Key]:
    """Build a ``kid -> Key`` map from a JWKS document.

    Entries that are not RSA signing keys usable with RS256 are skipped.
    Raises ``KeySourceUnavailable`` when the document is not a key set or
    holds no usable key.
    """
    if not isinstance(document, dict) or not isinstance(document.get("keys"), list):
        raise KeySourceUnavailable("JWKS response missing 'keys' array")

    keys: Dict[str, Key] = {}
    for entry in document["keys"]:
        if not isinstance(entry, dict):
            continue
        kid = entry.get("kid")
        if not isinstance(kid, str) or not kid:
            logger.warning("Skipping JWK without kid")
            continue
        if entry.get("kty") != "RSA" or entry.get("use", "sig") != "sig":
            logger.warning("Skipping non RSA signing JWK", kid=kid, kty=entry.get("kty"))
            continue
        if entry.get("alg", SIGNING_ALGORITHM) != SIGNING_ALGORITHM:
            logger.warning("Skipping JWK with unsupported alg", kid=kid, alg=entry.get("alg"))
            continue

        try:
            keys[kid] = jwk.construct(entry, algorithm=SIGNING_ALGORITHM)
        except (JWKError, TypeError, ValueError) as e:
            logger.warning("Skipping unparseable JWK", kid=kid, error=str(e))

    if not keys:
        raise KeySourceUnavailable("JWKS contains no usable RS256 signing keys")
    return keys


class JWKSKeySource:
    """Fetches and caches the App Check JWKS.

    Use ``await JWKSKeySource.create(url)``; the factory performs the initial
    fetch so a source handed to a validator always holds keys.
    """

    def __init__(
        self,
        jwks_url: str,
        *,
        refresh_interval: float = 21600.0,
        refresh_rate_limit: float = 60.0,
        http_timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[AppCheckMetrics] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.jwks_url = validate_jwks_url(jwks_url)
        self.refresh_interval = refresh_interval
        self.refresh_rate_limit = refresh_rate_limit
        self.metrics = metrics or get_metrics()
        self.logger = get_logger("appcheck.jwks")
        self._clock = clock

        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=http_timeout)

        self._snapshot: Optional[KeySnapshot] = None
        self._lock = asyncio.Lock()
        self._refreshes = 0
        self._last_attempt_at: Optional[float] = None
        self._last_error: Optional[KeySourceUnavailable] = None

    @classmethod
    async def create(
        cls,
        jwks_url: str,
        *,
        init_timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> "JWKSKeySource":
        """Construct a source and load the key set, failing if that is impossible.

        The source is closed on every failure. A timeout surfaces as
        ``KeySourceUnavailable``; cancellation propagates ``CancelledError``.
        """
        source = cls(jwks_url, **kwargs)
        try:
            await asyncio.wait_for(source.refresh(), init_timeout)
        except asyncio.TimeoutError as e:
            await source.close()
            raise KeySourceUnavailable(
                "Timed out fetching App Check signing keys",
                details={"jwks_url": jwks_url, "timeout": init_timeout},
            ) from e
        except BaseException:
            await source.close()
            raise
        return source

    @property
    def snapshot(self) -> Optional[KeySnapshot]:
        return self._snapshot

    @property
    def key_ids(self) -> Tuple[str, ...]:
        if self._snapshot is None:
            return ()
        return tuple(sorted(self._snapshot.keys))

    async def close(self) -> None:
        """Close the underlying HTTP client if this source created it."""
        if self._owns_client:
            await self._client.aclose()

    async def refresh(self) -> KeySnapshot:
        """Unconditionally fetch the key set and swap it in."""
        async with self._lock:
            return await self._refresh_locked()

    async def get_key(self, kid: str) -> Key:
        """Return the key for ``kid``, refreshing at most once on a miss."""
        snapshot = self._snapshot
        if snapshot is None:
            raise KeySourceUnavailable("JWKS has not been loaded")

        if self._is_stale(snapshot) and self._may_refresh():
            try:
                snapshot = await self._refresh_once(self._refreshes)
            except KeySourceUnavailable:
                self.logger.warning("Using stale JWKS cache due to fetch failure")
                snapshot = self._snapshot or snapshot
            key = snapshot.keys.get(kid)
            if key is None:
                self.logger.warning("Key not found", kid=kid)
                raise UnknownKey(details={"kid": kid})
            return key

        key = snapshot.keys.get(kid)
        if key is not None:
            return key

        if not self._may_refresh():
            self.logger.warning("Key not found, JWKS refresh rate limited", kid=kid)
            raise UnknownKey(details={"kid": kid})

        # Key might be rotated; refresh once.
        snapshot = await self._refresh_once(self._refreshes)
        key = snapshot.keys.get(kid)
        if key is None:
            self.logger.warning("Key not found after JWKS refresh", kid=kid)
            raise UnknownKey(details={"kid": kid})
        return key

    async def check_health(self) -> str:
        """Return 'ok' if a usable key set is cached or can be fetched, otherwise 'error'."""
        snapshot = self._snapshot
        if snapshot is not None and not self._is_stale(snapshot):
            return "ok"
        try:
            await self.refresh()
            return "ok"
        except KeySourceUnavailable as e:
            self.logger.error("JWKS health check failed", error=e.message)
            return "error"

    def _is_stale(self, snapshot: KeySnapshot) -> bool:
        return self._clock() - snapshot.fetched_at >= self.refresh_interval

    def _may_refresh(self) -> bool:
        if self._last_attempt_at is None:
            return True
        return self._clock() - self._last_attempt_at >= self.refresh_rate_limit

    async def _refresh_once(self, seen: int) -> KeySnapshot:
        """Refresh unless another task finished a refresh after ``seen`` was read."""
        async with self._lock:
            if self._refreshes != seen:
                if self._last_error is not None:
                    raise KeySourceUnavailable(
                        self._last_error.message, details=dict(self._last_error.details)
                    )
                return self._snapshot
            return await self._refresh_locked()

    async def _refresh_locked(self) -> KeySnapshot:
        self._last_attempt_at = self._clock()
        try:
            with self.metrics.time_jwks_refresh():
                keys = await self._fetch_keys()
        except KeySourceUnavailable as e:
            self._refreshes += 1
            self._last_error = e
            self.metrics.record_jwks_refresh("failure")
            self.logger.error("Failed to fetch JWKS", jwks_url=self.jwks_url, error=e.message)
            raise

        snapshot = KeySnapshot(keys=MappingProxyType(keys), fetched_at=self._clock())
        self._snapshot = snapshot
        self._refreshes += 1
        self._last_error = None
        self.metrics.record_jwks_refresh("success")
        self.logger.info("JWKS refreshed successfully", keys_count=len(keys))
        return snapshot

    async def _fetch_keys(self) -> Dict[str, Key]:
        try:
            response = await self._client.get(
                self.jwks_url, headers={"Accept": "application/json"}
            )
            response.raise_for_status()
            document = response.json()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise KeySourceUnavailable(
                "Unable to fetch App Check signing keys",
                details={"jwks_url": self.jwks_url, "error": str(e)},
            ) from e
        except ValueError as e:
            raise KeySourceUnavailable(
                "App Check JWKS response is not valid JSON",
                details={"jwks_url": self.jwks_url},
            ) from e

        return keys_from_jwks(document)


class StaticKeySource:
    """Key source over a fixed JWKS document. Never refreshes."""

    def __init__(self, document: Dict[str, Any]) -> None:
        self._keys = MappingProxyType(keys_from_jwks(document))

    @property
    def key_ids(self) -> Tuple[str, ...]:
        return tuple(sorted(self._keys))

    async def get_key(self, kid: str) -> Key:
        key = self._keys.get(kid)
        if key is None:
            raise UnknownKey(details={"kid": kid})
        return key

    async def check_health(self) -> str:
        return "ok"

    async def close(self) -> None:
        return None
