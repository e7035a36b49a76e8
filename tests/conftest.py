"""
Shared fixtures for App Check verifier tests.
"""

import base64
import hashlib
import hmac
import json
import time
from typing import Any, Callable, Dict, Optional, Tuple

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from jose import jwk, jws
from prometheus_client import CollectorRegistry

from appcheck.jwks.client import StaticKeySource
from appcheck.metrics import AppCheckMetrics

PROJECT_ID = "test-project"
KID = "key-2026-01"
ISSUER = "https://firebaseappcheck.googleapis.com/12345"


def b64u(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def private_pem(private_key: rsa.RSAPrivateKey) -> bytes:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def public_pem(private_key: rsa.RSAPrivateKey) -> bytes:
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def public_jwk(private_key: rsa.RSAPrivateKey, kid: str) -> Dict[str, Any]:
    entry = jwk.construct(public_pem(private_key), algorithm="RS256").to_dict()
    entry.update(use="sig", kid=kid)
    return entry


def encode_segments(header: Dict[str, Any], claims: Any) -> str:
    return b64u(json.dumps(header).encode()) + "." + b64u(json.dumps(claims).encode())


def sign_rs256_by_hand(private_key: rsa.RSAPrivateKey, header: Dict[str, Any], claims: Dict[str, Any]) -> str:
    """RS256 over an exact header; jose always adds ``typ``, so headers without one are built here."""
    signing_input = encode_segments(header, claims)
    signature = private_key.sign(signing_input.encode(), padding.PKCS1v15(), hashes.SHA256())
    return signing_input + "." + b64u(signature)


def sign_hs256_by_hand(secret: bytes, header: Dict[str, Any], claims: Dict[str, Any]) -> str:
    """HS256 with any secret; jose refuses PEM keys as HMAC secrets."""
    signing_input = encode_segments(header, claims)
    signature = hmac.new(secret, signing_input.encode(), hashlib.sha256).digest()
    return signing_input + "." + b64u(signature)


@pytest.fixture(scope="session")
def signing_key() -> rsa.RSAPrivateKey:
    """RSA key whose public half is published in the test JWKS."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def rogue_key() -> rsa.RSAPrivateKey:
    """RSA key that is not published anywhere."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def public_key_pem(signing_key) -> bytes:
    return public_pem(signing_key)


@pytest.fixture
def jwks_document(signing_key) -> Dict[str, Any]:
    return {"keys": [public_jwk(signing_key, KID)]}


@pytest.fixture
def metrics() -> AppCheckMetrics:
    """Metrics bound to a private registry."""
    return AppCheckMetrics(registry=CollectorRegistry())


@pytest.fixture
def key_source(jwks_document) -> StaticKeySource:
    return StaticKeySource(jwks_document)


@pytest.fixture
def valid_claims() -> Dict[str, Any]:
    now = int(time.time())
    return {
        "iss": ISSUER,
        "sub": "app-123",
        "aud": ["projects/12345", "projects/" + PROJECT_ID],
        "iat": now - 10,
        "exp": now + 3600,
    }


@pytest.fixture
def make_token(signing_key) -> Callable[..., str]:
    """Factory for RS256 tokens; override or drop header fields, or swap the key."""

    def _make(
        claims: Dict[str, Any],
        header: Optional[Dict[str, Any]] = None,
        key: Optional[rsa.RSAPrivateKey] = None,
        drop: Tuple[str, ...] = (),
    ) -> str:
        token_header = {"alg": "RS256", "typ": "JWT", "kid": KID}
        token_header.update(header or {})
        for name in drop:
            token_header.pop(name, None)
        if "typ" not in token_header:
            return sign_rs256_by_hand(key or signing_key, token_header, claims)
        return jws.sign(claims, private_pem(key or signing_key), headers=token_header, algorithm="RS256")

    return _make


@pytest.fixture
def make_hs256_token() -> Callable[..., str]:
    """Factory for HMAC-SHA256 tokens, used for algorithm confusion cases."""

    def _make(claims: Dict[str, Any], secret: bytes, header: Optional[Dict[str, Any]] = None) -> str:
        token_header = {"alg": "HS256", "typ": "JWT", "kid": KID}
        token_header.update(header or {})
        return sign_hs256_by_hand(secret, token_header, claims)

    return _make


@pytest.fixture
def make_jwk() -> Callable[[rsa.RSAPrivateKey, str], Dict[str, Any]]:
    return public_jwk


@pytest.fixture
def encode_unsigned() -> Callable[..., str]:
    """Build ``header.payload.`` style tokens with an arbitrary signature segment."""

    def _make(header: Dict[str, Any], claims: Any, signature: bytes = b"sig") -> str:
        return encode_segments(header, claims) + "." + b64u(signature)

    return _make
