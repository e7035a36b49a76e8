"""
JWKS key source package.

Retrieves and caches the JSON Web Key Set published by the App Check
service and resolves signing keys by ``kid`` for the token validator.

Key points:
- The initial fetch happens at construction; an empty cache is never served.
- Keys are refreshed on a fixed interval and, rate limited, on unknown kids.
- A refresh swaps in a complete new snapshot; lookups never see a partial set.
"""

from .client import JWKSKeySource, KeySnapshot, KeySource, StaticKeySource, keys_from_jwks

__all__ = [
    "JWKSKeySource",
    "KeySnapshot",
    "KeySource",
    "StaticKeySource",
    "keys_from_jwks",
]
