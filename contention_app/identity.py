"""
Synthetic identity pool and bearer-token minting.

The pool is built once per run during setup.  Identity ``i`` (1-indexed)
always maps to the same seeded account, ``test{i}@test.com`` /
``PerfUser{i}``, so repeated runs hit the same rows in the target database.

Tokens are HS256-signed JWTs.  The backend decodes its configured secret
as base64 before using it as the HMAC key, so the minting side does the
same; a secret that does not decode is rejected at setup.

Key Concepts Demonstrated:
- HMAC-SHA256 signing with PyJWT
- Canonical JWT claims (iat, exp) alongside custom identity claims
- Fail-fast validation before any virtual user starts
"""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from contention_app.errors import ConfigurationError
from contention_app.models import Identity

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_EXPIRY_SECONDS = 3600


def identity_claims(user_id: int) -> dict[str, Any]:
    """Return the deterministic claim set for seeded user *user_id*."""
    return {
        "id": user_id,
        "email": f"test{user_id}@test.com",
        "nickname": f"PerfUser{user_id}",
    }


def decode_secret(secret: str) -> bytes:
    """
    Decode a base64 signing secret into raw HMAC key bytes.

    Raises:
        ConfigurationError: If *secret* is blank or not valid base64.
    """
    if not secret or not secret.strip():
        raise ConfigurationError("JWT secret is required to mint credentials.")
    try:
        return base64.b64decode(secret.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ConfigurationError("JWT secret must be base64-encoded.") from exc


def mint_token(
    claims: dict[str, Any],
    secret: str,
    expiry_seconds: int = DEFAULT_TOKEN_EXPIRY_SECONDS,
) -> str:
    """
    Create an HS256-signed JWT for one synthetic identity.

    Args:
        claims: Identity claims (``id``, ``email``, ``nickname``).
        secret: Base64-encoded HMAC key shared with the target backend.
        expiry_seconds: Token lifetime from *now*.

    Returns:
        A compact JWS string for the ``Authorization: Bearer`` header.
    """
    key = decode_secret(secret)
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = dict(claims)
    payload["iat"] = int(now.timestamp())
    payload["exp"] = int((now + timedelta(seconds=int(expiry_seconds))).timestamp())
    return jwt.encode(payload, key, algorithm="HS256")


def build_identity_pool(
    pool_size: int,
    secret: str | None,
    mint: Callable[[dict[str, Any], str], str] = mint_token,
) -> Sequence[Identity]:
    """
    Build the run's identity pool.

    Args:
        pool_size: Number of identities to create; ids run ``1..pool_size``.
        secret: Signing secret handed to *mint*.
        mint: Credential minting collaborator, ``mint(claims, secret)``.

    Returns:
        An immutable tuple of identities, index ``i`` holding user ``i + 1``.

    Raises:
        ConfigurationError: If *pool_size* is not positive or *secret* is
            missing.
    """
    if not secret or not str(secret).strip():
        raise ConfigurationError("JWT secret is required to build the identity pool.")
    if int(pool_size) <= 0:
        raise ConfigurationError(f"pool size must be positive, got {pool_size}")

    identities = []
    for user_id in range(1, int(pool_size) + 1):
        claims = identity_claims(user_id)
        identities.append(
            Identity(
                id=user_id,
                display_name=claims["nickname"],
                email=claims["email"],
                credential=mint(claims, secret),
            )
        )

    logger.info("Minted credentials for %s users (userId 1~%s)", pool_size, pool_size)
    return tuple(identities)


def identity_for(pool: Sequence[Identity], vu_index: int) -> Identity:
    """Resolve the identity a VU uses; VUs beyond the pool size cycle."""
    return pool[(vu_index - 1) % len(pool)]
