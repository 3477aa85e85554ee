"""
Identity-provider token verification.

The auth provider issues signed JWTs; this service only verifies them. HS256
tokens are checked against a shared secret, RS256 tokens against the
provider's public key.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import jwt

from ibetu.config import get_settings

_public_key: str | None = None


def _verification_key() -> str:
    """Return the key used to verify provider tokens (public key cached after first read)."""
    global _public_key  # noqa: PLW0603
    settings = get_settings()
    if settings.auth_jwt_algorithm.startswith("HS"):
        return settings.auth_jwt_secret
    if _public_key is None:
        _public_key = Path(settings.auth_jwt_public_key_path).read_text()
    return _public_key


def reset_keys() -> None:
    """Reset the cached public key (useful for testing)."""
    global _public_key  # noqa: PLW0603
    _public_key = None


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify and decode an identity-provider JWT.

    Returns:
        Decoded claims. ``sub`` is guaranteed to be a non-empty string.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or has no subject.
    """
    settings = get_settings()
    options: dict[str, Any] = {"require": ["sub", "exp"]}
    kwargs: dict[str, Any] = {}
    if settings.auth_jwt_issuer:
        kwargs["issuer"] = settings.auth_jwt_issuer
    if settings.auth_jwt_audience:
        kwargs["audience"] = settings.auth_jwt_audience
    else:
        options["verify_aud"] = False

    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            _verification_key(),
            algorithms=[settings.auth_jwt_algorithm],
            options=options,
            **kwargs,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if not isinstance(payload.get("sub"), str) or not payload["sub"]:
        msg = "Token has no subject"
        raise jwt.InvalidTokenError(msg)
    return payload
