"""Bearer token verification (ES256).

Tokens are minted by the identity provider; this service only checks the
signature, issuer, audience and expiry and turns the claims into a
Principal.

The verifying key is the provider's public key from JWT_PUBLIC_KEY.  Outside
prod the variable may be left unset: an ephemeral key pair is generated per
process and issue_access_token() signs with it for local runs, the demo
script and tests.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from completion_service.core.config import SETTINGS, Settings
from completion_service.models.principal import Principal

ALGORITHM = "ES256"
DEFAULT_TTL_MINUTES = 15
_REQUIRED_CLAIMS = ["sub", "exp", "iat", "jti"]


@dataclass(frozen=True)
class TokenKeys:
    verifying_key: ec.EllipticCurvePublicKey
    # None when verifying the provider's tokens; only ephemeral keys sign.
    signing_key: ec.EllipticCurvePrivateKey | None = None


def load_keys(settings: Settings) -> TokenKeys:
    """Raises ValueError when prod has no provider key or the PEM is unusable."""
    if settings.jwt_public_key:
        try:
            key = serialization.load_pem_public_key(settings.jwt_public_key.encode())
        except ValueError:
            raise ValueError("JWT_PUBLIC_KEY is not a valid PEM public key") from None
        if not isinstance(key, ec.EllipticCurvePublicKey):
            raise ValueError("JWT_PUBLIC_KEY must be an EC key for ES256")
        return TokenKeys(verifying_key=key)
    if settings.is_prod:
        raise ValueError("JWT_PUBLIC_KEY is required when APP_ENV=prod")
    private_key = ec.generate_private_key(ec.SECP256R1())
    return TokenKeys(verifying_key=private_key.public_key(), signing_key=private_key)


_keys = load_keys(SETTINGS)
ISSUER = SETTINGS.jwt_issuer
AUDIENCE = SETTINGS.jwt_audience


def issue_access_token(
    subject: str,
    roles: list[str] | None = None,
    *,
    ttl_minutes: int = DEFAULT_TTL_MINUTES,
) -> str:
    if _keys.signing_key is None:
        raise RuntimeError("tokens are issued by the identity provider")
    issued = datetime.now(UTC)
    claims = {
        "sub": subject,
        "roles": roles if roles is not None else ["student"],
        "iss": ISSUER,
        "aud": AUDIENCE,
        "iat": issued,
        "exp": issued + timedelta(minutes=ttl_minutes),
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, _keys.signing_key, algorithm=ALGORITHM)


def verify_access_token(token: str) -> Principal:
    """Raises jwt.ExpiredSignatureError or jwt.InvalidTokenError.

    The algorithm list is pinned so an unsigned or HMAC token is refused.
    """
    claims = jwt.decode(
        token,
        _keys.verifying_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": _REQUIRED_CLAIMS},
    )
    roles = claims.get("roles") or []
    if not isinstance(roles, list):
        raise jwt.InvalidTokenError("roles claim must be a list")
    return Principal(subject=str(claims["sub"]), roles=frozenset(map(str, roles)))
