"""JWT access token validation (ES256).

Tokens are issued by the auth service; this service only verifies them.
In prod the issuer's public key comes from JWT_PUBLIC_KEY (PEM).  Dev and
test builds generate an ephemeral EC key pair on import and can mint
their own tokens with ``create_access_token``.

Claims used here: ``sub`` (user UUID) and ``role`` (student, instructor
or admin), plus the standard iss/aud/exp/iat.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from academy.core.config import SETTINGS

ALGORITHM = "ES256"
ACCESS_TOKEN_TTL_MIN = 15

if SETTINGS.jwt_public_key:
    _private_key: ec.EllipticCurvePrivateKey | None = None
    _public_key = serialization.load_pem_public_key(
        SETTINGS.jwt_public_key.encode()
    )
else:
    _private_key = ec.generate_private_key(ec.SECP256R1())
    _public_key = _private_key.public_key()


def create_access_token(*, sub: str, role: str = "student") -> str:
    """Sign a token with the ephemeral dev key.

    Raises RuntimeError when a real public key is configured, since the
    matching private key lives only in the auth service.
    """
    if _private_key is None:
        raise RuntimeError("token issuance is disabled when JWT_PUBLIC_KEY is set")
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "role": role,
        "iss": SETTINGS.jwt_issuer,
        "aud": SETTINGS.jwt_audience,
        "exp": now + timedelta(minutes=ACCESS_TOKEN_TTL_MIN),
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins the algorithm to ES256 to rule out alg:none and alg switching.
    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=SETTINGS.jwt_issuer,
        audience=SETTINGS.jwt_audience,
        options={"require": ["sub", "exp", "iat"]},
    )
