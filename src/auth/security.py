"""Access token handling.

Tokens are issued by the identity service; this service only verifies them.
``create_access_token`` exists for local development and tests.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from src.config.settings import get_settings


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token.

    Args:
        data: Payload data (typically {"sub": user_id, "role": role})
        expires_delta: Token lifetime (default from settings)

    Returns:
        Encoded JWT string
    """
    settings = get_settings()

    to_encode = data.copy()
    now = datetime.now(UTC)
    expire = now + (
        expires_delta or timedelta(minutes=settings.auth_access_token_expire_minutes)
    )
    to_encode.update({"exp": expire, "iat": now, "type": "access"})

    return jwt.encode(
        to_encode,
        settings.auth_secret_key,
        algorithm=settings.auth_algorithm,
    )


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate an access token.

    Validates:
    - JWT signature
    - Expiration time
    - Token type == "access"
    - Presence of the sub and role claims

    Raises:
        JWTError: If token is invalid, expired, or wrong type
    """
    settings = get_settings()

    payload = jwt.decode(
        token,
        settings.auth_secret_key,
        algorithms=[settings.auth_algorithm],
    )

    if payload.get("type") != "access":
        msg = "Invalid token type: expected 'access'"
        raise JWTError(msg)

    if not payload.get("sub") or not payload.get("role"):
        msg = "Token missing sub or role claim"
        raise JWTError(msg)

    return payload
