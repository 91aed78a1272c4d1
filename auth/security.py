"""
Identity token utilities.

Callers authenticate with a bearer JWT issued by the identity provider. The
token's ``sub`` claim is the external identity id (``open_id``); ``name``,
``email`` and ``loginMethod`` are optional profile claims.
"""
from datetime import datetime, timedelta
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from fastapi.security import HTTPBearer

import config

# Missing credentials are reported by the dependencies as 401, not by the scheme
security = HTTPBearer(auto_error=False)


def create_access_token(
    data: Dict[str, Any],
    secret_key: Optional[str] = None,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a signed identity token.

    Args:
        data: Claims to encode (must include "sub")
        secret_key: Secret key for signing (defaults to SECRET_KEY)
        expires_delta: Optional expiration time

    Returns:
        Encoded JWT token
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({
        "exp": expire,
        "iat": datetime.utcnow(),
        "type": "access"
    })
    return jwt.encode(to_encode, secret_key or config.SECRET_KEY, algorithm=config.ALGORITHM)


def decode_access_token(token: str, secret_key: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Decode and verify an identity token.

    Args:
        token: JWT token string
        secret_key: Secret key for verification (defaults to SECRET_KEY)

    Returns:
        Decoded claims, or None if the token is invalid, expired or has no subject
    """
    try:
        payload = jwt.decode(token, secret_key or config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        return None
    # Tokens from the identity provider may omit "type"; reject any other token kind
    if payload.get("type", "access") != "access":
        return None
    if not payload.get("sub"):
        return None
    return payload
