"""
Signed credentials for customer self-service links
"""

import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Optional

from jose import JWTError
from jose import jwt as jose_jwt

from .config import MANAGE_TOKEN_DAYS, SECRET_KEY

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
MANAGE_TOKEN_TYPE = "manage"


def generate_secure_token(length: int = 32) -> str:
    """Generate a cryptographically secure random token"""
    return secrets.token_urlsafe(length)


def create_jwt_token(data: dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a JWT token

    Args:
        data: Data to encode in the token
        expires_delta: Token expiration time (default 15 minutes)
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=15)

    to_encode.update({"exp": expire})
    return jose_jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def verify_jwt_token(token: str) -> Optional[dict[str, Any]]:
    """
    Verify and decode a JWT token

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jose_jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None


def create_manage_token(booking_id: str, days: int = MANAGE_TOKEN_DAYS) -> str:
    """Signed token bound to one booking; the nonce keeps tokens for the same booking distinct"""
    return create_jwt_token(
        {"bookingId": booking_id, "nonce": generate_secure_token(8), "type": MANAGE_TOKEN_TYPE},
        expires_delta=timedelta(days=days),
    )


def verify_manage_token(token: str) -> Optional[dict[str, Any]]:
    """Return the claims of a valid manage token, None for anything else"""
    payload = verify_jwt_token(token)
    if not payload:
        return None

    if payload.get("type") != MANAGE_TOKEN_TYPE or not payload.get("bookingId"):
        logger.warning("Token is not a manage token")
        return None

    return payload
