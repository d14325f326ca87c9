"""Password hashing and session tokens for the SQL gateway."""
from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from passlib.context import CryptContext

import config

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS = "access"
REFRESH = "refresh"


def _prepare_password(password: str) -> str:
    """Bcrypt has a 72-byte limit. Pre-hash longer passwords with SHA256."""
    encoded = password.encode("utf-8")
    if len(encoded) > 72:
        return hashlib.sha256(encoded).hexdigest()
    return password


def hash_password(password: str) -> str:
    return pwd_context.hash(_prepare_password(password))


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(_prepare_password(plain), hashed)


def create_token(
    account_id: str,
    session_id: str,
    token_type: str,
    now: Optional[datetime] = None,
) -> tuple[str, int]:
    """Return ``(token, expires_at)`` for an access or refresh token."""
    now = now or datetime.now(timezone.utc)
    if token_type == ACCESS:
        expire = now + timedelta(minutes=config.ACCESS_TOKEN_MINUTES)
    else:
        expire = now + timedelta(days=config.REFRESH_TOKEN_DAYS)
    payload = {"sub": account_id, "sid": session_id, "type": token_type, "exp": expire}
    token = jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)
    return token, int(expire.timestamp())


def decode_token(token: str, token_type: str, verify_exp: bool = True) -> dict:
    """Decode and check the token type. Raises ``jwt.InvalidTokenError`` (incl. expiry)."""
    payload = jwt.decode(
        token,
        config.JWT_SECRET,
        algorithms=[config.JWT_ALGORITHM],
        options={"verify_exp": verify_exp},
    )
    if payload.get("type") != token_type or not payload.get("sub") or not payload.get("sid"):
        raise jwt.InvalidTokenError("Unexpected token type")
    return payload


def token_expiry(token: str) -> Optional[int]:
    """Read ``exp`` without verifying the signature. Works for hosted-backend tokens too."""
    try:
        payload = jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
    except jwt.InvalidTokenError:
        return None
    exp = payload.get("exp")
    return int(exp) if exp is not None else None
