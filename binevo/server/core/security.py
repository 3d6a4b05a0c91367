"""
Security primitives: password hashing, session tokens, PII encryption and
random token generation.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional

import bcrypt
import jwt
from cryptography.fernet import Fernet, InvalidToken

from binevo.core.database.base import utc_now
from binevo.core.logging_config import get_logger

from .config import settings

logger = get_logger(__name__)

JWT_ALGORITHM = "HS256"
BCRYPT_ROUNDS = 12


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


def create_access_token(
    user_id: str,
    *,
    role: str,
    ngo_id: Optional[str] = None,
    plan: Optional[str] = None,
    expires_minutes: Optional[int] = None,
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """Sign a session token.

    Only ``sub`` is trusted on the way back in; the user row is re-read on
    every request so role or NGO changes take effect immediately.
    """
    now = utc_now()
    expires = now + timedelta(minutes=expires_minutes or settings.access_token_expire_minutes)
    payload: Dict[str, Any] = {
        "sub": user_id,
        "role": role,
        "ngo_id": ngo_id,
        "plan": plan,
        "iat": now,
        "exp": expires,
    }
    if extra_claims:
        payload.update(extra_claims)
    return jwt.encode(payload, settings.secret_key, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Return the token claims, or None if the token is invalid or expired."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        logger.debug(f"Rejected session token: {e}")
        return None


def _fernet() -> Fernet:
    secret = settings.encryption_key or settings.secret_key
    try:
        return Fernet(secret.encode("utf-8"))
    except ValueError:
        # Not a Fernet key: derive one from the secret
        digest = hashlib.sha256(secret.encode("utf-8")).digest()
        return Fernet(base64.urlsafe_b64encode(digest))


def encrypt_pii(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return _fernet().encrypt(value.encode("utf-8")).decode("utf-8")


def decrypt_pii(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    try:
        return _fernet().decrypt(value.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        logger.warning("Could not decrypt a PII value; the encryption key may have changed")
        return None


def generate_token(num_bytes: int = 32) -> str:
    """Random hex token (``num_bytes`` of entropy)."""
    return secrets.token_hex(num_bytes)


def generate_api_token() -> str:
    return f"ngo_{generate_token(32)}"


def mask_token(token: str) -> str:
    return f"{token[:12]}...{token[-4:]}"
