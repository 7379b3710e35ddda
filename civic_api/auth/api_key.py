"""API key authentication with prefix+digest lookup across both identity spaces."""

import hashlib
import hmac
import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import APIKeyHeader
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from civic_api.db.session import get_db
from civic_api.identity.actor import Actor, actor_from_account, actor_from_staff
from civic_api.models import Account, Staff
from civic_api.settings import get_settings

api_key_header = APIKeyHeader(name="x-api-key", auto_error=False)
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
settings = get_settings()

KEY_PREFIX_LENGTH = 8


def compute_key_prefix(raw_key: str) -> str:
    """Compute prefix (first 8 chars) of API key."""
    return raw_key[:KEY_PREFIX_LENGTH] if len(raw_key) >= KEY_PREFIX_LENGTH else raw_key


def compute_key_digest(raw_key: str) -> str:
    """Compute HMAC-SHA256 digest of API key."""
    secret = settings.secret_key.encode()
    return hmac.new(secret, raw_key.encode(), hashlib.sha256).hexdigest()


def generate_api_key() -> str:
    return f"civ_{secrets.token_urlsafe(32)}"


def assign_api_key(holder, raw_key: Optional[str] = None) -> str:
    """Store prefix and digest of a key on an Account or Staff row and return the raw key."""
    raw_key = raw_key or generate_api_key()
    holder.key_prefix = compute_key_prefix(raw_key)
    holder.key_digest = compute_key_digest(raw_key)
    return raw_key


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def _match(model, db: Session, prefix: str, digest: str):
    candidates = (
        db.query(model)
        .filter(
            model.key_prefix == prefix,
            model.is_active == True,  # noqa: E712
        )
        .all()
    )
    for candidate in candidates:
        # Constant-time comparison of digest
        if candidate.key_digest and hmac.compare_digest(candidate.key_digest, digest):
            return candidate
    return None


def get_actor_by_api_key(db: Session, api_key: str) -> Optional[Actor]:
    """Resolve an API key to a staff or public-account actor."""
    if not api_key or len(api_key) < KEY_PREFIX_LENGTH:
        return None

    prefix = compute_key_prefix(api_key)
    digest = compute_key_digest(api_key)

    staff = _match(Staff, db, prefix, digest)
    if staff:
        return actor_from_staff(staff)

    account = _match(Account, db, prefix, digest)
    if account:
        return actor_from_account(account)

    return None


async def get_current_actor(
    x_api_key: Optional[str] = Security(api_key_header),
    db: Session = Depends(get_db),
) -> Actor:
    """Get current actor from API key."""
    if not x_api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Provide x-api-key header.",
        )

    actor = get_actor_by_api_key(db, x_api_key)
    if not actor:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or revoked API key.",
        )

    return actor
