"""
Central security module.  All cryptographic primitives and auth guards live
here.  No other module should touch raw crypto directly.

Responsibilities
----------------
1. Password hashing / verification          (passlib pbkdf2_sha256)
2. JWT creation / decoding                  (PyJWT / HS256)
3. Password-reset tokens                    (secrets + SHA-256)
4. FastAPI dependency guards                (get_current_user, require_roles)
"""

import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Optional

import jwt as _jwt        # PyJWT
from passlib.hash import pbkdf2_sha256 as _pbkdf2  # pure Python, no binary deps
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from core.config import settings
from core.errors import AuthenticationError, AuthorizationError
from core.timeutil import utcnow
from database import get_db
from models.user import Role, User

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# 1.  pbkdf2_sha256 – password hashing
# ---------------------------------------------------------------------------
# The salt is embedded in the passlib hash string, so a single column holds
# everything needed for verification.
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Hash a plaintext password with PBKDF2-SHA256 (``password_hash_rounds``)."""
    return _pbkdf2.using(rounds=settings.password_hash_rounds).hash(plain)


def verify_password(plain: str, stored_hash: str) -> bool:
    """
    Constant-time verification of a plaintext password against a
    pbkdf2_sha256 hash produced by :func:`hash_password`.
    """
    try:
        return _pbkdf2.verify(plain, stored_hash)
    except ValueError:
        # Not a pbkdf2_sha256 hash at all – treat as a mismatch
        return False


# ---------------------------------------------------------------------------
# 2.  JWT – access tokens
# ---------------------------------------------------------------------------


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    """
    Sign a JWT with HS256 identifying *user_id*.
    An ``exp`` claim is added automatically.
    """
    expire = utcnow() + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    payload = {"sub": str(user_id), "user_id": user_id, "exp": expire}
    return _jwt.encode(payload, settings.secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decode and verify a JWT.  Raises 401 on any failure (expired,
    bad signature, malformed, missing subject).
    """
    try:
        payload = _jwt.decode(token, settings.secret_key, algorithms=[_ALGORITHM])
    except _jwt.ExpiredSignatureError:
        raise AuthenticationError("Token has expired, please log in again")
    except _jwt.InvalidTokenError:
        raise AuthenticationError("Invalid token, please log in again")

    if not isinstance(payload.get("user_id"), int):
        raise AuthenticationError("Invalid token, please log in again")
    return payload


# ---------------------------------------------------------------------------
# 3.  Password-reset tokens
# ---------------------------------------------------------------------------
# The raw token travels to the user once (inside the reset link); only the
# digest is persisted, so a leaked users table does not leak usable links.


def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def create_password_reset_token() -> tuple[str, str, datetime]:
    """
    Returns
    -------
    raw_token  : str       64 hex chars, to be mailed and then forgotten
    hashed     : str       SHA-256 hex digest, to be stored on the user
    expires_at : datetime  now + ``password_reset_expire_minutes``
    """
    raw_token = secrets.token_hex(32)
    expires_at = utcnow() + timedelta(minutes=settings.password_reset_expire_minutes)
    return raw_token, hash_reset_token(raw_token), expires_at


# ---------------------------------------------------------------------------
# 4.  FastAPI dependency guards
# ---------------------------------------------------------------------------

# The tokenUrl here is only used by the auto-generated OpenAPI docs;
# the actual login endpoint takes a JSON body.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_prefix}/auth/login")


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db=Depends(get_db),
) -> User:
    """
    Dependency: decode the JWT and load the User row.

    Raises 401 if the token is invalid or the user has since been deleted.
    """
    payload = decode_access_token(token)

    user = db.query(User).filter(User.id == payload["user_id"]).first()
    if not user:
        raise AuthenticationError("The user belonging to this token no longer exists")
    return user


def require_roles(*roles: Role):
    """
    Build a dependency that wraps :func:`get_current_user` and additionally
    asserts the user's role is one of *roles*.  Raises 403 otherwise.
    """
    allowed = frozenset(roles)

    def _guard(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise AuthorizationError()
        return current_user

    return _guard


require_admin = require_roles(Role.admin)
