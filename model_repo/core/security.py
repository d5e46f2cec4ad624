# model_repo/core/security.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt  # PyJWT
from passlib.context import CryptContext

from .config import Settings, get_settings
from .errors import AuthenticationError

# ---- Password hashing (PBKDF2; no 72-byte limit like bcrypt) ----
_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(pw: str) -> str:
    return _pwd.hash(pw)


def verify_password(pw: str, hashed: str) -> bool:
    return _pwd.verify(pw, hashed)


# ---- JWT helpers ----
def create_jwt(user_id: int, username: str, settings: Optional[Settings] = None) -> str:
    s = settings or get_settings()
    now = datetime.now(timezone.utc)
    exp = now + timedelta(days=int(s.JWT_EXPIRE_DAYS))
    claims: Dict[str, Any] = {
        "sub": str(user_id),
        "username": username,
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
        "iss": s.JWT_ISSUER,
        "aud": s.JWT_AUDIENCE,
    }
    return jwt.encode(claims, s.JWT_SECRET, algorithm="HS256")


def decode_jwt(token: str, settings: Optional[Settings] = None) -> Dict[str, Any]:
    s = settings or get_settings()
    try:
        return jwt.decode(
            token,
            s.JWT_SECRET,
            algorithms=["HS256"],
            audience=s.JWT_AUDIENCE,
            issuer=s.JWT_ISSUER,
        )
    except jwt.PyJWTError as exc:
        raise AuthenticationError("Invalid token") from exc
