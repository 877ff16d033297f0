# app/core/security.py
import hashlib
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Tuple

from jose import jwt, JWTError, ExpiredSignatureError
from passlib.context import CryptContext

from app.core.config import settings
from app.core.exceptions import InvalidToken, ExpiredToken

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhdw]?)\s*$")
_DURATION_UNITS = {
    "": "seconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
    "w": "weeks",
}


@dataclass(frozen=True)
class TokenPayload:
    sub: str
    iat: float


def parse_duration(value: str) -> timedelta:
    """Parses durations like "90d", "12h", "30m" or a bare number of seconds"""
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(plain_password, password_hash)


def create_access_token(subject: str, issued_at: datetime = None) -> str:
    issued_at = issued_at or datetime.now(timezone.utc)
    expire = issued_at + parse_duration(settings.JWT_EXPIRES_IN)
    to_encode = {
        "sub": str(subject),
        "iat": issued_at.timestamp(),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> TokenPayload:
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise ExpiredToken()
    except JWTError:
        raise InvalidToken()

    sub = payload.get("sub")
    iat = payload.get("iat")
    if sub is None or not isinstance(iat, (int, float)):
        raise InvalidToken()

    return TokenPayload(sub=sub, iat=float(iat))


def hash_reset_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def create_password_reset_token() -> Tuple[str, str]:
    """Returns (raw token for the email, sha256 hex digest to store)"""
    raw_token = secrets.token_hex(32)
    return raw_token, hash_reset_token(raw_token)
