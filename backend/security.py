import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from backend.config import Settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class InvalidToken(Exception):
    """Session token is missing, malformed, badly signed or expired."""


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None,
                        issued_at: Optional[datetime] = None) -> str:
    to_encode = data.copy()
    issued = issued_at or datetime.now(timezone.utc)
    expire = issued + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"iat": issued, "exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: Optional[str], settings: Settings) -> str:
    """Return the user id carried by a session token, or raise InvalidToken."""
    if not token:
        raise InvalidToken("missing token")
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as exc:
        raise InvalidToken(str(exc)) from exc
    user_id = payload.get("sub")
    if not user_id:
        raise InvalidToken("token has no subject")
    return user_id


def generate_reset_token() -> str:
    return secrets.token_hex(32)
