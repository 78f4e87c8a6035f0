from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from jose import jwt, JWTError

from app.config import settings

SUBJECT_PREFIX = "user:"


def create_access_token(
    user_id: int,
    roles: Iterable[str] = (),
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Tokens are normally minted by the auth provider; this is what dev tools and
    tests use to produce compatible ones.
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode = {
        "sub": f"{SUBJECT_PREFIX}{user_id}",
        "roles": sorted(set(roles)),
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Optional[dict]:
    """
    Claims if the token is valid and carries a subject, otherwise None.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if payload.get("sub") is None:
        return None
    return payload
