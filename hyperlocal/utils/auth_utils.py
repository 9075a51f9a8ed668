# hyperlocal/utils/auth_utils.py
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional

from hyperlocal.core.config import settings


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.ALGORITHM)


def decode_token(token: str):
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.ALGORITHM])
