from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from jwt import PyJWTError

from exceptions import AuthenticationError

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_SECONDS = 60
ACCOUNT_NUMBER_CLAIM = "accountNumber"


def decode_access_token(token: str, secret: str) -> dict:
    if not token:
        raise AuthenticationError("missing token")
    try:
        return jwt.decode(token, secret, algorithms=[ALGORITHM], options={"require": ["exp"]})
    except PyJWTError as exc:
        raise AuthenticationError(str(exc)) from exc


def create_access_token(data: dict, secret: str, expires_delta: Optional[timedelta] = None) -> str:
    if expires_delta is None:
        expires_delta = timedelta(seconds=ACCESS_TOKEN_EXPIRE_SECONDS)
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret, algorithm=ALGORITHM)
