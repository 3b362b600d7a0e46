# app/core/security.py
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from passlib.context import CryptContext

from app.core.config import settings

logger = logging.getLogger(__name__)

# Контекст для хеширования паролей (bcrypt)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Функция для верификации пароля
def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

# Функция для хеширования пароля
def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def new_session_id() -> str:
    return uuid.uuid4().hex


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Creates the application's session JWT."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.algorithm)
    logger.debug(f"Created JWT for sub={to_encode.get('sub')} sid={to_encode.get('sid')}")
    return encoded_jwt

# Функция для декодирования JWT токена
def decode_access_token(token: str):
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.algorithm])
        return payload
    except JWTError as e:
        logger.debug(f"Rejected session token: {e}")
        return None
