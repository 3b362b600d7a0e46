# app/models/user.py
from typing import Optional
import uuid
from datetime import datetime, timezone
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_share_token() -> str:
    return str(uuid.uuid4())


class Account(SQLModel, table=True):
    """Identity provider record. Its id is the uid handed to the rest of the app."""

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4, primary_key=True, index=True, nullable=False
    )
    email: str = Field(index=True, unique=True)
    display_name: str = Field(default="User")
    hashed_password: Optional[str] = Field(default=None)  # None для входа только через Google
    provider: str = Field(default="password")
    provider_subject: Optional[str] = Field(default=None, index=True, unique=True)
    created_at: datetime = Field(default_factory=utcnow)


class UserProfile(SQLModel, table=True):
    uid: uuid.UUID = Field(foreign_key="account.id", primary_key=True, nullable=False)
    email: str = Field(index=True)
    display_name: str = Field(default="User")
    # Уникальность токена проверяется на уровне БД
    share_token: str = Field(default_factory=new_share_token, index=True, unique=True)
    created_at: datetime = Field(default_factory=utcnow)