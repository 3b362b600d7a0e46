# app/schemas/user.py
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field
import uuid

class SignUpRequest(BaseModel):
    email: EmailStr
    password: str
    display_name: str = Field(..., min_length=1, max_length=100)

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class ProfileRead(BaseModel):
    uid: uuid.UUID
    email: str
    display_name: str
    share_token: str
    created_at: datetime

    class Config:
        from_attributes = True

class ProfileUpdate(BaseModel):
    display_name: str = Field(..., min_length=1, max_length=100)

class SessionRead(BaseModel):
    state: str
    profile: Optional[ProfileRead] = None

class ShareLinkRead(BaseModel):
    share_token: str
    share_url: str
