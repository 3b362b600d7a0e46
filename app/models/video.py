# app/models/video.py
import json
import uuid
from datetime import datetime
from typing import List, Optional

from sqlmodel import SQLModel, Field

from app.models.user import utcnow


class Video(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, index=True)
    user_id: uuid.UUID = Field(foreign_key="userprofile.uid", index=True)  # Владелец, не меняется
    youtube_url: str
    youtube_video_id: str = Field(index=True)  # Дубли у одного пользователя разрешены
    title: Optional[str] = Field(default=None)  # NULL только у строк старой схемы до миграции
    thumbnail_url: str
    tags: str = Field(default="[]")  # Храним как JSON строку
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def tags_list(self) -> List[str]:
        return json.loads(self.tags)
