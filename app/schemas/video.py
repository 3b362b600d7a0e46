# app/schemas/video.py
from typing import List, Optional

from pydantic import BaseModel, Field
from datetime import datetime
import uuid
import json

from app.core.youtube import high_res_thumbnail_url, placeholder_title

class VideoCreate(BaseModel):
    youtube_url: str
    title: Optional[str] = None
    tags: str = Field(default="", description="Теги через запятую")

class VideoUpdate(BaseModel):
    title: str
    tags: str = Field(default="", description="Теги через запятую")

class VideoRead(BaseModel):
    id: uuid.UUID
    user_id: uuid.UUID
    youtube_url: str
    youtube_video_id: str
    title: str
    thumbnail_url: str
    thumbnail_url_hq: str
    tags: List[str]  # При чтении возвращаем как список
    created_at: datetime

    @classmethod
    def from_db(cls, db_model):
        # Конвертируем JSON строку обратно в список при чтении из БД
        return cls(
            id=db_model.id,
            user_id=db_model.user_id,
            youtube_url=db_model.youtube_url,
            youtube_video_id=db_model.youtube_video_id,
            title=db_model.title or placeholder_title(db_model.youtube_video_id),
            thumbnail_url=db_model.thumbnail_url,
            thumbnail_url_hq=high_res_thumbnail_url(db_model.youtube_video_id),
            tags=json.loads(db_model.tags or "[]"),
            created_at=db_model.created_at,
        )

    class Config:
        from_attributes = True

class VideoList(BaseModel):
    videos: List[VideoRead]

class SharedGalleryRead(BaseModel):
    owner_name: str
    videos: List[VideoRead]
