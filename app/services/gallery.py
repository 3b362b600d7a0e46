# app/services/gallery.py
import json
import logging
import uuid
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core.errors import NotFoundError, TransientError, ValidationError
from app.core.live import Subscription, VideoFeed, video_feed
from app.core.youtube import (
    extract_video_id,
    filter_videos,
    placeholder_title,
    sort_newest_first,
    split_tags,
    thumbnail_url,
)
from app.models.video import Video
from app.schemas.video import VideoRead

logger = logging.getLogger(__name__)


def load_videos(db: Session, user_id: uuid.UUID) -> List[VideoRead]:
    """One-shot equality query on the owner, sorted newest first on our side."""
    rows = db.exec(select(Video).where(Video.user_id == user_id)).all()
    return sort_newest_first(VideoRead.from_db(row) for row in rows)


class GalleryStore:
    """CRUD over one user's videos. Every commit is pushed to the live feed."""

    def __init__(self, db: Session, feed: VideoFeed = video_feed):
        self.db = db
        self.feed = feed

    def list_videos(self, user_id: uuid.UUID, query: Optional[str] = None) -> List[VideoRead]:
        return filter_videos(load_videos(self.db, user_id), query)

    def subscribe(self, user_id: uuid.UUID, session_id: Optional[str] = None) -> Subscription:
        return self.feed.subscribe(user_id, session_id)

    def add(self, user_id: uuid.UUID, youtube_url: str, title: Optional[str] = None, tags_csv: str = "") -> VideoRead:
        video_id = extract_video_id(youtube_url)
        if not video_id:
            logger.warning(f"User {user_id} submitted invalid YouTube URL: {youtube_url!r}")
            raise ValidationError("Invalid YouTube URL")

        video = Video(
            user_id=user_id,
            youtube_url=youtube_url,
            youtube_video_id=video_id,
            title=(title or "").strip() or placeholder_title(video_id),
            thumbnail_url=thumbnail_url(video_id),
            tags=json.dumps(split_tags(tags_csv)),
        )
        self._commit(video, "add")
        logger.info(f"User {user_id} added video {video.id} ({video_id})")
        return VideoRead.from_db(video)

    def update(self, user_id: uuid.UUID, video_id: uuid.UUID, title: str, tags_csv: str = "") -> VideoRead:
        video = self._get_owned(user_id, video_id)
        # Меняем только title и теги
        video.title = (title or "").strip() or placeholder_title(video.youtube_video_id)
        video.tags = json.dumps(split_tags(tags_csv))
        self._commit(video, "update")
        logger.info(f"User {user_id} updated video {video_id}")
        return VideoRead.from_db(video)

    def delete(self, user_id: uuid.UUID, video_id: uuid.UUID) -> None:
        video = self._get_owned(user_id, video_id)
        try:
            self.db.delete(video)
            self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Database error deleting video {video_id}: {e}", exc_info=True)
            self.db.rollback()
            raise TransientError("Failed to delete video")
        logger.info(f"User {user_id} deleted video {video_id}")
        self.feed.publish(user_id)

    def _get_owned(self, user_id: uuid.UUID, video_id: uuid.UUID) -> Video:
        # Чужие видео выглядят как несуществующие
        video = self.db.exec(
            select(Video).where(Video.id == video_id).where(Video.user_id == user_id)
        ).first()
        if not video:
            raise NotFoundError("Video not found")
        return video

    def _commit(self, video: Video, action: str) -> None:
        self.db.add(video)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            logger.error(f"Database error on video {action}: {e}", exc_info=True)
            self.db.rollback()
            raise TransientError(f"Failed to {action} video")
        self.db.refresh(video)
        self.feed.publish(video.user_id)
