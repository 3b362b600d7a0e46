# app/services/shared.py
import logging
from typing import Optional

from sqlmodel import Session, select

from app.core.errors import NotFoundError
from app.core.youtube import filter_videos
from app.models.user import UserProfile
from app.schemas.video import SharedGalleryRead
from app.services.gallery import load_videos

logger = logging.getLogger(__name__)


class SharedGalleryReader:
    """Read-only view of a gallery, addressed by share token instead of uid."""

    def __init__(self, db: Session):
        self.db = db

    def find_owner(self, share_token: str) -> UserProfile:
        # share_token уникален в БД, поэтому first() однозначен
        profile = self.db.exec(
            select(UserProfile).where(UserProfile.share_token == share_token)
        ).first()
        if not profile:
            logger.warning(f"Shared gallery lookup with unknown token {share_token[:8]}...")
            raise NotFoundError("Gallery not found")
        return profile

    def read(self, share_token: str, query: Optional[str] = None) -> SharedGalleryRead:
        owner = self.find_owner(share_token)
        videos = load_videos(self.db, owner.uid)
        logger.info(f"Serving shared gallery of {owner.uid} ({len(videos)} videos).")
        return SharedGalleryRead(
            owner_name=owner.display_name or "User",
            videos=filter_videos(videos, query),
        )
