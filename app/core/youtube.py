# app/core/youtube.py
import re
from typing import Iterable, List, Optional, Protocol, Sequence, TypeVar
from datetime import datetime

# Паттерны проверяются по порядку: сначала полный URL, потом голый ID
VIDEO_ID_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/|youtube\.com/v/)([a-zA-Z0-9_-]{11})"),
    re.compile(r"^([a-zA-Z0-9_-]{11})\Z"),  # \Z: "$" допускает завершающий \n
]

THUMBNAIL_URL_TEMPLATE = "https://img.youtube.com/vi/{video_id}/mqdefault.jpg"
HIGH_RES_THUMBNAIL_URL_TEMPLATE = "https://img.youtube.com/vi/{video_id}/hqdefault.jpg"


def extract_video_id(url: str) -> Optional[str]:
    """
    Извлекает 11-символьный ID видео из ссылки YouTube или из самого ID.
    Возвращает None, если ни один паттерн не подошел.
    """
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def thumbnail_url(video_id: str) -> str:
    return THUMBNAIL_URL_TEMPLATE.format(video_id=video_id)


def high_res_thumbnail_url(video_id: str) -> str:
    return HIGH_RES_THUMBNAIL_URL_TEMPLATE.format(video_id=video_id)


def placeholder_title(video_id: str) -> str:
    return f"Video {video_id}"


def split_tags(tags_csv: Optional[str]) -> List[str]:
    """Splits comma separated tags, trimming each and dropping empty ones."""
    if not tags_csv:
        return []
    return [tag.strip() for tag in tags_csv.split(",") if tag.strip()]


class GalleryItem(Protocol):
    title: Optional[str]
    tags: Sequence[str]
    created_at: datetime


T = TypeVar("T", bound=GalleryItem)


def matches_query(item: GalleryItem, query: str) -> bool:
    needle = query.lower()
    if any(needle in tag.lower() for tag in item.tags):
        return True
    return bool(item.title) and needle in item.title.lower()


def filter_videos(videos: Iterable[T], query: Optional[str]) -> List[T]:
    """
    Case-insensitive substring filter over tags and title.
    An empty query keeps every video.
    """
    if not query:
        return list(videos)
    return [video for video in videos if matches_query(video, query)]


def sort_newest_first(videos: Iterable[T]) -> List[T]:
    # sorted() стабилен и при reverse=True
    return sorted(videos, key=lambda video: video.created_at, reverse=True)
