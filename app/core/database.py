# app/core/database.py
import logging
from typing import Generator, Annotated

from fastapi import Depends
from sqlalchemy import or_
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine, SQLModel, Session, select

from app.core.config import settings

logger = logging.getLogger(__name__)


def _engine_kwargs(url: str) -> dict:
    kwargs = {"echo": settings.database_echo}
    if url.startswith("sqlite"):
        # Одно соединение на весь процесс для in-memory базы (тесты)
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return kwargs


engine = create_engine(settings.database_url, **_engine_kwargs(settings.database_url))


def get_db() -> Generator:
    with Session(engine) as session:
        yield session


def init_db():
    # Импорт моделей регистрирует таблицы в metadata
    from app.models import user, video  # noqa: F401
    SQLModel.metadata.create_all(engine)


def backfill_video_titles() -> int:
    """
    Migrates rows from the title-less Video schema: every video without a
    title gets the placeholder title. Returns the number of rows updated.
    """
    from app.core.youtube import placeholder_title
    from app.models.video import Video

    with Session(engine) as session:
        legacy = session.exec(
            select(Video).where(or_(Video.title == None, Video.title == ""))  # noqa: E711
        ).all()
        for video in legacy:
            video.title = placeholder_title(video.youtube_video_id)
            session.add(video)
        if legacy:
            session.commit()
            logger.info(f"Backfilled placeholder titles for {len(legacy)} legacy videos.")
    return len(legacy)


SessionDep = Annotated[Session, Depends(get_db)]
