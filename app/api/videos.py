# app/api/videos.py
import asyncio
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlmodel import Session

from app.api.auth import get_current_profile, get_session_context
from app.core.config import settings
from app.core.database import SessionDep
from app.models.user import UserProfile
from app.schemas.user import ShareLinkRead
from app.schemas.video import VideoCreate, VideoList, VideoRead, VideoUpdate
from app.services.gallery import GalleryStore
from app.services.session import SessionContext

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=VideoList)
async def list_videos(
    db: SessionDep,
    q: Optional[str] = Query(None, description="Фильтр по тегам и названию"),
    current_profile: UserProfile = Depends(get_current_profile),
):
    """Returns the signed-in user's videos, newest first."""
    return VideoList(videos=GalleryStore(db).list_videos(current_profile.uid, q))


@router.post("/", response_model=VideoRead, status_code=status.HTTP_201_CREATED)
async def add_video(
    video: VideoCreate,
    db: SessionDep,
    current_profile: UserProfile = Depends(get_current_profile),
):
    return GalleryStore(db).add(current_profile.uid, video.youtube_url, video.title, video.tags)


@router.put("/{video_id}", response_model=VideoRead)
async def update_video(
    video_id: uuid.UUID,
    video: VideoUpdate,
    db: SessionDep,
    current_profile: UserProfile = Depends(get_current_profile),
):
    """Overwrites title and tags; url, owner and created_at stay as they were."""
    return GalleryStore(db).update(current_profile.uid, video_id, video.title, video.tags)


@router.delete("/{video_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_video(
    video_id: uuid.UUID,
    db: SessionDep,
    current_profile: UserProfile = Depends(get_current_profile),
):
    GalleryStore(db).delete(current_profile.uid, video_id)


@router.get("/share-link", response_model=ShareLinkRead)
async def share_link(current_profile: UserProfile = Depends(get_current_profile)):
    """Public read-only link to the gallery. Copying it is left to the client."""
    share_url = f"{settings.frontend_url.rstrip('/')}/share/{current_profile.share_token}"
    return ShareLinkRead(share_token=current_profile.share_token, share_url=share_url)


@router.websocket("/live")
async def live_videos(websocket: WebSocket, context: SessionContext = Depends(get_session_context)):
    """
    Live channel: sends the full sorted snapshot on connect and after every
    change to the user's videos. The client may send {"query": "..."} to
    change the filter; it gets a re-filtered snapshot back.
    """
    if not context.is_authenticated:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    uid = context.uid
    engine = context.db.get_bind()
    subscription = GalleryStore(context.db).subscribe(uid, context.session_id)
    query = websocket.query_params.get("q") or ""

    async def send_snapshot():
        # Новая сессия на каждый снимок, чтобы не читать устаревшие объекты
        with Session(engine) as snapshot_db:
            videos = GalleryStore(snapshot_db).list_videos(uid, query)
        await websocket.send_json(VideoList(videos=videos).model_dump(mode="json"))

    receive_task = asyncio.create_task(websocket.receive_json())
    change_task = asyncio.create_task(subscription.wait())
    try:
        await send_snapshot()
        while True:
            done, _ = await asyncio.wait({receive_task, change_task}, return_when=asyncio.FIRST_COMPLETED)

            if change_task in done:
                if not change_task.result():
                    logger.info(f"Session of {uid} ended, closing live channel.")
                    await websocket.close(code=status.WS_1000_NORMAL_CLOSURE)
                    break
                change_task = asyncio.create_task(subscription.wait())

            if receive_task in done:
                try:
                    message = receive_task.result()
                except ValueError:
                    logger.warning(f"Ignoring malformed live channel message from {uid}")
                    message = None
                if isinstance(message, dict):
                    query = str(message.get("query") or "")
                receive_task = asyncio.create_task(websocket.receive_json())

            await send_snapshot()
    except WebSocketDisconnect:
        logger.info(f"Live channel of {uid} disconnected.")
    finally:
        subscription.close()
        receive_task.cancel()
        change_task.cancel()
