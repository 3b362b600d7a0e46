# app/api/shared.py
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.database import SessionDep
from app.core.rate_limiter import rate_limit_shared_gallery
from app.schemas.video import SharedGalleryRead
from app.services.shared import SharedGalleryReader

router = APIRouter()


@router.get(
    "/{share_token}",
    response_model=SharedGalleryRead,
    dependencies=[Depends(rate_limit_shared_gallery)],
)
async def read_shared_gallery(
    share_token: str,
    db: SessionDep,
    q: Optional[str] = Query(None, description="Фильтр по тегам и названию"),
):
    """Public, read-only gallery addressed by its share token. No sign-in required."""
    return SharedGalleryReader(db).read(share_token, q)
