# app/api/users.py
from fastapi import APIRouter, Depends

from app.api.auth import get_current_profile, get_session_context
from app.models.user import UserProfile
from app.schemas.user import ProfileRead, ProfileUpdate
from app.services.session import SessionContext

router = APIRouter()


@router.get("/me", response_model=ProfileRead)
async def read_profile(current_profile: UserProfile = Depends(get_current_profile)):
    return current_profile


@router.patch("/me", response_model=ProfileRead)
async def update_profile(
    profile_update: ProfileUpdate,
    context: SessionContext = Depends(get_session_context),
):
    """Changes the display name shown on the shared gallery."""
    return context.update_display_name(profile_update.display_name)
