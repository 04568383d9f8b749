from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.database import get_db
from app.models.profile import Profile
from app.routers.auth_deps import get_current_profile
from app.schemas.profile import PreferencesUpdate, ProfileResponse
from app.services.profile import ProfileService

router = APIRouter(prefix="/profiles", tags=["Profiles"])


@router.get("/me", response_model=ProfileResponse)
def get_my_profile(current_profile: Profile = Depends(get_current_profile)):
    return current_profile


@router.patch("/me/preferences", response_model=ProfileResponse)
def update_my_preferences(
    preferences: PreferencesUpdate,
    db: Session = Depends(get_db),
    current_profile: Profile = Depends(get_current_profile)
):
    return ProfileService(db).update_preferences(
        current_profile,
        theme_preference=preferences.theme_preference,
        color_theme=preferences.color_theme,
    )
