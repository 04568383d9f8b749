import uuid
from typing import Optional

from app.core.exceptions import ConstraintViolationError, NotFoundError
from app.models.profile import Profile
from app.services.base import BaseService
from app.services import realtime  # noqa: F401  (cascaded deletes must reach the change feed)

THEME_PREFERENCES = ("light", "dark", "system")


class ProfileService(BaseService):
    """
    Local side of the profile contract: lookups, presentation preferences,
    and translating a profile destroy signal into the notification cascade.
    """

    def get(self, profile_id: uuid.UUID) -> Optional[Profile]:
        return self.db.get(Profile, profile_id)

    def update_preferences(
        self,
        profile: Profile,
        theme_preference: Optional[str] = None,
        color_theme: Optional[str] = None,
    ) -> Profile:
        if theme_preference is not None:
            if theme_preference not in THEME_PREFERENCES:
                raise ConstraintViolationError(
                    f"theme_preference must be one of: {', '.join(THEME_PREFERENCES)}",
                    details={"field": "theme_preference"},
                )
            profile.theme_preference = theme_preference
        if color_theme is not None:
            if not color_theme.strip():
                raise ConstraintViolationError("color_theme cannot be blank", details={"field": "color_theme"})
            profile.color_theme = color_theme.strip()
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(profile)
        return profile

    def destroy_profile(self, profile_id: uuid.UUID) -> int:
        """
        Remove a profile and, in the same transaction, every notification it
        owns (soft-deleted ones included). Returns the number of notifications removed.
        """
        profile = self.db.get(Profile, profile_id)
        if profile is None:
            raise NotFoundError("Profile not found")

        removed = len(profile.notifications)
        try:
            self.db.delete(profile)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.log_info(
            f"Profile {profile_id} destroyed with {removed} notification(s)",
            profile_id=str(profile_id),
            notifications_removed=removed,
        )
        return removed
