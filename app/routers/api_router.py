from fastapi import APIRouter
from app.routers import notifications, profiles

# Centralized API router hub
# Routers are aggregated here, and main.py only imports this single hub.
api_router = APIRouter()

api_router.include_router(notifications.router, tags=["Notifications"])
api_router.include_router(profiles.router, tags=["Profiles"])
