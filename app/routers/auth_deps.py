"""
Authorization context.
Resolves the calling profile from a bearer token issued by the identity subsystem.
"""
import logging
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from app.core import security
from app.database import get_db
from app.models.profile import Profile

logger = logging.getLogger(__name__)

# Tokens are minted by the identity subsystem; tokenUrl only documents where.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def authenticate_token(token: str, db: Session) -> Profile:
    """
    Validates the token and returns the caller's profile.
    Shared by HTTP dependencies and the WebSocket stream.
    """
    payload = security.decode_access_token(token)

    if payload is None:
        logger.warning("Authentication failed: Invalid token")
        raise _unauthorized("Could not validate credentials")

    if payload.get("error") == "TOKEN_EXPIRED":
        logger.info("Authentication failed: Token expired")
        raise _unauthorized("TOKEN_EXPIRED")

    if payload.get("type") != "access":
        logger.warning("Authentication failed: Invalid token type")
        raise _unauthorized("Invalid token type")

    profile_id = security.subject_as_uuid(payload)
    if profile_id is None:
        logger.warning("Authentication failed: Missing or malformed subject in token")
        raise _unauthorized("Missing subject in token")

    profile = db.get(Profile, profile_id)
    if profile is None:
        logger.warning(f"Authentication failed: Profile {profile_id} not found")
        raise _unauthorized("Profile not found")
    return profile


def get_current_profile(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> Profile:
    return authenticate_token(token, db)
