"""
Local development helper: create profiles and print bearer tokens for them.
In deployment, profiles and tokens come from the identity subsystem.
"""
import sys

from app.core.security import create_access_token
from app.database import SessionLocal, init_db
from app.models.profile import Profile


def seed(names):
    init_db()
    db = SessionLocal()
    try:
        for name in names:
            profile = db.query(Profile).filter(Profile.full_name == name).first()
            if not profile:
                profile = Profile(full_name=name)
                db.add(profile)
                db.commit()
                db.refresh(profile)
                print(f"Created profile {name}: {profile.id}")
            else:
                print(f"Profile {name} already exists: {profile.id}")
            print(f"  token: {create_access_token({'sub': profile.id})}")
    finally:
        db.close()


if __name__ == "__main__":
    seed(sys.argv[1:] or ["Alice", "Bob"])
